#!/usr/bin/env python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
#
# FileDex - Browse, search and download directories over HTTP
# Copyright (C) 2025-2026 FileDex contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import os

from bases.Kernel import Singleton, getLogger
from bases.Utils import getEnv

# Page templates ship inside the package
DEFAULT_STATIC_ROOT = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'static')

DEFAULT_ADDRESS = ':6060'
DEFAULT_DIRECTORY = '.'

# Chunk size (64 KiB) used when copying file bytes into archives and responses
COPY_CHUNK_SIZE = getEnv('FILEDEX_COPY_CHUNK_SIZE', 64 * 1024)

# Banner list, looked up inside the served directory
BANNERS_FILE = getEnv('FILEDEX_BANNERS', 'banners')

# Download name used when the served root itself is archived
ARCHIVE_FALLBACK_NAME = 'root'

SUPPORT_URL = 'https://github.com/filedex/filedex/issues'

logger = getLogger(__name__)


class InputError(ValueError):
    """Raised for client input that is rejected before any output is produced (maps to 4xx)"""
    pass


def parseAddress(address):
    """
    Split a listen address of the form 'host:port' or ':port'.

    Returns:
        tuple: (host, port) where host may be '' for all interfaces
    """
    host, sep, port = address.rpartition(':')
    if not sep:
        raise ValueError(f"Invalid listen address '{address}', expected [HOST]:PORT")

    try:
        port = int(port)
    except ValueError:
        raise ValueError(f"Invalid port in listen address '{address}'")

    if not (0 <= port <= 65535):
        raise ValueError(f"Port {port} is out of valid range (0-65535)")

    return host.strip('[]'), port


# Singleton
class SettingsGetter(Singleton):

    @classmethod
    def getInstance(cls):
        if cls not in cls._instances:
            raise RuntimeError('Get SettingsGetter before initialized it.')
        return cls._instances[cls]

    def initialize(self, baseDir=None, staticRoot=None, platform=None):
        """Initialize the SettingsGetter with the application and static directories."""
        self._baseDir = baseDir or os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        self._staticRoot = staticRoot or DEFAULT_STATIC_ROOT
        self._platform = platform

        # Read again here: .env may have been loaded after this module was imported
        self._bannersFile = getEnv('FILEDEX_BANNERS', BANNERS_FILE)
        self._copyChunkSize = getEnv('FILEDEX_COPY_CHUNK_SIZE', COPY_CHUNK_SIZE)

        logger.debug(f'Settings initialized: baseDir={self._baseDir}, staticRoot={self._staticRoot}')

    @property
    def baseDir(self):
        return self._baseDir

    @property
    def staticRoot(self):
        return self._staticRoot

    @property
    def bannersFile(self):
        return self._bannersFile

    @property
    def copyChunkSize(self):
        return self._copyChunkSize

    def getTemplatePath(self, name):
        return os.path.join(self._staticRoot, name)

    def getSupportURL(self):
        return SUPPORT_URL
