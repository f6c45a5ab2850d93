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

import platform
import sys
import os
import signal

from bases.Kernel import DexEvent, getLogger
from bases.Server import createServer
from bases.Settings import DEFAULT_STATIC_ROOT, SettingsGetter, parseAddress
from bases.CLI import configureCLIParser, configureLogging, showVersion, loadEnvFile
from bases.Utils import flushPrint, formatSize, sendException

logger = getLogger(__name__)


def setupGracefulShutdown():
    """Setup signal handlers for graceful shutdown on multiple Ctrl+C"""
    context = {'shutdownInProgress': False}

    def signalHandler(signum, frame):
        if context['shutdownInProgress']:
            # Second Ctrl+C - force immediate exit without cleanup messages
            os._exit(0)
        else:
            context['shutdownInProgress'] = True
            raise KeyboardInterrupt()

    signal.signal(signal.SIGINT, signalHandler)


def setupSettings():
    # Load .env file early (before any configuration)
    loadEnvFile()

    baseDir = os.path.dirname(os.path.abspath(__file__))

    # execute in a frozen executable
    if getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS'):
        baseDir = sys._MEIPASS

    return SettingsGetter(
        baseDir=baseDir,
        staticRoot=DEFAULT_STATIC_ROOT,
        platform=platform.system(),
    )


def onSearchComplete(path=None, query=None, count=0, error=None, **kwargs):
    if error is not None:
        flushPrint(f'Search "{query}" in {path} stopped after {count} results: {error}')
    else:
        flushPrint(f'Search "{query}" in {path}: {count} results')


def onArchiveComplete(path=None, name=None, count=0, size=0, **kwargs):
    flushPrint(f'Sent {name} ({count} files, {formatSize(size)}) from {path}')


def runServer(args):
    """
    Serve args.directory until interrupted.

    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    host, port = parseAddress(args.address)
    directory = os.path.abspath(args.directory)

    try:
        server = createServer(host, port, directory)
    except OSError as e:
        sendException(logger, e, errorPrefix=f'Unable to listen on {args.address}')
        return 1

    DexEvent.searchComplete.subscribe(onSearchComplete)
    DexEvent.archiveComplete.subscribe(onArchiveComplete)

    boundHost, boundPort = server.server_address[:2]
    flushPrint(f'Serving {directory} on http://{host or boundHost}:{boundPort}/')
    flushPrint('Press Ctrl+C to stop.')

    try:
        server.start()
    finally:
        server.server_close()
        DexEvent.searchComplete.unsubscribe(onSearchComplete)
        DexEvent.archiveComplete.unsubscribe(onArchiveComplete)

    return 0


def main(argv=None):
    """The main entry point of the filedex command"""
    settingsGetter = setupSettings()
    logger.debug(f'Base directory: {settingsGetter.baseDir}')

    parser = configureCLIParser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)

    configureLogging(args.logLevel)

    if args.version:
        showVersion()
        return 0

    setupGracefulShutdown()

    try:
        return runServer(args)
    except KeyboardInterrupt:
        flushPrint('\nExiting on user request (Ctrl+C)...')
        return 0 # Return success code for clean exit


def run():
    try:
        exitCode = main()
        sys.exit(exitCode or 0)
    except KeyboardInterrupt:
        flushPrint('\nExiting on user request (Ctrl+C)...')
        sys.exit(0)
    except Exception as e:
        sendException(logger, e)
        sys.exit(1)


if __name__ == '__main__':
    run()
