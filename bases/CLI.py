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

import argparse
import json
import os
import logging
import logging.config
import platform

from bases.Kernel import PUBLIC_VERSION, LOG_LEVEL_MAPPING, getLogger, configureGlobalLogLevel
from bases.Settings import DEFAULT_ADDRESS, DEFAULT_DIRECTORY, SettingsGetter, parseAddress
from bases.Utils import flushPrint, getEnv

logger = getLogger(__name__)


def loadEnvFile(envFilePath=None):
    """
    Load environment variables from a .env file (default: ./.env).
    Only sets variables that are not already defined in os.environ.

    Returns:
        int: Number of variables loaded
    """
    envFilePath = envFilePath or os.path.join(os.getcwd(), '.env')

    if not os.path.isfile(envFilePath):
        return 0

    loadedCount = 0
    try:
        logger.debug(f'Loading .env file from: {envFilePath}')

        with open(envFilePath, 'r', encoding='utf-8') as f:
            for lineNum, line in enumerate(f, 1):
                line = line.strip()

                # Skip empty lines and comments
                if not line or line.startswith('#'):
                    continue

                # Parse KEY=VALUE format
                if '=' not in line:
                    flushPrint(f'Warning: .env line {lineNum}: Invalid format (missing =): {line}')
                    continue

                key, _, value = line.partition('=')
                key = key.strip()
                value = value.strip()

                if not key:
                    flushPrint(f'Warning: .env line {lineNum}: Empty key')
                    continue

                # Remove quotes if present (both single and double)
                if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                    value = value[1:-1]

                # Environment takes precedence
                if key not in os.environ:
                    os.environ[key] = value
                    loadedCount += 1
                else:
                    logger.debug(f'.env: Skipped {key} (already set in environment)')

        logger.debug(f'Loaded {loadedCount} environment variables from .env')

    except OSError as e:
        flushPrint(f'Error: Unable to read .env file: {e}')
        logger.error(f'Unable to read .env file: {e}', exc_info=True)

    return loadedCount


def configureLogging(logLevel):
    """Configure logging level for the application using Kernel's centralized configuration or config file

    Priority order:
    1. logLevel parameter (from --log-level CLI argument)
    2. FILEDEX_LOGGING_LEVEL environment variable
    3. Default to None (no configuration change)

    Both can be a logging level name (DEBUG, INFO, WARNING, ERROR) or a path
    to a logging configuration JSON file.
    """

    def suppressNoisyLogger():
        logging.getLogger('sentry_sdk').setLevel(logging.INFO)
        logging.getLogger('markdown_it').setLevel(logging.INFO)

    if logLevel is None:
        logLevel = getEnv('FILEDEX_LOGGING_LEVEL', None)

    if logLevel is None:
        suppressNoisyLogger()
        return None

    if os.path.isfile(logLevel):
        try:
            with open(logLevel, 'r') as configFile:
                configDict = json.load(configFile)

            logging.config.dictConfig(configDict)
            logger.info(f"Logging configured from file: {logLevel}")
            suppressNoisyLogger()
            return logLevel

        except (json.JSONDecodeError, ValueError, KeyError) as e:
            flushPrint(f"Failed to load logging config from {logLevel}: {e}")
            flushPrint("Falling back to default logging level configuration")

    if logLevel.upper() in LOG_LEVEL_MAPPING:
        configureGlobalLogLevel(LOG_LEVEL_MAPPING[logLevel.upper()])
        logger.info(f"Logging level set to {logLevel}")
    else:
        logger.warning(f"Invalid logging level '{logLevel}', using WARNING as default")
        configureGlobalLogLevel(logging.WARNING)

    suppressNoisyLogger()

    return logLevel


def showVersion():
    """Display version and platform information"""
    flushPrint(f"FileDex v{PUBLIC_VERSION}")
    flushPrint("")

    uname = platform.uname()
    flushPrint(f"Architecture: {uname.system} {uname.release} {uname.machine} - {uname.version} ({uname.processor})")

    settingsGetter = SettingsGetter.getInstance()
    flushPrint(f"Support: {settingsGetter.getSupportURL()}")


def configureCLIParser():
    """Build the argument parser of the filedex command"""

    def validateAddress(address):
        """Validate listen address for argparse"""
        try:
            parseAddress(address)
        except ValueError as e:
            raise argparse.ArgumentTypeError(str(e))
        return address

    def validateDirectory(directory):
        """Validate served directory for argparse"""
        if not os.path.isdir(directory):
            raise argparse.ArgumentTypeError(f"Directory not found: {directory}")
        return directory

    # Validator for log level
    def validateLogLevel(logLevel):
        """Validate log level for argparse"""
        # Allow file paths (they'll be validated later)
        if os.path.exists(logLevel):
            return logLevel

        validLevels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if logLevel.upper() not in validLevels:
            raise argparse.ArgumentTypeError(
                f"Invalid log level '{logLevel}'. Valid levels are: {', '.join(validLevels)}"
            )
        return logLevel.upper()

    parser = argparse.ArgumentParser(
        prog='filedex',
        description="FileDex serves a directory tree over HTTP with listings, search and archive downloads.",
    )
    parser.add_argument(
        "-a",
        "--address",
        type=validateAddress,
        default=DEFAULT_ADDRESS,
        help=f"Listen address as [HOST]:PORT (default: {DEFAULT_ADDRESS})",
        metavar="ADDRESS",
    )
    parser.add_argument(
        "-d",
        "--directory",
        type=validateDirectory,
        default=DEFAULT_DIRECTORY,
        help=f"Directory to serve (default: {DEFAULT_DIRECTORY})",
        metavar="DIRECTORY",
    )
    parser.add_argument(
        "--log-level",
        type=validateLogLevel,
        help="Set logging level (DEBUG, INFO, WARNING, ERROR) or path to logging config JSON file (default: WARNING)",
        metavar="LEVEL_OR_FILE",
        dest="logLevel"
    )
    parser.add_argument("--version", action="store_true", help="Show version information")
    return parser
