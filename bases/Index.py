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

import html
import os
import posixpath

from dataclasses import dataclass, field
from typing import List, Optional

from markdown_it import MarkdownIt

from bases.Entry import Entry, resolveEntry
from bases.Kernel import getLogger
from bases.Utils import _unicode

logger = getLogger(__name__)

README_NAMES = ('readme.txt', 'readme.html', 'readme.md')


@dataclass
class Listing:
    name: str
    path: str # Request path of the directory, always ends with '/'
    entries: List[Entry] = field(default_factory=list)
    readme: Optional[str] = None # Rendered HTML, trusted
    isRoot: bool = False


def _createMarkdown():
    # Raw HTML passes through, like README.html
    md = MarkdownIt('commonmark', {'html': True, 'linkify': True})
    return md.enable(['table', 'strikethrough', 'linkify'])


def sortEntries(entries):
    """Directories (and links to directories) first, then by case-sensitive name"""
    return sorted(entries, key=lambda e: (not e.goesToDir, e.name))


def listDirectory(dirPath) -> List[Entry]:
    """
    Enumerate and resolve the direct children of dirPath, unsorted.

    Raises:
        OSError: If the directory cannot be read
    """
    entries = []
    with os.scandir(dirPath) as it:
        for child in it:
            try:
                entries.append(resolveEntry(child.path, child.stat(follow_symlinks=False)))
            except FileNotFoundError:
                # Removed while listing
                logger.debug(f'{child.path} disappeared during listing')
    return entries


def renderReadme(entry: Entry) -> str:
    """
    Render a README file to HTML by its extension.

    Raises:
        OSError: If the file cannot be read
    """
    with open(entry.path, 'rb') as f:
        text = _unicode(f.read(), throw=False)

    lowered = entry.name.lower()
    if lowered.endswith('.txt'):
        return '<pre>' + html.escape(text) + '</pre>'
    if lowered.endswith('.html'):
        return text
    return _createMarkdown().render(text)


def selectReadme(entries) -> Optional[Entry]:
    """First README in listing order. Directories named like a README are ignored."""
    for entry in entries:
        if entry.name.lower() in README_NAMES and not entry.goesToDir:
            return entry
    return None


def buildIndex(entries, dirPath, requestPath='/') -> Listing:
    """
    Build the listing of one directory.

    Args:
        entries: Resolved children of the directory
        dirPath: Filesystem path of the directory
        requestPath: URL path the directory is served at

    Raises:
        OSError: If the selected README cannot be read
    """
    if not requestPath.endswith('/'):
        requestPath += '/'

    ordered = sortEntries(entries)

    readme = None
    readmeEntry = selectReadme(ordered)
    if readmeEntry is not None:
        logger.debug(f'Using {readmeEntry.name} as README of {dirPath}')
        readme = renderReadme(readmeEntry)

    name = posixpath.basename(requestPath.rstrip('/'))

    return Listing(
        name=name,
        path=requestPath,
        entries=ordered,
        readme=readme,
        isRoot=requestPath == '/',
    )
