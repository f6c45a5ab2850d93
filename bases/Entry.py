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
"""
Entry resolution shared by the walker, the search pipeline, the archive
encoder and the directory index.

An Entry is a single filesystem node classified from its lstat() result.
Symbolic links are followed exactly once to record what they point at, so
consumers can decide whether a link "acts as a directory" without another
system call.
"""

import os
import stat as _stat

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import quote


class EntryKind(Enum):
    FILE = 'file'
    DIRECTORY = 'directory'
    SYMLINK = 'symlink'


def kindFromMode(mode) -> EntryKind:
    if _stat.S_ISLNK(mode):
        return EntryKind.SYMLINK
    if _stat.S_ISDIR(mode):
        return EntryKind.DIRECTORY
    return EntryKind.FILE


@dataclass
class Entry:
    """One filesystem node as seen by a traversal or a listing"""
    path: str
    name: str
    kind: EntryKind
    size: int
    mtime: float
    mode: int
    targetKind: Optional[EntryKind] = None # Only for symlinks, None when the link is broken
    relPath: str = '' # Forward-slash path relative to the traversal root

    @property
    def goesToDir(self) -> bool:
        """Whether following this entry lands in a directory"""
        if self.kind == EntryKind.SYMLINK:
            return self.targetKind == EntryKind.DIRECTORY
        return self.kind == EntryKind.DIRECTORY

    @property
    def iconName(self) -> str:
        if self.kind == EntryKind.DIRECTORY:
            return 'folder'
        if self.kind == EntryKind.SYMLINK:
            return 'folder-shortcut' if self.targetKind == EntryKind.DIRECTORY else 'file-shortcut'
        return 'file'

    @property
    def relHref(self) -> str:
        return quote(self.relPath or self.name)


def canonicalPath(path) -> str:
    """Resolved, symlink-free absolute path identifying a filesystem object"""
    return os.path.realpath(path)


def resolveLinkTarget(path) -> Optional[str]:
    """
    Read a symbolic link and return the path it points at.

    Relative targets are resolved against the link's own directory, absolute
    targets are used as-is. Returns None if the link cannot be read.
    """
    try:
        link = os.readlink(path)
    except OSError:
        return None

    if os.path.isabs(link):
        return link
    return os.path.join(os.path.dirname(path), link)


def statTargetKind(path) -> Optional[EntryKind]:
    """Kind of the object a symbolic link resolves to, None for broken or unreadable links"""
    target = resolveLinkTarget(path)
    if target is None:
        return None

    try:
        targetStat = os.stat(target)
    except OSError:
        return None

    return EntryKind.DIRECTORY if _stat.S_ISDIR(targetStat.st_mode) else EntryKind.FILE


def resolveEntry(path, stat=None, relPath='') -> Entry:
    """
    Build an Entry for path.

    Args:
        path: Filesystem path of the node
        stat: Optional lstat() result already fetched by the caller
        relPath: Forward-slash path relative to the traversal root

    Raises:
        OSError: If path cannot be stat'ed
    """
    if stat is None:
        stat = os.lstat(path)

    kind = kindFromMode(stat.st_mode)
    targetKind = statTargetKind(path) if kind == EntryKind.SYMLINK else None

    return Entry(
        path=path,
        name=os.path.basename(os.path.normpath(path)),
        kind=kind,
        size=stat.st_size,
        mtime=stat.st_mtime,
        mode=stat.st_mode,
        targetKind=targetKind,
        relPath=relPath,
    )
