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
Depth-first walker that follows symbolic links without looping.

walk(root, visit) calls visit(path, getStat, error) once per reachable
entry, parents before children. Directories and links to directories are
entered at most once per canonical path; the set of canonical paths lives
only for the duration of one walk() call.

visit may:
    - return None to continue,
    - return SKIP_DIR to keep the walk out of the current directory,
    - raise to abort the whole walk (the exception leaves walk()).
"""

import os
import stat as _stat

from typing import Callable, Optional

from bases.Entry import canonicalPath, resolveLinkTarget
from bases.Kernel import getLogger

logger = getLogger(__name__)


class _SkipDir:

    def __repr__(self):
        return 'SKIP_DIR'


SKIP_DIR = _SkipDir()


def statEntry(path):
    return os.lstat(path)


class LazyStat:
    """
    Zero-argument stat accessor for one entry.

    The first call performs lstat(); the result, or the OSError it raised, is
    memoized and handed back on every later call.
    """

    __slots__ = ('path', '_result', '_error', '_fetched')

    def __init__(self, path, result=None, error=None):
        self.path = path
        self._result = result
        self._error = error
        self._fetched = result is not None or error is not None

    def __call__(self):
        if not self._fetched:
            try:
                self._result = statEntry(self.path)
            except OSError as e:
                self._error = e
            self._fetched = True

        if self._error is not None:
            raise self._error
        return self._result


VisitFunc = Callable[[str, LazyStat, Optional[OSError]], object]


def _descendTarget(path, isDir, isLink, visited):
    """Canonical path to enter for this entry, or None if it must stay a leaf"""
    if isDir:
        canonical = canonicalPath(path)
    elif isLink:
        target = resolveLinkTarget(path)
        if target is None:
            return None

        try:
            targetStat = os.stat(target)
        except OSError:
            return None

        if not _stat.S_ISDIR(targetStat.st_mode):
            return None

        canonical = canonicalPath(target)
    else:
        return None

    if canonical in visited:
        return None
    return canonical


def walk(root, visit: VisitFunc):
    """
    Walk the tree under root, following symbolic links to directories.

    Args:
        root: Directory (or file) to start from; links are followed to decide
            whether to descend, while its stat accessor reports the link itself
        visit: Callback invoked pre-order for every entry

    Raises:
        OSError: Hard filesystem errors, and whatever visit raises
    """
    visited = set()

    try:
        rootStat = os.stat(root)
    except OSError as e:
        visit(root, LazyStat(root, error=e), e)
        return

    # (path, stat accessor, is a real directory, is a symlink, pending error)
    stack = [(root, LazyStat(root), _stat.S_ISDIR(rootStat.st_mode), False, None)]

    while stack:
        path, getStat, isDir, isLink, error = stack.pop()

        if visit(path, getStat, error) is SKIP_DIR or error is not None:
            continue

        canonical = _descendTarget(path, isDir, isLink, visited)
        if canonical is None:
            continue
        visited.add(canonical)

        try:
            with os.scandir(path) as it:
                children = list(it)
        except OSError as e:
            logger.debug(f'Cannot enumerate {path}: {e}')
            visit(path, getStat, e)
            continue

        # Reversed so that pop() yields children in enumeration order
        for child in reversed(children):
            childStat = LazyStat(child.path)
            try:
                childIsLink = child.is_symlink()
                childIsDir = not childIsLink and child.is_dir(follow_symlinks=False)
            except PermissionError as e:
                stack.append((child.path, childStat, False, False, e))
                continue

            stack.append((child.path, childStat, childIsDir, childIsLink, None))
