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

import gzip
import os
import posixpath
import shutil
import stat as _stat
import tarfile
import zipfile

from enum import Enum

from bases.Kernel import getLogger
from bases.Settings import ARCHIVE_FALLBACK_NAME, COPY_CHUNK_SIZE, InputError

logger = getLogger(__name__)


class UnsupportedFormatError(InputError):
    pass


class ArchiveFormat(Enum):
    TARGZ = 'targz'
    ZIP = 'zip'

    @property
    def extension(self):
        return '.tar.gz' if self == ArchiveFormat.TARGZ else '.zip'

    @property
    def contentType(self):
        return 'application/gzip' if self == ArchiveFormat.TARGZ else 'application/zip'


def parseArchiveFormat(value) -> ArchiveFormat:
    try:
        return ArchiveFormat(value)
    except ValueError:
        raise UnsupportedFormatError("dl must be one of 'targz', 'zip'")


def archiveName(path, fmt: ArchiveFormat) -> str:
    """Download file name for an archive of path: its last segment plus the format's extension"""
    name = posixpath.basename(path.rstrip('/').replace(os.sep, '/'))
    if not name or name in (os.curdir, os.pardir):
        name = ARCHIVE_FALLBACK_NAME
    return name + fmt.extension


def iterRegularFiles(root):
    """
    Yield (path, relPath, stat) for every regular file below root.

    Children are visited sorted by name, depth first; symbolic links are
    never followed and everything that is not a regular file or a real
    directory is skipped. Errors are not caught.
    """

    def sortedChildren(relDir):
        directory = os.path.join(root, relDir) if relDir else root
        with os.scandir(directory) as it:
            return iter(sorted(it, key=lambda e: e.name))

    # (relative directory, iterator over its remaining children)
    stack = [('', sortedChildren(''))]
    while stack:
        relDir, children = stack[-1]
        child = next(children, None)
        if child is None:
            stack.pop()
            continue

        relPath = posixpath.join(relDir, child.name) if relDir else child.name
        childStat = child.stat(follow_symlinks=False)

        if _stat.S_ISDIR(childStat.st_mode):
            stack.append((relPath, sortedChildren(relPath)))
        elif _stat.S_ISREG(childStat.st_mode):
            yield child.path, relPath, childStat


class _OutputGuard:
    """
    Wrapper around the archive output.

    Writes are held back until commit(), so an error raised before the first
    file is opened leaves the output untouched and the caller can still
    answer with a clean error. Once aborted, writes are dropped, so closing
    the tar, gzip and zip writers while an error propagates cannot append a
    trailer to a truncated stream. It has no tell() or seek(), so zipfile
    treats it as unseekable.
    """

    def __init__(self, output):
        self.output = output
        self.aborted = False
        self.committed = False
        self._pending = []

    def commit(self):
        if self.committed:
            return
        self.committed = True
        pending, self._pending = self._pending, []
        for data in pending:
            self.output.write(data)

    def write(self, data):
        if self.aborted:
            return len(data)
        if not self.committed:
            self._pending.append(bytes(data))
            return len(data)
        return self.output.write(data)

    def flush(self):
        if self.committed and not self.aborted and hasattr(self.output, 'flush'):
            self.output.flush()


def _encodeTarGz(root, guard, chunkSize):
    count = 0
    gz = gzip.GzipFile(fileobj=guard, mode='wb')
    # Stream mode: no seeking back into the output
    tar = tarfile.open(fileobj=gz, mode='w|', copybufsize=chunkSize)
    try:
        for path, relPath, fileStat in iterRegularFiles(root):
            info = tar.gettarinfo(path, arcname=relPath)
            info.size = fileStat.st_size
            with open(path, 'rb') as f:
                guard.commit()
                tar.addfile(info, f)
            count += 1
        guard.commit()
    except BaseException:
        guard.aborted = True
        raise
    finally:
        # tar trailer first, then the gzip trailer
        tar.close()
        gz.close()
    return count


def _encodeZip(root, guard, chunkSize):
    count = 0
    # zipfile falls back to data descriptors when output cannot seek
    zf = zipfile.ZipFile(guard, mode='w', compression=zipfile.ZIP_DEFLATED, strict_timestamps=False)
    try:
        for path, relPath, fileStat in iterRegularFiles(root):
            info = zipfile.ZipInfo.from_file(path, arcname=relPath, strict_timestamps=False)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.file_size = fileStat.st_size
            with open(path, 'rb') as src:
                guard.commit()
                with zf.open(info, mode='w') as dest:
                    shutil.copyfileobj(src, dest, chunkSize)
            count += 1
        guard.commit()
    except BaseException:
        guard.aborted = True
        raise
    finally:
        zf.close()
    return count


def encodeArchive(root, fmt: ArchiveFormat, output, chunkSize=COPY_CHUNK_SIZE) -> int:
    """
    Write every regular file below root into output as a tar.gz or zip stream.

    Args:
        root: Directory to archive
        fmt: ArchiveFormat to encode
        output: Writable binary file object, need not be seekable
        chunkSize: Bytes copied per read from each source file

    Returns:
        int: Number of files written

    Raises:
        OSError: Any read or write failure; the stream is left truncated
    """
    if fmt == ArchiveFormat.TARGZ:
        count = _encodeTarGz(root, _OutputGuard(output), chunkSize)
    elif fmt == ArchiveFormat.ZIP:
        count = _encodeZip(root, _OutputGuard(output), chunkSize)
    else:
        raise UnsupportedFormatError(f'Unsupported archive format: {fmt}')

    logger.debug(f'Archived {count} files from {root} as {fmt.value}')
    return count
