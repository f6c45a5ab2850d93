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
import posixpath
import re
import threading

from dataclasses import dataclass

from bases.Entry import Entry, resolveEntry
from bases.Kernel import getLogger
from bases.Settings import InputError
from bases.Walker import walk

logger = getLogger(__name__)


class InvalidQueryError(InputError):
    """The regular expression of a search query does not compile"""
    pass


class ChannelClosed(Exception):
    pass


class SearchCancelled(Exception):
    pass


@dataclass
class Match:
    entry: Entry
    query: str


class HandOffChannel:
    """
    Zero-capacity channel between one producer and one consumer.

    send() returns only after receive() has taken that very item, so at most
    one item is ever in flight. The producer calls close() when it is done;
    the consumer calls cancel() to wake a blocked producer and make it stop.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._item = None
        self._pending = False
        self._closed = False
        self._cancelled = False

    @property
    def cancelled(self):
        return self._cancelled

    def send(self, item):
        with self._cond:
            if self._cancelled:
                raise SearchCancelled()

            self._item = item
            self._pending = True
            self._cond.notify_all()

            while self._pending and not self._cancelled:
                self._cond.wait()

            if self._pending:
                # Cancelled before the consumer picked it up
                self._item = None
                self._pending = False
                raise SearchCancelled()

    def receive(self):
        with self._cond:
            while not self._pending and not self._closed and not self._cancelled:
                self._cond.wait()

            if not self._pending or self._cancelled:
                raise ChannelClosed()

            item = self._item
            self._item = None
            self._pending = False
            self._cond.notify_all()
            return item

    def close(self):
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def cancel(self):
        with self._cond:
            self._cancelled = True
            self._cond.notify_all()


def buildMatcher(query, useRegex=False):
    """
    Compile the predicate for a search query.

    Literal queries match the base name case-insensitively; regular
    expressions are searched in the whole forward-slash relative path.

    Raises:
        InvalidQueryError: If useRegex is set and query is not a valid pattern
    """
    if useRegex:
        try:
            pattern = re.compile(query)
        except re.error as e:
            raise InvalidQueryError(f'Invalid regular expression: {e}') from e

        return lambda relPath: pattern.search(relPath) is not None

    lowered = query.lower()
    return lambda relPath: lowered in posixpath.basename(relPath).lower()


class SearchResults:
    """
    Lazy, single-pass iterator over the matches of one search.

    The walk runs on its own thread and hands every match over through a
    HandOffChannel. Call close() (or leave the with-block) when no more
    results are wanted; the producer thread then stops at its next hand-off.
    """

    def __init__(self, root, query, matcher):
        self.root = root
        self.query = query
        self.error = None # Hard error that ended the walk early, if any
        self.count = 0

        self._matcher = matcher
        self._channel = HandOffChannel()
        self._thread = threading.Thread(target=self._produce, name=f'search:{query}', daemon=True)

    def start(self):
        self._thread.start()
        return self

    def _produce(self):
        try:
            walk(self.root, self._visit)
        except SearchCancelled:
            logger.debug(f'Search for {self.query!r} in {self.root} cancelled by consumer')
        except OSError as e:
            self.error = e
            logger.error(f'Error encountered searching {self.root}: {e}')
        except Exception as e:
            self.error = e
            logger.exception(e)
        finally:
            self._channel.close()

    def _visit(self, path, getStat, error):
        if self._channel.cancelled:
            raise SearchCancelled()

        if error is not None:
            if isinstance(error, PermissionError):
                return None
            raise error

        relPath = os.path.relpath(path, self.root)
        if relPath == os.curdir:
            return None
        relPath = relPath.replace(os.sep, '/')

        if not self._matcher(relPath):
            return None

        try:
            stat = getStat()
        except PermissionError:
            return None

        self._channel.send(Match(resolveEntry(path, stat, relPath), self.query))
        return None

    def __iter__(self):
        return self

    def __next__(self) -> Match:
        try:
            match = self._channel.receive()
        except ChannelClosed:
            raise StopIteration
        self.count += 1
        return match

    def close(self):
        self._channel.cancel()

    def join(self, timeout=None):
        """Wait for the producer thread, returns True once it has finished"""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def __enter__(self):
        return self

    def __exit__(self, excType, excValue, traceback):
        self.close()


def search(root, query, useRegex=False) -> SearchResults:
    """
    Start a recursive search below root.

    The query is validated before the filesystem is touched.

    Raises:
        InvalidQueryError: If useRegex is set and query does not compile
    """
    matcher = buildMatcher(query, useRegex)
    return SearchResults(root, query, matcher).start()
