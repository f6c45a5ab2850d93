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
import unittest

from bases.Entry import EntryKind, canonicalPath, resolveEntry, resolveLinkTarget
from tests.TreeTestBase import TreeTestBase


class EntryTest(TreeTestBase):

    def testRegularFile(self):
        path = self.makeFile('notes.txt', b'hello')
        entry = resolveEntry(path)

        self.assertEqual(entry.kind, EntryKind.FILE)
        self.assertEqual(entry.name, 'notes.txt')
        self.assertEqual(entry.size, 5)
        self.assertFalse(entry.goesToDir)
        self.assertEqual(entry.iconName, 'file')
        self.assertIsNone(entry.targetKind)

    def testDirectory(self):
        path = self.makeDir('docs')
        entry = resolveEntry(path)

        self.assertEqual(entry.kind, EntryKind.DIRECTORY)
        self.assertTrue(entry.goesToDir)
        self.assertEqual(entry.iconName, 'folder')

    def testSymlinkToDirectory(self):
        self.makeDir('docs')
        path = self.makeLink('docs', 'shortcut')
        entry = resolveEntry(path)

        self.assertEqual(entry.kind, EntryKind.SYMLINK)
        self.assertEqual(entry.targetKind, EntryKind.DIRECTORY)
        self.assertTrue(entry.goesToDir)
        self.assertEqual(entry.iconName, 'folder-shortcut')

    def testSymlinkToFile(self):
        self.makeFile('notes.txt', b'hello')
        path = self.makeLink('notes.txt', 'shortcut')
        entry = resolveEntry(path)

        self.assertEqual(entry.targetKind, EntryKind.FILE)
        self.assertFalse(entry.goesToDir)
        self.assertEqual(entry.iconName, 'file-shortcut')

    def testBrokenSymlink(self):
        path = self.makeLink('missing', 'broken')
        entry = resolveEntry(path)

        self.assertEqual(entry.kind, EntryKind.SYMLINK)
        self.assertIsNone(entry.targetKind)
        self.assertFalse(entry.goesToDir)
        self.assertEqual(entry.iconName, 'file-shortcut')

    def testResolveLinkTargetRelativeToLinkDirectory(self):
        self.makeDir('a/target')
        path = self.makeLink('target', 'a/link')

        self.assertEqual(resolveLinkTarget(path), os.path.join(self.path('a'), 'target'))

    def testResolveLinkTargetAbsolute(self):
        target = self.makeDir('target')
        path = self.makeLink(target, 'link')

        self.assertEqual(resolveLinkTarget(path), target)

    def testResolveLinkTargetOfNonLink(self):
        path = self.makeFile('plain.txt')
        self.assertIsNone(resolveLinkTarget(path))

    def testCanonicalPath(self):
        target = self.makeDir('target')
        path = self.makeLink(target, 'link')

        self.assertEqual(canonicalPath(path), canonicalPath(target))

    def testRelHrefEscapesSpecialCharacters(self):
        path = self.makeFile('dir/chapter #1.txt')
        entry = resolveEntry(path, relPath='dir/chapter #1.txt')

        self.assertEqual(entry.relHref, 'dir/chapter%20%231.txt')

    def testRelHrefFallsBackToName(self):
        path = self.makeFile('a#b')
        self.assertEqual(resolveEntry(path).relHref, 'a%23b')

    def testMissingPathRaises(self):
        with self.assertRaises(FileNotFoundError):
            resolveEntry(self.path('nothing'))


if __name__ == '__main__':
    unittest.main()
