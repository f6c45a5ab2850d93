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

from unittest.mock import patch

from bases.Index import buildIndex, listDirectory
from bases.Render import (
    Banner, BannerError, crumbs, fillTemplate, pickBanner, renderListing, renderSearchHead, renderSearchRow,
    renderSearchTail
)
from bases.Search import search
from tests.TreeTestBase import TreeTestBase


class CrumbsTest(unittest.TestCase):

    def testNestedPath(self):
        self.assertEqual(crumbs('/a/b/'), [('../../', ''), ('../', 'a'), ('', 'b')])
        self.assertEqual(crumbs('/a/b'), crumbs('/a/b/'))

    def testRoot(self):
        self.assertEqual(crumbs('/'), [('', '')])

    def testFillTemplate(self):
        self.assertEqual(fillTemplate('<b>{{ x }}</b>{{ y }}', x='1', y='<i>'), '<b>1</b><i>')

    def testFillTemplateDoesNotRefillValues(self):
        self.assertEqual(fillTemplate('{{ x }}|{{ y }}', x='{{ y }}', y='Y'), '{{ y }}|Y')
        self.assertEqual(fillTemplate('{{ unknown }}', x='1'), '{{ unknown }}')


class BannerTest(TreeTestBase):

    def testPicksOneLine(self):
        path = self.makeFile('banners', 'https://img/1.png https://one\n\nhttps://img/2.png https://two\n')

        for _ in range(10):
            banner = pickBanner(path)
            self.assertIn((banner.imageURL, banner.link), [
                ('https://img/1.png', 'https://one'),
                ('https://img/2.png', 'https://two'),
            ])

    def testRandomChoice(self):
        path = self.makeFile('banners', 'a.png x\nb.png y\n')

        with patch('bases.Render.random.choice', side_effect=lambda lines: lines[-1]):
            self.assertEqual(pickBanner(path), Banner('b.png', 'y'))

    def testErrors(self):
        cases = {
            'missing': None,
            'empty': '',
            'blank': '\n\n',
            'invalid': 'no-space-here\n',
        }

        for name, content in cases.items():
            with self.subTest(name=name):
                path = self.path(name) if content is None else self.makeFile(name, content)
                with self.assertRaises(BannerError):
                    pickBanner(path)


class RenderTest(TreeTestBase):

    def testListingPage(self):
        self.makeDir('photos')
        self.makeFile('notes <draft>.txt', b'x' * 2048)
        self.makeFile('README.md', '# Hello')

        listing = buildIndex(listDirectory(self.root), self.root, '/docs/')
        page = renderListing(listing, Banner('https://img/b.png', 'https://example.com')).decode('utf-8')

        self.assertNotIn('{{', page)
        self.assertIn('<a href="photos/">photos/</a>', page)
        self.assertIn('notes &lt;draft&gt;.txt', page)
        self.assertIn('href="notes%20%3Cdraft%3E.txt"', page)
        self.assertIn('icon-folder', page)
        self.assertIn('2K', page)
        self.assertIn('<h1>Hello</h1>', page)
        self.assertIn('<img src="https://img/b.png"', page)
        self.assertIn('<a href="../">../</a>', page)

    def testPlaceholderInFileName(self):
        self.makeFile('README.md', '# Only-Once')
        self.makeFile('{{ readme }}', b'x')

        listing = buildIndex(listDirectory(self.root), self.root, '/inj/')
        page = renderListing(listing).decode('utf-8')

        self.assertEqual(page.count('<h1>Only-Once</h1>'), 1)
        self.assertIn('>{{ readme }}</a>', page)

    def testRootListingHasNoParentLink(self):
        self.makeFile('a.txt')

        listing = buildIndex(listDirectory(self.root), self.root, '/')
        page = renderListing(listing).decode('utf-8')

        self.assertNotIn('<a href="../">../</a>', page)
        self.assertNotIn('class="banner"', page)
        self.assertIn('a.txt', page)

    def testSearchPageStreamsInParts(self):
        self.makeFile('docs/report.txt', b'r')
        self.makeDir('reports')

        head = renderSearchHead('/files', '<report>', useRegex=True).decode('utf-8')
        self.assertNotIn('{{ rows }}', head)
        self.assertIn('&lt;report&gt;', head)
        self.assertIn('checked', head)

        with search(self.root, 'report') as results:
            rows = b''.join(renderSearchRow(match) for match in results).decode('utf-8')
        self.assertIn('<a href="docs/report.txt">docs/report.txt</a>', rows)
        self.assertIn('<a href="reports/">reports/</a>', rows)

        tail = renderSearchTail(results.count).decode('utf-8')
        self.assertIn('2 results.', tail)
        self.assertIn('</html>', tail)

    def testSearchTailSummaries(self):
        self.assertIn('No results.', renderSearchTail(0).decode('utf-8'))
        self.assertIn('stopped early after 3', renderSearchTail(3, OSError('boom')).decode('utf-8'))


if __name__ == '__main__':
    unittest.main()
