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
HTML pages for listings and search results.

Templates under static/ are plain HTML with '{{ name }}' placeholders. The
search page is cut at its '{{ rows }}' placeholder so the head can be sent
before the first match is found and the tail after the last one.
"""

import datetime
import html
import random
import re

from dataclasses import dataclass

from bases.Kernel import getLogger
from bases.Settings import SettingsGetter
from bases.Utils import formatSize, _unicode

logger = getLogger(__name__)

ROWS_PLACEHOLDER = '{{ rows }}'
PLACEHOLDER_PATTERN = re.compile(r'\{\{ (\w+) \}\}')


class BannerError(Exception):
    pass


@dataclass
class Banner:
    imageURL: str
    link: str


def loadTemplate(name) -> str:
    path = SettingsGetter.getInstance().getTemplatePath(name)
    with open(path, 'rb') as f:
        return f.read().decode('utf-8')


def fillTemplate(content, **values) -> str:
    """Replace each '{{ key }}' with its value in one pass. Values are inserted as-is."""
    return PLACEHOLDER_PATTERN.sub(lambda m: values.get(m.group(1), m.group(0)), content)


def pickBanner(path) -> Banner:
    """
    Pick a random banner from a file holding one 'imageURL link' per line.

    Raises:
        BannerError: If the file is missing, empty or the chosen line is malformed
    """
    try:
        with open(path, 'rb') as f:
            content = f.read()
    except OSError as e:
        raise BannerError(f'reading file: {e}') from e

    if not content:
        raise BannerError('empty file')

    lines = [line for line in _unicode(content, throw=False).split('\n') if line]
    if not lines:
        raise BannerError('no banners specified')

    parts = random.choice(lines).split(' ', 1)
    if len(parts) != 2:
        raise BannerError('invalid file')

    return Banner(imageURL=parts[0], link=parts[1].strip())


def crumbs(dirPath):
    """
    Breadcrumb (link, text) pairs for a request path.

    Each link climbs with '../' from the directory page up to its segment;
    the first pair is the served root with an empty text.
    """
    segments = dirPath.split('/')
    if segments[-1] == '':
        segments = segments[:-1]

    count = len(segments)
    return [('../' * (count - i - 1), segment) for i, segment in enumerate(segments)]


def renderCrumbs(dirPath) -> str:
    links = []
    for link, text in crumbs(dirPath):
        links.append(f'<a href="./{html.escape(link)}">{html.escape(text) or "/"}</a>')
    return ' / '.join(links)


def renderBanner(banner) -> str:
    if banner is None:
        return ''
    return (
        f'<div class="banner"><a href="{html.escape(banner.link)}">'
        f'<img src="{html.escape(banner.imageURL)}" alt=""></a></div>'
    )


def formatMTime(mtime) -> str:
    return datetime.datetime.fromtimestamp(mtime).strftime('%Y-%m-%d %H:%M')


def renderRow(entry) -> str:
    if entry.goesToDir:
        href = entry.relHref + '/'
        text = (entry.relPath or entry.name) + '/'
        size = '-'
    else:
        href = entry.relHref
        text = entry.relPath or entry.name
        size = formatSize(entry.size)

    return (
        '<tr>'
        f'<td><span class="icon icon-{entry.iconName}"></span><a href="{html.escape(href)}">{html.escape(text)}</a></td>'
        f'<td class="size">{html.escape(size)}</td>'
        f'<td class="mtime">{formatMTime(entry.mtime)}</td>'
        '</tr>\n'
    )


def renderListing(listing, banner=None) -> bytes:
    parent = '' if listing.isRoot else (
        '<tr><td><span class="icon icon-folder"></span><a href="../">../</a></td><td></td><td></td></tr>'
    )

    content = fillTemplate(
        loadTemplate('dir.html'),
        title=html.escape(listing.path),
        name=html.escape(listing.name or '/'),
        banner=renderBanner(banner),
        crumbs=renderCrumbs(listing.path),
        parent=parent,
        rows=''.join(renderRow(entry) for entry in listing.entries),
        readme=listing.readme or '',
    )
    return content.encode('utf-8')


def _splitSearchTemplate():
    content = loadTemplate('search.html')
    head, _, tail = content.partition(ROWS_PLACEHOLDER)
    return head, tail


def renderSearchHead(dirPath, query, useRegex=False, banner=None) -> bytes:
    head, _ = _splitSearchTemplate()
    return fillTemplate(
        head,
        title=html.escape(f'{query} - {dirPath}'),
        banner=renderBanner(banner),
        crumbs=renderCrumbs(dirPath),
        query=html.escape(query),
        regexpChecked='checked' if useRegex else '',
    ).encode('utf-8')


def renderSearchRow(match) -> bytes:
    return renderRow(match.entry).encode('utf-8')


def renderSearchTail(count, error=None) -> bytes:
    _, tail = _splitSearchTemplate()

    if error is not None:
        summary = f'Search stopped early after {count} results.'
    elif count == 0:
        summary = 'No results.'
    else:
        summary = f'{count} results.'

    return fillTemplate(tail, summary=html.escape(summary)).encode('utf-8')
