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
import stat
import sys

from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, quote, unquote, urlparse

from bases.Archive import UnsupportedFormatError, archiveName, encodeArchive, parseArchiveFormat
from bases.Index import buildIndex, listDirectory
from bases.Kernel import DexEvent, getLogger
from bases.Render import BannerError, pickBanner, renderListing, renderSearchHead, renderSearchRow, renderSearchTail
from bases.Search import InvalidQueryError, search
from bases.Settings import SettingsGetter

CONNECTION_ERRORS = (ConnectionResetError, ConnectionAbortedError, ConnectionError, BrokenPipeError)

logger = getLogger(__name__)


class ResponseWriter:
    """
    File-like body writer for streamed responses.

    The status line and headers are only sent with the first body byte, so a
    failure before any output can still be answered with a clean error.
    """

    def __init__(self, handler, status, headers):
        self.handler = handler
        self.status = status
        self.headers = headers
        self.started = False
        self.written = 0

    def start(self):
        if self.started:
            return

        self.started = True
        self.handler.send_response(self.status)
        for key, value in self.headers:
            self.handler.send_header(key, value)
        self.handler.end_headers()

    def write(self, data):
        if not data:
            return 0

        self.start()
        if self.handler.command == 'HEAD':
            return len(data)

        self.handler.wfile.write(data)
        self.written += len(data)
        return len(data)

    def flush(self):
        if self.started:
            self.handler.wfile.flush()


class BrowserHandler(SimpleHTTPRequestHandler):

    protocol_version = 'HTTP/1.1'
    server_version = 'FileDex'

    def __init__(self, request, clientAddress, server, **kwargs):
        super().__init__(request, clientAddress, server, directory=server.root, **kwargs)

    def _parseByteRange(self, byteRange):
        try:
            if byteRange.strip() == '':
                return None

            reg = re.search(r'bytes=(\d+)-(\d+)?$', byteRange)
            if not reg:
                raise ValueError(f'Invalid byte range {byteRange}')

            # end might be None (protocol supported)
            start, end = [x and int(x) for x in reg.groups()]
            if end is not None and start > end:
                raise ValueError(f'Invalid byte range {byteRange}')
            return start, end

        except ValueError as e:
            logger.debug(e)
            return None

    def _redirect(self, location):
        self.send_response(HTTPStatus.TEMPORARY_REDIRECT)
        self.send_header('Location', location)
        self.send_header('Content-Length', '0')
        self.end_headers()

    def _sendBytes(self, payload: bytes, ctype: str = 'text/html; charset=utf-8'):
        self.send_response(HTTPStatus.OK)
        self.send_header('Content-Type', ctype)
        self.send_header('Content-Length', str(len(payload)))
        self.end_headers()
        if self.command != 'HEAD':
            self.wfile.write(payload)

    def _methodNotAllowed(self):
        self.send_error(HTTPStatus.METHOD_NOT_ALLOWED)

    do_POST = do_PUT = do_DELETE = do_PATCH = do_OPTIONS = _methodNotAllowed

    def do_GET(self):
        self._handleRequest()

    def do_HEAD(self):
        self._handleRequest()

    def _handleRequest(self):
        parsedURL = urlparse(self.path)
        args = parse_qs(parsedURL.query)

        dirParam = args.get('dir', [''])[0]
        if dirParam:
            self._redirect('/' + quote(dirParam.lstrip('/')))
            return

        requestPath = unquote(parsedURL.path)
        relPath = posixpath.normpath('/' + requestPath.lstrip('/'))
        fsPath = os.path.join(self.server.root, relPath.lstrip('/'))

        try:
            st = os.stat(fsPath)
        except OSError as e:
            logger.debug(f'Cannot stat {fsPath}: {e}')
            self.send_error(HTTPStatus.NOT_FOUND, 'File not found')
            return

        try:
            if stat.S_ISDIR(st.st_mode):
                self._handleDirectory(fsPath, relPath, parsedURL, args)
            else:
                self._handleFile(fsPath, st)
        except CONNECTION_ERRORS as e:
            logger.info(f'Connection to {self.client_address[0]} lost: {e}')
            self.close_connection = True

    # Files
    def _handleFile(self, fsPath, st):
        try:
            f = open(fsPath, 'rb')
        except OSError as e:
            logger.debug(f'Cannot open {fsPath}: {e}')
            self.send_error(HTTPStatus.NOT_FOUND, 'File not found')
            return

        with f:
            size = os.fstat(f.fileno()).st_size
            start, end = 0, size - 1

            if 'Range' in self.headers:
                byteRange = self._parseByteRange(self.headers['Range'])
                if byteRange is None or byteRange[0] >= size:
                    self.send_response(HTTPStatus.REQUESTED_RANGE_NOT_SATISFIABLE)
                    self.send_header('Content-Range', f'bytes */{size}')
                    self.send_header('Content-Length', '0')
                    self.end_headers()
                    return

                start, end = byteRange
                end = size - 1 if end is None else min(end, size - 1)
                self.send_response(HTTPStatus.PARTIAL_CONTENT)
                self.send_header('Content-Range', f'bytes {start}-{end}/{size}')
            else:
                self.send_response(HTTPStatus.OK)

            length = max(end - start + 1, 0)
            self.send_header('Content-Type', self.guess_type(fsPath))
            self.send_header('Content-Length', str(length))
            self.send_header('Last-Modified', self.date_time_string(st.st_mtime))
            self.send_header('Accept-Ranges', 'bytes')
            self.end_headers()

            if self.command == 'HEAD':
                return

            f.seek(start)
            remaining = length
            while remaining > 0:
                data = f.read(min(self.server.chunkSize, remaining))
                if not data:
                    break
                self.wfile.write(data)
                remaining -= len(data)

    # Directories
    def _handleDirectory(self, fsPath, relPath, parsedURL, args):
        if not parsedURL.path.endswith('/'):
            location = parsedURL.path + '/'
            if parsedURL.query:
                location += '?' + parsedURL.query
            self._redirect(location)
            return

        query = args.get('q', [''])[0]
        if query:
            useRegex = args.get('regexp', [''])[0] == 'on'
            self._handleSearch(fsPath, relPath, query, useRegex)
            return

        if self.command != 'GET':
            self._methodNotAllowed()
            return

        dl = args.get('dl', [''])[0]
        if dl:
            self._handleArchive(fsPath, relPath, dl)
            return

        indexPath = os.path.join(fsPath, 'index.html')
        if os.path.isfile(indexPath):
            self._handleFile(indexPath, os.stat(indexPath))
            return

        self._handleListing(fsPath, parsedURL.path)

    def _handleListing(self, fsPath, requestPath):
        try:
            listing = buildIndex(listDirectory(fsPath), fsPath, requestPath)
            payload = renderListing(listing, self.server.pickBanner())
        except Exception as e:
            logger.exception(e)
            self.send_error(HTTPStatus.INTERNAL_SERVER_ERROR, str(e))
            return

        self._sendBytes(payload)

    def _handleSearch(self, fsPath, relPath, query, useRegex):
        try:
            results = search(fsPath, query, useRegex)
        except InvalidQueryError as e:
            self.send_error(HTTPStatus.BAD_REQUEST, str(e))
            return

        writer = ResponseWriter(self, HTTPStatus.OK, [
            ('Content-Type', 'text/html; charset=utf-8'),
            ('Connection', 'close'),
        ])
        self.close_connection = True

        with results:
            try:
                writer.write(renderSearchHead(relPath, query, useRegex, self.server.pickBanner()))
                writer.flush()

                for match in results:
                    writer.write(renderSearchRow(match))
                    writer.flush()

                writer.write(renderSearchTail(results.count, results.error))
                writer.flush()
            except CONNECTION_ERRORS as e:
                logger.info(f'Search client {self.client_address[0]} went away: {e}')
                return
            except Exception as e:
                self._failStream(writer, e)
                return

        DexEvent.searchComplete.trigger(path=fsPath, query=query, count=results.count, error=results.error)

    def _handleArchive(self, fsPath, relPath, dl):
        try:
            fmt = parseArchiveFormat(dl)
        except UnsupportedFormatError as e:
            self.send_error(HTTPStatus.BAD_REQUEST, str(e))
            return

        name = archiveName(relPath, fmt)
        writer = ResponseWriter(self, HTTPStatus.OK, [
            ('Content-Type', fmt.contentType),
            ('Content-Disposition', f'attachment; filename={quote(name)}'),
            ('Connection', 'close'),
        ])
        self.close_connection = True

        try:
            count = encodeArchive(fsPath, fmt, writer, self.server.chunkSize)
            writer.flush()
        except CONNECTION_ERRORS as e:
            logger.info(f'Archive client {self.client_address[0]} went away: {e}')
            return
        except Exception as e:
            self._failStream(writer, e)
            return

        DexEvent.archiveComplete.trigger(path=fsPath, name=name, format=fmt.value, count=count, size=writer.written)

    def _failStream(self, writer, e):
        logger.exception(e)
        if not writer.started:
            self.send_error(HTTPStatus.INTERNAL_SERVER_ERROR, str(e))
        # Otherwise the response is truncated; the client sees the connection close

    # Override utility methods
    def log_message(self, format, *args):
        logger.info(f'{self.address_string()} - {format % args}')

    def handle_one_request(self) -> None:
        try:
            super().handle_one_request()
        except CONNECTION_ERRORS as e:
            logger.info(f'Connection to {self.client_address[0]} lost: {e}')
            self.close_connection = True


class Server(ThreadingHTTPServer):

    request_queue_size = 16
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, root, serverAddress, requestHandlerClass=None):
        settingsGetter = SettingsGetter.getInstance()

        self.root = os.path.abspath(root)
        self.bannersPath = os.path.join(self.root, settingsGetter.bannersFile)
        self.chunkSize = settingsGetter.copyChunkSize

        if requestHandlerClass is None:
            requestHandlerClass = BrowserHandler

        super().__init__(serverAddress, requestHandlerClass)

    def pickBanner(self):
        try:
            return pickBanner(self.bannersPath)
        except BannerError as e:
            logger.debug(f'getting random banner: {e}')
            return None

    def handle_error(self, request, client_address):
        logger.exception(sys.exc_info()[1])

    def start(self):
        self.serve_forever()


def createServer(host, port, directory, handlerClass=None):
    # Factory function to create a Server instance serving directory
    return Server(directory, (host, port), handlerClass)
