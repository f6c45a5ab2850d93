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
import signal
import subprocess
import sys
import time
import unittest

import requests

from tests.TreeTestBase import TreeTestBase, getAvailablePort

CORE_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'Core.py')


class CoreTest(TreeTestBase):
    """Runs Core.py as the user would and talks to it over HTTP"""

    def setUp(self):
        super().setUp()
        self.coreProcess = None
        self.procLogPath = os.path.join(self.tempDir, 'filedex_proc.log')
        self._procLogFile = None

    def tearDown(self):
        self._terminateProcess()
        if self._procLogFile:
            self._procLogFile.close()
            self._procLogFile = None
        super().tearDown()

    def _startCore(self, *extraArgs):
        command = [sys.executable, CORE_PATH, *extraArgs]
        print(f"[Test] Running command: {' '.join(command)}")

        self._procLogFile = open(self.procLogPath, 'w', encoding='utf-8')
        self.coreProcess = subprocess.Popen(
            command, stdout=self._procLogFile, stderr=subprocess.STDOUT, cwd=self.tempDir
        )

    def _readOutput(self):
        if self._procLogFile:
            self._procLogFile.flush()
        with open(self.procLogPath, 'r', encoding='utf-8', errors='replace') as f:
            return f.read()

    def _waitForServer(self, baseURL, timeout=20):
        deadline = time.time() + timeout
        while time.time() < deadline:
            if self.coreProcess.poll() is not None:
                self.fail(f'Core exited early: {self._readOutput()}')
            try:
                return requests.get(baseURL, timeout=2)
            except requests.ConnectionError:
                time.sleep(0.2)
        self.fail(f'Server did not start: {self._readOutput()}')

    def _terminateProcess(self):
        """Stop the process with Ctrl+C first, then harder"""
        if not self.coreProcess or self.coreProcess.poll() is not None:
            return

        print("[Test] Process is still running, sending Ctrl+C signal")
        if sys.platform == 'win32':
            self.coreProcess.terminate()
        else:
            os.kill(self.coreProcess.pid, signal.SIGINT)

        try:
            self.coreProcess.wait(timeout=5)
        except subprocess.TimeoutExpired:
            print("[Test] Process didn't terminate, killing it")
            self.coreProcess.kill()
            self.coreProcess.wait()

    def testVersion(self):
        result = subprocess.run(
            [sys.executable, CORE_PATH, '--version'], capture_output=True, text=True, timeout=30, cwd=self.tempDir
        )

        print(f'[Test] Version output: {result.stdout}')
        self.assertEqual(result.returncode, 0)
        self.assertIn('FileDex v', result.stdout)

    def testServeDirectory(self):
        self.makeFile('hello.txt', b'hello from core')
        self.makeFile('sub/inner.txt', b'inner')

        port = getAvailablePort()
        baseURL = f'http://127.0.0.1:{port}'
        self._startCore('-a', f'127.0.0.1:{port}', '-d', self.root)

        response = self._waitForServer(baseURL + '/')
        self.assertEqual(response.status_code, 200)
        self.assertIn('hello.txt', response.text)

        response = requests.get(baseURL + '/hello.txt', timeout=10)
        self.assertEqual(response.content, b'hello from core')

        response = requests.get(baseURL + '/?q=inner', timeout=10)
        self.assertIn('sub/inner.txt', response.text)

        self._terminateProcess()
        output = self._readOutput()
        print(f'[Test] Process output: {output}')
        self.assertIn(f'Serving {self.root}', output)
        self.assertIn('Search "inner"', output)
        self.assertEqual(self.coreProcess.returncode, 0)

    def testEnvFileIsLoaded(self):
        port = getAvailablePort()
        baseURL = f'http://127.0.0.1:{port}'
        self.makeFile('public.txt', b'public')

        with open(os.path.join(self.tempDir, '.env'), 'w', encoding='utf-8') as f:
            f.write('FILEDEX_BANNERS=promo.txt\n')
        self.makeFile('promo.txt', 'https://img.example/p.png https://example.com\n')

        self._startCore('-a', f'127.0.0.1:{port}', '-d', self.root)
        response = self._waitForServer(baseURL + '/')

        self.assertIn('https://img.example/p.png', response.text)

    def testInvalidDirectory(self):
        result = subprocess.run(
            [sys.executable, CORE_PATH, '-d', os.path.join(self.tempDir, 'missing')],
            capture_output=True, text=True, timeout=30, cwd=self.tempDir
        )

        self.assertNotEqual(result.returncode, 0)
        self.assertIn('Directory not found', result.stderr)


if __name__ == '__main__':
    unittest.main()
