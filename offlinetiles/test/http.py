# This file is part of the OfflineTiles project.
# Copyright (C) 2021 OfflineTiles contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Mock HTTP server for tests with expected requests and canned responses.

Each expected request is a tuple of a request dict (``path`` with query,
optional ``headers``) and a response dict (``status``, ``headers``,
``body`` and an optional ``duration`` in seconds before the response
is sent).
"""
import errno
import sys
import threading
import time
from contextlib import contextmanager
from http.server import HTTPServer, BaseHTTPRequestHandler
from urllib.parse import parse_qsl


class RequestsMismatchError(AssertionError):
    def __init__(self, assertions):
        AssertionError.__init__(self, assertions)
        self.assertions = assertions

    def __str__(self):
        lines = ['requests mismatch:']
        for assertion in self.assertions:
            lines.append(' -  ' + str(assertion).replace('\n', '\n    '))
        return '\n'.join(lines)


class _MockHTTPServer(HTTPServer):
    allow_reuse_address = True

    def handle_error(self, request, client_address):
        # clients in timeout tests close the connection early
        ex = sys.exc_info()[1]
        if isinstance(ex, OSError) and ex.errno in (errno.EPIPE, errno.ECONNRESET):
            return
        HTTPServer.handle_error(self, request, client_address)


class MockServerThread(threading.Thread):
    """
    Serves `requests_responses` until all expected requests were made
    or until `shutdown` is set.
    """
    def __init__(self, address, requests_responses, unordered=False):
        threading.Thread.__init__(self)
        self.daemon = True
        self.requests_responses = requests_responses
        self.unordered = unordered
        self.shutdown = False
        self.success = False
        self.assertions = []
        self.httpd = _MockHTTPServer(address, mock_http_handler(self))
        self.httpd.timeout = 1.0

    def next_response(self, path):
        if not self.requests_responses:
            return None, None
        if not self.unordered:
            return self.requests_responses.pop(0)
        for req_resp in self.requests_responses:
            if query_eq(req_resp[0]['path'], path):
                self.requests_responses.remove(req_resp)
                return req_resp
        return None, None

    def run(self):
        try:
            while self.requests_responses and not self.shutdown:
                self.httpd.handle_request()
        finally:
            # close socket, the next test binds to the same address
            self.httpd.server_close()
        if self.requests_responses:
            self.assertions.append('missing requests: ' + ','.join(
                req['path'] for req, _resp in self.requests_responses))
        self.success = not self.assertions


def mock_http_handler(server_thread):
    class MockHTTPHandler(BaseHTTPRequestHandler):
        def do_GET(self):
            req, resp = server_thread.next_response(self.path)
            if req is None:
                server_thread.assertions.append('got unexpected request: %s' % self.path)
                self.send_response(500)
                self.end_headers()
                return

            for key, value in (req.get('headers') or {}).items():
                if self.headers.get(key) != value:
                    server_thread.assertions.append('header mismatch, expected %s: %s\n  got:\n%s' % (
                        key, value, self.headers))
            if not query_eq(req['path'], self.path):
                server_thread.assertions.append('requests differ, expected:\n%s\n  got:\n%s' % (
                    req['path'], self.path))
                server_thread.shutdown = True

            if 'duration' in resp:
                time.sleep(float(resp['duration']))
            body = resp.get('body', b'')
            self.send_response(int(resp.get('status', '200')))
            for key, value in (resp.get('headers') or {}).items():
                self.send_header(key, value)
            self.send_header('Content-Length', str(resp.get('content_length', len(body))))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format, *args):
            pass

    return MockHTTPHandler


def query_eq(expected, actual):
    """
    Compare the path and the query parameters. Parameter names are
    case-insensitive, the order is ignored.

    >>> query_eq('/MapServer?f=json&token=abc', '/MapServer?TOKEN=abc&f=json')
    True
    >>> query_eq('/tile/1/2/3', '/tile/1/2/3')
    True
    >>> query_eq('/tile/1/2/3', '/tile/1/2/0')
    False
    >>> query_eq('/tile/1/2/3?token=a', '/tile/1/2/3?token=b')
    False
    """
    expected_path, _, expected_query = expected.partition('?')
    actual_path, _, actual_query = actual.partition('?')
    if expected_path != actual_path:
        return False
    return query_to_dict(expected_query) == query_to_dict(actual_query)


def query_to_dict(query):
    """
    >>> sorted(query_to_dict('f=json&Token=abc').items())
    [('f', 'json'), ('token', 'abc')]
    """
    return dict((key.lower(), value) for key, value in parse_qsl(query))


@contextmanager
def mock_httpd(address, requests_responses, unordered=False):
    """
    Run a mock HTTP server on `address` while the context is active.

    :raises RequestsMismatchError: if the requests differ from
        `requests_responses`
    """
    t = MockServerThread(address, requests_responses, unordered=unordered)
    t.start()
    try:
        yield
    except Exception:
        t.shutdown = True
        t.join(30)
        if not t.success:
            print(str(RequestsMismatchError(t.assertions)))
        raise
    finally:
        t.shutdown = True
        t.join(30)
    if not t.success:
        raise RequestsMismatchError(t.assertions)
