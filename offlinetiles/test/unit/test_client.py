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

import json
import logging
from io import BytesIO

import pytest

from offlinetiles.cache.base import FetchFailed
from offlinetiles.cache.file import FileCache
from offlinetiles.cache.tile import TileCache
from offlinetiles.client.http import HTTPClient, HTTPClientError, auth_data_from_url
from offlinetiles.client.log import mask_token
from offlinetiles.client.tile import TileServiceClient, verify_image
from offlinetiles.grid import TileKey
from offlinetiles.grid.tile_matrix import TileMatrixError
from offlinetiles.test.helper import assert_re, assert_files_in_dir
from offlinetiles.test.http import mock_httpd
from offlinetiles.test.unit.test_tile_matrix import TILE_INFO


TESTSERVER_ADDRESS = ('127.0.0.1', 56413)
TESTSERVER_URL = 'http://%s:%s' % TESTSERVER_ADDRESS
SERVICE_URL = TESTSERVER_URL + '/arcgis/rest/services/World/MapServer'


def create_png():
    from PIL import Image
    buf = BytesIO()
    Image.new('RGB', (4, 4), (255, 0, 0)).save(buf, 'png')
    return buf.getvalue()


class TestHTTPClient(object):
    def setup_method(self):
        self.client = HTTPClient()

    def test_internal_error_response(self):
        try:
            with mock_httpd(TESTSERVER_ADDRESS, [({'path': '/'},
                                                  {'status': '500', 'body': b''})]):
                self.client.open(TESTSERVER_URL + '/')
        except HTTPClientError as e:
            assert_re(e.args[0], r'HTTP Error ".*": 500')
            assert e.response_code == 500
        else:
            assert False, 'expected HTTPClientError'

    def test_no_content_response(self):
        with mock_httpd(TESTSERVER_ADDRESS, [({'path': '/'},
                                              {'status': '204', 'body': b''})]):
            with pytest.raises(HTTPClientError) as excinfo:
                self.client.open(TESTSERVER_URL + '/')
        assert excinfo.value.response_code == 204

    def test_invalid_url(self):
        try:
            self.client.open('this is not a url')
        except HTTPClientError as e:
            assert_re(e.args[0], r'URL not correct "this is not.*": unknown url type')
        else:
            assert False, 'expected HTTPClientError'

    def test_no_connect(self):
        try:
            self.client.open('http://localhost:53871')
        except HTTPClientError as e:
            assert_re(e.args[0], r'No response .* "http://localhost.*": .*')
        else:
            assert False, 'expected HTTPClientError'

    def test_internal_error_hide_error_details(self):
        try:
            with mock_httpd(TESTSERVER_ADDRESS, [({'path': '/'},
                                                  {'status': '500', 'body': b''})]):
                HTTPClient(hide_error_details=True).open(TESTSERVER_URL + '/')
        except HTTPClientError as e:
            assert_re(e.args[0], r'HTTP Error \(see logs for URL and reason\).')
            assert_re(e.full_msg, r'HTTP Error ".*": 500')
        else:
            assert False, 'expected HTTPClientError'

    def test_token_masked_in_error(self):
        try:
            with mock_httpd(TESTSERVER_ADDRESS, [({'path': '/tile/1/0/0?token=secret'},
                                                  {'status': '403', 'body': b''})]):
                self.client.open(TESTSERVER_URL + '/tile/1/0/0?token=secret')
        except HTTPClientError as e:
            assert 'secret' not in e.args[0]
            assert 'token=***' in e.args[0]
        else:
            assert False, 'expected HTTPClientError'

    def test_headers_and_user_agent(self):
        expected_req = ({'path': '/', 'headers': {'X-Foo': 'bar'}},
                        {'status': '200', 'body': b'ok'})
        with mock_httpd(TESTSERVER_ADDRESS, [expected_req]):
            resp = HTTPClient(headers={'X-Foo': 'bar'}).open(TESTSERVER_URL + '/')
            assert resp.read() == b'ok'

    def test_fetch(self):
        with mock_httpd(TESTSERVER_ADDRESS, [({'path': '/tile/0/0/0'},
                                              {'status': '200', 'body': b'tile',
                                               'headers': {'content-type': 'image/png'}})]):
            resp = self.client.fetch(TESTSERVER_URL + '/tile/0/0/0')
        assert resp.code == 200
        assert resp.body == b'tile'
        assert resp.headers['Content-Type'] == 'image/png'

    def test_fetch_truncated_body(self):
        with mock_httpd(TESTSERVER_ADDRESS, [({'path': '/tile/0/0/0'},
                                              {'status': '200', 'body': b'til',
                                               'content_length': 1000})]):
            with pytest.raises(HTTPClientError) as excinfo:
                self.client.fetch(TESTSERVER_URL + '/tile/0/0/0')
        assert 'Incomplete response from URL' in excinfo.value.args[0]

    def test_request_log_masks_token(self, caplog):
        caplog.set_level(logging.INFO, logger='offlinetiles.source.request')
        with mock_httpd(TESTSERVER_ADDRESS, [({'path': '/tile/1/0/0?token=secret'},
                                              {'status': '200', 'body': b'foo'})]):
            self.client.open(TESTSERVER_URL + '/tile/1/0/0?token=secret')
        messages = [r.getMessage() for r in caplog.records
                    if r.name == 'offlinetiles.source.request']
        assert len(messages) == 1
        assert_re(messages[0], r'GET http://.*/tile/1/0/0\?token=\*\*\* 200')
        assert 'secret' not in messages[0]


def test_mask_token_without_token():
    assert mask_token('http://localhost/tile/1/2/3') == 'http://localhost/tile/1/2/3'
    assert mask_token('http://localhost/?tokens=1') == 'http://localhost/?tokens=1'


def test_auth_data_from_url_with_port():
    assert auth_data_from_url('http://user:pw@localhost:8080/MapServer') == \
        ('http://localhost:8080/MapServer', ('user', 'pw'))


class TestTileServiceClient(object):
    def test_get_tile(self):
        client = TileServiceClient(SERVICE_URL)
        with mock_httpd(TESTSERVER_ADDRESS, [
                ({'path': '/arcgis/rest/services/World/MapServer/tile/3/2/5'},
                 {'status': '200', 'body': b'tiledata', 'headers': {'content-type': 'image/jpeg'}})]):
            assert client.get_tile(TileKey(3, 2, 5)) == b'tiledata'

    def test_get_tile_with_token(self):
        client = TileServiceClient(SERVICE_URL + '/', token='secret')
        with mock_httpd(TESTSERVER_ADDRESS, [
                ({'path': '/arcgis/rest/services/World/MapServer/tile/3/2/5?token=secret'},
                 {'status': '200', 'body': b'tiledata', 'headers': {'content-type': 'image/png'}})]):
            assert client.get_tile(TileKey(3, 2, 5)) == b'tiledata'

    def test_get_tile_octet_stream(self):
        client = TileServiceClient(SERVICE_URL)
        with mock_httpd(TESTSERVER_ADDRESS, [
                ({'path': '/arcgis/rest/services/World/MapServer/tile/0/0/0'},
                 {'status': '200', 'body': b'lerc', 'headers': {'content-type': 'application/octet-stream'}})]):
            assert client.get_tile(TileKey(0, 0, 0)) == b'lerc'

    def test_get_tile_not_an_image(self):
        client = TileServiceClient(SERVICE_URL)
        with mock_httpd(TESTSERVER_ADDRESS, [
                ({'path': '/arcgis/rest/services/World/MapServer/tile/3/2/5'},
                 {'status': '200', 'body': b'{"error": {"code": 404}}',
                  'headers': {'content-type': 'application/json'}})]):
            with pytest.raises(HTTPClientError) as excinfo:
                client.get_tile(TileKey(3, 2, 5))
        assert 'not an image' in excinfo.value.args[0]

    def test_get_tile_empty(self):
        client = TileServiceClient(SERVICE_URL)
        with mock_httpd(TESTSERVER_ADDRESS, [
                ({'path': '/arcgis/rest/services/World/MapServer/tile/3/2/5'},
                 {'status': '200', 'body': b'', 'headers': {'content-type': 'image/png'}})]):
            with pytest.raises(HTTPClientError):
                client.get_tile(TileKey(3, 2, 5))

    def test_get_tile_verify_images(self):
        client = TileServiceClient(SERVICE_URL, verify_images=True)
        png = create_png()
        with mock_httpd(TESTSERVER_ADDRESS, [
                ({'path': '/arcgis/rest/services/World/MapServer/tile/1/0/0'},
                 {'status': '200', 'body': png, 'headers': {'content-type': 'image/png'}}),
                ({'path': '/arcgis/rest/services/World/MapServer/tile/1/0/1'},
                 {'status': '200', 'body': b'broken', 'headers': {'content-type': 'image/png'}})]):
            assert client.get_tile(TileKey(1, 0, 0)) == png
            with pytest.raises(HTTPClientError) as excinfo:
                client.get_tile(TileKey(1, 0, 1))
        assert_re(excinfo.value.args[0], r'invalid image data for tile 1/0/1')

    def test_get_service_info(self):
        client = TileServiceClient(SERVICE_URL, token='abc')
        info = {'currentVersion': 10.8, 'tileInfo': TILE_INFO}
        with mock_httpd(TESTSERVER_ADDRESS, [
                ({'path': '/arcgis/rest/services/World/MapServer?f=json&token=abc'},
                 {'status': '200', 'body': json.dumps(info).encode('utf-8'),
                  'headers': {'content-type': 'application/json'}})]):
            assert client.get_service_info() == info

    def test_get_service_info_error_document(self):
        client = TileServiceClient(SERVICE_URL, token='expired')
        error = {'error': {'code': 498, 'message': 'Invalid Token', 'details': []}}
        with mock_httpd(TESTSERVER_ADDRESS, [
                ({'path': '/arcgis/rest/services/World/MapServer?f=json&token=expired'},
                 {'status': '200', 'body': json.dumps(error).encode('utf-8')})]):
            with pytest.raises(HTTPClientError) as excinfo:
                client.get_service_info()
        assert excinfo.value.response_code == 498
        assert 'Invalid Token' in excinfo.value.args[0]

    def test_get_service_info_invalid_json(self):
        client = TileServiceClient(SERVICE_URL)
        with mock_httpd(TESTSERVER_ADDRESS, [
                ({'path': '/arcgis/rest/services/World/MapServer?f=json'},
                 {'status': '200', 'body': b'<html></html>'})]):
            with pytest.raises(HTTPClientError):
                client.get_service_info()

    def test_get_tile_matrix(self):
        client = TileServiceClient(SERVICE_URL)
        info = {
            'tileInfo': TILE_INFO,
            'fullExtent': {'xmin': -100.0, 'ymin': -50.0, 'xmax': 100.0, 'ymax': 50.0},
        }
        with mock_httpd(TESTSERVER_ADDRESS, [
                ({'path': '/arcgis/rest/services/World/MapServer?f=json'},
                 {'status': '200', 'body': json.dumps(info).encode('utf-8')})]):
            tile_matrix, full_extent = client.get_tile_matrix()
        assert tile_matrix.tile_size == (256, 256)
        assert full_extent == (-100.0, -50.0, 100.0, 50.0)

    def test_get_tile_matrix_not_tiled(self):
        client = TileServiceClient(SERVICE_URL)
        with mock_httpd(TESTSERVER_ADDRESS, [
                ({'path': '/arcgis/rest/services/World/MapServer?f=json'},
                 {'status': '200', 'body': b'{"singleFusedMapCache": false}'})]):
            with pytest.raises(TileMatrixError):
                client.get_tile_matrix()


def test_verify_image():
    verify_image(create_png())
    with pytest.raises(HTTPClientError):
        verify_image(b'GIF89a...')


class TestTileCacheWithService(object):
    def test_failed_request_not_stored(self, tmpdir):
        client = TileServiceClient(SERVICE_URL)
        tile_cache = TileCache(FileCache(tmpdir.strpath, 'jpeg'), client)
        with mock_httpd(TESTSERVER_ADDRESS, [
                ({'path': '/arcgis/rest/services/World/MapServer/tile/2/1/1'},
                 {'status': '500', 'body': b''})]):
            with pytest.raises(FetchFailed) as excinfo:
                tile_cache.fetch_tile(TileKey(2, 1, 1))
        assert excinfo.value.cause.response_code == 500
        assert_files_in_dir(tmpdir.strpath, [])

    def test_truncated_response(self, tmpdir):
        client = TileServiceClient(SERVICE_URL)
        tile_cache = TileCache(FileCache(tmpdir.strpath, 'jpeg'), client)
        with mock_httpd(TESTSERVER_ADDRESS, [
                ({'path': '/arcgis/rest/services/World/MapServer/tile/2/1/1'},
                 {'status': '200', 'body': b'jpe', 'content_length': 1000,
                  'headers': {'content-type': 'image/jpeg'}})]):
            with pytest.raises(FetchFailed) as excinfo:
                tile_cache.fetch_tile(TileKey(2, 1, 1))
        assert isinstance(excinfo.value.cause, HTTPClientError)
        assert_files_in_dir(tmpdir.strpath, [])

    def test_fetch_once(self, tmpdir):
        client = TileServiceClient(SERVICE_URL)
        tile_cache = TileCache(FileCache(tmpdir.strpath, 'jpeg'), client)
        with mock_httpd(TESTSERVER_ADDRESS, [
                ({'path': '/arcgis/rest/services/World/MapServer/tile/2/1/1'},
                 {'status': '200', 'body': b'jpegdata', 'headers': {'content-type': 'image/jpeg'}})]):
            assert tile_cache.fetch_tile(TileKey(2, 1, 1)).data == b'jpegdata'
        # served from the file cache, the mock server is gone
        assert tile_cache.fetch_tile(TileKey(2, 1, 1)).data == b'jpegdata'
        assert tmpdir.join('L02', '1_1.jpeg').read_binary() == b'jpegdata'
