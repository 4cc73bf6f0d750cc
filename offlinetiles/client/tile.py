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
from io import BytesIO
from urllib.parse import urlencode

from offlinetiles.client.http import HTTPClient, HTTPClientError
from offlinetiles.grid.tile_matrix import tile_matrix_from_service_info

import logging
log = logging.getLogger('offlinetiles.client.tile')

ACCEPTED_CONTENT_TYPES = ('image/', 'application/octet-stream')


class TileServiceClient(object):
    """
    Client for an ArcGIS tiled map service.

    :param url: the URL of the map service, e.g.
        ``https://host/arcgis/rest/services/World_Imagery/MapServer``
    :param token: optional access token, appended to every request
    :param verify_images: decode each tile with Pillow and reject
        undecodable data
    """
    def __init__(self, url, token=None, http_client=None, verify_images=False):
        self.url = url.rstrip('/')
        self.token = token
        self.http_client = http_client or HTTPClient(self.url)
        self.verify_images = verify_images

    def _query(self, **params):
        if self.token:
            params['token'] = self.token
        if not params:
            return ''
        return '?' + urlencode(params)

    def tile_url(self, key):
        """
        >>> from offlinetiles.grid import TileKey
        >>> TileServiceClient('http://localhost/MapServer/').tile_url(TileKey(3, 2, 5))
        'http://localhost/MapServer/tile/3/2/5'
        >>> TileServiceClient('http://localhost/MapServer', token='abc').tile_url(TileKey(3, 2, 5))
        'http://localhost/MapServer/tile/3/2/5?token=abc'
        """
        return '%s/tile/%d/%d/%d%s' % (
            self.url, key.level, key.row, key.column, self._query())

    def service_info_url(self):
        """
        >>> TileServiceClient('http://localhost/MapServer', token='abc').service_info_url()
        'http://localhost/MapServer?f=json&token=abc'
        """
        return self.url + self._query(f='json')

    def get_tile(self, key):
        """
        Return the encoded image of the tile `key`.

        :raises HTTPClientError: if the request failed or the response is
            not an image
        """
        resp = self.http_client.fetch(self.tile_url(key))
        content_type = resp.headers.get('content-type', '').lower()
        data = resp.body
        if content_type and not content_type.startswith(ACCEPTED_CONTENT_TYPES):
            raise HTTPClientError('response for tile %s is not an image: %s (%s)' % (
                key, content_type, data[:200]))
        if not data:
            raise HTTPClientError('empty response for tile %s' % (key, ))
        if self.verify_images:
            verify_image(data, key)
        return data

    def get_service_info(self):
        """
        Return the decoded JSON description of the map service.

        :raises HTTPClientError: if the request failed or the service
            returned an error document
        """
        resp = self.http_client.fetch(self.service_info_url())
        try:
            doc = json.loads(resp.body.decode('utf-8'))
        except ValueError as ex:
            raise HTTPClientError('invalid service description: %s' % ex) from ex
        if not isinstance(doc, dict):
            raise HTTPClientError('invalid service description: not a JSON object')
        if 'error' in doc:
            err = doc['error'] or {}
            raise HTTPClientError('service error: %s' % err.get('message', err),
                                  response_code=err.get('code'))
        log.debug('loaded service description of %s', self.url)
        return doc

    def get_tile_matrix(self):
        """
        Return the `TileMatrix` and the full extent (or ``None``) of the
        map service.

        :raises TileMatrixError: if the service is not a tiled service
        """
        return tile_matrix_from_service_info(self.get_service_info())

    def __repr__(self):
        return '%s(%r)' % (self.__class__.__name__, self.url)


def verify_image(data, key=None):
    """
    Decode `data` with Pillow.

    :raises HTTPClientError: if the data is not a valid image
    """
    from PIL import Image
    try:
        img = Image.open(BytesIO(data))
        img.verify()
    except Exception as ex:
        raise HTTPClientError('invalid image data for tile %s: %s' % (key, ex)) from ex
