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
Cache session: one tile matrix, one cache directory and one online/offline
mode. Replaces any global application state, create a new session to
switch between online and offline mode.
"""
import errno
import os

from offlinetiles.cache.base import FilesystemError
from offlinetiles.cache.file import FileCache
from offlinetiles.cache.tile import TileCache
from offlinetiles.grid import TileMatrixError
from offlinetiles.grid.tile_grid import TileGrid
from offlinetiles.grid.tile_matrix import load_tile_matrix
from offlinetiles.seed.downloader import download_tiles
from offlinetiles.srs import SRS, srs_from_spatial_reference
from offlinetiles.util.bbox import bbox_tuple
from offlinetiles.util.fs import make_directories, is_writable_directory, write_atomic

import logging
log = logging.getLogger('offlinetiles.session')

TILE_MATRIX_FILENAME = 'tileinfo.json'


def tile_matrix_location(cache_dir):
    return os.path.join(cache_dir, TILE_MATRIX_FILENAME)


def load_offline_tile_matrix(cache_dir):
    """
    Load the tile matrix that an online session stored in `cache_dir`.

    :raises TileMatrixError: if there is no stored tile matrix
    """
    location = tile_matrix_location(cache_dir)
    try:
        return load_tile_matrix(location)
    except FileNotFoundError as ex:
        raise TileMatrixError('no tile matrix found in %s' % (cache_dir, )) from ex


class CacheSession(object):
    """
    Tile calculation and tile access for a single cache directory.

    :param tile_matrix: the `TileMatrix` of the tile service
    :param cache_dir: root directory of the tile cache
    :param offline: only return cached tiles, never access the service
    :param client: tile service client (required for online sessions)
    :param file_ext: extension of the cached files, derived from the
        tile format by default
    :raises FilesystemError: if the cache directory is not usable
    """
    def __init__(self, tile_matrix, cache_dir, offline=False, client=None,
                 directory_layout='offline', file_ext=None, concurrency=4, retries=0):
        if not offline and client is None:
            raise ValueError('online session requires a tile service client')
        self.tile_matrix = tile_matrix
        self.cache_dir = cache_dir
        self.offline = offline
        self.client = client
        self.directory_layout = directory_layout
        self.file_ext = file_ext or tile_matrix.file_ext
        self.concurrency = concurrency
        self.retries = retries
        self.grid = TileGrid(tile_matrix)

        self.file_cache = FileCache(cache_dir, self.file_ext, directory_layout=directory_layout)
        self._setup_cache_dir()
        self.tile_cache = TileCache(self.file_cache, client=client, offline=offline)
        if not offline:
            self.save_tile_matrix()
        log.debug('created %s session for %s', 'offline' if offline else 'online', cache_dir)

    def _setup_cache_dir(self):
        try:
            make_directories(self.cache_dir)
        except OSError as ex:
            raise FilesystemError(None, ex) from ex
        if not is_writable_directory(self.cache_dir):
            raise FilesystemError(None, OSError(
                errno.EACCES, 'cache directory is not writable', self.cache_dir))

    def save_tile_matrix(self):
        """
        Store the tile matrix as ``tileinfo.json`` in the cache directory,
        for later offline sessions.
        """
        location = tile_matrix_location(self.cache_dir)
        try:
            write_atomic(location, self.tile_matrix.to_json().encode('utf-8'))
        except OSError as ex:
            raise FilesystemError(None, ex) from ex

    def with_offline(self, offline):
        """
        Return a new session with the same configuration in the other mode.
        The current session is closed.
        """
        self.close()
        return CacheSession(
            self.tile_matrix, self.cache_dir, offline=offline, client=self.client,
            directory_layout=self.directory_layout, file_ext=self.file_ext,
            concurrency=self.concurrency, retries=self.retries,
        )

    def close(self):
        self.tile_cache.close()

    @property
    def tile_source(self):
        """
        The `TileSource` for renderers.
        """
        return self.tile_cache

    @property
    def srs(self):
        return srs_from_spatial_reference(self.tile_matrix.spatial_reference)

    def compute_tiles(self, bbox, levels, bbox_srs=None):
        """
        Return all tiles that cover `bbox` in `levels`, as dict with the
        `TileKey` and the bbox of each tile.

        :param bbox_srs: the SRS of `bbox` if it is not in the SRS of the
            tile matrix
        :raises InvalidLevel: if a level is not part of the tile matrix
        """
        bbox = bbox_tuple(bbox)
        if bbox_srs is not None:
            bbox = SRS(bbox_srs).transform_bbox_to(self.srs, bbox)
        return self.grid.tile_keys(bbox, levels)

    def count_tiles(self, bbox, levels, bbox_srs=None):
        bbox = bbox_tuple(bbox)
        if bbox_srs is not None:
            bbox = SRS(bbox_srs).transform_bbox_to(self.srs, bbox)
        return self.grid.count_tiles(bbox, levels)

    def download_tiles(self, keys, progress_logger=None, stop_event=None):
        """
        Fetch all `keys` into the cache. See `download_tiles`.
        """
        return download_tiles(
            self.tile_cache, keys,
            concurrency=self.concurrency,
            retries=self.retries,
            progress_logger=progress_logger,
            stop_event=stop_event,
        )

    def fetch_tile(self, key):
        return self.tile_cache.fetch_tile(key)

    def __repr__(self):
        return '%s(%r, offline=%r)' % (self.__class__.__name__, self.cache_dir, self.offline)
