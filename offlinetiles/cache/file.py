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

import os
import errno
import time

from offlinetiles.util.fs import write_atomic
from offlinetiles.cache import path
from offlinetiles.cache.base import TileCacheBase

import logging
log = logging.getLogger('offlinetiles.cache.file')


class FileCache(TileCacheBase):
    """
    This class is responsible to store and load the actual tile data.
    A tile is cached if its file exists, there is no other index.
    """

    def __init__(self, cache_dir, file_ext, directory_layout='offline'):
        """
        :param cache_dir: the path where the tile will be stored
        :param file_ext: the file extension that will be appended to
            each tile (e.g. 'jpeg')
        :param directory_layout: ``offline`` or ``flat``
        """
        self.cache_dir = cache_dir
        self.file_ext = file_ext
        self.directory_layout = directory_layout
        self._tile_location, self._level_location = path.location_funcs(layout=directory_layout)

    def tile_location(self, tile, create_dir=False):
        return self._tile_location(tile, self.cache_dir, self.file_ext, create_dir=create_dir)

    def level_location(self, level):
        """
        Return the path where all tiles for `level` will be stored.

        >>> c = FileCache(cache_dir='/tmp/cache', file_ext='jpeg')
        >>> c.level_location(2).replace('\\\\', '/')
        '/tmp/cache/L02'
        """
        return self._level_location(level, self.cache_dir)

    def load_tile_metadata(self, tile):
        location = self.tile_location(tile)
        try:
            stats = os.lstat(location)
            tile.timestamp = stats.st_mtime
            tile.size = stats.st_size
        except OSError as ex:
            if ex.errno != errno.ENOENT:
                raise
            tile.timestamp = 0
            tile.size = 0

    def is_cached(self, tile):
        """
        Returns ``True`` if the tile data is present.
        """
        if not tile.is_missing():
            return True
        return os.path.isfile(self.tile_location(tile))

    def load_tile(self, tile, with_metadata=False):
        """
        Fills the `Tile.data` of the `tile` if it is cached.
        Returns ``False`` if the tile is not cached.

        :raises OSError: if the file exists but can't be read
        """
        if not tile.is_missing():
            return True

        location = self.tile_location(tile)
        try:
            with open(location, 'rb') as f:
                tile.data = f.read()
        except OSError as ex:
            if ex.errno == errno.ENOENT:
                return False
            raise

        tile.size = len(tile.data)
        tile.stored = True
        if with_metadata:
            self.load_tile_metadata(tile)
        return True

    def store_tile(self, tile):
        """
        Add the given `tile` to the file cache. Stores the `Tile.data` to
        `FileCache.tile_location`. The file is written to a temporary file
        first, so readers never see partial tiles.
        """
        if tile.stored:
            return True

        location = self.tile_location(tile, create_dir=True)
        log.debug('writing %s to %s', tile.key, location)
        write_atomic(location, tile.data)
        tile.size = len(tile.data)
        if not tile.timestamp:
            tile.timestamp = time.time()
        tile.stored = True
        return True

    def remove_tile(self, tile):
        location = self.tile_location(tile)
        try:
            os.remove(location)
        except OSError as ex:
            if ex.errno != errno.ENOENT:
                raise

    def __repr__(self):
        return '%s(%r, %r)' % (self.__class__.__name__, self.cache_dir, self.file_ext)
