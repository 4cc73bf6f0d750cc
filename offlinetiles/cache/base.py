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

from abc import ABC, abstractmethod


class TileCacheError(Exception):
    """
    Base class for all errors of a single tile request.

    :ivar key: the `TileKey` of the failed request, ``None`` for errors that
        are not related to a single tile (e.g. session setup)
    """
    def __init__(self, key, message=None):
        if message is None:
            message = 'tile %s' % (key, )
        Exception.__init__(self, message)
        self.key = key


class TileUnavailable(TileCacheError):
    """
    The tile is not cached and may not be fetched (offline mode).
    """
    def __init__(self, key):
        TileCacheError.__init__(self, key, 'tile %s not available offline' % (key, ))


class FetchFailed(TileCacheError):
    """
    Fetching the tile from the tile service failed.

    :ivar cause: the original exception
    """
    def __init__(self, key, cause, message=None):
        if message is None:
            message = 'fetching tile %s failed: %s' % (key, cause)
        TileCacheError.__init__(self, key, message)
        self.cause = cause


class FilesystemError(FetchFailed):
    """
    Reading or writing the cache directory failed.
    """
    def __init__(self, key, cause):
        if key is None:
            message = 'cache directory not usable: %s' % (cause, )
        else:
            message = 'unable to access cached tile %s: %s' % (key, cause)
        FetchFailed.__init__(self, key, cause, message)


class TileSource(ABC):
    """
    Interface for everything that returns tiles for a `TileKey`.
    """
    @abstractmethod
    def fetch_tile(self, key):
        """
        Return the `Tile` for `key`.

        :raises TileCacheError: if the tile can't be returned
        """
        pass


class TileCacheBase(ABC):
    """
    Base implementation of a tile cache.
    """

    @abstractmethod
    def load_tile(self, tile, with_metadata=False):
        pass

    def load_tiles(self, tiles, with_metadata=False):
        all_succeed = True
        for tile in tiles:
            if not self.load_tile(tile, with_metadata=with_metadata):
                all_succeed = False
        return all_succeed

    @abstractmethod
    def store_tile(self, tile):
        pass

    @abstractmethod
    def is_cached(self, tile):
        """
        Return ``True`` if the tile is cached.
        """
        pass

    @abstractmethod
    def load_tile_metadata(self, tile):
        """
        Fill the metadata attributes of `tile`.
        Sets ``.timestamp`` and ``.size``.
        """
        pass
