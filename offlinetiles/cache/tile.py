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
Tile caching (retrieval of tiles from the file cache and the tile service).

.. digraph:: Schematic Call Graph

    ranksep = 0.1;
    node [shape="box", height="0", width="0"]

    ts  [label="TileSource"];
    tc  [label="TileCache",  href="<TileCache>"];
    fc  [label="FileCache", href="<offlinetiles.cache.file.FileCache>"];
    cl  [label="TileServiceClient", href="<offlinetiles.client.tile.TileServiceClient>"];

    {
        ts -> tc [label="fetch_tile"];
        tc -> fc [label="load\\nstore"];
        tc -> cl [label="get_tile"]
    }

"""

import threading
import time
from concurrent.futures import Future

from offlinetiles.cache.base import (
    TileSource,
    TileUnavailable,
    FetchFailed,
    FilesystemError,
)
from offlinetiles.client.http import HTTPClientError

import logging
log = logging.getLogger('offlinetiles.cache.tile')


class Tile(object):
    """
    Internal data object for all tiles. Stores the tile ``key`` and the
    encoded tile ``data``.

    :ivar data: the image data of this tile
    :type data: bytes
    :ivar from_cache: ``True`` if the data was read from the file cache
    """
    def __init__(self, key, data=None):
        self.key = key
        self.data = data
        self.location = None
        self.stored = False
        self.from_cache = False
        self.size = None
        self.timestamp = None

    def is_missing(self):
        """
        Returns ``True`` when the tile has no ``data``. It doesn't check if
        the tile exists.

        >>> Tile((1, 2, 3)).is_missing()
        True
        >>> Tile((1, 2, 3), b'...').is_missing()
        False
        """
        return self.data is None

    def __eq__(self, other):
        """
        >>> Tile((0, 0, 1)) == Tile((0, 0, 1))
        True
        >>> Tile((0, 0, 1)) == Tile((1, 0, 1))
        False
        >>> Tile((0, 0, 1)) == None
        False
        """
        if isinstance(other, Tile):
            return (self.key == other.key and
                    self.data == other.data)
        else:
            return NotImplemented

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None

    def __repr__(self):
        return 'Tile(%r, data=%s)' % (
            self.key, '%d bytes' % len(self.data) if self.data is not None else None)


class TileCacheStats(object):
    """
    Counters of a `TileCache`. All counters are updated by the cache
    while holding its lock.
    """
    def __init__(self):
        self.hits = 0
        self.fetches = 0
        self.coalesced = 0
        self.failures = 0
        self.unavailable = 0

    def as_dict(self):
        return dict(
            hits=self.hits,
            fetches=self.fetches,
            coalesced=self.coalesced,
            failures=self.failures,
            unavailable=self.unavailable,
        )

    def __repr__(self):
        return 'TileCacheStats(%s)' % ', '.join(
            '%s=%d' % item for item in sorted(self.as_dict().items()))


class TileCache(TileSource):
    """
    Returns tiles from the `file_cache` and fetches missing tiles from
    the tile service `client` (unless `offline` is set).

    Concurrent requests for the same missing tile share a single remote
    fetch. The first request registers a future for the key, all
    other requests for that key wait for this future and get the same
    tile or the same exception. The key is removed from the registry
    as soon as the fetch is finished. Failed fetches are not remembered,
    the next request for that key fetches again.

    :param file_cache: the `FileCache` with the cached tiles
    :param client: object with a ``get_tile(key)`` method that returns the
        encoded tile or raises `HTTPClientError`
    """
    def __init__(self, file_cache, client=None, offline=False):
        if not offline and client is None:
            raise ValueError('online tile cache requires a client')
        self.file_cache = file_cache
        self.client = client
        self.offline = offline
        self.stats = TileCacheStats()
        self._lock = threading.Lock()
        self._in_flight = {}
        self._closed = False

    @property
    def closed(self):
        return self._closed

    def close(self):
        """
        Stop fetching tiles. Cached tiles are still returned, all other
        requests raise `TileUnavailable`. Fetches that are already running
        are finished.
        """
        with self._lock:
            self._closed = True

    def in_flight(self):
        """
        Returns the keys with running remote fetches.
        """
        with self._lock:
            return set(self._in_flight)

    def fetch_tile(self, key):
        """
        Return the `Tile` for `key`.

        :raises TileUnavailable: if the tile is not cached and the cache is
            offline or closed
        :raises FetchFailed: if the tile service request failed
        :raises FilesystemError: if the cache could not be read or written
        """
        tile = self._load_cached(key)
        if tile is not None:
            with self._lock:
                self.stats.hits += 1
            return tile

        with self._lock:
            if self.offline or self._closed:
                self.stats.unavailable += 1
                raise TileUnavailable(key)
            future = self._in_flight.get(key)
            if future is None:
                future = Future()
                self._in_flight[key] = future
                owner = True
            else:
                self.stats.coalesced += 1
                owner = False

        if not owner:
            log.debug('waiting for running fetch of tile %s', key)
            return future.result()

        try:
            tile = self._fetch_and_store(key)
        except Exception as ex:
            future.set_exception(ex)
            raise
        except BaseException as ex:
            # owner was interrupted (e.g. KeyboardInterrupt)
            future.set_exception(FetchFailed(key, ex, 'fetching tile %s interrupted' % (key, )))
            raise
        else:
            future.set_result(tile)
            return tile
        finally:
            with self._lock:
                del self._in_flight[key]

    def _load_cached(self, key):
        tile = Tile(key)
        try:
            if not self.file_cache.load_tile(tile):
                return None
        except OSError as ex:
            raise FilesystemError(key, ex) from ex
        tile.from_cache = True
        return tile

    def _fetch_and_store(self, key):
        # the tile might be stored by a fetch that finished between our
        # first lookup and the registration
        tile = self._load_cached(key)
        if tile is not None:
            with self._lock:
                self.stats.hits += 1
            return tile

        with self._lock:
            self.stats.fetches += 1
        try:
            data = self.client.get_tile(key)
        except HTTPClientError as ex:
            with self._lock:
                self.stats.failures += 1
            log.warning('fetching tile %s failed: %s', key, ex)
            raise FetchFailed(key, ex) from ex

        tile = Tile(key, data)
        tile.timestamp = time.time()
        try:
            self.file_cache.store_tile(tile)
        except OSError as ex:
            with self._lock:
                self.stats.failures += 1
            log.warning('storing tile %s failed: %s', key, ex)
            raise FilesystemError(key, ex) from ex
        return tile

    def __repr__(self):
        return '%s(%r, offline=%r)' % (self.__class__.__name__, self.file_cache, self.offline)
