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
Batch download of tiles into the tile cache.
"""
import queue
import threading

from offlinetiles.cache.base import TileCacheError, FetchFailed
from offlinetiles.seed.util import exp_backoff

import logging
log = logging.getLogger(__name__)


class DownloadResult(object):
    """
    Result and progress of a download.

    :ivar completed: keys of all tiles that are in the cache now
    :ivar failed: dict with the exception for each failed key
    :ivar skipped: keys that were not processed because the download
        was aborted
    """
    def __init__(self, total):
        self.total = total
        self.completed = []
        self.failed = {}
        self.skipped = []
        self.aborted = False

    @property
    def processed(self):
        return len(self.completed) + len(self.failed)

    @property
    def progress(self):
        """
        Processed fraction of all keys, ``1.0`` for an empty download.

        >>> r = DownloadResult(3)
        >>> r.completed.append('a')
        >>> round(r.progress, 4)
        0.3333
        >>> DownloadResult(0).progress
        1.0
        """
        if not self.total:
            return 1.0
        return self.processed / float(self.total)

    @property
    def succeeded(self):
        return not self.failed and not self.skipped and not self.aborted

    def __repr__(self):
        return '<DownloadResult total=%d completed=%d failed=%d skipped=%d%s>' % (
            self.total, len(self.completed), len(self.failed), len(self.skipped),
            ' aborted' if self.aborted else '')


class TileWorker(threading.Thread):
    def __init__(self, pool):
        threading.Thread.__init__(self)
        self.daemon = True
        self.pool = pool
        self.tile_cache = pool.tile_cache
        self.tiles_queue = pool.tiles_queue

    def run(self):
        try:
            self.work_loop()
        except KeyboardInterrupt:
            return

    def work_loop(self):
        while True:
            key = self.tiles_queue.get()
            if key is None:
                return
            if self.pool.stop_event.is_set():
                self.pool.tile_skipped(key)
                continue
            try:
                self.fetch(key)
            except TileCacheError as ex:
                self.pool.tile_done(key, ex)
            except Exception as ex:
                log.exception('unexpected error while fetching tile %s', key)
                self.pool.tile_done(key, ex)
            else:
                self.pool.tile_done(key)

    def fetch(self, key):
        if not self.pool.retries:
            return self.tile_cache.fetch_tile(key)
        return exp_backoff(
            self.tile_cache.fetch_tile, args=(key, ),
            max_repeat=self.pool.retries,
            start_backoff_sec=self.pool.retry_delay,
            max_backoff=self.pool.max_retry_delay,
            exceptions=(FetchFailed, ),
            stop_event=self.pool.stop_event,
        )


class TileWorkerPool(object):
    """
    Manages multiple TileWorker that fetch the keys from a bounded queue.
    """
    def __init__(self, tile_cache, result, size=4, retries=0, retry_delay=1,
                 max_retry_delay=30, progress_logger=None, stop_event=None):
        self.tile_cache = tile_cache
        self.result = result
        self.retries = retries
        self.retry_delay = retry_delay
        self.max_retry_delay = max_retry_delay
        self.progress_logger = progress_logger
        self.stop_event = stop_event or threading.Event()
        self.tiles_queue = queue.Queue(size * 2)
        self._lock = threading.Lock()
        self.workers = []
        for _ in range(size):
            worker = TileWorker(self)
            worker.start()
            self.workers.append(worker)

    def tile_done(self, key, exception=None):
        with self._lock:
            if exception is None:
                self.result.completed.append(key)
            else:
                self.result.failed[key] = exception
                log.warning('tile %s failed: %s', key, exception)
            if self.progress_logger:
                self.progress_logger.log_progress(self.result)

    def tile_skipped(self, key):
        with self._lock:
            self.result.skipped.append(key)

    def process(self, key):
        """
        Put `key` into the queue. Returns ``False`` if the download was
        stopped before the key was queued.
        """
        while True:
            if self.stop_event.is_set():
                return False
            try:
                self.tiles_queue.put(key, timeout=0.5)
            except queue.Full:
                if not any(w.is_alive() for w in self.workers):
                    log.warning('no workers left, stopping')
                    self.stop_event.set()
                    return False
                continue
            else:
                return True

    def discard_queued(self):
        """
        Remove all keys from the queue that no worker has started yet.
        """
        discarded = []
        while True:
            try:
                key = self.tiles_queue.get_nowait()
            except queue.Empty:
                return discarded
            if key is not None:
                discarded.append(key)

    def stop(self, force=False):
        """
        Stop workers by sending None-sentinel and joining the workers.
        Running fetches are finished.

        :param force: join with a timeout. For use when workers might be
            shutdown already by KeyboardInterrupt.
        """
        for worker in self.workers:
            if worker.is_alive():
                self.tiles_queue.put(None)
        timeout = 1.0 if force else None
        for worker in self.workers:
            worker.join(timeout)


def download_tiles(tile_cache, keys, concurrency=4, retries=0, progress_logger=None,
                   stop_event=None, retry_delay=1, max_retry_delay=30):
    """
    Fetch all `keys` into the cache of `tile_cache`.

    Tiles are fetched by `concurrency` worker threads. Failed tiles are
    collected in the result and do not stop the download. Duplicate keys
    are fetched once.

    The download is aborted when `stop_event` is set or on
    KeyboardInterrupt: keys that are not started yet are skipped,
    running fetches are finished.

    :param tile_cache: the `TileCache` (or any other `TileSource`)
    :param retries: number of retries for failed fetches
    :returns: `DownloadResult`
    """
    keys = list(dict.fromkeys(keys))
    result = DownloadResult(len(keys))
    if not keys:
        return result

    pool = TileWorkerPool(
        tile_cache, result,
        size=max(1, min(concurrency, len(keys))),
        retries=retries,
        retry_delay=retry_delay,
        max_retry_delay=max_retry_delay,
        progress_logger=progress_logger,
        stop_event=stop_event,
    )
    queued = 0
    try:
        for key in keys:
            if not pool.process(key):
                break
            queued += 1
    except KeyboardInterrupt:
        log.warning('download interrupted')
        pool.stop_event.set()

    if pool.stop_event.is_set():
        for key in pool.discard_queued() + keys[queued:]:
            pool.tile_skipped(key)

    try:
        pool.stop()
    except KeyboardInterrupt:
        pool.stop_event.set()
        result.aborted = True
        pool.stop(force=True)
        for key in pool.discard_queued():
            pool.tile_skipped(key)

    # workers skip queued keys once the stop event is set
    if pool.stop_event.is_set():
        result.aborted = True

    if progress_logger and result.aborted:
        progress_logger.log_message('download aborted, %d of %d tiles skipped' % (
            len(result.skipped), result.total))
    return result
