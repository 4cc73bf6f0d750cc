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

import sys
import time
from datetime import datetime

import logging
log = logging.getLogger(__name__)


class ProgressLog(object):
    """
    Writes the progress of a download to `out` (``sys.stdout`` by default).

    :param interval: minimal number of seconds between two progress lines,
        the final line (progress 100%) is always written
    """
    def __init__(self, out=None, silent=False, verbose=True, interval=1.0):
        if not out:
            out = sys.stdout
        self.out = out
        self.silent = silent
        self.verbose = verbose
        if not verbose:
            interval = max(interval, 30)
        self.interval = interval
        self._lastprogress = 0

    def log_message(self, msg):
        if self.silent:
            return
        self.out.write('[%s] %s\n' % (
            timestamp(), msg,
        ))
        self.out.flush()

    def log_progress(self, progress):
        """
        :param progress: object with ``processed``, ``total``,
            ``failed`` and ``progress`` (0.0 - 1.0)
        """
        if self.silent:
            return
        if progress.progress < 1.0 and (self._lastprogress + self.interval) >= time.time():
            return
        self._lastprogress = time.time()
        line = '[%s] %6.2f%% Downloaded %d out of %d' % (
            timestamp(), progress.progress * 100, progress.processed, progress.total,
        )
        if progress.failed:
            line += ' (%d failed)' % len(progress.failed)
        self.out.write(line + '\n')
        self.out.flush()


def timestamp():
    return datetime.now().strftime('%H:%M:%S')


def format_bbox(bbox):
    return ('%.5f, %.5f, %.5f, %.5f') % tuple(bbox)


def parse_levels(levels_str):
    """
    Parse a comma separated list of levels and level ranges.

    >>> parse_levels('8,10,12')
    [8, 10, 12]
    >>> parse_levels('3..5, 1')
    [3, 4, 5, 1]
    >>> parse_levels('4,4')
    [4]
    """
    levels = []
    for part in levels_str.split(','):
        part = part.strip()
        if not part:
            continue
        if '..' in part:
            start, end = part.split('..', 1)
            start, end = int(start), int(end)
            if start > end:
                raise ValueError('invalid level range %s' % part)
            new_levels = range(start, end + 1)
        else:
            new_levels = [int(part)]
        for level in new_levels:
            if level not in levels:
                levels.append(level)
    return levels


def exp_backoff(func, args=(), kw={}, max_repeat=10, start_backoff_sec=2,
                exceptions=(Exception,), max_backoff=60, stop_event=None):
    """
    Call `func` and repeat it up to `max_repeat` times with an exponential
    delay while it raises one of `exceptions`. The last exception is raised
    once all repeats failed or when `stop_event` is set.
    """
    n = 0
    while True:
        try:
            return func(*args, **kw)
        except exceptions as ex:
            if n >= max_repeat or (stop_event is not None and stop_event.is_set()):
                raise
            wait_for = start_backoff_sec * 2**n
            if wait_for > max_backoff:
                wait_for = max_backoff
            log.warning('an error occurred, retry in %.1f seconds: %s (retries left: %d)',
                        wait_for, ex, max_repeat - n)
            if stop_event is not None:
                stop_event.wait(wait_for)
            else:
                time.sleep(wait_for)
            n += 1
