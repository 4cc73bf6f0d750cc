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

import re
import sys
import threading
import logging
from logging.config import fileConfig

from optparse import OptionParser, OptionValueError

from offlinetiles.cache.base import FilesystemError
from offlinetiles.config.loader import load_configuration, ConfigurationError
from offlinetiles.grid import InvalidLevel
from offlinetiles.seed.util import ProgressLog, format_bbox, parse_levels
from offlinetiles.srs import TransformationError
from offlinetiles.util.bbox import bbox_tuple


def setup_logging(logging_conf=None):
    if logging_conf is not None:
        fileConfig(logging_conf, {'here': './'})

    offlinetiles_log = logging.getLogger('offlinetiles')
    offlinetiles_log.setLevel(logging.WARN)

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logging.DEBUG)
    formatter = logging.Formatter(
        "[%(asctime)s] %(name)s - %(levelname)s - %(message)s")
    ch.setFormatter(formatter)
    offlinetiles_log.addHandler(ch)


def check_duration(option, opt, value, parser):
    try:
        setattr(parser.values, option.dest, parse_duration(value))
    except ValueError:
        raise OptionValueError(
            "option %s: invalid duration value: %r, expected (10s, 15m, 0.5h, 3d, etc)"
            % (opt, value),
        )


def parse_duration(string):
    """
    >>> parse_duration('90s')
    90.0
    >>> parse_duration('1.5h')
    5400.0
    """
    match = re.match(r'^(\d*\.?\d+)(s|m|h|d)$', string)
    if not match:
        raise ValueError('invalid duration, not in format: 10s, 0.5h, etc.')
    duration = float(match.group(1))
    unit = match.group(2)
    if unit == 's':
        return duration
    duration *= 60
    if unit == 'm':
        return duration
    duration *= 60
    if unit == 'h':
        return duration
    duration *= 24
    return duration


def check_levels(option, opt, value, parser):
    try:
        setattr(parser.values, option.dest, parse_levels(value))
    except ValueError:
        raise OptionValueError(
            "option %s: invalid levels: %r, expected (8,10,12 or 8..14)" % (opt, value))


def check_bbox(option, opt, value, parser):
    try:
        setattr(parser.values, option.dest, bbox_tuple(value))
    except ValueError:
        raise OptionValueError(
            "option %s: invalid bbox: %r, expected xmin,ymin,xmax,ymax" % (opt, value))


class SeedScript(object):
    usage = "usage: %prog [options] -f offlinetiles.yaml"
    parser = OptionParser(usage)
    parser.add_option("-q", "--quiet",
                      action="count", dest="quiet", default=0,
                      help="reduce number of messages to stdout, repeat to disable progress output")
    parser.add_option("-f", "--conf",
                      dest="conf_file", default=None,
                      help="offlinetiles configuration")
    parser.add_option("--bbox", dest="bbox", metavar="xmin,ymin,xmax,ymax",
                      type=str, action="callback", callback=check_bbox,
                      help="area of interest, overwrites download.bbox")
    parser.add_option("--bbox-srs", dest="bbox_srs", default=None,
                      help="SRS of the area of interest (e.g. EPSG:4326)")
    parser.add_option("--levels", dest="levels", metavar="8,10,12|8..14",
                      type=str, action="callback", callback=check_levels,
                      help="levels to download, overwrites download.levels")
    parser.add_option("--offline",
                      action="store_true", dest="offline", default=False,
                      help="only check the cache, do not fetch tiles")
    parser.add_option("-c", "--concurrency", type="int",
                      dest="concurrency", default=None,
                      help="number of parallel downloads")
    parser.add_option("--retries", type="int",
                      dest="retries", default=None,
                      help="number of retries for failed tiles")
    parser.add_option("-n", "--dry-run",
                      action="store_true", dest="dry_run", default=False,
                      help="do not download, just print the number of tiles")
    parser.add_option("--duration", dest="duration",
                      help="stop downloading after (120s, 15m, 4h, 0.5d, etc)",
                      type=str, action="callback", callback=check_duration)
    parser.add_option("--log-config", dest='logging_conf', default=None,
                      help="logging configuration")

    def __call__(self, args=None):
        (options, args) = self.parser.parse_args(args)

        if not options.conf_file:
            if len(args) != 1:
                self.parser.print_help()
                return 1
            options.conf_file = args[0]

        setup_logging(options.logging_conf)

        try:
            conf = load_configuration(options.conf_file)
        except ConfigurationError as ex:
            print("ERROR: " + '\n\t'.join(str(ex).split('\n')))
            return 2

        if options.concurrency is not None:
            conf.download_conf['concurrency'] = options.concurrency
        if options.retries is not None:
            conf.download_conf['retries'] = options.retries

        bbox = options.bbox or conf.bbox()
        bbox_srs = options.bbox_srs or conf.bbox_srs()
        levels = options.levels or conf.levels()
        if bbox is None:
            print("ERROR: no bbox, use --bbox or download.bbox")
            return 2
        if not levels:
            print("ERROR: no levels, use --levels or download.levels")
            return 2

        offline = True if options.offline else None
        try:
            session = conf.session(offline=offline)
        except ConfigurationError as ex:
            print("ERROR: " + '\n\t'.join(str(ex).split('\n')))
            return 2
        except FilesystemError as ex:
            print("ERROR: %s" % (ex, ))
            return 2

        try:
            keys = session.compute_tiles(bbox, levels, bbox_srs=bbox_srs)
        except (InvalidLevel, TransformationError, ValueError) as ex:
            print("ERROR: %s" % (ex, ))
            return 2

        if options.quiet < 2:
            print('Area of interest: %s (%s)' % (format_bbox(bbox), bbox_srs or session.srs.srs_code))
            counts = {}
            for key in keys:
                counts[key.level] = counts.get(key.level, 0) + 1
            for level in levels:
                print('  level %2d: %d tiles' % (level, counts.get(level, 0)))
            print('Total: %d tiles' % (len(keys), ))

        if options.dry_run:
            return 0

        if not sys.stdout.isatty() and options.quiet == 0:
            # disable verbose output for non-ttys
            options.quiet = 1

        logger = ProgressLog(verbose=options.quiet == 0, silent=options.quiet >= 2)
        stop_event = threading.Event()
        timer = None
        if options.duration:
            timer = threading.Timer(options.duration, stop_event.set)
            timer.daemon = True
            timer.start()
        try:
            result = session.download_tiles(keys, progress_logger=logger, stop_event=stop_event)
        finally:
            if timer:
                timer.cancel()
            session.close()

        for key, ex in sorted(result.failed.items()):
            print('failed %s: %s' % (key, ex))
        if options.quiet < 2:
            stats = session.tile_cache.stats
            print('Tiles from cache: %d, downloaded: %d, failed: %d' % (
                stats.hits, stats.fetches - stats.failures, len(result.failed)))
        if result.aborted:
            print('\ninterrupted... %d tiles skipped' % (len(result.skipped), ))
            return 3
        if result.failed:
            return 1
        return 0


def main():
    return SeedScript()()


if __name__ == '__main__':
    sys.exit(main())
