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

import optparse
import os
import sys
import logging

from offlinetiles.config.loader import load_configuration, ConfigurationError
from offlinetiles.grid import InvalidLevel
from offlinetiles.grid.tile_grid import compute_tile_keys
from offlinetiles.grid.tile_matrix import dump_tile_matrix
from offlinetiles.seed.util import parse_levels
from offlinetiles.srs import SRS, TransformationError, srs_from_spatial_reference
from offlinetiles.util.bbox import bbox_tuple
from offlinetiles.version import version


def setup_logging(level=logging.INFO, format=None):
    offlinetiles_log = logging.getLogger('offlinetiles')
    offlinetiles_log.setLevel(level)

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)
    if not format:
        format = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(format)
    ch.setFormatter(formatter)
    offlinetiles_log.addHandler(ch)


def _load_configuration(parser, options):
    if not options.conf_file:
        parser.print_help()
        print("\nERROR: OfflineTiles configuration required (-f).")
        return None
    try:
        return load_configuration(options.conf_file)
    except ConfigurationError as ex:
        print("ERROR: " + '\n\t'.join(str(ex).split('\n')))
        return None


def tiles_command(args):
    parser = optparse.OptionParser("usage: %prog tiles [options] -f offlinetiles.yaml")
    parser.add_option("-f", "--conf", dest="conf_file", default=None,
                      help="offlinetiles configuration")
    parser.add_option("--bbox", dest="bbox", default=None,
                      help="area of interest (xmin,ymin,xmax,ymax)")
    parser.add_option("--bbox-srs", dest="bbox_srs", default=None,
                      help="SRS of the area of interest")
    parser.add_option("--levels", dest="levels", default=None,
                      help="levels (8,10,12 or 8..14)")
    parser.add_option("--envelopes", dest="envelopes", default=False, action='store_true',
                      help="print the envelope of each tile")
    parser.add_option("--offline", dest="offline", default=False, action='store_true',
                      help="load the tile matrix from the cache directory")
    options, args = parser.parse_args(args)

    conf = _load_configuration(parser, options)
    if conf is None:
        return 2

    try:
        bbox = bbox_tuple(options.bbox) if options.bbox else conf.bbox()
        levels = parse_levels(options.levels) if options.levels else conf.levels()
    except ValueError as ex:
        print("ERROR: %s" % (ex, ))
        return 2
    if bbox is None or not levels:
        print("ERROR: --bbox and --levels required")
        return 2

    try:
        tile_matrix = conf.tile_matrix(offline=options.offline or None)
    except ConfigurationError as ex:
        print("ERROR: %s" % (ex, ))
        return 2

    bbox_srs = options.bbox_srs or conf.bbox_srs()
    try:
        if bbox_srs:
            bbox = SRS(bbox_srs).transform_bbox_to(
                srs_from_spatial_reference(tile_matrix.spatial_reference), bbox)
        keys = compute_tile_keys(bbox, tile_matrix, levels)
    except (InvalidLevel, TransformationError, ValueError) as ex:
        print("ERROR: %s" % (ex, ))
        return 2

    for key, tile_bbox in keys.items():
        if options.envelopes:
            print('%s %s' % (key, ','.join('%r' % v for v in tile_bbox)))
        else:
            print(key)
    return 0


def tileinfo_command(args):
    parser = optparse.OptionParser("usage: %prog tileinfo [options] -f offlinetiles.yaml")
    parser.add_option("-f", "--conf", dest="conf_file", default=None,
                      help="offlinetiles configuration")
    parser.add_option("-o", "--output", dest="output", default=None,
                      help="write the tile matrix to this file instead of stdout")
    options, args = parser.parse_args(args)

    conf = _load_configuration(parser, options)
    if conf is None:
        return 2

    try:
        tile_matrix = conf.tile_matrix(offline=False)
    except ConfigurationError as ex:
        print("ERROR: %s" % (ex, ))
        return 2

    if options.output:
        dump_tile_matrix(tile_matrix, options.output)
    else:
        dump_tile_matrix(tile_matrix, sys.stdout)
        print()
    return 0


commands = {
    'tiles': {
        'func': tiles_command,
        'help': 'Print the tiles that cover an area of interest.'
    },
    'tileinfo': {
        'func': tileinfo_command,
        'help': 'Fetch the tile matrix of the tile service.'
    },
}


def print_commands(out=None):
    out = out or sys.stdout
    width = max(len(name) for name in commands)
    print('Commands:', file=out)
    for name, item in sorted(commands.items()):
        print('  %s  %s' % (name.ljust(width), item['help']), file=out)


def main(argv=None):
    if argv is None:
        argv = sys.argv
    prog = os.path.basename(argv[0]) if argv else 'offlinetiles-util'
    args = argv[1:]

    if not args or args[0] in ('--help', '-h'):
        print('usage: %s COMMAND [options]\n' % (prog, ))
        print_commands()
        sys.exit(1)

    if args[0] == '--version':
        print('OfflineTiles ' + version)
        sys.exit(1)

    command = args[0]
    if command not in commands:
        print('usage: %s COMMAND [options]\n' % (prog, ))
        print_commands()
        print('\nERROR: unknown command %s' % (command,))
        sys.exit(1)

    setup_logging(logging.WARN)
    sys.exit(commands[command]['func'](args[1:]))


if __name__ == '__main__':
    main()
