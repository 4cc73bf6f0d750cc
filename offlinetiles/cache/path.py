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
Directory layouts of the file cache.

Each layout is a pair of functions: one returns the location of a tile,
the other the directory with all tiles of one level.
"""
import os

from offlinetiles.util.fs import ensure_directory


def location_funcs(layout):
    if layout == 'offline':
        return tile_location_offline, level_location_offline
    elif layout == 'flat':
        return tile_location_flat, level_location
    else:
        raise ValueError('unknown directory_layout "%s"' % layout)


def level_part(level):
    """
    >>> level_part(2)
    '02'
    >>> level_part(123)
    '123'
    """
    return "%02d" % level


def level_location(level, cache_dir):
    """
    Return the path where all tiles for `level` will be stored.

    >>> level_location(2, '/tmp/cache').replace('\\\\', '/')
    '/tmp/cache/02'
    """
    return os.path.join(cache_dir, level_part(level))


def level_location_offline(level, cache_dir):
    """
    >>> level_location_offline(2, '/tmp/cache').replace('\\\\', '/')
    '/tmp/cache/L02'
    """
    return os.path.join(cache_dir, 'L' + level_part(level))


def tile_file_name(tile_key, file_ext):
    """
    >>> from offlinetiles.grid import TileKey
    >>> tile_file_name(TileKey(level=3, row=4, column=7), 'jpeg')
    '4_7.jpeg'
    """
    return '%d_%d.%s' % (tile_key.row, tile_key.column, file_ext)


def tile_location_offline(tile, cache_dir, file_ext, create_dir=False):
    """
    Return the location of the `tile`. Caches the result as ``location``
    property of the `tile`.

    :param tile: the tile object
    :param create_dir: if True, create all necessary directories
    :return: the full filename of the tile

    >>> from offlinetiles.cache.tile import Tile
    >>> from offlinetiles.grid import TileKey
    >>> tile_location_offline(Tile(TileKey(2, 3, 4)), '/tmp/cache', 'jpeg').replace('\\\\', '/')
    '/tmp/cache/L02/3_4.jpeg'
    """
    if tile.location is None:
        tile.location = os.path.join(
            level_location_offline(tile.key.level, cache_dir),
            tile_file_name(tile.key, file_ext),
        )
    if create_dir:
        ensure_directory(tile.location)
    return tile.location


def tile_location_flat(tile, cache_dir, file_ext, create_dir=False):
    """
    Return the location of the `tile`. Caches the result as ``location``
    property of the `tile`.

    >>> from offlinetiles.cache.tile import Tile
    >>> from offlinetiles.grid import TileKey
    >>> tile_location_flat(Tile(TileKey(12, 1234, 567)), '/tmp/cache', 'png').replace('\\\\', '/')
    '/tmp/cache/12/1234_567.png'
    """
    if tile.location is None:
        tile.location = os.path.join(
            level_location(tile.key.level, cache_dir),
            tile_file_name(tile.key, file_ext),
        )
    if create_dir:
        ensure_directory(tile.location)
    return tile.location
