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
Tile grids (tile keys, tile matrices and grid calculations).
"""
from collections import namedtuple


class GridError(Exception):
    pass


class InvalidLevel(GridError):
    """
    Raised when a requested level is not part of the tile matrix.
    """
    def __init__(self, level):
        GridError.__init__(self, 'level %r not in tile matrix' % (level, ))
        self.level = level


class TileMatrixError(GridError, ValueError):
    pass


class TileKey(namedtuple('TileKey', 'level row column')):
    """
    Identifies a single tile of a tile matrix.

    >>> TileKey(3, row=2, column=5)
    TileKey(level=3, row=2, column=5)
    >>> TileKey(3, 2, 5) == TileKey(level=3, column=5, row=2)
    True
    """
    __slots__ = ()

    def __str__(self):
        return '%d/%d/%d' % self


def _create_tile_list(rows, columns, level):
    """
    Returns an iterator with TileKeys for the given tile ranges, row by row.

    >>> list(_create_tile_list(range(1, 3), range(4, 6), 2))
    ... #doctest: +NORMALIZE_WHITESPACE
    [TileKey(level=2, row=1, column=4), TileKey(level=2, row=1, column=5),
     TileKey(level=2, row=2, column=4), TileKey(level=2, row=2, column=5)]
    """
    for row in rows:
        for column in columns:
            yield TileKey(level, row, column)
