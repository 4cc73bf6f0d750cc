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

import math

from offlinetiles.grid import TileKey, _create_tile_list
from offlinetiles.util.bbox import bbox_is_empty, merge_bbox

# fractional tile positions are rounded to this many digits before
# floor/ceil, so bbox edges on a tile boundary don't add sliver tiles
TILE_POSITION_DIGITS = 9


def _tile_position(value):
    return round(value, TILE_POSITION_DIGITS)


class TileGrid(object):
    """
    Tile calculations for a `TileMatrix`. The origin is the top-left corner
    of the matrix, columns increase to the right, rows increase downwards.

    >>> from offlinetiles.grid.tile_matrix import TileMatrix
    >>> grid = TileGrid(TileMatrix((-180, 90), levels=[(0, 0.703125, 0), (1, 0.3515625, 0)]))
    >>> grid.tile(1.0, -1.0, 1)
    TileKey(level=1, row=1, column=2)
    >>> grid.tile_bbox(TileKey(1, 1, 2))
    (0.0, -90.0, 90.0, 0.0)
    """
    def __init__(self, tile_matrix):
        self.tile_matrix = tile_matrix
        self.origin = tile_matrix.origin
        self.tile_size = tile_matrix.tile_size

    def resolution(self, level):
        """
        Returns the resolution of the `level` in units/pixel.

        :raises InvalidLevel: for levels not in the tile matrix
        """
        return self.tile_matrix.resolution(level)

    def tile_size_units(self, level):
        """
        Returns the ``(width, height)`` of a tile at `level` in map units.
        """
        res = self.resolution(level)
        return self.tile_size[0] * res, self.tile_size[1] * res

    def tile(self, x, y, level):
        """
        Returns the TileKey of the tile that contains the point.
        """
        tw, th = self.tile_size_units(level)
        column = math.floor(_tile_position((x - self.origin.x) / tw))
        row = math.floor(_tile_position(-(y - self.origin.y) / th))
        return TileKey(level, int(row), int(column))

    def tile_range(self, bbox, level):
        """
        Returns the inclusive ``(min_row, max_row), (min_col, max_col)``
        ranges of the tiles covering `bbox`. The upper bound is smaller than
        the lower bound if `bbox` is a line on a tile boundary.

        >>> from offlinetiles.grid.tile_matrix import TileMatrix
        >>> grid = TileGrid(TileMatrix((0, 100), tile_size=(10, 10), levels=[(0, 1.0, 0)]))
        >>> grid.tile_range((5, 75, 25, 100), 0)
        ((0, 2), (0, 2))
        >>> grid.tile_range((10, 80, 20, 90), 0)
        ((1, 1), (1, 1))
        >>> grid.tile_range((10, 80, 10, 90), 0)
        ((1, 1), (1, 0))
        """
        tw, th = self.tile_size_units(level)
        ox, oy = self.origin
        xmin, ymin, xmax, ymax = bbox
        min_col = math.floor(_tile_position((xmin - ox) / tw))
        max_col = math.ceil(_tile_position((xmax - ox) / tw)) - 1
        min_row = math.floor(_tile_position(-(ymax - oy) / th))
        max_row = math.ceil(_tile_position(-(ymin - oy) / th)) - 1
        return (int(min_row), int(max_row)), (int(min_col), int(max_col))

    def affected_level_tiles(self, bbox, level):
        """
        Get all tiles covering `bbox` in the given `level`.

        :returns: the bbox of all tiles, the number of tiles
            ``(columns, rows)`` and an iterator with the TileKeys, sorted
            row-wise. The bbox is ``None`` if no tile is affected.
        """
        if bbox_is_empty(bbox):
            return None, (0, 0), iter([])
        (min_row, max_row), (min_col, max_col) = self.tile_range(bbox, level)
        if min_row > max_row or min_col > max_col:
            return None, (0, 0), iter([])
        rows = range(min_row, max_row + 1)
        columns = range(min_col, max_col + 1)
        tiles_bbox = merge_bbox(
            self.tile_bbox(TileKey(level, min_row, min_col)),
            self.tile_bbox(TileKey(level, max_row, max_col)),
        )
        return tiles_bbox, (len(columns), len(rows)), _create_tile_list(rows, columns, level)

    def tile_bbox(self, tile_key):
        """
        Returns the bbox of the given tile, computed from the level, row
        and column only.
        """
        level, row, column = tile_key
        tw, th = self.tile_size_units(level)
        ox, oy = self.origin
        return (
            ox + column * tw,
            oy - (row + 1) * th,
            ox + (column + 1) * tw,
            oy - row * th,
        )

    def tile_keys(self, bbox, levels):
        """
        Returns a dict with the TileKey and the bbox of each tile that
        covers `bbox` in all `levels`.

        Levels are processed in the given order, tiles within a level
        row by row.

        :raises InvalidLevel: if one of the `levels` is not in the tile
            matrix. Nothing is calculated in that case.
        """
        levels = list(levels)
        for level in levels:
            self.tile_matrix.lod(level)

        result = {}
        for level in levels:
            _bbox, _grid_size, tiles = self.affected_level_tiles(bbox, level)
            for tile_key in tiles:
                result[tile_key] = self.tile_bbox(tile_key)
        return result

    def count_tiles(self, bbox, levels):
        """
        Returns a dict with the number of tiles covering `bbox` for each
        level.
        """
        levels = list(levels)
        for level in levels:
            self.tile_matrix.lod(level)

        counts = {}
        for level in levels:
            _bbox, (columns, rows), _tiles = self.affected_level_tiles(bbox, level)
            counts[level] = columns * rows
        return counts

    def __repr__(self):
        return '%s(%r)' % (self.__class__.__name__, self.tile_matrix)


def compute_tile_keys(area_of_interest, tile_matrix, levels):
    """
    Calculate all tiles that cover `area_of_interest` for each level.

    :param area_of_interest: bbox in the spatial reference of the
        `tile_matrix`
    :returns: dict with TileKey -> tile bbox
    :raises InvalidLevel: if a level is not part of the `tile_matrix`
    """
    return TileGrid(tile_matrix).tile_keys(area_of_interest, levels)


def count_tiles(area_of_interest, tile_matrix, levels):
    return TileGrid(tile_matrix).count_tiles(area_of_interest, levels)
