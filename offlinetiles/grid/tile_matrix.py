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
Tile matrix (tiling scheme) of a tile service and its JSON representation.

The JSON shape is the ``tileInfo`` object of ArcGIS map services::

    {"rows": 256, "cols": 256, "dpi": 96, "format": "JPEG",
     "compressionQuality": 75,
     "origin": {"x": -20037508.342787, "y": 20037508.342787},
     "spatialReference": {"wkid": 102100, "latestWkid": 3857},
     "lods": [{"level": 0, "resolution": 156543.03, "scale": 591657527.59}, ...]}
"""
import json
from collections import namedtuple

from offlinetiles.grid import InvalidLevel, TileMatrixError

WEB_MERCATOR_WKID = 102100
WEB_MERCATOR_LATEST_WKID = 3857

DEFAULT_COMPRESSION_QUALITY = 75

TILE_FORMATS = {
    'JPEG': 'JPEG',
    'JPG': 'JPEG',
    'PNG': 'PNG',
    'PNG8': 'PNG8',
    'PNG24': 'PNG24',
    'PNG32': 'PNG32',
    'MIXED': 'MIXED',
    'LERC': 'LERC',
}

FILE_EXTENSIONS = {
    'JPEG': 'jpeg',
    'PNG': 'png',
    'PNG8': 'png',
    'PNG24': 'png',
    'PNG32': 'png',
    'MIXED': 'jpeg',
    'LERC': 'lerc',
}


LevelOfDetail = namedtuple('LevelOfDetail', 'level resolution scale')
Point = namedtuple('Point', 'x y')


def tile_format(format):
    """
    >>> tile_format('jpg')
    'JPEG'
    >>> tile_format('Png32')
    'PNG32'
    >>> tile_format('tiff')
    'TIFF'
    """
    format = format.upper()
    return TILE_FORMATS.get(format, format)


class SpatialReference(object):
    """
    Spatial reference of a tile matrix as reported by the tile service.

    :param wkid: the well-known ID, ``0`` if the reference is only
        defined by `wkt`
    """
    def __init__(self, wkid=0, latest_wkid=None, vertical_wkid=None, wkt=None):
        self.wkid = wkid
        self.latest_wkid = latest_wkid
        self.vertical_wkid = vertical_wkid
        self.wkt = wkt if not wkid else None

    @classmethod
    def from_dict(cls, d):
        try:
            wkid = int(d.get('wkid') or 0)
            latest_wkid = d.get('latestWkid')
            vertical_wkid = d.get('verticalWkid')
            return cls(
                wkid=wkid,
                latest_wkid=int(latest_wkid) if latest_wkid is not None else None,
                vertical_wkid=int(vertical_wkid) if vertical_wkid is not None else None,
                wkt=d.get('wkText'),
            )
        except (AttributeError, TypeError, ValueError) as ex:
            raise TileMatrixError('invalid spatialReference %r: %s' % (d, ex))

    def to_dict(self):
        """
        >>> SpatialReference(102100).to_dict()
        {'wkid': 102100, 'latestWkid': 3857}
        >>> SpatialReference(0, wkt='PROJCS[...]').to_dict()
        {'wkid': 0, 'wkText': 'PROJCS[...]'}
        """
        d = {'wkid': self.wkid}
        latest_wkid = self.latest_wkid
        if self.wkid == WEB_MERCATOR_WKID:
            latest_wkid = WEB_MERCATOR_LATEST_WKID
        if latest_wkid is not None:
            d['latestWkid'] = latest_wkid
        if self.vertical_wkid is not None:
            d['verticalWkid'] = self.vertical_wkid
        if self.wkid == 0 and self.wkt:
            d['wkText'] = self.wkt
        return d

    def __eq__(self, other):
        if not isinstance(other, SpatialReference):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __ne__(self, other):
        equal_result = self.__eq__(other)
        if equal_result is NotImplemented:
            return NotImplemented
        return not equal_result

    def __hash__(self):
        return hash(tuple(sorted(self.to_dict().items())))

    def __repr__(self):
        if self.wkid == 0:
            return 'SpatialReference(wkt=%r)' % (self.wkt, )
        return 'SpatialReference(%r)' % (self.wkid, )


class TileMatrix(object):
    """
    Describes how a map is discretized into tiles: origin (top-left corner),
    tile size in pixel and the resolution of each level.

    :ivar tile_size: ``(width, height)`` of each tile in pixel
    :ivar levels: the `LevelOfDetail` list, sorted by level
    """
    def __init__(self, origin, tile_size=(256, 256), levels=None,
                 spatial_reference=None, dpi=96, format='JPEG',
                 compression_quality=DEFAULT_COMPRESSION_QUALITY):
        self.origin = Point(float(origin[0]), float(origin[1]))
        self.tile_size = (int(tile_size[0]), int(tile_size[1]))
        if self.tile_size[0] <= 0 or self.tile_size[1] <= 0:
            raise TileMatrixError('tile size %dx%d not positive' % self.tile_size)
        self.spatial_reference = spatial_reference or SpatialReference(WEB_MERCATOR_WKID)
        self.dpi = dpi
        self.format = tile_format(format)
        self.compression_quality = compression_quality

        levels = sorted((LevelOfDetail(int(l[0]), float(l[1]), float(l[2])) for l in levels or []),
                        key=lambda l: l.level)
        self._check_levels(levels)
        self.levels = levels
        self._lods = dict((l.level, l) for l in levels)

    @staticmethod
    def _check_levels(levels):
        prev = None
        for lod in levels:
            if lod.resolution <= 0:
                raise TileMatrixError('resolution of level %d not positive' % lod.level)
            if prev is not None:
                if prev.level == lod.level:
                    raise TileMatrixError('duplicate level %d' % lod.level)
                if prev.resolution <= lod.resolution:
                    raise TileMatrixError(
                        'resolution of level %d (%r) not smaller than of level %d (%r)' % (
                            lod.level, lod.resolution, prev.level, prev.resolution))
            prev = lod

    def lod(self, level):
        """
        Return the `LevelOfDetail` for `level`.

        :raises InvalidLevel: if the level is not in this matrix
        """
        try:
            return self._lods[level]
        except (KeyError, TypeError):
            raise InvalidLevel(level)

    def resolution(self, level):
        return self.lod(level).resolution

    def __contains__(self, level):
        try:
            return level in self._lods
        except TypeError:
            return False

    @property
    def file_ext(self):
        """
        File extension of cached tiles.

        >>> TileMatrix((0, 0), format='PNG32').file_ext
        'png'
        >>> TileMatrix((0, 0), format='jpg').file_ext
        'jpeg'
        """
        return FILE_EXTENSIONS.get(self.format, self.format.lower())

    @classmethod
    def from_dict(cls, d):
        """
        Create a TileMatrix from a decoded ``tileInfo`` JSON object.
        """
        if not isinstance(d, dict):
            raise TileMatrixError('tile matrix is not a JSON object')
        try:
            origin = d['origin']
            lods = [(lod['level'], lod['resolution'], lod['scale']) for lod in d['lods']]
            return cls(
                origin=(origin['x'], origin['y']),
                tile_size=(d['cols'], d['rows']),
                levels=lods,
                spatial_reference=SpatialReference.from_dict(d.get('spatialReference') or {}),
                dpi=int(d['dpi']),
                format=d['format'],
                compression_quality=int(d.get('compressionQuality', DEFAULT_COMPRESSION_QUALITY)),
            )
        except KeyError as ex:
            raise TileMatrixError('missing %s in tile matrix' % ex)
        except (AttributeError, TypeError, ValueError) as ex:
            if isinstance(ex, TileMatrixError):
                raise
            raise TileMatrixError('invalid tile matrix: %s' % ex)

    def to_dict(self):
        return {
            'rows': self.tile_size[1],
            'cols': self.tile_size[0],
            'dpi': self.dpi,
            'format': self.format,
            'compressionQuality': self.compression_quality,
            'origin': {'x': self.origin.x, 'y': self.origin.y},
            'spatialReference': self.spatial_reference.to_dict(),
            'lods': [
                {'level': lod.level, 'resolution': lod.resolution, 'scale': lod.scale}
                for lod in self.levels
            ],
        }

    def to_json(self, indent=2):
        return json.dumps(self.to_dict(), indent=indent)

    def __eq__(self, other):
        if not isinstance(other, TileMatrix):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __ne__(self, other):
        equal_result = self.__eq__(other)
        if equal_result is NotImplemented:
            return NotImplemented
        return not equal_result

    __hash__ = None

    def __repr__(self):
        return '%s(%r, %r, %d levels, %r)' % (
            self.__class__.__name__, tuple(self.origin), self.tile_size,
            len(self.levels), self.spatial_reference)


def tile_matrix_from_json(doc):
    """
    Decode a TileMatrix from a JSON string or bytes.
    """
    try:
        d = json.loads(doc)
    except ValueError as ex:
        raise TileMatrixError('unable to decode tile matrix: %s' % ex)
    return TileMatrix.from_dict(d)


def load_tile_matrix(file_or_filename):
    """
    Load a TileMatrix from a file object or filename.
    """
    if isinstance(file_or_filename, str):
        with open(file_or_filename, 'rb') as f:
            return tile_matrix_from_json(f.read())
    return tile_matrix_from_json(file_or_filename.read())


def dump_tile_matrix(tile_matrix, file_or_filename):
    doc = tile_matrix.to_json()
    if isinstance(file_or_filename, str):
        with open(file_or_filename, 'w') as f:
            f.write(doc)
    else:
        file_or_filename.write(doc)


def bbox_from_extent(extent):
    """
    >>> bbox_from_extent({'xmin': -10, 'ymin': -5, 'xmax': 10, 'ymax': 5})
    (-10.0, -5.0, 10.0, 5.0)
    """
    return tuple(float(extent[k]) for k in ('xmin', 'ymin', 'xmax', 'ymax'))


def tile_matrix_from_service_info(service_info):
    """
    Return the TileMatrix and the full extent (or ``None``) from the
    JSON description of a tiled map service.
    """
    if 'tileInfo' not in service_info:
        raise TileMatrixError('service is not tiled (no tileInfo)')
    tile_matrix = TileMatrix.from_dict(service_info['tileInfo'])
    full_extent = None
    if service_info.get('fullExtent'):
        try:
            full_extent = bbox_from_extent(service_info['fullExtent'])
        except (KeyError, TypeError, ValueError):
            full_extent = None
    return tile_matrix, full_extent
