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
Spatial reference systems and bbox transformations (via pyproj).
"""
import math
import threading

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError, ProjError

import logging
log_proj = logging.getLogger('offlinetiles.proj')

# Esri and legacy IDs for spherical web mercator
WEBMERCATOR_IDS = (3857, 102100, 102113, 900913)
WEBMERCATOR_EXTENT = 20037508.342789244
WEBMERCATOR_MAX_LAT = 85.0511287798066


class TransformationError(Exception):
    pass


def get_epsg_num(epsg_code):
    """
    >>> get_epsg_num('ePsG:4326')
    4326
    >>> get_epsg_num(4313)
    4313
    >>> get_epsg_num('31466')
    31466
    >>> get_epsg_num('EPSG:102100')
    3857
    """
    if isinstance(epsg_code, str):
        epsg_code = int(epsg_code.rsplit(':', 1)[-1])
    if epsg_code in WEBMERCATOR_IDS:
        return 3857
    return epsg_code


_srs_cache = {}
_srs_cache_lock = threading.Lock()


def SRS(srs_code):
    """
    Return an SRS object for the given code (``'EPSG:4326'``, ``4326``,
    or an existing SRS). SRS objects are cached.

    :raises ValueError: for invalid or unknown codes

    >>> SRS(4326) is SRS('EPSG:4326')
    True
    """
    if isinstance(srs_code, _SRS):
        return srs_code
    epsg_num = get_epsg_num(srs_code)
    with _srs_cache_lock:
        srs = _srs_cache.get(epsg_num)
        if srs is None:
            try:
                crs = CRS.from_epsg(epsg_num)
            except CRSError as ex:
                raise ValueError('unknown SRS %r: %s' % (srs_code, ex)) from ex
            srs = _srs_cache[epsg_num] = _SRS('EPSG:%d' % epsg_num, crs)
        return srs


def srs_from_wkt(wkt):
    return _SRS(None, CRS.from_wkt(wkt))


def srs_from_spatial_reference(spatial_reference):
    """
    Return the SRS of a tile service `SpatialReference`.
    The well-known text wins over the latest wkid, which wins over the wkid.

    >>> from offlinetiles.grid.tile_matrix import SpatialReference
    >>> srs_from_spatial_reference(SpatialReference(102100)).srs_code
    'EPSG:3857'
    """
    if spatial_reference.wkid == 0 and spatial_reference.wkt:
        return srs_from_wkt(spatial_reference.wkt)
    return SRS(spatial_reference.latest_wkid or spatial_reference.wkid)


class _SRS(object):
    """
    A spatial reference system with an optional EPSG code.

    Transformations always use x/y (east/north, or lon/lat) axis order.
    """
    def __init__(self, srs_code, crs):
        self.srs_code = srs_code
        self.proj = crs

    def _transformer(self, other_srs):
        # Transformer objects must not be shared between threads
        return Transformer.from_crs(self.proj, other_srs.proj, always_xy=True)

    def transform_to(self, other_srs, points):
        """
        :type points: ``(x, y)`` or ``[(x1, y1), (x2, y2), …]``

        >>> [str(round(x, 5)) for x in SRS(4326).transform_to(SRS(3857), (8.22, 53.15))]
        ['915046.21432', '7010792.20171']
        >>> SRS(4326).transform_to(SRS(4326), (8.25, 53.5))
        (8.25, 53.5)
        """
        if self == other_srs:
            return points

        transformer = self._transformer(other_srs)
        if isinstance(points[0], (int, float)):
            return transformer.transform(*points)

        xs, ys = transformer.transform([p[0] for p in points], [p[1] for p in points])
        return list(zip(xs, ys))

    def transform_bbox_to(self, other_srs, bbox, densify_pts=21):
        """
        Transform `bbox` and return the bbox that contains the complete
        transformed area. Each edge is densified with `densify_pts` points,
        as edges are curved in most target systems.

        Geographic bboxes are clipped to the web mercator latitude range
        and edges beyond that range (or beyond the dateline) are set to
        the web mercator extent.

        >>> ['%.5f' % x for x in
        ...  SRS(4326).transform_bbox_to(SRS(3857), (8.2, 53.1, 8.3, 53.2))]
        ['912819.82450', '7001516.67745', '923951.77358', '7020078.53264']
        >>> SRS(4326).transform_bbox_to(SRS(4326), (8.25, 53.0, 8.5, 53.75))
        (8.25, 53.0, 8.5, 53.75)

        :raises TransformationError: if the bbox can't be transformed
        """
        if self == other_srs:
            return bbox

        to_webmercator = self.is_latlong and other_srs.srs_code == 'EPSG:3857'
        src_bbox = bbox
        if to_webmercator:
            src_bbox = (
                max(bbox[0], -180.0),
                max(bbox[1], -WEBMERCATOR_MAX_LAT),
                min(bbox[2], 180.0),
                min(bbox[3], WEBMERCATOR_MAX_LAT),
            )

        try:
            result = self._transformer(other_srs).transform_bounds(
                *src_bbox, densify_pts=densify_pts)
        except ProjError as ex:
            raise TransformationError('unable to transform %s from %r to %r: %s' % (
                bbox, self, other_srs, ex)) from ex
        if not all(math.isfinite(v) for v in result):
            raise TransformationError('unable to transform %s from %r to %r' % (
                bbox, self, other_srs))

        if to_webmercator:
            minx, miny, maxx, maxy = result
            if bbox[0] <= -180.0:
                minx = -WEBMERCATOR_EXTENT
            if bbox[1] <= -WEBMERCATOR_MAX_LAT:
                miny = -WEBMERCATOR_EXTENT
            if bbox[2] >= 180.0:
                maxx = WEBMERCATOR_EXTENT
            if bbox[3] >= WEBMERCATOR_MAX_LAT:
                maxy = WEBMERCATOR_EXTENT
            result = (minx, miny, maxx, maxy)

        log_proj.debug('transformed from %r to %r (%s -> %s)', self, other_srs, bbox, result)
        return tuple(result)

    @property
    def is_latlong(self):
        return self.proj.is_geographic

    def __eq__(self, other):
        if not isinstance(other, _SRS):
            return NotImplemented
        if self.srs_code and other.srs_code:
            return self.srs_code == other.srs_code
        return self.proj == other.proj

    def __ne__(self, other):
        equal_result = self.__eq__(other)
        if equal_result is NotImplemented:
            return NotImplemented
        return not equal_result

    def __hash__(self):
        return hash(self.srs_code or self.proj.to_wkt())

    def __repr__(self):
        return "SRS('%s')" % (self.srs_code or self.proj.name, )
