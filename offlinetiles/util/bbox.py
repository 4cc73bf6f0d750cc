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
Helpers for ``(xmin, ymin, xmax, ymax)`` bboxes.
"""


def bbox_tuple(bbox):
    """
    Return `bbox` as tuple of four floats. Accepts sequences and comma
    separated strings.

    >>> bbox_tuple('20,-30,40,-10')
    (20.0, -30.0, 40.0, -10.0)
    >>> bbox_tuple([20,-30,40,-10])
    (20.0, -30.0, 40.0, -10.0)

    :raises ValueError: for invalid values or not exactly four values
    """
    if isinstance(bbox, str):
        bbox = bbox.split(',')
    bbox = tuple(map(float, bbox))
    if len(bbox) != 4:
        raise ValueError('bbox needs four values, got %d' % len(bbox))
    return bbox


def merge_bbox(bbox1, bbox2):
    """
    Return the bbox that contains both bboxes.

    >>> merge_bbox((-10, 20, 0, 30), (30, -20, 90, 10))
    (-10, -20, 90, 30)
    """
    return (
        min(bbox1[0], bbox2[0]),
        min(bbox1[1], bbox2[1]),
        max(bbox1[2], bbox2[2]),
        max(bbox1[3], bbox2[3]),
    )


def bbox_is_empty(bbox):
    """
    Return ``True`` if the bbox has no area. Inverted bboxes are empty.

    >>> bbox_is_empty((0, 0, 10, 0))
    True
    >>> bbox_is_empty((0, 0, 10, 10))
    False
    >>> bbox_is_empty((10, 0, 0, 10))
    True
    """
    return bbox[0] >= bbox[2] or bbox[1] >= bbox[3]
