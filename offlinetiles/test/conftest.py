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

import pytest

from offlinetiles.grid.tile_matrix import TileMatrix
from offlinetiles.test.unit.test_tile_matrix import TILE_INFO


@pytest.fixture
def tile_matrix():
    """
    Web mercator tile matrix with levels 0-2 and JPEG tiles.
    """
    return TileMatrix.from_dict(TILE_INFO)
