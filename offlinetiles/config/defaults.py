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

service = dict(
    token = None,
    timeout = 60,
    ssl_ca_certs = None,
    ssl_no_cert_checks = False,
    verify_images = False,
    headers = {},
)

cache = dict(
    directory = './cache_data',
    directory_layout = 'offline',
    file_ext = None,
    tile_matrix = None,
)

offline = False

download = dict(
    # number of concurrent requests to the tile service
    concurrency = 4,
    retries = 0,
    levels = None,
    bbox = None,
    bbox_srs = None,
)
