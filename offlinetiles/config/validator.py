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
Validation of configuration dicts. Structural checks are done with the
JSON schema in ``config-schema.json``, checks between values are done in
Python.
"""
import json
import os.path
from typing import Iterable

from jsonschema.exceptions import ValidationError
from jsonschema.validators import Draft202012Validator

from offlinetiles.util.bbox import bbox_is_empty, bbox_tuple

import logging
log = logging.getLogger('offlinetiles.config')


with open(os.path.join(os.path.dirname(__file__), 'config-schema.json')) as schema_file:
    schema = json.load(schema_file)

_validator = Draft202012Validator(schema=schema)


def get_error_messages(errors: Iterable[ValidationError]) -> list[str]:
    """
    Return one message for each error and for each error of the
    sub-schemas (``oneOf``), with the location in the configuration.
    """
    msgs = []
    for error in errors:
        path = error.json_path.replace('$', 'root', 1)
        msgs.append(f'{error.message} in {path}')
        if error.context:
            msgs.extend(get_error_messages(error.context))
    return msgs


def validate(conf_dict: dict) -> list[str]:
    """
    Return a list of error messages, empty for a valid configuration.
    """
    errors = get_error_messages(_validator.iter_errors(conf_dict))
    if errors:
        # value checks expect a valid structure
        return errors
    return _validate_download(conf_dict.get('download') or {})


def _validate_download(download_conf: dict) -> list[str]:
    errors = []
    levels = download_conf.get('levels')
    if isinstance(levels, dict) and levels['from'] > levels['to']:
        errors.append(
            f"levels from {levels['from']} is larger than to {levels['to']} in root.download.levels")

    bbox = download_conf.get('bbox')
    if bbox is not None:
        try:
            bbox = bbox_tuple(bbox)
        except ValueError as ex:
            errors.append(f'{ex} in root.download.bbox')
        else:
            if bbox_is_empty(bbox):
                errors.append(f'bbox {list(bbox)} has no area (xmin >= xmax or ymin >= ymax) in root.download.bbox')
    return errors
