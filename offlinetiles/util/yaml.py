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
YAML loading for configuration files.
"""
import yaml

# libyaml is much faster for large configurations
if getattr(yaml, '__with_libyaml__', False):
    _SafeLoader = yaml.CSafeLoader
else:
    _SafeLoader = yaml.SafeLoader


class YAMLError(Exception):
    pass


def load_yaml_file(file_or_filename):
    """
    Load YAML dict from file object or filename.
    """
    if isinstance(file_or_filename, str):
        with open(file_or_filename, 'rb') as f:
            return load_yaml(f)
    return load_yaml(file_or_filename)


def load_yaml(doc):
    """
    Load YAML dict from file object or string. Only plain YAML types
    are supported, no Python object tags.

    >>> load_yaml('offline: true')
    {'offline': True}

    :raises YAMLError: for syntax errors or if the document is not a dict
    """
    try:
        data = yaml.load(doc, Loader=_SafeLoader)
    except yaml.YAMLError as ex:
        raise YAMLError(str(ex)) from ex
    if not isinstance(data, dict):
        raise YAMLError("configuration not a YAML dictionary, got %s" % type(data).__name__)
    return data
