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
Configuration loading and session initializing.
"""
import copy
import os

from offlinetiles.client.http import HTTPClient, HTTPClientError, auth_data_from_url
from offlinetiles.client.tile import TileServiceClient
from offlinetiles.config import defaults
from offlinetiles.config.validator import validate
from offlinetiles.grid import TileMatrixError
from offlinetiles.grid.tile_matrix import load_tile_matrix
from offlinetiles.session import CacheSession, load_offline_tile_matrix
from offlinetiles.util.bbox import bbox_tuple
from offlinetiles.util.yaml import load_yaml_file, YAMLError

import logging
log = logging.getLogger('offlinetiles.config')


class ConfigurationError(Exception):
    pass


def load_configuration(conf_file, ignore_warnings=False):
    """
    Load, validate and return the configuration of `conf_file`.

    :raises ConfigurationError: if the file can't be loaded or is invalid
    """
    conf_base_dir = os.path.abspath(os.path.dirname(conf_file))

    try:
        conf_dict = load_configuration_file([os.path.basename(conf_file)], conf_base_dir)
    except YAMLError as ex:
        raise ConfigurationError(ex) from ex
    except OSError as ex:
        raise ConfigurationError('unable to read configuration: %s' % ex) from ex

    errors = validate(conf_dict)
    for error in errors:
        log.warning(error)
    if errors and not ignore_warnings:
        raise ConfigurationError('invalid configuration')

    conf_dict = merge_dict(conf_dict, load_default_config())
    return OfflineTilesConfiguration(conf_dict, conf_base_dir)


def load_default_config():
    return {
        'service': copy.deepcopy(defaults.service),
        'cache': copy.deepcopy(defaults.cache),
        'offline': defaults.offline,
        'download': copy.deepcopy(defaults.download),
    }


def load_configuration_file(files, working_dir):
    """
    Return configuration dict from imported files
    """
    conf_dict = {}
    for conf_file in files:
        conf_file = os.path.normpath(os.path.join(working_dir, conf_file))
        log.info('reading: %s' % conf_file)
        current_dict = load_yaml_file(conf_file)
        if 'base' in current_dict:
            current_working_dir = os.path.dirname(conf_file)
            base_files = current_dict.pop('base')
            if isinstance(base_files, str):
                base_files = [base_files]
            imported_dict = load_configuration_file(base_files, current_working_dir)
            current_dict = merge_dict(current_dict, imported_dict)
        conf_dict = merge_dict(conf_dict, current_dict)

    return conf_dict


def merge_dict(conf, base):
    """
    Return `base` dict with values from `conf` merged in.

    >>> merge_dict({'download': {'levels': [3]}}, {'download': {'levels': [1, 2], 'retries': 2}})
    {'download': {'levels': [3], 'retries': 2}}
    """
    for k, v in conf.items():
        if k not in base:
            base[k] = v
        else:
            if isinstance(base[k], dict):
                if isinstance(v, dict):
                    base[k] = merge_dict(v, base[k])
                elif v is not None:
                    base[k] = v
            elif isinstance(base[k], list):
                if v is not None:
                    if k in ['bbox', 'levels']:
                        base[k] = v
                    elif len(v) == 0:  # delete
                        base[k] = None
                    else:
                        base[k] = base[k] + v
            else:
                base[k] = v
    return base


class OfflineTilesConfiguration(object):
    """
    Validated configuration, merged with the defaults. Creates the tile
    service client and cache sessions.
    """
    def __init__(self, conf, conf_base_dir=None):
        self.conf = conf
        self.conf_base_dir = conf_base_dir or os.getcwd()
        self._tile_matrix = None

    @property
    def service_conf(self):
        return self.conf['service']

    @property
    def cache_conf(self):
        return self.conf['cache']

    @property
    def download_conf(self):
        return self.conf['download']

    @property
    def offline(self):
        return bool(self.conf.get('offline'))

    def abspath(self, path):
        return os.path.normpath(os.path.join(self.conf_base_dir, path))

    @property
    def cache_dir(self):
        return self.abspath(self.cache_conf['directory'])

    def levels(self):
        """
        Returns the configured download levels as list, or ``None``.

        >>> OfflineTilesConfiguration({'download': {'levels': {'from': 2, 'to': 4}}}).levels()
        [2, 3, 4]
        """
        levels = self.download_conf.get('levels')
        if levels is None:
            return None
        if isinstance(levels, dict):
            return list(range(levels['from'], levels['to'] + 1))
        return list(levels)

    def bbox(self):
        bbox = self.download_conf.get('bbox')
        if bbox is None:
            return None
        return bbox_tuple(bbox)

    def bbox_srs(self):
        return self.download_conf.get('bbox_srs')

    def http_client(self):
        url = self.service_conf.get('url')
        if not url:
            raise ConfigurationError("missing 'url' in service configuration")
        url, (username, password) = auth_data_from_url(url)
        return url, HTTPClient(
            url, username, password,
            insecure=self.service_conf.get('ssl_no_cert_checks', False),
            ssl_ca_certs=self.service_conf.get('ssl_ca_certs'),
            timeout=self.service_conf.get('timeout'),
            headers=self.service_conf.get('headers'),
        )

    def client(self):
        """
        Returns the `TileServiceClient` for the configured service.

        :raises ConfigurationError: if no service URL is configured
        """
        url, http_client = self.http_client()
        return TileServiceClient(
            url,
            token=self.service_conf.get('token'),
            http_client=http_client,
            verify_images=self.service_conf.get('verify_images', False),
        )

    def tile_matrix(self, offline=None):
        """
        Returns the `TileMatrix` of the tile service. It is loaded from
        the configured file, from the cache directory (offline) or from
        the service (online).

        :raises ConfigurationError: if the tile matrix is not available
        """
        if self._tile_matrix is not None:
            return self._tile_matrix
        if offline is None:
            offline = self.offline

        try:
            if self.cache_conf.get('tile_matrix'):
                self._tile_matrix = load_tile_matrix(self.abspath(self.cache_conf['tile_matrix']))
            elif offline:
                self._tile_matrix = load_offline_tile_matrix(self.cache_dir)
            else:
                self._tile_matrix, _full_extent = self.client().get_tile_matrix()
        except (TileMatrixError, HTTPClientError, OSError) as ex:
            raise ConfigurationError('unable to load tile matrix: %s' % ex) from ex
        return self._tile_matrix

    def session(self, offline=None):
        """
        Create a new `CacheSession`.

        :param offline: overwrite the configured mode
        """
        if offline is None:
            offline = self.offline
        client = None
        if not offline or self.service_conf.get('url'):
            client = self.client()
        return CacheSession(
            self.tile_matrix(offline=offline),
            self.cache_dir,
            offline=offline,
            client=client,
            directory_layout=self.cache_conf.get('directory_layout', 'offline'),
            file_ext=self.cache_conf.get('file_ext'),
            concurrency=self.download_conf.get('concurrency', 4),
            retries=self.download_conf.get('retries', 0),
        )
