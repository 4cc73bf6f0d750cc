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

from offlinetiles.util.yaml import load_yaml, load_yaml_file, YAMLError


class TestLoadYAMLFile(object):
    @pytest.fixture
    def yaml_file(self, tmpdir):
        def yaml_file(content):
            tmpdir.join('conf.yaml').write_text(content, 'utf-8')
            return tmpdir.join('conf.yaml').strpath
        return yaml_file

    def test_load_yaml_file_object(self, yaml_file):
        f = yaml_file("download:\n  levels:\n   - 1\n   - 2")
        with open(f) as fp:
            doc = load_yaml_file(fp)
        assert doc == {"download": {"levels": [1, 2]}}

    def test_load_yaml_file_filename(self, yaml_file):
        f = yaml_file("download:\n  levels: [1, 2]")
        assert load_yaml_file(f) == {"download": {"levels": [1, 2]}}

    def test_load_yaml(self):
        assert load_yaml("offline: false\ncache:\n  directory: tiles") == {
            "offline": False, "cache": {"directory": "tiles"}}

    def test_load_yaml_with_tabs(self, yaml_file):
        f = yaml_file("cache:\n\tdirectory: tiles")
        with pytest.raises(YAMLError) as excinfo:
            load_yaml_file(f)
        assert "line 2" in str(excinfo.value)

    def test_load_yaml_string_error(self):
        with pytest.raises(YAMLError) as excinfo:
            load_yaml('only a string')
        assert "not a YAML dict" in str(excinfo.value)

    def test_no_python_objects(self):
        with pytest.raises(YAMLError):
            load_yaml("foo: !!python/object/apply:os.system ['true']")
