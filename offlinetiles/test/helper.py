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

import glob as glob_
import os
import re
import shutil
import tempfile


class TempDir(object):
    """
    Context manager for a temporary directory, removed on exit.

    >>> with TempDir() as tmp:
    ...     assert os.path.isdir(tmp)
    >>> os.path.exists(tmp)
    False
    """
    def __init__(self):
        self.tmp_dir = None

    def __enter__(self):
        self.tmp_dir = tempfile.mkdtemp()
        return self.tmp_dir

    def __exit__(self, exc_type, exc_val, exc_tb):
        if os.path.exists(self.tmp_dir):
            shutil.rmtree(self.tmp_dir, ignore_errors=True)


class ChangeWorkingDir(object):
    def __init__(self, dirname):
        self.dirname = dirname
        self.old_dirname = None

    def __enter__(self):
        self.old_dirname = os.getcwd()
        os.chdir(self.dirname)

    def __exit__(self, exc_type, exc_val, exc_tb):
        os.chdir(self.old_dirname)


def assert_files_in_dir(dir, expected, glob=None):
    """
    Check that `dir` contains exactly the files in `expected`.
    """
    if glob is not None:
        files = [os.path.basename(f) for f in glob_.glob(os.path.join(dir, glob))]
    else:
        files = os.listdir(dir)
    files.sort()
    assert sorted(expected) == files, '%r != %r' % (sorted(expected), files)


def assert_re(value, regex):
    """
    >>> assert_re('hello', 'l+')
    >>> assert_re('hello', 'l{3}')
    Traceback (most recent call last):
        ...
    AssertionError: hello ~= l{3}
    """
    match = re.search(regex, value)
    assert match is not None, '%s ~= %s' % (value, regex)
