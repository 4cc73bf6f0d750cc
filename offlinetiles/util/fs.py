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
File system related utility functions.
"""
import os
import errno
import random


def ensure_directory(file_name):
    """
    Create the directory of `file_name` if it does not exist, else do
    nothing. Concurrent creation of the same directory is not an error.
    """
    dir_name = os.path.dirname(file_name)
    if dir_name:
        make_directories(dir_name)


def make_directories(dir_name):
    if not os.path.isdir(dir_name):
        try:
            os.makedirs(dir_name)
        except OSError as e:
            if e.errno != errno.EEXIST or not os.path.isdir(dir_name):
                raise e


def is_writable_directory(dir_name):
    return os.path.isdir(dir_name) and os.access(dir_name, os.W_OK | os.X_OK)


def write_atomic(filename, data):
    """
    write_atomic writes `data` to a random file in filename's directory
    first and renames that file to the target filename afterwards.
    Rename is atomic on all POSIX platforms, the temporary file is
    removed if anything fails.
    """
    # random filename to prevent concurrent writes to the same temp file
    path_tmp = filename + '.tmp-' + str(random.randint(0, 99999999))
    try:
        fd = os.open(path_tmp, os.O_EXCL | os.O_CREAT | os.O_WRONLY | getattr(os, 'O_BINARY', 0))
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.replace(path_tmp, filename)
    except Exception:
        try:
            os.unlink(path_tmp)
        except OSError:
            pass
        raise
