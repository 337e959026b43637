#
# Copyright (C) 2023 Intel Corporation
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
#
import os
import shutil
from typing import IO

from node_observability_utils.exceptions import FileWriteError

PPROF_EXTENSION = "pprof"


def pprof_output_file_path(output_dir: str, uid: str, prefix: str = "crio") -> str:
    """
    Path of the pprof file of run `uid`: <output_dir>/<prefix>-<uid>.pprof.
    Distinct uids always map to distinct paths in the same directory.
    """
    return os.path.join(output_dir, f"{prefix}-{uid}.{PPROF_EXTENSION}")


def write_to_file(stream: IO[bytes], path: str) -> None:
    """
    Drains `stream` into `path`, creating or truncating the file.

    :raises FileWriteError: If reading the stream or writing the file failed. The file may be left partially written.
    """
    try:
        with open(path, "wb") as f:
            shutil.copyfileobj(stream, f)
    except Exception as e:
        raise FileWriteError(path, e) from e
