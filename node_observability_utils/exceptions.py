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
import subprocess
from typing import List, Union


class RunAlreadyFinished(Exception):
    def __init__(self, run_type: str) -> None:
        super().__init__(f"Profiling run of type {run_type!r} was already finished")


class FileWriteError(Exception):
    def __init__(self, path: str, cause: BaseException) -> None:
        super().__init__(f"failed to write to file {path}: {cause}")
        self.path = path
        self.cause = cause


class CommandExecutionError(Exception):
    """
    Raised by command wrappers when the prepared command could not be run or exited with a failure.
    `output` holds the combined stdout/stderr of the command (or the spawn error) for diagnosis.
    """

    def __init__(self, cmd: List[str], output: str) -> None:
        super().__init__(f"Command {' '.join(cmd)!r} failed: {output}")
        self.cmd = cmd
        self.output = output


class CalledProcessError(subprocess.CalledProcessError):
    # Adds stdout & stderr to the string representation
    def __str__(self) -> str:
        return f"{super().__str__()}\nstdout: {_decode(self.stdout)}\nstderr: {_decode(self.stderr)}"


class CalledProcessTimeoutError(CalledProcessError):
    def __init__(
        self,
        timeout: float,
        returncode: int,
        cmd: Union[str, List[str]],
        output: Union[str, bytes, None] = None,
        stderr: Union[str, bytes, None] = None,
    ) -> None:
        super().__init__(returncode, cmd, output, stderr)
        self.timeout = timeout

    def __str__(self) -> str:
        return f"Timed out after {self.timeout} seconds\n" + super().__str__()


def _decode(data: Union[str, bytes, None]) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data
