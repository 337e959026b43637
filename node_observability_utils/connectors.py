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
from abc import ABC, abstractmethod
from typing import List, Optional

from node_observability_utils.exceptions import CalledProcessError, CalledProcessTimeoutError, CommandExecutionError
from node_observability_utils.linux.run_process import run_process
from node_observability_utils.logging import LoggerType, get_logger


class CmdWrapper(ABC):
    """
    An external command that is prepared once and then executed once.
    """

    @abstractmethod
    def prepare(self, name: str, args: List[str]) -> None:
        pass

    @abstractmethod
    def execute(self) -> str:
        """
        Runs the prepared command and returns its combined stdout/stderr.

        :raises CommandExecutionError: If the command could not be started or exited with a failure. The combined
        output is available on the exception.
        """
        pass


class Connector(CmdWrapper):
    def __init__(self, timeout: Optional[float] = None, logger: Optional[LoggerType] = None) -> None:
        self._timeout = timeout
        self._logger = logger if logger is not None else get_logger()
        self._cmd: Optional[List[str]] = None

    def prepare(self, name: str, args: List[str]) -> None:
        self._cmd = [name, *args]

    def execute(self) -> str:
        assert self._cmd is not None, "command not prepared!"
        try:
            result = run_process(self._cmd, self._logger, timeout=self._timeout, merge_stderr=True)
        except CalledProcessTimeoutError as e:
            output = _decode_output(e.output)
            raise CommandExecutionError(self._cmd, f"timed out after {e.timeout} seconds\n{output}".strip()) from e
        except CalledProcessError as e:
            raise CommandExecutionError(self._cmd, _decode_output(e.output)) from e
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            # e.g the executable is missing, invalid arguments or a failing preexec_fn
            raise CommandExecutionError(self._cmd, str(e)) from e
        return _decode_output(result.stdout)


def _decode_output(output: Optional[bytes]) -> str:
    return output.decode(errors="replace").strip() if output else ""
