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
import ctypes
import ctypes.util
import os
import signal
import subprocess
from typing import Any, Callable, List, Optional, Tuple

from node_observability_utils.exceptions import CalledProcessError, CalledProcessTimeoutError
from node_observability_utils.logging import LoggerType

PR_SET_PDEATHSIG = 1

libc: Optional[ctypes.CDLL] = None


def prctl(*args: Any) -> int:
    global libc
    if libc is None:
        libc = ctypes.CDLL(ctypes.util.find_library("c") or "libc.so.6", use_errno=True)

    ret = libc.prctl(*args)
    if ret == -1:
        errno = ctypes.get_errno()
        raise OSError(errno, os.strerror(errno))
    return ret


def _wrap_callbacks(callbacks: List[Callable]) -> Callable:
    # Expects array of callback.
    # Returns one callback that call each one of them, and returns the retval of last callback
    def wrapper() -> Any:
        ret = None
        for cb in callbacks:
            ret = cb()

        return ret

    return wrapper


class RunProcess:
    """
    Runs a command to completion, optionally bounded by `timeout` seconds after which the process is killed
    with `kill_signal` and reaped. With `merge_stderr`, stderr is redirected into stdout so the result holds
    the combined output of the command in `stdout`.
    """

    def __init__(
        self,
        cmd: List[str],
        logger: LoggerType,
        suppress_log: bool = False,
        check: bool = True,
        timeout: Optional[float] = None,
        kill_signal: signal.Signals = signal.SIGKILL,
        merge_stderr: bool = False,
    ) -> None:
        self.cmd = cmd
        self.logger = logger
        self.suppress_log = suppress_log
        self.check = check
        self.timeout = timeout
        self.kill_signal = kill_signal
        self.merge_stderr = merge_stderr

        self.process: Optional[subprocess.Popen] = None

    def start(self, term_on_parent_death: bool = True) -> subprocess.Popen:
        assert self.process is None, "process already started!"
        self.logger.debug(f"Running command: ({' '.join(self.cmd)})")

        preexec_fn: Callable = os.setpgrp
        if term_on_parent_death:
            preexec_fn = _wrap_callbacks([self._set_child_termination_on_parent_death, preexec_fn])

        self.process = subprocess.Popen(
            self.cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if self.merge_stderr else subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            preexec_fn=preexec_fn,
        )
        return self.process

    def _set_child_termination_on_parent_death(self) -> None:
        try:
            prctl(PR_SET_PDEATHSIG, int(signal.SIGTERM))
        except OSError as e:
            self.logger.warning(
                f"Failed to set parent-death signal on child process. errno: {e.errno}, strerror: {e.strerror}"
            )

    def reap(self) -> int:
        assert self.process is not None, "process not started!"
        # kill the process and read its output so far
        self.process.send_signal(self.kill_signal)
        self.process.wait()
        self.logger.debug(f"({self.process.args!r}) was killed by us with signal {self.kill_signal} due to timeout")
        return self.process.returncode

    def reap_and_read_output(self) -> Tuple[int, bytes, bytes]:
        assert self.process is not None, "process not started!"
        returncode = self.reap()
        stdout, stderr = self.process.communicate()
        return returncode, stdout, stderr

    def run(self) -> "subprocess.CompletedProcess[bytes]":
        stdout = None
        stderr = None
        reraise_exc: Optional[BaseException] = None
        with self.start() as process:
            try:
                stdout, stderr = process.communicate(timeout=self.timeout)
            except subprocess.TimeoutExpired:
                returncode, stdout, stderr = self.reap_and_read_output()
                assert self.timeout is not None
                reraise_exc = CalledProcessTimeoutError(self.timeout, returncode, self.cmd, stdout, stderr)
            except BaseException as e:  # noqa
                _, stdout, stderr = self.reap_and_read_output()
                reraise_exc = e
            retcode = process.poll()
            assert retcode is not None  # only None if child has not terminated

        result: subprocess.CompletedProcess[bytes] = subprocess.CompletedProcess(process.args, retcode, stdout, stderr)

        self.logger.debug(f"({process.args!r}) exit code: {result.returncode}")
        if not self.suppress_log:
            if result.stdout:
                self.logger.debug(f"({process.args!r}) stdout: {result.stdout.decode(errors='replace')!r}")
            if result.stderr:
                self.logger.debug(f"({process.args!r}) stderr: {result.stderr.decode(errors='replace')!r}")
        if reraise_exc is not None:
            raise reraise_exc
        elif self.check and retcode != 0:
            raise CalledProcessError(retcode, process.args, output=stdout, stderr=stderr)
        return result


def run_process(
    cmd: List[str],
    logger: LoggerType,
    suppress_log: bool = False,
    check: bool = True,
    timeout: Optional[float] = None,
    kill_signal: signal.Signals = signal.SIGKILL,
    merge_stderr: bool = False,
) -> "subprocess.CompletedProcess[bytes]":
    return RunProcess(cmd, logger, suppress_log, check, timeout, kill_signal, merge_stderr).run()
