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
from abc import ABC, abstractmethod
from functools import partial
from typing import Callable, List, Optional

import requests

from node_observability_utils.connectors import CmdWrapper, Connector
from node_observability_utils.exceptions import CommandExecutionError, FileWriteError
from node_observability_utils.http_client import HTTPClient, HTTPClientInterface
from node_observability_utils.logging import LoggerType, get_adapter
from node_observability_utils.profiling.output import pprof_output_file_path, write_to_file
from node_observability_utils.runs import ProfilingRun, RunType

DEFAULT_CRIO_PROFILE_HOST = "localhost"
DEFAULT_CRIO_PROFILE_PORT = 6060
CRIO_PROFILE_PATH = "debug/pprof/profile"
CRIO_PPROF_PREFIX = "crio"

CURL_PATH = "curl"


class CrioProfiler(ABC):
    """
    Triggers a profiling of the CRI-O daemon running on this node and stores the resulting pprof under
    `output_dir`. Failures never propagate to the caller, they are reported on the returned run.
    """

    def __init__(self, output_dir: str, logger: Optional[LoggerType] = None) -> None:
        self.output_dir = output_dir
        self.logger = get_adapter(logger)

    def output_file_path(self, uid: str) -> str:
        return pprof_output_file_path(self.output_dir, uid, CRIO_PPROF_PREFIX)

    @abstractmethod
    def profile(self, uid: str) -> ProfilingRun:
        pass


class CrioUnixSocketProfiler(CrioProfiler):
    """
    Calls CRI-O's profiling endpoint through its unix socket, using curl to store the response.
    Requires access to the host's CRI-O socket.
    """

    def __init__(
        self,
        output_dir: str,
        unix_socket: str,
        cmd_factory: Optional[Callable[[], CmdWrapper]] = None,
        logger: Optional[LoggerType] = None,
    ) -> None:
        super().__init__(output_dir, logger)
        self.unix_socket = unix_socket
        self._cmd_factory = cmd_factory if cmd_factory is not None else partial(Connector, logger=self.logger)

    @property
    def url(self) -> str:
        return f"http://{DEFAULT_CRIO_PROFILE_HOST}/{CRIO_PROFILE_PATH}"

    def _curl_args(self, uid: str) -> List[str]:
        return [
            "--silent",
            "--show-error",
            "--fail",
            "--unix-socket",
            self.unix_socket,
            self.url,
            "--output",
            self.output_file_path(uid),
        ]

    def profile(self, uid: str) -> ProfilingRun:
        run = ProfilingRun.start(RunType.CRIO)
        self.logger.info(
            f"Requesting CRI-O profiling from {self.url} via socket {self.unix_socket}", uid=uid, url=self.url
        )

        try:
            cmd = self._cmd_factory()
            cmd.prepare(CURL_PATH, self._curl_args(uid))
            cmd.execute()
        except CommandExecutionError as e:
            self.logger.error("CRI-O profiling request via unix socket failed", uid=uid, output=e.output)
            return run.finish(f"error sending profiling request to crio: {e.output}")
        except Exception as e:
            self.logger.error("Failed running CRI-O profiling command", uid=uid, exc_info=True)
            return run.finish(f"error sending profiling request to crio: {e}")

        self.logger.info("CRI-O profiling request via unix socket successfully finished", uid=uid)
        return run.finish()


class CrioHTTPProfiler(CrioProfiler):
    """
    Calls CRI-O's profiling endpoint over HTTP on the loopback address and stores the response body.
    Requires access to the host's network namespace.
    """

    def __init__(
        self,
        output_dir: str,
        client: Optional[HTTPClientInterface] = None,
        logger: Optional[LoggerType] = None,
    ) -> None:
        super().__init__(output_dir, logger)
        self.client = client if client is not None else HTTPClient()

    @property
    def url(self) -> str:
        return f"http://{DEFAULT_CRIO_PROFILE_HOST}:{DEFAULT_CRIO_PROFILE_PORT}/{CRIO_PROFILE_PATH}"

    def profile(self, uid: str) -> ProfilingRun:
        run = ProfilingRun.start(RunType.CRIO)
        self.logger.info(f"Requesting CRI-O profiling from {self.url}", uid=uid, url=self.url)

        try:
            response = self.client.get(self.url)
        except Exception as e:
            self.logger.error("Failed sending CRI-O profiling request", uid=uid, exc_info=True)
            return run.finish(f"failed sending profiling request to crio: {e}")

        with response:
            if response.status_code != requests.codes.ok:
                self.logger.error(
                    f"CRI-O profiling request returned status code {response.status_code}",
                    uid=uid,
                    status_code=response.status_code,
                )
                return run.finish(f"error status code received from crio: {response.status_code}")

            try:
                write_to_file(response.raw, self.output_file_path(uid))
            except FileWriteError as e:
                self.logger.error("Failed writing CRI-O profiling data", uid=uid, path=e.path, exc_info=True)
                return run.finish(f"failed writing crio profiling data into file: {e}")

        self.logger.info("CRI-O profiling request via HTTP successfully finished", uid=uid)
        return run.finish()
