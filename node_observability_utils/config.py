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
from functools import partial
from typing import Optional

from pydantic import BaseModel

from node_observability_utils.connectors import Connector
from node_observability_utils.http_client import DEFAULT_CONNECT_TIMEOUT, HTTPClient
from node_observability_utils.logging import LoggerType
from node_observability_utils.profiling.crio import CrioHTTPProfiler, CrioProfiler, CrioUnixSocketProfiler

DEFAULT_CRIO_UNIX_SOCKET = "/var/run/crio/crio.sock"


class CrioProfilingConfig(BaseModel):
    output_dir: str
    crio_unix_socket: str = DEFAULT_CRIO_UNIX_SOCKET
    # Profile through the socket (needs the host socket mounted) rather than over the host network namespace.
    prefer_unix_socket: bool = True
    http_timeout: float = DEFAULT_CONNECT_TIMEOUT
    command_timeout: Optional[float] = None


def create_crio_profiler(config: CrioProfilingConfig, logger: Optional[LoggerType] = None) -> CrioProfiler:
    if config.prefer_unix_socket:
        return CrioUnixSocketProfiler(
            config.output_dir,
            config.crio_unix_socket,
            cmd_factory=partial(Connector, timeout=config.command_timeout, logger=logger),
            logger=logger,
        )
    return CrioHTTPProfiler(config.output_dir, client=HTTPClient(timeout=(config.http_timeout, None)), logger=logger)
