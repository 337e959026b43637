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
from typing import Any, Optional, Tuple, Union

import requests

# The profiling endpoint blocks for the whole sampling window before answering, so only the connection is bounded.
# If Tuple[float, Optional[float]], then the first value is connection-timeout and the second read-timeout.
# See https://requests.readthedocs.io/en/latest/user/advanced/#timeouts
DEFAULT_CONNECT_TIMEOUT = 5.0

TimeoutType = Union[float, Tuple[float, Optional[float]]]


class HTTPClientInterface:
    def get(self, url: str) -> requests.Response:
        """
        Issue a GET request. The returned response body is read from `response.raw` and must be released by the
        caller (`response.close()` or using the response as a context manager).

        :raises Exception: On transport-level failures (connection refused, DNS, timeout...).
        """
        raise NotImplementedError


class HTTPClient(HTTPClientInterface):
    def __init__(self, timeout: TimeoutType = (DEFAULT_CONNECT_TIMEOUT, None)) -> None:
        self._timeout = timeout
        self._session = requests.Session()

    def get(self, url: str) -> requests.Response:
        response = self._session.get(url, stream=True, timeout=self._timeout)
        # Reading from raw skips requests' decoding of Content-Encoding, let urllib3 do it.
        response.raw.decode_content = True
        return response

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "HTTPClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
