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
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel

from node_observability_utils.exceptions import RunAlreadyFinished


class RunType(str, Enum):
    CRIO = "CRIO"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ProfilingRun(BaseModel):
    """
    The outcome of a single profiling attempt.

    A run is created by `ProfilingRun.start()` and finalized exactly once by `finish()`, which sets `end_time` and
    either marks the run successful or records its error. Assigning to a finished run raises `RunAlreadyFinished`.
    """

    type: RunType
    begin_time: datetime
    end_time: Optional[datetime] = None
    successful: bool = False
    error: str = ""

    @classmethod
    def start(cls, run_type: RunType) -> "ProfilingRun":
        return cls(type=run_type, begin_time=_now())

    @property
    def finished(self) -> bool:
        return self.end_time is not None

    def finish(self, error: Optional[str] = None) -> "ProfilingRun":
        if self.finished:
            raise RunAlreadyFinished(self.type.value)
        if error is not None and not error:
            raise ValueError("error must be a non-empty string")

        if error is None:
            self.successful = True
            self.error = ""
        else:
            self.successful = False
            self.error = error
        # wall clock may step backwards between start and finish. Set last, the run is read-only from here on.
        self.end_time = max(_now(), self.begin_time)
        return self

    def __setattr__(self, name: str, value: Any) -> None:
        if self.finished:
            raise RunAlreadyFinished(self.type.value)
        super().__setattr__(name, value)


class Run(BaseModel):
    """Profiling runs executed for one request, identified by `id`."""

    id: str
    executed: List[ProfilingRun] = []

    @property
    def successful(self) -> bool:
        return all(pr.successful for pr in self.executed)

    @property
    def errors(self) -> List[str]:
        return [pr.error for pr in self.executed if not pr.successful]
