import logging
import os
import re
from pathlib import Path
from typing import Optional

import pytest
import requests
from requests_mock import Mocker

from node_observability_utils.connectors import Connector
from node_observability_utils.http_client import HTTPClient
from node_observability_utils.profiling.crio import CrioHTTPProfiler, CrioUnixSocketProfiler
from node_observability_utils.runs import ProfilingRun, RunType
from tests.node_observability_utils.fakes import (
    CURL_CONNECT_ERROR,
    FakeConnector,
    FakeHTTPClient,
    new_fake_response,
)

CRIO_HTTP_URL = "http://localhost:6060/debug/pprof/profile"


def assert_finished(run: ProfilingRun, successful: bool) -> None:
    assert run.type == RunType.CRIO
    assert run.finished
    assert run.begin_time <= run.end_time
    assert run.successful == successful
    if successful:
        assert run.error == ""
    else:
        assert run.error != ""


def test_unix_socket_profile_successful(output_dir: str) -> None:
    connector = FakeConnector()
    profiler = CrioUnixSocketProfiler(output_dir, "/tmp/fakeSocket", cmd_factory=lambda: connector)

    run = profiler.profile("1234")

    assert_finished(run, successful=True)
    assert connector.executions == 1
    assert connector.cmd == [
        "curl",
        "--silent",
        "--show-error",
        "--fail",
        "--unix-socket",
        "/tmp/fakeSocket",
        "http://localhost/debug/pprof/profile",
        "--output",
        os.path.join(output_dir, "crio-1234.pprof"),
    ]


def test_unix_socket_profile_command_error(output_dir: str) -> None:
    connector = FakeConnector(output=CURL_CONNECT_ERROR, fail=True)
    profiler = CrioUnixSocketProfiler(output_dir, "/tmp/fakeSocket", cmd_factory=lambda: connector)

    run = profiler.profile("1234")

    assert_finished(run, successful=False)
    assert run.error == f"error sending profiling request to crio: {CURL_CONNECT_ERROR}"
    # no retries
    assert connector.executions == 1


def test_unix_socket_profile_uses_new_command_per_run(output_dir: str) -> None:
    connectors = []

    def factory() -> FakeConnector:
        connectors.append(FakeConnector())
        return connectors[-1]

    profiler = CrioUnixSocketProfiler(output_dir, "/tmp/fakeSocket", cmd_factory=factory)
    profiler.profile("1")
    profiler.profile("2")

    assert [c.cmd[-1] for c in connectors] == [
        os.path.join(output_dir, "crio-1.pprof"),
        os.path.join(output_dir, "crio-2.pprof"),
    ]


@pytest.mark.parametrize(
    "client,successful,error,contents",
    [
        pytest.param(
            FakeHTTPClient(response=new_fake_response(b"pprof data", 200)),
            True,
            "",
            b"pprof data",
            id="nominal",
        ),
        pytest.param(
            FakeHTTPClient(err=Exception("fake error")),
            False,
            r"failed sending profiling request to crio: fake error",
            None,
            id="http query error",
        ),
        pytest.param(
            FakeHTTPClient(response=new_fake_response(b"pprof data", 403)),
            False,
            r"error status code received from crio: 403",
            None,
            id="status not ok",
        ),
        pytest.param(
            FakeHTTPClient(response=new_fake_response(b"pprof data", 200, OSError("fake error"))),
            False,
            r"failed writing crio profiling data into file: failed to write to file .+?: fake error",
            None,
            id="write error",
        ),
    ],
)
def test_http_profile(
    output_dir: str, client: FakeHTTPClient, successful: bool, error: str, contents: Optional[bytes]
) -> None:
    profiler = CrioHTTPProfiler(output_dir, client=client)

    run = profiler.profile("7")

    assert_finished(run, successful)
    assert re.fullmatch(error, run.error), f"expected error {run.error!r} to match {error!r}"
    assert client.urls == [CRIO_HTTP_URL]

    path = Path(output_dir) / "crio-7.pprof"
    if contents is not None:
        assert path.read_bytes() == contents
    elif client.err is not None or client.response.status_code != 200:
        assert not path.exists()

    if client.response is not None:
        assert client.response.raw.closed


def test_http_profile_concurrent_uids_do_not_overwrite(output_dir: str) -> None:
    CrioHTTPProfiler(output_dir, client=FakeHTTPClient(response=new_fake_response(b"first", 200))).profile("1")
    CrioHTTPProfiler(output_dir, client=FakeHTTPClient(response=new_fake_response(b"second", 200))).profile("2")

    assert (Path(output_dir) / "crio-1.pprof").read_bytes() == b"first"
    assert (Path(output_dir) / "crio-2.pprof").read_bytes() == b"second"


def test_http_profile_with_requests_client(output_dir: str) -> None:
    with Mocker() as mock:
        mock.get(CRIO_HTTP_URL, content=b"pprof data")
        run = CrioHTTPProfiler(output_dir, client=HTTPClient()).profile("7")

    assert_finished(run, successful=True)
    assert (Path(output_dir) / "crio-7.pprof").read_bytes() == b"pprof data"


def test_http_profile_with_requests_client_connection_refused(output_dir: str) -> None:
    with Mocker() as mock:
        mock.get(CRIO_HTTP_URL, exc=requests.exceptions.ConnectionError("connection refused"))
        run = CrioHTTPProfiler(output_dir, client=HTTPClient()).profile("7")

    assert_finished(run, successful=False)
    assert run.error == "failed sending profiling request to crio: connection refused"
    assert not (Path(output_dir) / "crio-7.pprof").exists()


def test_http_profile_with_requests_client_server_error(output_dir: str) -> None:
    with Mocker() as mock:
        mock.get(CRIO_HTTP_URL, status_code=500, text="internal error")
        run = CrioHTTPProfiler(output_dir, client=HTTPClient()).profile("7")

    assert_finished(run, successful=False)
    assert run.error == "error status code received from crio: 500"
    assert not (Path(output_dir) / "crio-7.pprof").exists()


def test_profile_logs_uid(output_dir: str, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    CrioHTTPProfiler(output_dir, client=FakeHTTPClient(response=new_fake_response(b"x", 403))).profile("42")

    assert [r.levelno for r in caplog.records] == [logging.INFO, logging.ERROR]
    for record in caplog.records:
        assert getattr(record, "uid") == "42"
        assert getattr(record, "extra")["uid"] == "42"
    assert getattr(caplog.records[1], "status_code") == 403


def test_profile_uses_given_logger(output_dir: str, logger: logging.Logger, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    CrioUnixSocketProfiler(output_dir, "/tmp/fakeSocket", cmd_factory=FakeConnector, logger=logger).profile("1")

    assert caplog.records
    assert all(r.name == "test-logger" for r in caplog.records)


def test_unix_socket_profile_invalid_uid_with_real_connector(output_dir: str, logger: logging.Logger) -> None:
    profiler = CrioUnixSocketProfiler(output_dir, "/tmp/fakeSocket", logger=logger)

    run = profiler.profile("a\x00b")

    assert_finished(run, successful=False)
    assert run.error.startswith("error sending profiling request to crio: ")
    assert "null" in run.error


def test_unix_socket_profile_unexpected_command_error(output_dir: str) -> None:
    class BrokenConnector(FakeConnector):
        def execute(self) -> str:
            raise ValueError("broken command")

    run = CrioUnixSocketProfiler(output_dir, "/tmp/fakeSocket", cmd_factory=BrokenConnector).profile("1")

    assert_finished(run, successful=False)
    assert run.error == "error sending profiling request to crio: broken command"


def test_unix_socket_profile_command_factory_error(output_dir: str) -> None:
    def factory() -> FakeConnector:
        raise RuntimeError("no connector")

    run = CrioUnixSocketProfiler(output_dir, "/tmp/fakeSocket", cmd_factory=factory).profile("1")

    assert_finished(run, successful=False)
    assert run.error == "error sending profiling request to crio: no connector"


def test_unix_socket_profile_default_connector_uses_given_logger(output_dir: str, logger: logging.Logger) -> None:
    profiler = CrioUnixSocketProfiler(output_dir, "/tmp/fakeSocket", logger=logger)

    connector = profiler._cmd_factory()

    assert isinstance(connector, Connector)
    assert connector._logger.logger is logger
