import json
import subprocess
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest import mock

import pytest

from abctl.docker import (
    Docker,
    DockerError,
    EngineClient,
    Version,
    candidate_hosts,
    docker_context_host,
    new_with_options,
)

DEFAULT_SERVER_VERSION = {
    "Version": "version",
    "Arch": "arch",
    "Platform": {"Name": "platform name"},
}

CONTEXT_OUTPUT = json.dumps(
    [{"Endpoints": {"docker": {"Host": "unix:///tmp/context.sock"}}}]
).encode()


def _context_run(*args, **kwargs):
    return subprocess.CompletedProcess(args, 0, stdout=CONTEXT_OUTPUT, stderr=b"")


def _no_docker(*args, **kwargs):
    raise FileNotFoundError("docker")


class FakeEngine:
    def __init__(self, ping=None, server_version=None):
        self._ping = ping
        self._server_version = server_version

    def ping(self):
        if self._ping is not None:
            return self._ping()
        return "OK"

    def server_version(self):
        if self._server_version is not None:
            return self._server_version()
        return DEFAULT_SERVER_VERSION


@pytest.mark.parametrize("goos", ["darwin", "windows", "linux"])
def test_new_with_options(goos):
    calls = {"ping": 0, "hosts": []}

    def ping():
        calls["ping"] += 1

    def factory(host):
        calls["hosts"].append(host)
        return FakeEngine(ping=ping)

    with mock.patch("abctl.docker.subprocess.run", side_effect=_no_docker):
        cli = new_with_options(factory, goos, "/home/user")

    assert calls["ping"] == 1
    assert len(calls["hosts"]) == 1
    assert cli.version() == Version(version="version", arch="arch", platform="platform name")


@pytest.mark.parametrize(
    "goos, attempts", [("darwin", 3), ("windows", 2), ("linux", 3)]
)
def test_new_with_options_init_err(goos, attempts):
    hosts = []

    def factory(host):
        hosts.append(host)
        raise RuntimeError("test error")

    with mock.patch("abctl.docker.subprocess.run", side_effect=_context_run):
        with pytest.raises(DockerError):
            new_with_options(factory, goos, "/home/user")
    assert len(hosts) == attempts
    assert hosts[0] == "unix:///tmp/context.sock"


@pytest.mark.parametrize(
    "goos, attempts", [("darwin", 2), ("windows", 1), ("linux", 2)]
)
def test_new_with_options_init_err_without_context(goos, attempts):
    hosts = []

    def factory(host):
        hosts.append(host)
        raise RuntimeError("test error")

    with mock.patch("abctl.docker.subprocess.run", side_effect=_no_docker):
        with pytest.raises(DockerError):
            new_with_options(factory, goos, "/home/user")
    assert len(hosts) == attempts


@pytest.mark.parametrize("goos", ["darwin", "windows", "linux"])
def test_new_with_options_ping_err(goos):
    def ping():
        raise RuntimeError("test error")

    with mock.patch("abctl.docker.subprocess.run", side_effect=_no_docker):
        with pytest.raises(DockerError, match="unable to create docker client"):
            new_with_options(lambda host: FakeEngine(ping=ping), goos, "/home/user")


def test_new_with_options_darwin_ping_err_first_attempt_only():
    state = {"called": False}

    def ping():
        if not state["called"]:
            state["called"] = True
            raise RuntimeError("test error")

    hosts = []

    def factory(host):
        hosts.append(host)
        return FakeEngine(ping=ping)

    with mock.patch("abctl.docker.subprocess.run", side_effect=_no_docker):
        cli = new_with_options(factory, "darwin", "/home/user")
    assert isinstance(cli, Docker)
    assert cli.version() == Version("version", "arch", "platform name")
    assert hosts == [
        "unix:///var/run/docker.sock",
        "unix:///home/user/.docker/run/docker.sock",
    ]


def test_version_err():
    def server_version():
        raise RuntimeError("test error")

    with mock.patch("abctl.docker.subprocess.run", side_effect=_no_docker):
        cli = new_with_options(
            lambda host: FakeEngine(server_version=server_version), "darwin", "/home/user"
        )
    with pytest.raises(DockerError, match="unable to determine server version"):
        cli.version()


@pytest.mark.parametrize(
    "goos, expected",
    [
        (
            "darwin",
            ["unix:///var/run/docker.sock", "unix:///h/.docker/run/docker.sock"],
        ),
        ("windows", ["npipe:////./pipe/docker_engine"]),
        (
            "linux",
            ["unix:///var/run/docker.sock", "unix:///h/.docker/desktop/docker-cli.sock"],
        ),
    ],
)
def test_candidate_hosts(goos, expected):
    assert candidate_hosts(goos, "/h", None) == expected
    assert candidate_hosts(goos, "/h", "tcp://ctx:1") == ["tcp://ctx:1", *expected]


def test_docker_context_host_found():
    with mock.patch("abctl.docker.subprocess.run", side_effect=_context_run):
        assert docker_context_host() == "unix:///tmp/context.sock"


def test_docker_context_host_missing_cli():
    with mock.patch("abctl.docker.subprocess.run", side_effect=_no_docker):
        assert docker_context_host() is None


def test_docker_context_host_failed_command():
    err = subprocess.CalledProcessError(1, ["docker"])
    with mock.patch("abctl.docker.subprocess.run", side_effect=err):
        assert docker_context_host() is None


def test_docker_context_host_empty_list():
    result = subprocess.CompletedProcess([], 0, stdout=b"[]", stderr=b"")
    with mock.patch("abctl.docker.subprocess.run", return_value=result):
        assert docker_context_host() is None


class _Handler(BaseHTTPRequestHandler):
    paths: list = []

    def log_message(self, *args):
        pass

    def _send(self, status, body, headers=None):
        data = body if isinstance(body, bytes) else json.dumps(body).encode()
        self.send_response(status)
        for key, value in (headers or {}).items():
            self.send_header(key, value)
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def do_GET(self):
        type(self).paths.append(self.path)
        if self.path == "/_ping":
            self._send(200, b"OK", {"API-Version": "1.43"})
        elif self.path == "/v1.43/version":
            self._send(200, DEFAULT_SERVER_VERSION)
        elif self.path == "/v1.43/info":
            self._send(200, {"NCPU": 4, "MemTotal": 1024})
        else:
            self._send(404, {"message": "No such container: missing"})


@pytest.fixture
def engine_server(monkeypatch):
    monkeypatch.delenv("DOCKER_HOST", raising=False)
    monkeypatch.delenv("DOCKER_API_VERSION", raising=False)
    _Handler.paths = []
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"tcp://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def test_engine_client_negotiates_version(engine_server):
    client = EngineClient(engine_server)
    assert client.ping() == "OK"
    assert client.api_version == "1.43"
    assert Docker(client).version() == Version("version", "arch", "platform name")
    assert client.info()["NCPU"] == 4
    assert _Handler.paths == ["/_ping", "/v1.43/version", "/v1.43/info"]


def test_engine_client_error_status(engine_server):
    client = EngineClient(engine_server)
    client.ping()
    with pytest.raises(DockerError, match="No such container: missing"):
        client.container_inspect("missing")


def test_engine_client_docker_host_env_wins(engine_server, monkeypatch):
    monkeypatch.setenv("DOCKER_HOST", engine_server)
    client = EngineClient("unix:///nonexistent/docker.sock")
    assert client.host == engine_server
    assert client.ping() == "OK"


def test_engine_client_unreachable_host(monkeypatch):
    monkeypatch.delenv("DOCKER_HOST", raising=False)
    client = EngineClient("tcp://127.0.0.1:1", timeout=2)
    with pytest.raises(DockerError):
        client.ping()


def test_engine_client_unsupported_scheme(monkeypatch):
    monkeypatch.delenv("DOCKER_HOST", raising=False)
    with pytest.raises(DockerError, match="unsupported"):
        EngineClient("ftp://example.com")