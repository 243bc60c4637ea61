"""Locating and talking to the local Docker daemon."""

from __future__ import annotations

import http.client
import json
import logging
import os
import socket
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Protocol
from urllib.parse import quote, urlsplit

_log = logging.getLogger("abctl")

_DEFAULT_TIMEOUT = 30.0


class DockerError(Exception):
    """Docker could not be reached or returned an error."""


@dataclass(frozen=True)
class Version:
    """Version information reported by the Docker daemon."""

    version: str = ""
    arch: str = ""
    platform: str = ""


class Pinger(Protocol):
    def ping(self) -> Any: ...

    def server_version(self) -> dict[str, Any]: ...


class _UnixHTTPConnection(http.client.HTTPConnection):
    """An HTTP connection over a unix domain socket."""

    def __init__(self, path: str, timeout: float) -> None:
        super().__init__("localhost", timeout=timeout)
        self._socket_path = path

    def connect(self) -> None:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)
        try:
            sock.connect(self._socket_path)
        except OSError:
            sock.close()
            raise
        self.sock = sock


class EngineClient:
    """A minimal client for the Docker Engine HTTP API.

    ``DOCKER_HOST`` in the environment takes precedence over ``host``, and
    ``DOCKER_API_VERSION`` pins the API version; otherwise the version is
    negotiated from the daemon's ping response.
    """

    def __init__(self, host: str, timeout: float = _DEFAULT_TIMEOUT) -> None:
        self.host = os.environ.get("DOCKER_HOST") or host
        self.timeout = timeout
        self.api_version: str | None = os.environ.get("DOCKER_API_VERSION") or None
        self._pinned_version = self.api_version is not None

        parts = urlsplit(self.host)
        scheme = parts.scheme or "unix"
        if scheme == "unix":
            path = parts.path or parts.netloc
            if not path:
                raise DockerError(f"invalid docker host {self.host!r}")
            self._connect: Callable[[], http.client.HTTPConnection] = (
                lambda: _UnixHTTPConnection(path, self.timeout)
            )
        elif scheme in ("tcp", "http"):
            if not parts.netloc:
                raise DockerError(f"invalid docker host {self.host!r}")
            netloc = parts.netloc
            self._connect = lambda: http.client.HTTPConnection(netloc, timeout=self.timeout)
        elif scheme == "https":
            if not parts.netloc:
                raise DockerError(f"invalid docker host {self.host!r}")
            netloc = parts.netloc
            self._connect = lambda: http.client.HTTPSConnection(netloc, timeout=self.timeout)
        else:
            raise DockerError(f"unsupported docker host protocol {scheme!r}")

    def _request(self, path: str, *, versioned: bool = True) -> tuple[int, Any, bytes]:
        if versioned and self.api_version:
            path = f"/v{self.api_version}{path}"
        conn = self._connect()
        try:
            conn.request("GET", path, headers={"Accept": "application/json"})
            response = conn.getresponse()
            body = response.read()
            status, headers = response.status, response.headers
        except (OSError, http.client.HTTPException) as exc:
            raise DockerError(f"request to {self.host}{path} failed: {exc}") from exc
        finally:
            conn.close()

        if status >= 400:
            message = body.decode("utf-8", errors="replace").strip()
            try:
                message = json.loads(body).get("message", message)
            except (ValueError, AttributeError):
                pass
            raise DockerError(f"docker responded with status {status}: {message}")
        return status, headers, body

    def _get_json(self, path: str) -> Any:
        _, _, body = self._request(path)
        try:
            return json.loads(body)
        except ValueError as exc:
            raise DockerError(f"invalid JSON from docker for {path}: {exc}") from exc

    def ping(self) -> str:
        """Check that the daemon answers, negotiating the API version."""
        _, headers, body = self._request("/_ping", versioned=False)
        version = headers.get("API-Version")
        if version and not self._pinned_version:
            self.api_version = version
        return body.decode("utf-8", errors="replace")

    def server_version(self) -> dict[str, Any]:
        return self._get_json("/version")

    def info(self) -> dict[str, Any]:
        return self._get_json("/info")

    def container_inspect(self, container_id: str) -> dict[str, Any]:
        return self._get_json(f"/containers/{quote(container_id, safe='')}/json")


@dataclass
class Docker:
    """A connection to a Docker daemon through ``client``."""

    client: Any

    def version(self) -> Version:
        try:
            ver = self.client.server_version()
        except Exception as exc:
            raise DockerError(f"unable to determine server version: {exc}") from exc
        platform = ver.get("Platform") or {}
        return Version(
            version=ver.get("Version", ""),
            arch=ver.get("Arch", ""),
            platform=platform.get("Name", "") if isinstance(platform, dict) else "",
        )


def _get_ci(mapping: Any, key: str) -> Any:
    """Look up ``key`` in a JSON object, ignoring case as a fallback."""
    if not isinstance(mapping, dict):
        return None
    if key in mapping:
        return mapping[key]
    lowered = key.lower()
    return next((v for k, v in mapping.items() if k.lower() == lowered), None)


def docker_context_host() -> str | None:
    """Return the host of the current docker context, if the CLI can tell."""
    try:
        result = subprocess.run(
            ["docker", "context", "inspect"], capture_output=True, check=True
        )
        data = json.loads(result.stdout)
    except (OSError, subprocess.SubprocessError, ValueError):
        return None
    if not isinstance(data, list) or not data:
        return None
    docker = _get_ci(_get_ci(data[0], "Endpoints"), "docker")
    host = _get_ci(docker, "Host")
    return host if isinstance(host, str) and host else None


def candidate_hosts(goos: str, home: str, context_host: str | None) -> list[str]:
    """List the docker hosts to try, best guess first."""
    hosts = [context_host] if context_host else []
    if goos == "darwin":
        hosts += ["unix:///var/run/docker.sock", f"unix://{home}/.docker/run/docker.sock"]
    elif goos == "windows":
        hosts.append("npipe:////./pipe/docker_engine")
    else:
        hosts += [
            "unix:///var/run/docker.sock",
            f"unix://{home}/.docker/desktop/docker-cli.sock",
        ]
    return hosts


def _create_and_ping(new_pinger: Callable[[str], Pinger], host: str) -> Pinger:
    try:
        client = new_pinger(host)
    except Exception as exc:
        raise DockerError(f"unable to create docker client: {exc}") from exc
    try:
        client.ping()
    except Exception as exc:
        raise DockerError(f"unable to ping docker client: {exc}") from exc
    return client


def new_with_options(
    new_pinger: Callable[[str], Pinger], goos: str, home: str | None = None
) -> Docker:
    """Connect to the first candidate host whose client answers a ping."""
    home = str(Path.home()) if home is None else home
    for host in candidate_hosts(goos, home, docker_context_host()):
        try:
            return Docker(client=_create_and_ping(new_pinger, host))
        except DockerError as exc:
            _log.debug("error connecting to docker host %s: %s", host, exc)
    raise DockerError("unable to create docker client")


def _goos() -> str:
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform.startswith(("win32", "cygwin")):
        return "windows"
    return "linux"


def new() -> Docker:
    """Connect to the local Docker daemon."""
    return new_with_options(EngineClient, _goos(), str(Path.home()))