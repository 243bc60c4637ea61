"""Pre-flight checks for the local installation: Docker, ports and host names."""

from __future__ import annotations

import errno
import ipaddress
import logging
import re
import socket
from typing import Any, Protocol

from abctl import docker as docker_mod
from abctl.docker import Docker, DockerError, Version

_log = logging.getLogger("abctl")

_WSAEADDRINUSE = 10048

_HOST_PATTERN = re.compile(
    r"[a-z0-9](?:[-a-z0-9]*[a-z0-9])?(?:\.[a-z0-9](?:[-a-z0-9]*[a-z0-9])?)*"
)
_INTEGER = re.compile(r"[+-]?[0-9]+")


class Telemetry(Protocol):
    def attr(self, key: str, value: str) -> None: ...


class PortError(Exception):
    """A port is unavailable or its availability could not be determined."""


class ContainerNotRunningError(Exception):
    """The cluster's control-plane container is not running."""

    def __init__(self, container: str, status: str) -> None:
        self.container = container
        self.status = status
        super().__init__(f'container "{container}" is not running (status = "{status}")')


class InvalidPortError(ValueError):
    """The container's host port is not an integer."""

    def __init__(self, port: str, inner: BaseException) -> None:
        self.port = port
        self.inner = inner
        super().__init__(f"unable to convert host port {port} to integer: {inner}")


class PortNotFoundError(LookupError):
    """No port bound to 0.0.0.0 was found on the container."""


class UnableToInspectError(Exception):
    """The container could not be inspected."""


class IpAddressForHostFlagError(ValueError):
    """An IP address was given where a host name is required."""

    def __init__(self, host: str) -> None:
        self.host = host
        super().__init__(f"invalid host {host!r}: an IP address is not allowed, use a host name")


class InvalidHostFlagError(ValueError):
    """The host is not a valid host name."""

    def __init__(self, host: str) -> None:
        self.host = host
        super().__init__(f"invalid host {host!r}: not a valid host name")


def docker_installed(docker_client: Docker | None, telemetry: Telemetry) -> Version:
    """Check that Docker is reachable, record its details and return its version."""
    if docker_client is None:
        try:
            docker_client = docker_mod.new()
        except Exception as exc:
            _log.error("Unable to create Docker client")
            raise DockerError(f"unable to create client: {exc}") from exc

    try:
        version = docker_client.version()
    except Exception as exc:
        _log.error("Unable to communicate with the Docker daemon")
        if isinstance(exc, DockerError):
            raise
        raise DockerError(str(exc)) from exc

    telemetry.attr("docker_version", version.version)
    telemetry.attr("docker_arch", version.arch)
    telemetry.attr("docker_platform", version.platform)

    try:
        info: Any = docker_client.client.info()
    except Exception:
        info = None
    if isinstance(info, dict):
        telemetry.attr("docker_ncpu", str(info.get("NCPU") or 0))
        telemetry.attr("docker_memtotal", str(info.get("MemTotal") or 0))
        telemetry.attr("docker_cgroup_driver", info.get("CgroupDriver") or "")
        telemetry.attr("docker_cgroup_version", info.get("CgroupVersion") or "")

    _log.info("Found Docker installation: version %s", version.version)
    return version


def is_address_in_use(err: BaseException | None) -> bool:
    """Tell whether ``err`` reports that an address is already in use."""
    if not isinstance(err, OSError):
        return False
    if err.errno == errno.EADDRINUSE:
        return True
    return getattr(err, "winerror", None) == _WSAEADDRINUSE


def port_available(port: int) -> None:
    """Raise :class:`PortError` unless a listener can be bound to ``port``.

    Privileged ports (below 1024) cannot be checked; a warning is logged instead.
    """
    if port < 1024:
        _log.warning(
            "Availability of port %d cannot be determined, as this is a privileged "
            "port (less than 1024).\nInstallation may not complete successfully",
            port,
        )
        return
    try:
        with socket.create_server(("localhost", port)):
            pass
    except OSError as exc:
        if is_address_in_use(exc):
            raise PortError(f"port {port} is already in use") from exc
        raise PortError(
            f"unable to determine if port '{port}' is available: {exc}"
        ) from exc


def get_port(docker_client: Docker | None, cluster_name: str) -> int:
    """Return the host port the cluster's control-plane container exposes on 0.0.0.0."""
    if docker_client is None:
        try:
            docker_client = docker_mod.new()
        except Exception as exc:
            raise DockerError(f"unable to connect to docker: {exc}") from exc

    container = f"{cluster_name}-control-plane"
    try:
        inspected = docker_client.client.container_inspect(container)
    except Exception as exc:
        raise UnableToInspectError(f"unable to inspect container: {exc}") from exc

    state = inspected.get("State")
    if not isinstance(state, dict) or state.get("Status") != "running":
        status = state.get("Status", "") if isinstance(state, dict) else "unknown"
        raise ContainerNotRunningError(container, status)

    host_config = inspected.get("HostConfig") or {}
    bindings_by_port = host_config.get("PortBindings") or {}
    for bindings in bindings_by_port.values():
        for binding in bindings or []:
            if binding.get("HostIp") != "0.0.0.0":
                continue
            host_port = binding.get("HostPort", "")
            if not _INTEGER.fullmatch(host_port):
                raise InvalidPortError(
                    host_port, ValueError(f"parsing {host_port!r}: invalid syntax")
                )
            return int(host_port)

    raise PortNotFoundError(f'no matching port found on container "{container}"')


def validate_host_flag(host: str) -> None:
    """Raise unless ``host`` is a lower-case DNS host name (not an IP address)."""
    try:
        ipaddress.ip_address(host)
    except ValueError:
        pass
    else:
        raise IpAddressForHostFlagError(host)
    if not _HOST_PATTERN.fullmatch(host):
        raise InvalidHostFlagError(host)