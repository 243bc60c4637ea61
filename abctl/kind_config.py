"""Cluster configuration for kind, rendered as the YAML kind expects."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import yaml

#: The default host port that Airbyte is deployed to.
INGRESS_PORT = 8000

_KUBEADM_CONFIG_PATCH = """kind: InitConfiguration
nodeRegistration:
  kubeletExtraArgs:
    node-labels: "ingress-ready=true\""""

_PROVISIONER_PATH = "/var/local-path-provisioner"


@dataclass
class Mount:
    """A host directory mounted into a kind node."""

    container_path: str = ""
    host_path: str = ""
    read_only: bool = False
    selinux_relabel: bool = False
    propagation: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "containerPath": self.container_path,
            "hostPath": self.host_path,
            "readOnly": self.read_only,
            "selinuxRelabel": self.selinux_relabel,
            "propagation": self.propagation,
        }


@dataclass
class PortMapping:
    """A port on the host forwarded to a port on a kind node."""

    container_port: int = 0
    host_port: int = 0
    listen_address: str = ""
    protocol: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "containerPort": self.container_port,
            "hostPort": self.host_port,
            "listenAddress": self.listen_address,
            "protocol": self.protocol,
        }


@dataclass
class Node:
    """A single kind node."""

    role: str = ""
    image: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    extra_mounts: list[Mount] = field(default_factory=list)
    extra_port_mappings: list[PortMapping] = field(default_factory=list)
    # Inline YAML blobs applied to the generated kubeadm config as
    # strategic merge patches.
    kubeadm_config_patches: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "image": self.image,
            "labels": dict(self.labels),
            "extraMounts": [m.to_dict() for m in self.extra_mounts],
            "extraPortMappings": [p.to_dict() for p in self.extra_port_mappings],
            "kubeadmConfigPatches": list(self.kubeadm_config_patches),
        }


@dataclass
class Config:
    """A kind cluster configuration."""

    kind: str = ""
    api_version: str = ""
    nodes: list[Node] = field(default_factory=list)

    def with_volume_mount(self, host_path: str, container_path: str) -> Config:
        """Add a mount to the first node and return this config."""
        self.nodes[0].extra_mounts.append(
            Mount(host_path=host_path, container_path=container_path)
        )
        return self

    def with_host_port(self, port: int) -> Config:
        """Set the host port of the first node's first port mapping."""
        self.nodes[0].extra_port_mappings[0].host_port = int(port)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "apiVersion": self.api_version,
            "nodes": [n.to_dict() for n in self.nodes],
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False)


def default_config(data_path: str) -> Config:
    """Return the standard single-node ingress-ready cluster config."""
    return Config(
        kind="Cluster",
        api_version="kind.x-k8s.io/v1alpha4",
        nodes=[
            Node(
                role="control-plane",
                kubeadm_config_patches=[_KUBEADM_CONFIG_PATCH],
                extra_mounts=[
                    Mount(host_path=data_path, container_path=_PROVISIONER_PATH)
                ],
                extra_port_mappings=[
                    PortMapping(container_port=80, host_port=INGRESS_PORT)
                ],
            )
        ],
    )