"""Helm values for the nginx ingress controller."""

from __future__ import annotations

_NGINX_VALUES_TEMPLATE = """
controller:
  hostPort:
    enabled: true
  service:
    type: NodePort
    ports:
      http: {port}
    httpsPort:
      enable: false
  config:
    proxy-body-size: 10m
    proxy-read-timeout: "600"
    proxy-send-timeout: "600"
"""


def build_nginx_values(port: int) -> str:
    """Render the nginx values YAML exposing HTTP on ``port``."""
    return _NGINX_VALUES_TEMPLATE.format(port=port)