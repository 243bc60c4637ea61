"""Finding the container images referenced by a rendered helm chart."""

from __future__ import annotations

from typing import Any

import yaml

_POD_SPEC_PATHS: dict[tuple[str, str], tuple[str, ...]] = {
    ("v1", "Pod"): ("spec",),
    ("batch/v1", "Job"): ("spec", "template", "spec"),
    ("apps/v1", "Deployment"): ("spec", "template", "spec"),
    ("apps/v1", "StatefulSet"): ("spec", "template", "spec"),
}


def decode_k8s_resources(rendered_yaml: str) -> list[dict[str, Any]]:
    """Split a multi-document manifest and return the Kubernetes objects in it.

    Documents that do not parse or are not objects with a kind and API
    version are skipped.
    """
    objects = []
    for chunk in rendered_yaml.split("---"):
        if not chunk:
            continue
        try:
            obj = yaml.safe_load(chunk)
        except yaml.YAMLError:
            continue
        if (
            isinstance(obj, dict)
            and isinstance(obj.get("kind"), str)
            and isinstance(obj.get("apiVersion"), str)
        ):
            objects.append(obj)
    return objects


def _dig(obj: Any, path: tuple[str, ...]) -> Any:
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def find_all_images(chart_yaml: str) -> list[str]:
    """Return the unique, sorted images used by the pods in ``chart_yaml``.

    Images of init and regular containers are collected, along with values of
    keys ending in ``_IMAGE`` in the ``airbyte-env`` config map.
    """
    images: set[str] = set()
    for obj in decode_k8s_resources(chart_yaml):
        kind, api_version = obj["kind"], obj["apiVersion"]

        if (api_version, kind) == ("v1", "ConfigMap"):
            name = _dig(obj, ("metadata", "name")) or ""
            if isinstance(name, str) and name.endswith("airbyte-env"):
                data = obj.get("data") or {}
                images.update(
                    value
                    for key, value in data.items()
                    if str(key).endswith("_IMAGE") and isinstance(value, str)
                )
            continue

        path = _POD_SPEC_PATHS.get((api_version, kind))
        if path is None:
            continue
        pod_spec = _dig(obj, path) or {}
        for section in ("initContainers", "containers"):
            for container in pod_spec.get(section) or []:
                image = container.get("image") if isinstance(container, dict) else None
                if isinstance(image, str):
                    images.add(image)

    return sorted(image for image in images if image)