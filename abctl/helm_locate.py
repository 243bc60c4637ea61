"""Locating the latest released Airbyte helm chart in the chart repository index."""

from __future__ import annotations

import logging
import re
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Callable

import yaml

_log = logging.getLogger("abctl")

AIRBYTE_REPO_NAME = "airbyte"
AIRBYTE_REPO_URL = "https://airbytehq.github.io/helm-charts"
AIRBYTE_CHART_NAME = "airbyte/airbyte"

_NUM = r"(?:0|[1-9][0-9]*)"
_PRE_ID = r"(?:0|[1-9][0-9]*|[0-9]*[A-Za-z-][0-9A-Za-z-]*)"
_BUILD_ID = r"[0-9A-Za-z-]+"
_STRICT_SEMVER = re.compile(
    rf"v{_NUM}(?:\.{_NUM}(?:\.{_NUM}"
    rf"(?:-(?P<pre>{_PRE_ID}(?:\.{_PRE_ID})*))?"
    rf"(?:\+{_BUILD_ID}(?:\.{_BUILD_ID})*)?)?)?"
)
_LENIENT_SEMVER = re.compile(
    r"v?(?P<major>[0-9]+)(?:\.(?P<minor>[0-9]+))?(?:\.(?P<patch>[0-9]+))?"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?"
)


def is_prerelease(version: str) -> bool:
    """Tell whether ``version`` is a valid semantic version with a pre-release part.

    A missing ``v`` prefix is allowed; strings that are not valid versions
    count as releases.
    """
    if not version.startswith("v"):
        version = "v" + version
    match = _STRICT_SEMVER.fullmatch(version)
    return bool(match and match["pre"])


def _sort_key(entry: Any) -> tuple:
    version = str(entry.get("version", "")) if isinstance(entry, dict) else ""
    match = _LENIENT_SEMVER.fullmatch(version)
    if not match:
        return (0,)
    pre = match["pre"]
    if pre:
        pre_key: tuple = (
            0,
            tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in pre.split(".")),
        )
    else:
        pre_key = (1,)
    return (
        1,
        int(match["major"]),
        int(match["minor"] or 0),
        int(match["patch"] or 0),
        pre_key,
    )


def download_index(url: str) -> dict[str, Any]:
    """Fetch and parse the repository's ``index.yaml``, newest versions first."""
    with urllib.request.urlopen(f"{url.rstrip('/')}/index.yaml", timeout=60) as response:
        index = yaml.safe_load(response.read())
    if not isinstance(index, dict):
        raise ValueError("index file is not a mapping")
    if not index.get("apiVersion"):
        raise ValueError("no API version specified")
    entries = index.get("entries") or {}
    index["entries"] = {
        name: sorted(
            (v for v in versions or [] if v is not None), key=_sort_key, reverse=True
        )
        for name, versions in entries.items()
    }
    return index


@dataclass
class ChartRepository:
    """A helm chart repository and the means of fetching its index."""

    name: str = AIRBYTE_REPO_NAME
    url: str = AIRBYTE_REPO_URL
    fetch_index: Callable[[str], dict[str, Any]] = field(default=download_index)

    def latest_chart_url(self) -> str:
        """Return the download URL of the newest non-pre-release airbyte chart."""
        try:
            index = self.fetch_index(self.url)
        except Exception as exc:
            raise RuntimeError(f"unable to download index file: {exc}") from exc

        entries = (index.get("entries") or {}).get("airbyte")
        if entries is None:
            raise LookupError("no entry for airbyte in repo index")
        if not entries:
            raise LookupError("no chart version found")

        latest = next(
            (e for e in entries if not is_prerelease(str(e.get("version", "")))), None
        )
        if latest is None:
            raise LookupError("no valid version of airbyte chart found in repo index")

        urls = latest.get("urls") or []
        if len(urls) != 1:
            raise ValueError(f"unexpected number of URLs - {len(urls)}")
        return f"{self.url}/{urls[0]}"


def locate_latest_airbyte_chart(
    chart_version: str, chart_flag: str, repository: ChartRepository | None = None
) -> str:
    """Decide which chart reference helm should install.

    An explicit chart wins. Without a version, the full URL of the latest
    released chart is used so helm resolves it over HTTP rather than a local
    directory; failing that, the plain chart name is returned.
    """
    _log.debug("getting helm chart %r with version %r", AIRBYTE_CHART_NAME, chart_version)
    if chart_flag:
        return chart_flag

    if not chart_version:
        repository = repository or ChartRepository()
        try:
            url = repository.latest_chart_url()
        except Exception as exc:
            _log.debug(
                "error determining latest airbyte chart, falling back to default behavior: %s",
                exc,
            )
        else:
            _log.debug("determined latest airbyte chart url: %s", url)
            return url

    return AIRBYTE_CHART_NAME