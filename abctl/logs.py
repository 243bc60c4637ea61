"""Adapters that turn Kubernetes, helm and kind output into debug messages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TextIO

_log = logging.getLogger("abctl")

_DEBUG_PREFIX = "  DEBUG   "


@dataclass
class _DebugWriter:
    """Emits debug lines to ``stream`` when set, otherwise to the ``abctl`` logger."""

    stream: TextIO | None = None

    def _emit(self, message: str) -> None:
        if self.stream is None:
            _log.debug(message)
        else:
            self.stream.write(f"{_DEBUG_PREFIX}{message}\n")


class WarningLogger(_DebugWriter):
    """Turns Kubernetes API warning headers into debug messages."""

    def handle_warning_header(self, code: int, agent: str, message: str) -> None:
        if code != 299 or not message:
            return
        self._emit(f"k8s - WARN: {message}")


class HelmLogger(_DebugWriter):
    """Receives all helm output and turns it into debug messages."""

    def write(self, data: bytes | str) -> int:
        text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
        self._emit(f"helm: {text}")
        return len(data)

    def debug(self, fmt: str, *args: object) -> None:
        self._emit("helm: " + (fmt % args if args else fmt))


class KindLogger(_DebugWriter):
    """Captures kind's logging as debug messages."""

    def info(self, message: str) -> None:
        self._emit("kind - INFO: " + message)

    def warn(self, message: str) -> None:
        self._emit("kind - WARN: " + message)

    def error(self, message: str) -> None:
        self._emit("kind - ERROR: " + message)

    def enabled(self) -> bool:
        return True


class RunError(Exception):
    """A kind command that failed, with the output it produced."""

    def __init__(self, command: list[str], output: bytes, inner: BaseException) -> None:
        self.command = list(command)
        self.output = output
        self.inner = inner
        super().__init__(f'command "{" ".join(self.command)}" failed with error: {inner}')


def _find_run_error(err: BaseException | None) -> RunError | None:
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        if isinstance(err, RunError):
            return err
        seen.add(id(err))
        err = err.__cause__
    return None


def format_kind_error(err: BaseException) -> BaseException:
    """Append the command output to ``err`` when it stems from a failed kind command."""
    run_err = _find_run_error(err)
    if run_err is None:
        return err
    output = run_err.output.decode("utf-8", errors="replace")
    formatted = RuntimeError(f"{err}: {output}")
    formatted.__cause__ = err
    return formatted