"""Docker registry credentials in the form stored as a Kubernetes secret."""

from __future__ import annotations

import base64
import json

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _escape(text: str) -> str:
    for raw, escaped in _HTML_ESCAPES.items():
        text = text.replace(raw, escaped)
    return text


def secret(server: str, user: str, password: str, email: str) -> bytes:
    """Return the JSON registry config for authenticating against ``server``.

    The document has the shape
    ``{"auths": {server: {"auth", "email", "password", "username"}}}`` where
    ``auth`` is the base64 encoding of ``user:password``.
    """
    auth = base64.b64encode(f"{user}:{password}".encode()).decode("ascii")
    document = {
        "auths": {
            server: {
                "username": user,
                "password": password,
                "email": email,
                "auth": auth,
            }
        }
    }
    text = json.dumps(document, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return _escape(text).encode("utf-8")