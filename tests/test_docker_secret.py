import base64
import json

from abctl.docker_secret import secret


def _decode(raw):
    return json.loads(raw.decode("utf-8"))


def test_round_trip_fields():
    password = "password"
    raw = secret("registry.example.com", "user", password, "user@example.com")
    creds = _decode(raw)["auths"]["registry.example.com"]
    assert creds["username"] == "user"
    assert creds["password"] == password
    assert creds["email"] == "user@example.com"
    assert base64.b64decode(creds["auth"]).decode() == "user:" + password


def test_only_one_server_and_sorted_keys():
    password = "secret"
    raw = secret("srv", "someone", password, "someone@example.com")
    data = _decode(raw)
    assert list(data) == ["auths"]
    assert list(data["auths"]) == ["srv"]
    assert list(data["auths"]["srv"]) == ["auth", "email", "password", "username"]


def test_compact_encoding():
    password = "token"
    raw = secret("srv", "u", password, "u@example.com")
    assert raw.startswith(b'{"auths":{"srv":{')
    assert b" " not in raw


def test_html_characters_are_escaped():
    password = "password"
    user = "a<b>&"
    raw = secret("srv", user, password, "u@example.com")
    assert b"<" not in raw and b">" not in raw and b"&" not in raw
    assert b"\\u003c" in raw
    creds = _decode(raw)["auths"]["srv"]
    assert creds["username"] == user
    assert base64.b64decode(creds["auth"]).decode() == user + ":" + password


def test_non_ascii_kept_as_utf8():
    password = "password"
    raw = secret("srv", "jos\u00e9", password, "jose@example.com")
    assert "jos\u00e9".encode("utf-8") in raw
    creds = _decode(raw)["auths"]["srv"]
    assert base64.b64decode(creds["auth"]).decode("utf-8") == "jos\u00e9:" + password