"""
Admin command line wrapper around the API client.
"""
from __future__ import annotations

import importlib.util
import json
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "rentwise_admin.py"


@pytest.fixture
def cli():
    spec = importlib.util.spec_from_file_location("rentwise_admin", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_missing_token_exits_2(cli, monkeypatch: pytest.MonkeyPatch, capsys):
    monkeypatch.delenv("RENTWISE_ACCESS_TOKEN", raising=False)
    assert cli.main(["users"]) == 2
    assert "RENTWISE_ACCESS_TOKEN" in capsys.readouterr().err


def test_api_error_is_reported_with_request_id(cli, monkeypatch: pytest.MonkeyPatch, capsys):
    class _Client:
        def __init__(self, *args, **kwargs):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return None

        def list_users(self):
            raise cli.ApiError(403, "Forbidden", request_id="req-9")

    monkeypatch.setenv("RENTWISE_ACCESS_TOKEN", "tok")
    monkeypatch.setattr(cli, "ApiClient", _Client)
    assert cli.main(["users"]) == 1
    assert "Error 403: Forbidden (request req-9)" in capsys.readouterr().err


def test_create_manager_prints_json(cli, monkeypatch: pytest.MonkeyPatch, capsys):
    captured = {}

    class _Client:
        def __init__(self, base_url, **kwargs):
            captured["base_url"] = base_url
            captured["token"] = kwargs["token_provider"]()

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return None

        def create_manager(self, **kwargs):
            captured["args"] = kwargs
            return {"userId": "u1", "tempPassword": "pw"}

    monkeypatch.setenv("RENTWISE_ACCESS_TOKEN", "tok")
    monkeypatch.setattr(cli, "ApiClient", _Client)
    code = cli.main(["--base-url", "https://app.example.com", "create-manager", "--name", "Max", "--email", "m@example.com"])
    assert code == 0
    assert json.loads(capsys.readouterr().out) == {"userId": "u1", "tempPassword": "pw"}
    assert captured == {
        "base_url": "https://app.example.com",
        "token": "tok",
        "args": {"name": "Max", "email": "m@example.com", "phone": None},
    }
