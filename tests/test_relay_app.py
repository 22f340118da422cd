import json
import sys, pathlib
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

import yaml
from fastapi.testclient import TestClient

from engine.config import ConfigManager
from services.relay import GitHubError, UploadRelay
from services.relay_app import build_relay, create_app
from services.upload_sessions import SessionStore


class FakeGitHub:
    def __init__(self, dispatch_error=None):
        self.dispatch_error = dispatch_error
        self.gists = []
        self.dispatches = []

    def create_gist(self, files):
        self.gists.append(dict(files))
        return "https://gist.github.com/u/abc123", "abc123"

    def dispatch(self, payload):
        if self.dispatch_error:
            raise GitHubError(self.dispatch_error)
        self.dispatches.append(payload)


def _client(gh=None):
    gh = gh or FakeGitHub()
    relay = UploadRelay(gh, SessionStore(), clock=lambda: "2024-06-10T00:00:00Z")
    return TestClient(create_app(relay=relay)), gh


def test_build_relay_reads_relay_section(tmp_path, monkeypatch):
    monkeypatch.setenv("BODEGA_TOKEN", "secret")
    cfg = tmp_path / "config.yaml"
    cfg.write_text(yaml.safe_dump({"relay": {
        "repository": "someone/shops",
        "token_env": "BODEGA_TOKEN",
        "session_ttl_seconds": 120,
    }}))
    manager = ConfigManager(config_path=str(cfg))
    manager.load_config()

    relay = build_relay(manager)

    assert relay.sessions._ttl == 120.0
    assert relay.client.repository == "someone/shops"
    assert relay.client.token == "secret"
    assert relay.client.session.headers["Authorization"] == "Bearer secret"


def test_options_preflight_has_cors_headers():
    client, _ = _client()
    resp = client.options("/upload")
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"
    assert resp.headers["access-control-allow-methods"] == "POST, OPTIONS"


def test_get_is_405_from_relay():
    client, _ = _client()
    resp = client.get("/upload")
    assert resp.status_code == 405
    assert resp.json() == {"error": "Method not allowed"}
    assert resp.headers["access-control-allow-origin"] == "*"


def test_post_files_creates_gist_and_dispatches():
    client, gh = _client()
    resp = client.post("/upload", content=json.dumps({"files": {"solhaven.json": "{}"}}))
    assert resp.status_code == 200
    assert gh.gists == [{"solhaven.json": "{}"}]
    assert gh.dispatches[0]["gist_id"] == "abc123"


def test_post_invalid_json_is_400():
    client, gh = _client()
    resp = client.post("/upload", content="{not json")
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid JSON body"
    assert gh.gists == []


def test_dispatch_failure_on_gist_url_is_500():
    client, _ = _client(FakeGitHub(dispatch_error="HTTP 401"))
    resp = client.post("/upload", json={"gist_url": "https://gist.github.com/u/abc123"})
    assert resp.status_code == 500
    assert resp.json()["error"] == "Failed to trigger workflow"
