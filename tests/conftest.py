"""Pytest configuration and fixtures for github-release-get tests."""

import json
import logging
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from releaseget.github_api import Asset, RedirectURL, Release, Stream


class FakeClock:
    """Stands in for time.monotonic; tests move it forward by hand."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResponse:
    """Minimal requests.Response look-alike serving fixed chunks."""

    def __init__(self, chunks=(), status_code=200, reason="OK", headers=None, json_data=None, url="https://example.invalid/x", on_chunk=None):
        self.chunks = list(chunks)
        self.status_code = status_code
        self.reason = reason
        self.headers = headers or {}
        self.url = url
        self._json = json_data
        self.on_chunk = on_chunk
        self.closed = False

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._json is None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._json

    def iter_content(self, chunk_size=1):
        for i, chunk in enumerate(self.chunks):
            if self.on_chunk is not None:
                self.on_chunk(i)
            yield chunk

    def close(self) -> None:
        self.closed = True


class FakeClient:
    """Records calls and serves a canned release and asset body."""

    def __init__(self, assets, body=b"", redirect=False, content=None):
        self.release = Release(
            tag_name="v1.2",
            name="1.2",
            assets=tuple(Asset(id=i + 1, name=n) for i, n in enumerate(assets)),
        )
        self.response = FakeResponse([body[i : i + 4] for i in range(0, len(body), 4)])
        self.redirect = redirect
        self.content = content
        self.calls: list[tuple] = []

    def get_latest_release(self, owner, repo, deadline):
        self.calls.append(("release", owner, repo))
        return self.release

    def download_release_asset(self, owner, repo, asset_id, deadline):
        self.calls.append(("asset", owner, repo, asset_id))
        if self.content is not None:
            return self.content
        if self.redirect:
            return RedirectURL("https://objects.example.invalid/asset?sig=abc")
        return Stream(self.response)

    def open_redirect(self, url, deadline):
        self.calls.append(("redirect", url))
        return self.response


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Let caplog see releaseget records; undo whatever setup_logging did."""
    logger = logging.getLogger("releaseget")
    saved = (logger.propagate, logger.level, logger.handlers[:])
    logger.propagate = True
    yield
    logger.propagate, level, logger.handlers[:] = saved
    logger.setLevel(level)


@pytest.fixture
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr("releaseget.deadline.time.monotonic", fake)
    return fake


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    d = tmp_path / "work"
    d.mkdir()
    monkeypatch.chdir(d)
    return d


@pytest.fixture
def tmp_area(tmp_path):
    d = tmp_path / "tmp"
    d.mkdir()
    return d


class TrickleHandler(BaseHTTPRequestHandler):
    """Serves one release whose only asset arrives a byte every 0.2s."""

    body_size = 40

    def do_GET(self):
        if self.path.endswith("/releases/latest"):
            body = json.dumps({"tag_name": "v0.1", "assets": [{"id": 7, "name": "slow.bin"}]}).encode()
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
        elif self.path.endswith("/releases/assets/7"):
            self.send_response(200)
            self.send_header("Content-Type", "application/octet-stream")
            self.send_header("Content-Length", str(self.body_size))
            self.end_headers()
            try:
                for _ in range(self.body_size):
                    self.wfile.write(b"x")
                    self.wfile.flush()
                    time.sleep(0.2)
            except (BrokenPipeError, ConnectionResetError):
                pass
        else:
            self.send_error(404)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def trickle_server(monkeypatch):
    """Base URL of a local API whose asset download never finishes in time."""
    monkeypatch.setenv("NO_PROXY", "127.0.0.1")
    server = ThreadingHTTPServer(("127.0.0.1", 0), TrickleHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_port}"
    server.shutdown()
    server.server_close()
