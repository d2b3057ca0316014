import contextlib
import logging
import socket
import threading
from dataclasses import dataclass
from typing import BinaryIO
from urllib.parse import quote, urljoin

import requests

from releaseget.config import APP_NAME, CHUNK_SIZE, GITHUB_API, VERSION
from releaseget.deadline import Deadline
from releaseget.errors import (
    DeadlineExceeded,
    NoDownloadLinkError,
    ReleaseGetError,
    RemoteError,
    TransferError,
)

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"
REDIRECT_CODES = (301, 302, 303, 307, 308)


@dataclass(frozen=True)
class Asset:
    id: int
    name: str
    size: int = 0
    browser_download_url: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "Asset":
        return cls(
            id=int(data.get("id") or 0),
            name=data.get("name") or "",
            size=int(data.get("size") or 0),
            browser_download_url=data.get("browser_download_url") or "",
        )


@dataclass(frozen=True)
class Release:
    tag_name: str
    name: str
    assets: tuple[Asset, ...]

    @classmethod
    def from_api(cls, data: dict) -> "Release":
        return cls(
            tag_name=data.get("tag_name") or "",
            name=data.get("name") or "",
            assets=tuple(Asset.from_api(a) for a in data.get("assets") or []),
        )


@dataclass(frozen=True)
class Stream:
    """Asset bytes served directly by the API."""

    response: requests.Response


@dataclass(frozen=True)
class RedirectURL:
    """Asset bytes live elsewhere; fetch with a plain GET."""

    url: str


AssetContent = Stream | RedirectURL


def make_session(token: str | None = None) -> requests.Session:
    s = requests.Session()
    s.headers.update({"User-Agent": f"{APP_NAME}/{VERSION}"})
    if token:
        s.headers.update({"Authorization": f"Bearer {token}"})
    return s


def _describe(method: str, url: str, r: requests.Response) -> str:
    msg = f"{method} {url}: {r.status_code} {r.reason}"
    try:
        body = r.json()
    except ValueError:
        return msg
    if isinstance(body, dict) and body.get("message"):
        msg += f" {body['message']}"
    return msg


def _send(
    session: requests.Session,
    method: str,
    url: str,
    deadline: Deadline,
    error: type[ReleaseGetError],
    **kwargs,
) -> requests.Response:
    logger.debug("%s %s", method, url)
    try:
        return session.request(method, url, timeout=deadline.request_timeout(), **kwargs)
    except requests.RequestException as e:
        if deadline.expired():
            raise DeadlineExceeded(deadline.timeout) from e
        raise error(f"{method} {url}: {e}") from e


def _abort(r: requests.Response, fired: threading.Event) -> None:
    fired.set()
    # shutdown wakes a recv blocked in another thread; close alone does not
    conn = getattr(getattr(r, "raw", None), "_connection", None)
    sock = getattr(conn, "sock", None)
    if sock is not None:
        with contextlib.suppress(OSError):
            sock.shutdown(socket.SHUT_RDWR)
    r.close()


def copy_body(r: requests.Response, dst: BinaryIO, deadline: Deadline, chunk_size: int = CHUNK_SIZE) -> int:
    """Copy a streamed response body into ``dst``; returns the byte count.

    A single read can block for as long as the server trickles bytes, so
    when the deadline is enabled a timer tears the connection down the
    moment it expires.
    """
    fired = threading.Event()
    timer = None
    if deadline.enabled:
        timer = threading.Timer(max(deadline.remaining(), 0.0), _abort, args=(r, fired))
        timer.daemon = True
        timer.start()
    written = 0
    try:
        for chunk in r.iter_content(chunk_size=chunk_size):
            deadline.check()
            if chunk:
                dst.write(chunk)
                written += len(chunk)
    except (requests.RequestException, OSError, ValueError, AttributeError) as e:
        if fired.is_set() or deadline.expired():
            raise DeadlineExceeded(deadline.timeout) from e
        if not isinstance(e, requests.RequestException):
            raise
        raise TransferError(f"reading {r.url}: {e}") from e
    finally:
        if timer is not None:
            timer.cancel()
    if fired.is_set():
        raise DeadlineExceeded(deadline.timeout)
    deadline.check()
    return written


class GitHubClient:
    """Talks to the releases API of one GitHub (or GitHub Enterprise) host.

    API calls carry the token, if any. Redirect targets are fetched through
    a separate session so the token never leaves the API host.
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str = GITHUB_API,
        session: requests.Session | None = None,
        http: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or make_session(token)
        self.session.headers.update(
            {"Accept": "application/vnd.github+json", "X-GitHub-Api-Version": API_VERSION}
        )
        self.http = http or make_session()
        if token:
            logger.info("Using authenticated requests")

    def close(self) -> None:
        self.session.close()
        self.http.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _repo_url(self, owner: str, repo: str) -> str:
        return f"{self.base_url}/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"

    def get_latest_release(self, owner: str, repo: str, deadline: Deadline) -> Release:
        url = f"{self._repo_url(owner, repo)}/releases/latest"
        r = _send(self.session, "GET", url, deadline, RemoteError)
        try:
            if not r.ok:
                raise RemoteError(_describe("GET", url, r), r.status_code)
            try:
                data = r.json()
            except ValueError as e:
                raise RemoteError(f"GET {url}: invalid JSON in response: {e}") from e
        finally:
            r.close()
        if not isinstance(data, dict):
            raise RemoteError(f"GET {url}: unexpected response {type(data).__name__}")
        try:
            return Release.from_api(data)
        except (AttributeError, TypeError, ValueError) as e:
            raise RemoteError(f"GET {url}: unexpected response: {e}") from e

    def download_release_asset(self, owner: str, repo: str, asset_id: int, deadline: Deadline) -> AssetContent:
        """Ask the API for an asset body.

        The caller owns the response wrapped in a returned Stream and must
        close it.
        """
        url = f"{self._repo_url(owner, repo)}/releases/assets/{asset_id}"
        r = _send(
            self.session,
            "GET",
            url,
            deadline,
            RemoteError,
            headers={"Accept": "application/octet-stream"},
            allow_redirects=False,
            stream=True,
        )
        if r.status_code == 200:
            return Stream(r)
        try:
            if r.status_code in REDIRECT_CODES:
                location = r.headers.get("Location")
                if location:
                    target = urljoin(url, location)
                    logger.debug("Asset %s redirects to %s", asset_id, target.split("?", 1)[0])
                    return RedirectURL(target)
            elif not r.ok:
                raise RemoteError(_describe("GET", url, r), r.status_code)
        finally:
            r.close()
        raise NoDownloadLinkError()

    def open_redirect(self, url: str, deadline: Deadline) -> requests.Response:
        r = _send(self.http, "GET", url, deadline, TransferError, stream=True)
        if r.status_code != 200:
            r.close()
            raise TransferError(f"invalid status: {r.status_code} {r.reason}")
        return r
