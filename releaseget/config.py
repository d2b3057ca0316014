import math
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from releaseget.errors import ConfigError, MissingFlagsError

APP_NAME = "github-release-get"
VERSION = "1.0.0"

GITHUB_API = "https://api.github.com"
TOKEN_ENV = "GITHUB_TOKEN"
API_URL_ENV = "GITHUB_API_URL"

DEFAULT_TIMEOUT = 60.0
STAGING_PREFIX = ".github-release-asset-"
CHUNK_SIZE = 1024 * 256

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse ``90s``, ``1m30s``, ``250ms``, ``0`` or bare seconds into seconds."""
    s = text.strip()
    if not s:
        raise ConfigError("invalid duration ''")
    try:
        value = float(s)
    except ValueError:
        value = None
    if value is not None:
        if not math.isfinite(value):
            raise ConfigError(f"invalid duration {text!r}")
        if value < 0:
            raise ConfigError(f"invalid duration {text!r}: must not be negative")
        return value

    if s.startswith("-"):
        raise ConfigError(f"invalid duration {text!r}: must not be negative")
    s = s.lstrip("+")

    total = 0.0
    pos = 0
    while pos < len(s):
        m = _DURATION_PART.match(s, pos)
        if not m:
            raise ConfigError(f"invalid duration {text!r}")
        total += float(m.group(1)) * _UNITS[m.group(2)]
        pos = m.end()
    if pos == 0:
        raise ConfigError(f"invalid duration {text!r}")
    return total


def api_base_url(environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ
    url = (env.get(API_URL_ENV) or GITHUB_API).strip()
    if not url.startswith(("http://", "https://")):
        raise ConfigError(f"{API_URL_ENV} must be an http(s) URL, got {url!r}")
    return url.rstrip("/")


@dataclass(frozen=True)
class RunArgs:
    """Everything one run needs; built once and never mutated."""

    owner: str
    repo: str
    pattern: str
    timeout: float = DEFAULT_TIMEOUT
    token: str | None = field(default=None, repr=False)
    api_url: str = GITHUB_API

    def validate(self) -> None:
        if not self.owner or not self.repo or not self.pattern:
            raise MissingFlagsError()
        if self.timeout < 0:
            raise ConfigError(f"invalid timeout {self.timeout!r}: must not be negative")

    @classmethod
    def from_environ(
        cls,
        owner: str,
        repo: str,
        pattern: str,
        timeout: float = DEFAULT_TIMEOUT,
        environ: Mapping[str, str] | None = None,
    ) -> "RunArgs":
        env = os.environ if environ is None else environ
        return cls(
            owner=owner,
            repo=repo,
            pattern=pattern,
            timeout=timeout,
            token=env.get(TOKEN_ENV) or None,
            api_url=api_base_url(env),
        )
