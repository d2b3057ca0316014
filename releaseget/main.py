"""Download one asset from the latest release of a GitHub repository.

The first asset whose name matches ``-pattern`` is saved to the current
directory under the final segment of its name. The tool stops if a file
with that name already exists. Set GITHUB_TOKEN to reach private
repositories.
"""

import argparse
import logging
import sys

from releaseget.config import API_URL_ENV, APP_NAME, TOKEN_ENV, VERSION, RunArgs, parse_duration
from releaseget.errors import ConfigError, ReleaseGetError
from releaseget.installer import run

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _duration(text: str) -> float:
    try:
        return parse_duration(text)
    except ConfigError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog=APP_NAME,
        description=__doc__.split("\n\n", 1)[0],
        epilog=(
            f"Environment: {TOKEN_ENV} (access token for private repositories), "
            f"{API_URL_ENV} (API base URL for GitHub Enterprise)."
        ),
    )
    p.add_argument("-owner", "--owner", default="", help="repository owner (user or org name)")
    p.add_argument("-repo", "--repo", default="", help="repository name")
    p.add_argument("-pattern", "--pattern", default="", help="pattern to match release asset name")
    p.add_argument(
        "-timeout",
        "--timeout",
        type=_duration,
        default="1m",
        help="overall deadline, e.g. 30s or 2m; 0 disables it (default: 1m)",
    )
    p.add_argument("-v", "--verbose", action="count", default=0, help="more logging, repeat for debug output")
    p.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return p


def setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger("releaseget")
    root.handlers[:] = [handler]
    root.setLevel(level)
    root.propagate = False
    if verbosity > 2:
        wire = logging.getLogger("urllib3")
        wire.handlers[:] = [handler]
        wire.setLevel(logging.DEBUG)


def main(argv: list[str] | None = None) -> int:
    ns = build_parser().parse_args(argv)
    setup_logging(ns.verbose)

    try:
        args = RunArgs.from_environ(ns.owner, ns.repo, ns.pattern, ns.timeout)
        dst = run(args)
    except KeyboardInterrupt:
        sys.stderr.write("interrupted\n")
        return 130
    except (ReleaseGetError, OSError) as e:
        logger.debug("Run failed", exc_info=True)
        sys.stderr.write(f"{e}\n")
        return 1

    logger.info("Saved %s", dst)
    return 0


if __name__ == "__main__":
    sys.exit(main())
