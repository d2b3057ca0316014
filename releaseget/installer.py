import contextlib
import errno
import logging
import os
import shutil
import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO, Protocol

import requests

from releaseget.config import CHUNK_SIZE, STAGING_PREFIX, RunArgs
from releaseget.deadline import Deadline
from releaseget.errors import DestinationExistsError, NoDownloadLinkError
from releaseget.github_api import Asset, AssetContent, GitHubClient, RedirectURL, Release, Stream, copy_body
from releaseget.matching import GlobPattern, local_name, select_asset

logger = logging.getLogger(__name__)

# link() errors meaning the filesystem has no hard links
NO_HARDLINKS = {errno.EPERM, errno.ENOTSUP, errno.EOPNOTSUPP, errno.ENOSYS}


class ReleaseClient(Protocol):
    def get_latest_release(self, owner: str, repo: str, deadline: Deadline) -> Release: ...

    def download_release_asset(self, owner: str, repo: str, asset_id: int, deadline: Deadline) -> AssetContent: ...

    def open_redirect(self, url: str, deadline: Deadline) -> requests.Response: ...


def check_destination(dst: Path) -> None:
    """Refuse to go on if anything, even a dangling symlink, sits at ``dst``."""
    try:
        os.lstat(dst)
    except FileNotFoundError:
        return
    except OSError as e:
        logger.debug("stat %s failed: %s", dst, e)
    raise DestinationExistsError(str(dst))


def _default_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def _place(src: Path | str, dst: Path) -> None:
    """Rename ``src`` to ``dst`` without ever replacing an existing ``dst``."""
    try:
        os.link(src, dst)
    except FileExistsError:
        raise DestinationExistsError(str(dst)) from None
    except OSError as e:
        if e.errno not in NO_HARDLINKS:
            raise
        os.replace(src, dst)
        return
    os.unlink(src)


def _move_into_place(src: Path, dst: Path) -> None:
    os.chmod(src, _default_mode())
    try:
        _place(src, dst)
        return
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
    # temp area is on another filesystem: copy next to dst, then rename
    logger.debug("%s and %s are on different filesystems, copying", src, dst)
    fd, sibling = tempfile.mkstemp(prefix=STAGING_PREFIX, dir=dst.parent)
    try:
        with os.fdopen(fd, "wb") as out, open(src, "rb") as inp:
            shutil.copyfileobj(inp, out, CHUNK_SIZE)
        shutil.copymode(src, sibling)
        _place(sibling, dst)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(sibling)
        raise


@contextlib.contextmanager
def staging_file(dst: Path, tmp_dir: str | None = None) -> Iterator[BinaryIO]:
    """Yield a private temp file that becomes ``dst`` only if the block succeeds.

    On any exception, KeyboardInterrupt included, the temp file is removed
    and ``dst`` is left untouched.
    """
    f = tempfile.NamedTemporaryFile(prefix=STAGING_PREFIX, dir=tmp_dir, delete=False)
    tmp = f.name
    logger.debug("Staging download in %s", tmp)
    try:
        yield f
        f.close()
        _move_into_place(Path(tmp), dst)
    finally:
        if not f.closed:
            with contextlib.suppress(OSError):
                f.close()
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp)


def _download(
    client: ReleaseClient,
    args: RunArgs,
    asset: Asset,
    dst: Path,
    deadline: Deadline,
    tmp_dir: str | None,
) -> int:
    content = client.download_release_asset(args.owner, args.repo, asset.id, deadline)
    if isinstance(content, Stream):
        r = content.response
    elif isinstance(content, RedirectURL):
        r = client.open_redirect(content.url, deadline)
    else:
        raise NoDownloadLinkError()

    try:
        with staging_file(dst, tmp_dir) as f:
            return copy_body(r, f, deadline)
    finally:
        r.close()


def run(
    args: RunArgs,
    client: ReleaseClient | None = None,
    workdir: Path | None = None,
    tmp_dir: str | None = None,
) -> Path:
    """Download the first matching asset of the latest release into ``workdir``.

    ``client`` defaults to a GitHubClient built from ``args``; anything with
    the same three methods will do. Returns the path written.
    """
    deadline = Deadline(args.timeout)
    args.validate()
    pattern = GlobPattern(args.pattern)
    workdir = Path.cwd() if workdir is None else workdir

    own_client = None
    if client is None:
        client = own_client = GitHubClient(token=args.token, base_url=args.api_url)
    try:
        release = client.get_latest_release(args.owner, args.repo, deadline)
        logger.info(
            "Latest release of %s/%s: %s (%d assets)",
            args.owner,
            args.repo,
            release.tag_name or release.name or "untagged",
            len(release.assets),
        )

        asset = select_asset(release.assets, pattern)
        dst = workdir / local_name(asset.name)
        check_destination(dst)

        logger.info("Downloading %s", asset.name)
        written = _download(client, args, asset, dst, deadline, tmp_dir)
    finally:
        if own_client is not None:
            own_client.close()

    logger.info("Wrote %s (%d bytes)", dst, written)
    return dst
