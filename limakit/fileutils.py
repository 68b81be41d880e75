"""Fetch files named in an instance configuration, going through the download cache."""

from __future__ import annotations

import json
import logging
import posixpath
from dataclasses import dataclass
from typing import Iterable

from limakit.downloader import (
    Digest,
    DownloadError,
    Status,
    cached,
    default_cache_dir,
    download,
)

logger = logging.getLogger(__name__)


def _quote(s: object) -> str:
    return json.dumps(str(s), ensure_ascii=False)


@dataclass(frozen=True)
class File:
    """A downloadable file: where it lives, which architecture it is for, and its digest."""

    location: str
    arch: str = ""
    digest: str | Digest | None = None


class SkippedError(Exception):
    """Raised when a file was deliberately not downloaded."""


def download_file(
    dest: str,
    f: File,
    decompress: bool,
    description: str,
    expected_arch: str,
    cache_dir: str | None = None,
) -> str:
    """Download ``f`` into the cache, copying it to ``dest`` if that is not empty.

    Returns the path of the file in the cache, which is empty for local files.
    """
    if f.arch != expected_arch:
        raise SkippedError(
            f"skipped to download: {_quote(f.location)}: unsupported arch: {_quote(f.arch)}"
        )
    if cache_dir is None:
        cache_dir = default_cache_dir()
    logger.info(
        "Attempting to download %s (location=%s arch=%s digest=%s)",
        description, f.location, f.arch, f.digest or "",
    )
    try:
        res = download(
            dest,
            f.location,
            cache_dir=cache_dir,
            decompress=decompress,
            description=f"{description} ({posixpath.basename(f.location)})",
            expected_digest=f.digest,
        )
    except (DownloadError, OSError, ValueError) as err:
        raise DownloadError(f"failed to download {_quote(f.location)}: {err}") from err
    logger.debug("res.validated_digest=%s", res.validated_digest)
    if res.status == Status.DOWNLOADED:
        logger.info("Downloaded %s from %r", description, f.location)
    elif res.status == Status.USED_CACHE:
        logger.info("Using cache %r", res.cache_path)
    else:
        logger.warning("Unexpected result from download(): %r", res)
    return res.cache_path


def cached_file(f: File, cache_dir: str | None = None) -> str:
    """Return the cache path of ``f``, validating its digest when one is known."""
    if cache_dir is None:
        cache_dir = default_cache_dir()
    try:
        res = cached(f.location, cache_dir=cache_dir, expected_digest=f.digest)
    except (DownloadError, OSError, ValueError) as err:
        raise DownloadError(f"cache did not contain {_quote(f.location)}: {err}") from err
    return res.cache_path


def combine_errors(errs: Iterable[BaseException]) -> BaseException | None:
    """Combine errors into one, leaving out skipped downloads.

    Returns None when there is nothing to report. When every error is a skip,
    a single error listing them all is returned.
    """
    errs = list(errs)
    final: BaseException | None = None
    for err in errs:
        if isinstance(err, SkippedError):
            logger.debug("%s", err)
        elif final is None:
            final = err
        else:
            combined = RuntimeError(f"{final}, {err}")
            combined.__cause__ = err
            final = combined
    if errs and final is None:
        final = RuntimeError("[" + " ".join(str(e) for e in errs) + "]")
    return final