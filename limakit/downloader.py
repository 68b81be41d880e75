"""Download remote files or copy local ones, with an optional cache and digest checks."""

from __future__ import annotations

import enum
import hashlib
import json
import logging
import os
import re
import shutil
import subprocess
import sys
import urllib.error
import urllib.request
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024

# Length of the hex-encoded value for every supported algorithm.
_ALGORITHMS = {"sha256": 64, "sha384": 96, "sha512": 128}
_DIGEST_RE = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-zA-Z0-9=_-]+$")
_ENCODED_RE = re.compile(r"^[a-f0-9]+$")

_DECOMPRESSORS = {
    ".gz": "gzip",
    ".bz2": "bzip2",
    ".xz": "xz",
    ".zst": "zstd",
}


def _quote(s: object) -> str:
    return json.dumps(str(s), ensure_ascii=False)


class DownloadError(Exception):
    """Raised when a download, copy or digest check fails."""


class Status(str, enum.Enum):
    UNKNOWN = ""
    DOWNLOADED = "downloaded"
    SKIPPED = "skipped"
    USED_CACHE = "used-cache"


@dataclass
class Result:
    status: Status
    cache_path: str = ""
    validated_digest: bool = False


@dataclass(frozen=True)
class Digest:
    """A content digest written as ``algorithm:hex``."""

    algorithm: str
    encoded: str

    @classmethod
    def parse(cls, value: str | Digest) -> Digest:
        """Parse and validate a digest string; raise ValueError if it is malformed."""
        if isinstance(value, Digest):
            return value
        i = value.find(":")
        if i <= 0 or i + 1 == len(value):
            raise ValueError("invalid checksum digest format")
        algorithm, encoded = value[:i], value[i + 1:]
        if algorithm not in _ALGORITHMS:
            if not _DIGEST_RE.match(value):
                raise ValueError("invalid checksum digest format")
            raise ValueError(f"expected digest algorithm {_quote(algorithm)} is not available")
        if len(encoded) != _ALGORITHMS[algorithm]:
            raise ValueError("invalid checksum digest length")
        if not _ENCODED_RE.match(encoded):
            raise ValueError("invalid checksum digest format")
        return cls(algorithm, encoded)

    def _hasher(self):
        return hashlib.new(self.algorithm)

    def from_file(self, path: str | os.PathLike[str]) -> Digest:
        """Digest of the file at ``path``, computed with this digest's algorithm."""
        h = self._hasher()
        with open(path, "rb") as f:
            while chunk := f.read(_CHUNK):
                h.update(chunk)
        return Digest(self.algorithm, h.hexdigest())

    def __str__(self) -> str:
        return f"{self.algorithm}:{self.encoded}"


def _as_digest(value: str | Digest | None) -> Digest | None:
    if value is None or value == "":
        return None
    return Digest.parse(value)


def default_cache_dir() -> str:
    """The per-user cache directory for downloads."""
    if sys.platform == "win32":
        base = os.environ.get("LocalAppData", "")
        if not base:
            raise OSError("%LocalAppData% is not defined")
    elif sys.platform == "darwin":
        home = os.environ.get("HOME", "")
        if not home:
            raise OSError("$HOME is not defined")
        base = os.path.join(home, "Library", "Caches")
    else:
        base = os.environ.get("XDG_CACHE_HOME", "")
        if not base:
            home = os.environ.get("HOME", "")
            if not home:
                raise OSError("neither $XDG_CACHE_HOME nor $HOME are defined")
            base = os.path.join(home, ".cache")
        elif not os.path.isabs(base):
            raise OSError("path in $XDG_CACHE_HOME is relative")
    return os.path.join(base, "lima")


def is_local(s: str) -> bool:
    """Whether ``s`` names a local file: no scheme, or the ``file://`` scheme."""
    return "://" not in s or s.startswith("file://")


def decompressor(ext: str) -> list[str] | None:
    """The command that decompresses files with extension ``ext``, or None."""
    program = _DECOMPRESSORS.get(ext)
    if program is None:
        return None
    return [program, "-d"]


def _ext(p: str) -> str:
    i = p.rfind(".")
    if i < 0 or "/" in p[i:]:
        return ""
    return p[i:]


def _expand(s: str) -> str:
    if s == "~" or s.startswith("~/"):
        s = os.path.expanduser(s)
    return os.path.abspath(s)


def _canonical_local_path(s: str) -> str:
    if not s:
        raise DownloadError("got empty path")
    if not is_local(s):
        raise DownloadError(f"got non-local path: {_quote(s)}")
    if s.startswith("file://"):
        res = s.removeprefix("file://")
        if not os.path.isabs(res):
            raise DownloadError(f"got non-absolute path {_quote(res)}")
        return res
    return _expand(s)


def _remove_all(path: str) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    else:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


def _cache_directory_path(cache_dir: str, remote: str) -> str:
    sha = hashlib.sha256(remote.encode("utf-8")).hexdigest()
    return os.path.join(cache_dir, "download", "by-url-sha256", sha)


def _cache_digest_path(shad: str, digest: Digest | None) -> str:
    if digest is None:
        return ""
    algo = digest.algorithm
    if "/" in algo or "\\" in algo:
        raise DownloadError(f"invalid digest algorithm {_quote(algo)}")
    return os.path.join(shad, algo + ".digest")


def _validate_cached_digest(shad_digest: str, digest: Digest | None) -> None:
    if digest is None:
        return
    with open(shad_digest, encoding="utf-8") as f:
        recorded = f.read().strip()
    if recorded != str(digest):
        raise DownloadError(f"expected digest {_quote(digest)}, got {_quote(recorded)}")


def _validate_local_file_digest(local_path: str, digest: Digest | None) -> None:
    if not local_path:
        raise DownloadError("validateLocalFileDigest: got empty localPath")
    if digest is None:
        return
    actual = digest.from_file(local_path)
    if actual != digest:
        raise DownloadError(f"expected digest {_quote(digest)}, got {_quote(actual)}")


def _decompress_local(dst: str, src: str, ext: str, description: str) -> None:
    command = decompressor(ext)
    if command is None:
        raise DownloadError(f"decompressLocal: unknown extension {ext}")
    logger.info("decompressing %s with %s", ext, command)
    logger.info("Decompressing %s", description or os.path.basename(src))
    with open(src, "rb") as fin, open(dst, "wb") as fout:
        proc = subprocess.run(command, stdin=fin, stdout=fout, stderr=subprocess.PIPE)
    if proc.returncode != 0:
        raise subprocess.CalledProcessError(proc.returncode, command, stderr=proc.stderr)


def _copy_local(
    dst: str, src: str, ext: str, decompress: bool, description: str, digest: Digest | None
) -> None:
    src_path = _canonical_local_path(src)
    if digest is not None:
        logger.debug("verifying digest of local file %r (%s)", src_path, digest)
    _validate_local_file_digest(src_path, digest)
    if not dst:
        # caching-only mode
        return
    dst_path = _canonical_local_path(dst)
    if decompress and decompressor(ext) is not None:
        _decompress_local(dst_path, src_path, ext, description)
        return
    shutil.copyfile(src_path, dst_path)


def _download_http(local_path: str, url: str, description: str, digest: Digest | None) -> None:
    if not local_path:
        raise DownloadError("downloadHTTP: got empty localPath")
    logger.debug("downloading %r into %r", url, local_path)
    tmp_path = local_path + ".tmp"
    _remove_all(tmp_path)
    try:
        resp = urllib.request.urlopen(url)
    except urllib.error.HTTPError as err:
        err.close()
        raise DownloadError(f"expected HTTP status 200, got {err.code} {err.reason}") from err
    except urllib.error.URLError as err:
        raise DownloadError(f"failed to fetch {_quote(url)}: {err.reason}") from err
    hasher = digest._hasher() if digest is not None else None
    with resp, open(tmp_path, "wb") as f:
        if resp.status != 200:
            raise DownloadError(f"expected HTTP status 200, got {resp.status} {resp.reason}")
        print(f"Downloading {description or url}", file=sys.stderr)
        while chunk := resp.read(_CHUNK):
            f.write(chunk)
            if hasher is not None:
                hasher.update(chunk)
        if hasher is not None:
            actual = Digest(digest.algorithm, hasher.hexdigest())
            if actual != digest:
                raise DownloadError(f"expected digest {_quote(digest)}, got {_quote(actual)}")
        f.flush()
        os.fsync(f.fileno())
    _remove_all(local_path)
    os.replace(tmp_path, local_path)


def download(
    local: str,
    remote: str,
    cache_dir: str | None = None,
    decompress: bool = False,
    description: str = "",
    expected_digest: str | Digest | None = None,
) -> Result:
    """Fetch ``remote`` into ``local``.

    Remote resources are cached under ``cache_dir`` when it is given; local
    files are never cached. An existing ``local`` is left alone and reported as
    skipped. ``local`` may be empty for caching-only mode.
    """
    digest = _as_digest(expected_digest)
    validated = digest is not None
    local_path = ""
    if not local:
        if not cache_dir:
            raise DownloadError("caching-only mode requires the cache directory to be specified")
    else:
        local_path = _canonical_local_path(local)
        try:
            os.stat(local_path)
        except FileNotFoundError:
            pass
        else:
            logger.debug(
                "file %r already exists, skipping downloading from %r "
                "(and skipping digest validation)", local_path, remote,
            )
            return Result(Status.SKIPPED, validated_digest=False)
        os.makedirs(os.path.dirname(local_path), mode=0o755, exist_ok=True)

    ext = _ext(remote)
    if is_local(remote):
        _copy_local(local_path, remote, ext, decompress, description, digest)
        return Result(Status.DOWNLOADED, validated_digest=validated)

    if not cache_dir:
        _download_http(local_path, remote, description, digest)
        return Result(Status.DOWNLOADED, validated_digest=validated)

    shad = _cache_directory_path(cache_dir, remote)
    shad_data = os.path.join(shad, "data")
    shad_digest = _cache_digest_path(shad, digest)
    if os.path.exists(shad_data):
        logger.debug("file %r is cached as %r", local_path, shad_data)
        if shad_digest and os.path.exists(shad_digest):
            logger.debug(
                "Comparing digest %r with the cached digest file %r, "
                "not computing the actual digest of %r", str(digest), shad_digest, shad_data,
            )
            _validate_cached_digest(shad_digest, digest)
            _copy_local(local_path, shad_data, ext, decompress, "", None)
        else:
            _copy_local(local_path, shad_data, ext, decompress, description, digest)
        return Result(Status.USED_CACHE, cache_path=shad_data, validated_digest=validated)

    _remove_all(shad)
    os.makedirs(shad, mode=0o700, exist_ok=True)
    with open(os.path.join(shad, "url"), "w", encoding="utf-8") as f:
        f.write(remote)
    _download_http(shad_data, remote, description, digest)
    # the digest was already verified while downloading
    _copy_local(local_path, shad_data, ext, decompress, "", None)
    if shad_digest and digest is not None:
        with open(shad_digest, "w", encoding="utf-8") as f:
            f.write(str(digest))
    return Result(Status.DOWNLOADED, cache_path=shad_data, validated_digest=validated)


def cached(
    remote: str,
    cache_dir: str | None = None,
    expected_digest: str | Digest | None = None,
) -> Result:
    """Report ``remote`` as cached under ``cache_dir``, validating its digest."""
    digest = _as_digest(expected_digest)
    if not cache_dir:
        raise DownloadError("caching-only mode requires the cache directory to be specified")
    if is_local(remote):
        raise DownloadError("local files are not cached")
    shad = _cache_directory_path(cache_dir, remote)
    shad_data = os.path.join(shad, "data")
    shad_digest = _cache_digest_path(shad, digest)
    os.stat(shad_data)
    if shad_digest and os.path.exists(shad_digest):
        _validate_local_file_digest(shad_data, digest)
    else:
        _validate_cached_digest(shad_digest, digest)
    return Result(Status.USED_CACHE, cache_path=shad_data, validated_digest=digest is not None)