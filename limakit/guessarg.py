"""Guess what kind of thing a command-line argument names: template, URL or YAML path."""

from __future__ import annotations

import json
import re
from urllib.parse import SplitResult, urlsplit

_IDENTIFIER_MAX_LENGTH = 76
_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9]+(?:[._-][A-Za-z0-9]+)*$")


def _quote(s: str) -> str:
    return json.dumps(s, ensure_ascii=False)


def validate_identifier(s: str) -> None:
    """Raise ValueError unless ``s`` is a valid instance identifier."""
    if not s:
        raise ValueError("identifier must not be empty: invalid argument")
    if len(s) > _IDENTIFIER_MAX_LENGTH:
        raise ValueError(
            f"identifier {_quote(s)} greater than maximum length "
            f"({_IDENTIFIER_MAX_LENGTH} characters): invalid argument"
        )
    if not _IDENTIFIER_RE.match(s):
        raise ValueError(
            f"identifier {_quote(s)} must match {_IDENTIFIER_RE.pattern}: invalid argument"
        )


def _parse_url(arg: str) -> SplitResult:
    if any(ord(c) < 0x20 or c == "\x7f" for c in arg):
        raise ValueError(f"parse {_quote(arg)}: net/url: invalid control character in URL")
    if arg.startswith(":"):
        raise ValueError(f"parse {_quote(arg)}: missing protocol scheme")
    return urlsplit(arg)


def _base(p: str, sep: str = "/") -> str:
    if p == "":
        return "."
    stripped = p.rstrip(sep)
    if stripped == "":
        return sep
    return stripped.rsplit(sep, 1)[-1]


def seems_template_url(arg: str) -> tuple[bool, SplitResult | None]:
    """Return whether ``arg`` is a ``template://`` URL, with the parsed URL."""
    try:
        u = _parse_url(arg)
    except ValueError:
        return False, None
    return u.scheme == "template", u


def seems_http_url(arg: str) -> bool:
    try:
        u = _parse_url(arg)
    except ValueError:
        return False
    return u.scheme in ("http", "https")


def seems_file_url(arg: str) -> bool:
    try:
        u = _parse_url(arg)
    except ValueError:
        return False
    return u.scheme == "file"


def seems_yaml_path(arg: str) -> bool:
    if "/" in arg:
        return True
    lower = arg.lower()
    return lower.endswith(".yml") or lower.endswith(".yaml")


def inst_name_from_url(url: str) -> str:
    """Derive an instance name from the last path element of a URL."""
    u = _parse_url(url)
    return inst_name_from_yaml_path(_base(u.path))


def inst_name_from_yaml_path(yaml_path: str) -> str:
    """Derive an instance name from a YAML file name."""
    s = _base(yaml_path).lower()
    s = s.removesuffix(".yml").removesuffix(".yaml")
    s = s.replace(".", "-")
    try:
        validate_identifier(s)
    except ValueError as err:
        raise ValueError(f"filename {_quote(yaml_path)} is invalid: {err}") from err
    return s