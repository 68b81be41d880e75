"""Open an editor on a YAML document and describe settings applied before it."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path

from limakit.editorcmd import detect

logger = logging.getLogger(__name__)

DEFAULT_YAML = "default.yaml"
OVERRIDE_YAML = "override.yaml"

_RULE = "# -----------\n"


def file_warning(filename: str | os.PathLike[str]) -> str:
    """Return a commented warning quoting the file, or "" if it is missing or empty."""
    try:
        data = Path(filename).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""
    if not data:
        return ""
    parts = [
        f"# WARNING: {os.fspath(filename)} includes the following settings,\n",
        "# which are applied before applying this YAML:\n",
        _RULE,
    ]
    for line in data.removesuffix("\n").split("\n"):
        parts.append(f"# {line}\n" if line else "#\n")
    parts.append(_RULE)
    parts.append("\n")
    return "".join(parts)


def generate_editor_warning_header(config_dir: str | os.PathLike[str] | None) -> str:
    """Build the warning header shown above a YAML opened in the editor.

    ``config_dir`` is the configuration directory, or None when it could not
    be determined.
    """
    if config_dir is None:
        return "# WARNING: failed to load the config dir\n\n"
    base = Path(config_dir)
    return file_warning(base / DEFAULT_YAML) + file_warning(base / OVERRIDE_YAML)


def open_editor(content: bytes, hdr: str) -> bytes | None:
    """Open an editor on ``hdr`` followed by ``content`` and return the edited content.

    The header is removed from the result. None is returned when the file was
    saved empty or holding only whitespace.
    """
    editor = detect()
    if not editor:
        raise RuntimeError("could not detect a text editor binary, try setting $EDITOR")
    hdr_bytes = hdr.encode("utf-8")
    fd, tmp_path = tempfile.mkstemp(prefix="lima-editor-")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(hdr_bytes + content)
        os.chmod(tmp_path, 0o600)
        logger.debug("opening editor %r for a file %r", editor, tmp_path)
        try:
            subprocess.run([editor, tmp_path], check=True)
        except (OSError, subprocess.CalledProcessError) as err:
            raise RuntimeError(
                f"could not execute editor {editor!r} for a file {tmp_path!r}: {err}"
            ) from err
        modified = Path(tmp_path).read_bytes()
    finally:
        try:
            os.remove(tmp_path)
        except FileNotFoundError:
            pass
    modified = modified.removeprefix(hdr_bytes)
    if not modified.strip():
        return None
    return modified