"""Find a text editor to run."""

from __future__ import annotations

import os
import shutil


def detect() -> str:
    """Return the path of a text editor, or an empty string when none is found."""
    candidates = [
        os.environ.get("VISUAL", ""),
        os.environ.get("EDITOR", ""),
        "editor",
        "vim",
        "vi",
        "emacs",
    ]
    for name in candidates:
        if not name:
            continue
        found = shutil.which(name)
        if found:
            return found
    return ""