"""Run commands whose output is UTF-16LE encoded text."""

from __future__ import annotations

import subprocess
from typing import Sequence


def _decode_utf16le(data: bytes) -> str:
    text = data.decode("utf-16-le")
    return text.removeprefix("\ufeff")


def run_utf16le_command(args: Sequence[str], timeout: float | None = None) -> str:
    """Run ``args`` and return its combined stdout and stderr decoded from UTF-16LE.

    A non-zero exit raises CalledProcessError carrying the decoded output.
    """
    if not args:
        raise ValueError("no command given")
    proc = subprocess.run(
        list(args),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        timeout=timeout,
    )
    out = ""
    if proc.stdout:
        try:
            out = _decode_utf16le(proc.stdout)
        except UnicodeDecodeError as err:
            raise ValueError(
                f"failed to convert output from UTF16 when running command {list(args)}, err: {err}"
            ) from err
    if proc.returncode != 0:
        raise subprocess.CalledProcessError(proc.returncode, list(args), output=out)
    return out