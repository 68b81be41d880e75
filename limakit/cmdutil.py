"""Helpers behind the shell, copy, list and doc-generation commands."""

from __future__ import annotations

import logging
import os
import shlex
from typing import Iterable, Sequence

logger = logging.getLogger(__name__)

_TYPO_SUBCOMMANDS = ("create", "start", "delete", "shell")


def is_env(arg: str) -> bool:
    """Whether ``arg`` looks like an environment assignment NAME=VALUE."""
    return len(arg.split("=")) > 1


def quote_env(arg: str) -> str:
    """Quote the value part of NAME=VALUE for the shell, leaving the name bare."""
    name, value = arg.split("=", 1)
    return f"{name}={shlex.quote(value)}"


def shell_script(
    args: Sequence[str],
    workdir: str = "",
    shell: str = "",
    mounts_present: bool = False,
    cwd: str | None = None,
    home: str | None = None,
) -> str:
    """Build the script run over ssh for an interactive or one-shot guest shell.

    ``args`` is the command to run (possibly empty), after the instance name.
    ``cwd`` and ``home`` are the host directories to try, or None when unknown.
    """
    args = list(args)
    if args and args[0] == "--":
        args = args[1:]
    if args and args[0] in _TYPO_SUBCOMMANDS:
        logger.warning("Perhaps you meant `limactl %s`?", " ".join(args))

    change_dir = ""
    if workdir:
        change_dir = f"cd {shlex.quote(workdir)} || exit 1"
    elif mounts_present:
        if cwd is not None:
            change_dir = f"cd {shlex.quote(cwd)}"
        else:
            change_dir = "false"
            logger.warning("failed to get the current directory")
        if home is not None:
            change_dir = f"{change_dir} || cd {shlex.quote(home)}"
        else:
            logger.warning("failed to get the home directory")
    else:
        logger.debug("the host home does not seem mounted, so the guest shell will have a different cwd")
    if not change_dir:
        change_dir = "false"
    logger.debug("changeDirCmd=%r", change_dir)

    shell = shlex.quote(shell) if shell else '"$SHELL"'
    script = f"{change_dir} ; exec {shell} --login"
    if args:
        quoted = []
        parsing_env = True
        for arg in args:
            if parsing_env and is_env(arg):
                quoted.append(quote_env(arg))
            else:
                parsing_env = False
                quoted.append(shlex.quote(arg))
        script += f" -c {shlex.quote(' '.join(quoted))}"
    return script


def split_copy_target(arg: str) -> tuple[str | None, str]:
    """Split INSTANCE:PATH into its parts; a plain host path has no instance."""
    parts = arg.split(":")
    if len(parts) == 1:
        return None, arg
    if len(parts) == 2:
        return parts[0], parts[1]
    raise ValueError(f"path {arg!r} contains multiple colons")


def replace_all(directory: str | os.PathLike[str], old: str, new: str) -> None:
    """Replace every occurrence of ``old`` with ``new`` in the files directly inside ``directory``."""
    logger.info("Replacing %r with %r", old, new)
    old_b, new_b = old.encode("utf-8"), new.encode("utf-8")
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            continue
        with open(entry.path, "rb") as f:
            data = f.read()
        with open(entry.path, "wb") as f:
            f.write(data.replace(old_b, new_b))


def _ext(name: str) -> str:
    i = name.rfind(".")
    if i < 0 or "/" in name[i:]:
        return ""
    return name[i:]


def docsy_title(filename: str) -> str:
    """Front matter for a generated command reference page."""
    name = os.path.basename(filename)
    name = name.replace("limactl_", "").replace("_", " ")
    ext = _ext(name)
    if ext:
        name = name[: -len(ext)]
    return f"---\ntitle: {name}\nweight: 3\n---\n"


def instance_matches(arg: str, instances: Iterable[str]) -> list[str]:
    """Instances whose name equals ``arg``."""
    return [inst for inst in instances if inst == arg]