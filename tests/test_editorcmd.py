import os
import stat

import pytest

from limakit.editorcmd import detect


def _make_exe(directory, name):
    path = directory / name
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    bindir = tmp_path / "bin"
    bindir.mkdir()
    monkeypatch.setenv("PATH", str(bindir))
    monkeypatch.delenv("VISUAL", raising=False)
    monkeypatch.delenv("EDITOR", raising=False)
    return bindir


def test_nothing_found(clean_env):
    assert detect() == ""


def test_visual_absolute_path(clean_env, tmp_path):
    exe = _make_exe(tmp_path, "myedit")
    os.environ["VISUAL"] = str(exe)
    assert detect() == str(exe)


def test_visual_preferred_over_editor(clean_env):
    first = _make_exe(clean_env, "first")
    _make_exe(clean_env, "second")
    os.environ["VISUAL"] = "first"
    os.environ["EDITOR"] = "second"
    assert detect() == str(first)


def test_editor_when_visual_missing(clean_env):
    second = _make_exe(clean_env, "second")
    os.environ["VISUAL"] = "does-not-exist"
    os.environ["EDITOR"] = "second"
    assert detect() == str(second)


def test_fallback_candidates_order(clean_env):
    vi = _make_exe(clean_env, "vi")
    _make_exe(clean_env, "emacs")
    assert detect() == str(vi)
    vim = _make_exe(clean_env, "vim")
    assert detect() == str(vim)