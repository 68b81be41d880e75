import shlex

import pytest

from limakit import cmdutil


def test_is_env():
    assert cmdutil.is_env("FOO=bar")
    assert not cmdutil.is_env("ls")


@pytest.mark.parametrize("arg", ["FOO=a b", "A=b=c", "X=it's", "EMPTY="])
def test_quote_env_round_trip(arg):
    quoted = cmdutil.quote_env(arg)
    assert quoted.startswith(arg.split("=", 1)[0] + "=")
    assert shlex.split(quoted) == [arg]


def test_quote_env_leaves_safe_value():
    assert cmdutil.quote_env("X=plain") == "X=plain"


def test_workdir_must_be_entered():
    script = cmdutil.shell_script([], workdir="/srv/work")
    assert shlex.split(script) == [
        "cd", "/srv/work", "||", "exit", "1", ";", "exec", "$SHELL", "--login",
    ]


def test_no_mounts_uses_false():
    script = cmdutil.shell_script([], mounts_present=False, cwd="/a", home="/b")
    assert shlex.split(script)[:2] == ["false", ";"]


def test_mounts_try_cwd_then_home():
    script = cmdutil.shell_script([], mounts_present=True, cwd="/my dir", home="/home/u")
    assert shlex.split(script)[:6] == ["cd", "/my dir", "||", "cd", "/home/u", ";"]


def test_mounts_without_cwd():
    script = cmdutil.shell_script([], mounts_present=True, cwd=None, home="/home/u")
    assert shlex.split(script)[:5] == ["false", "||", "cd", "/home/u", ";"]


def test_custom_shell():
    script = cmdutil.shell_script([], shell="/bin/zsh")
    assert shlex.split(script)[-3:] == ["exec", "/bin/zsh", "--login"]


def test_command_round_trip():
    args = ["echo", "hello world", "it's"]
    toks = shlex.split(cmdutil.shell_script(args))
    assert toks[-2] == "-c"
    assert shlex.split(toks[-1]) == args


def test_env_prefix_quoting():
    args = ["FOO=a b", "env", "X=y z"]
    toks = shlex.split(cmdutil.shell_script(args))
    inner = toks[-1]
    assert shlex.split(inner) == args
    assert inner.startswith("FOO=")
    assert "'X=y z'" in inner


def test_double_dash_dropped():
    assert cmdutil.shell_script(["--", "ls"]) == cmdutil.shell_script(["ls"])


def test_split_copy_target():
    assert cmdutil.split_copy_target("default:/etc/os-release") == ("default", "/etc/os-release")
    assert cmdutil.split_copy_target(".") == (None, ".")
    with pytest.raises(ValueError, match="multiple colons"):
        cmdutil.split_copy_target("a:b:c")


def test_replace_all_top_level_only(tmp_path):
    (tmp_path / "a.txt").write_text("home is /Users/x here, /Users/x")
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "b.txt").write_text("/Users/x")
    cmdutil.replace_all(tmp_path, "/Users/x", "~")
    assert (tmp_path / "a.txt").read_text() == "home is ~ here, ~"
    assert (sub / "b.txt").read_text() == "/Users/x"


def test_docsy_title():
    title = cmdutil.docsy_title("/out/limactl_completion_bash.md")
    assert title.startswith("---\n")
    assert "title: completion bash\n" in title
    assert title.endswith("weight: 3\n---\n")


def test_docsy_title_root():
    assert "title: limactl\n" in cmdutil.docsy_title("limactl.md")


def test_instance_matches():
    assert cmdutil.instance_matches("default", ["default", "other", "default"]) == ["default", "default"]
    assert cmdutil.instance_matches("missing", ["default"]) == []