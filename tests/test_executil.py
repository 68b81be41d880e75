import subprocess
import sys

import pytest

from limakit.executil import run_utf16le_command


def _py(code):
    return [sys.executable, "-c", code]


def test_decodes_utf16le_output():
    code = "import sys; sys.stdout.buffer.write('h\u00e9llo w\u00f6rld'.encode('utf-16-le'))"
    assert run_utf16le_command(_py(code)) == "h\u00e9llo w\u00f6rld"


def test_byte_order_mark_is_dropped():
    code = "import sys; sys.stdout.buffer.write('\\ufeffabc'.encode('utf-16-le'))"
    assert run_utf16le_command(_py(code)) == "abc"


def test_empty_output():
    assert run_utf16le_command(_py("pass")) == ""


def test_stderr_is_combined():
    code = "import sys; sys.stderr.buffer.write('oops'.encode('utf-16-le'))"
    assert run_utf16le_command(_py(code)) == "oops"


def test_nonzero_exit_carries_output():
    code = "import sys; sys.stdout.buffer.write('bad'.encode('utf-16-le')); sys.exit(3)"
    with pytest.raises(subprocess.CalledProcessError) as info:
        run_utf16le_command(_py(code))
    assert info.value.returncode == 3
    assert info.value.output == "bad"


def test_odd_length_output_is_an_error():
    code = "import sys; sys.stdout.buffer.write(b'abc')"
    with pytest.raises(ValueError, match="failed to convert output from UTF16"):
        run_utf16le_command(_py(code))


def test_timeout():
    with pytest.raises(subprocess.TimeoutExpired):
        run_utf16le_command(_py("import time; time.sleep(5)"), timeout=0.2)


def test_empty_args():
    with pytest.raises(ValueError):
        run_utf16le_command([])