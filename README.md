# limakit

Building blocks for tooling that creates and manages Linux virtual machine
instances on a host. The package uses only the Python standard library and
supports Python 3.10 and later.

## Install

```
pip install limakit
```

To run the tests:

```
pip install "limakit[test]"
pytest
```

## Modules

### `limakit.guessarg`

Works out what a command-line argument names.

- `seems_template_url(arg)` returns a pair: whether the scheme is
  `template`, and the parsed URL (`None` if it could not be parsed).
- `seems_http_url`, `seems_file_url` and `seems_yaml_path` return booleans.
  `seems_yaml_path` is true for anything that contains a `/` or ends in
  `.yml`/`.yaml`.
- `inst_name_from_yaml_path(path)` derives an instance name from a path.
  It takes the base name, lower-cases it, drops `.yml`/`.yaml` and turns dots
  into dashes, so `templates/Fedora.38.yaml` gives `fedora-38`.
  `inst_name_from_url(url)` does the same with the last element of the URL
  path.
- `validate_identifier(s)` raises `ValueError` unless `s` is a valid name.
  A valid name is non-empty, at most 76 characters, and made of alphanumeric
  runs joined by `.`, `_` or `-`.

### `limakit.editflags`

- `register_edit(parser)` adds instance-editing options to an
  `argparse.ArgumentParser`: `--cpus`, `--dns`, `--memory`, `--mount`,
  `--mount-type`, `--mount-writable`, `--network`, `--rosetta`, `--set` and
  `--video`.
- `register_create(parser, comment_prefix)` adds the same options plus
  `--arch`, `--containerd`, `--disk`, `--vm-type` and `--plain`.
  `comment_prefix` is put in front of every help text.

Options that are not given stay out of the namespace. `--dns`, `--mount`
and `--network` accept comma-separated values and can be repeated.

`yq_expressions(changed, new_instance)` turns the options that were given
into yq expressions, in a fixed order. `changed` is the parsed namespace, or
a mapping keyed by option name with dashes. Options that only make sense for
a new instance are skipped, with a warning, when `new_instance` is false.
A bad `--network` or `--containerd` value raises `ValueError`.

```python
import argparse
from limakit.editflags import register_create, yq_expressions

parser = argparse.ArgumentParser()
register_create(parser, "")
ns = parser.parse_args(["--cpus", "2", "--mount", "/tmp/data:w"])
print(yq_expressions(ns, new_instance=True))
# ['.cpus = 2', '.mounts += [{"location": "/tmp/data", "writable": true}] | .mounts |= unique_by(.location)']
```

`complete_cpus(host_cpus)` and `complete_memory_gib(host_memory)` return
suggested values. These are powers of two up to the host CPU count, or up
to half the host memory in GiB, followed by that limit itself when it is
not a power of two.

### `limakit.editorcmd` and `limakit.editutil`

- `editorcmd.detect()` returns the full path of the first editor found. It
  tries `$VISUAL`, `$EDITOR`, `editor`, `vim`, `vi` and `emacs` in turn, and
  returns `""` when none is found.
- `editutil.open_editor(content, hdr)` writes `hdr` followed by `content` to
  a temporary file and opens the editor on it.
  - It returns the edited bytes with the header removed, or `None` if the
    file was saved empty or holding only whitespace.
  - It raises `RuntimeError` if no editor is found or the editor fails.
- `editutil.generate_editor_warning_header(config_dir)` builds a header of
  commented warnings quoting `default.yaml` and `override.yaml` from
  `config_dir`. It returns a fixed warning when `config_dir` is `None`.
- `editutil.file_warning(filename)` returns the warning for one file, or
  `""` if the file is missing or empty.

### `limakit.executil`

`run_utf16le_command(args, timeout=None)` runs a command and returns its
stdout and stderr together, decoded from UTF-16LE with any BOM removed.
A non-zero exit raises `subprocess.CalledProcessError` carrying the
decoded output.

### `limakit.bicopy`

`bicopy(x, y, quit=None)` copies data both ways between two sockets or
binary file-like objects. It runs until both directions reach end of input,
or until the `threading.Event` `quit` is set. When one direction ends it
half-closes the streams where it can, and it closes both streams before
returning.

### `limakit.cmdutil`

- `shell_script(args, workdir, shell, mounts_present, cwd, home)` builds
  the script to run over ssh for a guest shell.
  - It changes to the working directory first. With `workdir` it exits if
    that fails. Otherwise, when mounts are present, it tries `cwd` and then
    `home`.
  - It then `exec`s the login shell (`"$SHELL"` unless `shell` is given),
    passing the quoted command with `-c` when `args` is not empty.
  - Leading `NAME=VALUE` arguments have only their value quoted.
- `is_env(arg)` and `quote_env(arg)` are the helpers for that
  `NAME=VALUE` handling.
- `split_copy_target(arg)` splits `INSTANCE:PATH` into
  `(instance, path)`, or returns `(None, arg)` for a host path. It raises
  `ValueError` when there is more than one colon.
- `replace_all(directory, old, new)` replaces text in every file directly
  inside `directory`. Subdirectories are left alone.
- `docsy_title(filename)` returns front matter for a generated reference
  page; for example, `limactl_completion_bash.md` gets the title
  `completion bash`.
- `instance_matches(arg, instances)` returns the names equal to `arg`.

### `limakit.downloader`

`download(local, remote, cache_dir=None, decompress=False, description="", expected_digest=None)`
fetches `remote` into `local` and returns a `Result`. A `Result` has a
`status` (a `Status`: `DOWNLOADED`, `SKIPPED`, `USED_CACHE`), a `cache_path`
and a `validated_digest` flag.

- If `local` already exists, nothing is done and the status is `SKIPPED`.
- If `remote` is a local path or a `file://` URL, the file is copied and
  never cached.
- Otherwise the file is fetched over HTTP(S) with `urllib`. When
  `cache_dir` is given, it is stored under
  `cache_dir/download/by-url-sha256/<sha256 of the URL>/data` and reused on
  later calls.
- `local` may be empty to only fill the cache. That needs `cache_dir`.
- With `decompress=True`, files ending in `.gz`, `.bz2`, `.xz` or `.zst` are
  decompressed by running `gzip`, `bzip2`, `xz` or `zstd`, which must be
  installed. `decompressor(ext)` returns that command, or `None`.

`cached(remote, cache_dir, expected_digest=None)` reports a cached remote
file as `USED_CACHE`, validating its digest. It raises for local files.

`Digest.parse("sha256:<hex>")` accepts `sha256`, `sha384` and `sha512`
digests and raises `ValueError` for anything malformed.
`digest.from_file(path)` computes a file's digest with the same algorithm.
A digest mismatch and other failures raise `DownloadError`.
`is_local(s)` tells local paths from URLs. `default_cache_dir()` returns the
per-user cache directory with `lima` appended.

```python
import hashlib, pathlib, tempfile
from limakit.downloader import download, Digest, Status

src = pathlib.Path(tempfile.mkdtemp()) / "image.img"
src.write_bytes(b"disk image")
digest = Digest.parse("sha256:" + hashlib.sha256(b"disk image").hexdigest())

result = download(str(src) + ".copy", "file://" + str(src), expected_digest=digest)
assert result.status is Status.DOWNLOADED and result.validated_digest
```

### `limakit.fileutils`

- `File(location, arch, digest)` describes a file to fetch.
- `download_file(dest, f, decompress, description, expected_arch, cache_dir=None)`
  downloads it through the cache (the default cache directory when
  `cache_dir` is `None`) and returns the cache path.
  - It raises `SkippedError` when `f.arch` is not `expected_arch`.
  - It raises `DownloadError` when the download fails.
- `cached_file(f, cache_dir=None)` returns the cache path of a file that is
  already cached.
- `combine_errors(errs)` joins errors into one and leaves out
  `SkippedError`s. It returns `None` for an empty list. When every error is
  a skip, it returns one error listing them all.

### `limakit.cidata`

Pieces of the cloud-init data given to a guest:

- `setup_env(env, propagate_proxy_env, slirp_gateway, system_settings=None, lookup_ip=None)`
  merges proxy settings in order: system settings, then `env`, then
  optionally this process's proxy variables.
  - It drops empty values.
  - It points proxies whose host resolves to a loopback address at
    `slirp_gateway`. The port, path and user info are kept.
  - It makes lower- and upper-case variables agree, the lower-case one
    winning.
- `get_cert(content)` returns the non-empty, stripped lines of a
  certificate. `get_boot_cmds(provisions)` does the same for every
  `Provision` whose mode is `"boot"`.
- `disk_device_name_from_order(0)` is `"vdb"`, `1` is `"vdc"`, and so on.
- `validate_template_args(args)` checks a `TemplateArgs` and raises
  `ValueError`. It requires valid name and user identifiers, a user other
  than `root`, a non-zero UID, a home directory, at least one SSH public
  key, and an absolute path for each `Mount` mount point.
- `write_cidata_dir(root_path, layout)` replaces `root_path` with the given
  files. Each layout entry is `(path, content)`, and the content is bytes,
  text or a binary file object.

## What the package does not do

limakit is a library of helpers. It has no command-line program of its own
and does not start, stop or connect to virtual machines. It does not keep an
instance store. It does not render cloud-init templates or build an ISO
image; it only validates `TemplateArgs` and writes a data directory from
content you supply. `shell_script` and `split_copy_target` build strings and
split arguments; running `ssh` or `scp` is left to the caller.