"""Command-line flags that modify an instance YAML, turned into yq expressions."""

from __future__ import annotations

import argparse
import ipaddress
import json
import logging
from typing import Any, Callable, Mapping

logger = logging.getLogger(__name__)

_TRUE = {"1", "t", "true", "T", "TRUE", "True"}
_FALSE = {"0", "f", "false", "F", "FALSE", "False"}


def _parse_bool(value: str) -> bool:
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {value!r}")


def _parse_ip(value: str) -> str:
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError as err:
        raise argparse.ArgumentTypeError(f"invalid IP address {value!r}") from err


class _SliceAction(argparse.Action):
    """Accumulate comma-separated values over repeated occurrences."""

    def __init__(self, *args: Any, item_type: Callable[[str], Any] = str, **kwargs: Any):
        self._item_type = item_type
        super().__init__(*args, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        items = list(getattr(namespace, self.dest, None) or [])
        for part in values.split(","):
            try:
                items.append(self._item_type(part))
            except argparse.ArgumentTypeError as err:
                parser.error(f"argument {option_string}: {err}")
        setattr(namespace, self.dest, items)


def _add(parser: argparse.ArgumentParser, name: str, help_text: str, **kwargs: Any) -> None:
    parser.add_argument(f"--{name}", dest=name, default=argparse.SUPPRESS, help=help_text, **kwargs)


def _add_bool(parser: argparse.ArgumentParser, name: str, help_text: str) -> None:
    _add(parser, name, help_text, nargs="?", const=True, type=_parse_bool)


def register_edit(parser: argparse.ArgumentParser) -> None:
    """Register the flags that modify a YAML in place, for editing."""
    _register_edit(parser, "")


def _register_edit(parser: argparse.ArgumentParser, comment_prefix: str) -> None:
    p = comment_prefix
    _add(parser, "cpus", p + "number of CPUs", type=int)
    _add(parser, "dns", p + "specify custom DNS (disable host resolver)",
         action=_SliceAction, item_type=_parse_ip)
    _add(parser, "memory", p + "memory in GiB", type=float)
    _add(parser, "mount",
         p + "directories to mount, suffix ':w' for writable "
         "(Do not specify directories that overlap with the existing mounts)",
         action=_SliceAction)
    _add(parser, "mount-type", p + "mount type (reverse-sshfs, 9p, virtiofs)")
    _add_bool(parser, "mount-writable", p + "make all mounts writable")
    _add(parser, "network",
         p + 'additional networks, e.g., "vzNAT" or "lima:shared" to assign vmnet IP',
         action=_SliceAction)
    _add_bool(parser, "rosetta", p + "enable Rosetta (for vz instances)")
    _add(parser, "set", p + "modify the template inplace, using yq syntax")
    _add_bool(parser, "video",
              p + "enable video output (has negative performance impact for QEMU)")


def register_create(parser: argparse.ArgumentParser, comment_prefix: str) -> None:
    """Register the editing flags plus those only meaningful for a new instance."""
    _register_edit(parser, comment_prefix)
    p = comment_prefix
    _add(parser, "arch", p + "machine architecture (x86_64, aarch64, riscv64)")
    _add(parser, "containerd", p + "containerd mode (user, system, user+system, none)")
    _add(parser, "disk", p + "disk size in GiB", type=float)
    _add(parser, "vm-type", p + "virtual machine type (qemu, vz)")
    _add_bool(parser, "plain",
              p + "plain mode. Disable mounts, port forwarding, containerd, etc.")


def _format_float(v: float) -> str:
    s = repr(float(v))
    return s[:-2] if s.endswith(".0") else s


def _flag_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_flag_string(v) for v in value) + "]"
    return str(value)


def _quote(s: str) -> str:
    return json.dumps(str(s), ensure_ascii=False)


def _fmt(template: str, quote: bool = False) -> Callable[[Any], str]:
    def render(value: Any) -> str:
        s = _flag_string(value)
        return template % (_quote(s) if quote else s)
    return render


def _dns_expr(ips: list[str]) -> str:
    logger.warning(
        "Disabling HostResolver, as custom DNS addresses ([%s]) are specified", " ".join(ips)
    )
    items = ",".join(_quote(ip) for ip in ips)
    return f".dns += [{items}] | .dns |= unique | .hostResolver.enabled=false"


def _mount_expr(mounts: list[str]) -> str:
    items = []
    for s in mounts:
        writable = s.endswith(":w")
        loc = s.removesuffix(":w")
        items.append(f'{{"location": {_quote(loc)}, "writable": {_flag_string(writable)}}}')
    return ".mounts += [" + ",".join(items) + "] | .mounts |= unique_by(.location)"


def _network_expr(networks: list[str]) -> str:
    items = []
    for s in networks:
        if s == "vzNAT":
            items.append('{"vzNAT": true}')
        elif s.startswith("lima:"):
            items.append(f'{{"lima": {_quote(s.removeprefix("lima:"))}}}')
        else:
            raise ValueError(f'network name must be "vzNAT" or "lima:*", got {_quote(s)}')
    return ".networks += [" + ",".join(items) + "] | .networks |= unique_by(.lima)"


def _rosetta_expr(enabled: bool) -> str:
    b = _flag_string(bool(enabled))
    return f".rosetta.enabled = {b} | .rosetta.binfmt = {b}"


def _video_expr(enabled: bool) -> str:
    display = "default" if enabled else "none"
    return f".video.display = {_quote(display)}"


_CONTAINERD_EXPRS = {
    "user": ".containerd.user = true | .containerd.system = false",
    "system": ".containerd.user = false | .containerd.system = true",
    "user+system": ".containerd.user = true | .containerd.system = true",
    "system+user": ".containerd.user = true | .containerd.system = true",
    "none": ".containerd.user = false | .containerd.system = false",
}


def _containerd_expr(mode: str) -> str:
    try:
        return _CONTAINERD_EXPRS[mode]
    except KeyError:
        raise ValueError(
            f'expected one of ["user", "system", "user+system", "none"], got {_quote(mode)}'
        ) from None


# (flag name, expression builder, only valid for new instances, experimental)
_DEFS: list[tuple[str, Callable[[Any], str], bool, bool]] = [
    ("cpus", _fmt(".cpus = %s"), False, False),
    ("dns", _dns_expr, False, False),
    ("memory", _fmt('.memory = "%sGiB"'), False, False),
    ("mount", _mount_expr, False, False),
    ("mount-type", _fmt(".mountType = %s", quote=True), False, False),
    ("mount-writable", _fmt(".mounts[].writable = %s"), False, False),
    ("network", _network_expr, False, False),
    ("rosetta", _rosetta_expr, False, True),
    ("set", _fmt("%s"), False, False),
    ("video", _video_expr, False, False),
    ("arch", _fmt(".arch = %s", quote=True), True, False),
    ("containerd", _containerd_expr, True, False),
    ("disk", _fmt('.disk= "%sGiB"'), True, False),
    ("vm-type", _fmt(".vmType = %s", quote=True), True, False),
    ("plain", _fmt(".plain = %s"), True, False),
]


def yq_expressions(changed: Mapping[str, Any] | argparse.Namespace, new_instance: bool) -> list[str]:
    """Build yq expressions from the flags that were given on the command line.

    ``changed`` maps flag names (as registered, with dashes) to their values;
    flags that were not given must be absent.
    """
    if isinstance(changed, argparse.Namespace):
        changed = vars(changed)
    exprs = []
    for name, build, only_new, experimental in _DEFS:
        if name not in changed:
            continue
        value = changed[name]
        if experimental:
            logger.warning("`--%s` is experimental", name)
        if only_new and not new_instance:
            logger.warning(
                "`--%s` is not applicable to an existing instance "
                "(Hint: create a new instance with `limactl create --%s=%s --name=NAME`)",
                name, name, _flag_string(value),
            )
            continue
        try:
            exprs.append(build(value))
        except ValueError as err:
            raise ValueError(f"error while processing flag {_quote(name)}: {err}") from err
    return exprs


def _is_power_of_two(x: int) -> bool:
    return (x & 0xFFFFFFFFFFFFFFFF).bit_count() == 1


def complete_cpus(host_cpus: int) -> list[int]:
    """Suggested CPU counts: powers of two up to the host count, plus the host count."""
    res = []
    i = 1
    while i <= host_cpus:
        res.append(i)
        i *= 2
    if not _is_power_of_two(host_cpus):
        res.append(host_cpus)
    return res


def complete_memory_gib(host_memory: int) -> list[float]:
    """Suggested memory sizes in GiB, up to half of the host memory."""
    half_gib = host_memory // 2 // 1024 // 1024 // 1024
    res: list[float] = []
    if half_gib < 1:
        res.append(0.5)
    i = 1
    while i <= half_gib:
        res.append(float(i))
        i *= 2
    if half_gib > 1 and not _is_power_of_two(half_gib):
        res.append(float(half_gib))
    return res