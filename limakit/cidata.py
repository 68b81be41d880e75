"""Pieces of the cloud-init data handed to a guest: environment, certificates, layout."""

from __future__ import annotations

import ipaddress
import json
import logging
import os
import posixpath
import shutil
import socket
from dataclasses import dataclass, field
from typing import IO, Callable, Iterable, Mapping, Sequence, Union
from urllib.parse import SplitResult, urlsplit

from limakit.guessarg import validate_identifier

logger = logging.getLogger(__name__)

_LOWER_VARS = ("ftp_proxy", "http_proxy", "https_proxy", "no_proxy")
_UPPER_VARS = tuple(name.upper() for name in _LOWER_VARS)

LayoutData = Union[bytes, str, IO[bytes]]


def _quote(s: object) -> str:
    return json.dumps(str(s), ensure_ascii=False)


@dataclass
class Mount:
    tag: str = ""
    mount_point: str = ""
    type: str = ""
    options: str = ""


@dataclass
class Provision:
    mode: str
    script: str = ""
    skip_default_dependency_resolution: bool = False


@dataclass
class TemplateArgs:
    """Values substituted into the cloud-init templates."""

    name: str = ""
    iid: str = ""
    user: str = ""
    home: str = ""
    uid: int = 0
    ssh_pub_keys: list[str] = field(default_factory=list)
    mounts: list[Mount] = field(default_factory=list)
    mount_type: str = ""
    disks: list[dict] = field(default_factory=list)
    guest_install_prefix: str = ""
    containerd_system: bool = False
    containerd_user: bool = False
    networks: list[dict] = field(default_factory=list)
    slirp_nic_name: str = ""
    slirp_gateway: str = ""
    slirp_dns: str = ""
    slirp_ip_address: str = ""
    udp_dns_local_port: int = 0
    tcp_dns_local_port: int = 0
    env: dict[str, str] = field(default_factory=dict)
    dns_addresses: list[str] = field(default_factory=list)
    ca_certs_remove_defaults: bool | None = None
    ca_certs_trusted: list[list[str]] = field(default_factory=list)
    host_home_mount_point: str = ""
    boot_cmds: list[list[str]] = field(default_factory=list)
    rosetta_enabled: bool = False
    rosetta_binfmt: bool = False
    skip_default_dependency_resolution: bool = False
    vm_type: str = ""
    vsock_port: int = 0
    plain: bool = False


def _default_lookup_ip(host: str) -> list[str]:
    if not host:
        return []
    try:
        infos = socket.getaddrinfo(host, None)
    except (OSError, UnicodeError) as err:
        logger.debug("lookup %s: %s", host, err)
        return []
    seen: list[str] = []
    for info in infos:
        addr = str(info[4][0])
        if addr not in seen:
            seen.append(addr)
    return seen


def _host_port(netloc: str) -> tuple[str, str, str]:
    """Split a netloc into userinfo (with its '@'), host and port."""
    userinfo = ""
    hostport = netloc
    at = netloc.rfind("@")
    if at >= 0:
        userinfo, hostport = netloc[: at + 1], netloc[at + 1:]
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ValueError("missing ']' in host")
        host, rest = hostport[1:end], hostport[end + 1:]
        port = rest[1:] if rest.startswith(":") else ""
        return userinfo, host, port
    if ":" in hostport:
        host, port = hostport.rsplit(":", 1)
        return userinfo, host, port
    return userinfo, hostport, ""


def _parse_proxy_url(value: str) -> tuple[SplitResult, str, str, str]:
    if any(ord(c) < 0x20 or c == "\x7f" for c in value):
        raise ValueError("invalid control character in URL")
    if value.startswith(":"):
        raise ValueError("missing protocol scheme")
    u = urlsplit(value)
    userinfo, host, port = _host_port(u.netloc)
    if port and not port.isdigit():
        raise ValueError(f"invalid port {_quote(':' + port)} after host")
    return u, userinfo, host, port


def _join_host_port(host: str, port: str) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _is_loopback(ip: object) -> bool:
    try:
        return ipaddress.ip_address(str(ip)).is_loopback
    except ValueError:
        return False


def setup_env(
    env: Mapping[str, str] | None,
    propagate_proxy_env: bool,
    slirp_gateway: str,
    system_settings: Mapping[str, str] | None = None,
    lookup_ip: Callable[[str], Iterable[object]] | None = None,
) -> dict[str, str]:
    """Compute the guest environment, rewriting loopback proxies to the gateway.

    System proxy settings come first, ``env`` overrides them, and when
    ``propagate_proxy_env`` is true the proxy variables of this process override
    both. Empty values are dropped, and lower- and upper-case proxy variables
    are made to agree, the lower-case one winning.
    """
    lookup = lookup_ip or _default_lookup_ip
    result: dict[str, str] = dict(system_settings or {})
    result.update(env or {})
    all_vars = _LOWER_VARS + _UPPER_VARS
    if propagate_proxy_env:
        for name in all_vars:
            if name in os.environ:
                value = os.environ[name]
                if name in result and value != result[name]:
                    logger.info(
                        "Overriding %r value %r with %r from limactl process environment",
                        name, result[name], value,
                    )
                result[name] = value
    for name in all_vars:
        if name not in result:
            continue
        value = result[name]
        if value == "":
            del result[name]
            continue
        if name.lower() == "no_proxy":
            continue
        try:
            u, userinfo, host, port = _parse_proxy_url(value)
        except ValueError as err:
            logger.warning("Ignoring invalid proxy %r=%s: %s", name, value, err)
            continue
        for ip in lookup(host):
            if _is_loopback(ip):
                new_host = _join_host_port(slirp_gateway, port) if port else slirp_gateway
                value = u._replace(netloc=userinfo + new_host).geturl()
        if value != result[name]:
            logger.info("Replacing %r value %r with %r", name, result[name], value)
            result[name] = value
    for lower in _LOWER_VARS:
        upper = lower.upper()
        if lower in result:
            if upper in result and result[lower] != result[upper]:
                logger.warning(
                    "Changing %r value from %r to %r to match %r",
                    upper, result[upper], result[lower], lower,
                )
            result[upper] = result[lower]
        elif upper in result:
            result[lower] = result[upper]
    return result


def _stripped_lines(text: str) -> list[str]:
    return [line.strip() for line in text.split("\n") if line != ""]


def get_cert(content: str) -> list[str]:
    """The non-empty lines of a PEM certificate, stripped of surrounding whitespace."""
    return _stripped_lines(content)


def get_boot_cmds(provisions: Iterable[Provision]) -> list[list[str]]:
    """The lines of every boot-mode provisioning script, one list per script."""
    return [_stripped_lines(p.script) for p in provisions if p.mode == "boot"]


def disk_device_name_from_order(order: int) -> str:
    """Guest device name of the additional disk at position ``order`` (vdb, vdc, ...)."""
    return "vd" + chr(ord("b") + order)


def validate_template_args(args: TemplateArgs) -> None:
    """Raise ValueError if the template arguments cannot produce valid cloud-init data."""
    validate_identifier(args.name)
    validate_identifier(args.user)
    if args.user == "root":
        raise ValueError('field User must not be "root"')
    if args.uid == 0:
        raise ValueError("field UID must not be 0")
    if not args.home:
        raise ValueError("field Home must be set")
    if not args.ssh_pub_keys:
        raise ValueError("field SSHPubKeys must be set")
    for i, m in enumerate(args.mounts):
        if not posixpath.isabs(m.mount_point):
            raise ValueError(f"field mounts[{i}] must be absolute, got {_quote(m.mount_point)}")


def write_cidata_dir(
    root_path: str | os.PathLike[str], layout: Sequence[tuple[str, LayoutData]]
) -> None:
    """Write the layout entries as files under ``root_path``, replacing what was there.

    Each entry is a slash-separated path and its content: bytes, text, or a
    binary file object to copy from.
    """
    root = os.fspath(root_path)
    entries = sorted(layout, key=lambda e: e[0].lower())
    if os.path.lexists(root):
        if os.path.isdir(root) and not os.path.islink(root):
            shutil.rmtree(root)
        else:
            os.remove(root)
    for path, data in entries:
        parent = posixpath.dirname(path)
        if parent != "/":
            os.makedirs(os.path.join(root, parent or "."), mode=0o700, exist_ok=True)
        target = os.path.join(root, path)
        fd = os.open(target, os.O_CREAT | os.O_RDWR, 0o700)
        with os.fdopen(fd, "wb") as f:
            if isinstance(data, bytes):
                f.write(data)
            elif isinstance(data, str):
                f.write(data.encode("utf-8"))
            else:
                shutil.copyfileobj(data, f)