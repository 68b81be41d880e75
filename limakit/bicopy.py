"""Copy data in both directions between two streams until both ends are done."""

from __future__ import annotations

import logging
import socket
import threading
from typing import Any

logger = logging.getLogger(__name__)

_CHUNK = 32 * 1024
_POLL_INTERVAL = 0.05


def _read(stream: Any, n: int) -> bytes:
    if isinstance(stream, socket.socket):
        return stream.recv(n)
    read1 = getattr(stream, "read1", None)
    if read1 is not None:
        return read1(n)
    return stream.read(n)


def _write(stream: Any, data: bytes) -> None:
    if isinstance(stream, socket.socket):
        stream.sendall(data)
        return
    stream.write(data)
    flush = getattr(stream, "flush", None)
    if flush is not None:
        flush()


def _copy(to: Any, frm: Any) -> None:
    while True:
        data = _read(frm, _CHUNK)
        if not data:
            return
        _write(to, data)


def _half_close(stream: Any, how: int, method: str) -> None:
    if isinstance(stream, socket.socket):
        stream.shutdown(how)
        return
    closer = getattr(stream, method, None)
    if closer is not None:
        closer()


def _close(stream: Any) -> None:
    if isinstance(stream, socket.socket):
        try:
            stream.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
    closer = getattr(stream, "close", None)
    if closer is not None:
        closer()


def _broker(to: Any, frm: Any) -> None:
    try:
        _copy(to, frm)
    except (OSError, ValueError) as err:
        logger.debug("failed to copy: %s", err)
    try:
        _half_close(frm, socket.SHUT_RD, "close_read")
    except (OSError, ValueError) as err:
        logger.debug("failed to close the read side: %s", err)
    try:
        _half_close(to, socket.SHUT_WR, "close_write")
    except (OSError, ValueError) as err:
        logger.debug("failed to close the write side: %s", err)


def bicopy(x: Any, y: Any, quit: threading.Event | None = None) -> None:
    """Copy ``x`` to ``y`` and ``y`` to ``x`` until both directions end or ``quit`` is set.

    Both streams are closed before returning.
    """
    brokers = [
        threading.Thread(target=_broker, args=(x, y), daemon=True),
        threading.Thread(target=_broker, args=(y, x), daemon=True),
    ]
    for t in brokers:
        t.start()
    finish = threading.Event()

    def _wait_all() -> None:
        for t in brokers:
            t.join()
        finish.set()

    threading.Thread(target=_wait_all, daemon=True).start()

    if quit is None:
        finish.wait()
    else:
        while not finish.wait(_POLL_INTERVAL):
            if quit.is_set():
                break

    for stream in (x, y):
        try:
            _close(stream)
        except (OSError, ValueError) as err:
            logger.debug("failed to close: %s", err)
    finish.wait()