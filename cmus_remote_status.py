#!/usr/bin/env python3
"""
cmus_remote_status.py — ask a running cmus for its status over its socket.

Usage:
  cmus_remote_status.py
    -> print the raw status reply (same text cmus feeds status programs).

Optional:
  CMUS_REMOTE_DEBUG=1 cmus_remote_status.py
    -> print which socket is used and any errors.

  cmus_remote_status.py '/run/user/1000/cmus-socket'
    -> query a specific socket.
"""

import os
import socket
import stat
import sys
from pathlib import Path


DEBUG = os.environ.get("CMUS_REMOTE_DEBUG") == "1"
SOCKET_ENV = "CMUS_SOCKET"
SOCKET_TIMEOUT = 1.0
STATUS_COMMAND = b"status\n"
REPLY_TERMINATOR = b"\n\n"


class CmusUnavailable(Exception):
    """cmus could not be reached or did not answer."""


def debug(msg: str) -> None:
    if DEBUG:
        print(f"[cmus-remote-status] {msg}", file=sys.stderr)


def default_socket_path() -> Path:
    override = os.environ.get(SOCKET_ENV)
    if override:
        return Path(override).expanduser()
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir:
        return Path(runtime_dir) / "cmus-socket"
    return Path.home() / ".config" / "cmus" / "socket"


def is_socket(path: Path) -> bool:
    try:
        st = os.lstat(path)
    except OSError:
        return False
    return stat.S_ISSOCK(st.st_mode)


def query_status(path: Path, timeout: float = SOCKET_TIMEOUT) -> str:
    debug(f"Querying socket: {path}")
    if not is_socket(path):
        raise CmusUnavailable(f"No cmus socket at {path}")

    reply = bytearray()
    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as s:
            s.settimeout(timeout)
            s.connect(str(path))
            s.sendall(STATUS_COMMAND)

            # cmus ends its reply with an empty line and keeps the connection open
            while True:
                chunk = s.recv(4096)
                if not chunk:
                    debug(f"EOF from {path}")
                    break
                reply += chunk
                if reply.endswith(REPLY_TERMINATOR):
                    break

            try:
                s.shutdown(socket.SHUT_RDWR)
            except OSError as e:
                debug(f"shutdown() failed on {path}: {e!r}")

    except socket.timeout as e:
        raise CmusUnavailable(f"Timed out talking to {path}") from e
    except OSError as e:
        raise CmusUnavailable(f"Cannot talk to cmus at {path}: {e}") from e

    return bytes(reply).decode("utf-8", errors="replace")


def main() -> int:
    path = Path(sys.argv[1]) if len(sys.argv) >= 2 else default_socket_path()
    debug(f"Using socket: {path}")
    try:
        reply = query_status(path)
    except CmusUnavailable as e:
        print(f"[error] {e}", file=sys.stderr)
        return 1
    sys.stdout.write(reply)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
