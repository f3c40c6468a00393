#!/usr/bin/env python3
"""
cmus status notifier

Status display program for cmus: reads the player status from stdin (or
queries a running cmus over its socket), finds cover art next to the track,
and shows a desktop notification for the current track.
"""

from __future__ import annotations

import argparse
import dataclasses
import enum
import os
import platform
import stat
import subprocess
import sys
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import cmus_remote_status as remote

# -----------------
# Constants / config
# -----------------

APP_NAME = "C* Music Player"
APP_GROUP = "cmus"
COVER_CANDIDATES = ("cover.jpg", "cover.png")
DEFAULT_ICON = "applications-multimedia"
NOT_RUNNING_BODY = "Not running"
NOTIFY_TIMEOUT = 5.0
BACKENDS = ["notify-send", "terminal-notifier", "print"]
BACKEND_ENV = "CMUS_NOTIFY_BACKEND"
DEBUG_ENV = "CMUS_NOTIFY_DEBUG"

# Top-level status lines cmus reports outside of "tag" that we keep as tags.
TOP_LEVEL_TAG_KEYS = ("duration", "position")

# --------------
# Logging helpers
# --------------

def debug_enabled() -> bool:
    return os.environ.get(DEBUG_ENV, "0") == "1"


def log_debug(msg: str) -> None:
    if debug_enabled():
        print(f"[debug] {msg}", file=sys.stderr)


def log_info(msg: str) -> None:
    print(f"[info] {msg}", file=sys.stderr)


def log_warn(msg: str) -> None:
    print(f"[warn] {msg}", file=sys.stderr)


def log_error(msg: str) -> None:
    print(f"[error] {msg}", file=sys.stderr)


def die(msg: str, code: int = 1) -> None:
    log_error(msg)
    sys.exit(code)


class NotifyError(Exception):
    """The notification backend could not deliver the notification."""


# -------------
# Data classes
# -------------

class PlaybackState(enum.Enum):
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"

    @classmethod
    def from_wire(cls, value: str) -> "PlaybackState":
        # Case-sensitive; anything unknown counts as stopped.
        for state in cls:
            if state.value == value:
                return state
        return cls.STOPPED


@dataclasses.dataclass(frozen=True)
class PlaybackStatus:
    state: PlaybackState = PlaybackState.STOPPED
    file_path: Optional[Path] = None
    tags: Mapping[str, str] = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    def __hash__(self) -> int:
        return hash((self.state, self.file_path, frozenset(self.tags.items())))

    def tag(self, name: str, default: str = "") -> str:
        return self.tags.get(name, default)

    def tag_int(self, name: str) -> int:
        """Numeric tag value, 0 when missing or not a plain ASCII decimal string."""
        value = self.tags.get(name, "")
        if not (value.isascii() and value.isdigit()):
            return 0
        return int(value)


@dataclasses.dataclass(frozen=True)
class Notification:
    title: str
    body: str
    icon: Optional[Path] = None


# -------------
# Status parser
# -------------

def split_key(line: str) -> Tuple[str, str]:
    parts = line.split(None, 1)
    if not parts:
        return "", ""
    key = parts[0]
    value = parts[1].strip() if len(parts) > 1 else ""
    return key, value


def display_text(value: str) -> str:
    """Drop undecodable input bytes (kept as surrogates) from text meant for display."""
    return value.encode("utf-8", errors="surrogateescape").decode("utf-8", errors="replace")


def scan_status_lines(text: str) -> Iterator[Tuple[str, str]]:
    """Yield (key, rest-of-line) pairs for every non-blank status line.

    Only "\\n" ends a line; other Unicode line breaks stay inside values.
    """
    for raw in text.split("\n"):
        line = raw.strip()
        if not line:
            continue
        yield split_key(line)


def is_wellformed_path(value: str) -> bool:
    return bool(value) and "\x00" not in value


def parse_status(text: str) -> PlaybackStatus:
    state = PlaybackState.STOPPED
    file_path: Optional[Path] = None
    tags: Dict[str, str] = {}

    for key, value in scan_status_lines(text):
        if key == "status":
            state = PlaybackState.from_wire(value)
        elif key == "file":
            if is_wellformed_path(value):
                file_path = Path(value)
            else:
                log_debug(f"ignoring malformed file path: {value!r}")
        elif key == "tag":
            name, tag_value = split_key(value)
            if name:
                tags[display_text(name)] = display_text(tag_value)
        elif key in TOP_LEVEL_TAG_KEYS:
            tags[key] = display_text(value)

    return PlaybackStatus(state=state, file_path=file_path, tags=tags)


# --------------
# Cover resolver
# --------------

def is_regular_file(path: Path) -> bool:
    try:
        st = os.stat(path)
    except OSError:
        return False
    return stat.S_ISREG(st.st_mode)


def exists_and_readable(path: Path) -> bool:
    try:
        return os.access(path, os.R_OK)
    except OSError:
        return False


def find_cover(track_path: Optional[Path]) -> Optional[Path]:
    if track_path is None:
        return None
    if not track_path.is_absolute():
        log_debug(f"track path is not absolute, skipping cover search: {track_path}")
        return None
    directory = track_path.parent
    if directory == track_path:
        return None

    try:
        entries = set(os.listdir(directory))
    except OSError as e:
        log_debug(f"cannot list {directory}: {e}")
        return None

    for name in COVER_CANDIDATES:
        if name not in entries:
            continue
        candidate = directory / name
        if is_regular_file(candidate) and exists_and_readable(candidate):
            log_debug(f"cover: {candidate}")
            return candidate
        log_debug(f"skipping unusable cover candidate: {candidate}")

    log_debug(f"no cover found in {directory}")
    return None


# --------------------
# Notification content
# --------------------

def format_time(seconds: int) -> str:
    minutes, sec = divmod(max(seconds, 0), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours:02d}:{minutes:02d}:{sec:02d}"
    return f"{minutes:02d}:{sec:02d}"


def state_suffix(state: PlaybackState) -> str:
    if state is PlaybackState.PAUSED:
        return " [Paused]"
    if state is PlaybackState.STOPPED:
        return " [Stopped]"
    return ""


def format_title(status: PlaybackStatus) -> str:
    artist = status.tag("artist")
    title = status.tag("title")
    if artist and title:
        return f"{artist} - {title}"
    if title:
        return title
    return APP_NAME


def format_track(status: PlaybackStatus) -> str:
    track = status.tag_int("tracknumber")
    disc = status.tag_int("discnumber")
    if disc > 0:
        return f"disc {disc}, track {track}"
    if track > 0:
        return f"track {track}"
    return ""


def format_duration(status: PlaybackStatus) -> str:
    duration = status.tag_int("duration")
    if duration <= 0:
        return ""
    position = status.tag_int("position")
    if position > 0:
        return f"{format_time(position)} / {format_time(duration)}"
    return format_time(duration)


def format_body(status: PlaybackStatus) -> str:
    first = f"{status.tag('album')}{state_suffix(status.state)}"
    details = [part for part in (format_track(status), format_duration(status)) if part]
    if not details:
        return first
    return f"{first}\n{', '.join(details)}"


def format_notification(status: PlaybackStatus, cover: Optional[Path]) -> Notification:
    return Notification(
        title=display_text(format_title(status)),
        body=display_text(format_body(status)),
        icon=cover,
    )


# -------------------
# Notification backends
# -------------------

def default_backend() -> str:
    override = os.environ.get(BACKEND_ENV)
    if override:
        return override
    if platform.system().lower() == "darwin":
        return "terminal-notifier"
    return "notify-send"


def backend_command(notification: Notification, backend: str) -> List[str]:
    if backend == "notify-send":
        icon = str(notification.icon) if notification.icon else DEFAULT_ICON
        return [
            "notify-send",
            "--hint=int:transient:1",
            f"--app-name={APP_GROUP}",
            "--icon",
            icon,
            notification.title,
            notification.body,
        ]
    if backend == "terminal-notifier":
        cmd = [
            "terminal-notifier",
            "-group",
            APP_GROUP,
            "-title",
            notification.title,
            "-message",
            notification.body,
        ]
        if notification.icon:
            cmd.extend(["-appIcon", str(notification.icon)])
        return cmd
    raise NotifyError(f"Unsupported notification backend: {backend}")


def send_notification(notification: Notification, backend: str) -> None:
    if backend == "print":
        lines = [notification.title, notification.body]
        if notification.icon:
            lines.append(f"icon: {display_text(str(notification.icon))}")
        try:
            for line in lines:
                print(line)
        except UnicodeEncodeError as e:
            raise NotifyError(f"Cannot print notification: {e}")
        return

    cmd = backend_command(notification, backend)
    log_debug(f"running: {cmd!r}")
    try:
        proc = subprocess.run(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            timeout=NOTIFY_TIMEOUT,
        )
    except FileNotFoundError:
        raise NotifyError(f"{cmd[0]} not found in PATH")
    except subprocess.TimeoutExpired:
        raise NotifyError(f"{cmd[0]} did not finish within {NOTIFY_TIMEOUT:g}s")
    except OSError as e:
        raise NotifyError(f"Failed to run {cmd[0]}: {e}")

    if proc.returncode != 0:
        err = proc.stderr.decode("utf-8", errors="ignore").strip() if proc.stderr else ""
        detail = f": {err}" if err else ""
        raise NotifyError(f"{cmd[0]} exited with status {proc.returncode}{detail}")


# -----------------
# Argument parsing
# -----------------

def usage_text() -> str:
    return (
        "Usage:\n"
        "  cmus-notify [--query] [--socket PATH] [--backend NAME]\n\n"
        "Reads one cmus status message from stdin and shows a desktop notification\n"
        "for the current track, using cover.jpg or cover.png from the track's\n"
        "directory as icon. Set it as cmus' status_display_program.\n\n"
        "Options:\n"
        "  --query             Ask the running cmus for its status over its socket\n"
        "                      instead of reading stdin.\n"
        "  --socket <path>     cmus socket used by --query (default: $CMUS_SOCKET,\n"
        "                      $XDG_RUNTIME_DIR/cmus-socket or ~/.config/cmus/socket).\n"
        "  --backend <name>    notify-send, terminal-notifier or print\n"
        "                      (default: $CMUS_NOTIFY_BACKEND, else per platform).\n"
        "  -h, --help          Show this help.\n\n"
        "Environment:\n"
        "  CMUS_NOTIFY_DEBUG=1 Print debug lines to stderr.\n\n"
        "Examples:\n"
        "  :set status_display_program=cmus-notify\n"
        "  cmus-notify --query --backend print\n"
    )


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--query", action="store_true")
    parser.add_argument("--socket")
    parser.add_argument("--backend")
    parser.add_argument("-h", "--help", action="store_true")

    known, unknown = parser.parse_known_args(argv)
    if known.help:
        print(usage_text())
        sys.exit(0)
    if unknown:
        log_warn(f"Ignoring unsupported argument(s): {' '.join(unknown)}")

    backend = known.backend or default_backend()
    if backend not in BACKENDS:
        die(f"Unsupported backend: {backend} (choose from {', '.join(BACKENDS)})", code=2)

    return argparse.Namespace(
        query=known.query,
        socket=Path(known.socket).expanduser() if known.socket else None,
        backend=backend,
    )


# -----
# Input
# -----

def read_stdin() -> str:
    data = sys.stdin.buffer.read()
    # Track paths are bytes on POSIX; keep undecodable ones round-trippable.
    return data.decode("utf-8", errors="surrogateescape")


def build_notification(text: str) -> Notification:
    status = parse_status(text)
    log_debug(f"status: state={status.state.value} file={status.file_path} tags={dict(status.tags)!r}")
    cover = find_cover(status.file_path)
    return format_notification(status, cover)


def main(argv: Sequence[str]) -> int:
    args = parse_args(argv)

    if args.query:
        socket_path = args.socket or remote.default_socket_path()
        try:
            text = remote.query_status(socket_path)
        except remote.CmusUnavailable as e:
            log_info(f"{e}; cmus does not seem to be running")
            notification = Notification(title=APP_NAME, body=NOT_RUNNING_BODY)
        else:
            notification = build_notification(text)
    else:
        notification = build_notification(read_stdin())

    try:
        send_notification(notification, args.backend)
    except NotifyError as e:
        log_error(str(e))
        return 1
    return 0


def cli() -> int:
    return main(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(cli())
