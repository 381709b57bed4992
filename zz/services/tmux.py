import logging
import subprocess
from pathlib import Path

import libtmux
from libtmux.exc import LibTmuxException

from zz.errors import InvalidSessionIdError, SessionCreationFailedError, SessionHostError, SessionNotFoundError
from zz.models import SessionInfo, SessionStatus

logger = logging.getLogger(__name__)

# tmux rejects ':' and '.' in session names (they are target separators).
# Names already holding the replacement characters cannot be translated back.
_RESERVED = ("=", ",")
_TO_TMUX = str.maketrans({":": "=", ".": ","})
_FROM_TMUX = str.maketrans({"=": ":", ",": "."})


def to_tmux_name(name: str) -> str:
    if any(c in name for c in _RESERVED):
        raise InvalidSessionIdError(name)
    return name.translate(_TO_TMUX)


def from_tmux_name(name: str) -> str:
    return name.translate(_FROM_TMUX)


class TmuxHost:
    """Session host backed by libtmux.

    tmux keeps no exited sessions, so every listed session is ACTIVE.
    Attaching uses `attach-session -c`, which moves the session's working
    directory for new windows.
    """

    def __init__(self, server: libtmux.Server | None = None) -> None:
        self._server = server

    @property
    def server(self) -> libtmux.Server:
        if self._server is None:
            self._server = libtmux.Server()
        return self._server

    def list_sessions(self) -> list[SessionInfo]:
        try:
            return [
                SessionInfo(name=from_tmux_name(s.session_name), status=SessionStatus.ACTIVE)
                for s in self.server.sessions
            ]
        except LibTmuxException:
            logger.debug("Failed to list tmux sessions", exc_info=True)
            return []

    def _attach(self, name: str, *extra: str) -> None:
        try:
            result = subprocess.run(["tmux", "attach-session", "-t", f"={to_tmux_name(name)}", *extra])
        except FileNotFoundError as e:
            raise SessionHostError("tmux not found. Install tmux or set session.backend") from e
        if result.returncode != 0:
            raise SessionHostError(f"tmux exited with {result.returncode} attaching to {name}")

    def create(self, name: str, cwd: Path) -> None:
        try:
            self.server.new_session(session_name=to_tmux_name(name), start_directory=str(cwd), attach=False)
        except LibTmuxException as e:
            raise SessionCreationFailedError(f"Failed to create tmux session {name}: {e}") from e
        self._attach(name)

    def attach(self, name: str, cwd: Path) -> None:
        self._attach(name, "-c", str(cwd))

    def kill(self, session: SessionInfo) -> None:
        tmux_name = to_tmux_name(session.name)
        if not self.server.has_session(tmux_name):
            raise SessionNotFoundError(session.name)
        try:
            self.server.kill_session(f"={tmux_name}")
        except LibTmuxException as e:
            raise SessionHostError(f"Failed to kill session {session.name}: {e}") from e

    def new_tab(self, cwd: Path, name: str) -> None:
        result = self.server.cmd("new-window", "-c", str(cwd), "-n", name)
        if result.stderr:
            raise SessionCreationFailedError(f"Failed to open window {name}: {' '.join(result.stderr)}")

    def current_session(self) -> str | None:
        try:
            result = self.server.cmd("display-message", "-p", "#S")
        except LibTmuxException:
            logger.debug("Failed to read current tmux session", exc_info=True)
            return None
        if result.stderr or not result.stdout:
            return None
        return from_tmux_name(result.stdout[0].strip())
