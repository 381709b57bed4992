import logging
import subprocess
from pathlib import Path

from zz.errors import SessionCreationFailedError, SessionHostError
from zz.models import SessionInfo, SessionStatus

logger = logging.getLogger(__name__)


def parse_list_sessions(output: str) -> list[SessionInfo]:
    """Parse `zellij list-sessions --no-formatting` output.

    Lines look like ``name [Created 2h ago] (EXITED - attach to resurrect)``.
    """
    sessions = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        name = line.split(" ", 1)[0]
        status = SessionStatus.EXITED if "(EXITED" in line else SessionStatus.ACTIVE
        sessions.append(SessionInfo(name=name, status=status))
    return sessions


class ZellijHost:
    """Session host driving the zellij CLI."""

    def __init__(self, binary: str = "zellij", current_session: str | None = None) -> None:
        self.binary = binary
        self._current_session = current_session

    def _run(self, *args: str, capture: bool = True, cwd: Path | None = None) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                [self.binary, *args],
                capture_output=capture,
                text=True,
                cwd=cwd,
            )
        except FileNotFoundError as e:
            raise SessionHostError(f"{self.binary} not found. Install zellij or set session.backend") from e

    def list_sessions(self) -> list[SessionInfo]:
        result = self._run("list-sessions", "--no-formatting")
        if result.returncode != 0:
            # zellij exits non-zero when there are no sessions at all
            logger.debug("zellij list-sessions failed", extra={"stderr": result.stderr})
            return []
        return parse_list_sessions(result.stdout)

    def create(self, name: str, cwd: Path) -> None:
        result = self._run("-s", name, "options", "--default-cwd", str(cwd), capture=False, cwd=cwd)
        if result.returncode != 0:
            raise SessionCreationFailedError(f"zellij exited with {result.returncode} creating {name}")

    def attach(self, name: str, cwd: Path) -> None:
        result = self._run("attach", name, "options", "--default-cwd", str(cwd), capture=False)
        if result.returncode != 0:
            raise SessionHostError(f"zellij exited with {result.returncode} attaching to {name}")

    def kill(self, session: SessionInfo) -> None:
        if session.status is SessionStatus.EXITED:
            result = self._run("delete-session", session.name)
        else:
            result = self._run("kill-session", session.name)
        if result.returncode != 0:
            raise SessionHostError(f"Failed to kill session {session.name}: {result.stderr.strip()}")

    def new_tab(self, cwd: Path, name: str) -> None:
        result = self._run("action", "new-tab", "--cwd", str(cwd), "--name", name)
        if result.returncode != 0:
            raise SessionCreationFailedError(f"Failed to open tab {name}: {result.stderr.strip()}")

    def current_session(self) -> str | None:
        return self._current_session
