import logging
import subprocess
from pathlib import Path
from typing import Protocol

from zz.config import ResolvedConfig
from zz.errors import (
    AlreadyInSessionError,
    NotInsideSessionError,
    SessionNotFoundError,
    ZZError,
)
from zz.models import BulkResult, SessionInfo

logger = logging.getLogger(__name__)


class SessionHost(Protocol):
    """Terminal multiplexer operations zz relies on."""

    def list_sessions(self) -> list[SessionInfo]: ...

    def create(self, name: str, cwd: Path) -> None:
        """Create ``name`` rooted at ``cwd`` and attach to it (blocks until detach)."""
        ...

    def attach(self, name: str, cwd: Path) -> None:
        """Attach to ``name``, pointing new tabs at ``cwd`` (blocks until detach)."""
        ...

    def kill(self, session: SessionInfo) -> None: ...

    def new_tab(self, cwd: Path, name: str) -> None: ...

    def current_session(self) -> str | None:
        """Name of the session this process runs in, if the host can tell."""
        ...


class SessionOrchestrator:
    """Reconciles one session per identifier against the session host.

    Attaching to an existing session rewrites its default directory for new
    tabs, so a reattached session opens tabs in the current worktree.
    """

    def __init__(self, config: ResolvedConfig, host: SessionHost) -> None:
        self.config = config
        self.host = host

    def ensure_can_switch(self) -> None:
        if self.config.inside_session:
            raise AlreadyInSessionError(self.config.detach_hint)

    def open(self, session_id: str, working_dir: Path) -> bool:
        """Attach to ``session_id`` or create it. Returns True if it was created."""
        self.ensure_can_switch()
        existing = {s.name for s in self.host.list_sessions()}
        if session_id in existing:
            logger.info("Attaching to session", extra={"session": session_id, "cwd": str(working_dir)})
            self.host.attach(session_id, working_dir)
            return False
        logger.info("Creating session", extra={"session": session_id, "cwd": str(working_dir)})
        self.host.create(session_id, working_dir)
        return True

    def open_new_tab(self, working_dir: Path, tab_name: str) -> None:
        if not self.config.inside_session:
            raise NotInsideSessionError()
        current = self.host.current_session()
        if current is None or not SessionInfo(name=current).managed:
            logger.debug("Current session is not managed", extra={"session": current})
            raise NotInsideSessionError()
        self.host.new_tab(working_dir, tab_name)

    def list_managed(self) -> list[SessionInfo]:
        return [s for s in self.host.list_sessions() if s.managed]

    def kill(self, session_id: str) -> None:
        for session in self.list_managed():
            if session.name == session_id:
                self.host.kill(session)
                return
        raise SessionNotFoundError(session_id)

    def kill_all(self) -> BulkResult:
        """Kill every managed session in listing order, carrying on past failures."""
        result = BulkResult()
        for session in self.list_managed():
            try:
                self.host.kill(session)
            except ZZError as e:
                logger.warning("Failed to kill session", extra={"session": session.name, "error": str(e)})
                result.failed.append((session.name, str(e)))
            else:
                result.succeeded.append(session.name)
        return result


def make_session_host(config: ResolvedConfig) -> SessionHost:
    if config.session_backend == "tmux":
        from zz.services.tmux import TmuxHost

        return TmuxHost()
    from zz.services.zellij import ZellijHost

    return ZellijHost(current_session=config.current_session)


def spawn_shell(shell: str, cwd: Path) -> int:
    """Run an interactive shell rooted at ``cwd``. Returns its exit code."""
    return subprocess.run([shell], cwd=cwd).returncode
