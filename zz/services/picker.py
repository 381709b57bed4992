import logging
import subprocess
from typing import Protocol, Sequence

from zz.errors import PickerError

logger = logging.getLogger(__name__)

# fzf exit codes: 1 = no match, 130 = interrupted (Esc / Ctrl-C)
_NO_SELECTION_CODES = {1, 130}


class Picker(Protocol):
    def filter(self, candidates: Sequence[str], query: str) -> list[str]:
        """Non-interactive: candidates matching ``query``, best first."""
        ...

    def choose(self, candidates: Sequence[str], prompt: str = "") -> str | None:
        """Interactive: one candidate, or None if the user backed out."""
        ...


class FzfPicker:
    def __init__(self, command: str = "fzf") -> None:
        self.command = command

    def _run(self, args: list[str], candidates: Sequence[str], capture_stderr: bool) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                [self.command, *args],
                input="\n".join(candidates),
                text=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE if capture_stderr else None,
            )
        except FileNotFoundError as e:
            raise PickerError(f"{self.command} not found. Install fzf or pass a query.") from e

    def filter(self, candidates: Sequence[str], query: str) -> list[str]:
        result = self._run(["--filter", query], candidates, capture_stderr=True)
        if result.returncode in _NO_SELECTION_CODES:
            return []
        if result.returncode != 0:
            raise PickerError(f"{self.command} --filter failed: {result.stderr.strip()}")
        return [line for line in result.stdout.splitlines() if line]

    def choose(self, candidates: Sequence[str], prompt: str = "") -> str | None:
        args = ["--prompt", f"{prompt}> "] if prompt else []
        # stderr is left attached to the terminal; fzf draws its UI there.
        result = self._run(args, candidates, capture_stderr=False)
        if result.returncode in _NO_SELECTION_CODES:
            logger.debug("Picker dismissed", extra={"returncode": result.returncode})
            return None
        if result.returncode != 0:
            raise PickerError(f"{self.command} exited with {result.returncode}")
        selection = result.stdout.strip()
        return selection or None
