"""Error hierarchy for zz.

Every error is terminal for the command that raised it. The CLI reports the
message once on stderr and exits with ``exit_code``.
"""


class ZZError(Exception):
    exit_code = 1


class NotFoundError(ZZError):
    """No repository, branch or session matches a query."""


class NoSelectionError(NotFoundError):
    """The picker was dismissed without a selection."""


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class InvalidStateError(ZZError):
    """A repository-scoped command ran outside a managed repository."""


class AlreadyInSessionError(ZZError):
    def __init__(self, hint: str = "") -> None:
        message = "cannot switch sessions from inside a managed session."
        if hint:
            message = f"{message} Detach first with {hint}"
        super().__init__(message)


class NotInsideSessionError(ZZError):
    def __init__(self) -> None:
        super().__init__("not running inside a managed session")


class BranchNotFoundError(ZZError):
    def __init__(self, branch: str) -> None:
        self.branch = branch
        super().__init__(f"Branch '{branch}' not found in local or remote refs")


class BranchExistsError(ZZError):
    """Raised when a new branch is requested under a name that already exists."""

    def __init__(self, branch: str) -> None:
        self.branch = branch
        super().__init__(f"Branch '{branch}' already exists")


class WorktreeCreationFailedError(ZZError):
    pass


class SessionHostError(ZZError):
    """The terminal multiplexer is missing or reported a failure."""


class SessionCreationFailedError(SessionHostError):
    pass


class InvalidSessionIdError(ZZError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Invalid session id: {session_id!r}")


class InvalidRepositoryUrlError(ZZError):
    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Cannot derive a repository path from: {url}")


class VCSError(ZZError):
    """A git command reported a failure."""


class PickerError(ZZError):
    """The picker binary is missing or crashed."""


class ConfigError(ZZError):
    pass
