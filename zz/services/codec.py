"""Mapping between repository identifiers and session identifiers.

``github.com/acme/widgets`` <-> ``zz:github.com.acme.widgets``. Encoding is
authoritative: segments may themselves contain the separator (host names do),
so session ids are resolved back to repositories by re-encoding known
repositories, not by splitting.
"""

import re
from typing import Iterable, Sequence

from pydantic import ValidationError

from zz.constants import SEGMENT_SEPARATOR, SESSION_PREFIX
from zz.errors import InvalidRepositoryUrlError, InvalidSessionIdError, NotFoundError
from zz.models import RepoId

_SESSION_HEAD = f"{SESSION_PREFIX}:"
_URL_SCHEMES = ("https://", "http://", "ssh://", "git://")


def segments_to_session(segments: Sequence[str]) -> str:
    return f"{_SESSION_HEAD}{SEGMENT_SEPARATOR.join(segments)}"


def session_for(repo: RepoId) -> str:
    return segments_to_session(repo.segments)


def session_to_segments(session_id: str) -> RepoId:
    """Naive decode. Only exact when no segment contains the separator."""
    if not session_id.startswith(_SESSION_HEAD):
        raise InvalidSessionIdError(session_id)
    try:
        return RepoId(segments=tuple(session_id[len(_SESSION_HEAD):].split(SEGMENT_SEPARATOR)))
    except ValidationError as e:
        raise InvalidSessionIdError(session_id) from e


def lookup_repository_for_session(session_id: str, known: Iterable[RepoId]) -> RepoId:
    for repo in known:
        if session_for(repo) == session_id:
            return repo
    raise NotFoundError(f"No registered repository for session: {session_id}")


def repo_id_from_url(url: str) -> RepoId:
    """Derive ``host/owner/name`` from a clone URL.

    Handles https://host/owner/name(.git), git@host:owner/name(.git) and
    ssh://git@host/owner/name(.git).
    """
    path = url.strip()
    for scheme in _URL_SCHEMES:
        if path.startswith(scheme):
            path = path[len(scheme):]
            break
    path = re.sub(r"^[^@/]+@", "", path)
    if path.endswith(".git"):
        path = path[: -len(".git")]
    path = path.replace(":", "/", 1).strip("/")
    try:
        return RepoId.parse(path)
    except ValidationError as e:
        raise InvalidRepositoryUrlError(url) from e
