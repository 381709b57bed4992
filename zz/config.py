"""Configuration loading with environment overrides.

Reads `~/.config/zz/config.toml` (or `$ZZ_CONFIG`), applies the `ZZ_*`
environment variables on top, and resolves everything into a flat
`ResolvedConfig` that is handed to every component.
"""

import os
import tomllib
from pathlib import Path
from typing import Literal, Mapping

from pydantic import BaseModel, ValidationError

from zz.constants import BARE_REPOS_ROOT, CONFIG_PATH, DATA_DIR, DEFAULT_REMOTE, MAX_SCAN_DEPTH, WORKTREE_BASE
from zz.errors import ConfigError

SessionBackend = Literal["zellij", "tmux"]


class PathsConfig(BaseModel):
    bare_root: str = ""
    worktree_base: str = ""
    data_dir: str = ""


class GitConfig(BaseModel):
    remote: str = ""


class SessionConfig(BaseModel):
    backend: str = ""


class PickerConfig(BaseModel):
    command: str = ""
    frecency: bool = True


class ScanConfig(BaseModel):
    max_depth: int = 0


class ZZConfig(BaseModel):
    paths: PathsConfig = PathsConfig()
    git: GitConfig = GitConfig()
    session: SessionConfig = SessionConfig()
    picker: PickerConfig = PickerConfig()
    scan: ScanConfig = ScanConfig()


SECTIONS = ("paths", "git", "session", "picker", "scan")


class ResolvedConfig(BaseModel):
    """Flat config with all values guaranteed filled."""

    bare_root: Path
    worktree_base: Path
    data_dir: Path
    remote: str
    session_backend: SessionBackend
    picker_command: str
    frecency: bool
    max_depth: int
    inside_session: bool = False
    current_session: str | None = None
    shell: str = "/bin/sh"

    @property
    def detach_hint(self) -> str:
        return "Ctrl+o d" if self.session_backend == "zellij" else "Ctrl+b d"


def config_path(environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    override = env.get("ZZ_CONFIG")
    return Path(override).expanduser() if override else CONFIG_PATH


def save_config(path: Path, config: ZZConfig) -> Path:
    """Save config as TOML, writing only non-default values. Returns the path written."""
    lines: list[str] = []
    for section_name in SECTIONS:
        section = getattr(config, section_name)
        section_lines: list[str] = []
        for field_name, field_info in type(section).model_fields.items():
            value = getattr(section, field_name)
            if value != field_info.default:
                section_lines.append(f"{field_name} = {_toml_value(value)}")
        if section_lines:
            lines.append(f"[{section_name}]")
            lines.extend(section_lines)
            lines.append("")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n" if lines else "")
    return path


def _toml_value(value: object) -> str:
    """Format a Python value as TOML."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return f'"{_escape_toml_str(value)}"'
    return str(value)


def _escape_toml_str(s: str) -> str:
    return s.replace("\\", "\\\\").replace('"', '\\"')


def load_toml(path: Path) -> ZZConfig:
    if not path.exists():
        return ZZConfig()
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return ZZConfig.model_validate(data)
    except (tomllib.TOMLDecodeError, ValidationError) as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e


def detect_inside_session(backend: str, environ: Mapping[str, str]) -> bool:
    if backend == "tmux":
        return bool(environ.get("TMUX"))
    return bool(environ.get("ZELLIJ"))


def _path_or(value: str, default: Path) -> Path:
    return Path(value).expanduser() if value else default


def load_config(environ: Mapping[str, str] | None = None, create_dirs: bool = True) -> ResolvedConfig:
    """Load and resolve configuration.

    Args:
        environ: Environment mapping. Defaults to ``os.environ``.
        create_dirs: Create the bare repos root and worktree base if missing.
    """
    env = os.environ if environ is None else environ
    file_cfg = load_toml(config_path(env))

    bare_root = _path_or(env.get("ZZ_BARE_REPOS_ROOT", "") or file_cfg.paths.bare_root, BARE_REPOS_ROOT)
    worktree_base = _path_or(env.get("ZZ_WORKTREE_BASE", "") or file_cfg.paths.worktree_base, WORKTREE_BASE)
    data_dir = _path_or(file_cfg.paths.data_dir, DATA_DIR)

    backend = env.get("ZZ_SESSION_BACKEND", "") or file_cfg.session.backend or "zellij"
    if backend not in ("zellij", "tmux"):
        raise ConfigError(f"Unknown session backend: {backend}")

    if create_dirs:
        bare_root.mkdir(parents=True, exist_ok=True)
        worktree_base.mkdir(parents=True, exist_ok=True)

    return ResolvedConfig(
        bare_root=bare_root,
        worktree_base=worktree_base,
        data_dir=data_dir,
        remote=file_cfg.git.remote or DEFAULT_REMOTE,
        session_backend=backend,
        picker_command=file_cfg.picker.command or "fzf",
        frecency=file_cfg.picker.frecency,
        max_depth=file_cfg.scan.max_depth or MAX_SCAN_DEPTH,
        inside_session=detect_inside_session(backend, env),
        current_session=env.get("ZELLIJ_SESSION_NAME") or None,
        shell=env.get("SHELL") or "/bin/sh",
    )
