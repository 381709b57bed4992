from pathlib import Path

CONFIG_PATH = Path.home() / ".config" / "zz" / "config.toml"
DATA_DIR = Path.home() / ".local" / "share" / "zz"
BARE_REPOS_ROOT = DATA_DIR / "bare"
WORKTREE_BASE = Path.home() / "worktrees"

SESSION_PREFIX = "zz"
SEGMENT_SEPARATOR = "."

MAX_SCAN_DEPTH = 5
FALLBACK_BRANCH = "main"
DEFAULT_REMOTE = "origin"

MARKER_ACTIVE = "●"
MARKER_EXITED = "○"
