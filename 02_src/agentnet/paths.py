"""Project-level path helpers."""

import os
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = Path(os.getenv("AGENTNET_DATA_DIR", PROJECT_ROOT / "data"))
LOGS_DIR = Path(os.getenv("AGENTNET_LOGS_DIR", PROJECT_ROOT / "logs"))
DEFAULT_DB_PATH = DATA_DIR / "agentnet.db"
DEFAULT_LOG_PATH = LOGS_DIR / "agentnet.log"


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve a database location to an absolute path."""
    if not env_value:
        DATA_DIR.mkdir(parents=True, exist_ok=True)
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate
