import os
from typing import Optional

from .logging import get_logger

log = get_logger("paths")


def expand_abs(path: str) -> str:
    """Expand env vars and ~ then return absolute path."""
    return os.path.abspath(os.path.expanduser(os.path.expandvars(path or "")))


def find_upwards(start_dir: Optional[str], filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir.

    This makes running tools from subdirectories (e.g., `src/`) still find
    repository-level config files like `.env`.
    """
    d = os.path.abspath(start_dir or os.getcwd() or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            log.debug(f"Found {filename} at {candidate}")
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def resolve_output_path(destination: str, default_name: str) -> str:
    """Return a file path for `destination`, appending default_name for directories."""
    target = expand_abs(destination)
    if os.path.isdir(target) or destination.endswith(("/", os.sep)):
        os.makedirs(target, exist_ok=True)
        return os.path.join(target, default_name)
    parent = os.path.dirname(target)
    if parent and not os.path.isdir(parent):
        log.info(f"Output directory does not exist. Creating: {parent}")
        os.makedirs(parent, exist_ok=True)
    return target
