import logging
import os
from typing import Optional


ROOT_LOGGER = "menu_generator"
_CONFIGURED_FLAG = "_menu_generator_configured"

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def _coerce_level(value: Optional[str]) -> int:
    if isinstance(value, str):
        return _LEVELS.get(value.upper().strip(), logging.INFO)
    if isinstance(value, int):
        return value
    return logging.INFO


def _root() -> logging.Logger:
    """Return the package root logger; handlers are attached once, the level on every call."""
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(_coerce_level(os.environ.get("LOG_LEVEL", "INFO")))
    if getattr(root, _CONFIGURED_FLAG, False):
        return root

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(component)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    stream.addFilter(_component_filter)
    root.addHandler(stream)

    log_file = os.environ.get("LOG_FILE")
    if log_file:
        try:
            fh = logging.FileHandler(log_file, encoding="utf-8")
            fh.setFormatter(formatter)
            fh.addFilter(_component_filter)
            root.addHandler(fh)
        except OSError:
            root.warning("LOG_FILE %s could not be opened; continuing without file logging", log_file)

    root.propagate = False
    setattr(root, _CONFIGURED_FLAG, True)
    return root


def _component_filter(record: logging.LogRecord) -> bool:
    # "menu_generator.menu-api" prints as "menu-api"
    prefix = ROOT_LOGGER + "."
    record.component = record.name[len(prefix):] if record.name.startswith(prefix) else record.name
    return True


def get_logger(component: str) -> logging.Logger:
    """Return the logger for one component, a child of the `menu_generator` root.

    - Output goes to stderr (and LOG_FILE when set) through the root's handlers.
    - LOG_LEVEL is re-read on each call, so a changed level applies to later lookups.
    """
    return _root().getChild(component)
