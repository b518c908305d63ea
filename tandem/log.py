"""Logging setup shared by the CLI and embedding applications."""

from __future__ import annotations

import logging

from .config import LoggingConfig


def configure_logging(cfg: LoggingConfig | None = None) -> None:
    """Configure the root logger once; later calls only adjust the level."""
    cfg = cfg or LoggingConfig()
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(cfg.level)
        return
    logging.basicConfig(
        level=cfg.level,
        format=cfg.format,
        datefmt=cfg.datefmt,
    )
    logging.getLogger("tandem").debug("Logging configured at %s", cfg.level)
