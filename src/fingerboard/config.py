"""Configuration and logging setup for fingerboard.

Overlay presentation options live in ``configs/overlay.yaml`` (shipped
with the package). A user file may replace it; individual option values
are validated later by :meth:`OverlayConfig.from_mapping`, so this module
only checks that the document is a mapping.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import structlog
import yaml

DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent / "configs" / "overlay.yaml"


def load_overlay_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load overlay options from YAML.

    Args:
        config_path: Path to a YAML file. ``None`` loads the shipped defaults.

    Returns:
        The ``overlay`` section of the file (or the whole document when it
        has no such section). An empty file yields ``{}``.

    Raises:
        FileNotFoundError: If *config_path* does not exist.
        ValueError: If the document is not a mapping.
    """
    path = DEFAULT_CONFIG_PATH if config_path is None else Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Overlay config not found: {path}")

    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Overlay config must be a mapping, got {type(data).__name__}: {path}")

    section = data.get("overlay", data)
    if not isinstance(section, dict):
        raise ValueError(f"'overlay' section must be a mapping in {path}")
    return section


def setup_logging(level: str = "INFO") -> None:
    """Configure structlog for console output at *level*."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
