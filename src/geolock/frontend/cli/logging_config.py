"""Lightweight logging setup for the TUI."""

import logging
import sys
from pathlib import Path
from typing import Optional


def configure_logging(level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    # Configure root logger once; a running TUI owns the terminal, so log to a file when given.
    handler_kwargs = {"stream": sys.stdout}
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler_kwargs = {"filename": str(log_file), "encoding": "utf-8"}
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        **handler_kwargs,
    )
