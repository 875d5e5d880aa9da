"""
Where workflow output goes: status messages and downloadable artifacts.

The host supplies both. ``LoggingStatusSink`` and ``DirectoryDownloadSink``
are the defaults for headless use; the TUI wraps them with its own banners.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from .models import Severity, WorkflowKind


logger = logging.getLogger(__name__)


class StatusSink:
    def report(self, severity: Severity, message: str, workflow: WorkflowKind) -> None:
        raise NotImplementedError


class LoggingStatusSink(StatusSink):
    def report(self, severity: Severity, message: str, workflow: WorkflowKind) -> None:
        level = logging.ERROR if severity is Severity.ERROR else logging.INFO
        logger.log(level, "[%s] %s", workflow.value, message)


class DownloadSink:
    def deliver(self, content: bytes, filename: str) -> str:
        """Expose ``content`` under ``filename`` and return where it ended up."""
        raise NotImplementedError


def safe_filename(filename: str, fallback: str = "download") -> str:
    # keep the base name only; reject names that resolve to directories
    name = Path(filename.replace("\\", "/")).name.strip()
    if name in ("", ".", ".."):
        return fallback
    return name


class DirectoryDownloadSink(DownloadSink):
    """
        Writes artifacts into ``root``.

        Existing files are never overwritten; a clash becomes ``name (1).ext``,
        ``name (2).ext`` and so on. Content is written to a temporary file in
        the same directory and moved into place, so a failed write leaves
        nothing behind.
    """

    def __init__(self, root: Path | str):
        self.root = Path(root).expanduser()

    def _target(self, filename: str) -> Path:
        name = safe_filename(filename)
        candidate = self.root / name
        if not candidate.exists():
            return candidate
        # a leading dot belongs to the stem: ".env" -> ".env (1)"
        lead = "." if name.startswith(".") else ""
        stem, dot, ext = name[len(lead):].partition(".")
        stem = lead + stem
        counter = 1
        while True:
            candidate = self.root / f"{stem} ({counter}){dot}{ext}"
            if not candidate.exists():
                return candidate
            counter += 1

    def deliver(self, content: bytes, filename: str) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        target = self._target(filename)
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".geolock-", suffix=".part")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.replace(tmp_path, target)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.info("wrote %s (%d bytes)", target, len(content))
        return str(target)
