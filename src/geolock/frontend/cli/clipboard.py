"""Put an encrypted blob on the system clipboard (via pyperclip)."""

from __future__ import annotations

from pathlib import Path

import pyperclip


def copy_file_to_clipboard(path: Path | str) -> int:
    """Copy the base64 text of a ``.encrypted`` file and return its length.

    Raises:
        OSError / UnicodeDecodeError: the file is missing or not a text blob.
        pyperclip.PyperclipException: no clipboard mechanism is available.
    """
    blob = Path(path).read_text(encoding="ascii").strip()
    pyperclip.copy(blob)
    return len(blob)
