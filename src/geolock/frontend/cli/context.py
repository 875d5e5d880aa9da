"""Small helper to build a GeoLock app context for the TUI."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional

from geolock.core.location import (
    DEFAULT_TIMEOUT_S,
    ConsentLocationProvider,
    EnvironmentLocationProvider,
    LocationContext,
    LocationProvider,
)
from geolock.core.sinks import DirectoryDownloadSink, LoggingStatusSink, StatusSink
from geolock.core.workflows import DecryptionWorkflow, EncryptionWorkflow
from geolock.security.kdf import DEFAULT_PARAMS, KdfParams


logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = Path.home() / "Downloads" / "geolock"
DEFAULT_LOG_FILE = Path.home() / ".geolock" / "geolock.log"


@dataclass
class AppContext:
    """Container for runtime objects the UI needs."""

    encrypt: EncryptionWorkflow
    decrypt: DecryptionWorkflow
    encrypt_location: LocationContext
    decrypt_location: LocationContext
    output_dir: Path
    log_file: Optional[Path] = None
    provider: Optional[LocationProvider] = field(default=None, repr=False)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("ignoring invalid %s=%r", name, raw)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("ignoring invalid %s=%r", name, raw)
        return default


def kdf_params_from_env() -> KdfParams:
    params = KdfParams(
        time_cost=_env_int("GEOLOCK_KDF_TIME", DEFAULT_PARAMS.time_cost),
        memory_cost=_env_int("GEOLOCK_KDF_MEMORY", DEFAULT_PARAMS.memory_cost),
        parallelism=_env_int("GEOLOCK_KDF_PARALLELISM", DEFAULT_PARAMS.parallelism),
    )
    if not params.is_acceptable():
        # a blob written with these could not be read back
        logger.warning("KDF parameters %s out of range; using defaults", params)
        return DEFAULT_PARAMS
    return params


def build_context(
    output_dir: Optional[str | Path] = None,
    provider: Optional[LocationProvider] = None,
    ask: Optional[Callable[[], Awaitable[bool]]] = None,
    status: Optional[StatusSink] = None,
) -> AppContext:
    """
    Wire workflows, sinks and location slots from the environment.

    Environment variables (all optional, nothing is persisted):

    - ``GEOLOCK_LOCATION``: current position as ``lat,lng``
    - ``GEOLOCK_OUTPUT_DIR``: where artifacts are written
      (default ``~/Downloads/geolock``)
    - ``GEOLOCK_LOCATION_TIMEOUT``: seconds to wait for a fix (default 30)
    - ``GEOLOCK_KDF_TIME`` / ``GEOLOCK_KDF_MEMORY`` / ``GEOLOCK_KDF_PARALLELISM``:
      Argon2id cost for newly encrypted files
    - ``GEOLOCK_LOG_FILE``: log destination (default ``~/.geolock/geolock.log``)

    When ``ask`` is given the location provider is wrapped so the user is
    asked for consent before the first fix is shared.
    """
    out = Path(output_dir or os.getenv("GEOLOCK_OUTPUT_DIR") or DEFAULT_OUTPUT_DIR).expanduser()
    timeout = _env_float("GEOLOCK_LOCATION_TIMEOUT", DEFAULT_TIMEOUT_S)
    log_file = Path(os.getenv("GEOLOCK_LOG_FILE") or DEFAULT_LOG_FILE).expanduser()

    provider = provider or EnvironmentLocationProvider()
    if ask is not None:
        provider = ConsentLocationProvider(provider, ask)

    downloads = DirectoryDownloadSink(out)
    status = status or LoggingStatusSink()

    return AppContext(
        encrypt=EncryptionWorkflow(downloads, status, kdf_params=kdf_params_from_env()),
        decrypt=DecryptionWorkflow(downloads, status),
        # one slot per workflow; a fix is never shared between them
        encrypt_location=LocationContext(provider, timeout=timeout),
        decrypt_location=LocationContext(provider, timeout=timeout),
        output_dir=out,
        log_file=log_file,
        provider=provider,
    )
