"""
Encryption and decryption workflows.

Each workflow is a small state machine driven by one user action:

    encrypt: AWAITING_LOCATION -> AWAITING_INPUT -> ENCRYPTING -> DONE | FAILED
    decrypt: AWAITING_LOCATION -> AWAITING_FILE -> DECRYPTING
             -> CHECKING_PROXIMITY -> DONE | REJECTED | FAILED

Every error is caught at ``run()`` and turned into a status report plus a
:class:`WorkflowResult`; nothing escapes to the host. Decryption always runs to
completion before the proximity gate is checked, and decrypted content is only
handed to the download sink once the gate passes.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from geolock.security import crypto
from geolock.security.kdf import DEFAULT_PARAMS, KdfParams

from . import codec
from .exceptions import (
    DeliveryFailed,
    EncryptionFailed,
    GeoLockError,
    LocationDenied,
    LocationError,
    MissingInput,
    ProximityRejected,
    WorkflowBusy,
    WrongPasswordOrCorrupt,
)
from .geo import PROXIMITY_RADIUS_M, distance, within_radius
from .location import LocationContext
from .models import (
    DEFAULT_BINARY_TYPE,
    EncryptionPackage,
    FilePayload,
    SelectedFile,
    Severity,
    TextPayload,
    WorkflowKind,
    utc_timestamp,
)
from .sinks import DownloadSink, StatusSink


logger = logging.getLogger(__name__)

ENCRYPTED_SUFFIX = ".encrypted"
DECRYPTED_TEXT_SUFFIX = "_decrypted.txt"

LOCATION_UNAVAILABLE_MSG = "Location not available. Please allow location access."
LOCATION_DENIED_MSG = "Location access denied. Please enable location access to use this app."


class EncryptState(Enum):
    AWAITING_LOCATION = "awaiting_location"
    AWAITING_INPUT = "awaiting_input"
    ENCRYPTING = "encrypting"
    DONE = "done"
    FAILED = "failed"


class DecryptState(Enum):
    AWAITING_LOCATION = "awaiting_location"
    AWAITING_FILE = "awaiting_file"
    DECRYPTING = "decrypting"
    CHECKING_PROXIMITY = "checking_proximity"
    DONE = "done"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class EncryptRequest:
    password: str
    message: str = ""
    file: Optional[SelectedFile] = None


@dataclass
class DecryptRequest:
    password: str
    file: Optional[SelectedFile] = None


@dataclass
class WorkflowResult:
    state: Enum
    message: str
    artifact: Optional[str] = None
    distance: Optional[float] = None
    error: Optional[GeoLockError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def download_name(package: EncryptionPackage) -> str:
    """Name for the decrypted artifact: ``<stem>.<ext>`` for files, ``<stem>_decrypted.txt`` for text."""
    if isinstance(package.payload, FilePayload):
        name = package.file_name or "file"
        file_type = package.file_type or ""
        # the generic binary type says nothing about the original extension
        ext = None if file_type == DEFAULT_BINARY_TYPE else mimetypes.guess_extension(file_type)
        if ext and not name.lower().endswith(ext):
            return name + ext
        return name
    return f"{package.file_name}{DECRYPTED_TEXT_SUFFIX}"


def _location_message(error: LocationError) -> str:
    if isinstance(error, LocationDenied):
        return LOCATION_DENIED_MSG
    return LOCATION_UNAVAILABLE_MSG


class _Workflow:
    kind: WorkflowKind

    def __init__(self, downloads: DownloadSink, status: StatusSink):
        self.downloads = downloads
        self.status = status
        self.state: Optional[Enum] = None
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _enter(self, state: Enum) -> None:
        logger.debug("%s: %s -> %s", self.kind.value, self.state, state)
        self.state = state

    def _finish(self, state: Enum, message: str, **kwargs) -> WorkflowResult:
        self._enter(state)
        error = kwargs.get("error")
        severity = Severity.SUCCESS if error is None else Severity.ERROR
        self.status.report(severity, message, self.kind)
        return WorkflowResult(state=state, message=message, **kwargs)

    def _busy_result(self, failed_state: Enum) -> WorkflowResult:
        error = WorkflowBusy()
        self.status.report(Severity.ERROR, str(error), self.kind)
        return WorkflowResult(state=failed_state, message=str(error), error=error)


class EncryptionWorkflow(_Workflow):
    """Package a payload with the current location, encrypt it and emit ``<stem>.encrypted``."""

    kind = WorkflowKind.ENCRYPT

    def __init__(
        self,
        downloads: DownloadSink,
        status: StatusSink,
        kdf_params: KdfParams = DEFAULT_PARAMS,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        super().__init__(downloads, status)
        self.kdf_params = kdf_params
        self.clock = clock

    async def run(self, request: EncryptRequest, location: LocationContext) -> WorkflowResult:
        if self.busy:
            return self._busy_result(EncryptState.FAILED)
        async with self._lock:
            return await self._run(request, location)

    async def _run(self, request: EncryptRequest, location: LocationContext) -> WorkflowResult:
        self._enter(EncryptState.AWAITING_LOCATION)
        try:
            here = await location.require()
        except LocationError as e:
            logger.warning("encrypt: no location fix: %s", e)
            return self._finish(EncryptState.FAILED, _location_message(e), error=e)

        self._enter(EncryptState.AWAITING_INPUT)
        try:
            payload = self._payload(request)
        except MissingInput as e:
            return self._finish(EncryptState.FAILED, str(e), error=e)

        self._enter(EncryptState.ENCRYPTING)
        try:
            package = EncryptionPackage(
                location=here, payload=payload, timestamp=utc_timestamp(self.clock())
            )
            blob = await asyncio.to_thread(
                crypto.encrypt, codec.serialize(package), request.password, self.kdf_params
            )
            artifact = self.downloads.deliver(
                blob.encode("ascii"), f"{package.file_name}{ENCRYPTED_SUFFIX}"
            )
        except Exception as e:
            logger.exception("encrypt: failed")
            error = EncryptionFailed(str(e) or e.__class__.__name__)
            return self._finish(EncryptState.FAILED, str(error), error=error)

        logger.info("encrypt: wrote %s", artifact)
        return self._finish(
            EncryptState.DONE, "File encrypted and downloaded successfully!", artifact=artifact
        )

    @staticmethod
    def _payload(request: EncryptRequest):
        if not request.password:
            raise MissingInput("Please enter a password")
        # a selected file wins over typed text
        if request.file is not None:
            return request.file.to_payload()
        if not request.message:
            raise MissingInput("Please enter a message or select a file")
        return TextPayload(text=request.message)


class DecryptionWorkflow(_Workflow):
    """Decrypt a ``.encrypted`` file and release its content only near where it was encrypted."""

    kind = WorkflowKind.DECRYPT

    def __init__(
        self,
        downloads: DownloadSink,
        status: StatusSink,
        radius_m: float = PROXIMITY_RADIUS_M,
    ):
        super().__init__(downloads, status)
        self.radius_m = radius_m

    async def run(self, request: DecryptRequest, location: LocationContext) -> WorkflowResult:
        if self.busy:
            return self._busy_result(DecryptState.FAILED)
        async with self._lock:
            return await self._run(request, location)

    async def _run(self, request: DecryptRequest, location: LocationContext) -> WorkflowResult:
        self._enter(DecryptState.AWAITING_LOCATION)
        try:
            here = await location.require()
        except LocationError as e:
            logger.warning("decrypt: no location fix: %s", e)
            return self._finish(DecryptState.FAILED, _location_message(e), error=e)

        self._enter(DecryptState.AWAITING_FILE)
        if not request.password:
            error = MissingInput("Please enter the password")
            return self._finish(DecryptState.FAILED, str(error), error=error)
        if request.file is None:
            error = MissingInput("Please select an encrypted file")
            return self._finish(DecryptState.FAILED, str(error), error=error)

        self._enter(DecryptState.DECRYPTING)
        try:
            plaintext = await asyncio.to_thread(crypto.decrypt, request.file.content, request.password)
            package = codec.parse(plaintext)
        except Exception as e:
            # wrong password, corrupt blob and malformed package look the same
            logger.info("decrypt: rejected %s (%s)", request.file.name, e.__class__.__name__)
            error = WrongPasswordOrCorrupt()
            return self._finish(
                DecryptState.FAILED, "Decryption failed: Invalid file or password", error=error
            )

        self._enter(DecryptState.CHECKING_PROXIMITY)
        measured = distance(here, package.location)
        if not within_radius(measured, self.radius_m):
            logger.info("decrypt: proximity gate failed at %.2fm", measured)
            error = ProximityRejected(measured, self.radius_m)
            return self._finish(DecryptState.REJECTED, str(error), distance=measured, error=error)

        if isinstance(package.payload, FilePayload):
            content = package.payload.content
            label = "File"
        else:
            content = package.payload.text.encode("utf-8")
            label = "Message"
        try:
            artifact = self.downloads.deliver(content, download_name(package))
        except OSError as e:
            logger.exception("decrypt: could not save output")
            error = DeliveryFailed(f"Could not save decrypted output: {e}")
            return self._finish(DecryptState.FAILED, str(error), distance=measured, error=error)

        return self._finish(
            DecryptState.DONE,
            f"{label} decrypted successfully! Distance: {measured:.2f}m",
            artifact=artifact,
            distance=measured,
        )
