"""Textual front end for GeoLock.

Start here with `python -m geolock.frontend.cli.app` (or the `geolock` script).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from textual import on
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.timer import Timer
from textual.widgets import (
    Button,
    Footer,
    Header,
    Input,
    Label,
    Static,
    TabbedContent,
    TabPane,
    TextArea,
)

from geolock.core.exceptions import LocationDenied, LocationError
from geolock.core.location import LocationContext
from geolock.core.models import SelectedFile, Severity, WorkflowKind
from geolock.core.sinks import StatusSink
from geolock.core.workflows import DecryptRequest, EncryptRequest
from geolock.frontend.cli.clipboard import copy_file_to_clipboard
from geolock.frontend.cli.context import AppContext, build_context
from geolock.frontend.cli.logging_config import configure_logging


logger = logging.getLogger(__name__)

SUCCESS_BANNER_SECONDS = 5.0


class LocationConsentModal(ModalScreen[bool]):
    """Asks once per session whether the current position may be used."""

    def compose(self) -> ComposeResult:  # pragma: no cover - UI only
        with Vertical(classes="dialog"):
            yield Static("Location Access", classes="title")
            yield Label(
                "GeoLock binds files to where they are encrypted and only opens them "
                "within 30 meters of that spot. Allow access to your location?"
            )
            with Horizontal():
                yield Button("Deny (Esc)", id="deny")
                yield Button("Allow (Enter)", id="allow", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "allow")

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(False)
        elif event.key == "enter":
            self.dismiss(True)


class BannerStatusSink(StatusSink):
    """Shows workflow reports in the tab's banner and forwards them to ``inner``."""

    def __init__(self, app: "GeoLockApp", inner: StatusSink):
        self.app = app
        self.inner = inner

    def report(self, severity: Severity, message: str, workflow: WorkflowKind) -> None:
        self.inner.report(severity, message, workflow)
        self.app.show_status(severity, message, workflow)


class GeoLockApp(App):
    """Encrypt messages and files bound to where you are; decrypt them only there."""

    TITLE = "GeoLock"

    CSS = """
    .title { padding: 1 1; text-style: bold; }
    .section-label { padding: 0 1; color: $text-muted; }
    .location { padding: 0 1 1 1; color: $text-muted; }
    .status { padding: 0 1; height: 3; }
    .status.success { color: $success; }
    .status.error { color: $error; }
    #encrypt-message { height: 8; }
    ModalScreen { align: center middle; background: rgba(0,0,0,0.45); }
    .dialog { width: 60%; height: auto; padding: 1; border: heavy $surface; background: $boost; }
    """

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
        ("f5", "refresh_location", "Refresh Location"),
        ("f6", "copy_ciphertext", "Copy Ciphertext"),
    ]

    def __init__(self, ctx: AppContext | None = None):
        self.ctx = ctx or build_context(ask=self.ask_location_consent)
        super().__init__()

        for workflow in (self.ctx.encrypt, self.ctx.decrypt):
            workflow.status = BannerStatusSink(self, workflow.status)

        # path of the most recent .encrypted artifact, for the clipboard action
        self.last_ciphertext: Optional[str] = None
        self._banner_timers: dict[WorkflowKind, Timer] = {}
        self._locating: set[WorkflowKind] = set()
        # what each tab currently shows, keyed by workflow
        self.location_text: dict[WorkflowKind, str] = {}
        self.status_text: dict[WorkflowKind, str] = {}

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with TabbedContent(initial="encrypt-tab", id="tabs"):
            with TabPane("Encrypt", id="encrypt-tab"):
                yield Static("Your location: acquiring...", id="encrypt-location", classes="location")
                yield Label("Message", classes="section-label")
                yield TextArea(id="encrypt-message")
                yield Label("Or encrypt a file (path)", classes="section-label")
                yield Input(placeholder="/path/to/file", id="encrypt-file")
                yield Label("Password", classes="section-label")
                yield Input(placeholder="password", password=True, id="encrypt-password")
                yield Button("Encrypt & Download", id="encrypt-button", variant="primary")
                yield Static("", id="encrypt-status", classes="status")
            with TabPane("Decrypt", id="decrypt-tab"):
                yield Static("Your location: acquiring...", id="decrypt-location", classes="location")
                yield Label("Encrypted file (path)", classes="section-label")
                yield Input(placeholder="/path/to/file.encrypted", id="decrypt-file")
                yield Label("Password", classes="section-label")
                yield Input(placeholder="password", password=True, id="decrypt-password")
                yield Button("Decrypt", id="decrypt-button", variant="primary")
                yield Static("", id="decrypt-status", classes="status")
        yield Footer()

    def on_mount(self) -> None:
        self.refresh_location(WorkflowKind.ENCRYPT)

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    async def ask_location_consent(self) -> bool:
        answer: asyncio.Future = asyncio.get_running_loop().create_future()

        def _answered(result: Optional[bool]) -> None:
            # the request may have timed out while the dialog was open
            if not answer.done():
                answer.set_result(bool(result))

        self.push_screen(LocationConsentModal(), _answered)
        return await answer

    def _location_slot(self, kind: WorkflowKind) -> LocationContext:
        if kind is WorkflowKind.ENCRYPT:
            return self.ctx.encrypt_location
        return self.ctx.decrypt_location

    def refresh_location(self, kind: WorkflowKind) -> None:
        # a fix is re-acquired every time a tab is shown
        if kind in self._locating:
            return
        self._locating.add(kind)
        self.run_worker(self._refresh_location(kind), group=f"locate-{kind.value}")

    def _show_location(self, kind: WorkflowKind, text: str) -> None:
        self.location_text[kind] = text
        self.query_one(f"#{kind.value}-location", Static).update(text)

    def _sync_location(self, kind: WorkflowKind) -> None:
        # a run may have acquired the fix itself
        fix = self._location_slot(kind).location
        if fix is not None:
            self._show_location(kind, f"Your location: {fix}")

    async def _refresh_location(self, kind: WorkflowKind) -> None:
        self._show_location(kind, "Your location: acquiring...")
        try:
            fix = await self._location_slot(kind).refresh()
        except LocationError as e:
            logger.warning("%s: location unavailable: %s", kind.value, e)
            if isinstance(e, LocationDenied):
                self._show_location(kind, "Location access denied")
                self.show_status(
                    Severity.ERROR, "Please enable location access to use this app", kind
                )
            else:
                self._show_location(kind, "Location not available")
                self.show_status(Severity.ERROR, f"Location not available: {e}", kind)
            return
        finally:
            self._locating.discard(kind)
        self._show_location(kind, f"Your location: {fix}")

    @on(TabbedContent.TabActivated)
    def handle_tab_activated(self, event: TabbedContent.TabActivated) -> None:
        active = event.tabbed_content.active
        self.refresh_location(WorkflowKind.DECRYPT if active == "decrypt-tab" else WorkflowKind.ENCRYPT)

    def _active_kind(self) -> WorkflowKind:
        active = self.query_one("#tabs", TabbedContent).active
        return WorkflowKind.DECRYPT if active == "decrypt-tab" else WorkflowKind.ENCRYPT

    def action_refresh_location(self) -> None:
        self.refresh_location(self._active_kind())

    # ------------------------------------------------------------------
    # Status banners
    # ------------------------------------------------------------------

    def show_status(self, severity: Severity, message: str, kind: WorkflowKind) -> None:
        """Successes clear themselves after a few seconds; errors stay until replaced."""
        banner = self.query_one(f"#{kind.value}-status", Static)
        banner.remove_class("success", "error", "info")
        banner.add_class(severity.value)
        banner.update(message)
        self.status_text[kind] = message

        timer = self._banner_timers.pop(kind, None)
        if timer is not None:
            timer.stop()
        if severity is Severity.SUCCESS:
            self._banner_timers[kind] = self.set_timer(
                SUCCESS_BANNER_SECONDS, lambda: self._clear_status(kind)
            )

    def _clear_status(self, kind: WorkflowKind) -> None:
        self._banner_timers.pop(kind, None)
        banner = self.query_one(f"#{kind.value}-status", Static)
        banner.remove_class("success", "error", "info")
        banner.update("")
        self.status_text[kind] = ""

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "encrypt-button":
            self._start(event.button, self._run_encrypt())
        elif event.button.id == "decrypt-button":
            self._start(event.button, self._run_decrypt())

    def _start(self, button: Button, work) -> None:
        # the trigger stays disabled until the run finishes
        button.disabled = True

        async def _guarded() -> None:
            try:
                await work
            finally:
                button.disabled = False

        self.run_worker(_guarded(), group=button.id)

    async def _load(self, path: str, kind: WorkflowKind) -> Optional[SelectedFile]:
        try:
            return await asyncio.to_thread(SelectedFile.from_path, path)
        except OSError as e:
            self.show_status(Severity.ERROR, f"Could not read {path}: {e.strerror or e}", kind)
            return None

    async def _run_encrypt(self) -> None:
        message = self.query_one("#encrypt-message", TextArea).text
        path = self.query_one("#encrypt-file", Input).value.strip()
        password = self.query_one("#encrypt-password", Input).value

        selected = None
        if path:
            selected = await self._load(path, WorkflowKind.ENCRYPT)
            if selected is None:
                return

        result = await self.ctx.encrypt.run(
            EncryptRequest(password=password, message=message, file=selected),
            self.ctx.encrypt_location,
        )
        self._sync_location(WorkflowKind.ENCRYPT)
        if result.ok:
            self.last_ciphertext = result.artifact

    async def _run_decrypt(self) -> None:
        path = self.query_one("#decrypt-file", Input).value.strip()
        password = self.query_one("#decrypt-password", Input).value

        selected = None
        if path:
            selected = await self._load(path, WorkflowKind.DECRYPT)
            if selected is None:
                return

        await self.ctx.decrypt.run(
            DecryptRequest(password=password, file=selected),
            self.ctx.decrypt_location,
        )
        self._sync_location(WorkflowKind.DECRYPT)

    def action_copy_ciphertext(self) -> None:
        if not self.last_ciphertext:
            self.notify("Nothing encrypted yet", severity="warning")
            return
        try:
            copy_file_to_clipboard(self.last_ciphertext)
            self.notify("Ciphertext copied to clipboard!")
        except Exception:
            logger.exception("clipboard copy failed")
            self.notify("Could not copy to clipboard", severity="error")


def main() -> None:
    """Run the GeoLock Textual application."""
    app = GeoLockApp()
    configure_logging(log_file=app.ctx.log_file)
    app.run()


if __name__ == "__main__":  # pragma: no cover
    main()
