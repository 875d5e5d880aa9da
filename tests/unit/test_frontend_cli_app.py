"""Unit tests for the GeoLock Textual App (Frontend)."""

from unittest.mock import patch

import pytest
from textual.widgets import Button, Input, TabbedContent, TextArea

from geolock.core.location import StaticLocationProvider
from geolock.core.models import Coordinate, Severity, WorkflowKind
from geolock.frontend.cli.app import GeoLockApp, LocationConsentModal
from geolock.frontend.cli.context import build_context


# --- Fixtures ---

@pytest.fixture
def context(tmp_path, san_francisco, fast_params):
    """A real context with a fixed location and cheap KDF settings."""
    ctx = build_context(output_dir=tmp_path / "out", provider=StaticLocationProvider(san_francisco))
    ctx.encrypt.kdf_params = fast_params
    return ctx


def banner(app, kind: WorkflowKind) -> str:
    return app.status_text.get(kind, "")


async def wait_for_consent_prompt(app, pilot) -> None:
    # the modal is pushed before its buttons are composed
    for _ in range(50):
        screen = app.screen
        if isinstance(screen, LocationConsentModal) and len(screen.query("#allow")) and len(screen.query("#deny")):
            await pilot.pause()
            return
        await pilot.pause()
    raise AssertionError("consent dialog never appeared")


async def press_and_wait(app, pilot, button_id: str) -> None:
    app.query_one(button_id, Button).press()
    await pilot.pause()
    await app.workers.wait_for_complete()
    await pilot.pause()


# --- Test 1: Startup ---

@pytest.mark.asyncio
async def test_startup_acquires_encrypt_location(context, san_francisco):
    app = GeoLockApp(ctx=context)
    async with app.run_test(size=(100, 50)) as pilot:
        await app.workers.wait_for_complete()
        await pilot.pause()
        assert context.encrypt_location.location == san_francisco
        label = app.location_text[WorkflowKind.ENCRYPT]
        assert label == "Your location: 37.774900, -122.419400"


@pytest.mark.asyncio
async def test_switching_tab_acquires_decrypt_location(context, san_francisco):
    app = GeoLockApp(ctx=context)
    async with app.run_test(size=(100, 50)) as pilot:
        assert context.decrypt_location.location is None
        app.query_one("#tabs", TabbedContent).active = "decrypt-tab"
        await pilot.pause()
        await app.workers.wait_for_complete()
        assert context.decrypt_location.location == san_francisco


# --- Test 2: Encrypt / Decrypt through the UI ---

@pytest.mark.asyncio
async def test_encrypt_then_decrypt_message(context, tmp_path):
    app = GeoLockApp(ctx=context)
    async with app.run_test(size=(100, 50)) as pilot:
        await app.workers.wait_for_complete()

        app.query_one("#encrypt-message", TextArea).load_text("hello")
        app.query_one("#encrypt-password", Input).value = "secret123"
        await press_and_wait(app, pilot, "#encrypt-button")

        assert banner(app, WorkflowKind.ENCRYPT) == "File encrypted and downloaded successfully!"
        encrypted = tmp_path / "out" / "message.encrypted"
        assert encrypted.exists()
        assert app.last_ciphertext == str(encrypted)
        assert not app.query_one("#encrypt-button", Button).disabled

        app.query_one("#tabs", TabbedContent).active = "decrypt-tab"
        app.query_one("#decrypt-file", Input).value = str(encrypted)
        app.query_one("#decrypt-password", Input).value = "secret123"
        await press_and_wait(app, pilot, "#decrypt-button")

        assert banner(app, WorkflowKind.DECRYPT) == "Message decrypted successfully! Distance: 0.00m"
        assert (tmp_path / "out" / "message_decrypted.txt").read_text() == "hello"


@pytest.mark.asyncio
async def test_decrypt_far_away_shows_distance(context, tmp_path):
    app = GeoLockApp(ctx=context)
    async with app.run_test(size=(100, 50)) as pilot:
        await app.workers.wait_for_complete()
        app.query_one("#encrypt-message", TextArea).load_text("hello")
        app.query_one("#encrypt-password", Input).value = "pw"
        await press_and_wait(app, pilot, "#encrypt-button")

        # the reader has moved about 2.8 km north
        context.decrypt_location.provider = StaticLocationProvider(Coordinate(37.8000, -122.4194))
        app.query_one("#tabs", TabbedContent).active = "decrypt-tab"
        await pilot.pause()
        await app.workers.wait_for_complete()

        app.query_one("#decrypt-file", Input).value = str(tmp_path / "out" / "message.encrypted")
        app.query_one("#decrypt-password", Input).value = "pw"
        await press_and_wait(app, pilot, "#decrypt-button")

        text = banner(app, WorkflowKind.DECRYPT)
        assert text.startswith("You must be within 30 meters of the encryption location.")
        assert not (tmp_path / "out" / "message_decrypted.txt").exists()


@pytest.mark.asyncio
async def test_missing_file_path_reports_error(context, tmp_path):
    app = GeoLockApp(ctx=context)
    async with app.run_test(size=(100, 50)) as pilot:
        await app.workers.wait_for_complete()
        app.query_one("#encrypt-file", Input).value = str(tmp_path / "nope.bin")
        app.query_one("#encrypt-password", Input).value = "pw"
        await press_and_wait(app, pilot, "#encrypt-button")
        assert banner(app, WorkflowKind.ENCRYPT).startswith("Could not read")


# --- Test 3: Banners ---

@pytest.mark.asyncio
async def test_error_banner_persists_success_banner_clears(context):
    app = GeoLockApp(ctx=context)
    async with app.run_test(size=(100, 50)) as pilot:
        app.show_status(Severity.ERROR, "broken", WorkflowKind.ENCRYPT)
        assert WorkflowKind.ENCRYPT not in app._banner_timers
        assert banner(app, WorkflowKind.ENCRYPT) == "broken"

        with patch("geolock.frontend.cli.app.SUCCESS_BANNER_SECONDS", 0.01):
            app.show_status(Severity.SUCCESS, "done", WorkflowKind.ENCRYPT)
        assert banner(app, WorkflowKind.ENCRYPT) == "done"
        await pilot.pause(0.2)
        assert banner(app, WorkflowKind.ENCRYPT) == ""


# --- Test 4: Location consent ---

@pytest.mark.asyncio
async def test_consent_denied_blocks_location(monkeypatch, tmp_path):
    monkeypatch.setenv("GEOLOCK_LOCATION", "37.7749,-122.4194")
    monkeypatch.setenv("GEOLOCK_OUTPUT_DIR", str(tmp_path))
    app = GeoLockApp()
    async with app.run_test(size=(100, 50)) as pilot:
        await wait_for_consent_prompt(app, pilot)
        assert isinstance(app.screen, LocationConsentModal)

        await pilot.click("#deny")
        await app.workers.wait_for_complete()
        await pilot.pause()

        assert app.ctx.encrypt_location.location is None
        label = app.location_text[WorkflowKind.ENCRYPT]
        assert label == "Location access denied"


@pytest.mark.asyncio
async def test_consent_allowed_uses_location(monkeypatch, tmp_path):
    monkeypatch.setenv("GEOLOCK_LOCATION", "37.7749,-122.4194")
    monkeypatch.setenv("GEOLOCK_OUTPUT_DIR", str(tmp_path))
    app = GeoLockApp()
    async with app.run_test(size=(100, 50)) as pilot:
        await wait_for_consent_prompt(app, pilot)
        await pilot.click("#allow")
        await app.workers.wait_for_complete()
        assert app.ctx.encrypt_location.location == Coordinate(37.7749, -122.4194)


# --- Test 5: Clipboard ---

@pytest.mark.asyncio
async def test_copy_ciphertext(context, tmp_path):
    blob = tmp_path / "x.encrypted"
    blob.write_text("R0xLMQ==\n", encoding="ascii")
    app = GeoLockApp(ctx=context)
    async with app.run_test(size=(100, 50)) as pilot:
        app.last_ciphertext = str(blob)
        with patch("geolock.frontend.cli.clipboard.pyperclip.copy") as copy:
            await app.run_action("copy_ciphertext")
            await pilot.pause()
        copy.assert_called_once_with("R0xLMQ==")
