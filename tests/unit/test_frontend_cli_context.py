"""Unit tests for the CLI AppContext builder."""

from pathlib import Path

import pytest

from geolock.core.location import (
    ConsentLocationProvider,
    EnvironmentLocationProvider,
    StaticLocationProvider,
)
from geolock.frontend.cli.context import DEFAULT_OUTPUT_DIR, build_context, kdf_params_from_env
from geolock.security.kdf import DEFAULT_PARAMS, KdfParams


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "GEOLOCK_LOCATION",
        "GEOLOCK_OUTPUT_DIR",
        "GEOLOCK_LOCATION_TIMEOUT",
        "GEOLOCK_KDF_TIME",
        "GEOLOCK_KDF_MEMORY",
        "GEOLOCK_KDF_PARALLELISM",
        "GEOLOCK_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


def test_build_context_defaults():
    ctx = build_context()
    assert ctx.output_dir == DEFAULT_OUTPUT_DIR
    assert isinstance(ctx.provider, EnvironmentLocationProvider)
    assert ctx.encrypt_location.timeout == 30.0
    assert ctx.encrypt.kdf_params == DEFAULT_PARAMS
    assert ctx.decrypt.radius_m == 30.0


def test_location_slots_are_separate(san_francisco):
    ctx = build_context(provider=StaticLocationProvider(san_francisco))
    assert ctx.encrypt_location is not ctx.decrypt_location
    assert ctx.encrypt_location.provider is ctx.decrypt_location.provider


def test_build_context_reads_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("GEOLOCK_OUTPUT_DIR", str(tmp_path / "out"))
    monkeypatch.setenv("GEOLOCK_LOCATION_TIMEOUT", "2.5")
    monkeypatch.setenv("GEOLOCK_LOG_FILE", str(tmp_path / "log.txt"))
    monkeypatch.setenv("GEOLOCK_KDF_TIME", "1")
    monkeypatch.setenv("GEOLOCK_KDF_MEMORY", "1024")

    ctx = build_context()

    assert ctx.output_dir == tmp_path / "out"
    assert ctx.decrypt_location.timeout == 2.5
    assert ctx.log_file == tmp_path / "log.txt"
    assert ctx.encrypt.kdf_params == KdfParams(time_cost=1, memory_cost=1024, parallelism=1)


def test_explicit_output_dir_wins(monkeypatch, tmp_path):
    monkeypatch.setenv("GEOLOCK_OUTPUT_DIR", "/somewhere/else")
    ctx = build_context(output_dir=tmp_path)
    assert ctx.output_dir == Path(tmp_path)


def test_ask_wraps_provider(san_francisco):
    async def ask():
        return True

    ctx = build_context(provider=StaticLocationProvider(san_francisco), ask=ask)
    assert isinstance(ctx.provider, ConsentLocationProvider)
    assert ctx.encrypt_location.provider is ctx.provider


def test_invalid_numbers_fall_back(monkeypatch):
    monkeypatch.setenv("GEOLOCK_LOCATION_TIMEOUT", "soon")
    monkeypatch.setenv("GEOLOCK_KDF_TIME", "lots")
    ctx = build_context()
    assert ctx.encrypt_location.timeout == 30.0
    assert ctx.encrypt.kdf_params == DEFAULT_PARAMS


def test_out_of_range_kdf_params_fall_back(monkeypatch):
    monkeypatch.setenv("GEOLOCK_KDF_MEMORY", str(1 << 30))
    assert kdf_params_from_env() == DEFAULT_PARAMS
