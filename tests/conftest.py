from pathlib import Path

import platformdirs
import pytest

from tests.fakes import (
    FakeDepot,
    FakeModsInstaller,
    RecordingExtractor,
    make_zip_bytes,
)


_ASYNC_NETWORK_BLOCK_MSG = (
    "Async network access is blocked during tests. Mock aiohttp.ClientSession."
)


async def _async_block_network(*_args, **_kwargs):
    """
    Prevent async network calls during tests by raising a RuntimeError.

    Raises:
        RuntimeError: `_ASYNC_NETWORK_BLOCK_MSG` explaining that async network access is blocked.
    """
    raise RuntimeError(_ASYNC_NETWORK_BLOCK_MSG)


def pytest_configure(config):
    """
    Register the markers used across the suite.

    Parameters:
        config: pytest.Config
    """
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio test (auto-detected)"
    )
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "integration: tests spanning several components")
    config.addinivalue_line(
        "markers", "core_downloads: download, manifest and pipeline behavior"
    )


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Point platformdirs, XDG variables and setup_config paths at a temporary tree.

    File logging is disabled through HQ_LAUNCHER_DISABLE_FILE_LOGGING.
    """
    base = tmp_path_factory.mktemp("hqlauncher")
    cache_dir = base / "cache"
    state_dir = base / "state"
    config_dir = base / "config"
    data_dir = base / "data"
    log_dir = state_dir / "log"

    for path in (cache_dir, state_dir, config_dir, data_dir, log_dir):
        path.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("XDG_CACHE_HOME", str(cache_dir))
    monkeypatch.setenv("XDG_STATE_HOME", str(state_dir))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    monkeypatch.setenv("XDG_DATA_HOME", str(data_dir))
    monkeypatch.setenv("HQ_LAUNCHER_DISABLE_FILE_LOGGING", "1")

    monkeypatch.setattr(
        platformdirs, "user_cache_dir", lambda *_args, **_kwargs: str(cache_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_config_dir", lambda *_args, **_kwargs: str(config_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_data_dir", lambda *_args, **_kwargs: str(data_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_log_dir", lambda *_args, **_kwargs: str(log_dir)
    )

    import hqlauncher.setup_config as setup_config

    monkeypatch.setattr(setup_config, "CONFIG_DIR", str(config_dir))
    monkeypatch.setattr(
        setup_config,
        "CONFIG_FILE",
        str(Path(config_dir) / setup_config.CONFIG_FILE_NAME),
    )
    monkeypatch.setattr(setup_config, "DEFAULT_DATA_DIR", str(data_dir))
    monkeypatch.setattr(setup_config, "LOG_DIR", str(log_dir))


def pytest_runtest_setup():
    """Replace aiohttp HTTP entry points with a blocker so no test reaches the network."""
    import aiohttp

    aiohttp.request = _async_block_network
    aiohttp.ClientSession.request = _async_block_network  # type: ignore[assignment]
    aiohttp.ClientSession.get = _async_block_network  # type: ignore[assignment]
    aiohttp.ClientSession.post = _async_block_network  # type: ignore[assignment]


# =============================================================================
# Shared fixtures
# =============================================================================


@pytest.fixture
def zip_factory(tmp_path):
    """
    Provide a factory that writes a zip archive to disk and returns its path.
    """

    def _make(name, files):
        path = tmp_path / name
        path.write_bytes(make_zip_bytes(files))
        return path

    return _make


@pytest.fixture
def fake_depot():
    return FakeDepot()


@pytest.fixture
def fake_mods_installer():
    return FakeModsInstaller()


@pytest.fixture
def recording_extractor():
    return RecordingExtractor()
