"""
Tests for SyncPipeline driven by fake collaborators.
"""

import os

import pytest

from hqlauncher.constants import SYNC_STEPS_TOTAL
from hqlauncher.download.interfaces import (
    FetchedManifest,
    ManifestState,
    ModEntry,
    ModsConfig,
)
from hqlauncher.exceptions import HTTPError, InvalidArchiveError, ManifestError
from hqlauncher.install.linker import ConfigLinker, DirectoryLinker
from hqlauncher.install.progress import RecordingSink, TaskError, TaskFinished
from hqlauncher.install.state import ManifestStateStore
from hqlauncher.install.sync import SyncPipeline
from tests.fakes import (
    FakeHttpClient,
    FakeManifestClient,
    FakeModsInstaller,
    NoLinkDirectoryLinker,
    make_zip_bytes,
)

pytestmark = [pytest.mark.integration, pytest.mark.core_downloads]

CONFIG_URL = "https://example.invalid/default_config.zip"


def _manifest(version=7):
    return FetchedManifest(
        manifest_version=version,
        mods_config=ModsConfig(
            mods=[
                ModEntry(dev="a", name="Always"),
                ModEntry(dev="b", name="New", low_cap=80),
            ]
        ),
        chain_config=[],
        manifests={56: "1", 73: "2"},
    )


def _config_zip():
    return make_zip_bytes({"BepInEx.cfg": b"default", "mods/x.cfg": b"default-x"})


def _snapshot(root):
    entries = []
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            path = os.path.join(dirpath, name)
            entries.append((path, os.lstat(path).st_mtime_ns))
    return sorted(entries)


@pytest.fixture
def data_dir(tmp_path):
    data = tmp_path / "data"
    (data / "versions" / "v56").mkdir(parents=True)
    (data / "versions" / "v73").mkdir(parents=True)
    return data


@pytest.fixture
def store(data_dir):
    return ManifestStateStore(data_dir / "config" / "manifest_state.json")


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_pipeline(data_dir, store, sink, fake_mods_installer, recording_extractor):
    def _make(http=None, manifest_client=None, mods=None, linker=None):
        return SyncPipeline(
            client=http or FakeHttpClient({CONFIG_URL: _config_zip()}),
            manifest_client=manifest_client or FakeManifestClient(_manifest()),
            extractor=recording_extractor,
            mods_installer=mods or fake_mods_installer,
            config_linker=ConfigLinker(
                data_dir / "config" / "shared", linker or DirectoryLinker(windows=False)
            ),
            state_store=store,
            versions_dir=data_dir / "versions",
            temp_dir=data_dir / "temp",
            sink=sink,
            default_config_url=CONFIG_URL,
        )

    return _make


class TestSyncNoop:
    @pytest.mark.asyncio
    async def test_nothing_installed(self, tmp_path, store, sink, recording_extractor):
        manifest_client = FakeManifestClient(_manifest())
        pipeline = SyncPipeline(
            client=FakeHttpClient(),
            manifest_client=manifest_client,
            extractor=recording_extractor,
            mods_installer=FakeModsInstaller(),
            config_linker=ConfigLinker(tmp_path / "shared"),
            state_store=store,
            versions_dir=tmp_path / "versions",
            temp_dir=tmp_path / "temp",
            sink=sink,
        )

        assert await pipeline.run() is None
        assert sink.events == []
        assert manifest_client.calls == 0

    @pytest.mark.asyncio
    async def test_up_to_date_makes_no_changes(
        self, make_pipeline, store, sink, data_dir, fake_mods_installer
    ):
        store.write(ManifestState(manifest_version=7))
        before = _snapshot(data_dir)

        assert await make_pipeline().run() is None

        assert sink.events == []
        assert fake_mods_installer.calls == []
        assert _snapshot(data_dir) == before
        assert store.read().manifest_version == 7


class TestSyncApply:
    @pytest.mark.asyncio
    async def test_applies_latest_version(
        self, make_pipeline, store, sink, data_dir, fake_mods_installer
    ):
        shared = data_dir / "config" / "shared"
        shared.mkdir(parents=True)
        (shared / "BepInEx.cfg").write_text("user settings")

        root = await make_pipeline().run()

        assert root == data_dir / "versions" / "v73"
        assert (shared / "BepInEx.cfg").read_text() == "user settings"
        assert (shared / "mods" / "x.cfg").read_bytes() == b"default-x"
        assert os.path.realpath(root / "BepInEx" / "config") == os.path.realpath(shared)
        assert not (data_dir / "temp" / "default_config.zip").exists()

        synced_root, version, plan = fake_mods_installer.calls[0]
        assert (synced_root, version) == (root, 73)
        assert [m.full_name for m in plan] == ["a-Always"]

        assert store.read().manifest_version == 7
        assert sink.terminal == [TaskFinished(version=73, path=str(root))]

    @pytest.mark.asyncio
    async def test_copies_new_config_without_directory_links(
        self, make_pipeline, store, sink, data_dir
    ):
        config = data_dir / "versions" / "v73" / "BepInEx" / "config"
        config.mkdir(parents=True)
        (config / "BepInEx.cfg").write_text("user settings")

        root = await make_pipeline(linker=NoLinkDirectoryLinker()).run()

        config = root / "BepInEx" / "config"
        shared = data_dir / "config" / "shared"
        assert not os.path.islink(config)
        assert (config / "mods" / "x.cfg").read_bytes() == b"default-x"
        assert (config / "BepInEx.cfg").read_text() == "user settings"
        assert (shared / "mods" / "x.cfg").read_bytes() == b"default-x"
        assert (shared / "BepInEx.cfg").read_text() == "user settings"
        assert store.read().manifest_version == 7
        assert sink.terminal == [TaskFinished(version=73, path=str(root))]

    @pytest.mark.asyncio
    async def test_progress_shape(self, make_pipeline, sink):
        await make_pipeline().run()

        assert all(e.steps_total == SYNC_STEPS_TOTAL for e in sink.progress)
        first = sink.progress[0]
        assert (first.step, first.step_name, first.step_progress) == (
            1,
            "Sync Config",
            0.0,
        )
        last = sink.progress[-1]
        assert last.detail == "Sync complete"
        assert last.overall_percent == 100.0
        assert isinstance(sink.events[-1], TaskFinished)
        assert [e.step_progress for e in sink.progress if e.step == 2][0] == 0.0

    @pytest.mark.asyncio
    async def test_rerun_after_success_is_noop(self, make_pipeline, sink):
        await make_pipeline().run()
        events = len(sink.events)

        assert await make_pipeline().run() is None
        assert len(sink.events) == events


class TestSyncFailures:
    @pytest.mark.asyncio
    async def test_config_download_failure_keeps_state(self, make_pipeline, store, sink):
        store.write(ManifestState(manifest_version=3))

        with pytest.raises(HTTPError):
            await make_pipeline(http=FakeHttpClient()).run()

        assert store.read().manifest_version == 3
        assert [type(e) for e in sink.terminal] == [TaskError]

    @pytest.mark.asyncio
    async def test_non_zip_config_is_rejected(
        self, make_pipeline, store, sink, data_dir, recording_extractor
    ):
        http = FakeHttpClient({CONFIG_URL: b"not a zip"})

        with pytest.raises(InvalidArchiveError):
            await make_pipeline(http=http).run()

        assert recording_extractor.calls == []
        assert not (data_dir / "temp" / "default_config.zip").exists()
        assert store.read().manifest_version == 0

    @pytest.mark.asyncio
    async def test_mods_failure_keeps_state(self, make_pipeline, store, sink):
        mods = FakeModsInstaller(error=HTTPError("HTTP error 503", status_code=503))

        with pytest.raises(HTTPError):
            await make_pipeline(mods=mods).run()

        assert store.read().manifest_version == 0
        assert sink.terminal == [TaskError(version=73, message="HTTP error 503")]
        assert not any(e.detail == "Sync complete" for e in sink.progress)

    @pytest.mark.asyncio
    async def test_manifest_failure_propagates(self, make_pipeline, sink):
        with pytest.raises(ManifestError):
            await make_pipeline(
                manifest_client=FakeManifestClient(error=ManifestError("offline"))
            ).run()

        assert sink.events == []
