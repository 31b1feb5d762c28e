import importlib.metadata

import pytest

from hqlauncher import utils

pytestmark = [pytest.mark.unit]


def test_get_user_agent_with_version(mocker):
    utils._USER_AGENT_CACHE = None
    mocker.patch("hqlauncher.utils.importlib.metadata.version", return_value="1.2.3")
    assert utils.get_user_agent() == "hq-launcher/1.2.3"
    utils._USER_AGENT_CACHE = None


def test_get_user_agent_without_version(mocker):
    utils._USER_AGENT_CACHE = None
    mocker.patch(
        "hqlauncher.utils.importlib.metadata.version",
        side_effect=importlib.metadata.PackageNotFoundError("Package not found"),
    )
    assert utils.get_user_agent() == "hq-launcher/unknown"
    utils._USER_AGENT_CACHE = None


def test_get_user_agent_caching(mocker):
    """Test that get_user_agent caches the result."""
    utils._USER_AGENT_CACHE = None
    mock_version = mocker.patch(
        "hqlauncher.utils.importlib.metadata.version", return_value="1.2.3"
    )

    assert utils.get_user_agent() == "hq-launcher/1.2.3"
    assert utils.get_user_agent() == "hq-launcher/1.2.3"
    assert mock_version.call_count == 1
    utils._USER_AGENT_CACHE = None


def test_is_windows(mocker):
    mocker.patch("hqlauncher.utils.platform.system", return_value="Windows")
    assert utils.is_windows() is True


class TestSamePath:
    def test_identical(self, tmp_path):
        assert utils.same_path(tmp_path / "missing", tmp_path / "missing")

    def test_through_symlink(self, tmp_path):
        target = tmp_path / "shared"
        target.mkdir()
        link = tmp_path / "link"
        link.symlink_to(target, target_is_directory=True)

        assert utils.same_path(link, target)

    def test_missing_side(self, tmp_path):
        (tmp_path / "a").mkdir()
        assert not utils.same_path(tmp_path / "a", tmp_path / "b")

    def test_canonical_path_missing(self, tmp_path):
        assert utils.canonical_path(tmp_path / "nope") is None
