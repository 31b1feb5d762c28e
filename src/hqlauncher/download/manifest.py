"""
Remote manifest client.

Fetches the published manifest (manifest version counter, mod list, per game
version depot manifest ids and load-order chains), validates it and applies
alias normalization. Transport and parse failures surface as ManifestError;
retrying is left to the caller.
"""

from dataclasses import replace
from typing import Any, Dict, List, Optional

from hqlauncher.constants import MANIFEST_URL
from hqlauncher.exceptions import DownloadError, ManifestError
from hqlauncher.log_utils import logger

from .async_client import AsyncHttpClient
from .interfaces import FetchedManifest, ModEntry, ModsConfig, RemoteManifest
from .version import normalize_aliases, with_practice_mods


def _parse_uint(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ManifestError(f"Manifest field {field_name} must be an integer")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as e:
        raise ManifestError(
            f"Manifest field {field_name} must be an integer", details=repr(value)
        ) from e
    if parsed < 0:
        raise ManifestError(
            f"Manifest field {field_name} must not be negative", details=repr(value)
        )
    return parsed


def _parse_version_keyed_map(raw: Any, field_name: str) -> Dict[int, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ManifestError(f"Manifest field {field_name} must be an object")
    parsed: Dict[int, str] = {}
    for key, value in raw.items():
        version = _parse_uint(str(key).strip(), f"{field_name} key")
        if not isinstance(value, str):
            raise ManifestError(
                f"Manifest field {field_name}[{key}] must be a string",
                details=repr(value),
            )
        parsed[version] = value
    return dict(sorted(parsed.items()))


def parse_mod_entry(raw: Any) -> ModEntry:
    """
    Build a ModEntry from one element of the manifest `mods` array.

    Raises:
        ManifestError: When required fields are missing or have the wrong type.
    """
    if not isinstance(raw, dict):
        raise ManifestError("Manifest mod entry must be an object", details=repr(raw))

    name = raw.get("name")
    dev = raw.get("dev")
    if not isinstance(name, str) or not isinstance(dev, str):
        raise ManifestError(
            "Manifest mod entry requires string 'name' and 'dev'", details=repr(raw)
        )

    enabled = raw.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ManifestError(
            f"Manifest mod {dev}-{name} has non-boolean 'enabled'", details=repr(enabled)
        )

    low_cap: Optional[int] = None
    high_cap: Optional[int] = None
    if raw.get("low_cap") is not None:
        low_cap = _parse_uint(raw["low_cap"], f"{dev}-{name}.low_cap")
    if raw.get("high_cap") is not None:
        high_cap = _parse_uint(raw["high_cap"], f"{dev}-{name}.high_cap")

    return ModEntry(
        dev=dev,
        name=name,
        enabled=enabled,
        low_cap=low_cap,
        high_cap=high_cap,
        version_config=_parse_version_keyed_map(
            raw.get("version_config"), f"{dev}-{name}.version_config"
        ),
    )


def parse_manifest(data: Any) -> RemoteManifest:
    """
    Validate a decoded manifest document.

    `version`, `chain_config` and `mods` are required; `manifests` defaults to empty.

    Raises:
        ManifestError: If the document does not match the expected shape.
    """
    if not isinstance(data, dict):
        raise ManifestError(
            "Manifest must be a JSON object", details=type(data).__name__
        )

    for required in ("version", "chain_config", "mods"):
        if required not in data:
            raise ManifestError(f"Manifest is missing required field '{required}'")

    chain_raw = data["chain_config"]
    if not isinstance(chain_raw, list) or not all(
        isinstance(chain, list) and all(isinstance(item, str) for item in chain)
        for chain in chain_raw
    ):
        raise ManifestError("Manifest field chain_config must be a list of string lists")

    mods_raw = data["mods"]
    if not isinstance(mods_raw, list):
        raise ManifestError("Manifest field mods must be a list")

    return RemoteManifest(
        manifest_version=_parse_uint(data["version"], "version"),
        manifests=_parse_version_keyed_map(data.get("manifests"), "manifests"),
        chain_config=[list(chain) for chain in chain_raw],
        mods=[parse_mod_entry(entry) for entry in mods_raw],
    )


def to_fetched_manifest(
    manifest: RemoteManifest, include_practice_mods: bool = False
) -> FetchedManifest:
    """Normalize aliases and split a RemoteManifest into the facets callers use."""
    cfg = ModsConfig(mods=[replace(mod) for mod in manifest.mods])
    normalize_aliases(cfg)
    if include_practice_mods:
        cfg = with_practice_mods(cfg)
    return FetchedManifest(
        manifest_version=manifest.manifest_version,
        mods_config=cfg,
        chain_config=manifest.chain_config,
        manifests=dict(manifest.manifests),
    )


class ManifestClient:
    """
    Fetches the remote manifest over HTTP.

    Parameters:
        client (AsyncHttpClient): Shared HTTP client.
        url (str): Manifest URL.
        include_practice_mods (bool): Append the practice mod set to the fetched mod list.
    """

    def __init__(
        self,
        client: AsyncHttpClient,
        url: str = MANIFEST_URL,
        include_practice_mods: bool = False,
    ) -> None:
        self.client = client
        self.url = url
        self.include_practice_mods = include_practice_mods

    async def fetch_manifest(self) -> FetchedManifest:
        """
        Perform one GET of the manifest URL and return its normalized facets.

        Raises:
            ManifestError: On transport failure, non-success status or malformed content.
        """
        logger.info(f"Fetching manifest from {self.url}")
        try:
            data = await self.client.get_json(self.url)
        except DownloadError as e:
            raise ManifestError(
                "Failed to fetch manifest", url=self.url, details=str(e)
            ) from e

        try:
            manifest = parse_manifest(data)
        except ManifestError as e:
            e.url = self.url
            raise

        fetched = to_fetched_manifest(manifest, self.include_practice_mods)
        logger.debug(
            f"Manifest v{fetched.manifest_version}: {len(fetched.mods_config.mods)} mods, "
            f"{len(fetched.manifests)} game versions"
        )
        return fetched


def summarize_chain_config(chain_config: List[List[str]]) -> str:
    """Render load-order chains as ``a -> b -> c`` lines for display."""
    return "\n".join(" -> ".join(chain) for chain in chain_config)
