"""
Mod compatibility and version pinning.

Decides, for a mod entry and a target game version, whether the mod installs
and which package version to fetch. Also holds the alias table used to repair
known identifier typos in published manifests.
"""

from typing import Dict, List, Optional, Tuple

from hqlauncher.constants import LATEST_VERSION_SENTINEL
from hqlauncher.log_utils import logger

from .interfaces import ModEntry, ModsConfig, ResolvedMod

# (old_dev, old_name) -> (new_dev, new_name)
ALIAS_RULES: Dict[Tuple[str, str], Tuple[str, str]] = {
    ("Hardy", "LCMaxSoundFix"): ("Hardy", "LCMaxSoundsFix"),
}

PRACTICE_MODS: List[Tuple[str, str]] = [
    ("megumin", "LethalDevMode"),
    ("giosuel", "Imperium"),
    ("Lordfirespeed", "OdinSerializer"),
    ("xilophor", "LethalNetworkAPI"),
    ("aoirint", "CruiserJumpPractice"),
]


def is_compatible(mod: ModEntry, game_version: int) -> bool:
    """
    Return whether `mod` should be installed for `game_version`.

    A mod is compatible when it is enabled and `game_version` lies inside its
    inclusive `low_cap`/`high_cap` bounds (unset bounds do not constrain).
    """
    if not mod.enabled:
        return False
    if mod.low_cap is not None and game_version < mod.low_cap:
        return False
    if mod.high_cap is not None and game_version > mod.high_cap:
        return False
    return True


def pinned_version_for(mod: ModEntry, game_version: int) -> Optional[str]:
    """
    Resolve the pinned package version for `game_version` by threshold.

    The greatest `version_config` key that is <= `game_version` wins. Returns
    None ("use latest") when no key qualifies or when the selected value is
    the "0.0.0" sentinel.

    Example:
        {56: "1.0.1", 73: "1.1.1"} gives None for 55, "1.0.1" for 56..72 and
        "1.1.1" for 73 and above.
    """
    selected: Optional[str] = None
    for threshold, version in sorted(mod.version_config.items()):
        if threshold > game_version:
            break
        selected = version

    if selected is None or selected.strip() == LATEST_VERSION_SENTINEL:
        return None
    return selected


def _final_alias(
    key: Tuple[str, str], table: Dict[Tuple[str, str], Tuple[str, str]]
) -> Tuple[str, str]:
    """Follow chained rules to their final name. Names on a rule cycle stay as they are."""
    seen = {key}
    current = key
    while current in table:
        nxt = table[current]
        if nxt in seen:
            if nxt != current:
                logger.warning(
                    f"Alias rules for {key[0]}-{key[1]} form a cycle; leaving it unchanged"
                )
            return key
        seen.add(nxt)
        current = nxt
    return current


def normalize_aliases(
    cfg: ModsConfig,
    rules: Optional[Dict[Tuple[str, str], Tuple[str, str]]] = None,
) -> bool:
    """
    Rewrite known historical identifier typos in place.

    Chained rules are followed to their final name, so applying the rules twice
    has no further effect. Returns True if any entry changed.
    """
    table = ALIAS_RULES if rules is None else rules
    changed = False
    for mod in cfg.mods:
        replacement = _final_alias((mod.dev, mod.name), table)
        if replacement == (mod.dev, mod.name):
            continue
        logger.debug(
            f"Renaming mod {mod.dev}-{mod.name} to {replacement[0]}-{replacement[1]}"
        )
        mod.dev, mod.name = replacement
        changed = True
    return changed


def with_practice_mods(cfg: ModsConfig) -> ModsConfig:
    """Return a copy of `cfg` with the practice mod set appended, skipping duplicates."""
    present = {(m.dev.lower(), m.name.lower()) for m in cfg.mods}
    mods = list(cfg.mods)
    for dev, name in PRACTICE_MODS:
        if (dev.lower(), name.lower()) in present:
            continue
        mods.append(ModEntry(dev=dev, name=name))
    return ModsConfig(mods=mods)


def resolve_mod_plan(cfg: ModsConfig, game_version: int) -> List[ResolvedMod]:
    """
    Build the install plan for `game_version`: compatible mods in config order,
    each paired with its pinned version or None for latest.
    """
    plan: List[ResolvedMod] = []
    for mod in cfg.mods:
        if not is_compatible(mod, game_version):
            logger.debug(f"Skipping {mod.full_name}: not compatible with v{game_version}")
            continue
        plan.append(
            ResolvedMod(
                dev=mod.dev,
                name=mod.name,
                version=pinned_version_for(mod, game_version),
            )
        )
    return plan
