"""
JSON persistence of settings bags.

Each stage's settings round-trip through a flat JSON object keyed by parameter
name. Files may hold a subset of the keys; missing keys keep their current
value. The combined document nests every bag under its section name.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Union

from paramtune.stages.settings import TypedSettings
from utils.logger import get_logger

logger = get_logger(__name__)

SETTINGS_FILES = {
    "preprocessor": "psettings.json",
    "localizer": "lsettings.json",
    "shape_fitter": "esettings.json",
    "grid_fitter": "gsettings.json",
}
COMBINED_SETTINGS_FILE = "settings.json"

PathLike = Union[str, Path]


def _read_json(path: PathLike) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            document = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to read settings file '{path}'. Error: {e}")
        raise IOError(f"Failed to read settings file '{path}': {e}") from e

    if not isinstance(document, dict):
        raise IOError(f"Settings file '{path}' does not contain a JSON object")
    return document


def load_settings(path: PathLike, settings: TypedSettings) -> TypedSettings:
    """
    Merge the values of a settings file into a settings bag.

    A combined document is accepted as well; only the bag's own section is read from it.

    Args:
        path: JSON file
        settings: Bag to update in place

    Returns:
        The updated bag
    """
    document = _read_json(path)
    if isinstance(document.get(settings.section), dict):
        document = document[settings.section]

    settings.update(document)
    logger.info(f"Loaded {len(document)} {settings.section} setting(s) from {path}")
    return settings


def read_settings(path: PathLike, section: str) -> TypedSettings:
    """Read a settings file into a new bag."""
    return load_settings(path, TypedSettings(section=section))


def write_settings(settings: TypedSettings, path: PathLike) -> Path:
    """
    Write a settings bag as a flat JSON object.

    Returns:
        The path written to
    """
    path = Path(path)
    try:
        with open(path, "w") as f:
            json.dump(settings.to_dict(), f, indent=4, sort_keys=True)
    except OSError as e:
        logger.error(f"Failed to write settings file '{path}'. Error: {e}", exc_info=True)
        raise IOError(f"Failed to write settings file '{path}': {e}") from e

    logger.info(f"Wrote {settings.section} settings to {path}")
    return path


def combine_settings(bags: Iterable[TypedSettings]) -> Dict[str, Dict[str, Any]]:
    """Merge several bags into one tree keyed by section."""
    combined: Dict[str, Dict[str, Any]] = {}
    for bag in bags:
        combined.setdefault(bag.section, {}).update(bag.to_dict())
    return combined


def write_combined(bags: Iterable[TypedSettings], path: PathLike) -> Path:
    """Write all bags into a single archival document."""
    path = Path(path)
    try:
        with open(path, "w") as f:
            json.dump(combine_settings(bags), f, indent=4, sort_keys=True)
    except OSError as e:
        logger.error(f"Failed to write combined settings '{path}'. Error: {e}", exc_info=True)
        raise IOError(f"Failed to write combined settings '{path}': {e}") from e

    logger.info(f"Wrote combined settings to {path}")
    return path
