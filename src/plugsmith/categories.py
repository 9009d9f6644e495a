"""
Category folder preparation.

Categories are named sub-folders of the plugin root; each one is scanned for
plugins on startup.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Iterable

from plugsmith.plugins.manifest import MANIFEST_FILENAME

logger = logging.getLogger(__name__)

_CATEGORY_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


def is_valid_category_name(name: str) -> bool:
    """Category names are single folder names: letters, digits, '_' and '-'."""
    return bool(_CATEGORY_NAME.match(name))


def prepare_categories(plugin_root: Path, names: Iterable[str]) -> Dict[str, Path]:
    """
    Resolve category names to folders, creating missing ones.

    A category folder that itself looks like a plugin (it has a manifest or a
    ``src`` folder) is refused, as are invalid names.

    Args:
        plugin_root: Directory holding the category folders
        names: Configured category names

    Returns:
        Mapping of accepted category name to its folder
    """
    accepted: Dict[str, Path] = {}
    refused = []

    for name in names:
        if not is_valid_category_name(name):
            refused.append(name)
            continue

        path = plugin_root / name
        if not path.exists():
            path.mkdir(parents=True)
        elif not path.is_dir():
            refused.append(name)
            continue

        if (path / MANIFEST_FILENAME).exists() or (path / "src").exists():
            refused.append(name)
            continue

        accepted[name] = path

    if refused:
        logger.warning(f"Failed to load categories: {', '.join(refused)}")
    logger.info(f"Successfully loaded {len(accepted)} categories")
    return accepted
