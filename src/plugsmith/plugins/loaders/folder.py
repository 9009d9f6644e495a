"""Loader for uncompressed plugin directories."""

import logging
from pathlib import Path
from typing import Optional

from plugsmith.exceptions import SourceReadError
from plugsmith.plugins.loaders.base import SourceLoader
from plugsmith.plugins.manifest import MANIFEST_FILENAME, PluginDescriptor, parse_manifest

logger = logging.getLogger(__name__)


class FolderSourceLoader(SourceLoader):
    """
    Loads plugins laid out as directories.

    Each plugin directory should contain:
    - plugin.yml (manifest)
    - src/ (importable Python packages and modules)
    """

    def can_handle(self, path: Path) -> bool:
        return (
            path.is_dir()
            and (path / MANIFEST_FILENAME).is_file()
            and (path / "src").is_dir()
        )

    def read_descriptor(self, path: Path) -> Optional[PluginDescriptor]:
        manifest_path = path / MANIFEST_FILENAME
        if not path.is_dir() or not manifest_path.is_file():
            return None

        try:
            content = manifest_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SourceReadError(str(path), f"cannot read {MANIFEST_FILENAME}: {e}") from e

        if not content.strip():
            return None
        return parse_manifest(content, str(path))

    def activate(self, path: Path) -> None:
        self.module_host.add_path(str(path / "src"))
