"""
Loaders for single-file plugin archives.

Two archive kinds are supported:

- ``.pyz``: the archive's ``src/`` directory is importable in place, so
  activation just puts ``<archive>/src`` on the import path
- ``.zip``: each Python source under ``src/`` is extracted and registered
  with the host module system as its own compiled unit
"""

import logging
import zipfile
from pathlib import Path
from typing import Optional

from plugsmith.exceptions import SourceReadError
from plugsmith.plugins.base import ARCHIVE_PREFIX
from plugsmith.plugins.loaders.base import SourceLoader
from plugsmith.plugins.manifest import MANIFEST_FILENAME, PluginDescriptor, parse_manifest
from plugsmith.plugins.module_host import module_name_for

logger = logging.getLogger(__name__)


class ArchiveSourceLoader(SourceLoader):
    """Shared manifest handling for zip-based plugin archives."""

    extension = ""

    def can_handle(self, path: Path) -> bool:
        return path.is_file() and path.suffix.lower() == self.extension

    def read_descriptor(self, path: Path) -> Optional[PluginDescriptor]:
        try:
            with zipfile.ZipFile(path) as zf:
                try:
                    content = zf.read(MANIFEST_FILENAME)
                except KeyError:
                    return None
        except (OSError, zipfile.BadZipFile) as e:
            raise SourceReadError(str(path), f"cannot read archive: {e}") from e

        if not content.strip():
            return None
        return parse_manifest(content, str(path))

    def access_prefix(self) -> str:
        return ARCHIVE_PREFIX


class PyzSourceLoader(ArchiveSourceLoader):
    """Loads ``.pyz`` archives through Python's own zip import support."""

    extension = ".pyz"

    def activate(self, path: Path) -> None:
        self.module_host.add_path(f"{path}/src")


class ZipSourceLoader(ArchiveSourceLoader):
    """Loads ``.zip`` archives by registering each ``src/`` module."""

    extension = ".zip"

    def activate(self, path: Path) -> None:
        try:
            with zipfile.ZipFile(path) as zf:
                for member in zf.namelist():
                    unit = module_name_for(member)
                    if unit is None:
                        continue
                    module_name, is_package = unit
                    self.module_host.register_source(
                        module_name,
                        zf.read(member),
                        origin=f"{path}/{member}",
                        is_package=is_package,
                    )
        except (OSError, zipfile.BadZipFile) as e:
            raise SourceReadError(str(path), f"cannot read archive: {e}") from e
