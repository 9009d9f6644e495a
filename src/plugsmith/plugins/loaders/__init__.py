"""Built-in plugin source loaders."""

from plugsmith.plugins.loaders.archive import (
    ArchiveSourceLoader,
    PyzSourceLoader,
    ZipSourceLoader,
)
from plugsmith.plugins.loaders.base import SourceLoader
from plugsmith.plugins.loaders.folder import FolderSourceLoader

__all__ = [
    "ArchiveSourceLoader",
    "FolderSourceLoader",
    "PyzSourceLoader",
    "SourceLoader",
    "ZipSourceLoader",
]
