"""
Base plugin class and resource providers.

Every plugin's main entry must be a concrete subclass of :class:`Plugin`.
"""

import logging
import zipfile
from abc import ABC
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from plugsmith.plugins.manifest import PluginDescriptor

if TYPE_CHECKING:
    from plugsmith.plugins.loaders.base import SourceLoader
    from plugsmith.plugins.manager import PluginManager

ARCHIVE_PREFIX = "zip://"


class ResourceProvider(ABC):
    """Read-only access to files a plugin bundles under ``resources/``."""

    def get_resource(self, name: str) -> Optional[bytes]:
        """Return the resource content, or None if it does not exist."""
        raise NotImplementedError

    def list_resources(self) -> List[str]:
        """Return resource names relative to the resources root."""
        raise NotImplementedError


class DiskResourceProvider(ResourceProvider):
    """Resources stored in a directory on disk."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def get_resource(self, name: str) -> Optional[bytes]:
        path = (self.root / name).resolve()
        if self.root.resolve() not in path.parents or not path.is_file():
            return None
        return path.read_bytes()

    def list_resources(self) -> List[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            p.relative_to(self.root).as_posix() for p in self.root.rglob("*") if p.is_file()
        )


class ArchiveResourceProvider(ResourceProvider):
    """Resources stored as members of a zip archive."""

    def __init__(self, archive: Path, root: str = "resources/") -> None:
        self.archive = archive
        self.root = root

    def get_resource(self, name: str) -> Optional[bytes]:
        with zipfile.ZipFile(self.archive) as zf:
            try:
                return zf.read(self.root + name)
            except KeyError:
                return None

    def list_resources(self) -> List[str]:
        with zipfile.ZipFile(self.archive) as zf:
            return sorted(
                n[len(self.root) :]
                for n in zf.namelist()
                if n.startswith(self.root) and not n.endswith("/")
            )


def resource_provider_for(source: str) -> ResourceProvider:
    """Pick a provider from a prefixed source path (see SourceLoader.access_prefix)."""
    if source.startswith(ARCHIVE_PREFIX):
        return ArchiveResourceProvider(Path(source[len(ARCHIVE_PREFIX) :]))
    return DiskResourceProvider(Path(source) / "resources")


class Plugin(ABC):
    """
    Base class for plugin main entries.

    The constructor receives everything the plugin needs to know about where
    it came from and then calls :meth:`on_load`. Plugins that provide new
    source loaders register them from ``on_load``.

    Example:
        >>> class Economy(Plugin):
        ...     def on_enable(self):
        ...         self.logger.info("ready")
    """

    def __init__(
        self,
        manager: "PluginManager",
        loader: "SourceLoader",
        descriptor: PluginDescriptor,
        data_folder: Path,
        source: str,
        resources: ResourceProvider,
    ) -> None:
        self.manager = manager
        self.loader = loader
        self.descriptor = descriptor
        self.data_folder = data_folder
        self.source = source
        self.resources = resources
        self.logger = logging.getLogger(f"plugsmith.plugin.{descriptor.name}")
        self._enabled = False
        self.on_load()

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def enabled(self) -> bool:
        return self._enabled

    def on_load(self) -> None:
        """Called once, right after construction."""

    def on_enable(self) -> None:
        """Called when the host enables the plugin."""

    def on_disable(self) -> None:
        """Called when the host disables the plugin."""

    def set_enabled(self, enabled: bool = True) -> None:
        if enabled == self._enabled:
            return
        self._enabled = enabled
        if enabled:
            self.on_enable()
        else:
            self.on_disable()

    def get_resource(self, name: str) -> Optional[bytes]:
        return self.resources.get_resource(name)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.descriptor.full_name}>"
