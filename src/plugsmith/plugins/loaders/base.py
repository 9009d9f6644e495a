"""
Source loader contract.

A source loader recognises one kind of plugin source (a directory, an
archive, ...), reads its manifest, and makes its code importable.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from plugsmith.plugins.manifest import PluginDescriptor
from plugsmith.plugins.module_host import ModuleHost
from plugsmith.plugins.registry import PluginRegistry


class SourceLoader(ABC):
    """
    Base class for plugin source loaders.

    Subclasses implement:

    - ``can_handle``: cheap, side-effect free recognition test
    - ``read_descriptor``: parse the manifest without running plugin code
    - ``activate``: make the plugin's code importable (called at most once
      per candidate, right before its main entry is resolved)
    - ``access_prefix``: prefix prepended to the source path when the
      plugin's resources are referenced later

    Loaders are registered with the plugin manager under ``loader_id``.
    """

    def __init__(self, module_host: ModuleHost, registry: Optional[PluginRegistry] = None):
        """
        Args:
            module_host: Module system used to expose plugin code
            registry: Plugin registry; descriptors for names already registered
                      there are not reported
        """
        self.module_host = module_host
        self.registry = registry

    @property
    def loader_id(self) -> str:
        cls = type(self)
        return f"{cls.__module__}.{cls.__qualname__}"

    @abstractmethod
    def can_handle(self, path: Path) -> bool:
        ...

    @abstractmethod
    def read_descriptor(self, path: Path) -> Optional[PluginDescriptor]:
        """
        Read the source's manifest.

        Returns:
            The descriptor, or None if the source has no manifest

        Raises:
            ManifestParseError: If the manifest exists but is malformed
            SourceReadError: If the source itself cannot be read
        """
        ...

    @abstractmethod
    def activate(self, path: Path) -> None:
        ...

    def access_prefix(self) -> str:
        return ""

    def describe(self, path: Path) -> Optional[PluginDescriptor]:
        """
        Return the source's descriptor unless that plugin is already running.

        Raises:
            ManifestParseError: If the manifest exists but is malformed
            SourceReadError: If the source itself cannot be read
        """
        descriptor = self.read_descriptor(path)
        if descriptor is None:
            return None
        if self.registry is not None and self.registry.get_plugin(descriptor.name) is not None:
            return None
        return descriptor

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"
