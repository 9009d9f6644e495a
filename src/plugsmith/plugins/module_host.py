"""
Host module system used by source loaders.

Source loaders never import plugin code themselves. They either expose a
location on the import path (directories, importable archives) or register
individual source units extracted from a container. Import itself is left
to Python's import machinery, which compiles registered units on demand.
"""

import importlib.abc
import importlib.util
import logging
import sys
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


class RegisteredSourceFinder(importlib.abc.MetaPathFinder, importlib.abc.SourceLoader):
    """
    Meta path finder serving modules registered as in-memory source units.

    Units are keyed by fully qualified module name. The origin is a
    pseudo-path used in tracebacks and as ``__file__``.
    """

    def __init__(self) -> None:
        self._modules: Dict[str, str] = {}  # module name -> origin
        self._packages: set = set()
        self._sources: Dict[str, bytes] = {}  # origin -> source

    def add(self, module_name: str, source: bytes, origin: str, is_package: bool) -> None:
        self._modules[module_name] = origin
        self._sources[origin] = source
        if is_package:
            self._packages.add(module_name)
        else:
            self._packages.discard(module_name)

    def __contains__(self, module_name: object) -> bool:
        return module_name in self._modules

    # MetaPathFinder

    def find_spec(self, fullname, path=None, target=None):
        origin = self._modules.get(fullname)
        if origin is None:
            return None
        is_package = fullname in self._packages
        return importlib.util.spec_from_file_location(
            fullname,
            origin,
            loader=self,
            submodule_search_locations=[origin.rsplit("/", 1)[0]] if is_package else None,
        )

    # SourceLoader

    def get_filename(self, fullname: str) -> str:
        try:
            return self._modules[fullname]
        except KeyError:
            raise ImportError(f"No registered source for {fullname}", name=fullname)

    def get_data(self, path: str) -> bytes:
        try:
            return self._sources[path]
        except KeyError:
            raise OSError(f"No registered source at {path}")

    def is_package(self, fullname: str) -> bool:
        return fullname in self._packages


class ModuleHost:
    """
    Makes plugin code importable.

    Two mechanisms are supported:

    - ``add_path``: put a directory (or importable archive path) on
      ``sys.path``
    - ``register_source``: register a single source unit with an in-memory
      finder installed at the front of ``sys.meta_path``

    ``close()`` removes everything this host installed. Modules that were
    already imported stay in ``sys.modules``.
    """

    def __init__(self) -> None:
        self._paths: List[str] = []
        self._finder = RegisteredSourceFinder()
        self._installed = False

    @property
    def paths(self) -> Sequence[str]:
        return tuple(self._paths)

    def add_path(self, path: str) -> None:
        """
        Prepend a location to the import path.

        Only locations this host inserted are tracked, so ``close()`` never
        removes entries someone else put on ``sys.path``.
        """
        if path in self._paths:
            return
        if path in sys.path:
            logger.debug(f"{path} is already on the import path")
            return
        sys.path.insert(0, path)
        self._paths.append(path)
        importlib.invalidate_caches()
        logger.debug(f"Added {path} to the import path")

    def register_source(
        self,
        module_name: str,
        source: bytes,
        origin: str,
        is_package: bool = False,
    ) -> None:
        """
        Register a source unit so ``import module_name`` resolves to it.

        Args:
            module_name: Fully qualified module name
            source: Python source code
            origin: Pseudo-path reported as the module's ``__file__``
            is_package: Whether the unit is a package ``__init__``
        """
        self._install()
        self._finder.add(module_name, source, origin, is_package)
        logger.debug(f"Registered module {module_name} from {origin}")

    def is_registered(self, module_name: str) -> bool:
        return module_name in self._finder

    def _install(self) -> None:
        if not self._installed:
            sys.meta_path.insert(0, self._finder)
            self._installed = True

    def close(self) -> None:
        """Remove installed import path entries and the source finder."""
        for path in self._paths:
            try:
                sys.path.remove(path)
            except ValueError:
                pass
        self._paths.clear()

        if self._installed:
            try:
                sys.meta_path.remove(self._finder)
            except ValueError:
                pass
            self._installed = False
        importlib.invalidate_caches()


def module_name_for(member: str, root: str = "src/") -> Optional[tuple]:
    """
    Derive ``(module_name, is_package)`` from an archive member path.

    Returns None for members outside ``root`` or that are not Python sources.

    Example:
        >>> module_name_for("src/economy/__init__.py")
        ('economy', True)
        >>> module_name_for("src/economy/shop.py")
        ('economy.shop', False)
    """
    if not member.startswith(root) or not member.endswith(".py"):
        return None
    parts = member[len(root) : -len(".py")].split("/")
    if not all(part.isidentifier() for part in parts):
        return None
    if parts[-1] == "__init__":
        if len(parts) == 1:
            return None
        return ".".join(parts[:-1]), True
    return ".".join(parts), False
