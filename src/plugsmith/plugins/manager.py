"""
Dependency-aware plugin loading.

The plugin manager scans category paths with every registered source loader,
then activates candidates in rounds until nothing more can be loaded:

1. A candidate's dependency edges are pruned once the dependency is running.
   Edges to plugins that are queued but not yet loaded are kept.
2. A candidate with no edges left is activated. If activation registers new
   source loaders, the category paths are rescanned with just those loaders
   and any new candidates join the current run.
3. When a round activates nothing, soft dependencies on plugins that will
   never arrive are dropped one plugin at a time, each time retrying a full
   round. Once there is nothing left to drop, plugins with unknown hard
   dependencies fail, and whatever remains is part of a dependency cycle.

Per-plugin failures never abort the call; they are collected into the
returned LoadResult.
"""

import importlib
import inspect
import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Set, Union

from plugsmith.exceptions import (
    CircularDependencyError,
    DataFolderConflictError,
    DataRootConflictError,
    DuplicatePermissionError,
    MainEntryNotFoundError,
    MainEntryNotInstantiableError,
    MainEntryWrongTypeError,
    PluginLoadError,
    ReentrancyError,
    SourceReadError,
    UnknownDependencyError,
)
from plugsmith.plugins.base import Plugin, resource_provider_for
from plugsmith.plugins.graylist import Graylist
from plugsmith.plugins.loaders.base import SourceLoader
from plugsmith.plugins.module_host import ModuleHost
from plugsmith.plugins.registry import PermissionRegistry, PluginRegistry
from plugsmith.plugins.triage import CandidateEntry, TriageBuilder, TriageSet

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class LoadResult:
    """
    Outcome of one load call.

    Attributes:
        plugins: Plugins activated by this call, in activation order
        errors: Recoverable errors, in the order they occurred
        rejected: Plugin names skipped by the graylist (not errors)
    """

    plugins: Dict[str, Plugin] = field(default_factory=dict)
    errors: List[PluginLoadError] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def ok(self) -> bool:
        return not self.errors


class PluginManager:
    """
    Loads plugins from category paths using registered source loaders.

    The manager is the context object a host creates once at startup and
    passes around; it owns the loader registry and the module host, and
    shares the plugin and permission registries with the host.

    Example:
        >>> with PluginManager(data_dir=Path("plugin_data")) as manager:
        ...     manager.register_loader(FolderSourceLoader(manager.module_host, manager.registry))
        ...     result = manager.load_plugins([Path("plugins/core")])
        ...     print(result.error_count)
    """

    def __init__(
        self,
        registry: Optional[PluginRegistry] = None,
        permissions: Optional[PermissionRegistry] = None,
        data_dir: Optional[Path] = None,
        graylist: Optional[Graylist] = None,
        module_host: Optional[ModuleHost] = None,
        api_version: Optional[str] = None,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        """
        Initialize the plugin manager.

        Args:
            registry: Plugin registry shared with the host
            permissions: Permission registry shared with the host
            data_dir: Shared root for plugin data folders. When None, each
                      plugin's data folder sits next to its source.
            graylist: Name policy applied to every discovered candidate
            module_host: Module system used by source loaders
            api_version: Host API version checked against manifests (None
                         disables the check)
            seed: Seed for the scan-order shuffle
            rng: Random generator for the scan-order shuffle (overrides seed)

        Raises:
            DataRootConflictError: If data_dir exists and is not a directory
        """
        self.registry = registry if registry is not None else PluginRegistry()
        self.permissions = permissions if permissions is not None else PermissionRegistry()
        self.module_host = module_host if module_host is not None else ModuleHost()
        self.graylist = graylist
        self.data_dir = data_dir
        self._loaders: Dict[str, SourceLoader] = {}
        self._triage_builder = TriageBuilder(
            self.registry,
            graylist=graylist,
            api_version=api_version,
            rng=rng or random.Random(seed),
        )

        if data_dir is not None:
            if not data_dir.exists():
                data_dir.mkdir(parents=True)
            elif not data_dir.is_dir():
                raise DataRootConflictError(str(data_dir))

    def __enter__(self) -> "PluginManager":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Uninstall the import hooks installed for plugin code."""
        self.module_host.close()

    # Loader registry

    @property
    def loaders(self) -> Mapping[str, SourceLoader]:
        return dict(self._loaders)

    def register_loader(self, loader: SourceLoader) -> bool:
        """
        Register a source loader.

        Loaders may also be registered by a plugin while it is being
        activated; the current load call then rescans for sources the new
        loader understands.

        Returns:
            False if a loader with the same id is already registered
        """
        loader_id = loader.loader_id
        if loader_id in self._loaders:
            logger.warning(f"Source loader {loader_id} is already registered")
            return False
        self._loaders[loader_id] = loader
        logger.debug(f"Registered source loader {loader_id}")
        return True

    # Plugin registry passthroughs

    def get_plugin(self, name: str) -> Optional[Plugin]:
        return self.registry.get_plugin(name)

    def is_plugin_enabled(self, plugin: Plugin) -> bool:
        return self.registry.get_plugin(plugin.name) is plugin and plugin.enabled

    # Loading

    def load_plugins(self, category_paths: Iterable[PathLike]) -> LoadResult:
        """
        Discover and activate plugins from the given category paths.

        Args:
            category_paths: Directories to scan; a path to a single file is
                            scanned as a one-entry directory

        Returns:
            LoadResult with the newly activated plugins and any errors

        Raises:
            ReentrancyError: If called while a load is already running for
                             the same plugin registry
        """
        paths = [Path(p) for p in category_paths]
        result = LoadResult()

        with self.registry.load_guard():
            triage = TriageSet()
            self._triage_builder.scan(
                paths, triage, self._loaders, result.errors, result.rejected
            )
            self._resolve(paths, triage, result)

        logger.info(
            f"Loaded {len(result.plugins)} plugin(s) with {result.error_count} error(s)"
        )
        return result

    def _resolve(self, paths: List[Path], triage: TriageSet, result: LoadResult) -> None:
        loaded = result.plugins

        while triage.plugins:
            activated_this_round = 0

            # Snapshot: candidates added by a rescan wait for the next round
            for name, entry in list(triage.plugins.items()):
                self._prune_dependencies(name, "hard", triage.hard_deps, loaded, triage)
                self._prune_dependencies(name, "soft", triage.soft_deps, loaded, triage)

                if name in triage.hard_deps or name in triage.soft_deps:
                    continue

                del triage.plugins[name]
                activated_this_round += 1

                loaders_before = set(self._loaders)
                plugin = self._activate(entry, result.errors)
                if plugin is None:
                    continue

                loaded[name] = plugin
                new_loaders = [k for k in self._loaders if k not in loaders_before]
                if new_loaders:
                    self._rescan(name, paths, triage, new_loaders, result)

            if activated_this_round > 0:
                continue

            if self._drop_missing_soft_dependency(triage):
                continue

            self._fail_unknown_dependencies(triage, result.errors)
            for name in triage.plugins:
                error = CircularDependencyError(name)
                logger.error(str(error))
                result.errors.append(error)
            triage.plugins.clear()

    def _prune_dependencies(
        self,
        name: str,
        kind: str,
        dependency_lists: Dict[str, Set[str]],
        loaded: Mapping[str, Plugin],
        triage: TriageSet,
    ) -> None:
        dependencies = dependency_lists.get(name)
        if dependencies is None:
            return

        for dependency in list(dependencies):
            if dependency in loaded or self.registry.get_plugin(dependency) is not None:
                logger.debug(
                    f'Resolved {kind} dependency "{dependency}" for plugin "{name}"'
                )
                dependencies.discard(dependency)
            elif triage.is_queued(dependency):
                logger.debug(
                    f'Deferring {kind} dependency "{dependency}" for plugin "{name}" '
                    f"(found but not loaded yet)"
                )

        if not dependencies:
            del dependency_lists[name]

    def _is_missing(self, name: str, triage: TriageSet) -> bool:
        """A plugin that is neither running nor queued will never arrive."""
        return self.registry.get_plugin(name) is None and not triage.is_queued(name)

    def _drop_missing_soft_dependency(self, triage: TriageSet) -> bool:
        """
        Drop soft edges to plugins that will never arrive.

        Only plugins whose sole remaining edges are soft are considered.
        Stops at the first plugin whose soft edges are all gone, so that it
        is retried in a fresh round before anything is declared failed.

        Returns:
            True if a plugin became ready and another round should run
        """
        for name in list(triage.plugins):
            if name not in triage.soft_deps or name in triage.hard_deps:
                continue

            soft = triage.soft_deps[name]
            for dependency in list(soft):
                if self._is_missing(dependency, triage):
                    logger.debug(
                        f'Skipping missing soft dependency "{dependency}" for plugin "{name}"'
                    )
                    soft.discard(dependency)

            if not soft:
                del triage.soft_deps[name]
                return True
        return False

    def _fail_unknown_dependencies(
        self, triage: TriageSet, errors: List[PluginLoadError]
    ) -> None:
        """
        Reject plugins whose hard dependencies will never arrive.

        Repeats until stable so a plugin depending on a rejected plugin is
        itself reported as having an unknown dependency.
        """
        changed = True
        while changed:
            changed = False
            for name in list(triage.plugins):
                missing = {
                    dependency
                    for dependency in triage.hard_deps.get(name, ())
                    if self._is_missing(dependency, triage)
                }
                if missing:
                    error = UnknownDependencyError(name, missing)
                    logger.error(str(error))
                    errors.append(error)
                    del triage.plugins[name]
                    changed = True

    def _rescan(
        self,
        name: str,
        paths: List[Path],
        triage: TriageSet,
        new_loaders: List[str],
        result: LoadResult,
    ) -> None:
        logger.debug(
            f"Plugin {name} registered a new source loader during load, "
            f"scanning for new plugins"
        )
        before = set(triage.plugins)
        loaders = {k: self._loaders[k] for k in new_loaders}
        self._triage_builder.scan(paths, triage, loaders, result.errors, result.rejected)
        found = [n for n in triage.plugins if n not in before]
        logger.debug(f"Re-triage found plugins: {', '.join(found)}")

    # Activation

    def data_folder_for(self, entry: CandidateEntry) -> Path:
        if self.data_dir is not None:
            return self.data_dir / entry.name
        return entry.path.parent / entry.name

    def _activate(
        self, entry: CandidateEntry, errors: List[PluginLoadError]
    ) -> Optional[Plugin]:
        """Activate one candidate, recording any failure in ``errors``."""
        try:
            return self._activate_entry(entry)
        except PluginLoadError as e:
            logger.error(str(e))
            errors.append(e)
            return None

    def _activate_entry(self, entry: CandidateEntry) -> Plugin:
        descriptor = entry.descriptor
        name = descriptor.name
        logger.info(f"Loading {descriptor.full_name}")

        data_folder = self.data_folder_for(entry)
        if data_folder.exists() and not data_folder.is_dir():
            raise DataFolderConflictError(name, str(data_folder))
        data_folder.mkdir(parents=True, exist_ok=True)

        source = entry.loader.access_prefix() + str(entry.path)
        try:
            entry.loader.activate(entry.path)
        except ReentrancyError:
            raise
        except SourceReadError as e:
            raise SourceReadError(name, e.message) from e
        except Exception as e:
            logger.debug(f"Activating {entry.path} failed", exc_info=True)
            raise SourceReadError(name, f"cannot activate {entry.path}: {e}") from e

        main_class = self._resolve_main(name, descriptor.main)

        for spec in descriptor.permissions:
            if self.permissions.get_permission(spec.name) is not None:
                raise DuplicatePermissionError(name, spec.name)
        for spec in descriptor.permissions:
            self.permissions.register_declared(spec)

        try:
            plugin = main_class(
                manager=self,
                loader=entry.loader,
                descriptor=descriptor,
                data_folder=data_folder,
                source=source,
                resources=resource_provider_for(source),
            )
        except ReentrancyError:
            raise
        except Exception as e:
            logger.debug(f"Constructing {descriptor.main} failed", exc_info=True)
            raise MainEntryNotInstantiableError(
                name, f"{descriptor.main} could not be constructed: {e}"
            ) from e

        self.registry.set_plugin(name, plugin)
        return plugin

    def _resolve_main(self, name: str, main: str) -> type:
        module_name, _, attr = main.rpartition(".")
        try:
            module = importlib.import_module(module_name)
        except Exception as e:
            raise MainEntryNotFoundError(
                name, f"main entry {main} not found: cannot import {module_name}: {e}"
            ) from e

        main_class = getattr(module, attr, None)
        if main_class is None:
            raise MainEntryNotFoundError(
                name, f"main entry {main} not found: {module_name} has no {attr}"
            )

        if not inspect.isclass(main_class) or not issubclass(main_class, Plugin):
            raise MainEntryWrongTypeError(
                name, f"main entry {main} must be a subclass of {Plugin.__qualname__}"
            )

        if main_class is Plugin or inspect.isabstract(main_class):
            raise MainEntryNotInstantiableError(
                name, f"main entry {main} is abstract and cannot be instantiated"
            )

        return main_class
