"""
Plugin discovery and triage.

Scans category paths with the registered source loaders and builds the set
of candidates waiting to be activated, together with their outstanding hard
and soft dependency edges.
"""

import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Set

from plugsmith.exceptions import (
    DuplicatePluginError,
    IncompatibleApiError,
    ManifestParseError,
    PluginLoadError,
    ReentrancyError,
    SourceReadError,
)
from plugsmith.plugins.graylist import Graylist
from plugsmith.plugins.loaders.base import SourceLoader
from plugsmith.plugins.manifest import PluginDescriptor, is_api_compatible
from plugsmith.plugins.registry import PluginRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateEntry:
    """A discovered plugin waiting to be activated."""

    path: Path
    loader: SourceLoader
    descriptor: PluginDescriptor

    @property
    def name(self) -> str:
        return self.descriptor.name


@dataclass
class TriageSet:
    """
    Working set of one load call.

    Attributes:
        plugins: Candidates by name, in discovery order
        hard_deps: Outstanding hard dependencies by plugin name
        soft_deps: Outstanding soft dependencies by plugin name. May hold
                   entries for names that were never discovered (created by
                   another plugin's ``loadbefore``).

    A name whose entries in both dependency maps are gone is ready to load.
    """

    plugins: Dict[str, CandidateEntry] = field(default_factory=dict)
    hard_deps: Dict[str, Set[str]] = field(default_factory=dict)
    soft_deps: Dict[str, Set[str]] = field(default_factory=dict)

    def add(self, entry: CandidateEntry) -> None:
        """Queue a candidate and record its dependency edges."""
        name = entry.name
        descriptor = entry.descriptor
        self.plugins[name] = entry
        self.hard_deps[name] = set(descriptor.hard_dependencies)
        # Keep edges other plugins already added through loadbefore
        self.soft_deps[name] = self.soft_deps.get(name, set()) | set(
            descriptor.soft_dependencies
        )
        for before in descriptor.load_before:
            self.soft_deps.setdefault(before, set()).add(name)

    def is_queued(self, name: str) -> bool:
        return name in self.plugins

    def __len__(self) -> int:
        return len(self.plugins)


class TriageBuilder:
    """
    Populates a TriageSet from category paths.

    Directory listings are shuffled before use so that load outcomes never
    depend on filesystem enumeration order. Pass a seeded ``random.Random``
    to make a run reproducible.
    """

    def __init__(
        self,
        registry: PluginRegistry,
        graylist: Optional[Graylist] = None,
        api_version: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.registry = registry
        self.graylist = graylist
        self.api_version = api_version
        self.rng = rng or random.Random()

    def list_sources(self, category_path: Path) -> List[Path]:
        """Entries to examine for one category path, in shuffled order."""
        if category_path.is_dir():
            entries = sorted(category_path.iterdir())
            self.rng.shuffle(entries)
            return entries
        if category_path.is_file():
            return [category_path.resolve()]
        logger.debug(f"Category path does not exist: {category_path}")
        return []

    def scan(
        self,
        category_paths: Iterable[Path],
        triage: TriageSet,
        loaders: Mapping[str, SourceLoader],
        errors: List[PluginLoadError],
        rejected: Optional[List[str]] = None,
    ) -> None:
        """
        Discover candidates and add them to ``triage``.

        Args:
            category_paths: Directories (or single files) to scan
            triage: Working set to extend
            loaders: Loaders to scan with, keyed by loader id
            errors: Recoverable errors are appended here
            rejected: Names rejected by the graylist are appended here
        """
        for category_path in category_paths:
            sources = self.list_sources(Path(category_path))
            for loader in loaders.values():
                for source in sources:
                    entry = self._examine(source, loader, triage, errors, rejected)
                    if entry is not None:
                        triage.add(entry)
                        logger.debug(
                            f"Discovered plugin {entry.descriptor.full_name} at {source}"
                        )

    def _examine(
        self,
        source: Path,
        loader: SourceLoader,
        triage: TriageSet,
        errors: List[PluginLoadError],
        rejected: Optional[List[str]],
    ) -> Optional[CandidateEntry]:
        if not loader.can_handle(source):
            return None

        try:
            descriptor = loader.describe(source)
        except (ManifestParseError, SourceReadError) as e:
            logger.error(str(e))
            errors.append(e)
            return None
        except ReentrancyError:
            raise
        except Exception as e:
            logger.debug(f"{loader.loader_id} failed to describe {source}", exc_info=True)
            error = SourceReadError(str(source), f"cannot describe source: {e}")
            logger.error(str(error))
            errors.append(error)
            return None

        if descriptor is None:
            return None

        name = descriptor.name
        if triage.is_queued(name) or self.registry.get_plugin(name) is not None:
            error = DuplicatePluginError(name)
            logger.error(f"{error} (duplicate found at {source})")
            errors.append(error)
            return None

        if self.graylist is not None and not self.graylist.is_allowed(name):
            reason = "whitelist" if self.graylist.is_whitelist() else "blacklist"
            logger.info(f"Skipping plugin {name}: disallowed by the {reason}")
            if rejected is not None:
                rejected.append(name)
            return None

        if self.api_version is not None and not is_api_compatible(
            descriptor, self.api_version
        ):
            error = IncompatibleApiError(
                name,
                f"requires API {', '.join(descriptor.api)}, "
                f"host provides {self.api_version}",
            )
            logger.error(str(error))
            errors.append(error)
            return None

        if " " in name:
            logger.warning(f"Plugin name '{name}' contains spaces, which is discouraged")

        return CandidateEntry(source, loader, descriptor)
