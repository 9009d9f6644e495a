"""
Plugin name allow/deny policy.

The graylist is read once per run from a YAML document and consulted once for
every discovered candidate.
"""

import logging
import shutil
from enum import Enum
from importlib import resources
from pathlib import Path
from typing import Any, FrozenSet, List

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from plugsmith.exceptions import GraylistFileCorruptError

logger = logging.getLogger(__name__)

DEFAULT_GRAYLIST_RESOURCE = "plugin_list.yml"


class GraylistMode(str, Enum):
    """Whether the listed names are the only ones allowed, or the ones denied."""

    WHITELIST = "whitelist"
    BLACKLIST = "blacklist"


class _GraylistDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mode: GraylistMode
    plugins: List[str] = []


class Graylist:
    """
    Immutable allow/deny list of plugin names.

    Example:
        >>> graylist = Graylist(GraylistMode.WHITELIST, {"Economy"})
        >>> graylist.is_allowed("Economy")
        True
        >>> graylist.is_allowed("Other")
        False
    """

    def __init__(self, mode: GraylistMode, names: Any = ()) -> None:
        self._mode = GraylistMode(mode)
        self._names: FrozenSet[str] = frozenset(names)

    @property
    def mode(self) -> GraylistMode:
        return self._mode

    @property
    def names(self) -> FrozenSet[str]:
        return self._names

    def is_whitelist(self) -> bool:
        return self._mode is GraylistMode.WHITELIST

    def is_allowed(self, name: str) -> bool:
        """Check whether a plugin name passes the policy."""
        if self.is_whitelist():
            return name in self._names
        return name not in self._names

    @classmethod
    def from_mapping(cls, data: Any, source: str | None = None) -> "Graylist":
        """
        Build a graylist from a parsed document.

        Raises:
            GraylistFileCorruptError: If the document is not a valid graylist
        """
        if not isinstance(data, dict):
            raise GraylistFileCorruptError(
                f"Expected a mapping as root, got {type(data).__name__}", source
            )
        try:
            document = _GraylistDocument.model_validate(data)
        except ValidationError as e:
            raise GraylistFileCorruptError(str(e), source) from e
        return cls(document.mode, document.plugins)

    def __repr__(self) -> str:
        return f"Graylist(mode={self._mode.value!r}, names={sorted(self._names)!r})"


def load_graylist(path: Path) -> Graylist:
    """
    Load the graylist file, seeding it from the bundled default when missing.

    Args:
        path: Location of the graylist YAML file

    Returns:
        Parsed Graylist

    Raises:
        GraylistFileCorruptError: If the file cannot be parsed or validated
    """
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        default = resources.files("plugsmith.resources").joinpath(DEFAULT_GRAYLIST_RESOURCE)
        with resources.as_file(default) as default_path:
            shutil.copyfile(default_path, path)
        logger.info(f"Created default graylist at {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise GraylistFileCorruptError(str(e), str(path)) from e

    graylist = Graylist.from_mapping(data, str(path))
    logger.debug(f"Loaded {graylist!r} from {path}")
    return graylist
