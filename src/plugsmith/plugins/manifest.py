"""
Plugin manifest schema and validation.

Defines the structure of plugin manifest files (plugin.yml) that describe
plugins. Manifests are parsed with PyYAML and validated using Pydantic.
"""

import logging
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from plugsmith.exceptions import ManifestParseError

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "plugin.yml"


class PermissionDefault(str, Enum):
    """
    Default-grant tier of a declared permission.

    These control which root permission a newly registered permission is
    attached to.
    """

    TRUE = "true"
    """Granted to everyone."""

    OP = "op"
    """Granted to operators only."""

    NOT_OP = "notop"
    """Granted to everyone who is not an operator."""

    FALSE = "false"
    """Granted to nobody by default."""

    @classmethod
    def parse(cls, value: Any) -> "PermissionDefault":
        """
        Parse a manifest ``default`` value, accepting the usual aliases.

        Raises:
            ValueError: If the value is not a recognised tier
        """
        if isinstance(value, bool):
            return cls.TRUE if value else cls.FALSE

        key = str(value).strip().lower()
        if key in _PERMISSION_DEFAULT_ALIASES:
            return _PERMISSION_DEFAULT_ALIASES[key]
        raise ValueError(f"Unknown permission default '{value}'")


_PERMISSION_DEFAULT_ALIASES: Dict[str, PermissionDefault] = {
    "true": PermissionDefault.TRUE,
    "false": PermissionDefault.FALSE,
    "op": PermissionDefault.OP,
    "isop": PermissionDefault.OP,
    "operator": PermissionDefault.OP,
    "isoperator": PermissionDefault.OP,
    "admin": PermissionDefault.OP,
    "isadmin": PermissionDefault.OP,
    "!op": PermissionDefault.NOT_OP,
    "notop": PermissionDefault.NOT_OP,
    "!operator": PermissionDefault.NOT_OP,
    "notoperator": PermissionDefault.NOT_OP,
    "!admin": PermissionDefault.NOT_OP,
    "notadmin": PermissionDefault.NOT_OP,
}


class PermissionSpec(BaseModel):
    """A permission declared by a plugin manifest."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    default: PermissionDefault = PermissionDefault.OP


def _as_name_set(value: Any) -> FrozenSet[str]:
    """Accept a single name or a list of names."""
    if value is None:
        return frozenset()
    if isinstance(value, str):
        return frozenset([value])
    if isinstance(value, (list, tuple, set, frozenset)):
        names = set()
        for item in value:
            if not isinstance(item, str):
                raise ValueError(f"Expected plugin name string, got {type(item).__name__}")
            names.add(item)
        return frozenset(names)
    raise ValueError(f"Expected a name or list of names, got {type(value).__name__}")


class PluginDescriptor(BaseModel):
    """
    Parsed summary of a plugin manifest.

    Only the fields needed to triage and activate a plugin are modelled;
    unknown manifest keys are ignored. Descriptors are immutable.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = Field(
        ...,
        description="Unique plugin name (letters, digits, spaces, '_', '.', '-')",
        pattern=r"^[A-Za-z0-9 _.\-]+$",
    )

    version: str = Field(..., min_length=1, description="Plugin version string")

    main: str = Field(
        ...,
        description="Entry point reference (e.g., 'my_plugin.main.MyPlugin')",
    )

    api: Tuple[str, ...] = Field(
        default=(),
        description="Host API versions this plugin was written against",
    )

    description: str = ""
    author: str = ""
    website: str = ""

    hard_dependencies: FrozenSet[str] = Field(default=frozenset(), alias="depend")
    soft_dependencies: FrozenSet[str] = Field(default=frozenset(), alias="softdepend")
    load_before: FrozenSet[str] = Field(default=frozenset(), alias="loadbefore")

    permissions: Tuple[PermissionSpec, ...] = ()

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, value: Any) -> Any:
        """YAML reads ``version: 1.0`` as a float; keep it as text."""
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("main")
    @classmethod
    def validate_main(cls, value: str) -> str:
        """Ensure main has at least module.Attribute structure."""
        parts = value.split(".")
        if len(parts) < 2 or not all(parts):
            raise ValueError(
                f"main must be fully qualified (e.g., 'module.Class'), got: {value}"
            )
        return value

    @field_validator("api", mode="before")
    @classmethod
    def validate_api(cls, value: Any) -> Tuple[str, ...]:
        return tuple(sorted(str(v) for v in _as_name_set(value)))

    @field_validator("hard_dependencies", "soft_dependencies", "load_before", mode="before")
    @classmethod
    def validate_names(cls, value: Any) -> FrozenSet[str]:
        return _as_name_set(value)

    @field_validator("permissions", mode="before")
    @classmethod
    def validate_permissions(cls, value: Any) -> Tuple[PermissionSpec, ...]:
        """Convert the manifest's ``name -> {description, default}`` mapping."""
        if value is None:
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(value)
        if not isinstance(value, dict):
            raise ValueError("permissions must be a mapping of permission names")

        specs = []
        for perm_name, data in value.items():
            data = data or {}
            if not isinstance(data, dict):
                raise ValueError(f"permission '{perm_name}' must be a mapping")
            specs.append(
                PermissionSpec(
                    name=str(perm_name),
                    description=str(data.get("description", "")),
                    default=PermissionDefault.parse(data.get("default", "op")),
                )
            )
        return tuple(specs)

    @property
    def full_name(self) -> str:
        """Name and version, for log messages."""
        return f"{self.name} v{self.version}"

    def permissions_by_default(self) -> Dict[PermissionDefault, List[PermissionSpec]]:
        """Group declared permissions by their default-grant tier."""
        grouped: Dict[PermissionDefault, List[PermissionSpec]] = {}
        for spec in self.permissions:
            grouped.setdefault(spec.default, []).append(spec)
        return grouped


def parse_manifest(content: Union[str, bytes], source: str) -> PluginDescriptor:
    """
    Parse plugin.yml content into a descriptor.

    Args:
        content: Raw manifest text
        source: Where the manifest came from (used in error messages)

    Returns:
        PluginDescriptor instance

    Raises:
        ManifestParseError: If the manifest is not valid YAML or fails validation
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ManifestParseError(source, f"invalid YAML in manifest: {e}") from e

    if not isinstance(data, dict):
        raise ManifestParseError(
            source, f"manifest root must be a mapping, got {type(data).__name__}"
        )

    try:
        return PluginDescriptor.model_validate(data)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'manifest'}: {err['msg']}"
            for err in e.errors()
        )
        raise ManifestParseError(source, f"invalid manifest: {errors}") from e


def _version_tuple(version: str) -> Tuple[int, ...]:
    parts = []
    for piece in version.split("-", 1)[0].split("."):
        if not piece.isdigit():
            raise ValueError(f"Invalid API version '{version}'")
        parts.append(int(piece))
    return tuple(parts)


def is_api_compatible(descriptor: PluginDescriptor, host_api_version: str) -> bool:
    """
    Check whether any declared API version is usable on the host.

    A declared version is compatible when it has the same major version as
    the host and is not newer than it. Plugins that declare no API are
    always compatible.
    """
    if not descriptor.api:
        return True

    host = _version_tuple(host_api_version)
    for declared in descriptor.api:
        try:
            wanted = _version_tuple(declared)
        except ValueError:
            logger.debug(f"Ignoring malformed API version '{declared}' of {descriptor.name}")
            continue
        if wanted[0] == host[0] and wanted <= host:
            return True
    return False
