"""
Registries shared between load calls.

The plugin registry is the authoritative record of activated plugins. It is
exposed through a narrow interface so a host can back it with its own plugin
map. The permission registry holds every permission plugins have declared.
"""

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional

from plugsmith.exceptions import ReentrancyError
from plugsmith.plugins.manifest import PermissionDefault, PermissionSpec

if TYPE_CHECKING:
    from plugsmith.plugins.base import Plugin

logger = logging.getLogger(__name__)


class PluginRegistry:
    """
    Map of plugin name to activated plugin.

    The plugin manager only ever adds to the registry. Hosts that keep their
    own plugin map can subclass this and override the three accessors.
    """

    def __init__(self) -> None:
        self._plugins: Dict[str, "Plugin"] = {}
        self._loading = False

    def get_plugin(self, name: str) -> Optional["Plugin"]:
        return self._plugins.get(name)

    def set_plugin(self, name: str, plugin: "Plugin") -> None:
        self._plugins[name] = plugin

    def list_plugins(self) -> List[str]:
        """Names of registered plugins, in registration order."""
        return list(self._plugins)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get_plugin(name) is not None

    @property
    def loading(self) -> bool:
        """Whether a load call is currently running against this registry."""
        return self._loading

    @contextmanager
    def load_guard(self) -> Iterator[None]:
        """
        Mark a load call as running for the duration of the block.

        Raises:
            ReentrancyError: If a load is already running for this registry
        """
        if self._loading:
            raise ReentrancyError("load_plugins() cannot be called from within itself")
        self._loading = True
        try:
            yield
        finally:
            self._loading = False


class Permission:
    """A named permission with child permissions it grants or denies."""

    def __init__(self, name: str, description: str = "") -> None:
        self.name = name
        self.description = description
        self.children: Dict[str, bool] = {}

    def add_child(self, name: str, value: bool) -> None:
        self.children[name] = value

    def __repr__(self) -> str:
        return f"Permission({self.name!r})"


class PermissionRegistry:
    """
    Process-wide permission table.

    Two root permissions exist from the start: one inherited by every user
    and one inherited by operators. Plugin permissions are attached to them
    according to their default-grant tier.
    """

    ROOT_USER = "plugsmith.group.user"
    ROOT_OPERATOR = "plugsmith.group.operator"

    def __init__(self) -> None:
        self._permissions: Dict[str, Permission] = {}
        self.add_permission(Permission(self.ROOT_USER, "Granted to every user"))
        self.add_permission(Permission(self.ROOT_OPERATOR, "Granted to operators"))

    def get_permission(self, name: str) -> Optional[Permission]:
        return self._permissions.get(name)

    def add_permission(self, permission: Permission) -> bool:
        """Register a permission. Returns False if the name is already taken."""
        if permission.name in self._permissions:
            return False
        self._permissions[permission.name] = permission
        return True

    def list_permissions(self) -> List[str]:
        return list(self._permissions)

    def register_declared(self, spec: PermissionSpec) -> Permission:
        """
        Register a manifest permission and wire it to the root permissions.

        Raises:
            ValueError: If the permission name is already registered
        """
        permission = Permission(spec.name, spec.description)
        if not self.add_permission(permission):
            raise ValueError(f"Permission {spec.name} is already registered")

        user_root = self._permissions[self.ROOT_USER]
        operator_root = self._permissions[self.ROOT_OPERATOR]
        if spec.default is PermissionDefault.TRUE:
            user_root.add_child(spec.name, True)
        elif spec.default is PermissionDefault.OP:
            operator_root.add_child(spec.name, True)
        elif spec.default is PermissionDefault.NOT_OP:
            user_root.add_child(spec.name, True)
            operator_root.add_child(spec.name, False)

        logger.debug(f"Registered permission {spec.name} (default: {spec.default.value})")
        return permission
