"""Custom exceptions for plugsmith."""

from typing import Iterable


class PluginSystemError(Exception):
    """Base exception for all plugin system errors."""

    pass


class PluginLoadError(PluginSystemError):
    """
    Recoverable per-plugin failure.

    These are collected by the plugin manager and reported through the load
    result; they never abort a load call.
    """

    def __init__(self, plugin: str, message: str):
        self.plugin = plugin
        self.message = message
        super().__init__(f"Could not load plugin '{plugin}': {message}")


class ManifestParseError(PluginLoadError):
    """Raised when a plugin manifest exists but is malformed."""

    pass


class SourceReadError(PluginLoadError):
    """Raised when a plugin source (e.g. an archive) cannot be read."""

    pass


class DuplicatePluginError(PluginLoadError):
    """Raised when a plugin name was already discovered or is already loaded."""

    def __init__(self, plugin: str):
        super().__init__(plugin, "a plugin with this name is already registered")


class IncompatibleApiError(PluginLoadError):
    """Raised when none of the declared API versions is supported by the host."""

    pass


class UnknownDependencyError(PluginLoadError):
    """Raised when a hard dependency names a plugin that will never be loaded."""

    def __init__(self, plugin: str, missing: Iterable[str]):
        self.missing = sorted(missing)
        super().__init__(plugin, f"unknown dependency: {', '.join(self.missing)}")


class CircularDependencyError(PluginLoadError):
    """Raised for plugins left in a dependency cycle."""

    def __init__(self, plugin: str):
        super().__init__(plugin, "circular dependency detected")


class MainEntryNotFoundError(PluginLoadError):
    """Raised when the manifest's main entry cannot be resolved."""

    pass


class MainEntryWrongTypeError(PluginLoadError):
    """Raised when the main entry is not a Plugin subclass."""

    pass


class MainEntryNotInstantiableError(PluginLoadError):
    """Raised when the main entry is abstract or its construction fails."""

    pass


class DataFolderConflictError(PluginLoadError):
    """Raised when a plugin data path exists and is not a directory."""

    def __init__(self, plugin: str, path: str):
        self.path = path
        super().__init__(plugin, f"data folder {path} exists and is not a directory")


class DuplicatePermissionError(PluginLoadError):
    """Raised when a plugin declares a permission that is already registered."""

    def __init__(self, plugin: str, permission: str):
        self.permission = permission
        super().__init__(plugin, f"permission '{permission}' is already registered")


class DataRootConflictError(PluginSystemError):
    """Raised when the shared plugin data root exists and is not a directory."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Plugin data root {path} exists and is not a directory")


class ReentrancyError(PluginSystemError, RuntimeError):
    """Raised when load_plugins() is called while a load is already running."""

    pass


class GraylistFileCorruptError(PluginSystemError):
    """Raised when the graylist document cannot be trusted."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        if path:
            message = f"Failed to load {path}: {message}"
        super().__init__(message)
