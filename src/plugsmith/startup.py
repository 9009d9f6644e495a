"""
Host startup sequence for plugins.

Builds the plugin manager from settings, registers the built-in source
loaders, loads every configured category and enables what was loaded.
"""

import logging
from pathlib import Path
from typing import Optional

from plugsmith.categories import prepare_categories
from plugsmith.config import Settings, settings as default_settings
from plugsmith.plugins.graylist import load_graylist
from plugsmith.plugins.loaders import FolderSourceLoader, PyzSourceLoader, ZipSourceLoader
from plugsmith.plugins.manager import LoadResult, PluginManager
from plugsmith.plugins.registry import PermissionRegistry, PluginRegistry

logger = logging.getLogger(__name__)


class PluginStartupError(Exception):
    """Raised when plugins could not be loaded or enabled on startup."""

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


def create_manager(
    config: Optional[Settings] = None,
    registry: Optional[PluginRegistry] = None,
    permissions: Optional[PermissionRegistry] = None,
) -> PluginManager:
    """
    Build a plugin manager with the loaders enabled in settings.

    Raises:
        GraylistFileCorruptError: If the graylist file is invalid
        DataRootConflictError: If the data root is not a directory
    """
    config = config or default_settings
    graylist = load_graylist(Path(config.graylist_file).expanduser())

    manager = PluginManager(
        registry=registry,
        permissions=permissions,
        data_dir=config.data_directory,
        graylist=graylist,
        api_version=config.host_api_version,
        seed=config.scan_seed,
    )

    loader_classes = []
    if config.loader_pyz:
        loader_classes.append(PyzSourceLoader)
    if config.loader_folder:
        loader_classes.append(FolderSourceLoader)
    if config.loader_zip:
        loader_classes.append(ZipSourceLoader)
    for loader_class in loader_classes:
        manager.register_loader(loader_class(manager.module_host, manager.registry))

    return manager


def enable_plugins(result: LoadResult) -> bool:
    """
    Enable loaded plugins in activation order.

    Returns:
        False if any plugin failed to enable
    """
    ok = True
    for name, plugin in result.plugins.items():
        try:
            plugin.set_enabled(True)
        except Exception:
            logger.exception(f"Error while enabling plugin {name}")
            ok = False
    return ok


def start_plugins(manager: PluginManager, config: Optional[Settings] = None) -> LoadResult:
    """
    Load and enable plugins from every configured category.

    Raises:
        PluginStartupError: If loading reported errors (and the settings say
                            that is fatal) or a plugin failed to enable
    """
    config = config or default_settings
    categories = prepare_categories(Path(config.plugin_root).expanduser(), config.categories)

    result = manager.load_plugins(categories.values())
    if result.errors and config.fail_on_load_errors:
        raise PluginStartupError(
            f"{result.error_count} plugin(s) failed to load",
            "Check the log above for the offending plugins, or set "
            "PLUGSMITH_FAIL_ON_LOAD_ERRORS=false to start anyway",
        )

    if not enable_plugins(result):
        raise PluginStartupError("Some plugins could not be enabled")
    return result
