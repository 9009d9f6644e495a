"""
Plugin system for loading extensions from heterogeneous sources.

This package provides infrastructure for discovering plugins in category
folders (directories, ``.pyz`` and ``.zip`` archives), ordering them by their
declared dependencies, and activating them.
"""

from plugsmith.plugins.base import Plugin
from plugsmith.plugins.graylist import Graylist, GraylistMode, load_graylist
from plugsmith.plugins.loaders import (
    FolderSourceLoader,
    PyzSourceLoader,
    SourceLoader,
    ZipSourceLoader,
)
from plugsmith.plugins.manager import LoadResult, PluginManager
from plugsmith.plugins.manifest import PermissionDefault, PluginDescriptor, parse_manifest
from plugsmith.plugins.module_host import ModuleHost
from plugsmith.plugins.registry import PermissionRegistry, PluginRegistry

__all__ = [
    "FolderSourceLoader",
    "Graylist",
    "GraylistMode",
    "LoadResult",
    "ModuleHost",
    "PermissionDefault",
    "PermissionRegistry",
    "Plugin",
    "PluginDescriptor",
    "PluginManager",
    "PluginRegistry",
    "PyzSourceLoader",
    "SourceLoader",
    "ZipSourceLoader",
    "load_graylist",
    "parse_manifest",
]
