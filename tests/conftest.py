"""
Pytest configuration and fixtures for plugsmith tests.

Factories here write plugin sources (folders, archives and single-file
``.fake`` manifests) into temporary category folders. Every generated plugin
gets a unique Python package name so imports never collide between tests.
"""

import logging
import uuid
import zipfile
from pathlib import Path
from typing import Callable, Iterable, Optional

import pytest
import yaml

from plugsmith.plugins.loaders import FolderSourceLoader, PyzSourceLoader, ZipSourceLoader
from plugsmith.plugins.loaders.base import SourceLoader
from plugsmith.plugins.manager import PluginManager
from plugsmith.plugins.manifest import parse_manifest

PLUGIN_SOURCE = """
from plugsmith.plugins.base import Plugin


class Main(Plugin):
    pass
"""


def unique_package(name: str) -> str:
    slug = "".join(c if c.isalnum() else "_" for c in name.lower())
    return f"plug_{slug}_{uuid.uuid4().hex[:10]}"


def manifest_yaml(
    name: str,
    main: str,
    depend: Iterable[str] = (),
    softdepend: Iterable[str] = (),
    loadbefore: Iterable[str] = (),
    **extra,
) -> str:
    data = {"name": name, "version": "1.0.0", "main": main}
    if depend:
        data["depend"] = list(depend)
    if softdepend:
        data["softdepend"] = list(softdepend)
    if loadbefore:
        data["loadbefore"] = list(loadbefore)
    data.update(extra)
    return yaml.safe_dump(data)


class FakeSourceLoader(SourceLoader):
    """
    Loader for ``<anything>.fake`` files that contain just a manifest.

    Activation registers a trivial ``Main`` plugin class under the module
    named by the manifest's ``main``.
    """

    extension = ".fake"

    def can_handle(self, path: Path) -> bool:
        return path.is_file() and path.suffix == self.extension

    def read_descriptor(self, path: Path):
        return parse_manifest(path.read_text(), str(path))

    def activate(self, path: Path) -> None:
        descriptor = self.read_descriptor(path)
        module_name = descriptor.main.rsplit(".", 1)[0]
        self.module_host.register_source(
            module_name, PLUGIN_SOURCE.encode(), origin=f"{path}/{module_name}.py"
        )


@pytest.fixture(autouse=True)
def reset_plugsmith_logger():
    """Undo setup_logging() so caplog keeps seeing plugsmith records."""
    yield
    logger = logging.getLogger("plugsmith")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def fake_loader_class():
    """The loader class for ``.fake`` manifest-only sources."""
    return FakeSourceLoader


@pytest.fixture
def category(tmp_path) -> Path:
    """An empty category folder."""
    path = tmp_path / "plugins" / "general"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def fake_plugin() -> Callable[..., Path]:
    """Write ``<name>.fake`` into a category folder."""

    def _make(category: Path, name: str, filename: Optional[str] = None, **kwargs) -> Path:
        main = f"{unique_package(name)}.Main"
        path = category / (filename or f"{name}.fake")
        path.write_text(manifest_yaml(name, main, **kwargs))
        return path

    return _make


@pytest.fixture
def folder_plugin() -> Callable[..., Path]:
    """Write a folder plugin (plugin.yml + src/<package>/__init__.py)."""

    def _make(
        category: Path,
        name: str,
        source: str = PLUGIN_SOURCE,
        dirname: Optional[str] = None,
        main_attr: str = "Main",
        resources: Optional[dict] = None,
        **kwargs,
    ) -> Path:
        package = unique_package(name)
        plugin_dir = category / (dirname or name)
        (plugin_dir / "src" / package).mkdir(parents=True)
        (plugin_dir / "src" / package / "__init__.py").write_text(source)
        (plugin_dir / "plugin.yml").write_text(
            manifest_yaml(name, f"{package}.{main_attr}", **kwargs)
        )
        for resource, content in (resources or {}).items():
            target = plugin_dir / "resources" / resource
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        return plugin_dir

    return _make


@pytest.fixture
def archive_plugin() -> Callable[..., Path]:
    """Write a ``.zip`` (or ``.pyz``) plugin archive."""

    def _make(
        category: Path,
        name: str,
        suffix: str = ".zip",
        source: str = PLUGIN_SOURCE,
        modules: Optional[dict] = None,
        resources: Optional[dict] = None,
        **kwargs,
    ) -> Path:
        package = unique_package(name)
        path = category / f"{name}{suffix}"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("plugin.yml", manifest_yaml(name, f"{package}.Main", **kwargs))
            zf.writestr(f"src/{package}/__init__.py", source)
            for module, module_source in (modules or {}).items():
                zf.writestr(f"src/{package}/{module}.py", module_source)
            for resource, content in (resources or {}).items():
                zf.writestr(f"resources/{resource}", content)
        return path

    return _make


@pytest.fixture
def make_manager(tmp_path):
    """
    Build plugin managers with the built-in loaders plus the fake loader.

    Managers are closed after the test.
    """
    managers = []

    def _make(seed: int = 0, **kwargs) -> PluginManager:
        kwargs.setdefault("data_dir", tmp_path / "plugin_data")
        manager = PluginManager(seed=seed, **kwargs)
        for loader_class in (
            FakeSourceLoader,
            FolderSourceLoader,
            PyzSourceLoader,
            ZipSourceLoader,
        ):
            manager.register_loader(loader_class(manager.module_host, manager.registry))
        managers.append(manager)
        return manager

    yield _make

    for manager in managers:
        manager.close()


@pytest.fixture
def manager(make_manager) -> PluginManager:
    """A plugin manager with a fixed scan seed."""
    return make_manager()
