"""Tests for plugin discovery and triage."""

import logging
import random
from pathlib import Path
from unittest.mock import Mock

import pytest

from plugsmith.exceptions import DuplicatePluginError, IncompatibleApiError, ManifestParseError
from plugsmith.plugins.graylist import Graylist, GraylistMode
from plugsmith.plugins.manifest import PluginDescriptor
from plugsmith.plugins.module_host import ModuleHost
from plugsmith.plugins.registry import PluginRegistry
from plugsmith.plugins.triage import CandidateEntry, TriageBuilder, TriageSet


def entry(name: str, **fields) -> CandidateEntry:
    descriptor = PluginDescriptor(name=name, version="1.0", main=f"pkg_{name.lower()}.Main", **fields)
    return CandidateEntry(Path(f"/plugins/{name}"), Mock(), descriptor)


@pytest.fixture
def loaders(fake_loader_class):
    host = ModuleHost()
    loader = fake_loader_class(host)
    yield {loader.loader_id: loader}
    host.close()


class TestTriageSet:
    """Test TriageSet bookkeeping."""

    def test_add_records_edges(self):
        triage = TriageSet()

        triage.add(entry("Economy", depend=["Core"], softdepend=["Chat"]))

        assert triage.is_queued("Economy")
        assert len(triage) == 1
        assert triage.hard_deps["Economy"] == {"Core"}
        assert triage.soft_deps["Economy"] == {"Chat"}

    def test_loadbefore_becomes_soft_edge_on_target(self):
        triage = TriageSet()

        triage.add(entry("Early", loadbefore=["Late", "Missing"]))

        assert triage.soft_deps["Late"] == {"Early"}
        assert triage.soft_deps["Missing"] == {"Early"}
        assert not triage.is_queued("Missing")

    def test_existing_loadbefore_edges_are_kept(self):
        triage = TriageSet()
        triage.add(entry("Early", loadbefore=["Late"]))

        triage.add(entry("Late", softdepend=["Chat"]))

        assert triage.soft_deps["Late"] == {"Early", "Chat"}


class TestTriageBuilder:
    """Test TriageBuilder functionality."""

    def test_list_sources_is_seeded(self, category):
        for index in range(10):
            (category / f"plugin{index}.fake").write_text("")
        first = TriageBuilder(PluginRegistry(), rng=random.Random(3)).list_sources(category)
        second = TriageBuilder(PluginRegistry(), rng=random.Random(3)).list_sources(category)

        assert first == second
        assert sorted(first) == sorted(category.iterdir())

    def test_list_sources_single_file_and_missing(self, category):
        path = category / "one.fake"
        path.write_text("")
        builder = TriageBuilder(PluginRegistry())

        assert builder.list_sources(path) == [path.resolve()]
        assert builder.list_sources(category / "missing") == []

    def test_scan(self, category, fake_plugin, loaders):
        fake_plugin(category, "Economy", depend=["Core"])
        fake_plugin(category, "Core")
        (category / "notes.txt").write_text("ignored")
        triage, errors = TriageSet(), []

        TriageBuilder(PluginRegistry()).scan([category], triage, loaders, errors)

        assert set(triage.plugins) == {"Economy", "Core"}
        assert triage.hard_deps["Economy"] == {"Core"}
        assert errors == []

    def test_duplicate_of_registered_plugin(self, category, fake_plugin, loaders):
        registry = PluginRegistry()
        registry.set_plugin("Economy", Mock())
        fake_plugin(category, "Economy")
        triage, errors = TriageSet(), []

        TriageBuilder(registry).scan([category], triage, loaders, errors)

        assert len(triage) == 0
        assert isinstance(errors[0], DuplicatePluginError)

    def test_graylist_rejections(self, category, fake_plugin, loaders):
        fake_plugin(category, "Economy")
        fake_plugin(category, "Chat")
        graylist = Graylist(GraylistMode.BLACKLIST, ["Chat"])
        triage, errors, rejected = TriageSet(), [], []

        TriageBuilder(PluginRegistry(), graylist=graylist).scan(
            [category], triage, loaders, errors, rejected
        )

        assert set(triage.plugins) == {"Economy"}
        assert rejected == ["Chat"]
        assert errors == []

    def test_api_incompatible(self, category, fake_plugin, loaders):
        fake_plugin(category, "Modern", api=["2.0.0"])
        fake_plugin(category, "Current", api=["1.0.0"])
        triage, errors = TriageSet(), []

        TriageBuilder(PluginRegistry(), api_version="1.4.0").scan(
            [category], triage, loaders, errors
        )

        assert set(triage.plugins) == {"Current"}
        assert isinstance(errors[0], IncompatibleApiError)
        assert errors[0].plugin == "Modern"

    def test_malformed_manifest(self, category, loaders):
        (category / "broken.fake").write_text("name: [unclosed\n")
        triage, errors = TriageSet(), []

        TriageBuilder(PluginRegistry()).scan([category], triage, loaders, errors)

        assert len(triage) == 0
        assert isinstance(errors[0], ManifestParseError)

    def test_spaces_in_name_warns(self, category, fake_plugin, loaders, caplog):
        fake_plugin(category, "My Plugin", filename="my-plugin.fake")
        triage, errors = TriageSet(), []

        with caplog.at_level(logging.WARNING, logger="plugsmith"):
            TriageBuilder(PluginRegistry()).scan([category], triage, loaders, errors)

        assert triage.is_queued("My Plugin")
        assert "contains spaces" in caplog.text
