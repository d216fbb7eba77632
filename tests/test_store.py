"""Tests for the tiered spec store."""

import asyncio

import pytest

from specengine.models import SpecSource
from specengine.spec.models import CommandSpec
from specengine.store import SpecStore

MAKE_SPEC = """
name = "make"
description = "Hand written make"

[[subcommands]]
name = "release"
"""


@pytest.fixture
def project(tmp_path):
    "A project with a Makefile"
    root = tmp_path / "project"
    (root / ".git").mkdir(parents=True)
    (root / "Makefile").write_text("build:\n\ttrue\ntest:\n\ttrue\n")
    return root


@pytest.fixture
def user_specs(tmp_path):
    "The user spec directory"
    directory = tmp_path / "user_specs"
    directory.mkdir()
    return directory


def _store(make_config, test_logger, **overrides):
    return SpecStore(make_config(**overrides), test_logger)


class TestTiers:
    """Tests for the priority between tiers."""

    @pytest.mark.asyncio
    async def test_project_auto(self, make_config, test_logger, project):
        """Test manifests produce a spec when nobody wrote one."""
        store = _store(make_config, test_logger)
        spec = await store.lookup("make", project)
        assert spec is not None
        assert spec.source is SpecSource.PROJECT_AUTO
        assert [sub.name for sub in spec.subcommands] == ["build", "test"]

    @pytest.mark.asyncio
    async def test_user_beats_project_auto(self, make_config, test_logger, project, user_specs):
        """Test a user spec wins over a generated one."""
        (user_specs / "make.toml").write_text(MAKE_SPEC)
        store = _store(make_config, test_logger)
        spec = await store.lookup("make", project)
        assert spec is not None
        assert spec.source is SpecSource.USER
        assert [sub.name for sub in spec.subcommands] == ["release"]

    @pytest.mark.asyncio
    async def test_project_user_beats_user(self, make_config, test_logger, project, user_specs):
        """Test the project spec directory comes first."""
        (user_specs / "make.toml").write_text(MAKE_SPEC)
        project_specs = project / ".specengine" / "specs"
        project_specs.mkdir(parents=True)
        (project_specs / "make.toml").write_text('name = "make"\n[[subcommands]]\nname = "deploy-docs"\n')
        nested = project / "src"
        nested.mkdir()
        store = _store(make_config, test_logger)
        spec = await store.lookup("make", nested)
        assert spec is not None
        assert spec.source is SpecSource.PROJECT_USER
        assert spec.subcommands[0].name == "deploy-docs"

    @pytest.mark.asyncio
    async def test_builtin(self, make_config, test_logger, tmp_path):
        """Test packaged specs are the last resort."""
        store = _store(make_config, test_logger)
        spec = await store.lookup("git", tmp_path)
        assert spec is not None
        assert spec.source is SpecSource.BUILTIN

    @pytest.mark.asyncio
    async def test_alias(self, make_config, test_logger, tmp_path, user_specs):
        """Test a spec is found through an alias declared in its file."""
        (user_specs / "kubectl.toml").write_text('name = "kubectl"\naliases = ["k"]\n')
        store = _store(make_config, test_logger)
        spec = await store.lookup("k", tmp_path)
        assert spec is not None
        assert spec.name == "kubectl"

    @pytest.mark.asyncio
    async def test_broken_user_spec_falls_through(self, make_config, test_logger, tmp_path, user_specs):
        """Test an invalid user spec is skipped for the next tier."""
        (user_specs / "git.toml").write_text("name = ")
        store = _store(make_config, test_logger)
        spec = await store.lookup("git", tmp_path)
        assert spec is not None
        assert spec.source is SpecSource.BUILTIN

    @pytest.mark.asyncio
    async def test_unknown(self, make_config, test_logger, tmp_path):
        """Test unknown commands have no spec."""
        store = _store(make_config, test_logger)
        assert await store.lookup("frobnicate", tmp_path) is None

    @pytest.mark.asyncio
    async def test_disabled(self, make_config, test_logger, tmp_path):
        """Test nothing is found when disabled."""
        store = _store(make_config, test_logger, enabled=False)
        assert await store.lookup("git", tmp_path) is None

    @pytest.mark.asyncio
    async def test_auto_generate_off(self, make_config, test_logger, project):
        """Test manifests are ignored when auto generation is off."""
        store = _store(make_config, test_logger, auto_generate=False)
        assert await store.lookup("make", project) is None


class TestCaching:
    """Tests for the tier caches."""

    @pytest.mark.asyncio
    async def test_concurrent_lookups_generate_once(self, make_config, test_logger, project, mocker):
        """Test simultaneous lookups share one project scan."""
        generate = mocker.patch(
            "specengine.store.generate_project_specs",
            return_value=[CommandSpec(name="make", source=SpecSource.PROJECT_AUTO)],
        )
        store = _store(make_config, test_logger)
        results = await asyncio.gather(*(store.lookup("make", project) for _ in range(5)))
        assert all(spec is not None and spec.name == "make" for spec in results)
        assert generate.await_count == 1

    @pytest.mark.asyncio
    async def test_cached_until_cleared(self, make_config, test_logger, tmp_path, user_specs):
        """Test edits are seen after clear_cache."""
        (user_specs / "hello.toml").write_text('name = "hello"\ndescription = "v1"\n')
        store = _store(make_config, test_logger)
        assert (await store.lookup("hello", tmp_path)).description == "v1"
        (user_specs / "hello.toml").write_text('name = "hello"\ndescription = "v2"\n')
        assert (await store.lookup("hello", tmp_path)).description == "v1"
        store.clear_cache()
        assert (await store.lookup("hello", tmp_path)).description == "v2"

    @pytest.mark.asyncio
    async def test_invalidate(self, make_config, test_logger, tmp_path, user_specs):
        """Test a missing spec is found after invalidation."""
        store = _store(make_config, test_logger)
        assert await store.lookup("hello", tmp_path) is None
        (user_specs / "hello.toml").write_text('name = "hello"\n')
        store.invalidate("hello")
        assert await store.lookup("hello", tmp_path) is not None

    @pytest.mark.asyncio
    async def test_all_command_names(self, make_config, test_logger, project, user_specs):
        """Test every tier contributes names."""
        (user_specs / "kubectl.toml").write_text('name = "kubectl"\naliases = ["k"]\n')
        store = _store(make_config, test_logger)
        names = await store.all_command_names(project)
        assert {"git", "sudo", "kubectl", "k", "make"} <= set(names)
        assert names == sorted(names)


class TestDiscovery:
    """Tests for the discovered tier."""

    @pytest.mark.asyncio
    async def test_background_discovery(self, make_config, test_logger, tmp_path, mocker):
        """Test an unknown command is discovered in the background, then served."""
        mocker.patch("specengine.store.can_discover", return_value=True)
        discover = mocker.patch(
            "specengine.store.discover_spec",
            return_value=CommandSpec(name="demo", source=SpecSource.DISCOVERED),
        )
        store = _store(make_config, test_logger, discover_from_help=True)
        assert await store.lookup("demo", tmp_path) is None
        await asyncio.gather(*store._tasks)
        spec = await store.lookup("demo", tmp_path)
        assert spec is not None
        assert spec.source is SpecSource.DISCOVERED
        assert discover.await_count == 1
        assert (tmp_path / "discovered" / "demo.json").exists()

    @pytest.mark.asyncio
    async def test_discovery_off_by_default(self, make_config, test_logger, tmp_path, mocker):
        """Test nothing is queried unless enabled."""
        discover = mocker.patch("specengine.store.discover_spec")
        store = _store(make_config, test_logger)
        assert await store.lookup("demo", tmp_path) is None
        assert not store._tasks
        discover.assert_not_called()

    @pytest.mark.asyncio
    async def test_persisted_discovery(self, make_config, test_logger, tmp_path):
        """Test a saved discovery is served by a new store."""
        store = _store(make_config, test_logger)
        await store.discoveries.save(CommandSpec(name="demo", source=SpecSource.DISCOVERED))
        spec = await _store(make_config, test_logger).lookup("demo", tmp_path)
        assert spec is not None
        assert spec.source is SpecSource.DISCOVERED

    @pytest.mark.asyncio
    async def test_discover_many(self, make_config, test_logger, mocker):
        """Test bulk discovery skips forbidden commands."""
        mocker.patch("specengine.store.can_discover", side_effect=lambda name, blocklist: name != "rm")
        mocker.patch(
            "specengine.store.discover_spec",
            side_effect=lambda name, logger=None: CommandSpec(name=name, source=SpecSource.DISCOVERED),
        )
        store = _store(make_config, test_logger)
        results = await store.discover_many(["tool", "rm", "other"])
        assert list(results) == ["tool", "rm", "other"]
        assert results["rm"] is None
        assert results["tool"].name == "tool"
        assert results["other"].name == "other"
