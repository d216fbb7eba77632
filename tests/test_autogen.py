"""Tests for the specs generated from project manifests."""

import pytest

from specengine.models import SpecParseError, SpecSource
from specengine.spec.autogen import (
    cargo_spec,
    compose_spec,
    find_project_root,
    generate_project_specs,
    justfile_spec,
    makefile_spec,
    package_json_spec,
)

MAKEFILE = """\
VAR := 1
OTHER ?= 2
.PHONY: build test

build:
\tgo build ./...

test: build
\tgo test ./...

build: extra
"""


class TestManifests:
    """Tests for the per-manifest builders."""

    def test_makefile_targets(self):
        """Test targets become subcommands, variables and special targets do not."""
        spec = makefile_spec(MAKEFILE)
        assert spec is not None
        assert spec.name == "make"
        assert spec.source is SpecSource.PROJECT_AUTO
        assert [sub.name for sub in spec.subcommands] == ["build", "test"]
        assert spec.option_by_flag("-j") is not None

    def test_makefile_without_targets(self):
        """Test a Makefile with only variables gives no spec."""
        assert makefile_spec("CC = gcc\n") is None

    def test_package_json_npm(self):
        """Test npm scripts live under `npm run`."""
        spec = package_json_spec('{"scripts": {"dev": "vite", "test": "vitest"}}')
        assert spec is not None
        assert spec.name == "npm"
        run = spec.find_subcommand("run-script")
        assert run is not None and run.name == "run"
        assert [(sub.name, sub.description) for sub in run.subcommands] == [("dev", "vite"), ("test", "vitest")]

    def test_package_json_pnpm(self):
        """Test other package managers run scripts directly."""
        spec = package_json_spec('{"scripts": {"dev": "vite"}}', "pnpm")
        assert spec is not None
        assert spec.name == "pnpm"
        assert [sub.name for sub in spec.subcommands] == ["dev"]

    def test_package_json_without_scripts(self):
        """Test a manifest without scripts gives no spec."""
        assert package_json_spec('{"name": "x"}') is None

    def test_package_json_invalid(self):
        """Test malformed JSON raises SpecParseError."""
        with pytest.raises(SpecParseError, match="invalid JSON"):
            package_json_spec("{not json")

    def test_cargo(self):
        """Test workspace and binary options."""
        spec = cargo_spec('[workspace]\nmembers = ["a"]\n\n[[bin]]\nname = "cli"\n')
        build = spec.find_subcommand("b")
        assert build is not None and build.option_by_flag("--workspace") is not None
        run = spec.find_subcommand("run")
        assert run is not None
        assert run.option_by_flag("--bin").suggestions == ("cli",)

    def test_cargo_plain_package(self):
        """Test a single package has no workspace option."""
        spec = cargo_spec('[package]\nname = "x"\n')
        build = spec.find_subcommand("build")
        assert build is not None and build.options == ()

    def test_compose_services(self):
        """Test services become argument suggestions."""
        content = "services:\n  web:\n    image: nginx\n  # comment\n  db:\n    image: postgres\nvolumes:\n  data:\n"
        spec = compose_spec(content)
        compose = spec.find_subcommand("compose")
        assert compose is not None
        up = compose.find_subcommand("up")
        assert up is not None
        assert up.args[0].suggestions == ("web", "db")
        assert up.args[0].variadic

    def test_justfile(self):
        """Test recipes and their aliases."""
        content = "set shell := [\"bash\"]\nalias b := build\n\nbuild:\n  cargo build\n\ntest *args:\n  cargo test {{args}}\n@quiet:\n  true\n"
        spec = justfile_spec(content)
        assert spec is not None
        assert [sub.name for sub in spec.subcommands] == ["build", "test", "quiet"]
        assert spec.find_subcommand("b") is spec.find_subcommand("build")


class TestProjectRoot:
    """Tests for find_project_root."""

    def test_git_root(self, tmp_path):
        """Test the closest .git ancestor wins."""
        (tmp_path / ".git").mkdir()
        nested = tmp_path / "src" / "pkg"
        nested.mkdir(parents=True)
        (tmp_path / "src" / "Makefile").write_text("all:\n")
        assert find_project_root(nested) == tmp_path.resolve()

    def test_manifest_root(self, tmp_path):
        """Test a manifest marks the root when there is no repository."""
        (tmp_path / "package.json").write_text("{}")
        nested = tmp_path / "lib"
        nested.mkdir()
        assert find_project_root(nested) == tmp_path.resolve()


class TestGenerateProjectSpecs:
    """Tests for generate_project_specs."""

    @pytest.mark.asyncio
    async def test_every_manifest(self, tmp_path):
        """Test each manifest contributes its spec."""
        (tmp_path / "Makefile").write_text("build:\n\ttrue\n")
        (tmp_path / "package.json").write_text('{"scripts": {"dev": "vite"}}')
        (tmp_path / "pnpm-lock.yaml").write_text("")
        (tmp_path / "justfile").write_text("fmt:\n  true\n")
        specs = await generate_project_specs(tmp_path)
        assert [spec.name for spec in specs] == ["make", "pnpm", "just"]
        assert all(spec.source is SpecSource.PROJECT_AUTO for spec in specs)

    @pytest.mark.asyncio
    async def test_broken_manifest_skipped(self, tmp_path, test_logger):
        """Test a malformed manifest does not hide the others."""
        (tmp_path / "package.json").write_text("{oops")
        (tmp_path / "Makefile").write_text("build:\n\ttrue\n")
        specs = await generate_project_specs(tmp_path, test_logger)
        assert [spec.name for spec in specs] == ["make"]

    @pytest.mark.asyncio
    async def test_empty_directory(self, tmp_path):
        """Test a directory without manifests."""
        assert await generate_project_specs(tmp_path) == []
