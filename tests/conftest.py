" generic fixtures "
import logging
from pathlib import Path

import pytest

from specengine.config import Configuration
from specengine.config_loader import ENGINE_CONFIG_SCHEMA
from specengine.models import SpecSource
from specengine.spec.parsing import parse_spec_text

GIT_SPEC = """
name = "git"
description = "Version control"
aliases = ["g"]

[[options]]
short = "-C"
description = "Run as if started in path"
template = "directories"

[[subcommands]]
name = "checkout"
aliases = ["co"]
description = "Switch branches"

[[subcommands.options]]
short = "-b"
description = "Create a branch"
takes_arg = true

[[subcommands.args]]
name = "branch"
generator = { command = "git branch --no-color", strip_prefix = "*" }

[[subcommands]]
name = "cherry-pick"
description = "Apply commits"

[[subcommands]]
name = "commit"
description = "Record changes"

[[subcommands.options]]
short = "-m"
long = "--message"
takes_arg = true
description = "Commit message"

[[subcommands.options]]
long = "--amend"
description = "Amend the previous commit"
exclusive_with = ["--fixup"]

[[subcommands.options]]
long = "--fixup"
takes_arg = true
description = "Fixup commit"

[[subcommands]]
name = "add"

[[subcommands.args]]
name = "paths"
variadic = true
template = "file_paths"

[[subcommands]]
name = "stash"

[[subcommands.subcommands]]
name = "pop"

[[subcommands.subcommands]]
name = "list"
"""

SUDO_SPEC = """
name = "sudo"
recursive = true

[[options]]
short = "-u"
long = "--user"
takes_arg = true
description = "Run as user"

[[options]]
short = "-E"
description = "Preserve environment"
"""

OUTPUT_SPEC = """
name = "tool"

[[options]]
short = "-o"
long = "--output"
takes_arg = true
description = "Output file"
template = "file_paths"

[[options]]
short = "-q"
long = "--quiet"
description = "Less output"
exclusive_with = ["--verbose"]

[[options]]
long = "--verbose"
description = "More output"

[[args]]
name = "format"
suggestions = ["json", "yaml"]
"""


def pytest_configure():
    "Runs once before all"
    from specengine.logging_setup import init_logger

    init_logger("/dev/null", force_debug=True)


@pytest.fixture
def test_logger():
    "A quiet logger"
    logger = logging.getLogger("specengine.tests")
    logger.addHandler(logging.NullHandler())
    logger.propagate = False
    return logger


@pytest.fixture
def git_spec():
    "Spec of a small git"
    return parse_spec_text(GIT_SPEC, "git.toml", SpecSource.USER)


@pytest.fixture
def sudo_spec():
    "Spec of a recursive wrapper"
    return parse_spec_text(SUDO_SPEC, "sudo.toml", SpecSource.USER)


@pytest.fixture
def output_spec():
    "Spec with grouped and exclusive options"
    return parse_spec_text(OUTPUT_SPEC, "tool.toml", SpecSource.USER)


@pytest.fixture
def specs(git_spec, sudo_spec, output_spec):
    "Lookup table by name and alias"
    table = {}
    for spec in (git_spec, sudo_spec, output_spec):
        for name in spec.all_names:
            table[name] = spec
    return table


@pytest.fixture
def lookup(specs):
    "Spec lookup coroutine for the resolver"

    async def _lookup(command):
        return specs.get(command)

    return _lookup


@pytest.fixture
def make_config(tmp_path: Path, test_logger):
    "Build an isolated configuration (spec directories under tmp_path)"

    def _make(**overrides):
        values = {
            "user_specs_dir": str(tmp_path / "user_specs"),
            "discovered_specs_dir": str(tmp_path / "discovered"),
            "completions_dir": str(tmp_path / "completions"),
            "bulk_delay_ms": 0,
        }
        values.update(overrides)
        return Configuration(values, logger=test_logger, schema=ENGINE_CONFIG_SCHEMA)

    return _make
