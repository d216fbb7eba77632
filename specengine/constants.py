"""Shared constants for specengine."""

import os
from pathlib import Path

__all__ = [
    "BULK_BATCH_DELAY",
    "BULK_CONCURRENCY",
    "COMPLETIONS_DIR",
    "CONFIG_FILE",
    "DISCOVERED_MAX_AGE_DAYS",
    "DISCOVERED_SPECS_DIR",
    "DISCOVERY_TIMEOUT",
    "GENERATOR_CACHE_MAX_ENTRIES",
    "GENERATOR_CACHE_TTL",
    "GENERATOR_HARD_TIMEOUT",
    "GENERATOR_SOFT_TIMEOUT",
    "MAX_OUTPUT_BYTES",
    "MAX_RECURSION_DEPTH",
    "PROJECT_MANIFESTS",
    "PROJECT_ROOT_MAX_DEPTH",
    "PROJECT_SPECS_DIRNAME",
    "PROJECT_SPEC_CACHE_MAX_ENTRIES",
    "PROJECT_SPEC_TTL",
    "SANDBOX_ENV",
    "SECONDS_PER_DAY",
    "SPEC_FILE_SUFFIX",
    "SUPPORTED_SHELLS",
    "USER_SPECS_DIR",
]

# XDG locations with the usual fallbacks
_xdg_config_home = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
_xdg_cache_home = Path(os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache")
_xdg_data_home = Path(os.environ.get("XDG_DATA_HOME") or Path.home() / ".local" / "share")

CONFIG_FILE = _xdg_config_home / "specengine" / "config.toml"
USER_SPECS_DIR = _xdg_config_home / "specengine" / "specs"
DISCOVERED_SPECS_DIR = _xdg_cache_home / "specengine" / "discovered"
COMPLETIONS_DIR = _xdg_data_home / "specengine" / "completions"

# Project-local user specs live in <project root>/.specengine/specs/<command>.toml
PROJECT_SPECS_DIRNAME = Path(".specengine") / "specs"
SPEC_FILE_SUFFIX = ".toml"

# Files marking a directory as a project root (besides .git)
PROJECT_MANIFESTS = (
    "Makefile",
    "makefile",
    "GNUmakefile",
    "package.json",
    "Cargo.toml",
    "pyproject.toml",
    "docker-compose.yml",
    "docker-compose.yaml",
    "compose.yml",
    "compose.yaml",
    "justfile",
    "Justfile",
)
PROJECT_ROOT_MAX_DEPTH = 3

# Supported shells for completion file generation
SUPPORTED_SHELLS = ("zsh", "bash")

# Generator execution (seconds)
GENERATOR_SOFT_TIMEOUT = 0.5
GENERATOR_HARD_TIMEOUT = 5.0
GENERATOR_CACHE_TTL = 10.0
GENERATOR_CACHE_MAX_ENTRIES = 200
MAX_OUTPUT_BYTES = 256 * 1024

# Spec store
PROJECT_SPEC_TTL = 300.0
PROJECT_SPEC_CACHE_MAX_ENTRIES = 50
DISCOVERED_MAX_AGE_DAYS = 7.0
DISCOVERY_TIMEOUT = 2.0
SECONDS_PER_DAY = 86400

# Context resolution
MAX_RECURSION_DEPTH = 5

# Background (bulk) work
BULK_CONCURRENCY = 4
BULK_BATCH_DELAY = 0.1

# Environment overrides applied to every spawned generator or help query
SANDBOX_ENV = {
    "DISPLAY": "",
    "WAYLAND_DISPLAY": "",
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_ASKPASS": "",
    "SSH_ASKPASS": "",
    "SUDO_ASKPASS": "",
    "NO_COLOR": "1",
    "CI": "1",
    "PAGER": "cat",
}
