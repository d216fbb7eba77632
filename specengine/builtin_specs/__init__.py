"""Specs shipped with specengine (one TOML file per command)."""
