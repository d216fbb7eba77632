"""Engine settings: a dict with typed accessors and schema defaults."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import logging

    from .validation import ConfigItems

__all__ = ["BOOL_FALSE_STRINGS", "BOOL_STRINGS", "BOOL_TRUE_STRINGS", "Configuration", "coerce_to_bool"]

ConfigValueType = float | bool | str | list | dict

BOOL_TRUE_STRINGS = frozenset({"true", "yes", "on", "1", "enabled"})
BOOL_FALSE_STRINGS = frozenset({"false", "no", "off", "0", "disabled"})
BOOL_STRINGS = BOOL_TRUE_STRINGS | BOOL_FALSE_STRINGS


def coerce_to_bool(value: ConfigValueType | None, default: bool = False) -> bool:
    """Read loosely typed booleans.

    Strings are true unless empty or one of BOOL_FALSE_STRINGS, None gives `default`.
    """
    if value is None:
        return default
    if isinstance(value, str):
        value = value.strip().lower()
        return bool(value) and value not in BOOL_FALSE_STRINGS
    return bool(value)


class Configuration(dict):
    """The `[specs]` settings.

    Missing keys fall back to the schema defaults, then to the accessor's
    `default`. Values of the wrong type are logged and replaced by `default`.

    Args:
        logger: Logger used to report invalid values
        schema: Field definitions providing the defaults
    """

    def __init__(
        self,
        *args: Any,  # noqa: ANN401
        logger: logging.Logger,
        schema: ConfigItems | None = None,
        **kwargs: Any,  # noqa: ANN401
    ):
        super().__init__(*args, **kwargs)
        self.log = logger
        self._defaults: dict[str, ConfigValueType] = {}
        if schema:
            self.set_schema(schema)

    def set_schema(self, schema: ConfigItems) -> None:
        """Take the defaults from `schema`."""
        self._defaults = {field.name: field.default for field in schema if field.default is not None}

    def get(self, name: str, default: ConfigValueType | None = None) -> ConfigValueType | None:  # type: ignore[override]
        if name in self:
            return self[name]
        return self._defaults.get(name, default)

    def _convert(self, name: str, kind: type, default: Any) -> Any:  # noqa: ANN401
        value = self.get(name)
        if value is None:
            return default
        try:
            return kind(value)
        except (ValueError, TypeError):
            self.log.warning("Invalid %s value for %s: %s", kind.__name__, name, value)
            return default

    def get_bool(self, name: str, default: bool = False) -> bool:
        return coerce_to_bool(self.get(name), default)

    def get_int(self, name: str, default: int = 0) -> int:
        return self._convert(name, int, default)

    def get_float(self, name: str, default: float = 0.0) -> float:
        return self._convert(name, float, default)

    def get_seconds(self, name: str, default: float = 0.0) -> float:
        """Read a `*_ms` setting as seconds."""
        return self._convert(name, float, default * 1000) / 1000

    def get_str(self, name: str, default: str = "") -> str:
        value = self.get(name)
        return default if value is None else str(value)

    def get_path(self, name: str, default: Path) -> Path:
        """Read a filesystem path, expanding `~`."""
        value = self.get(name)
        return Path(str(value)).expanduser() if value else default

    def get_str_list(self, name: str) -> list[str]:
        """Read a list of strings, a single string being a one item list."""
        value = self.get(name)
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if isinstance(value, list):
            return [str(item) for item in value]
        self.log.warning("Invalid list value for %s: %s", name, value)
        return []
