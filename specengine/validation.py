"""Schema validation shared by the engine configuration and spec files.

Schemas are declared as ConfigItems of ConfigField. The validator checks
required fields, types (including list item types), choices and custom
validators, and reports unknown keys with a "did you mean" suggestion.
"""

import difflib
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from .config import BOOL_STRINGS

__all__ = [
    "ConfigField",
    "ConfigItems",
    "ConfigValidator",
    "format_config_error",
]


@dataclass
class ConfigField:
    """Describes an expected field.

    Attributes:
        name: The key name
        field_type: Expected type (str, int, float, bool, list, dict) or tuple of types for union
        required: Whether the field is required
        default: Default value if not provided
        description: Human-readable description
        choices: List of valid values for enum-like fields
        validator: Custom validator function returning list of error messages
        item_type: For lists, the expected type of every item
    """

    name: str
    field_type: type | tuple[type, ...] = str
    required: bool = False
    default: Any = None
    description: str = ""
    choices: list | None = None
    validator: Callable[[Any], list[str]] | None = None
    item_type: type | None = None

    @property
    def type_name(self) -> str:
        """Return human-readable type name (e.g., 'str', 'list[str]')."""
        if isinstance(self.field_type, tuple):
            return " or ".join(typ.__name__ for typ in self.field_type)
        if self.field_type is list and self.item_type is not None:
            return f"list[{self.item_type.__name__}]"
        return self.field_type.__name__


class ConfigItems(list):
    """The fields of a section, looked up by name."""

    def __init__(self, *args: ConfigField) -> None:
        super().__init__(args)
        self._by_name = {item.name: item for item in args}

    def get(self, name: str) -> ConfigField | None:
        return self._by_name.get(name)


def _find_similar_key(unknown_key: str, known_keys: list[str]) -> str | None:
    """Closest known key, for typo hints."""
    matches = difflib.get_close_matches(unknown_key, known_keys, n=1)
    return matches[0] if matches else None


def format_config_error(section: str, field: str, message: str, suggestion: str = "") -> str:
    """Build a `[section] 'field': message -> suggestion` line."""
    msg = f"[{section}] '{field}': {message}"
    if suggestion:
        msg += f" -> {suggestion}"
    return msg


class ConfigValidator:
    """Checks a mapping (a config section or a spec table) against a schema.

    Args:
        config: The mapping to check
        section: Prefix of the messages (section name or document location)
        logger: Receives the unknown key warnings
    """

    def __init__(self, config: dict, section: str, logger: logging.Logger) -> None:
        self.config = config
        self.section = section
        self.log = logger

    def validate(self, schema: ConfigItems) -> list[str]:
        """Return the problems found, an empty list meaning valid."""
        errors: list[str] = []
        for field_def in schema:
            errors.extend(self._field_errors(field_def, self.config.get(field_def.name)))
        return errors

    def _field_errors(self, field_def: ConfigField, value: Any) -> Iterator[str]:  # noqa: ANN401
        name = field_def.name
        if value is None:
            if field_def.required:
                yield format_config_error(self.section, name, "Missing required field", f"Add {name} = ...")
            return
        if not any(self._matches(typ, value) for typ in _types(field_def.field_type)):
            yield format_config_error(self.section, name, f"Expected {field_def.type_name}, got {type(value).__name__}")
            return
        if field_def.item_type is not None and isinstance(value, list):
            for index, item in enumerate(value):
                if not self._matches(field_def.item_type, item):
                    got = type(item).__name__
                    yield format_config_error(self.section, f"{name}[{index}]", f"Expected {field_def.item_type.__name__}, got {got}")
                    return
        if field_def.choices is not None and value not in field_def.choices:
            valid = ", ".join(repr(choice) for choice in field_def.choices)
            yield format_config_error(self.section, name, f"Invalid value {value!r}", f"Valid options: {valid}")
            return
        if field_def.validator:
            for error in field_def.validator(value):
                yield format_config_error(self.section, name, error)

    @staticmethod
    def _matches(expected: type, value: Any) -> bool:  # noqa: ANN401
        if expected is bool:
            return isinstance(value, bool) or (isinstance(value, str) and value.lower() in BOOL_STRINGS)
        if isinstance(value, bool):
            # bool is a subclass of int
            return False
        if expected is float:
            return isinstance(value, (int, float))
        return isinstance(value, expected)

    def warn_unknown_keys(self, schema: ConfigItems) -> list[str]:
        """Log and return a warning per key the schema does not declare."""
        known_keys = [field_def.name for field_def in schema]
        warnings = []
        for key in self.config:
            if key in known_keys:
                continue
            similar = _find_similar_key(key, known_keys)
            hint = f"(did you mean '{similar}'?)" if similar else "- will be ignored"
            msg = f"[{self.section}] Unknown option '{key}' {hint}"
            self.log.warning(msg)
            warnings.append(msg)
        return warnings


def _types(field_type: type | tuple[type, ...]) -> tuple[type, ...]:
    return field_type if isinstance(field_type, tuple) else (field_type,)
