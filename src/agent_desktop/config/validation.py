"""Configuration validation for agent-desktop.

Warns on unknown keys and wrong value types. Never raises.
"""

from __future__ import annotations

from dataclasses import dataclass
from difflib import get_close_matches
from typing import Any, Dict, List, Optional, Set, Tuple, Type, Union

from agent_desktop.core.logging import get_logger

LOGGER = get_logger(__name__)

TypeSpec = Union[Type[Any], Tuple[Type[Any], ...]]

# Valid top-level keys and their expected types
TOP_LEVEL_KEYS: Dict[str, TypeSpec] = {
    "skip_download": bool,
    "binary_path": str,
    "bin_dir": str,
    "release": dict,
    "download": dict,
    "symlink": dict,
}

SECTION_KEYS: Dict[str, Dict[str, TypeSpec]] = {
    "release": {
        "repository": str,
        "base_url": str,
        "version": str,
    },
    "download": {
        "timeout": (int, float),
        "retries": int,
        "max_redirects": int,
    },
    "symlink": {
        "enabled": bool,
        "entry_name": str,
        "bin_dir_command": list,
    },
}


@dataclass
class ConfigValidationWarning:
    """A validation warning for configuration."""

    message: str
    source: str
    key: Optional[str] = None
    suggestion: Optional[str] = None


def validate_config(
    data: Dict[str, Any],
    source: str,
) -> List[ConfigValidationWarning]:
    """Validate a configuration dictionary.

    Args:
        data: Config dictionary to validate.
        source: Source file path for warning messages.

    Returns:
        List of validation warnings.
    """
    warnings: List[ConfigValidationWarning] = []

    if not isinstance(data, dict):
        warnings.append(ConfigValidationWarning(
            message=f"Config must be a mapping, got {type(data).__name__}",
            source=source,
        ))
        return warnings

    _check_keys(data, TOP_LEVEL_KEYS, source, prefix="", warnings=warnings)

    for section, keys in SECTION_KEYS.items():
        section_data = data.get(section)
        if isinstance(section_data, dict):
            _check_keys(section_data, keys, source, prefix=f"{section}.", warnings=warnings)

    download = data.get("download")
    if isinstance(download, dict):
        for key in ("timeout", "retries"):
            value = download.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value <= 0:
                warnings.append(ConfigValidationWarning(
                    message=f"'download.{key}' must be positive, got {value}",
                    source=source,
                    key=f"download.{key}",
                ))

    for warning in warnings:
        _log_warning(warning)
    return warnings


def _check_keys(
    data: Dict[str, Any],
    expected: Dict[str, TypeSpec],
    source: str,
    prefix: str,
    warnings: List[ConfigValidationWarning],
) -> None:
    for key, value in data.items():
        full_key = f"{prefix}{key}"
        if key not in expected:
            warnings.append(ConfigValidationWarning(
                message=f"Unknown key '{full_key}'",
                source=source,
                key=full_key,
                suggestion=_suggest_key(key, set(expected)),
            ))
            continue
        if value is None:
            continue
        expected_type = expected[key]
        # bool is an int subclass; only accept it where bool is expected
        is_bool_mismatch = isinstance(value, bool) and expected_type is not bool
        if is_bool_mismatch or not isinstance(value, expected_type):
            warnings.append(ConfigValidationWarning(
                message=f"'{full_key}' must be {_type_name(expected_type)}, got {type(value).__name__}",
                source=source,
                key=full_key,
            ))


def _type_name(expected: TypeSpec) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return {"dict": "a mapping", "list": "a list", "bool": "a boolean", "str": "a string"}.get(
        expected.__name__, expected.__name__
    )


def _suggest_key(invalid_key: str, valid_keys: Set[str]) -> Optional[str]:
    """Suggest a valid key for a potential typo.

    Args:
        invalid_key: The invalid key entered.
        valid_keys: Set of valid keys.

    Returns:
        Closest matching valid key, or None if no good match.
    """
    matches = get_close_matches(invalid_key, list(valid_keys), n=1, cutoff=0.6)
    return matches[0] if matches else None


def _log_warning(warning: ConfigValidationWarning) -> None:
    """Log a validation warning."""
    msg = f"{warning.message} in {warning.source}"
    if warning.suggestion:
        msg += f" (did you mean '{warning.suggestion}'?)"
    LOGGER.warning(msg)
