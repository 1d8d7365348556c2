"""Configuration loading and merging.

Handles loading configuration with:
- Global config file (~/.agent-desktop/config.yml, or $AGENT_DESKTOP_HOME)
- Custom config file (--config flag)
- Environment variable expansion (${VAR}) inside YAML values
- Environment variable overrides (AGENT_DESKTOP_*)
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from agent_desktop.bootstrap.paths import BIN_DIR_ENV, get_agent_desktop_home
from agent_desktop.config.models import (
    AgentDesktopConfig,
    DownloadConfig,
    ReleaseConfig,
    SymlinkConfig,
)
from agent_desktop.config.validation import validate_config
from agent_desktop.core.errors import AgentDesktopError
from agent_desktop.core.logging import get_logger

LOGGER = get_logger(__name__)

GLOBAL_CONFIG_NAMES = ["config.yml", "config.yaml"]

# Environment overrides
SKIP_DOWNLOAD_ENV = "AGENT_DESKTOP_SKIP_DOWNLOAD"
BINARY_PATH_ENV = "AGENT_DESKTOP_BINARY_PATH"
VERSION_ENV = "AGENT_DESKTOP_VERSION"
PROXY_ENVS = ["HTTPS_PROXY", "https_proxy", "HTTP_PROXY", "http_proxy"]

TRUTHY_VALUES = {"1", "true", "yes", "on"}

# Environment variable pattern: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


class ConfigError(AgentDesktopError):
    """Configuration loading or parsing error."""

    pass


def is_truthy(value: Optional[str]) -> bool:
    """Interpret an environment flag value."""
    return value is not None and value.strip().lower() in TRUTHY_VALUES


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AgentDesktopConfig:
    """Load configuration with proper precedence.

    Precedence (highest to lowest):
    1. Environment variables (AGENT_DESKTOP_*)
    2. Custom config file (config_path) OR global config file
    3. Built-in defaults

    Args:
        config_path: Optional path to a custom config file (--config flag).
        environ: Environment mapping; defaults to ``os.environ``. Components
            receive the resulting config instead of reading the environment.

    Returns:
        Merged AgentDesktopConfig instance.

    Raises:
        ConfigError: If the custom config file doesn't exist or a config
            file has parse errors.
    """
    env = dict(os.environ if environ is None else environ)
    sources: List[str] = []
    data: Dict[str, Any] = {}

    if config_path:
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        data = _load_validated(config_path, env)
        sources.append(f"custom:{config_path}")
    else:
        global_path = find_global_config(env)
        if global_path:
            data = _load_validated(global_path, env)
            sources.append(f"global:{global_path}")

    config = dict_to_config(data)
    if apply_env_overrides(config, env):
        sources.append("env")

    config._config_sources = sources
    LOGGER.debug(f"Config loaded from sources: {sources}")
    return config


def _load_validated(path: Path, env: Mapping[str, str]) -> Dict[str, Any]:
    try:
        data = load_yaml_file(path, env)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    validate_config(data, source=str(path))
    LOGGER.debug(f"Loaded config from {path}")
    return data


def find_global_config(environ: Optional[Mapping[str, str]] = None) -> Optional[Path]:
    """Find the global config file in the agent-desktop home directory.

    Returns:
        Path to the config file if it exists, None otherwise.
    """
    home = get_agent_desktop_home(environ)
    for name in GLOBAL_CONFIG_NAMES:
        config_path = home / name
        if config_path.exists():
            return config_path
    return None


def load_yaml_file(path: Path, environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Load and parse a YAML config file.

    Performs environment variable expansion on string values.

    Args:
        path: Path to YAML file.
        environ: Environment used for ``${VAR}`` expansion.

    Returns:
        Parsed dictionary.

    Raises:
        yaml.YAMLError: If YAML parsing fails.
        ConfigError: If the document is not a mapping.
    """
    with open(path, "r", encoding="utf-8") as f:
        content = f.read()

    data = yaml.safe_load(content)

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a YAML mapping, got {type(data).__name__}")

    return expand_env_vars(data, os.environ if environ is None else environ)


def expand_env_vars(data: Any, environ: Mapping[str, str]) -> Any:
    """Recursively expand ${VAR} and ${VAR:-default} in config values."""
    if isinstance(data, dict):
        return {k: expand_env_vars(v, environ) for k, v in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars(item, environ) for item in data]
    elif isinstance(data, str):
        return ENV_VAR_PATTERN.sub(lambda m: _env_var_replacer(m, environ), data)
    else:
        return data


def _env_var_replacer(match: "re.Match[str]", environ: Mapping[str, str]) -> str:
    """Replace environment variable reference with its value."""
    var_name = match.group(1)
    default_value = match.group(2)

    value = environ.get(var_name)
    if value is not None:
        return value
    if default_value is not None:
        return default_value

    LOGGER.warning(f"Environment variable ${var_name} is not set and has no default")
    return ""


def dict_to_config(data: Dict[str, Any]) -> AgentDesktopConfig:
    """Convert a validated dict to a typed AgentDesktopConfig.

    Values of the wrong type were already reported by validation and fall
    back to their defaults here.
    """
    release_data = _section(data, "release")
    download_data = _section(data, "download")
    symlink_data = _section(data, "symlink")

    defaults = AgentDesktopConfig()

    release = ReleaseConfig(
        repository=_typed(release_data, "repository", str, defaults.release.repository),
        base_url=_typed(release_data, "base_url", str, defaults.release.base_url),
        version=_typed(release_data, "version", str, None),
    )
    download = DownloadConfig(
        timeout=float(_typed(download_data, "timeout", (int, float), defaults.download.timeout)),
        retries=_typed(download_data, "retries", int, defaults.download.retries),
        max_redirects=_typed(download_data, "max_redirects", int, defaults.download.max_redirects),
    )
    symlink = SymlinkConfig(
        enabled=_typed(symlink_data, "enabled", bool, defaults.symlink.enabled),
        entry_name=_typed(symlink_data, "entry_name", str, defaults.symlink.entry_name),
        bin_dir_command=[
            str(part) for part in
            _typed(symlink_data, "bin_dir_command", list, defaults.symlink.bin_dir_command)
        ],
    )

    binary_path = _typed(data, "binary_path", str, None)
    bin_dir = _typed(data, "bin_dir", str, None)

    return AgentDesktopConfig(
        skip_download=_typed(data, "skip_download", bool, False),
        binary_path=Path(binary_path).expanduser() if binary_path else None,
        bin_dir=Path(bin_dir).expanduser() if bin_dir else None,
        release=release,
        download=download,
        symlink=symlink,
    )


def apply_env_overrides(config: AgentDesktopConfig, environ: Mapping[str, str]) -> bool:
    """Apply AGENT_DESKTOP_* environment variables on top of the config.

    Returns:
        True if any override was applied.
    """
    applied = False

    if SKIP_DOWNLOAD_ENV in environ:
        config.skip_download = is_truthy(environ[SKIP_DOWNLOAD_ENV])
        applied = True

    binary_path = environ.get(BINARY_PATH_ENV)
    if binary_path:
        config.binary_path = Path(binary_path).expanduser()
        applied = True

    bin_dir = environ.get(BIN_DIR_ENV)
    if bin_dir:
        config.bin_dir = Path(bin_dir).expanduser()
        applied = True

    version = environ.get(VERSION_ENV)
    if version:
        config.release.version = version
        applied = True

    for name in PROXY_ENVS:
        if environ.get(name):
            config.download.proxy = environ[name]
            break

    return applied


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _typed(data: Dict[str, Any], key: str, expected: Any, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) and expected is not bool:
        return default
    if not isinstance(value, expected):
        return default
    return value


def get_default_config() -> AgentDesktopConfig:
    """Get the built-in default configuration."""
    return AgentDesktopConfig()
