"""Configuration loading and the discovery context object."""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from pagescout import __version__

DEFAULT_CONFIG_PATHS = [
    Path("pagescout.yaml"),
    Path.home() / ".pagescout" / "config.yaml",
]

DEFAULT_USER_AGENT = f"pagescout/{__version__} (+https://pypi.org/project/pagescout/)"

RENDERERS = ("http", "chromium", "firefox", "webkit")


class ConfigurationError(ValueError):
    """Exception raised for invalid discovery settings."""

    pass


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load configuration from file.

    Args:
        config_path: Optional path to config file. If not provided,
                    searches default locations.

    Returns:
        Configuration dictionary, merged over the defaults.

    Raises:
        ConfigurationError: If an explicit config file is missing or unreadable.
    """
    if config_path is not None and not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    paths_to_try = [config_path] if config_path else DEFAULT_CONFIG_PATHS

    for path in paths_to_try:
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    loaded = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
            if loaded is not None and not isinstance(loaded, dict):
                raise ConfigurationError(f"Config file {path} must contain a mapping")
            # Empty sections fall back to the defaults
            loaded = {k: v for k, v in (loaded or {}).items() if v is not None}
            for name in get_default_config():
                if name in loaded and not isinstance(loaded[name], dict):
                    raise ConfigurationError(f"Section '{name}' in {path} must be a mapping")
            return merge_configs(get_default_config(), loaded)

    return get_default_config()


def get_default_config() -> dict[str, Any]:
    """Return the default configuration."""
    return {
        "crawl": {
            "max_pages": 500,
            "max_depth": 4,
            "concurrency": 5,
            "timeout": 20.0,
            "batch_delay": 1.0,
            "respect_robots": True,
        },
        "browser": {
            "renderer": "http",
            "headless": True,
        },
        "sitemap": {
            "html_only": False,
            "max_attempts": 4,
            "timeout": 20.0,
        },
        "http": {
            "user_agent": DEFAULT_USER_AGENT,
            "robots_timeout": 10.0,
        },
    }


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    section = config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Config section '{name}' must be a mapping, got {section!r}")
    return section


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge two configuration dictionaries.

    Args:
        base: Base configuration.
        override: Override configuration (takes precedence).

    Returns:
        Merged configuration.
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


@dataclass(frozen=True)
class DiscoveryConfig:
    """Everything one discovery run needs, passed explicitly to ``discover``."""

    base_url: str
    sitemap_url: Optional[str] = None
    max_pages: int = 500
    max_depth: int = 4
    concurrency: int = 5
    timeout: float = 20.0
    batch_delay: float = 1.0
    respect_robots: bool = True
    renderer: str = "http"
    headless: bool = True
    sitemap_html_only: bool = False
    sitemap_max_attempts: int = 4
    sitemap_timeout: float = 20.0
    robots_timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        if self.max_pages < 1:
            raise ConfigurationError("max_pages must be at least 1")
        if self.max_depth < 0:
            raise ConfigurationError("max_depth must not be negative")
        if self.concurrency < 1:
            raise ConfigurationError("concurrency must be at least 1")
        if self.sitemap_max_attempts < 1:
            raise ConfigurationError("sitemap max_attempts must be at least 1")
        if self.timeout <= 0 or self.sitemap_timeout <= 0 or self.robots_timeout <= 0:
            raise ConfigurationError("timeouts must be positive")
        if self.batch_delay < 0:
            raise ConfigurationError("batch_delay must not be negative")
        if self.renderer not in RENDERERS:
            raise ConfigurationError(
                f"Invalid renderer '{self.renderer}'. Must be one of: {', '.join(RENDERERS)}"
            )

    @classmethod
    def from_dict(
        cls,
        base_url: str,
        config: dict[str, Any],
        **overrides: Any,
    ) -> "DiscoveryConfig":
        """Build a discovery context from a configuration dictionary.

        Args:
            base_url: Site to discover.
            config: Configuration as returned by ``load_config``.
            **overrides: Field values that take precedence (None is ignored).

        Returns:
            Validated discovery context.

        Raises:
            ConfigurationError: If a value has the wrong type or range.
        """
        crawl = _section(config, "crawl")
        browser = _section(config, "browser")
        sitemap = _section(config, "sitemap")
        http = _section(config, "http")

        values: dict[str, Any] = {
            "max_pages": crawl.get("max_pages"),
            "max_depth": crawl.get("max_depth"),
            "concurrency": crawl.get("concurrency"),
            "timeout": crawl.get("timeout"),
            "batch_delay": crawl.get("batch_delay"),
            "respect_robots": crawl.get("respect_robots"),
            "renderer": browser.get("renderer"),
            "headless": browser.get("headless"),
            "sitemap_html_only": sitemap.get("html_only"),
            "sitemap_max_attempts": sitemap.get("max_attempts"),
            "sitemap_timeout": sitemap.get("timeout"),
            "robots_timeout": http.get("robots_timeout"),
            "user_agent": http.get("user_agent"),
        }
        values.update(overrides)
        values = {k: v for k, v in values.items() if v is not None}

        field_types = {f.name: f.type for f in fields(cls)}
        for name, value in values.items():
            if name not in field_types:
                raise ConfigurationError(f"Unknown setting: {name}")
            expected = field_types[name]
            if expected in (int, "int") and (isinstance(value, bool) or not isinstance(value, int)):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
            if expected in (float, "float") and (
                isinstance(value, bool) or not isinstance(value, (int, float))
            ):
                raise ConfigurationError(f"{name} must be a number, got {value!r}")
            if expected in (bool, "bool") and not isinstance(value, bool):
                raise ConfigurationError(f"{name} must be true or false, got {value!r}")

        return cls(base_url=base_url, **values)
