"""
Configuration Module for the schema tools.

This module provides configuration loading for both the schema validator and
the schema loader. Configuration is loaded from config.yml and merged over
built-in defaults, so a missing or partial file never breaks a run.

Usage:
    >>> from config import load_config, get_loader_config
    >>> config = load_config()
    >>> loader_config = get_loader_config(config)
    >>> loader_config.cdn_url
    'https://cdn.jsdelivr.net/gh/'
"""
import copy
import logging
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml


logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yml"

_REPLACED_KEYS = frozenset({"exact", "fallback"})

DEFAULT_FALLBACK_SCHEMA = {
    "@context": "https://schema.org",
    "@type": "Organization",
    "name": "RE Cost Seg",
    "url": "https://www.recostseg.com",
    "telephone": "+1 (346) 214-6539",
}


def get_default_config() -> Dict[str, Any]:
    """Return default configuration when config.yml is not available.

    Returns:
        Dictionary with default configuration values
    """
    return {
        "validator": {
            "schemas_dir": "schemas",
            "extensions": [".json", ".jsonld"],
        },
        "loader": {
            "github_repo": "Joao-Aquino/recostseg-schemas",
            "branch": "main",
            "cdn_url": "https://cdn.jsdelivr.net/gh/",
            "cache_time": 3600,
            "timeout": 30,
            "debug_hosts": ["webflow.io", "localhost"],
            "marker": {"attribute": "data-schema-loader", "value": "recostseg"},
            "defaults": {"author": "RE Cost Seg", "language": "en-US"},
            "routes": {
                "exact": {
                    "/": "homepage.json",
                    "/index": "homepage.json",
                    "/services": "services.json",
                    "/services/rapid-report": "rapid-report.json",
                    "/services/engineered-study": "engineered-study.json",
                    "/free-proposal": "free-proposal.json",
                    "/faq": "faq.json",
                    "/resources": "resources.json",
                    "/contact": "contact.json",
                    "/about": "about.json",
                },
                "patterns": [
                    {"pattern": r"^/post/", "schema": "blog-post.json"},
                    {"pattern": r"^/case-study/", "schema": "case-study.json"},
                    {"pattern": r"^/state/", "schema": "location.json"},
                ],
                "default": "default.json",
            },
            "fallback": copy.deepcopy(DEFAULT_FALLBACK_SCHEMA),
        },
    }


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base.

    Nested mappings are merged; every other value (lists included) and the
    tables named in _REPLACED_KEYS are replaced wholesale, so configured
    routes and fallback records never inherit entries from the defaults.
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict) and key not in _REPLACED_KEYS:
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def find_config_file(config_path: Optional[str] = None) -> Optional[str]:
    """Locate config.yml.

    An explicit config_path is returned as given. Otherwise the current
    directory and its parents are searched, then the project root.
    """
    if config_path is not None:
        return config_path

    current = Path.cwd()
    for parent in [current] + list(current.parents):
        candidate = parent / CONFIG_FILENAME
        if candidate.exists():
            return str(candidate)

    # If still not found, check the project root (where this file is located)
    project_root = Path(__file__).parent.parent.parent
    candidate = project_root / CONFIG_FILENAME
    if candidate.exists():
        return str(candidate)
    return None


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from config.yml file.

    Args:
        config_path: Path to config.yml file. If None, looks in current directory
                    and parent directories.

    Returns:
        Dictionary containing configuration settings, merged over the defaults

    Example:
        >>> config = load_config()
        >>> config["loader"]["branch"]
        'main'
    """
    config_path = find_config_file(config_path)
    if config_path is None:
        logger.warning(f"{CONFIG_FILENAME} not found, using default configuration")
        return get_default_config()

    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        logger.warning(f"Configuration file not found: {config_path}")
        return get_default_config()
    except yaml.YAMLError as e:
        logger.error(f"Error parsing configuration file: {e}")
        return get_default_config()

    if config is None:
        config = {}
    if not isinstance(config, dict):
        logger.warning("Configuration root must be a mapping, using default configuration")
        return get_default_config()

    logger.info(f"Loaded configuration from {config_path}")
    return _merge(get_default_config(), config)


@dataclass(frozen=True)
class RouteRules:
    """Immutable path-to-schema routing tables.

    Attributes:
        exact: Literal path to schema filename (keys are unique by construction)
        patterns: Ordered (compiled regex, schema filename) pairs
        default: Schema filename used when nothing matches
    """
    exact: Mapping[str, str]
    patterns: Tuple[Tuple["re.Pattern[str]", str], ...]
    default: str = "default.json"

    @classmethod
    def from_config(cls, routes: Mapping[str, Any]) -> "RouteRules":
        """Compile route tables from the ``loader.routes`` config section.

        Raises:
            ValueError: If a pattern entry is malformed or not a valid regex
        """
        exact = {str(path): str(schema) for path, schema in (routes.get("exact") or {}).items()}

        patterns = []
        for index, entry in enumerate(routes.get("patterns") or []):
            if not isinstance(entry, Mapping) or "pattern" not in entry or "schema" not in entry:
                raise ValueError(f"Route pattern #{index} must have 'pattern' and 'schema' keys")
            try:
                compiled = re.compile(entry["pattern"])
            except re.error as e:
                raise ValueError(f"Route pattern #{index} is not a valid regex: {e}") from e
            patterns.append((compiled, str(entry["schema"])))

        return cls(
            exact=MappingProxyType(exact),
            patterns=tuple(patterns),
            default=str(routes.get("default") or "default.json"),
        )


@dataclass(frozen=True)
class LoaderConfig:
    """Immutable loader settings, constructed once from config.yml."""
    routes: RouteRules
    github_repo: str = "Joao-Aquino/recostseg-schemas"
    branch: str = "main"
    cdn_url: str = "https://cdn.jsdelivr.net/gh/"
    cache_time: int = 3600
    timeout: Optional[float] = 30
    debug_hosts: Tuple[str, ...] = ("webflow.io", "localhost")
    marker_attribute: str = "data-schema-loader"
    marker_value: str = "recostseg"
    default_author: str = "RE Cost Seg"
    default_language: str = "en-US"
    fallback_schema: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType(copy.deepcopy(DEFAULT_FALLBACK_SCHEMA))
    )

    def is_debug_host(self, hostname: str) -> bool:
        """Return True if debug logging applies to this hostname.

        ``localhost`` must match exactly; any other entry matches as a
        substring (e.g. every ``*.webflow.io`` staging host).
        """
        hostname = (hostname or "").lower()
        for fragment in self.debug_hosts:
            if fragment == "localhost":
                if hostname == "localhost":
                    return True
            elif fragment and fragment in hostname:
                return True
        return False


def get_loader_config(config: Dict[str, Any]) -> LoaderConfig:
    """Extract loader configuration from the main config.

    Args:
        config: Main configuration dictionary from config.yml

    Returns:
        LoaderConfig with defaults applied for every missing key

    Raises:
        ValueError: If cache_time is not a positive integer or routes are invalid
    """
    loader = _merge(get_default_config()["loader"], config.get("loader") or {})

    cache_time = loader.get("cache_time")
    if isinstance(cache_time, bool) or not isinstance(cache_time, int) or cache_time <= 0:
        raise ValueError(f"loader.cache_time must be a positive integer, got {cache_time!r}")

    marker = loader.get("marker") or {}
    defaults = loader.get("defaults") or {}

    return LoaderConfig(
        routes=RouteRules.from_config(loader.get("routes") or {}),
        github_repo=str(loader["github_repo"]),
        branch=str(loader["branch"]),
        cdn_url=str(loader["cdn_url"]),
        cache_time=cache_time,
        timeout=loader.get("timeout"),
        debug_hosts=tuple(str(host) for host in loader.get("debug_hosts") or ()),
        marker_attribute=str(marker.get("attribute", "data-schema-loader")),
        marker_value=str(marker.get("value", "recostseg")),
        default_author=str(defaults.get("author", "")),
        default_language=str(defaults.get("language", "")),
        fallback_schema=MappingProxyType(copy.deepcopy(loader["fallback"])),
    )


@dataclass(frozen=True)
class ValidatorConfig:
    schemas_dir: str = "schemas"
    extensions: Tuple[str, ...] = (".json", ".jsonld")


def get_validator_config(config: Dict[str, Any], base_dir: Optional[str] = None) -> ValidatorConfig:
    """Extract validator configuration from the main config.

    Args:
        config: Configuration dictionary from load_config()
        base_dir: Directory a relative schemas_dir is resolved against,
                  normally the directory holding config.yml. When None a
                  relative schemas_dir is left relative to the working
                  directory.
    """
    validator = _merge(get_default_config()["validator"], config.get("validator") or {})
    extensions = tuple(
        ext.lower() if ext.startswith(".") else f".{ext.lower()}"
        for ext in validator.get("extensions") or ()
    )
    schemas_dir = Path(str(validator.get("schemas_dir", "schemas")))
    if base_dir is not None and not schemas_dir.is_absolute():
        schemas_dir = Path(base_dir) / schemas_dir
    return ValidatorConfig(
        schemas_dir=str(schemas_dir),
        extensions=extensions or (".json",),
    )


def configure_logging(debug: bool = False) -> None:
    """Configure the root logger for the command line tools.

    Args:
        debug: Log at DEBUG instead of WARNING. Report output from the
               tools goes to stdout separately, so logs use stderr.
    """
    log_level = logging.DEBUG if debug else logging.WARNING

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear any existing handlers to avoid duplicates on repeated calls
    root_logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
