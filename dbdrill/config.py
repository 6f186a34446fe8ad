"""
Runtime configuration for dbdrill
Database connection settings and application options from the environment,
plus loading of the resources file.

Environment-aware: .env.{APP_ENV} is loaded from the working directory
before anything is read from os.environ.
"""

import json
import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigError
from .mnemonics import STRATEGIES

logger = logging.getLogger(__name__)


def load_app_environment(mode: Optional[str] = None, base_path: Optional[Path] = None) -> str:
    """
    Load environment variables from the appropriate .env file.

    Priority:
    1. Explicit 'mode' argument
    2. APP_ENV environment variable
    3. Default to 'development'

    Loads .env.{mode} if it exists, falling back to .env
    """
    if not mode:
        mode = os.getenv("APP_ENV", "development")

    base_path = Path.cwd() if base_path is None else base_path
    for env_file in (base_path / f".env.{mode}", base_path / ".env"):
        if env_file.exists():
            logger.info(f"Loading config from {env_file}")
            # override=False: variables already set in the shell win over the file
            load_dotenv(env_file, override=False)
            break
    else:
        logger.debug(f"No .env file found for mode '{mode}' in {base_path}")

    return mode


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError("invalid_environment", name, f"expected an integer, got {raw!r}") from None


@dataclass
class DatabaseConfig:
    """PostgreSQL connection settings"""

    dsn: Optional[str]

    # Connection pool settings
    min_pool_size: int = 1
    max_pool_size: int = 4
    command_timeout: int = 30  # seconds

    @classmethod
    def from_environment(cls, dsn: Optional[str] = None) -> "DatabaseConfig":
        """
        Load configuration from environment variables

        Environment variables:
        - DBDRILL_DSN: connection string (wins over DATABASE_URL)
        - DATABASE_URL: fallback connection string
        - DBDRILL_COMMAND_TIMEOUT: per query timeout in seconds (default: 30)
        - DBDRILL_MIN_POOL_SIZE / DBDRILL_MAX_POOL_SIZE (default: 1 / 4)

        Args:
            dsn: explicit connection string, e.g. from the command line
        """
        return cls(
            dsn=dsn or os.getenv("DBDRILL_DSN") or os.getenv("DATABASE_URL"),
            min_pool_size=_int_env("DBDRILL_MIN_POOL_SIZE", 1),
            max_pool_size=_int_env("DBDRILL_MAX_POOL_SIZE", 4),
            command_timeout=_int_env("DBDRILL_COMMAND_TIMEOUT", 30),
        )

    @property
    def safe_dsn(self) -> str:
        """DSN with the password masked, for logs"""
        if not self.dsn or "@" not in self.dsn or "://" not in self.dsn:
            return self.dsn or ""
        scheme, rest = self.dsn.split("://", 1)
        credentials, host = rest.rsplit("@", 1)
        user = credentials.split(":", 1)[0]
        return f"{scheme}://{user}:***@{host}"


@dataclass
class AppConfig:
    """Application options"""

    mnemonic_strategy: str = "greedy"
    log_file: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_environment(cls) -> "AppConfig":
        """
        Environment variables:
        - DBDRILL_MNEMONICS: greedy (default) or word_start
        - DBDRILL_LOG_FILE: write logs to this file
        - DBDRILL_LOG_LEVEL: level used with a log file (default: INFO)
        """
        strategy = os.getenv("DBDRILL_MNEMONICS", "greedy").strip().lower()
        if strategy not in STRATEGIES:
            raise ConfigError(
                "invalid_environment",
                "DBDRILL_MNEMONICS",
                f"unknown mnemonic strategy '{strategy}' (expected one of {', '.join(STRATEGIES)})",
            )
        return cls(
            mnemonic_strategy=strategy,
            log_file=os.getenv("DBDRILL_LOG_FILE") or None,
            log_level=os.getenv("DBDRILL_LOG_LEVEL", "INFO").upper(),
        )


# =============================================================================
# Resources file
# =============================================================================

class _JsonObject(list):
    """Key/value pairs of one JSON object, in document order."""


def _duplicate_key(path: tuple) -> ConfigError:
    return ConfigError("duplicate_identifier", ".".join(path), f"'{path[-1]}' is declared more than once")


def _unique_json(node: Any, path: tuple = ()) -> Any:
    if isinstance(node, _JsonObject):
        mapping = {}
        for key, value in node:
            if key in mapping:
                raise _duplicate_key(path + (key,))
            mapping[key] = _unique_json(value, path + (key,))
        return mapping
    if isinstance(node, list):
        return [_unique_json(item, path + (str(index),)) for index, item in enumerate(node)]
    return node


def _check_yaml_keys(node: yaml.Node, path: tuple = (), seen_nodes: Optional[set] = None):
    # aliases share nodes, so each node is only walked once
    seen_nodes = set() if seen_nodes is None else seen_nodes
    if id(node) in seen_nodes:
        return
    seen_nodes.add(id(node))

    if isinstance(node, yaml.MappingNode):
        keys = set()
        for key_node, value_node in node.value:
            key = str(key_node.value) if isinstance(key_node, yaml.ScalarNode) else "?"
            if isinstance(key_node, yaml.ScalarNode) and key_node.tag != "tag:yaml.org,2002:merge":
                if key in keys:
                    raise _duplicate_key(path + (key,))
                keys.add(key)
            _check_yaml_keys(value_node, path + (key,), seen_nodes)
    elif isinstance(node, yaml.SequenceNode):
        for index, item in enumerate(node.value):
            _check_yaml_keys(item, path + (str(index),), seen_nodes)


def _load_yaml(text: str) -> Any:
    """yaml.safe_load, except that a repeated mapping key is an error."""
    loader = yaml.SafeLoader(text)
    try:
        node = loader.get_single_node()
        if node is None:
            return None
        _check_yaml_keys(node)
        return loader.construct_document(node)
    finally:
        loader.dispose()


def _decode(path: Path, text: str) -> Any:
    suffix = path.suffix.lower()
    if suffix == ".toml":
        return tomllib.loads(text)
    if suffix in (".yaml", ".yml"):
        return _load_yaml(text)
    if suffix == ".json":
        return _unique_json(json.loads(text, object_pairs_hook=_JsonObject))
    raise ConfigError("invalid_document", str(path), f"unsupported file type '{suffix}' (use .toml, .yaml or .json)")


def read_resources_document(path) -> Any:
    """
    Read and decode a resources file; the format follows the extension.

    Raises ConfigError when the file can't be read or parsed. The decoded
    document still has to go through registry.load().
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError("invalid_document", str(path), f"cannot read file: {e.strerror or e}") from e

    try:
        document = _decode(path, text)
    except (tomllib.TOMLDecodeError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError("invalid_document", str(path), f"parse error: {e}") from e

    logger.debug(f"Read resources document from {path}")
    return document
