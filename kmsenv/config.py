"""
Global configuration and environment handling.

This module is responsible for:
- Defining global constants and defaults (file format marker, env names)
- Loading the optional YAML config file
- Resolving a GatewayConfig from defaults, file, environment and flags

Nothing in this file should depend on:
- the env file format
- the key-management service client
- CLI argument parsing

The resolved GatewayConfig is passed explicitly to the gateway factory.
Nothing here mutates the process environment.
"""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Final, Mapping, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tool / format versioning
# ---------------------------------------------------------------------------

TOOL_VERSION: Final[str] = "0.1.0"
SUPPORTED_CONFIG_VERSION: Final[int] = 1

# ---------------------------------------------------------------------------
# Env file format
# ---------------------------------------------------------------------------

SECURE_MARKER: Final[str] = "SECURE:"
FILE_ENCODING: Final[str] = "utf-8"

# ---------------------------------------------------------------------------
# Gateway defaults
# ---------------------------------------------------------------------------

BACKEND_KMS: Final[str] = "kms"
BACKEND_LOCAL: Final[str] = "local"
SUPPORTED_BACKENDS: Final[tuple] = (BACKEND_KMS, BACKEND_LOCAL)

DEFAULT_CONFIG_FILE: Final[str] = ".kmsenv.yml"
DEFAULT_CONNECT_TIMEOUT: Final[int] = 10
DEFAULT_READ_TIMEOUT: Final[int] = 30
DEFAULT_MAX_ATTEMPTS: Final[int] = 3

# AES-GCM defaults for the local backend
AES_NONCE_SIZE: Final[int] = 12
AES_TAG_SIZE: Final[int] = 16

# ---------------------------------------------------------------------------
# Environment variable names
# ---------------------------------------------------------------------------

ENV_CONFIG: Final[str] = "KMSENV_CONFIG"
ENV_BACKEND: Final[str] = "KMSENV_BACKEND"
ENV_ENCRYPTION_KEY: Final[str] = "ENCRYPTION_KEY"
ENV_REGION: Final[str] = "AWS_REGION"
ENV_DEFAULT_REGION: Final[str] = "AWS_DEFAULT_REGION"
ENV_PROFILE: Final[str] = "AWS_PROFILE"
ENV_ACCESS_KEY_ID: Final[str] = "AWS_ACCESS_KEY_ID"
ENV_SECRET_ACCESS_KEY: Final[str] = "AWS_SECRET_ACCESS_KEY"


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GatewayConfig:
    backend: str = BACKEND_KMS
    region: Optional[str] = None
    profile: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    endpoint_url: Optional[str] = None
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    read_timeout: int = DEFAULT_READ_TIMEOUT
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    local_key: Optional[str] = None

    def merged(self, overrides: Mapping[str, Any]) -> "GatewayConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


_INT_FIELDS = ("connect_timeout", "read_timeout", "max_attempts")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def find_config_file(
    explicit: Optional[str | Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[Path]:
    """
    Locate the config file to use.

    An explicit path or $KMSENV_CONFIG must exist; the default
    .kmsenv.yml in the working directory is optional.
    """

    environ = os.environ if environ is None else environ

    candidate = explicit or environ.get(ENV_CONFIG)
    if candidate:
        path = Path(candidate)
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        return path

    default = Path.cwd() / DEFAULT_CONFIG_FILE
    return default if default.is_file() else None


def load_config_file(path: str | Path) -> Dict[str, Any]:
    """
    Load and validate the gateway section of a YAML config file.

    Raises:
        ConfigError: if the file is unreadable or malformed

    Returns:
        dict of GatewayConfig field values
    """

    path = Path(path)
    try:
        with path.open("r", encoding=FILE_ENCODING) as fh:
            raw = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    version = raw.get("version", SUPPORTED_CONFIG_VERSION)
    if version != SUPPORTED_CONFIG_VERSION:
        raise ConfigError(f"Unsupported config version: {version}")

    section = raw.get("gateway") or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'gateway' in {path} must be a mapping")

    known = {f.name for f in fields(GatewayConfig)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ConfigError(
            f"Unknown gateway option(s) in {path}: {', '.join(unknown)}"
        )

    values = dict(section)
    for name in _INT_FIELDS:
        if name in values:
            try:
                values[name] = int(values[name])
            except (TypeError, ValueError) as e:
                raise ConfigError(f"'{name}' in {path} must be an integer") from e

    logger.debug("Loaded config file %s", path)
    return values


def config_from_environment(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Return GatewayConfig overrides taken from the environment."""

    environ = os.environ if environ is None else environ
    return {
        "backend": environ.get(ENV_BACKEND),
        "region": environ.get(ENV_REGION) or environ.get(ENV_DEFAULT_REGION),
        "profile": environ.get(ENV_PROFILE),
        "access_key_id": environ.get(ENV_ACCESS_KEY_ID),
        "secret_access_key": environ.get(ENV_SECRET_ACCESS_KEY),
        "local_key": environ.get(ENV_ENCRYPTION_KEY),
    }


def resolve_config(
    config_path: Optional[str | Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> GatewayConfig:
    """
    Build the effective GatewayConfig.

    Later sources win: defaults, config file, environment, overrides
    (command-line flags).
    """

    config = GatewayConfig()

    path = find_config_file(config_path, environ)
    if path is not None:
        config = config.merged(load_config_file(path))

    config = config.merged(config_from_environment(environ))
    config = config.merged(overrides or {})

    if config.backend not in SUPPORTED_BACKENDS:
        raise ConfigError(
            f"Unknown backend '{config.backend}' "
            f"(expected one of: {', '.join(SUPPORTED_BACKENDS)})"
        )
    return config


def derive_local_key(raw: Optional[str]) -> bytes:
    """
    Normalize the local backend secret into a 32-byte AES key.

    Raises:
        ConfigError: if the secret is missing
    """

    if not raw:
        raise ConfigError(
            f"Missing required environment variable: {ENV_ENCRYPTION_KEY}"
        )

    # Normalize key length using SHA-256
    return hashlib.sha256(raw.encode("utf-8")).digest()
