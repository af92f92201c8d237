"""
kmsenv

Keep environment variables in version control encrypted with a KMS
customer master key, and decrypt them at runtime into shell exports.
"""

__version__ = "0.1.0"

from .codec import Entry, EnvFile, parse, serialize
from .config import GatewayConfig, resolve_config, SECURE_MARKER
from .errors import (
    KmsEnvError,
    ValidationError,
    ConfigError,
    NotFoundError,
    NotInitializedError,
    FormatError,
    GatewayError,
    EncryptionError,
    DecryptionError,
)
from .gateway import KeyManagementGateway, KmsGateway, LocalGateway, create_gateway
from .store import EnvStore
from .workflow import EncryptionWorkflow

__all__ = [
    "Entry",
    "EnvFile",
    "parse",
    "serialize",
    "GatewayConfig",
    "resolve_config",
    "SECURE_MARKER",
    "KmsEnvError",
    "ValidationError",
    "ConfigError",
    "NotFoundError",
    "NotInitializedError",
    "FormatError",
    "GatewayError",
    "EncryptionError",
    "DecryptionError",
    "KeyManagementGateway",
    "KmsGateway",
    "LocalGateway",
    "create_gateway",
    "EnvStore",
    "EncryptionWorkflow",
]
