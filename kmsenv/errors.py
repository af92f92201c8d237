"""
Exception hierarchy.

Every error the tool raises on purpose derives from KmsEnvError, so the
CLI can report it as a plain message and exit non-zero. Nothing here is
recovered from locally.
"""

from __future__ import annotations


class KmsEnvError(RuntimeError):
    """Base class for all kmsenv errors."""


class ValidationError(KmsEnvError):
    """Missing or malformed user input."""


class ConfigError(KmsEnvError):
    """Invalid configuration file or settings."""


class NotFoundError(KmsEnvError):
    """An env file that was expected to exist is absent."""


class NotInitializedError(KmsEnvError):
    """The env file has no key id yet."""


class FormatError(KmsEnvError):
    """The env file content cannot be parsed."""


class GatewayError(KmsEnvError):
    """The key-management gateway failed."""


class EncryptionError(GatewayError):
    pass


class DecryptionError(GatewayError):
    pass
