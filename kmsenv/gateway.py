"""
Key-management gateways.

A gateway encrypts a plaintext under a master key id and decrypts the
resulting ciphertext. Two backends exist:

- KmsGateway: AWS KMS through boto3 (the default)
- LocalGateway: AES-GCM with a locally held secret, for offline use

Gateways are built by create_gateway() from an explicit GatewayConfig.
They hold no state beyond their client or key.
"""

from __future__ import annotations

import logging
import struct
from abc import ABC, abstractmethod
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes

from .config import (
    AES_NONCE_SIZE,
    AES_TAG_SIZE,
    BACKEND_KMS,
    BACKEND_LOCAL,
    GatewayConfig,
    derive_local_key,
)
from .errors import ConfigError, DecryptionError, EncryptionError

logger = logging.getLogger(__name__)


class KeyManagementGateway(ABC):
    """Encrypts and decrypts single values under a master key."""

    @abstractmethod
    def encrypt(self, key_id: str, plaintext: str) -> bytes:
        """
        Encrypt plaintext under key_id.

        Raises:
            EncryptionError: on any service failure
        """

    @abstractmethod
    def decrypt(self, ciphertext: bytes) -> str:
        """
        Decrypt ciphertext produced by encrypt().

        Raises:
            DecryptionError: on any service failure, wrong key or
                corrupted ciphertext
        """


# ---------------------------------------------------------------------------
# AWS KMS
# ---------------------------------------------------------------------------


def _error_message(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code", "Unknown")
        message = error.get("Message", str(exc))
        return f"{code}: {message}"
    return str(exc)


class KmsGateway(KeyManagementGateway):
    def __init__(self, client: Any):
        self.client = client

    @classmethod
    def from_config(cls, config: GatewayConfig) -> "KmsGateway":
        """Build a KMS client from explicit settings."""

        try:
            session = boto3.session.Session(
                aws_access_key_id=config.access_key_id,
                aws_secret_access_key=config.secret_access_key,
                region_name=config.region,
                profile_name=config.profile,
            )
            client = session.client(
                "kms",
                endpoint_url=config.endpoint_url,
                config=BotoConfig(
                    connect_timeout=config.connect_timeout,
                    read_timeout=config.read_timeout,
                    retries={"max_attempts": config.max_attempts, "mode": "standard"},
                ),
            )
        except BotoCoreError as e:
            raise ConfigError(f"Failed to create KMS client: {e}") from e

        logger.debug(
            "Created KMS client (region=%s, profile=%s)",
            client.meta.region_name,
            config.profile or "default",
        )
        return cls(client)

    def encrypt(self, key_id: str, plaintext: str) -> bytes:
        try:
            response = self.client.encrypt(
                KeyId=key_id,
                Plaintext=plaintext.encode("utf-8"),
            )
        except (ClientError, BotoCoreError) as e:
            raise EncryptionError(
                f"KMS encrypt with key {key_id} failed: {_error_message(e)}"
            ) from e
        return response["CiphertextBlob"]

    def decrypt(self, ciphertext: bytes) -> str:
        try:
            response = self.client.decrypt(CiphertextBlob=ciphertext)
        except (ClientError, BotoCoreError) as e:
            raise DecryptionError(f"KMS decrypt failed: {_error_message(e)}") from e

        try:
            return response["Plaintext"].decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted value is not valid UTF-8") from e


# ---------------------------------------------------------------------------
# Local AES-GCM
# ---------------------------------------------------------------------------


class LocalGateway(KeyManagementGateway):
    """
    Offline gateway backed by a local secret.

    Blob layout:
        key id length (2 bytes, big endian) | key id | nonce | tag | ciphertext

    The key id is authenticated as associated data, so tampering with it
    makes decryption fail.
    """

    _LENGTH = struct.Struct(">H")

    def __init__(self, key: bytes):
        self.key = key

    @classmethod
    def from_config(cls, config: GatewayConfig) -> "LocalGateway":
        return cls(derive_local_key(config.local_key))

    def encrypt(self, key_id: str, plaintext: str) -> bytes:
        key_id_raw = key_id.encode("utf-8")
        if len(key_id_raw) > 0xFFFF:
            raise EncryptionError("Key id is too long")

        cipher = AES.new(self.key, AES.MODE_GCM, nonce=get_random_bytes(AES_NONCE_SIZE))
        cipher.update(key_id_raw)
        ciphertext, tag = cipher.encrypt_and_digest(plaintext.encode("utf-8"))

        return self._LENGTH.pack(len(key_id_raw)) + key_id_raw + cipher.nonce + tag + ciphertext

    def decrypt(self, ciphertext: bytes) -> str:
        header = self._LENGTH.size
        if len(ciphertext) < header:
            raise DecryptionError("Ciphertext is truncated")

        (key_len,) = self._LENGTH.unpack(ciphertext[:header])
        body_start = header + key_len + AES_NONCE_SIZE + AES_TAG_SIZE
        if len(ciphertext) < body_start:
            raise DecryptionError("Ciphertext is truncated")

        key_id_raw = ciphertext[header:header + key_len]
        nonce = ciphertext[header + key_len:header + key_len + AES_NONCE_SIZE]
        tag = ciphertext[body_start - AES_TAG_SIZE:body_start]
        body = ciphertext[body_start:]

        cipher = AES.new(self.key, AES.MODE_GCM, nonce=nonce)
        cipher.update(key_id_raw)
        try:
            payload = cipher.decrypt_and_verify(body, tag)
        except ValueError as e:
            raise DecryptionError("Ciphertext failed authentication (wrong key or corrupted data)") from e

        try:
            return payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted value is not valid UTF-8") from e


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_gateway(config: Optional[GatewayConfig] = None) -> KeyManagementGateway:
    """Return the gateway selected by config.backend."""

    config = config or GatewayConfig()

    if config.backend == BACKEND_KMS:
        return KmsGateway.from_config(config)
    if config.backend == BACKEND_LOCAL:
        return LocalGateway.from_config(config)

    raise ConfigError(f"Unknown backend: {config.backend}")
