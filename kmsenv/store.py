"""
Filesystem-backed storage for a single env file.

Responsibilities:
- Read an env file and decode it
- Write an env file atomically
- Initialize a file with a key id
- Encrypt and upsert entries (one load, one save per call)

Every write goes through save(), which replaces the file in one step.
A failure anywhere before save() leaves the file on disk untouched.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Tuple

from . import codec
from .codec import Entry, EnvFile
from .config import FILE_ENCODING
from .errors import (
    EncryptionError,
    NotFoundError,
    NotInitializedError,
    ValidationError,
)
from .gateway import KeyManagementGateway
from .utils import atomic_write_text

logger = logging.getLogger(__name__)


class EnvStore:

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def load(self, path: str | Path) -> EnvFile:
        """
        Read and parse an env file.

        Raises:
            NotFoundError: if the file does not exist
            FormatError: if the content cannot be parsed
        """

        path = Path(path)
        try:
            text = path.read_text(encoding=FILE_ENCODING)
        except FileNotFoundError as e:
            raise NotFoundError(f"Env file not found: {path}") from e

        env_file = codec.parse(text)
        logger.debug("Loaded %s (%d entries)", path, len(env_file))
        return env_file

    def save(self, path: str | Path, env_file: EnvFile) -> None:
        path = Path(path)
        atomic_write_text(path, codec.serialize(env_file), encoding=FILE_ENCODING)
        logger.debug("Saved %s (%d entries)", path, len(env_file))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self, path: str | Path, key_id: str) -> EnvFile:
        """
        Create (or overwrite) an env file with a key id and no entries.
        """

        if not key_id:
            raise ValidationError("Must provide keyId")
        if not path:
            raise ValidationError("Must provide file")

        env_file = EnvFile(key_id=key_id)
        self.save(path, env_file)
        return env_file

    def load_initialized(self, path: str | Path) -> EnvFile:
        """
        Load a file that must already carry a key id.

        An absent file counts as not initialized.
        """

        try:
            env_file = self.load(path)
        except NotFoundError as e:
            raise NotInitializedError(
                f"Env file {path} is not initialized; run 'kmsenv init' first"
            ) from e

        if not env_file.initialized:
            raise NotInitializedError(
                f"Env file {path} has no key id; run 'kmsenv init' first"
            )
        return env_file

    def upsert(
        self,
        path: str | Path,
        name: str,
        plaintext: str,
        gateway: KeyManagementGateway,
    ) -> EnvFile:
        """Encrypt one value and store it under name."""
        return self.upsert_many(path, [(name, plaintext)], gateway)

    def upsert_many(
        self,
        path: str | Path,
        pairs: Iterable[Tuple[str, str]],
        gateway: KeyManagementGateway,
    ) -> EnvFile:
        """
        Encrypt several values and store them, in order, with one save.

        If any encryption fails nothing is written.
        """

        env_file = self.load_initialized(path)

        for name, plaintext in pairs:
            try:
                ciphertext = gateway.encrypt(env_file.key_id, plaintext)
            except EncryptionError as e:
                raise EncryptionError(f"Failed to encrypt '{name}': {e}") from e
            env_file.upsert(Entry(name=name, value=ciphertext, encrypted=True))
            logger.debug("Encrypted entry %s", name)

        self.save(path, env_file)
        return env_file
