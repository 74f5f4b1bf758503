"""Encrypted key-value store for OAuth credentials

Backs the token issuer: the refresh token and the last access token for a
user are kept here between process restarts.

SECURITY:
- Values encrypted with Fernet (symmetric encryption)
- Encryption key must be set via AUTHDIAG_ENCRYPTION_KEY environment variable
- Only the credential key (user id) is stored in clear text
"""

from __future__ import annotations

import json
import os
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from authdiag.config import CREDENTIALS_DB_PATH
from authdiag.observability.logging import get_logger

logger = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS credentials (
    key TEXT PRIMARY KEY,
    encrypted_value TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


class CredentialEncryptionError(Exception):
    """Raised when credential encryption/decryption fails"""


def _get_cipher(encryption_key: str | None) -> Fernet:
    """
    Build the Fernet cipher.

    Raises:
        ValueError: If no key is configured or the key is malformed
    """
    key = encryption_key or os.getenv("AUTHDIAG_ENCRYPTION_KEY")
    if not key:
        raise ValueError(
            "AUTHDIAG_ENCRYPTION_KEY environment variable must be set. "
            "Generate one with: python -c "
            "'from cryptography.fernet import Fernet; "
            "print(Fernet.generate_key().decode())'"
        )
    try:
        return Fernet(key.encode())
    except Exception as e:
        raise ValueError(f"Invalid encryption key format: {e}") from e


class CredentialStore:
    """
    sqlite-backed key-value store with encrypted values.

    Values are JSON-serializable dicts (token payloads).
    """

    def __init__(self, db_path: str | Path = CREDENTIALS_DB_PATH, encryption_key: str | None = None):
        self.db_path = Path(db_path)
        self._cipher = _get_cipher(encryption_key)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._conn() as conn:
            conn.execute(_SCHEMA)

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _encrypt(self, value: dict[str, Any]) -> str:
        try:
            return self._cipher.encrypt(json.dumps(value).encode()).decode()
        except (TypeError, ValueError) as e:
            logger.error("Failed to encrypt credentials: %s", type(e).__name__)
            raise CredentialEncryptionError(f"Encryption failed: {e}") from e

    def _decrypt(self, encrypted: str) -> dict[str, Any]:
        try:
            return json.loads(self._cipher.decrypt(encrypted.encode()).decode())
        except (InvalidToken, ValueError) as e:
            logger.error("Failed to decrypt credentials: %s", type(e).__name__)
            raise CredentialEncryptionError(f"Decryption failed: {type(e).__name__}") from e

    def put(self, key: str, value: dict[str, Any]) -> None:
        """
        Store or replace the value for key.

        Side Effects:
            - Upserts a row in the credentials table
        """
        encrypted = self._encrypt(value)
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO credentials (key, encrypted_value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    encrypted_value = excluded.encrypted_value,
                    updated_at = excluded.updated_at
                """,
                (key, encrypted, datetime.now(UTC).isoformat()),
            )
        logger.info("Stored credentials for key: %s", key)

    def get(self, key: str) -> dict[str, Any] | None:
        """
        Raises:
            CredentialEncryptionError: If the stored value cannot be decrypted
        """
        with self._conn() as conn:
            row = conn.execute(
                "SELECT encrypted_value FROM credentials WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        return self._decrypt(row["encrypted_value"])

    def delete(self, key: str) -> None:
        with self._conn() as conn:
            conn.execute("DELETE FROM credentials WHERE key = ?", (key,))
        logger.info("Deleted credentials for key: %s", key)

    def keys(self) -> list[str]:
        with self._conn() as conn:
            rows = conn.execute("SELECT key FROM credentials ORDER BY key").fetchall()
        return [row["key"] for row in rows]
