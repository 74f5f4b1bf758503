"""Storage - encrypted credential persistence"""

from __future__ import annotations

from authdiag.storage.credentials import CredentialEncryptionError, CredentialStore

__all__ = ["CredentialEncryptionError", "CredentialStore"]
