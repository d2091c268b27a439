from __future__ import annotations

from dropbox_cache.auth.credentials import CredentialManager

__all__ = ["CredentialManager"]
