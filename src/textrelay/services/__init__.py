"""Service layer helpers (settings persistence, secret storage)."""

from .settings import FernetSecretProvider, SecretVault, Settings, SettingsStore, redact_secret

__all__ = [
    "FernetSecretProvider",
    "SecretVault",
    "Settings",
    "SettingsStore",
    "redact_secret",
]
