"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

from abc import ABC, abstractmethod
import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

from ..ai.ai_types import OperationKind, ProviderConfig, ProviderTier
from ..ai.backends.gemini import DEFAULT_GEMINI_MODEL, GEMINI_BASE_URL
from ..ai.orchestration.runtime_config import DEFAULT_TIER_PROFILES, TierProfile

__all__ = [
    "Settings",
    "SettingsStore",
    "SecretVault",
    "FernetSecretProvider",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".textrelay"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "TEXTRELAY_GEMINI_API_KEY": "gemini_api_key",
    "TEXTRELAY_GEMINI_MODEL": "gemini_model",
    "TEXTRELAY_GEMINI_BASE_URL": "gemini_base_url",
    "TEXTRELAY_LOCAL_BASE_URL": "local_base_url",
    "TEXTRELAY_LOCAL_MODEL": "local_model",
    "TEXTRELAY_LOCAL_API_KEY": "local_api_key",
    "TEXTRELAY_PREFERRED_TIER": "preferred_tier",
    "TEXTRELAY_TARGET_LANGUAGE": "target_language",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "TEXTRELAY_CLOUD_FIRST": "cloud_first",
    "TEXTRELAY_LOCAL_ENABLED": "local_enabled",
    "TEXTRELAY_RESPOND_IN_TARGET_LANGUAGE": "respond_in_target_language",
    "TEXTRELAY_DEBUG_LOGGING": "debug_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "TEXTRELAY_REQUEST_TIMEOUT": "request_timeout",
    "TEXTRELAY_LOCAL_REQUEST_TIMEOUT": "local_request_timeout",
    "TEXTRELAY_RETRY_BASE_DELAY": "retry_base_delay",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "TEXTRELAY_MAX_RETRIES": "max_retries",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
# Plaintext field -> encrypted field persisted on disk.
_SECRET_FIELDS: Mapping[str, str] = {
    "gemini_api_key": "gemini_api_key_ciphertext",
    "local_api_key": "local_api_key_ciphertext",
}


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    preferred_tier: str | None = None
    cloud_first: bool = False
    gemini_api_key: str = ""
    gemini_model: str = DEFAULT_GEMINI_MODEL
    gemini_base_url: str = GEMINI_BASE_URL
    local_enabled: bool = False
    local_base_url: str = "http://localhost:11434"
    local_model: str = ""
    local_api_key: str = ""
    summary_length: str = "medium"
    summary_type: str = "key-points"
    summary_format: str = "markdown"
    rewrite_tone: str = "professional"
    rewrite_style: str = "neutral"
    rewrite_complexity: str = "intermediate"
    validation_strictness: str = "medium"
    source_language: str = "auto"
    target_language: str = "en"
    respond_in_target_language: bool = False
    request_timeout: float = 60.0
    local_request_timeout: float = 120.0
    max_retries: int = 2
    retry_base_delay: float = 2.0
    debug_logging: bool = False

    def provider_config(self) -> ProviderConfig:
        """Resolve these settings into the config the orchestrator consumes."""

        credentials: Dict[ProviderTier, str] = {}
        if self.gemini_api_key:
            credentials[ProviderTier.CLOUD_PRIMARY] = self.gemini_api_key
        if self.local_api_key:
            credentials[ProviderTier.CLOUD_LOCAL] = self.local_api_key
        return ProviderConfig(
            preferred_tier=_parse_tier(self.preferred_tier),
            credentials=credentials,
            cloud_first=self.cloud_first,
            local_enabled=self.local_enabled,
            local_base_url=self.local_base_url or None,
            local_model_name=self.local_model or None,
            cloud_model_name=self.gemini_model or None,
        )

    def operation_params(self, operation: OperationKind) -> dict[str, str]:
        """Default options for *operation*; explicit request params override these."""

        params: dict[str, str] = {}
        if operation is OperationKind.SUMMARIZE:
            params.update(length=self.summary_length, type=self.summary_type, format=self.summary_format)
        elif operation is OperationKind.TRANSLATE:
            params.update(source_language=self.source_language, target_language=self.target_language)
        elif operation is OperationKind.VALIDATE:
            params["strictness"] = self.validation_strictness
        elif operation is OperationKind.REWRITE:
            params.update(tone=self.rewrite_tone, style=self.rewrite_style, complexity=self.rewrite_complexity)
        if self.respond_in_target_language and operation is not OperationKind.TRANSLATE:
            params["respond_in"] = self.target_language
        return params

    def tier_profiles(self) -> dict[ProviderTier, TierProfile]:
        """Default tier profiles with the configured retry budget applied."""

        return {
            tier: replace(
                profile,
                retry_attempts=max(1, int(self.max_retries)),
                retry_base_delay=max(0.0, float(self.retry_base_delay)),
            )
            for tier, profile in DEFAULT_TIER_PROFILES.items()
        }


class SecretProvider(ABC):
    """Interface for encrypting and decrypting sensitive strings."""

    name: str = "unknown"

    @abstractmethod
    def encrypt(self, secret: str) -> str:
        """Return an encoded representation of ``secret`` suitable for storage."""

    @abstractmethod
    def decrypt(self, token: str) -> str:
        """Return the plaintext representation of ``token``."""


class FernetSecretProvider(SecretProvider):
    """Secret provider that uses a symmetric Fernet key stored on disk."""

    name = "fernet"

    def __init__(self, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_SETTINGS_DIR / "settings.key")
        self._fernet: Fernet | None = None

    def encrypt(self, secret: str) -> str:
        token = self._get_fernet().encrypt(secret.encode("utf-8"))
        return token.decode("ascii")

    def decrypt(self, token: str) -> str:
        raw = self._get_fernet().decrypt(token.encode("ascii"))
        return raw.decode("utf-8")

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


class SecretVault:
    """Encrypts and decrypts sensitive strings for settings persistence."""

    def __init__(
        self,
        *,
        key_path: Path | None = None,
        provider: SecretProvider | None = None,
    ) -> None:
        self._provider = provider or FernetSecretProvider(key_path)

    @property
    def strategy(self) -> str:
        return self._provider.name

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        payload = self._provider.encrypt(secret)
        return f"{self._provider.name}:{payload}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, payload = self._split_token(token)
        if prefix not in (None, self._provider.name):
            raise ValueError(f"Secret was encrypted with unknown backend {prefix!r}")
        try:
            return self._provider.decrypt(payload)
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc

    @staticmethod
    def _split_token(token: str) -> tuple[str | None, str]:
        if ":" not in token:
            return None, token
        prefix, payload = token.split(":", 1)
        return (prefix or None), payload


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH
        key_path = self._path.with_suffix(".key")
        self._vault = vault or SecretVault(key_path=key_path)

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    @property
    def vault(self) -> SecretVault:
        """Return the secret vault managing API key encryption."""

        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        needs_migration = False

        if payload:
            secrets: Dict[str, str] = {}
            for field_name, cipher_field in _SECRET_FIELDS.items():
                plaintext, migrated = self._decrypt_secret(
                    payload.pop(cipher_field, None), payload.pop(field_name, None), field_name=field_name
                )
                needs_migration = needs_migration or migrated
                if plaintext:
                    secrets[field_name] = plaintext
            data = _filter_fields(payload)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            if secrets:
                settings = replace(settings, **secrets)
            LOGGER.debug("Settings loaded from %s (%d field(s))", self._path, len(data))

        version_mismatch = bool(payload) and payload.get("version") != _SETTINGS_VERSION
        if needs_migration or version_mismatch:
            try:
                self.save(settings)
            except OSError as exc:
                LOGGER.warning("Failed to migrate settings payload: %s", exc)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")

        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = self._serialize(settings)
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _serialize(self, settings: Settings) -> Dict[str, Any]:
        data = asdict(settings)
        for field_name, cipher_field in _SECRET_FIELDS.items():
            secret = data.pop(field_name, "") or ""
            ciphertext = self._encrypt_secret_value(secret, field_name=field_name)
            if ciphertext:
                data[cipher_field] = ciphertext
        data["version"] = _SETTINGS_VERSION
        data["secret_backend"] = self._vault.strategy
        return data

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            payload = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings

    def _encrypt_secret_value(self, secret: str, *, field_name: str) -> str | None:
        if not secret:
            return None
        token = self._vault.encrypt(secret)
        LOGGER.debug("%s encrypted via %s backend", field_name, self._vault.strategy)
        return token

    def _decrypt_secret(
        self, ciphertext: str | None, legacy_plaintext: str | None, *, field_name: str
    ) -> tuple[str, bool]:
        if ciphertext:
            try:
                return self._vault.decrypt(ciphertext), False
            except ValueError as exc:
                LOGGER.warning("Unable to decrypt %s: %s", field_name, exc)
                return "", False
        if legacy_plaintext:
            LOGGER.info("Detected plaintext %s; migrating to encrypted storage.", field_name)
            return legacy_plaintext, True
        return "", False


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)} - set(_SECRET_FIELDS)
    return {key: value for key, value in payload.items() if key in allowed}


def _parse_tier(value: str | None) -> ProviderTier | None:
    if not value:
        return None
    try:
        return ProviderTier(value.strip().lower())
    except ValueError:
        LOGGER.warning("Unknown preferred tier %r; ignoring it", value)
        return None


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 8:
        return "***"
    return f"{stripped[:4]}…{stripped[-4:]}"
