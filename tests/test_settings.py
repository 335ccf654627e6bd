"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from textrelay.ai.ai_types import OperationKind, ProviderTier
from textrelay.services.settings import SecretVault, Settings, SettingsStore, redact_secret


def _store(tmp_path: Path) -> SettingsStore:
    return SettingsStore(tmp_path / "settings.json", vault=SecretVault(key_path=tmp_path / "settings.key"))


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    assert _store(tmp_path).load() == Settings()


def test_save_and_load_roundtrip_encrypts_secrets(tmp_path: Path) -> None:
    store = _store(tmp_path)
    original = Settings(
        gemini_api_key="AIza-super-secret",
        local_enabled=True,
        local_base_url="http://localhost:1234",
        local_model="qwen2.5",
        local_api_key="lm-studio",
        summary_length="long",
        target_language="de",
        max_retries=3,
    )

    path = store.save(original)
    payload = json.loads(path.read_text(encoding="utf-8"))
    reloaded = _store(tmp_path).load()

    assert reloaded == original
    assert "gemini_api_key" not in payload
    assert payload["gemini_api_key_ciphertext"].startswith("fernet:")
    assert "AIza-super-secret" not in path.read_text(encoding="utf-8")
    assert payload["version"] == 1


def test_load_legacy_plaintext_api_key_migrates_to_ciphertext(tmp_path: Path) -> None:
    target = tmp_path / "settings.json"
    target.write_text(json.dumps({"gemini_api_key": "plain-key", "gemini_model": "gemini-1.5-pro"}), encoding="utf-8")

    loaded = _store(tmp_path).load()
    rewritten = json.loads(target.read_text(encoding="utf-8"))

    assert loaded.gemini_api_key == "plain-key"
    assert loaded.gemini_model == "gemini-1.5-pro"
    assert "gemini_api_key" not in rewritten
    assert "gemini_api_key_ciphertext" in rewritten


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text("{not json", encoding="utf-8")

    assert _store(tmp_path).load() == Settings()


def test_unknown_fields_are_ignored(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text(
        json.dumps({"version": 1, "cloud_first": True, "theme": "dark"}), encoding="utf-8"
    )

    assert _store(tmp_path).load().cloud_first is True


def test_env_overrides_take_precedence(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _store(tmp_path).save(Settings(gemini_api_key="stored", local_model="stored-model"))
    monkeypatch.setenv("TEXTRELAY_GEMINI_API_KEY", "env-key")
    monkeypatch.setenv("TEXTRELAY_LOCAL_MODEL", "env-model")

    overridden = _store(tmp_path).load()

    assert overridden.gemini_api_key == "env-key"
    assert overridden.local_model == "env-model"


def test_typed_env_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TEXTRELAY_CLOUD_FIRST", "yes")
    monkeypatch.setenv("TEXTRELAY_REQUEST_TIMEOUT", "12.5")
    monkeypatch.setenv("TEXTRELAY_MAX_RETRIES", "4")
    monkeypatch.setenv("TEXTRELAY_RETRY_BASE_DELAY", "not-a-number")

    settings = _store(tmp_path).load()

    assert settings.cloud_first is True
    assert settings.request_timeout == pytest.approx(12.5)
    assert settings.max_retries == 4
    assert settings.retry_base_delay == pytest.approx(2.0)


def test_load_applies_cli_overrides(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save(Settings(preferred_tier="built-in"))

    loaded = store.load(overrides={"preferred_tier": "cloud-primary", "cloud_first": None, "unknown": 1})

    assert loaded.preferred_tier == "cloud-primary"
    assert loaded.cloud_first is False


def test_provider_config_maps_credentials_and_preferences() -> None:
    settings = Settings(
        preferred_tier="cloud-local",
        gemini_api_key="g-key",
        local_base_url="http://localhost:11434",
        local_model="llama3",
        local_api_key="l-key",
        gemini_model="gemini-2.0-flash",
    )

    config = settings.provider_config()

    assert config.preferred_tier is ProviderTier.CLOUD_LOCAL
    assert config.credential_for(ProviderTier.CLOUD_PRIMARY) == "g-key"
    assert config.credential_for(ProviderTier.CLOUD_LOCAL) == "l-key"
    assert config.wants_local and config.local_configured
    assert config.cloud_model_name == "gemini-2.0-flash"


def test_unknown_preferred_tier_is_ignored() -> None:
    assert Settings(preferred_tier="quantum").provider_config().preferred_tier is None


def test_operation_params_follow_operation_defaults() -> None:
    settings = Settings(summary_length="short", rewrite_tone="casual", respond_in_target_language=True, target_language="fr")

    summary = settings.operation_params(OperationKind.SUMMARIZE)
    translate = settings.operation_params(OperationKind.TRANSLATE)
    rewrite = settings.operation_params(OperationKind.REWRITE)

    assert summary == {"length": "short", "type": "key-points", "format": "markdown", "respond_in": "fr"}
    assert translate == {"source_language": "auto", "target_language": "fr"}
    assert rewrite["tone"] == "casual"
    assert settings.operation_params(OperationKind.VALIDATE)["strictness"] == "medium"


def test_tier_profiles_apply_retry_settings() -> None:
    profiles = Settings(max_retries=3, retry_base_delay=0.5).tier_profiles()

    assert {profile.retry_attempts for profile in profiles.values()} == {3}
    assert {profile.retry_base_delay for profile in profiles.values()} == {0.5}


def test_key_file_is_reused_between_vaults(tmp_path: Path) -> None:
    key_path = tmp_path / "vault.key"
    token = SecretVault(key_path=key_path).encrypt("value")

    assert SecretVault(key_path=key_path).decrypt(token) == "value"
    assert SecretVault(key_path=key_path).encrypt("") == ""


def test_tampered_ciphertext_is_dropped(tmp_path: Path) -> None:
    store = _store(tmp_path)
    path = store.save(Settings(gemini_api_key="secret"))
    payload = json.loads(path.read_text(encoding="utf-8"))
    payload["gemini_api_key_ciphertext"] = "fernet:garbage"
    path.write_text(json.dumps(payload), encoding="utf-8")

    assert _store(tmp_path).load().gemini_api_key == ""


def test_redact_secret() -> None:
    assert redact_secret("") == ""
    assert redact_secret("short") == "***"
    assert redact_secret("AIzaSyExampleKey1234") == "AIza…1234"
