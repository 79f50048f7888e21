"""Tests for configuration management."""
import pytest


def test_settings_loads_required_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Settings should load GCP_PROJECT_ID and VERTEX_AI_LOCATION from env."""
    monkeypatch.setenv("GCP_PROJECT_ID", "my-project")
    monkeypatch.setenv("VERTEX_AI_LOCATION", "us-central1")

    from emoji_fusion.core.config import Settings
    settings = Settings()

    assert settings.gcp_project_id == "my-project"
    assert settings.vertex_ai_location == "us-central1"


def test_settings_has_default_values(monkeypatch: pytest.MonkeyPatch) -> None:
    """Settings should provide sensible defaults for optional fields."""
    monkeypatch.delenv("VERTEX_AI_LOCATION", raising=False)
    from emoji_fusion.core.config import Settings
    settings = Settings(_env_file=None)

    assert settings.vertex_ai_location == "global"
    assert settings.fusion_model == "gemini-2.0-flash-preview-image-generation"
    assert settings.daily_fusion_limit == 3
    assert settings.usage_store == "memory"
    assert settings.usage_collection == "fusion_usage"
    assert settings.request_timeout_ms is None
    assert settings.app_name == "emoji-fusion"
    assert settings.backend_port == 8000
    assert settings.frontend_port == 3000


def test_settings_overrides_fusion_limits(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DAILY_FUSION_LIMIT", "5")
    monkeypatch.setenv("MAX_IMAGE_BYTES", "1024")
    monkeypatch.setenv("USAGE_STORE", "firestore")

    from emoji_fusion.core.config import Settings
    settings = Settings(_env_file=None)

    assert settings.daily_fusion_limit == 5
    assert settings.max_image_bytes == 1024
    assert settings.usage_store == "firestore"


def test_settings_rejects_unknown_usage_store(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("USAGE_STORE", "redis")

    from pydantic import ValidationError
    from emoji_fusion.core.config import Settings

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_settings_missing_required_field(monkeypatch: pytest.MonkeyPatch) -> None:
    """Settings should raise an error when required fields are missing and no .env file."""
    monkeypatch.delenv("GCP_PROJECT_ID", raising=False)

    from pydantic import ValidationError
    from emoji_fusion.core.config import Settings

    # Pass _env_file=None to bypass .env file reading
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
