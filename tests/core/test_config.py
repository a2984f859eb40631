"""Tests for application settings."""

import pytest

from core.config import Settings, get_settings


def make_settings(**overrides: object) -> Settings:
    return Settings(_env_file=None, **overrides)  # type: ignore[call-arg]


class TestProviderUrls:
    @pytest.mark.parametrize(
        "url",
        [
            "https://api.deepseek.com",
            "https://api.deepseek.com/",
            "https://api.deepseek.com/chat/completions",
            " https://api.deepseek.com/chat/completions/ ",
        ],
    )
    def test_completions_suffix_is_stripped(self, url: str) -> None:
        assert make_settings(DEEPSEEK_API_URL=url).DEEPSEEK_API_URL == (
            "https://api.deepseek.com"
        )

    def test_blank_gemini_base_url_is_none(self) -> None:
        assert make_settings(GEMINI_BASE_URL="   ").GEMINI_BASE_URL is None


class TestCredentials:
    def test_no_keys(self) -> None:
        assert make_settings().has_any_provider_credentials() is False

    def test_single_reasoning_key(self) -> None:
        settings = make_settings(OPENROUTER_API_KEY="or-key")
        assert settings.has_any_provider_credentials() is True


class TestGetSettings:
    def test_test_environment_uses_defaults(self) -> None:
        settings = get_settings()
        assert settings.ENVIRONMENT == "test"
        assert settings.PROVIDER_MAX_RETRIES == 0
        assert settings.OCR_REMOTE_CORRECTION is False

    def test_is_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_rejects_unknown_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "staging")
        with pytest.raises(ValueError, match="ENVIRONMENT must be"):
            get_settings()
