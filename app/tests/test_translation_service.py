"""
Unit tests for TranslationService and the Google Translate client

Tests cover:
- Fallback to the original text on provider failure and timeout
- Concurrent fan-out with per-language isolation
- Target language resolution from alliance members
- Redis translation cache
- Provider client error mapping
"""
import asyncio
import time
import httpx
import pytest
from unittest.mock import patch, AsyncMock
from models.alliance import Alliance
from models.enums import Language
from services.translation_service import TranslationService
from infrastructure.translation_client import GoogleTranslateClient
from exceptions.domain_exceptions import TranslationUnavailableException
from test_helpers import FakeTranslationProvider


@pytest.mark.unit
class TestTranslate:
    """Test cases for TranslationService.translate"""

    async def test_translate_success(self):
        provider = FakeTranslationProvider()
        service = TranslationService(provider, timeout_seconds=1)

        result = await service.translate("Merhaba", "en", "tr")

        assert result == "[en] Merhaba"
        assert provider.calls == [("Merhaba", "en", "tr")]

    async def test_same_language_skips_provider(self):
        provider = FakeTranslationProvider()
        service = TranslationService(provider, timeout_seconds=1)

        result = await service.translate("Merhaba", "tr", "tr")

        assert result == "Merhaba"
        assert provider.calls == []

    async def test_provider_error_returns_original(self):
        provider = FakeTranslationProvider(failing_languages=["en"])
        service = TranslationService(provider, timeout_seconds=1)

        result = await service.translate("Merhaba", "en", "tr")

        assert result == "Merhaba"

    async def test_timeout_returns_original(self):
        provider = FakeTranslationProvider(slow_languages=["de"], delay=0.5)
        service = TranslationService(provider, timeout_seconds=0.05)

        result = await service.translate("Merhaba", "de", "tr")

        assert result == "Merhaba"

    async def test_empty_provider_result_returns_original(self):
        provider = AsyncMock()
        provider.translate.return_value = ""
        service = TranslationService(provider, timeout_seconds=1)

        result = await service.translate("Merhaba", "en", "tr")

        assert result == "Merhaba"


@pytest.mark.unit
class TestFanOut:
    """Test cases for TranslationService.fan_out"""

    async def test_fan_out_dedupes_and_skips_source(self):
        provider = FakeTranslationProvider()
        service = TranslationService(provider, timeout_seconds=1)

        result = await service.fan_out("Merhaba", "tr", ["en", "de", "en", "tr", ""])

        assert result == {"de": "[de] Merhaba", "en": "[en] Merhaba"}
        assert provider.languages_called() == ["de", "en"]

    async def test_one_failing_language_does_not_affect_others(self):
        provider = FakeTranslationProvider(failing_languages=["de"])
        service = TranslationService(provider, timeout_seconds=1)

        result = await service.fan_out("Merhaba", "tr", ["en", "de", "fr"])

        assert result == {
            "de": "Merhaba",
            "en": "[en] Merhaba",
            "fr": "[fr] Merhaba",
        }

    async def test_no_targets(self):
        provider = FakeTranslationProvider()
        service = TranslationService(provider, timeout_seconds=1)

        assert await service.fan_out("Merhaba", "tr", ["tr"]) == {}
        assert provider.calls == []


@pytest.mark.unit
class TestTargetLanguages:
    """Test cases for resolve_target_languages"""

    async def test_member_languages_minus_source(self, alliance: Alliance):
        assert TranslationService.resolve_target_languages(alliance, "tr") == {"en", "de"}
        assert TranslationService.resolve_target_languages(alliance, "de") == {"tr", "en"}

    async def test_auto_translate_disabled(self, alliance: Alliance):
        alliance.auto_translate = False

        assert TranslationService.resolve_target_languages(alliance, "tr") == set()

    def test_supported_languages(self):
        languages = TranslationService.get_supported_languages()

        assert len(languages) == len(Language)
        assert languages[0].code == Language.TR
        assert TranslationService.is_language_supported("de") is True
        assert TranslationService.is_language_supported("xx") is False
        assert TranslationService.is_language_supported(None) is False


@pytest.mark.unit
class TestTranslationCache:
    """Test cases for the Redis translation cache"""

    async def test_cached_translation_skips_provider(self, redis_client):
        # Arrange
        provider = FakeTranslationProvider()
        service = TranslationService(provider, timeout_seconds=1)

        with patch('services.translation_service.get_optional_redis', return_value=redis_client):
            # Act
            first = await service.translate("Merhaba", "en", "tr")
            second = await service.translate("Merhaba", "en", "tr")

        # Assert
        assert first == second == "[en] Merhaba"
        assert len(provider.calls) == 1
        assert await redis_client.get(TranslationService._cache_key("Merhaba", "tr", "en")) == "[en] Merhaba"

    async def test_fallback_is_not_cached(self, redis_client):
        provider = FakeTranslationProvider(failing_languages=["en"])
        service = TranslationService(provider, timeout_seconds=1)

        with patch('services.translation_service.get_optional_redis', return_value=redis_client):
            await service.translate("Merhaba", "en", "tr")

        assert await redis_client.get(TranslationService._cache_key("Merhaba", "tr", "en")) is None

    async def test_cache_failure_is_ignored(self):
        broken_redis = AsyncMock()
        broken_redis.get.side_effect = ConnectionError("redis down")
        broken_redis.set.side_effect = ConnectionError("redis down")
        service = TranslationService(FakeTranslationProvider(), timeout_seconds=1)

        with patch('services.translation_service.get_optional_redis', return_value=broken_redis):
            result = await service.translate("Merhaba", "en", "tr")

        assert result == "[en] Merhaba"

    async def test_hanging_cache_does_not_stall_translation(self):
        # Arrange
        async def hang(*args, **kwargs):
            await asyncio.sleep(3)

        stuck_redis = AsyncMock()
        stuck_redis.get.side_effect = hang
        stuck_redis.set.side_effect = hang
        service = TranslationService(FakeTranslationProvider(), timeout_seconds=0.2)

        # Act
        started = time.monotonic()
        with patch('services.translation_service.get_optional_redis', return_value=stuck_redis):
            result = await service.translate("Merhaba", "en", "tr")
        elapsed = time.monotonic() - started

        # Assert
        assert result == "[en] Merhaba"
        assert elapsed < 1.0


def _client_with_transport(handler) -> GoogleTranslateClient:
    client = GoogleTranslateClient(api_key="test-key", url="https://translate.test/v2")
    client.client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


@pytest.mark.unit
class TestGoogleTranslateClient:
    """Test cases for the provider client"""

    async def test_translate_parses_response(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(dict(request.url.params))
            return httpx.Response(200, json={"data": {"translations": [{"translatedText": "Hello"}]}})

        client = _client_with_transport(handler)
        try:
            result = await client.translate("Merhaba", "en", "tr")
        finally:
            await client.disconnect()

        assert result == "Hello"
        assert seen["q"] == "Merhaba"
        assert seen["target"] == "en"
        assert seen["source"] == "tr"
        assert seen["key"] == "test-key"

    async def test_http_error_raises_unavailable(self):
        client = _client_with_transport(lambda request: httpx.Response(403, json={"error": "forbidden"}))
        try:
            with pytest.raises(TranslationUnavailableException) as exc_info:
                await client.translate("Merhaba", "en")
        finally:
            await client.disconnect()

        assert exc_info.value.status_code == 503

    async def test_malformed_payload_raises_unavailable(self):
        client = _client_with_transport(lambda request: httpx.Response(200, json={"data": {}}))
        try:
            with pytest.raises(TranslationUnavailableException):
                await client.translate("Merhaba", "en")
        finally:
            await client.disconnect()

    async def test_missing_api_key_raises_unavailable(self):
        client = GoogleTranslateClient(api_key="")

        with pytest.raises(TranslationUnavailableException):
            await client.translate("Merhaba", "en")
