# app/services/translation_service.py

import asyncio
import hashlib
import logging
from typing import Iterable, Optional, Protocol

from config.settings import settings
from infrastructure.redis_connection import get_optional_redis
from infrastructure.translation_client import translation_client
from models.alliance import Alliance
from models.enums import Language, LANGUAGE_NAMES
from schemas.user_schema import LanguageInfo

logger = logging.getLogger(__name__)


class TranslationProvider(Protocol):
    async def translate(self, text: str, target_language: str, source_language: Optional[str] = None) -> str: ...


class TranslationService:
    """
    Best-effort translation gateway.

    `translate` never raises: a timeout, provider error or missing API key is
    logged and the original text is returned, so a message is always
    deliverable even when the provider is down.
    """

    CACHE_KEY_PREFIX = "translation"

    def __init__(self, provider: TranslationProvider, timeout_seconds: Optional[float] = None):
        self.provider = provider
        self.timeout_seconds = timeout_seconds or settings.TRANSLATION_TIMEOUT_SECONDS
        # Cache reads and writes are bounded separately from the provider call
        self.cache_timeout_seconds = min(self.timeout_seconds, settings.TRANSLATION_CACHE_TIMEOUT_SECONDS)

    @classmethod
    def _cache_key(cls, text: str, source_language: Optional[str], target_language: str) -> str:
        digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
        return f"{cls.CACHE_KEY_PREFIX}:{source_language or 'auto'}:{target_language}:{digest}"

    async def _get_cached(self, key: str) -> Optional[str]:
        redis = get_optional_redis()
        if redis is None:
            return None
        try:
            return await asyncio.wait_for(redis.get(key), timeout=self.cache_timeout_seconds)
        except Exception as e:
            logger.warning(f"Translation cache read failed: {e!r}")
            return None

    async def _set_cached(self, key: str, value: str) -> None:
        redis = get_optional_redis()
        if redis is None:
            return
        try:
            await asyncio.wait_for(
                redis.set(key, value, ex=settings.TRANSLATION_CACHE_TTL_SECONDS),
                timeout=self.cache_timeout_seconds,
            )
        except Exception as e:
            logger.warning(f"Translation cache write failed: {e!r}")

    async def translate(self, text: str, target_language: str, source_language: Optional[str] = None) -> str:
        """
        Translate `text` into `target_language`, falling back to `text` on any failure.

        Args:
            text: Text to translate
            target_language: Target language code
            source_language: Language of `text` (None lets the provider detect it)

        Returns:
            Translated text, or the original text when translation is unavailable
        """
        if not text or target_language == source_language:
            return text

        cache_key = self._cache_key(text, source_language, target_language)
        cached = await self._get_cached(cache_key)
        if cached is not None:
            return cached

        try:
            translated = await asyncio.wait_for(
                self.provider.translate(text, target_language, source_language),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Translation to '{target_language}' timed out after {self.timeout_seconds}s, using original text")
            return text
        except Exception as e:
            logger.warning(f"Translation to '{target_language}' failed, using original text: {e}")
            return text

        if not isinstance(translated, str) or not translated:
            logger.warning(f"Empty translation to '{target_language}', using original text")
            return text

        await self._set_cached(cache_key, translated)
        return translated

    async def fan_out(self, text: str, source_language: str, target_languages: Iterable[str]) -> dict[str, str]:
        """
        Translate `text` into every target language concurrently.

        Targets are deduplicated and the source language is skipped. A failing
        language degrades to the original text without affecting the others.

        Returns:
            Mapping of language code to text
        """
        targets = sorted({lang for lang in target_languages if lang and lang != source_language})
        if not targets:
            return {}

        results = await asyncio.gather(
            *(self.translate(text, lang, source_language) for lang in targets)
        )
        return dict(zip(targets, results))

    @staticmethod
    def resolve_target_languages(alliance: Alliance, source_language: str) -> set[str]:
        """
        Distinct preferred languages of the alliance's current members, minus
        the message's source language. Empty when auto-translate is disabled.
        """
        if not alliance.auto_translate:
            return set()
        languages = {
            member.user.preferred_language
            for member in alliance.members
            if member.user is not None and member.user.preferred_language
        }
        languages.discard(source_language)
        return languages

    @staticmethod
    def is_language_supported(language: Optional[str]) -> bool:
        return language in {lang.value for lang in Language}

    @staticmethod
    def get_supported_languages() -> list[LanguageInfo]:
        return [LanguageInfo(code=lang, name=LANGUAGE_NAMES[lang]) for lang in Language]


# Shared instance
translation_service = TranslationService(translation_client)
