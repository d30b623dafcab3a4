# app/infrastructure/translation_client.py

from typing import Optional
import httpx
from config.settings import settings
from exceptions.domain_exceptions import TranslationUnavailableException
import logging

logger = logging.getLogger(__name__)


class GoogleTranslateClient:
    """Google Cloud Translation v2 REST client.

    The only place in the translation path that performs network I/O. Every
    failure (missing key, HTTP error, malformed payload, network error) is
    raised as TranslationUnavailableException; the translation service decides
    what to do about it.
    """

    def __init__(self, api_key: Optional[str] = None, url: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_TRANSLATE_API_KEY
        self.url = url or settings.GOOGLE_TRANSLATE_URL
        self.client: httpx.AsyncClient | None = None

    async def connect(self):
        """Open the shared HTTP client"""
        if self.client is not None:
            return
        self.client = httpx.AsyncClient(timeout=settings.TRANSLATION_TIMEOUT_SECONDS)
        if not self.api_key:
            logger.warning("GOOGLE_TRANSLATE_API_KEY is not set, messages will be delivered untranslated")

    async def disconnect(self):
        if self.client:
            await self.client.aclose()
            self.client = None

    async def translate(self, text: str, target_language: str, source_language: Optional[str] = None) -> str:
        """
        Translate `text` into `target_language`.

        Raises:
            TranslationUnavailableException: On any provider failure
        """
        if not self.api_key:
            raise TranslationUnavailableException("Translation API key is not configured")

        params = {
            "key": self.api_key,
            "q": text,
            "target": target_language,
            "format": "text",
        }
        if source_language:
            params["source"] = source_language

        try:
            if self.client is not None:
                response = await self.client.post(self.url, params=params)
            else:
                async with httpx.AsyncClient(timeout=settings.TRANSLATION_TIMEOUT_SECONDS) as client:
                    response = await client.post(self.url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise TranslationUnavailableException(
                f"Translation provider returned HTTP {e.response.status_code}",
                details={"target": target_language}
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise TranslationUnavailableException(
                f"Translation provider request failed: {e}",
                details={"target": target_language}
            ) from e

        try:
            return payload["data"]["translations"][0]["translatedText"]
        except (KeyError, IndexError, TypeError) as e:
            raise TranslationUnavailableException(
                "Unexpected translation provider response",
                details={"target": target_language}
            ) from e


# Shared instance
translation_client = GoogleTranslateClient()
