"""
Message translation.

TranslationService translates message text into a target language named in
plain words ("Spanish", "french"). A provider callable can be configured
with CHAT_TRANSLATION_PROVIDER, a dotted path to
``callable(text, language_code) -> str``. Provider output is cleaned of
wrapping quotes and a leading "Translation:" label. When no provider is
configured, or it fails, or it returns nothing useful, a small phrase
dictionary is used; text it does not know is returned unchanged.

Usage:
    from chat.translation import TranslationService

    result = TranslationService.translate("Hello there", "Spanish")
    if result.success:
        text = result.data  # "hola"
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils.module_loading import import_string

from core.exceptions import ExternalServiceError
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from collections.abc import Callable

DEFAULT_LANGUAGE_CODE = "en"

LANGUAGE_CODES = {
    "spanish": "es",
    "french": "fr",
    "german": "de",
    "italian": "it",
    "portuguese": "pt",
    "russian": "ru",
    "chinese": "zh",
    "japanese": "ja",
    "korean": "ko",
    "arabic": "ar",
    "hindi": "hi",
    "english": "en",
}

FALLBACK_PHRASES = {
    "hello": {
        "es": "hola",
        "fr": "bonjour",
        "de": "hallo",
        "it": "ciao",
        "zh": "你好",
        "ja": "こんにちは",
        "ko": "안녕하세요",
        "ar": "مرحبا",
        "hi": "नमस्ते",
        "ru": "привет",
        "pt": "olá",
    },
    "how are you": {
        "es": "¿cómo estás?",
        "fr": "comment ça va?",
        "de": "wie geht es dir?",
        "it": "come stai?",
        "zh": "你好吗",
        "ja": "お元気ですか",
        "ko": "어떻게 지내세요?",
        "ar": "كيف حالك؟",
        "hi": "आप कैसे हैं?",
        "ru": "как дела?",
        "pt": "como você está?",
    },
    "thank you": {
        "es": "gracias",
        "fr": "merci",
        "de": "danke",
        "it": "grazie",
        "zh": "谢谢",
        "ja": "ありがとう",
        "ko": "감사합니다",
        "ar": "شكرا لك",
        "hi": "धन्यवाद",
        "ru": "спасибо",
        "pt": "obrigado",
    },
    "good morning": {
        "es": "buenos días",
        "fr": "bonjour",
        "de": "guten morgen",
        "it": "buongiorno",
        "zh": "早上好",
        "ja": "おはようございます",
        "ko": "좋은 아침",
        "ar": "صباح الخير",
        "hi": "सुप्रभात",
        "ru": "доброе утро",
        "pt": "bom dia",
    },
}

_WRAPPING_QUOTES = re.compile(r"^[\"']|[\"']$")
_LABEL = "Translation:"


def get_language_code(language: str) -> str:
    """Map a language name to its two-letter code (English if unknown)."""
    return LANGUAGE_CODES.get(language.strip().lower(), DEFAULT_LANGUAGE_CODE)


def clean_provider_output(text: str) -> str:
    """Strip wrapping quotes and anything up to a "Translation:" label."""
    text = _WRAPPING_QUOTES.sub("", text.strip())
    if _LABEL in text:
        text = text.split(_LABEL, 1)[1].strip()
    return text


def fallback_translation(text: str, language_code: str) -> str:
    """
    Look a phrase up in the built-in dictionary.

    A whole-text match wins; otherwise the first known phrase contained in
    the text is used. Unknown text is returned unchanged.
    """
    lowered = text.lower().strip()

    exact = FALLBACK_PHRASES.get(lowered, {}).get(language_code)
    if exact:
        return exact

    for phrase, translations in FALLBACK_PHRASES.items():
        if phrase in lowered and language_code in translations:
            return translations[language_code]

    return text


class TranslationService(BaseService):
    """
    Translates message text with an optional provider and a phrase fallback.

    Methods:
        get_provider: Configured provider callable, or None
        translate: Translate text into a named language
    """

    @classmethod
    def get_provider(cls) -> Callable[[str, str], str] | None:
        path = getattr(settings, "CHAT_TRANSLATION_PROVIDER", "")
        if not path:
            return None
        return import_string(path)

    @classmethod
    def translate(cls, content: str, target_language: str) -> ServiceResult[str]:
        """
        Translate content into target_language.

        Args:
            content: Text to translate
            target_language: Language name, case-insensitive

        Returns:
            ServiceResult with the translated text

        Error codes:
            VALIDATION_ERROR: Content or target language missing
        """
        validation = cls.validate_required(content=content, target_language=target_language)
        if validation is not None:
            return validation

        code = get_language_code(target_language)
        translated = ""

        provider = cls.get_provider()
        if provider is not None:
            try:
                raw = provider(content, code)
            except Exception as exc:
                cls.handle_exception(
                    ExternalServiceError(f"Translation provider failed: {exc}"),
                    "translation provider",
                    logging.WARNING,
                )
            else:
                translated = clean_provider_output(raw or "")

        if not translated.strip() or translated == content:
            translated = fallback_translation(content, code)

        cls.get_logger().debug(f"Translated {len(content)} chars to {code}")
        return ServiceResult.success(translated)
