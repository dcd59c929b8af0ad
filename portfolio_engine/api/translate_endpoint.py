"""
Portfolio Tracker — Translation Endpoint
─────────────────────────────────────────
/api/translate   {text, targetLanguage} → {originalText, translatedText, targetLanguage}

Error codes:
  400 MISSING_TEXT · TEXT_TOO_LONG · UNSUPPORTED_LANGUAGE
  429 RATE_LIMIT
  503 NETWORK_ERROR
  500 TRANSLATION_FAILED
"""

import logging
from typing import Optional, Tuple

from portfolio_engine import config
from portfolio_engine.errors import NetworkError, UpstreamRateLimited, ValidationError
from portfolio_engine.models.payloads import Translation
from portfolio_engine.services import Services

log = logging.getLogger("pt.api.translate")


def validate_translation(text, target: Optional[str]) -> Tuple[str, str]:
    if not isinstance(text, str) or not text:
        raise ValidationError("Text is required", code="MISSING_TEXT")
    if len(text) > config.TRANSLATE_MAX_CHARS:
        raise ValidationError(
            f"Text is too long. Maximum length is {config.TRANSLATE_MAX_CHARS} characters.",
            code="TEXT_TOO_LONG",
        )
    return text, (target or config.DEFAULT_LANGUAGE)


async def translate_text(services: Services, text, target: Optional[str]) -> dict:
    text, target = validate_translation(text, target)
    translated = await services.translator.translate(text, target)
    return Translation(text, translated, target).to_dict()


def translation_error(exc: Exception) -> Tuple[int, dict]:
    """Map a failure to (status, body)."""
    if isinstance(exc, ValidationError):
        return 400, {"error": exc.message, "code": exc.code}
    if isinstance(exc, NetworkError):
        status, message, code = 503, "Translation service is temporarily unavailable", "NETWORK_ERROR"
    elif isinstance(exc, UpstreamRateLimited):
        status, message, code = 429, "Too many translation requests. Please try again later", "RATE_LIMIT"
    else:
        status, message, code = 500, "Translation failed", "TRANSLATION_FAILED"
    log.error(f"Translation error: {exc}")
    return status, {"error": message, "code": code, "message": str(exc)}
