from typing import Optional

import requests

from backend import config
from backend.services.errors import RequestFailed
from backend.utils.log_setup import get_logger

logger = get_logger("gemini")


class GeminiClient:
    """Calls `models/{model}:generateContent` on the Gemini REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: str = config.GEMINI_API_URL,
        session: Optional[requests.Session] = None,
        timeout: float = config.REQUEST_TIMEOUT,
    ):
        self.api_key = api_key if api_key is not None else config.GEMINI_API_KEY
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def generate(self, model: str, prompt: str, generation_config: dict) -> dict:
        """POST one single-turn prompt and return the decoded response body."""
        url = f"{self.base_url}/models/{model}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        headers = {
            "x-goog-api-key": self.api_key,
            "content-type": "application/json",
        }

        logger.debug("Calling %s with prompt of %d chars", model, len(prompt))
        try:
            response = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("Gemini request to %s failed", model, exc_info=True)
            raise RequestFailed() from exc

        if response.status_code != 200:
            logger.error("Gemini %s returned HTTP %s: %s", model, response.status_code, response.text)
            raise RequestFailed()

        try:
            return response.json()
        except ValueError as exc:
            logger.error("Gemini %s returned a non-JSON body", model)
            raise RequestFailed() from exc


# -------------------------------------------------------
# RESPONSE HELPERS
# -------------------------------------------------------
def _first_part(body: dict) -> dict:
    candidates = body.get("candidates") or []
    if not candidates:
        return {}
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return parts[0] if parts else {}


def extract_text(body: dict) -> Optional[str]:
    """Text of the first candidate's first part, or None."""
    return _first_part(body).get("text")


def extract_inline_data(body: dict) -> Optional[str]:
    """Base64 `inlineData.data` of the first candidate's first part, or None."""
    inline = _first_part(body).get("inlineData") or {}
    return inline.get("data") or None
