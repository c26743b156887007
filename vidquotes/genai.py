"""
Vid Quotes - Generative Image Service
Turns a text prompt into an image via the Gemini generateContent REST endpoint.
"""

import json
import time
import logging

import requests

from vidquotes.errors import ExternalServiceError, InputError

logger = logging.getLogger(__name__)

IMAGE_MODEL = "gemini-2.5-flash-image"
API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

PROMPT_TEMPLATE = (
    "Generate a high quality image of {prompt}, realistic style, high resolution, "
    "atmospheric, 8k, cinematic lighting"
)

MAX_RETRIES = 3
RETRY_STATUSES = {500, 502, 503, 429}   # server errors + rate limit
REQUEST_TIMEOUT = 120


def build_prompt(prompt: str) -> str:
    return PROMPT_TEMPLATE.format(prompt=prompt.strip())


def _extract_image(resp_json: dict) -> str:
    """First inline image of the first candidate, as a data URL."""
    try:
        parts = resp_json["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        raise ExternalServiceError("No image generated.")
    for part in parts:
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data"):
            mime = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            return f"data:{mime};base64,{inline['data']}"
    raise ExternalServiceError("No image generated.")


def generate_image(prompt: str, api_key: str, model: str = IMAGE_MODEL,
                   post=requests.post, sleep=time.sleep) -> str:
    """
    Generate an image for ``prompt``.

    Returns:
        a data URL (data:<mime>;base64,<payload>)

    Raises:
        InputError: empty prompt or missing API key
        ExternalServiceError: the call failed or returned no image
    """
    if not prompt or not prompt.strip():
        raise InputError("Please enter a prompt")
    if not api_key:
        raise InputError("No API key set for image generation")

    url = API_URL.format(model=model)
    headers = {"x-goog-api-key": api_key, "Content-Type": "application/json"}
    payload = {
        "contents": [{"parts": [{"text": build_prompt(prompt)}]}],
        "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
    }

    # ── API call with retry for transient server errors ──
    response = None
    for attempt in range(1, MAX_RETRIES + 1):
        wait = 3 * (2 ** (attempt - 1))  # 3s, 6s, 12s
        try:
            response = post(url, headers=headers, json=payload, timeout=REQUEST_TIMEOUT)
        except requests.exceptions.Timeout:
            if attempt < MAX_RETRIES:
                logger.warning("Attempt %d/%d timed out, waiting %ds...", attempt, MAX_RETRIES, wait)
                sleep(wait)
                continue
            raise ExternalServiceError(f"Request timed out ({REQUEST_TIMEOUT}s)")
        except requests.exceptions.ConnectionError as e:
            if attempt < MAX_RETRIES:
                logger.warning("Attempt %d/%d connection error, waiting %ds...",
                               attempt, MAX_RETRIES, wait)
                sleep(wait)
                continue
            raise ExternalServiceError(f"Connection error: {e}")

        if response.status_code == 200:
            break

        error_text = response.text[:500]
        if response.status_code in RETRY_STATUSES and attempt < MAX_RETRIES:
            logger.warning("Attempt %d/%d got %d, retrying in %ds...",
                           attempt, MAX_RETRIES, response.status_code, wait)
            sleep(wait)
            continue
        raise ExternalServiceError(f"API Error ({response.status_code}): {error_text}")

    try:
        resp_json = response.json()
    except ValueError:
        raise ExternalServiceError(f"Unexpected API response: {response.text[:300]}")

    logger.debug("Image response: %s", json.dumps(resp_json)[:300])
    image = _extract_image(resp_json)
    logger.info("Generated image for prompt '%s'", prompt.strip()[:60])
    return image
