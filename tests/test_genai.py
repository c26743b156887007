"""Unit tests for the generative image client (HTTP is faked)."""

import os
import sys

import pytest
import requests

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from vidquotes.errors import ExternalServiceError, InputError
from vidquotes.genai import IMAGE_MODEL, MAX_RETRIES, build_prompt, generate_image

IMAGE_RESPONSE = {
    "candidates": [{
        "content": {"parts": [
            {"text": "Here is your image"},
            {"inlineData": {"mimeType": "image/jpeg", "data": "QUJD"}},
        ]},
    }],
}


class FakeResponse:

    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakePost:

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def __call__(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestGenerateImage:

    def test_returns_data_url(self):
        post = FakePost(FakeResponse(body=IMAGE_RESPONSE))
        url = generate_image("misty forest", "key-123", post=post, sleep=lambda s: None)
        assert url == "data:image/jpeg;base64,QUJD"
        call = post.calls[0]
        assert IMAGE_MODEL in call["url"]
        assert call["headers"]["x-goog-api-key"] == "key-123"
        assert call["json"]["contents"][0]["parts"][0]["text"] == build_prompt("misty forest")

    def test_prompt_template(self):
        assert build_prompt("  a lake ") == (
            "Generate a high quality image of a lake, realistic style, high resolution, "
            "atmospheric, 8k, cinematic lighting"
        )

    def test_retries_transient_status(self):
        sleeps = []
        post = FakePost(FakeResponse(503, text="busy"), FakeResponse(body=IMAGE_RESPONSE))
        generate_image("x", "k", post=post, sleep=sleeps.append)
        assert sleeps == [3]
        assert len(post.calls) == 2

    def test_retries_connection_errors_then_gives_up(self):
        sleeps = []
        post = FakePost(*[requests.exceptions.ConnectionError("down")] * MAX_RETRIES)
        with pytest.raises(ExternalServiceError):
            generate_image("x", "k", post=post, sleep=sleeps.append)
        assert sleeps == [3, 6]

    def test_client_error_is_not_retried(self):
        post = FakePost(FakeResponse(400, text="bad key"))
        with pytest.raises(ExternalServiceError) as exc:
            generate_image("x", "k", post=post, sleep=lambda s: None)
        assert "400" in str(exc.value)
        assert len(post.calls) == 1

    def test_no_image_in_response(self):
        body = {"candidates": [{"content": {"parts": [{"text": "sorry"}]}}]}
        post = FakePost(FakeResponse(body=body))
        with pytest.raises(ExternalServiceError, match="No image generated"):
            generate_image("x", "k", post=post, sleep=lambda s: None)

    def test_input_validation(self):
        with pytest.raises(InputError):
            generate_image("   ", "k", post=FakePost())
        with pytest.raises(InputError):
            generate_image("x", "", post=FakePost())
