"""Unit tests for image decoding, quote files and the image repository."""

import base64
import os
import sys

import cv2
import numpy as np
import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from vidquotes.assets import (
    ImageRepository,
    decode_data_url,
    decode_image,
    decode_image_bytes,
    parse_quotes,
    read_quotes_file,
)
from vidquotes.errors import DecodeError, InputError


def png_bytes(image):
    ok, buf = cv2.imencode(".png", image)
    assert ok
    return buf.tobytes()


class TestDecodeImage:

    def test_bgr_becomes_rgb(self):
        bgr = np.zeros((4, 6, 3), dtype=np.uint8)
        bgr[..., 0] = 255  # blue in OpenCV order
        rgb = decode_image_bytes(png_bytes(bgr))
        assert rgb.shape == (4, 6, 3)
        assert tuple(rgb[0, 0]) == (0, 0, 255)

    def test_alpha_is_kept(self):
        bgra = np.zeros((3, 3, 4), dtype=np.uint8)
        bgra[..., 2] = 255
        bgra[..., 3] = 128
        rgba = decode_image_bytes(png_bytes(bgra))
        assert rgba.shape == (3, 3, 4)
        assert tuple(rgba[0, 0]) == (255, 0, 0, 128)

    def test_grayscale(self):
        gray = np.full((2, 2), 77, dtype=np.uint8)
        assert decode_image_bytes(png_bytes(gray)).shape == (2, 2, 3)

    def test_garbage(self):
        with pytest.raises(DecodeError):
            decode_image_bytes(b"definitely not an image")
        with pytest.raises(DecodeError):
            decode_image_bytes(b"")

    def test_missing_file(self, tmp_path):
        with pytest.raises(DecodeError):
            decode_image(str(tmp_path / "missing.png"))

    def test_from_file(self, tmp_path):
        path = tmp_path / "bg.png"
        path.write_bytes(png_bytes(np.zeros((5, 5, 3), dtype=np.uint8)))
        assert decode_image(str(path)).shape == (5, 5, 3)


class TestDataUrl:

    def test_round_trip(self):
        payload = base64.b64encode(png_bytes(np.zeros((2, 3, 3), dtype=np.uint8))).decode()
        assert decode_data_url(f"data:image/png;base64,{payload}").shape == (2, 3, 3)

    @pytest.mark.parametrize("url", [
        "https://example.com/a.png",
        "data:image/png,rawbytes",
        "data:image/png;base64,",
        "data:image/png;base64,@@@not-base64@@@",
    ])
    def test_rejects(self, url):
        with pytest.raises(DecodeError):
            decode_data_url(url)


class TestQuotes:

    def test_parse_quotes_skips_blank_lines(self):
        assert parse_quotes("  first \n\n\nsecond\n   \n") == ["first", "second"]

    def test_read_quotes_file_strips_bom(self, tmp_path):
        path = tmp_path / "quotes.txt"
        path.write_bytes("\ufeffHello\r\nWorld\r\n".encode("utf-8"))
        assert read_quotes_file(str(path)) == ["Hello", "World"]

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.txt"
        path.write_text("\n\n")
        with pytest.raises(InputError):
            read_quotes_file(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(InputError):
            read_quotes_file(str(tmp_path / "nope.txt"))


class TestImageRepository:

    def test_newest_first(self):
        repo = ImageRepository()
        a = repo.add("data:image/png;base64,AAAA", "forest")
        b = repo.add("data:image/png;base64,BBBB", "ocean")
        assert [e["id"] for e in repo.entries] == [b["id"], a["id"]]
        assert repo.get(a["id"])["prompt"] == "forest"

    def test_remove(self):
        repo = ImageRepository()
        a = repo.add("data:image/png;base64,AAAA", "forest")
        repo.remove(a["id"])
        assert len(repo) == 0
        assert repo.get(a["id"]) is None
