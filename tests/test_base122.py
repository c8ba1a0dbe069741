"""Tests for the base-122 encoding and the NH07 image carrier."""

from __future__ import annotations

import io

import pytest
from PIL import Image

from nahan.base122 import ESCAPE, ILLEGAL, decode_base122, encode_base122
from nahan.image import LsbImageCarrier, hide_in_image, reveal_from_image
from nahan.utils import CapacityExceededError, StegoDecodeError


class TestBase122:
    """Binary-to-text encoding."""

    def test_empty(self) -> None:
        assert encode_base122(b"") == ""
        assert decode_base122("") == b""

    def test_roundtrip_all_bytes(self) -> None:
        data = bytes(range(256)) * 3
        assert decode_base122(encode_base122(data)) == data

    def test_null_byte_is_escaped(self) -> None:
        # 0x00 -> groups 0000000 and 0 (left-aligned), both illegal
        assert encode_base122(b"\x00") == "\xc2\x80\xc2\x80"
        assert decode_base122("\xc2\x80\xc2\x80") == b"\x00"

    def test_output_alphabet(self) -> None:
        text = encode_base122(bytes(range(256)))
        for ch in text:
            code = ord(ch)
            assert code < 0x100
            if code < 0x80:
                assert code not in ILLEGAL

    def test_invalid_character(self) -> None:
        with pytest.raises(StegoDecodeError, match="Invalid base122 character"):
            decode_base122("abc\u0100")

    def test_dangling_escape(self) -> None:
        with pytest.raises(StegoDecodeError, match="dangling escape"):
            decode_base122("abc" + chr(ESCAPE))

    def test_invalid_escape(self) -> None:
        with pytest.raises(StegoDecodeError, match="Invalid base122 escape"):
            decode_base122(chr(ESCAPE) + "A")


def _solid_png(side: int) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (side, side), (120, 200, 40)).save(buf, format="PNG")
    return buf.getvalue()


class TestImageCarrier:
    """LSB embedding of base-122 text in PNG images."""

    def test_roundtrip_generated_carrier(self) -> None:
        carrier = LsbImageCarrier()
        png = carrier.embed("hello \xc2\x80 world")
        assert carrier.extract(png) == "hello \xc2\x80 world"

    def test_generated_carrier_size(self) -> None:
        png = LsbImageCarrier().create_carrier(64)
        with Image.open(io.BytesIO(png)) as im:
            assert im.size == (500, 500)

    def test_capacity(self) -> None:
        # 10x10 pixels * 6 bits = 75 bytes, minus the length field
        assert LsbImageCarrier().capacity(_solid_png(10)) == 71

    def test_too_small(self) -> None:
        with pytest.raises(CapacityExceededError):
            LsbImageCarrier().embed("x" * 100, _solid_png(10))

    def test_supplied_cover_is_changed_slightly(self) -> None:
        cover = _solid_png(20)
        png = LsbImageCarrier().embed("hi", cover)
        with Image.open(io.BytesIO(png)) as im:
            pixel = im.getpixel((19, 19))
        assert pixel == (120, 200, 40)

    def test_hide_and_reveal(self) -> None:
        payload = bytes(range(256))
        assert reveal_from_image(hide_in_image(payload)) == payload

    def test_clean_image(self) -> None:
        with pytest.raises(StegoDecodeError):
            reveal_from_image(_solid_png(30))

    def test_not_an_image(self) -> None:
        with pytest.raises(StegoDecodeError, match="not a readable image"):
            reveal_from_image(b"definitely not a png")

    def test_oversized_image(self, monkeypatch: pytest.MonkeyPatch) -> None:
        png = _solid_png(30)
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
        with pytest.raises(StegoDecodeError, match="not a readable image"):
            reveal_from_image(png)
