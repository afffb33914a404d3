"""
Code 39 barcode rendering.

``encode_code39`` turns a content string into PNG bytes: the start/stop
sentinels are added when missing, bars are drawn on integer pixel modules
(wide = 2 x narrow) centred between the quiet zones, and a human-readable
caption is printed beneath the bars.
"""

from __future__ import annotations

import io
from itertools import groupby
from typing import Dict, Tuple

from PIL import Image, ImageDraw, ImageFont

from .schema import CODE39_ALPHABET, CODE39_SENTINEL, first_illegal_code39_char

DEFAULT_WIDTH = 300
DEFAULT_HEIGHT = 50
DEFAULT_MARGIN = 10
NARROW_MODULES = 1
WIDE_MODULES = 2
MIN_BAR_HEIGHT = 10

# Nine elements per character (bar, space, bar, ...), most significant bit
# first; a set bit marks a wide element. Exactly three elements are wide.
_PATTERNS: Tuple[int, ...] = (
    0x034, 0x121, 0x061, 0x160, 0x031, 0x130, 0x070, 0x025, 0x124, 0x064,  # 0-9
    0x109, 0x049, 0x148, 0x019, 0x118, 0x058, 0x00D, 0x10C, 0x04C, 0x01C,  # A-J
    0x103, 0x043, 0x142, 0x013, 0x112, 0x052, 0x007, 0x106, 0x046, 0x016,  # K-T
    0x181, 0x0C1, 0x1C0, 0x091, 0x190, 0x0D0, 0x085, 0x184, 0x0C4, 0x0A8,  # U-Z - . space $
    0x0A2, 0x08A, 0x02A,  # / + %
    0x094,  # *
)
CODE39_PATTERNS: Dict[str, int] = dict(zip(CODE39_ALPHABET + CODE39_SENTINEL, _PATTERNS))


class BarcodeEncodingError(ValueError):
    """Raised when content cannot be represented as a Code 39 symbol."""


def prepare_payload(content: str) -> str:
    """Strip existing sentinels, reject illegal characters and upper-case the rest."""

    if content is None:
        raise BarcodeEncodingError("Barcode content is required.")
    text = str(content)
    if len(text) >= 2 and text.startswith(CODE39_SENTINEL) and text.endswith(CODE39_SENTINEL):
        text = text[1:-1]
    if not text:
        raise BarcodeEncodingError("Barcode content is empty.")

    illegal = first_illegal_code39_char(text)
    if illegal is not None:
        raise BarcodeEncodingError(f"Character '{illegal}' cannot be encoded in Code 39: {content!r}")
    return text.upper()


def code39_modules(content: str) -> str:
    """Module pattern for the full symbol ("1" = bar, "0" = space), sentinels included."""

    symbol = CODE39_SENTINEL + prepare_payload(content) + CODE39_SENTINEL
    parts = []
    for index, char in enumerate(symbol):
        if index:
            parts.append("0" * NARROW_MODULES)  # inter-character gap
        pattern = CODE39_PATTERNS[char]
        for position in range(9):
            wide = (pattern >> (8 - position)) & 1
            colour = "1" if position % 2 == 0 else "0"
            parts.append(colour * (WIDE_MODULES if wide else NARROW_MODULES))
    return "".join(parts)


def render_code39(
    content: str,
    *,
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    margin: int = DEFAULT_MARGIN,
    show_text: bool = True,
) -> Image.Image:
    """Render ``content`` to a greyscale Pillow image."""

    payload = prepare_payload(content)
    modules = code39_modules(payload)

    full_width = len(modules) + 2 * margin
    output_width = max(width, full_width)
    scale = output_width // full_width
    left = (output_width - len(modules) * scale) // 2

    font = None
    bar_height = height
    if show_text:
        font = ImageFont.load_default()
        measure = ImageDraw.Draw(Image.new("L", (1, 1)))
        bbox = measure.textbbox((0, 0), payload, font=font)
        band = (bbox[3] - bbox[1]) + 4
        if height - band >= MIN_BAR_HEIGHT:
            bar_height = height - band
        else:
            font = None

    image = Image.new("L", (output_width, height), 255)
    draw = ImageDraw.Draw(image)

    x = left
    for colour, run in groupby(modules):
        run_width = len(list(run)) * scale
        if colour == "1":
            draw.rectangle([x, 0, x + run_width - 1, bar_height - 1], fill=0)
        x += run_width

    if font is not None:
        bbox = draw.textbbox((0, 0), payload, font=font)
        text_x = (output_width - (bbox[2] - bbox[0])) // 2 - bbox[0]
        text_y = bar_height + 2 - bbox[1]
        draw.text((text_x, text_y), payload, fill=0, font=font)

    return image


def encode_code39(
    content: str,
    *,
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    margin: int = DEFAULT_MARGIN,
    show_text: bool = True,
) -> bytes:
    """Encode ``content`` as a Code 39 symbol and return PNG bytes."""

    image = render_code39(content, width=width, height=height, margin=margin, show_text=show_text)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


__all__ = [
    "BarcodeEncodingError",
    "CODE39_PATTERNS",
    "code39_modules",
    "encode_code39",
    "prepare_payload",
    "render_code39",
]
