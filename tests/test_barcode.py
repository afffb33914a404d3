import io
from itertools import groupby

import pytest
from PIL import Image

from lunchbill.barcode import (
    BarcodeEncodingError,
    code39_modules,
    encode_code39,
    prepare_payload,
    render_code39,
)

# Reference Code 39 table written as bar/space widths (n = narrow, w = wide),
# kept independent of the encoder's bit table.
WIDTHS = {
    "nnnwwnwnn": "0", "wnnwnnnnw": "1", "nnwwnnnnw": "2", "wnwwnnnnn": "3",
    "nnnwwnnnw": "4", "wnnwwnnnn": "5", "nnwwwnnnn": "6", "nnnwnnwnw": "7",
    "wnnwnnwnn": "8", "nnwwnnwnn": "9", "wnnnnwnnw": "A", "nnwnnwnnw": "B",
    "wnwnnwnnn": "C", "nnnnwwnnw": "D", "wnnnwwnnn": "E", "nnwnwwnnn": "F",
    "nnnnnwwnw": "G", "wnnnnwwnn": "H", "nnwnnwwnn": "I", "nnnnwwwnn": "J",
    "wnnnnnnww": "K", "nnwnnnnww": "L", "wnwnnnnwn": "M", "nnnnwnnww": "N",
    "wnnnwnnwn": "O", "nnwnwnnwn": "P", "nnnnnnwww": "Q", "wnnnnnwwn": "R",
    "nnwnnnwwn": "S", "nnnnwnwwn": "T", "wwnnnnnnw": "U", "nwwnnnnnw": "V",
    "wwwnnnnnn": "W", "nwnnwnnnw": "X", "wwnnwnnnn": "Y", "nwwnwnnnn": "Z",
    "nwnnnnwnw": "-", "wwnnnnwnn": ".", "nwwnnnwnn": " ", "nwnwnwnnn": "$",
    "nwnwnnnwn": "/", "nwnnnwnwn": "+", "nnnwnwnwn": "%", "nwnnwnwnn": "*",
}


def decode_row(pixels):
    """Decode one scanline of dark (< 128) / light pixels into the symbol text."""

    runs = [(dark, len(list(group))) for dark, group in groupby(p < 128 for p in pixels)]
    while runs and not runs[0][0]:
        runs.pop(0)
    while runs and not runs[-1][0]:
        runs.pop()

    narrow = min(width for _, width in runs)
    chars = []
    for start in range(0, len(runs), 10):
        elements = runs[start : start + 9]
        key = "".join("w" if width > 1.5 * narrow else "n" for _, width in elements)
        chars.append(WIDTHS[key])
    return "".join(chars)


def scanline(image, y):
    width, _ = image.size
    return [image.getpixel((x, y)) for x in range(width)]


def open_png(data):
    return Image.open(io.BytesIO(data)).convert("L")


def test_encoded_png_decodes_back_to_content():
    image = open_png(encode_code39("ABC123"))

    assert image.size == (300, 50)
    assert decode_row(scanline(image, 5)) == "*ABC123*"


def test_full_alphabet_round_trips():
    content = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ-. $/+%"

    image = render_code39(content)

    assert image.size[0] > 300
    assert decode_row(scanline(image, 5)) == f"*{content}*"


def test_lowercase_is_encoded_as_uppercase():
    image = render_code39("abc-12")

    assert decode_row(scanline(image, 5)) == "*ABC-12*"


def test_existing_sentinels_are_not_doubled():
    assert code39_modules("*ABC*") == code39_modules("ABC")
    assert prepare_payload("*abc*") == "ABC"


def test_module_count():
    # Each character is 6 narrow + 3 wide (2 modules) = 12 modules, plus 1-module gaps.
    assert len(code39_modules("A")) == 3 * 12 + 2
    assert len(code39_modules("ABC123")) == 8 * 12 + 7


def test_quiet_zones_are_blank():
    image = render_code39("ABC123")
    row = scanline(image, 5)

    assert all(p >= 128 for p in row[:10])
    assert all(p >= 128 for p in row[-10:])


def test_caption_sits_below_the_bars():
    with_text = render_code39("ABC123")
    without_text = render_code39("ABC123", show_text=False)

    bars = sum(1 for p in scanline(with_text, 5) if p < 128)
    assert sum(1 for p in scanline(with_text, 49) if p < 128) < bars
    assert scanline(without_text, 49) == scanline(without_text, 5)


def test_custom_size_is_honoured():
    image = render_code39("1", width=400, height=80)

    assert image.size == (400, 80)
    assert decode_row(scanline(image, 10)) == "*1*"


@pytest.mark.parametrize("content", ["AB#12", "A*B", "", "**", "票號"])
def test_illegal_content_is_rejected(content):
    with pytest.raises(BarcodeEncodingError):
        encode_code39(content)


def test_error_names_the_offending_character():
    with pytest.raises(BarcodeEncodingError, match="'#'"):
        prepare_payload("AB#12")
