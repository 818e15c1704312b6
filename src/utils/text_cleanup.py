"""Post-processing for raw Tesseract output.

Tesseract's ``chi_sim``/``chi_tra`` models emit a space between every pair
of Han characters ("知 识 库").  Mixed Chinese/English notes therefore need
the spaces between CJK glyphs removed while keeping the ones between Latin
words.  The helpers here also normalise line breaks and drop the runs of
blank lines the engine produces between blocks.
"""

import re

# CJK Unified Ideographs, extension A, compatibility ideographs, CJK
# punctuation and full-width forms.
_CJK = r"　-〿㐀-䶿一-鿿豈-﫿＀-￯"

_CJK_GAP = re.compile(rf"(?<=[{_CJK}])[ \t]+(?=[{_CJK}])")
_INLINE_SPACE = re.compile(r"[ \t]{2,}")
_BLANK_RUNS = re.compile(r"\n{3,}")


def join_cjk_spacing(text: str) -> str:
    """Remove the engine's artificial spaces between adjacent CJK glyphs."""
    return _CJK_GAP.sub("", text)


def clean_ocr_text(text: str) -> str:
    """Normalise whitespace in recognised text.

    Args:
        text: Raw text as rebuilt from the word stream.

    Returns:
        Trimmed text with CJK gaps removed, repeated spaces collapsed and
        at most one blank line between paragraphs.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = join_cjk_spacing(text)
    lines = [_INLINE_SPACE.sub(" ", line).strip() for line in text.split("\n")]
    return _BLANK_RUNS.sub("\n\n", "\n".join(lines)).strip()


def first_meaningful_line(text: str) -> str:
    """Return the first non-empty line of *text*, or ``""``."""
    for line in text.splitlines():
        stripped = line.strip()
        if stripped:
            return stripped
    return ""
