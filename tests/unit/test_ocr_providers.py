"""Unit tests for the Tesseract OCR provider adapter."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from src.models.ocr import OCROptions
from src.providers.ocr.tesseract_provider import TesseractOCRProvider
from src.utils.errors import OCRExtractionError
from src.utils.image_preprocessor import ImagePreprocessor
from tests.conftest import make_image_bytes

# Two lines in block 1, one line in block 2, plus layout-only rows (-1).
_MOCK_OCR_DATA = {
    "text": ["", "Hello", "world", "Second", "", "Next", "   "],
    "conf": [-1, 90, 80, 70, -1, 60, 50],
    "block_num": [1, 1, 1, 1, 2, 2, 2],
    "par_num": [0, 1, 1, 1, 0, 1, 1],
    "line_num": [0, 1, 1, 2, 0, 1, 1],
    "left": [0, 20, 140, 20, 0, 20, 200],
    "top": [0, 20, 20, 80, 0, 200, 200],
    "width": [0, 100, 100, 120, 0, 80, 10],
    "height": [0, 40, 40, 40, 0, 40, 40],
}


def _provider(scale: float = 2.0) -> TesseractOCRProvider:
    preprocessor = MagicMock(spec=ImagePreprocessor)
    original = Image.new("RGB", (400, 300), (255, 255, 255))
    preprocessor.load.return_value = original
    preprocessor.prepare.return_value = (original.convert("L"), scale)
    return TesseractOCRProvider(preprocessor)


class TestTesseractOCRProvider:
    def test_get_provider_name(self) -> None:
        assert TesseractOCRProvider(ImagePreprocessor()).get_provider_name() == "tesseract"

    def test_build_config(self) -> None:
        assert TesseractOCRProvider.build_config(OCROptions()) == "--oem 1"
        config = TesseractOCRProvider.build_config(
            OCROptions(psm=6, oem=3, whitelist="0123456789")
        )
        assert config == "--oem 3 --psm 6 -c tessedit_char_whitelist=0123456789"

    @pytest.mark.asyncio
    async def test_extract_text_groups_words_lines_paragraphs(self) -> None:
        provider = _provider(scale=2.0)

        with patch("src.providers.ocr.tesseract_provider.pytesseract") as mock_tess:
            mock_tess.image_to_data.return_value = _MOCK_OCR_DATA
            mock_tess.Output.DICT = "dict"
            result = await provider.extract_text(b"raw", OCROptions(language="eng"))

        assert result.provider_used == "tesseract"
        assert result.language == "eng"
        assert result.text == "Hello world\nSecond\nNext"
        assert result.confidence == 75.0
        assert (result.image_width, result.image_height) == (400, 300)

        assert [w.text for w in result.words] == ["Hello", "world", "Second", "Next"]
        hello = result.words[0]
        # Coordinates are mapped back onto the original image.
        assert (hello.x, hello.y, hello.width, hello.height) == (10, 10, 50, 20)
        assert hello.confidence == pytest.approx(0.9)

        first_line = result.lines[0]
        assert first_line.text == "Hello world"
        assert (first_line.x, first_line.width) == (10, 110)
        assert first_line.confidence == pytest.approx(0.85)

        assert [p.text for p in result.paragraphs] == ["Hello world\nSecond", "Next"]

        call = mock_tess.image_to_data.call_args
        assert call.kwargs["lang"] == "eng"
        assert call.kwargs["config"] == "--oem 1"

    @pytest.mark.asyncio
    async def test_cjk_spacing_removed(self) -> None:
        provider = _provider(scale=1.0)
        data = {
            "text": ["知", "识", "库", "v2"],
            "conf": [91, 89, 90, 70],
            "block_num": [1, 1, 1, 1],
            "par_num": [1, 1, 1, 1],
            "line_num": [1, 1, 1, 1],
            "left": [0, 20, 40, 70],
            "top": [0, 0, 0, 0],
            "width": [18, 18, 18, 20],
            "height": [20, 20, 20, 20],
        }
        with patch("src.providers.ocr.tesseract_provider.pytesseract") as mock_tess:
            mock_tess.image_to_data.return_value = data
            result = await provider.extract_text(b"raw", OCROptions(language="chi_sim+eng"))

        assert result.text == "知识库 v2"

    @pytest.mark.asyncio
    async def test_no_words_gives_zero_confidence(self) -> None:
        provider = _provider()
        empty = {key: [] for key in _MOCK_OCR_DATA}
        with patch("src.providers.ocr.tesseract_provider.pytesseract") as mock_tess:
            mock_tess.image_to_data.return_value = empty
            result = await provider.extract_text(b"raw", OCROptions())

        assert result.text == ""
        assert result.confidence == 0.0
        assert result.is_empty

    @pytest.mark.asyncio
    async def test_extract_text_engine_failure(self) -> None:
        provider = _provider()
        with patch("src.providers.ocr.tesseract_provider.pytesseract") as mock_tess:
            mock_tess.image_to_data.side_effect = RuntimeError("Tesseract crashed")
            with pytest.raises(OCRExtractionError) as exc_info:
                await provider.extract_text(b"raw", OCROptions())

        assert exc_info.value.message == "Image text recognition failed"
        assert exc_info.value.provider_name == "tesseract"

    @pytest.mark.asyncio
    async def test_unreadable_image(self) -> None:
        provider = TesseractOCRProvider(ImagePreprocessor())
        with pytest.raises(OCRExtractionError, match="unreadable image"):
            await provider.extract_text(b"definitely not an image", OCROptions())

    @pytest.mark.asyncio
    async def test_real_preprocessor_passes_prepared_image(self) -> None:
        provider = TesseractOCRProvider(ImagePreprocessor())
        with patch("src.providers.ocr.tesseract_provider.pytesseract") as mock_tess:
            mock_tess.image_to_data.return_value = {key: [] for key in _MOCK_OCR_DATA}
            result = await provider.extract_text(make_image_bytes(200, 100), OCROptions())

        prepared = mock_tess.image_to_data.call_args.args[0]
        assert prepared.mode == "L"
        assert prepared.size == (1200, 600)
        assert (result.image_width, result.image_height) == (200, 100)

    def test_is_available_true(self) -> None:
        provider = TesseractOCRProvider(ImagePreprocessor())
        with patch("src.providers.ocr.tesseract_provider.pytesseract") as mock_tess:
            mock_tess.get_tesseract_version.return_value = "5.3.0"
            assert provider.is_available() is True
            assert provider.get_version() == "5.3.0"

    def test_is_available_false_when_binary_missing(self) -> None:
        provider = TesseractOCRProvider(ImagePreprocessor())
        with patch("src.providers.ocr.tesseract_provider.pytesseract") as mock_tess:
            mock_tess.get_tesseract_version.side_effect = OSError("tesseract not found")
            assert provider.is_available() is False
            assert provider.get_version() == ""

    def test_custom_tesseract_cmd(self) -> None:
        with patch("src.providers.ocr.tesseract_provider.pytesseract") as mock_tess:
            TesseractOCRProvider(ImagePreprocessor(), tesseract_cmd="/opt/bin/tesseract")
            assert mock_tess.pytesseract.tesseract_cmd == "/opt/bin/tesseract"
