"""Image preprocessing for OCR on uploaded note images.

Uploaded images are mostly screenshots, scanned pages and phone photos of
printed or handwritten notes.  Tesseract is sensitive to three things in
that material: colour noise, low resolution and washed-out contrast.  The
preprocessing chain here addresses each in turn with Pillow only:

    1. grayscale          : drop colour, keep luminance
    2. resize_for_ocr     : upscale small images so glyphs are 20-30 px tall,
                            downscale huge ones to keep recognition fast
    3. enhance_contrast   : autocontrast + mild sharpening

The scale factor applied in step 2 is returned alongside the processed
image so word bounding boxes can be mapped back onto the original pixel
grid.
"""

import io

from PIL import Image, ImageEnhance, ImageOps, UnidentifiedImageError


class ImagePreprocessor:
    """Prepares uploaded images for Tesseract recognition."""

    def __init__(self, max_dim: int = 3000, min_dim: int = 1200) -> None:
        self._max_dim = max_dim
        self._min_dim = min_dim

    def load(self, image_bytes: bytes) -> Image.Image:
        """Open raw bytes as a PIL image, applying EXIF orientation.

        Raises:
            ValueError: If the bytes are not a decodable image.
        """
        try:
            image = Image.open(io.BytesIO(image_bytes))
            image.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise ValueError(f"Cannot decode image: {exc}") from exc
        return ImageOps.exif_transpose(image)

    def prepare(self, image: Image.Image) -> tuple[Image.Image, float]:
        """Run the full chain and return ``(processed_image, scale)``.

        Pipeline order: grayscale -> resize -> enhance contrast.
        """
        gray = self.to_grayscale(image)
        resized, scale = self.resize_for_ocr(gray)
        return self.enhance_contrast(resized), scale

    @staticmethod
    def to_grayscale(image: Image.Image) -> Image.Image:
        # Flatten transparency onto white first; transparent PNG screenshots
        # otherwise turn into black text on black.
        if image.mode in ("RGBA", "LA", "P"):
            rgba = image.convert("RGBA")
            background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
            image = Image.alpha_composite(background, rgba)
        return image.convert("L")

    def resize_for_ocr(self, image: Image.Image) -> tuple[Image.Image, float]:
        """Resize so the largest dimension sits between min_dim and max_dim.

        Preserves aspect ratio.

        Returns:
            The resized image and the scale factor applied (1.0 when unchanged).
        """
        width, height = image.size
        largest = max(width, height)
        if largest == 0:
            return image, 1.0

        if largest < self._min_dim:
            scale = self._min_dim / largest
        elif largest > self._max_dim:
            scale = self._max_dim / largest
        else:
            return image, 1.0

        new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
        return image.resize(new_size, Image.LANCZOS), scale

    @staticmethod
    def enhance_contrast(image: Image.Image) -> Image.Image:
        """Stretch the histogram and sharpen edges slightly."""
        image = ImageOps.autocontrast(image, cutoff=1)
        return ImageEnhance.Sharpness(image).enhance(1.5)


def read_image_size(image_bytes: bytes) -> tuple[int, int] | None:
    """Return ``(width, height)`` of an image payload, or None if undecodable."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            return image.size
    except (UnidentifiedImageError, OSError):
        return None
