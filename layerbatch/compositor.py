"""
LayerCompositor - Stacks layer images for one item and encodes the result.
"""

import io
import logging
import os
from pathlib import Path
from typing import Optional

from PIL import Image

from .errors import ItemRenderError, LayerMissing
from .items import Item


class LayerCompositor:
    """
    Renders items by alpha-compositing their layers with Pillow.
    """

    def __init__(
        self,
        image_format: str = 'png',
        quality: int = 90,
        compression_level: int = 6,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize compositor.

        Args:
            image_format: Output format: 'png', 'jpg' or 'webp'
            quality: JPEG/WebP quality (default: 90)
            compression_level: PNG zlib level 0-9 (default: 6)
            logger: Optional logger instance
        """
        self.image_format = image_format
        self.quality = quality
        self.compression_level = compression_level
        self.logger = logger or logging.getLogger(__name__)

    @property
    def extension(self) -> str:
        return self.image_format

    def compose(self, item: Item) -> Image.Image:
        """
        Stack the item's layers bottom to top.

        Missing layer files are skipped with a warning; the first layer that
        exists becomes the base canvas.

        Raises:
            LayerMissing: If none of the item's layer files exist
            ItemRenderError: If the item has no layers at all
        """
        if not item.layers:
            raise ItemRenderError(item.index, "item has no layers")

        canvas = None
        first_missing = None
        for layer_name, source in item.layers:
            if not os.path.exists(source):
                missing = LayerMissing(item.index, layer_name, source)
                self.logger.warning(f"{missing}, skipping layer")
                first_missing = first_missing or missing
                continue

            with Image.open(source) as img:
                layer = img.convert('RGBA')

            if canvas is None:
                canvas = layer
            else:
                canvas.alpha_composite(self._fit_to(layer, canvas.size))

        if canvas is None:
            raise first_missing
        return canvas

    def encode(self, img: Image.Image) -> bytes:
        """Encode a composed RGBA image in the configured format."""
        output = io.BytesIO()

        if self.image_format == 'png':
            img.save(output, format='PNG', compress_level=self.compression_level)
        elif self.image_format == 'jpg':
            self._flatten(img).save(output, format='JPEG', quality=self.quality)
        elif self.image_format == 'webp':
            img.save(output, format='WEBP', quality=self.quality)
        else:
            raise ValueError(f"Unsupported image format: {self.image_format}")

        return output.getvalue()

    def render(self, item: Item, output_path: Path) -> int:
        """
        Compose, encode and write one item.

        Rendering the same item twice writes identical bytes to the same path.

        Returns:
            Number of bytes written
        """
        data = self.encode(self.compose(item))
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(data)
        return len(data)

    @staticmethod
    def _fit_to(layer: Image.Image, size) -> Image.Image:
        """Center a layer on a transparent canvas of the base size."""
        if layer.size == size:
            return layer
        fitted = Image.new('RGBA', size, (0, 0, 0, 0))
        offset = ((size[0] - layer.size[0]) // 2, (size[1] - layer.size[1]) // 2)
        fitted.paste(layer, offset)
        return fitted

    @staticmethod
    def _flatten(img: Image.Image) -> Image.Image:
        """Flatten alpha onto white for formats without transparency."""
        if img.mode in ('RGBA', 'LA'):
            background = Image.new('RGB', img.size, (255, 255, 255))
            if img.mode == 'LA':
                img = img.convert('RGBA')
            background.paste(img, mask=img.split()[-1])
            return background
        elif img.mode != 'RGB':
            return img.convert('RGB')
        return img
