"""Tests for LayerCompositor class."""

import io
import os

import pytest
from PIL import Image

from layerbatch.compositor import LayerCompositor
from layerbatch.errors import ItemRenderError, LayerMissing
from layerbatch.items import Item


def make_item(layers_dir, index=1, values=(('Background', 'blue'), ('Body', 'red'), ('Hat', 'green'))):
    return Item(
        index=index,
        layers=tuple(
            (layer, os.path.join(str(layers_dir), layer, f"{value}.png")) for layer, value in values
        ),
    )


class TestCompose:
    """Tests for layer stacking."""

    def test_layers_stacked_bottom_to_top(self, layers_dir, logger):
        """Test upper layers cover lower ones where opaque."""
        compositor = LayerCompositor(logger=logger)

        img = compositor.compose(make_item(layers_dir))

        assert img.mode == 'RGBA'
        assert img.size == (8, 8)
        assert img.getpixel((4, 4)) == (255, 0, 0, 255)
        assert img.getpixel((0, 0)) == (0, 255, 0, 255)
        assert img.getpixel((7, 7)) == (0, 0, 255, 255)

    def test_smaller_layer_centered(self, layers_dir, logger):
        """Test a smaller layer is centered on the base."""
        Image.new('RGBA', (2, 2), (255, 255, 0, 255)).save(layers_dir / 'Hat' / 'small.png')
        compositor = LayerCompositor(logger=logger)

        img = compositor.compose(make_item(layers_dir, values=(('Background', 'blue'), ('Hat', 'small'))))

        assert img.getpixel((3, 3)) == (255, 255, 0, 255)
        assert img.getpixel((0, 0)) == (0, 0, 255, 255)

    def test_missing_layer_skipped(self, layers_dir, logger):
        """Test a missing layer file is skipped."""
        compositor = LayerCompositor(logger=logger)
        item = make_item(layers_dir, values=(('Background', 'blue'), ('Body', 'purple')))

        img = compositor.compose(item)

        assert img.getpixel((4, 4)) == (0, 0, 255, 255)

    def test_all_layers_missing(self, layers_dir, logger):
        """Test an item with no existing layer files fails."""
        compositor = LayerCompositor(logger=logger)
        item = make_item(layers_dir, index=7, values=(('Background', 'nope'), ('Body', 'none')))

        with pytest.raises(LayerMissing) as exc_info:
            compositor.compose(item)

        assert exc_info.value.index == 7
        assert exc_info.value.layer == 'Background'

    def test_no_layers(self, logger):
        """Test an item without layers fails."""
        compositor = LayerCompositor(logger=logger)

        with pytest.raises(ItemRenderError):
            compositor.compose(Item(index=1, layers=()))


class TestEncode:
    """Tests for output encoding."""

    def test_png(self, layers_dir):
        """Test PNG output keeps transparency."""
        compositor = LayerCompositor(image_format='png')

        data = compositor.encode(compositor.compose(make_item(layers_dir)))
        img = Image.open(io.BytesIO(data))

        assert img.format == 'PNG'
        assert img.mode == 'RGBA'

    def test_png_compression_level(self, layers_dir):
        """Test compression level changes output size."""
        composed = LayerCompositor().compose(make_item(layers_dir))

        stored = LayerCompositor(compression_level=0).encode(composed)
        packed = LayerCompositor(compression_level=9).encode(composed)

        assert len(stored) > len(packed)

    def test_jpg(self, layers_dir):
        """Test JPEG output is flattened to RGB."""
        compositor = LayerCompositor(image_format='jpg', quality=80)

        data = compositor.encode(compositor.compose(make_item(layers_dir)))
        img = Image.open(io.BytesIO(data))

        assert img.format == 'JPEG'
        assert img.mode == 'RGB'

    def test_webp(self, layers_dir):
        """Test WebP output."""
        compositor = LayerCompositor(image_format='webp')

        data = compositor.encode(compositor.compose(make_item(layers_dir)))

        assert Image.open(io.BytesIO(data)).format == 'WEBP'

    def test_unsupported_format(self, layers_dir):
        """Test an unknown format is rejected."""
        compositor = LayerCompositor(image_format='gif')

        with pytest.raises(ValueError):
            compositor.encode(Image.new('RGBA', (1, 1)))


class TestRender:
    """Tests for render."""

    def test_writes_file(self, layers_dir, tmp_path):
        """Test render creates parent directories and writes the image."""
        compositor = LayerCompositor()
        output = tmp_path / 'out' / '1-10' / 'img' / '1.png'

        size = compositor.render(make_item(layers_dir), output)

        assert output.exists()
        assert output.stat().st_size == size

    def test_idempotent(self, layers_dir, tmp_path):
        """Test rendering twice writes identical bytes."""
        compositor = LayerCompositor()
        output = tmp_path / '1.png'

        compositor.render(make_item(layers_dir), output)
        first = output.read_bytes()
        compositor.render(make_item(layers_dir), output)

        assert output.read_bytes() == first

    def test_extension(self):
        """Test extension follows the format."""
        assert LayerCompositor(image_format='jpg').extension == 'jpg'
        assert LayerCompositor(image_format='webp').extension == 'webp'
