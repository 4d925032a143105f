"""Tests for item resolution from batch metadata."""

import json
import os

import pytest
from layerbatch.batch_planner import BatchLayout
from layerbatch.errors import MetadataInvalid, MetadataMissing
from layerbatch.items import discover_item_count, load_batch_items, load_items, resolve_item


class TestResolveItem:
    """Tests for resolve_item."""

    def test_layers_in_order(self, layers_dir, layer_order):
        """Test layers follow the configured order, not attribute order."""
        entry = {
            'edition': 3,
            'attributes': [
                {'trait_type': 'Hat', 'value': 'green'},
                {'trait_type': 'Background', 'value': 'blue'},
                {'trait_type': 'Body', 'value': 'red'},
            ],
        }

        item = resolve_item(entry, str(layers_dir), layer_order)

        assert item.index == 3
        assert [name for name, _ in item.layers] == ['Background', 'Body', 'Hat']
        assert item.layers[0][1] == os.path.join(str(layers_dir), 'Background', 'blue.png')

    def test_trait_match_case_insensitive(self, layers_dir):
        """Test trait types match layer names regardless of case."""
        entry = {'edition': 1, 'attributes': [{'trait_type': 'background', 'value': 'blue'}]}

        item = resolve_item(entry, str(layers_dir), ['Background'])

        assert item.layers == (('Background', os.path.join(str(layers_dir), 'Background', 'blue.png')),)

    def test_missing_trait_left_out(self, layers_dir, layer_order):
        """Test layers without a matching attribute are omitted."""
        entry = {'edition': 1, 'attributes': [{'trait_type': 'Body', 'value': 'red'}]}

        item = resolve_item(entry, str(layers_dir), layer_order)

        assert [name for name, _ in item.layers] == ['Body']


class TestLoadItems:
    """Tests for loading items from metadata files."""

    def test_load_batch_items(self, output_dir, layers_dir, layer_order, write_metadata):
        """Test loading one batch."""
        write_metadata(15, batch_size=10)
        layout = BatchLayout(output_dir, 10)

        items = load_batch_items(layout, '11-20', str(layers_dir), layer_order)

        assert [item.index for item in items] == [11, 12, 13, 14, 15]

    def test_load_bare_list(self, output_dir, layers_dir, layer_order):
        """Test metadata stored as a bare list of entries."""
        layout = BatchLayout(output_dir, 10)
        path = layout.metadata_path('1-10')
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps([{'edition': 2, 'attributes': []}]))

        items = load_batch_items(layout, '1-10', str(layers_dir), layer_order)

        assert [item.index for item in items] == [2]

    def test_missing_metadata(self, output_dir, layers_dir, layer_order):
        """Test a batch without metadata."""
        layout = BatchLayout(output_dir, 10)

        with pytest.raises(MetadataMissing) as exc_info:
            load_batch_items(layout, '1-10', str(layers_dir), layer_order)

        assert exc_info.value.batch_key == '1-10'

    def test_load_items_filters_range(self, output_dir, layers_dir, layer_order, write_metadata):
        """Test only indices inside the range are returned."""
        write_metadata(25, batch_size=10)
        layout = BatchLayout(output_dir, 10)

        items = load_items(layout, 8, 22, str(layers_dir), layer_order)

        assert sorted(items) == list(range(8, 23))

    def test_load_items_skips_missing_batches(self, output_dir, layers_dir, layer_order, write_metadata, logger):
        """Test a batch without metadata is skipped, not fatal."""
        write_metadata(30, batch_size=10)
        os.remove(BatchLayout(output_dir, 10).metadata_path('11-20'))
        layout = BatchLayout(output_dir, 10)

        items = load_items(layout, 1, 30, str(layers_dir), layer_order, logger)

        assert sorted(items) == list(range(1, 11)) + list(range(21, 31))

    def test_discover_item_count(self, output_dir, layers_dir, layer_order, write_metadata):
        """Test the highest edition across batches."""
        write_metadata(23, batch_size=10)
        layout = BatchLayout(output_dir, 10)

        assert discover_item_count(layout, str(layers_dir), layer_order) == 23

    def test_discover_item_count_empty(self, output_dir, layers_dir, layer_order):
        """Test an output root without batches."""
        layout = BatchLayout(output_dir, 10)

        assert discover_item_count(layout, str(layers_dir), layer_order) == 0

    def test_corrupt_metadata(self, output_dir, layers_dir, layer_order):
        """Test a metadata file that is not valid JSON."""
        layout = BatchLayout(output_dir, 10)
        path = layout.metadata_path('1-10')
        path.parent.mkdir(parents=True)
        path.write_text('{"nfts": [')

        with pytest.raises(MetadataInvalid) as exc_info:
            load_batch_items(layout, '1-10', str(layers_dir), layer_order)

        assert exc_info.value.batch_key == '1-10'
        assert exc_info.value.path == str(path)

    def test_entry_without_edition(self, output_dir, layers_dir, layer_order, write_metadata):
        """Test an entry missing its edition invalidates the batch."""
        write_metadata(5, batch_size=10)
        layout = BatchLayout(output_dir, 10)
        path = layout.metadata_path('1-10')
        data = json.loads(path.read_text())
        del data['nfts'][2]['edition']
        path.write_text(json.dumps(data))

        with pytest.raises(MetadataInvalid):
            load_batch_items(layout, '1-10', str(layers_dir), layer_order)

    def test_load_items_skips_invalid_batches(self, output_dir, layers_dir, layer_order, write_metadata, logger):
        """Test a batch with unreadable metadata is skipped, not fatal."""
        write_metadata(30, batch_size=10)
        layout = BatchLayout(output_dir, 10)
        layout.metadata_path('11-20').write_text('not json')

        items = load_items(layout, 1, 30, str(layers_dir), layer_order, logger)

        assert sorted(items) == list(range(1, 11)) + list(range(21, 31))

    def test_discover_item_count_skips_invalid_batches(self, output_dir, layers_dir, layer_order,
                                                       write_metadata, logger):
        """Test unreadable metadata does not abort discovery."""
        write_metadata(23, batch_size=10)
        layout = BatchLayout(output_dir, 10)
        layout.metadata_path('21-30').write_text('[{"attributes": []}]')

        assert discover_item_count(layout, str(layers_dir), layer_order, logger) == 20
