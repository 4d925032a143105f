"""
Items - Resolve per-item layer source files from batch metadata.

The metadata files are written by an external sampler; this module only
reads them.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .batch_planner import BatchLayout, iter_batch_keys
from .errors import MetadataInvalid, MetadataMissing

LAYER_EXTENSION = '.png'


@dataclass(frozen=True)
class Item:
    """
    A single artifact to render.

    Attributes:
        index: 1-based item index
        layers: (layer name, source file) pairs, bottom to top
    """
    index: int
    layers: Tuple[Tuple[str, str], ...]


def resolve_item(
    entry: dict,
    layers_dir: str,
    layer_order: List[str]
) -> Item:
    """
    Build an Item from one metadata entry.

    Trait types match layer names case-insensitively; the trait value is the
    layer file stem. Layers without a matching attribute are left out.
    """
    values: Dict[str, str] = {}
    for attribute in entry.get('attributes', []):
        trait = str(attribute.get('trait_type', '')).lower()
        if trait and 'value' in attribute:
            values[trait] = str(attribute['value'])

    layers = []
    for layer_name in layer_order:
        value = values.get(layer_name.lower())
        if value is None:
            continue
        layers.append((layer_name, os.path.join(layers_dir, layer_name, value + LAYER_EXTENSION)))

    return Item(index=int(entry['edition']), layers=tuple(layers))


def load_batch_items(
    layout: BatchLayout,
    batch_key: str,
    layers_dir: str,
    layer_order: List[str]
) -> List[Item]:
    """
    Load the items of one batch from its metadata file.

    Raises:
        MetadataMissing: If the batch has no metadata file
        MetadataInvalid: If the file is not valid JSON or an entry lacks an edition
    """
    path = layout.metadata_path(batch_key)
    if not path.exists():
        raise MetadataMissing(batch_key, str(path))

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        entries = data.get('nfts', []) if isinstance(data, dict) else data
        return [resolve_item(entry, layers_dir, layer_order) for entry in entries]
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise MetadataInvalid(batch_key, str(path), repr(e)) from e


def load_items(
    layout: BatchLayout,
    start_index: int,
    end_index: int,
    layers_dir: str,
    layer_order: List[str],
    logger: Optional[logging.Logger] = None
) -> Dict[int, Item]:
    """
    Load every item in [start_index, end_index] across the batches covering it.

    Batches with missing or unreadable metadata are logged and skipped.

    Returns:
        Dict mapping index -> Item
    """
    log = logger or logging.getLogger(__name__)
    items: Dict[int, Item] = {}

    for key in iter_batch_keys(start_index, end_index, layout.batch_size):
        try:
            batch_items = load_batch_items(layout, key, layers_dir, layer_order)
        except (MetadataMissing, MetadataInvalid) as e:
            log.warning(f"{e}; skipping batch")
            continue
        for item in batch_items:
            if start_index <= item.index <= end_index:
                items[item.index] = item

    return items


def discover_item_count(
    layout: BatchLayout,
    layers_dir: str,
    layer_order: List[str],
    logger: Optional[logging.Logger] = None
) -> int:
    """Highest item index found in any readable batch metadata under the output root."""
    log = logger or logging.getLogger(__name__)
    highest = 0
    for key in layout.list_batch_keys():
        try:
            batch_items = load_batch_items(layout, key, layers_dir, layer_order)
        except MetadataMissing:
            continue
        except MetadataInvalid as e:
            log.warning(f"{e}; skipping batch")
            continue
        highest = max([highest] + [item.index for item in batch_items])
    return highest
