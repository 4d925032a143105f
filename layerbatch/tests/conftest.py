"""
Pytest fixtures for layerbatch tests.
"""

import json
import logging

import pytest

LAYER_ORDER = ['Background', 'Body', 'Hat']


@pytest.fixture
def logger():
    """Fixture providing a logger."""
    return logging.getLogger('test')


@pytest.fixture
def layer_order():
    """Fixture providing the layer order, bottom to top."""
    return list(LAYER_ORDER)


@pytest.fixture
def layers_dir(tmp_path):
    """
    Fixture providing a layers directory with 8x8 PNG layers.

    Background/blue.png   opaque blue
    Body/red.png          transparent with an opaque red center pixel
    Hat/green.png         transparent with an opaque green top-left pixel
    """
    from PIL import Image

    root = tmp_path / 'layers'
    for layer in LAYER_ORDER:
        (root / layer).mkdir(parents=True)

    Image.new('RGBA', (8, 8), (0, 0, 255, 255)).save(root / 'Background' / 'blue.png')

    body = Image.new('RGBA', (8, 8), (0, 0, 0, 0))
    body.putpixel((4, 4), (255, 0, 0, 255))
    body.save(root / 'Body' / 'red.png')

    hat = Image.new('RGBA', (8, 8), (0, 0, 0, 0))
    hat.putpixel((0, 0), (0, 255, 0, 255))
    hat.save(root / 'Hat' / 'green.png')

    return root


@pytest.fixture
def output_dir(tmp_path):
    """Fixture providing an empty output root."""
    root = tmp_path / 'output'
    root.mkdir()
    return root


def metadata_entry(edition, background='blue', body='red', hat='green'):
    attributes = []
    for trait, value in (('Background', background), ('Body', body), ('Hat', hat)):
        if value is not None:
            attributes.append({'trait_type': trait, 'value': value})
    return {'edition': edition, 'attributes': attributes}


@pytest.fixture
def write_metadata(output_dir):
    """
    Fixture providing a function that writes batch metadata.

    write_metadata(total, batch_size) writes one metadata.json per batch
    covering editions 1..total and returns the batch keys.
    """
    from layerbatch.batch_planner import BatchLayout, iter_batch_keys, batch_bounds

    def _write(total, batch_size=10, skip=()):
        layout = BatchLayout(output_dir, batch_size)
        keys = []
        for key in iter_batch_keys(1, total, batch_size):
            start, end = batch_bounds(key)
            end = min(end or total, total)
            entries = [metadata_entry(i) for i in range(start, end + 1) if i not in skip]
            path = layout.metadata_path(key)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps({'nfts': entries}))
            keys.append(key)
        return keys

    return _write


@pytest.fixture
def response_factory():
    """Fixture providing a factory for fake urllib3 responses."""
    from unittest.mock import MagicMock

    def _make(status=200, body=b'', headers=None):
        response = MagicMock()
        response.status = status
        response.data = json.dumps(body).encode('utf-8') if isinstance(body, dict) else body
        response.headers = dict(headers or {})
        return response

    return _make


@pytest.fixture
def mock_tokens():
    """Fixture providing a token manager that always returns a token."""
    from unittest.mock import MagicMock

    tokens = MagicMock()
    tokens.get_token.return_value = 'test-token'
    return tokens


@pytest.fixture
def no_sleep_policy():
    """Fixture providing a RetryPolicy with no jitter and a recording sleep."""
    from unittest.mock import MagicMock
    from layerbatch.retry_policy import RetryPolicy

    return RetryPolicy(max_retries=3, jitter=0.0, sleep=MagicMock())
