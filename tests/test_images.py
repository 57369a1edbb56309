import base64
import os
from io import BytesIO

import pytest
from PIL import Image

from idverify.errors import ValidationError
from idverify.images import photo_data_uri


def image_bytes(size, mode='RGB', color=(200, 30, 30), fmt='PNG'):
    buffer = BytesIO()
    Image.new(mode, size, color).save(buffer, fmt)
    buffer.seek(0)
    return buffer


def decode(uri):
    prefix = 'data:image/jpeg;base64,'
    assert uri.startswith(prefix)
    return Image.open(BytesIO(base64.b64decode(uri[len(prefix):])))


def test_wide_photo_is_scaled_down():
    img = decode(photo_data_uri(image_bytes((1600, 800)), max_width=800))
    assert img.format == 'JPEG'
    assert img.size == (800, 400)


def test_small_photo_keeps_its_size():
    img = decode(photo_data_uri(image_bytes((300, 400))))
    assert img.size == (300, 400)


def test_transparent_png_becomes_white():
    img = decode(photo_data_uri(image_bytes((50, 50), mode='RGBA', color=(0, 0, 0, 0))))
    assert img.mode == 'RGB'
    assert min(img.getpixel((25, 25))) > 240


def test_noisy_photo_is_compressed_under_cap():
    noise = Image.frombytes('RGB', (600, 600), os.urandom(600 * 600 * 3))
    buffer = BytesIO()
    noise.save(buffer, 'PNG')
    buffer.seek(0)

    uri = photo_data_uri(buffer, max_width=600, max_bytes=40000)
    data = base64.b64decode(uri.split(',', 1)[1])
    assert len(data) <= 40000
    assert decode(uri).width < 600


def test_unreadable_upload_is_rejected():
    with pytest.raises(ValidationError):
        photo_data_uri(BytesIO(b'definitely not an image'))


def test_truncated_upload_is_rejected():
    noise = Image.frombytes('RGB', (100, 100), os.urandom(100 * 100 * 3))
    buffer = BytesIO()
    noise.save(buffer, 'PNG')
    data = buffer.getvalue()
    # keep the header so the format is still recognised
    with pytest.raises(ValidationError):
        photo_data_uri(BytesIO(data[:len(data) // 2]))


def test_oversized_pixel_count_is_rejected(monkeypatch):
    monkeypatch.setattr(Image, 'MAX_IMAGE_PIXELS', 100)
    with pytest.raises(ValidationError):
        photo_data_uri(image_bytes((64, 64)))
