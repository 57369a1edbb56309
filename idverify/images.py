"""
Photo handling for ID records
Uploaded photos are stored inline as size-capped JPEG data URIs
"""

import base64
from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

from idverify.errors import ValidationError

JPEG_QUALITIES = (85, 75, 65, 50)
MIN_WIDTH = 120


def _flatten(img):
    """Composite any transparency onto white (JPEG has no alpha)"""
    if img.mode in ('RGBA', 'LA', 'P'):
        img = img.convert('RGBA')
        background = Image.new('RGB', img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        return background
    return img.convert('RGB')


def _encode(img, quality):
    buffer = BytesIO()
    img.save(buffer, 'JPEG', quality=quality, optimize=True)
    return buffer.getvalue()


def photo_data_uri(stream, max_width=800, max_bytes=300000):
    """Resize an uploaded photo and return it as a JPEG data URI."""
    try:
        img = Image.open(stream)
        # Decode now; truncated data would otherwise fail later, on first use
        img.load()
        img = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise ValidationError('Photo is not a readable image.') from e

    img = _flatten(img)
    if img.width > max_width:
        ratio = max_width / img.width
        img = img.resize((max_width, max(1, int(img.height * ratio))), Image.Resampling.LANCZOS)

    while True:
        for quality in JPEG_QUALITIES:
            data = _encode(img, quality)
            if len(data) <= max_bytes:
                return 'data:image/jpeg;base64,' + base64.b64encode(data).decode('ascii')
        if img.width <= MIN_WIDTH:
            raise ValidationError('Photo is too large even after compression.')
        new_width = max(MIN_WIDTH, int(img.width * 0.75))
        img = img.resize((new_width, max(1, int(img.height * new_width / img.width))), Image.Resampling.LANCZOS)
