"""
QR codes for ID card verification
Encodes a record identifier into its verification URL and renders it
"""

import re
from io import BytesIO
from urllib.parse import quote, unquote, urlsplit

import qrcode
from PIL import Image

VERIFY_FRAGMENT = '#/verify/'
VERIFY_PATTERN = re.compile(r'/verify/([^/?#]+)/?$')


def verification_url(record_id, base_url):
    """
    Build the URL printed on a card.

    Shape: ``<base>/#/verify/<id>``. The identifier is percent-quoted so
    that distinct identifiers always give distinct URLs.
    """
    base = base_url if base_url.endswith('/') else base_url + '/'
    return f"{base}{VERIFY_FRAGMENT}{quote(str(record_id), safe='')}"


def extract_record_id(url):
    """Identifier from a verification URL (fragment or path form), else None."""
    if not url:
        return None
    parts = urlsplit(url)
    for candidate in (parts.fragment, parts.path):
        match = VERIFY_PATTERN.search(candidate or '')
        if match:
            return unquote(match.group(1))
    return None


def render_qr(url, box_size=10, border=2):
    """Render a URL as a QR code image"""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=box_size,
        border=border,
    )
    qr.add_data(url)
    qr.make(fit=True)

    qr_img = qr.make_image(fill_color='black', back_color='white')
    return qr_img.get_image().convert('RGB')


def render_png(url):
    buffer = BytesIO()
    render_qr(url).save(buffer, 'PNG')
    return buffer.getvalue()


def rasterize(image, size=1024, quality=90):
    """
    Flatten a rendered code onto an opaque white square and encode as JPEG.

    JPEG has no alpha channel, so any transparency is composited onto white
    first; modules are scaled with nearest-neighbour to stay sharp.
    """
    canvas = Image.new('RGB', (size, size), (255, 255, 255))
    source = image
    if source.mode in ('RGBA', 'LA', 'P'):
        source = source.convert('RGBA')
        flattened = Image.new('RGB', source.size, (255, 255, 255))
        flattened.paste(source, mask=source.split()[-1])
        source = flattened
    else:
        source = source.convert('RGB')
    canvas.paste(source.resize((size, size), Image.Resampling.NEAREST), (0, 0))

    buffer = BytesIO()
    canvas.save(buffer, 'JPEG', quality=quality)
    return buffer.getvalue()


def download_filename(name):
    """File name for a downloaded code, e.g. ``Sarah_Connor_QR.jpg``"""
    cleaned = re.sub(r'\s+', '_', (name or '').strip()) or 'employee'
    return f'{cleaned}_QR.jpg'
