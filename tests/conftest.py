import pytest

from shrinkwrap.compression.result import SourceImage

from .helpers import encode, make_image


@pytest.fixture
def jpeg_bytes():
    return encode(make_image(), 'JPEG', quality=95)


@pytest.fixture
def png_bytes():
    return encode(make_image(), 'PNG')


@pytest.fixture
def webp_bytes():
    return encode(make_image(), 'WEBP', quality=95)


@pytest.fixture
def large_jpeg_source(jpeg_bytes):
    """Real JPEG pixels with a declared 1 MB original size."""
    return SourceImage(data=jpeg_bytes, mime_type='image/jpeg',
                       original_size_bytes=1_000_000, name='photo.jpg')


@pytest.fixture
def large_png_source(png_bytes):
    return SourceImage(data=png_bytes, mime_type='image/png',
                       original_size_bytes=200_000, name='diagram.png')
