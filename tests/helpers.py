import io

import numpy as np
from PIL import Image

from shrinkwrap.compression.encoders import BaseEncoder
from shrinkwrap.compression.result import EncoderOptions


def make_image(size=(160, 120), mode='RGB', seed=0):
    """Gradient plus noise: compresses realistically at every quality."""
    rng = np.random.default_rng(seed)
    width, height = size
    x = np.linspace(0, 255, width, dtype=np.float64)
    y = np.linspace(0, 255, height, dtype=np.float64)
    base = (x[None, :] + y[:, None]) / 2
    channels = [base, base[::-1, :], base[:, ::-1]]
    pixels = np.stack(channels, axis=-1) + rng.normal(0, 40, (height, width, 3))
    image = Image.fromarray(np.clip(pixels, 0, 255).astype(np.uint8), 'RGB')
    if mode != 'RGB':
        image = image.convert(mode)
    return image


def encode(image, format_name, **save_kwargs):
    buffer = io.BytesIO()
    image.save(buffer, format=format_name, **save_kwargs)
    return buffer.getvalue()


class CurveEncoder(BaseEncoder):
    """Lossy stand-in whose output size follows scale * (quality/100) ** exponent."""

    format_name = "JPEG"
    mime_type = "image/jpeg"

    def __init__(self, scale=1_000_000, exponent=1.5, sizes=None):
        self.scale = scale
        self.exponent = exponent
        self.sizes = sizes
        self.calls = []

    def size_for(self, quality):
        if self.sizes is not None:
            return self.sizes(quality)
        return max(1, int(self.scale * (quality / 100) ** self.exponent))

    def encode(self, image, options: EncoderOptions) -> bytes:
        self.calls.append(options.quality)
        return b'j' * self.size_for(options.quality)


class FixedLosslessEncoder(BaseEncoder):
    format_name = "PNG"
    mime_type = "image/png"

    def __init__(self, size=150_000):
        self.size = size
        self.calls = 0

    def encode(self, image, options: EncoderOptions) -> bytes:
        self.calls += 1
        return b'p' * self.size

    def get_quality_range(self):
        return (100, 100)


