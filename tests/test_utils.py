from pathlib import Path

import pytest

from shrinkwrap.utils import (
    build_output_name,
    calculate_savings,
    format_size_kb,
    is_supported_format,
)


@pytest.mark.parametrize('name, supported', [
    ('photo.jpg', True),
    ('photo.JPEG', True),
    ('diagram.png', True),
    ('frame.webp', True),
    ('anim.gif', False),
    ('notes.txt', False),
    ('noext', False),
])
def test_is_supported_format(name, supported):
    assert is_supported_format(Path(name)) is supported


def test_format_size_kb():
    assert format_size_kb(1024) == '1.00 KB'
    assert format_size_kb(1536) == '1.50 KB'


def test_calculate_savings():
    assert calculate_savings(1000, 250) == pytest.approx(75.0)
    assert calculate_savings(1000, 1000) == 0.0
    assert calculate_savings(1000, 1200) == 0.0
    assert calculate_savings(0, 10) == 0.0


@pytest.mark.parametrize('name, pct, mime, expected', [
    ('holiday.jpg', 50, 'image/jpeg', 'holiday_compressed_target_50pct.jpg'),
    ('diagram.png', 100, 'image/png', 'diagram_compressed_target_100pct.png'),
    ('diagram.png', 40, 'image/jpeg', 'diagram_compressed_target_40pct.jpg'),
    ('frame.webp', 100, 'image/webp', 'frame_compressed_target_100pct.webp'),
    ('archive.tar.jpg', 12.5, 'image/jpeg', 'archive.tar_compressed_target_12.5pct.jpg'),
])
def test_build_output_name(name, pct, mime, expected):
    assert build_output_name(name, pct, mime) == expected
