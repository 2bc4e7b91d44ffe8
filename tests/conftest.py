import struct

import numpy as np
import pytest
from PIL import Image

from sg_sprite_extractor import Config
from sg_sprite_extractor.constants import LAYOUT_MAGIC, HEADER_FORMAT, PART_FORMAT, NO_PARENT

PRIMARY = 0x00
OVERLAY = 0x50


def build_layout(parts, canvas=(64, 64), version=1, magic=LAYOUT_MAGIC, part_count=None):
    """Build .lay bytes. parts: (x, y, w, h, type_code[, parent[, reserved]])."""
    count = len(parts) if part_count is None else part_count
    data = struct.pack(HEADER_FORMAT, magic, version, count, canvas[0], canvas[1])
    for part in parts:
        x, y, w, h, type_code = part[:5]
        parent = part[5] if len(part) > 5 and part[5] is not None else NO_PARENT
        reserved = part[6] if len(part) > 6 else 0
        data += struct.pack(PART_FORMAT, x, y, w, h, type_code, parent, reserved)
    return data


def gradient_atlas(width, height, mode="RGBA"):
    """Atlas whose every pixel is distinct enough to catch off-by-one slicing."""
    ys, xs = np.mgrid[0:height, 0:width]
    channels = [xs % 256, ys % 256, (xs * 7 + ys * 13) % 256]
    if mode == "RGBA":
        channels.append(np.full_like(xs, 200))
    return np.stack(channels, axis=2).astype(np.uint8)


def save_png(path, pixels):
    Image.fromarray(pixels).save(path)
    return path


SCENARIO_PARTS = [
    (0, 0, 64, 64, PRIMARY),
    (64, 0, 32, 32, OVERLAY, 0),
]


def scenario_atlas():
    """96x64 atlas: gradient left half, a 32x32 overlay block on a black key background."""
    pixels = gradient_atlas(96, 64)
    pixels[:, 64:] = (0, 0, 0, 255)
    pixels[8:24, 72:88] = (250, 10, 10, 255)
    return pixels


@pytest.fixture
def write_pair(tmp_path):
    """Write a layout + atlas pair into tmp_path/src and return the layout path."""
    src = tmp_path / "src"
    src.mkdir(exist_ok=True)

    def _write(stem, layout_bytes, atlas_pixels=None, atlas_name=None):
        layout_path = src / f"{stem}.lay"
        layout_path.write_bytes(layout_bytes)
        if atlas_pixels is not None:
            save_png(src / (atlas_name or f"{stem}.png"), atlas_pixels)
        return layout_path

    return _write


@pytest.fixture
def config(tmp_path):
    return Config(output_dir=tmp_path / "out", jobs=2, progress=False)
