import numpy as np
import pytest

from sg_sprite_extractor.atlas import AtlasImage
from sg_sprite_extractor.layout import Role, SpritePart
from sg_sprite_extractor.extractor import extract_region, extract_part
from sg_sprite_extractor.overlay import source_alpha

from conftest import gradient_atlas, scenario_atlas


def _atlas(pixels):
    pixels = pixels.copy()
    pixels.setflags(write=False)
    return AtlasImage(None, pixels)


def test_extract_region_copies_exact_rectangle():
    pixels = gradient_atlas(20, 10)
    atlas = _atlas(pixels)
    part = SpritePart(0, 3, 2, 5, 4, Role.PRIMARY_VARIANT)
    region = extract_region(atlas, part)
    assert region.shape == (4, 5, 4)
    np.testing.assert_array_equal(region, pixels[2:6, 3:8])
    assert region.flags.writeable


def test_out_of_bounds_region_fails_loudly():
    atlas = _atlas(gradient_atlas(10, 10))
    part = SpritePart(0, 8, 0, 4, 4, Role.PRIMARY_VARIANT)
    with pytest.raises(AssertionError):
        extract_region(atlas, part)


def test_primary_is_copied_verbatim():
    pixels = gradient_atlas(16, 16)
    sprite = extract_part(_atlas(pixels), SpritePart(0, 4, 4, 8, 8, Role.PRIMARY_VARIANT), "c_0")
    assert sprite.name == "c_0"
    assert sprite.role is Role.PRIMARY_VARIANT
    assert sprite.size == (8, 8)
    np.testing.assert_array_equal(sprite.pixels, pixels[4:12, 4:12])


def test_primary_from_rgb_atlas_is_opaque():
    pixels = gradient_atlas(8, 8, mode="RGB")
    sprite = extract_part(_atlas(pixels), SpritePart(0, 0, 0, 8, 8, Role.PRIMARY_VARIANT), "c_0")
    assert sprite.pixels.shape == (8, 8, 4)
    np.testing.assert_array_equal(sprite.pixels[:, :, :3], pixels)
    assert (sprite.pixels[:, :, 3] == 255).all()


def test_overlay_gets_mask():
    pixels = scenario_atlas()
    part = SpritePart(1, 64, 0, 32, 32, Role.OVERLAY, 0x50, 0)
    sprite = extract_part(_atlas(pixels), part, "c_o0")
    alpha = sprite.pixels[:, :, 3]
    assert sprite.size == (32, 32)
    assert (alpha[8:24, 8:24] == 255).all()
    assert alpha[0, 0] == 0
    assert (alpha == 0).sum() == 32 * 32 - 16 * 16
    assert tuple(sprite.pixels[10, 10]) == (250, 10, 10, 255)


def test_overlay_mask_rule_is_pluggable():
    pixels = scenario_atlas()
    part = SpritePart(1, 64, 0, 32, 32, Role.OVERLAY, 0x50, 0)
    sprite = extract_part(_atlas(pixels), part, "c_o0", source_alpha)
    assert (sprite.pixels[:, :, 3] == 255).all()


def test_to_image():
    sprite = extract_part(_atlas(gradient_atlas(4, 3)), SpritePart(0, 0, 0, 4, 3, Role.PRIMARY_VARIANT), "c_0")
    img = sprite.to_image()
    assert img.mode == "RGBA"
    assert img.size == (4, 3)
