import errno
import struct
import zlib
from pathlib import Path

import pytest

from sg_sprite_extractor.constants import READ_RETRIES, MAX_INFLATED_SIZE
from sg_sprite_extractor.errors import TruncatedData, UnsupportedFormat, MalformedLayout, LayoutReadError
from sg_sprite_extractor.layout import Role, parse_layout, load_layout, validate_against_atlas

from conftest import build_layout, PRIMARY, OVERLAY, SCENARIO_PARTS


def test_scenario_layout_decodes():
    layout = parse_layout(build_layout(SCENARIO_PARTS, canvas=(64, 64)))
    assert layout.version == 1
    assert layout.canvas_size == (64, 64)
    assert layout.part_count == 2
    base, overlay = layout.parts
    assert (base.x, base.y, base.width, base.height, base.role, base.parent) == (0, 0, 64, 64, Role.PRIMARY_VARIANT, None)
    assert (overlay.x, overlay.y, overlay.width, overlay.height) == (64, 0, 32, 32)
    assert overlay.role is Role.OVERLAY
    assert overlay.parent == 0
    assert overlay.box == (64, 0, 96, 32)
    assert not layout.compressed


def test_magic_is_ascii_gs_on_disk():
    assert build_layout(SCENARIO_PARTS)[:2] == b"GS"


@pytest.mark.parametrize("code", [0x00, 0x20, 0x30, 0x40, 0x60])
def test_primary_type_codes(code):
    layout = parse_layout(build_layout([(0, 0, 4, 4, code)]))
    assert layout.parts[0].role is Role.PRIMARY_VARIANT
    assert layout.parts[0].type_code == code


def test_part_order_is_preserved():
    parts = [(10, 0, 2, 2, OVERLAY), (0, 0, 2, 2, PRIMARY), (5, 5, 2, 2, PRIMARY), (0, 0, 2, 2, PRIMARY)]
    layout = parse_layout(build_layout(parts))
    assert [p.index for p in layout.parts] == [0, 1, 2, 3]
    assert [(p.x, p.y) for p in layout.parts] == [(10, 0), (0, 0), (5, 5), (0, 0)]
    assert [p.index for p in layout.primaries()] == [1, 2, 3]
    assert [p.index for p in layout.overlays()] == [0]


def test_bad_magic_fails_before_reading_further():
    data = struct.pack("<H", 0x1234)
    with pytest.raises(UnsupportedFormat, match="magic"):
        parse_layout(data)


def test_unsupported_version():
    with pytest.raises(UnsupportedFormat, match="version 7"):
        parse_layout(build_layout(SCENARIO_PARTS, version=7))


@pytest.mark.parametrize("parts,canvas,message", [
    ([(0, 0, 0, 4, PRIMARY)], (8, 8), "empty size"),
    ([(0, 0, 4, 4, 0x11)], (8, 8), "unknown sprite type"),
    ([(0, 0, 4, 4, OVERLAY, 3)], (8, 8), "missing parent"),
    ([(0, 0, 4, 4, PRIMARY)], (0, 8), "empty canvas"),
    ([], (8, 8), "no sprite parts"),
])
def test_malformed_tables(parts, canvas, message):
    with pytest.raises(MalformedLayout, match=message):
        parse_layout(build_layout(parts, canvas=canvas))


def test_every_truncation_fails_with_truncated_data():
    data = build_layout(SCENARIO_PARTS)
    for cut in range(len(data)):
        with pytest.raises(TruncatedData):
            parse_layout(data[:cut])


def test_overstated_part_count_is_truncated():
    with pytest.raises(TruncatedData):
        parse_layout(build_layout(SCENARIO_PARTS, part_count=3))


def test_trailing_bytes_are_tolerated(caplog):
    layout = parse_layout(build_layout(SCENARIO_PARTS) + b"\x00\x00")
    assert layout.part_count == 2
    assert "trailing" in caplog.text


def test_compressed_layout():
    layout = parse_layout(zlib.compress(build_layout(SCENARIO_PARTS)))
    assert layout.compressed
    assert layout.part_count == 2


def test_every_truncation_of_compressed_layout_fails_with_truncated_data():
    data = zlib.compress(build_layout(SCENARIO_PARTS))
    for cut in range(len(data)):
        with pytest.raises(TruncatedData):
            parse_layout(data[:cut])


def test_corrupt_compressed_layout():
    with pytest.raises(UnsupportedFormat):
        parse_layout(b"\x78\xff" + b"\x00" * 20)


def test_validate_against_atlas():
    layout = parse_layout(build_layout(SCENARIO_PARTS))
    validate_against_atlas(layout, (96, 64))
    with pytest.raises(MalformedLayout, match="part 1"):
        validate_against_atlas(layout, (95, 64))
    with pytest.raises(MalformedLayout, match="part 0"):
        validate_against_atlas(layout, (96, 63))


def test_load_layout(tmp_path):
    path = tmp_path / "chara.lay"
    path.write_bytes(build_layout(SCENARIO_PARTS))
    layout = load_layout(path)
    assert layout.path == path
    assert layout.part_count == 2


def test_load_missing_layout(tmp_path):
    with pytest.raises(LayoutReadError):
        load_layout(tmp_path / "missing.lay")


def test_reserved_field_is_warned(caplog):
    layout = parse_layout(build_layout([(0, 0, 4, 4, PRIMARY, None, 0x1234)]))
    assert layout.part_count == 1
    assert "reserved field 0x1234" in caplog.text


def test_compressed_layout_inflating_past_bound_is_malformed():
    data = zlib.compress(build_layout(SCENARIO_PARTS) + bytes(MAX_INFLATED_SIZE))
    with pytest.raises(MalformedLayout, match="inflates past"):
        parse_layout(data)


def _flaky_read_bytes(monkeypatch, failures, code=errno.EINTR):
    real_read = Path.read_bytes
    calls = []

    def read_bytes(self):
        calls.append(self)
        if len(calls) <= failures:
            raise OSError(code, "Interrupted system call")
        return real_read(self)
    monkeypatch.setattr(Path, "read_bytes", read_bytes)
    return calls


def test_load_layout_retries_transient_error(tmp_path, monkeypatch):
    path = tmp_path / "chara.lay"
    path.write_bytes(build_layout(SCENARIO_PARTS))
    calls = _flaky_read_bytes(monkeypatch, failures=1)
    assert load_layout(path).part_count == 2
    assert len(calls) == 2


def test_load_layout_gives_up_after_retries(tmp_path, monkeypatch):
    path = tmp_path / "chara.lay"
    path.write_bytes(build_layout(SCENARIO_PARTS))
    calls = _flaky_read_bytes(monkeypatch, failures=READ_RETRIES, code=errno.EAGAIN)
    with pytest.raises(LayoutReadError):
        load_layout(path)
    assert len(calls) == READ_RETRIES
