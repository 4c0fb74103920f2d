import pytest
from hypothesis import given, strategies as st

from sealcodes.errors import GeometryOutOfBounds
from sealcodes.fingerprint.geometry import (
    MIN_SEAL_PX,
    calculate_embedding_pixels,
    placement_for_zone,
    zone_from_placement,
)


def test_image_placement_is_top_left():
    p = calculate_embedding_pixels((50, 50), 10, (1000, 800), "image")
    assert p.size_in_pixels == 80
    z = p.exclusion_zone
    assert (z.x, z.y, z.width, z.height) == (500, 400, 80, 80)
    assert p.position == (500, 400)


def test_pdf_placement_flips_y():
    p = calculate_embedding_pixels((50, 50), 10, (1000, 800), "pdf")
    assert (p.exclusion_zone.x, p.exclusion_zone.y) == (500, 400)
    assert p.position == (500, 800 - 400 - 80)


def test_seal_clamped_inside_document():
    p = calculate_embedding_pixels((100, 100), 10, (1000, 800), "image")
    z = p.exclusion_zone
    assert (z.x + z.width, z.y + z.height) == (1000, 800)


def test_minimum_seal_size():
    assert calculate_embedding_pixels((0, 0), 0.1, (800, 800), "image").size_in_pixels == MIN_SEAL_PX


def test_fill_color_carried_into_zone():
    p = calculate_embedding_pixels((0, 0), 10, (500, 500), "image", fill_color="00ff00")
    assert p.exclusion_zone.fill_color == "#00FF00"


@pytest.mark.parametrize("size", [0, -5, 101])
def test_bad_size_percent(size):
    with pytest.raises(GeometryOutOfBounds):
        calculate_embedding_pixels((0, 0), size, (500, 500), "image")


def test_seal_larger_than_document():
    with pytest.raises(GeometryOutOfBounds):
        calculate_embedding_pixels((0, 0), 10, (10, 10), "image")


def test_unknown_document_type():
    with pytest.raises(ValueError):
        calculate_embedding_pixels((0, 0), 10, (500, 500), "svg")


@given(
    px=st.floats(min_value=0, max_value=100),
    py=st.floats(min_value=0, max_value=100),
    size=st.floats(min_value=1, max_value=100),
    w=st.integers(min_value=16, max_value=4000),
    h=st.integers(min_value=16, max_value=4000),
    kind=st.sampled_from(["pdf", "image"]),
)
def test_zone_and_placement_describe_same_pixels(px, py, size, w, h, kind):
    p = calculate_embedding_pixels((px, py), size, (w, h), kind)
    z = p.exclusion_zone
    assert 0 <= z.x and z.x + z.width <= w
    assert 0 <= z.y and z.y + z.height <= h
    back = zone_from_placement(p.position, (z.width, z.height), h, kind, z.fill_color)
    assert back == z
    assert placement_for_zone(back, h, kind) == p.position
