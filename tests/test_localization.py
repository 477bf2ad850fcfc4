import math

import pytest

from geotrack.domain.types import Box
from geotrack.localization.camera import HeightTable, get_assumed_height, is_distance_supported
from geotrack.localization.geometry import (
    angle_from_center,
    calculate_angles,
    cartesian_to_polar,
    coordinates_2d,
    coordinates_3d,
    estimate_accuracy,
    estimate_distance_from_bbox,
    format_distance,
    validate_bbox,
    validate_coordinates,
    velocity_3d,
)
from geotrack.localization.localizer import Localizer


def test_distance_banana_default_intrinsics():
    d = estimate_distance_from_bbox(0.19, 100.0, 2296.0)
    assert d == pytest.approx((0.19 * (4.0 * 2296 / 5.5385)) / 100)


def test_distance_clamped():
    assert estimate_distance_from_bbox(0.19, 1e6, 2296.0) == 0.1
    assert estimate_distance_from_bbox(15.0, 0.01, 2296.0) == 2000.0


def test_distance_unsupported_inputs():
    assert estimate_distance_from_bbox(None, 100.0, 2296.0) is None
    assert estimate_distance_from_bbox(0.19, 0.0, 2296.0) is None
    assert estimate_distance_from_bbox(0.19, 100.0, 0.0) is None
    assert estimate_distance_from_bbox(0.19, -5.0, 2296.0) is None


def test_center_pixel_has_zero_angles():
    for w, h, sw, sh in [(2296, 4080, 5.5385, 3.077), (640, 480, 6.0, 4.0), (1, 1, 1.0, 1.0)]:
        a = calculate_angles(w / 2, h / 2, image_width_px=w, image_height_px=h, sensor_width_mm=sw, sensor_height_mm=sh)
        assert a.horizontal == 0.0
        assert a.vertical == 0.0
        assert a.total == 0.0


def test_angles_sign_and_invalid_dims():
    a = calculate_angles(2296.0, 4080.0)
    assert a.horizontal > 0
    assert a.vertical > 0
    assert a.total >= max(a.horizontal, a.vertical)

    z = calculate_angles(10, 10, image_width_px=0)
    assert (z.horizontal, z.vertical, z.total) == (0.0, 0.0, 0.0)
    z = calculate_angles(10, 10, sensor_height_mm=-1)
    assert (z.horizontal, z.vertical, z.total) == (0.0, 0.0, 0.0)


def test_angle_from_center_linear():
    assert angle_from_center(50, 100, hfov_deg=40) == 0.0
    assert angle_from_center(100, 100, hfov_deg=40) == 20.0
    assert angle_from_center(0, 100, hfov_deg=40) == -20.0
    assert angle_from_center(10, 0) == 0.0


def test_coordinates_3d_axes():
    x, y, z = coordinates_3d(10.0, 0.0, 0.0)
    assert (x, y, z) == pytest.approx((0.0, 10.0, 0.0))

    x, y, z = coordinates_3d(10.0, 90.0, 0.0)
    assert x == pytest.approx(10.0)
    assert y == pytest.approx(0.0, abs=1e-9)

    # looking down in the image puts the object below the camera
    _, _, z = coordinates_3d(10.0, 0.0, 30.0)
    assert z == pytest.approx(-5.0)

    assert coordinates_3d(0.0, 10.0, 10.0) == (0.0, 0.0, 0.0)
    assert coordinates_2d(-1.0, 10.0) == (0.0, 0.0)


def test_polar_round_trip_preserves_distance():
    for d, h, v in [(1.0, 0.0, 0.0), (15.7, -12.0, 8.0), (250.0, 20.5, -19.0)]:
        x, y, z = coordinates_3d(d, h, v)
        dist, az, el = cartesian_to_polar(x, y, z)
        assert dist == pytest.approx(d)
        assert az == pytest.approx(h)
        assert el == pytest.approx(-v)
        x2, y2, z2 = coordinates_3d(dist, az, -el)
        assert math.sqrt(x2 * x2 + y2 * y2 + z2 * z2) == pytest.approx(d)

    assert cartesian_to_polar(0.0, 0.0, 0.0) == (0.0, 0.0, 0.0)


def test_validate_coordinates():
    assert validate_coordinates(0.0, 10.0, 0.0)
    assert not validate_coordinates(0.0, -0.5, 0.0)
    assert not validate_coordinates(0.0, -10.0, 1.0)
    assert not validate_coordinates(0.0, 0.01, 0.0)
    assert not validate_coordinates(0.0, 1001.0, 0.0)
    assert not validate_coordinates(float("nan"), 10.0, 0.0)
    assert not validate_coordinates(0.0, float("inf"), 0.0)


def test_bbox_accuracy_velocity_format():
    assert validate_bbox(50, 50)
    assert not validate_bbox(5, 50)
    assert not validate_bbox(300, 50)

    assert estimate_accuracy(0.0, 100) == 0.0
    assert estimate_accuracy(0.5, 200) == pytest.approx(95.0 * math.exp(-0.05))
    assert estimate_accuracy(100.0, 10) == 10.0

    assert velocity_3d((0, 0, 0), (1, 2, 3), 0.5) == (2.0, 4.0, 6.0)
    assert velocity_3d((0, 0, 0), (1, 2, 3), 0.0) == (0.0, 0.0, 0.0)

    assert format_distance(0.42) == "42cm"
    assert format_distance(15.734) == "15.73m"
    assert format_distance(1500.0) == "1.50km"


def test_height_lookup_case_insensitive_and_custom():
    assert get_assumed_height("Banana") == 0.19
    assert is_distance_supported("Teddy Bear")
    assert get_assumed_height("pear") is None

    table = HeightTable({"pear": 0.1})
    assert table.get("PEAR") == 0.1
    assert "pear" in table
    assert not table.add("ghost", 0.0)
    assert "ghost" not in table


def test_localizer_estimate_and_failure():
    loc = Localizer()
    pos = loc.estimate("banana", Box(1098, 1990, 1198, 2090), 2296.0, 4080.0)
    assert pos is not None
    assert pos.distance == pytest.approx(estimate_distance_from_bbox(0.19, 100.0, 2296.0))
    assert pos.y > 0
    assert math.sqrt(pos.x ** 2 + pos.y ** 2 + pos.z ** 2) == pytest.approx(pos.distance)

    assert loc.estimate("pear", Box(0, 0, 10, 10), 100, 100) is None
    assert loc.estimate("banana", Box(0, 10, 10, 10), 100, 100) is None
    assert loc.estimate("banana", Box(0, 0, 10, 10), 100, 0) is None


def test_localizer_explain_unknown_class():
    out = Localizer().explain("pear", Box(0, 0, 10, 10), 100, 100)
    assert out["assumed_height_m"] is None
    assert "distance_m" not in out
