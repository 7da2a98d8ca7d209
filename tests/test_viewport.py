"""Tests for ligenv.viewport."""

import pytest

from ligenv.viewport import IDENTITY, BoundingBox, Transform, ZoomState, fit_transform


class TestBoundingBox:
    def test_from_points(self):
        box = BoundingBox.from_points([(1, 5), (-2, 3), (4, -1)])
        assert box == BoundingBox(-2, -1, 4, 5)
        assert box.width == 6
        assert box.height == 6
        assert box.center == (1, 2)

    def test_from_no_points(self):
        with pytest.raises(ValueError):
            BoundingBox.from_points([])

    def test_union_and_padding(self):
        box = BoundingBox.union([BoundingBox(0, 0, 1, 1), BoundingBox(-1, 2, 0, 3).padded(1)])
        assert box == BoundingBox(-2, 0, 1, 4)


class TestFitTransform:
    @pytest.mark.parametrize(
        "width, height, target_width, target_height",
        [(100, 50, 800, 600), (40, 300, 800, 600), (1000, 1000, 300, 200), (3, 7, 10, 10)],
    )
    def test_box_is_centered_and_inside_target(self, width, height, target_width, target_height):
        box = BoundingBox(-width / 2, -height / 2, width / 2, height / 2)
        transform = fit_transform(box, target_width, target_height)

        cx, cy = transform.apply(box.center)
        assert cx == pytest.approx(target_width / 2)
        assert cy == pytest.approx(target_height / 2)

        for corner in [(box.min_x, box.min_y), (box.max_x, box.max_y), (box.min_x, box.max_y)]:
            x, y = transform.apply(corner)
            assert 0 <= x <= target_width
            assert 0 <= y <= target_height

    def test_scale_uses_most_constraining_direction(self):
        transform = fit_transform(BoundingBox(0, 0, 100, 50), 800, 600)
        assert transform.k == pytest.approx(min(800 / 100, 600 / 50) * 0.85)

    def test_translation(self):
        transform = fit_transform(BoundingBox(10, 20, 110, 70), 800, 600, margin=1.0)
        k = 8.0
        assert transform.k == pytest.approx(k)
        assert transform.x == pytest.approx(-10 * k + (800 - 100 * k) / 2)
        assert transform.y == pytest.approx(-20 * k + (600 - 50 * k) / 2)

    def test_flat_box(self):
        """An axis without extent does not constrain the scale."""
        transform = fit_transform(BoundingBox(0, 5, 100, 5), 800, 600)
        assert transform.k == pytest.approx(8 * 0.85)
        assert transform.apply((50, 5)) == pytest.approx((400, 300))

    def test_single_point(self):
        transform = fit_transform(BoundingBox(3, 3, 3, 3), 800, 600)
        assert transform.apply((3, 3)) == pytest.approx((400, 300))

    def test_invalid_area(self):
        with pytest.raises(ValueError):
            fit_transform(BoundingBox(0, 0, 1, 1), 0, 600)


class TestTransform:
    def test_invert(self):
        transform = Transform(10, -5, 2)
        assert transform.invert(transform.apply((3, 4))) == pytest.approx((3, 4))

    def test_compose(self):
        a = Transform(10, 0, 2)
        b = Transform(1, 1, 3)
        point = (2, 5)
        assert a.compose(b).apply(point) == pytest.approx(a.apply(b.apply(point)))

    def test_svg(self):
        assert Transform(1.5, 2, 0.5).svg() == "translate(1.5, 2) scale(0.5)"


class TestZoomState:
    def test_zoom_keeps_point_fixed(self):
        zoom = ZoomState()
        zoom.set(Transform(100, 50, 2))
        about = (400, 300)
        scene_point = zoom.transform.invert(about)
        zoom.zoom(1.5, about)
        assert zoom.transform.k == pytest.approx(3)
        assert zoom.transform.apply(scene_point) == pytest.approx(about)

    def test_zoom_is_clamped(self):
        zoom = ZoomState(scale_extent=(0.1, 10))
        zoom.zoom(100, (0, 0))
        assert zoom.transform.k == 10
        zoom.zoom(1e-6, (0, 0))
        assert zoom.transform.k == 0.1

    def test_pan_and_reset(self):
        zoom = ZoomState()
        zoom.pan(5, -5)
        assert zoom.transform == Transform(5, -5, 1)
        zoom.reset()
        assert zoom.transform == IDENTITY
