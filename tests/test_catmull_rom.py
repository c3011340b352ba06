"""Tests for the closed Catmull-Rom curve and its frames."""

import math

import numpy as np
import pytest
from py_trackgen.core.catmull_rom import ClosedCatmullRomCurve
from py_trackgen.core.exceptions import TrackParameterError


def circle_points(count=8, radius=50.0, z=0.0):
    angles = np.linspace(0.0, 2.0 * math.pi, count, endpoint=False)
    return np.stack([radius * np.cos(angles), radius * np.sin(angles), np.full(count, z)], axis=1)


def assert_orthonormal(frames):
    for vectors in (frames.tangents, frames.normals, frames.binormals):
        assert np.all(np.isfinite(vectors))
        np.testing.assert_allclose(np.linalg.norm(vectors, axis=1), 1.0, atol=1e-9)
    np.testing.assert_allclose(np.einsum("ij,ij->i", frames.tangents, frames.normals), 0.0, atol=1e-9)
    np.testing.assert_allclose(np.einsum("ij,ij->i", frames.tangents, frames.binormals), 0.0, atol=1e-9)
    np.testing.assert_allclose(np.einsum("ij,ij->i", frames.normals, frames.binormals), 0.0, atol=1e-9)


class TestClosedCatmullRomCurve:
    """Test curve evaluation."""

    @pytest.fixture
    def circle(self):
        return ClosedCatmullRomCurve(circle_points())

    @pytest.mark.parametrize("curve_type", ["centripetal", "chordal", "catmullrom"])
    def test_passes_through_control_points(self, curve_type):
        points = circle_points()
        curve = ClosedCatmullRomCurve(points, curve_type=curve_type)

        for i, point in enumerate(points):
            np.testing.assert_allclose(curve.get_point(i / len(points)), point, atol=1e-9)

    def test_periodic(self, circle):
        np.testing.assert_array_equal(circle.get_point(1.0), circle.get_point(0.0))
        np.testing.assert_allclose(circle.get_point(1.25), circle.get_point(0.25), atol=1e-9)

    def test_vectorized_matches_scalar(self, circle):
        ts = np.array([0.0, 0.1, 0.37, 0.5, 0.99])
        batch = circle.get_point(ts)

        for t, point in zip(ts, batch):
            np.testing.assert_allclose(circle.get_point(t), point)

    def test_rejects_too_few_points(self):
        with pytest.raises(TrackParameterError):
            ClosedCatmullRomCurve(circle_points(3))

    def test_closing_repeat_is_dropped(self):
        points = circle_points(4)
        curve = ClosedCatmullRomCurve(np.vstack([points, points[:1]]))
        assert len(curve) == 4

    def test_closing_repeat_does_not_count_toward_minimum(self):
        points = circle_points(3)
        with pytest.raises(TrackParameterError):
            ClosedCatmullRomCurve(np.vstack([points, points[:1]]))

    def test_rejects_unknown_curve_type(self):
        with pytest.raises(TrackParameterError):
            ClosedCatmullRomCurve(circle_points(), curve_type="bezier")

    def test_rejects_non_finite_points(self):
        points = circle_points()
        points[2, 1] = np.nan
        with pytest.raises(TrackParameterError):
            ClosedCatmullRomCurve(points)

    def test_repeated_control_points_stay_finite(self):
        points = np.array([
            [0.0, 0.0, 0.0],
            [0.0, 0.0, 0.0],
            [10.0, 0.0, 0.0],
            [10.0, 10.0, 0.0],
            [0.0, 10.0, 0.0],
        ])
        curve = ClosedCatmullRomCurve(points)
        assert np.all(np.isfinite(curve.get_points(200)))

    def test_length_close_to_circumference(self, circle):
        assert circle.get_length() == pytest.approx(2.0 * math.pi * 50.0, rel=0.02)

    def test_get_points_closes(self, circle):
        points = circle.get_points(10)
        assert len(points) == 11
        np.testing.assert_array_equal(points[0], points[-1])

    def test_spaced_points_are_even(self):
        points = np.array([
            [0.0, 0.0, 0.0],
            [100.0, 0.0, 0.0],
            [110.0, 10.0, 0.0],
            [100.0, 40.0, 5.0],
            [0.0, 30.0, 0.0],
        ])
        curve = ClosedCatmullRomCurve(points)
        spaced = curve.get_spaced_points(100)
        gaps = np.linalg.norm(np.diff(spaced, axis=0), axis=1)

        assert gaps.std() / gaps.mean() < 0.05

    def test_u_to_t_endpoints(self, circle):
        assert circle.get_u_to_t_mapping(0.0) == pytest.approx(0.0)
        assert circle.get_u_to_t_mapping(1.0) == pytest.approx(1.0)

    def test_tangent_is_unit_and_perpendicular_to_radius(self, circle):
        for i in range(8):
            t = i / 8
            tangent = circle.get_tangent(t)
            radial = circle.get_point(t) / 50.0

            assert np.linalg.norm(tangent) == pytest.approx(1.0)
            assert np.dot(tangent, radial) == pytest.approx(0.0, abs=1e-9)

    def test_tangent_follows_travel_direction(self, circle):
        # Counter-clockwise loop: at (50, 0, 0) the curve heads toward +Y
        np.testing.assert_allclose(circle.get_tangent(0.0), [0.0, 1.0, 0.0], atol=1e-9)


class TestFrenetFrames:
    """Test parallel-transported frames."""

    def test_frame_count(self):
        frames = ClosedCatmullRomCurve(circle_points()).compute_frenet_frames(64)
        assert len(frames) == 65

    def test_orthonormal_on_circle(self):
        frames = ClosedCatmullRomCurve(circle_points()).compute_frenet_frames(100)

        assert_orthonormal(frames)
        assert frames.degenerate_count == 0

    def test_planar_loop_keeps_binormal_in_plane(self):
        frames = ClosedCatmullRomCurve(circle_points(z=3.0)).compute_frenet_frames(100)

        np.testing.assert_allclose(frames.binormals[:, 2], 0.0, atol=1e-9)
        np.testing.assert_allclose(np.abs(frames.normals[:, 2]), 1.0, atol=1e-9)

    def test_closed_frames_line_up(self):
        points = np.array([
            [0.0, 0.0, 0.0],
            [60.0, 10.0, 20.0],
            [80.0, 70.0, -10.0],
            [10.0, 90.0, 30.0],
            [-30.0, 40.0, 5.0],
        ])
        frames = ClosedCatmullRomCurve(points).compute_frenet_frames(200)

        assert_orthonormal(frames)
        np.testing.assert_allclose(frames.tangents[-1], frames.tangents[0], atol=1e-9)
        np.testing.assert_allclose(frames.normals[-1], frames.normals[0], atol=1e-6)

    def test_collinear_stretch_carries_frame_forward(self):
        """Straight stretches have parallel tangents; frames stay valid and are flagged."""
        points = np.array([
            [0.0, 0.0, 0.0],
            [10.0, 0.0, 0.0],
            [20.0, 0.0, 0.0],
            [30.0, 0.0, 0.0],
            [30.0, 10.0, 0.0],
            [0.0, 10.0, 0.0],
        ])
        frames = ClosedCatmullRomCurve(points).compute_frenet_frames(120)

        assert_orthonormal(frames)
        assert frames.degenerate_count > 0

    def test_rejects_zero_segments(self):
        with pytest.raises(TrackParameterError):
            ClosedCatmullRomCurve(circle_points()).compute_frenet_frames(0)
