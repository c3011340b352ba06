"""Tests for the angle-walk path generator."""

import numpy as np
import pytest
from py_trackgen.core.path_walk import closing_path, walk_open_path, walk_path
from py_trackgen.utils.random import create_prng


class TestWalkPath:
    """Test walk_path."""

    def test_hanna_loop_is_closed(self):
        """seed "hanna", 50 points, 60 degrees, step 10 closes on itself."""
        points = walk_path(create_prng("hanna"), num_points=50, max_angle=60.0, distance_step=10.0)

        np.testing.assert_allclose(points[0], points[-1], atol=1e-12)
        np.testing.assert_array_equal(points[0], [0.0, 0.0, 0.0])

    def test_contains_open_walk_prefix(self):
        points = walk_path(create_prng("prefix"), 30, 45.0, 10.0)
        open_walk = walk_open_path(create_prng("prefix"), 30, 45.0, 10.0)

        np.testing.assert_array_equal(points[:30], np.array(open_walk))
        assert len(points) > 30

    def test_last_point_lands_near_start(self):
        points = walk_path(create_prng("landing"), 40, 30.0, 10.0)
        # points[-1] repeats the start; the point before it is within one step
        assert np.linalg.norm(points[-2] - points[0]) <= 10.0 + 1e-9

    def test_deterministic(self):
        a = walk_path(create_prng("same"), 25, 60.0, 10.0)
        b = walk_path(create_prng("same"), 25, 60.0, 10.0)

        np.testing.assert_array_equal(a, b)


class TestOpenWalk:
    """Test the open heading walk."""

    def test_planar_step_length(self):
        """The XY part of every step is exactly distance_step long."""
        points = np.array(walk_open_path(create_prng("planar"), 20, 60.0, 10.0))
        deltas = np.diff(points, axis=0)

        np.testing.assert_allclose(np.hypot(deltas[:, 0], deltas[:, 1]), 10.0)

    def test_zero_angle_walks_along_x(self):
        points = np.array(walk_open_path(create_prng("straight"), 5, 0.0, 10.0))
        np.testing.assert_allclose(points[:, 0], [0.0, 10.0, 20.0, 30.0, 40.0])
        np.testing.assert_allclose(points[:, 1:], 0.0, atol=1e-12)

    def test_two_draws_per_step(self):
        prng = create_prng("draws")
        walk_open_path(prng, 11, 30.0, 5.0)
        assert prng.call_count == 20


class TestClosingPath:
    """Test the closing path."""

    def test_already_close_adds_nothing(self):
        path = closing_path(
            create_prng("close"),
            last_point=np.array([5.0, 0.0, 0.0]),
            start_point=np.zeros(3),
            penultimate_point=np.array([10.0, 0.0, 0.0]),
            open_direction=np.array([1.0, 0.0, 0.0]),
            distance_step=10.0,
            max_angle=30.0,
        )
        assert path == []

    def test_final_point_one_step_from_start(self):
        start = np.zeros(3)
        open_direction = np.array([1.0, 0.0, 0.0])
        path = closing_path(
            create_prng("home"),
            last_point=np.array([0.0, 200.0, 0.0]),
            start_point=start,
            penultimate_point=np.array([0.0, 210.0, 0.0]),
            open_direction=open_direction,
            distance_step=10.0,
            max_angle=20.0,
        )

        assert len(path) > 0
        final = path[-1]
        assert np.linalg.norm(final - start) == pytest.approx(10.0)
        # Placed roughly opposite the opening direction
        assert np.dot(final - start, open_direction) < 0

    def test_step_limit(self):
        path = closing_path(
            create_prng("limit"),
            last_point=np.array([0.0, 1000.0, 0.0]),
            start_point=np.zeros(3),
            penultimate_point=np.array([0.0, 990.0, 0.0]),
            open_direction=np.array([1.0, 0.0, 0.0]),
            distance_step=1.0,
            max_angle=10.0,
            max_steps=5,
        )
        assert len(path) == 5
