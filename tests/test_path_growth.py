"""Tests for the path growth algorithm."""

import numpy as np
import pytest
from py_trackgen.core.exceptions import ProximityError
from py_trackgen.core.path_growth import (
    add_short_approach,
    find_proximity_violations,
    grow_path,
    smooth_points,
)
from py_trackgen.utils.random import create_prng


def grow(seed="hanna", **overrides):
    kwargs = dict(
        num_points=50,
        max_angle=60.0,
        bias_angle=40.0,
        min_step=8.0,
        max_step=12.0,
        road_width=12.0,
        buffer=5.0,
    )
    kwargs.update(overrides)
    return grow_path(create_prng(seed), **kwargs)


class TestGrowPath:
    """Test grow_path."""

    def test_closed_at_start(self):
        path = grow()

        np.testing.assert_array_equal(path.points[0], [0.0, 0.0, 0.0])
        np.testing.assert_array_equal(path.points[0], path.points[-1])

    def test_point_count_without_target(self):
        # num_points - 2 walked points after the anchor, then approach and closure
        path = grow(num_points=50)
        assert len(path.points) == 51

    def test_point_count_with_distinct_target(self):
        path = grow(num_points=50, target=np.array([0.0, 40.0, 0.0]))
        assert len(path.points) == 50

    def test_first_step_along_x(self):
        path = grow(max_angle=0.0, min_step=10.0, max_step=10.0)
        np.testing.assert_allclose(path.points[1], [10.0, 0.0, 0.0], atol=1e-12)

    def test_step_lengths_within_bounds(self):
        path = grow(min_step=8.0, max_step=12.0)
        walked = path.points[:-2]
        steps = np.linalg.norm(np.diff(walked, axis=0), axis=1)

        assert np.all(steps >= 8.0 - 1e-9)
        assert np.all(steps <= 12.0 + 1e-9)

    @pytest.mark.parametrize("seed", ["hanna", "monza", "spa", "suzuka", "imola"])
    def test_proximity_invariant(self, seed):
        """Non-adjacent walked points keep road_width + buffer apart unless forced."""
        path = grow(seed=seed)
        walked = path.points[:-2]  # without approach point and closing repeat
        threshold = 12.0 + 5.0
        forced = set(path.forced_indices)

        for j in range(2, len(walked)):
            if j in forced:
                continue
            distances = np.linalg.norm(walked[:j - 1] - walked[j], axis=1)
            assert np.all(distances >= threshold), f"point {j} too close"

    def test_forced_points_flagged_when_cap_hit(self):
        """A huge clearance makes every candidate collide from the second step on."""
        path = grow(road_width=1000.0, num_points=10)

        assert path.forced_indices == list(range(2, 9))
        assert path.forced_count == 7
        # Every forced point used the full attempt budget
        assert path.attempts == 1 + 7 * 10

    def test_rejected_attempts_redraw_direction_and_step(self):
        """Every attempt, accepted or not, takes two cone draws and one step draw."""
        prng = create_prng("redraw")
        path = grow_path(
            prng,
            num_points=10,
            max_angle=60.0,
            bias_angle=40.0,
            min_step=8.0,
            max_step=12.0,
            road_width=1000.0,
            buffer=5.0,
        )

        assert path.attempts == 71
        assert prng.call_count == 3 * path.attempts

    def test_strict_proximity_raises(self):
        with pytest.raises(ProximityError) as exc_info:
            grow(road_width=1000.0, strict=True)

        assert exc_info.value.index == 2

    def test_deterministic(self):
        a = grow(seed="repeat")
        b = grow(seed="repeat")

        np.testing.assert_array_equal(a.points, b.points)
        assert a.forced_indices == b.forced_indices

    def test_custom_start_anchor(self):
        start = np.array([5.0, -3.0, 2.0])
        path = grow(start=start)

        np.testing.assert_array_equal(path.points[0], start)
        np.testing.assert_array_equal(path.points[-1], start)


class TestShortApproach:
    """Test add_short_approach."""

    def test_appends_approach_then_start(self):
        points = [np.zeros(3), np.array([20.0, 0.0, 0.0]), np.array([20.0, 20.0, 0.0])]
        add_short_approach(points, 5.0)

        assert len(points) == 5
        start = points[0]
        last = np.array([20.0, 20.0, 0.0])
        direction = (start - last) / np.linalg.norm(start - last)
        np.testing.assert_allclose(points[3], last + direction * 5.0)
        np.testing.assert_array_equal(points[4], start)

    def test_does_not_overshoot_start(self):
        points = [np.zeros(3), np.array([2.0, 0.0, 0.0])]
        add_short_approach(points, 5.0)

        np.testing.assert_allclose(points[2], [0.0, 0.0, 0.0], atol=1e-12)


class TestSmoothPoints:
    """Test moving-average smoothing."""

    def test_window_one_is_identity(self):
        pts = np.random.default_rng(0).normal(size=(10, 3))
        np.testing.assert_array_equal(smooth_points(pts, 1), pts)

    def test_open_mode_shrinks_window_at_ends(self):
        pts = np.array([[0.0, 0, 0], [3.0, 0, 0], [6.0, 0, 0], [9.0, 0, 0]])
        smoothed = smooth_points(pts, window_size=3)

        np.testing.assert_allclose(smoothed[:, 0], [1.5, 3.0, 6.0, 7.5])

    def test_closed_mode_wraps(self):
        square = np.array([[0.0, 0, 0], [10.0, 0, 0], [10.0, 10, 0], [0.0, 10, 0]])
        smoothed = smooth_points(square, window_size=3, closed=True)

        np.testing.assert_allclose(smoothed[0], [10.0 / 3, 10.0 / 3, 0.0])
        np.testing.assert_allclose(smoothed.mean(axis=0), square.mean(axis=0))


class TestProximityAudit:
    """Test the KD-tree proximity audit."""

    @pytest.fixture
    def folded(self):
        return np.array([
            [0.0, 0.0, 0.0],
            [20.0, 0.0, 0.0],
            [20.0, 20.0, 0.0],
            [1.0, 2.0, 0.0],
            [-20.0, 0.0, 0.0],
        ])

    def test_finds_close_non_adjacent_pair(self, folded):
        assert find_proximity_violations(folded, 5.0) == [(0, 3)]

    def test_closing_repeat_is_ignored(self, folded):
        closed = np.vstack([folded, folded[:1]])
        assert find_proximity_violations(closed, 5.0) == [(0, 3)]

    def test_adjacent_pairs_are_ignored(self):
        line = np.array([[0.0, 0, 0], [1.0, 0, 0], [2.0, 0, 0], [30.0, 0, 0]])
        # (0, 2) is the only non-adjacent pair closer than 5
        assert find_proximity_violations(line, 5.0, closed=False) == [(0, 2)]

    def test_wrap_pair_adjacent_only_when_closed(self):
        pts = np.array([[0.0, 0, 0], [20.0, 0, 0], [20.0, 20.0, 0], [0.0, 1.0, 0]])

        assert find_proximity_violations(pts, 5.0, closed=True) == []
        assert find_proximity_violations(pts, 5.0, closed=False) == [(0, 3)]

    def test_generated_path_has_no_unflagged_violations(self):
        path = grow(seed="audit")
        walked = path.points[:-2]
        violations = find_proximity_violations(walked, 17.0, closed=False)

        for i, j in violations:
            assert j in path.forced_indices
