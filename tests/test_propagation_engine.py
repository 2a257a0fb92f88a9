"""Unit tests for the bulk-synchronous EigenTrust engine."""

import logging
import math
import warnings

import pytest

from eigentrust.exceptions import ConfigurationError, NonConvergenceWarning
from eigentrust.graph import build_graph
from eigentrust.propagation import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_NUM_WORKERS,
    DEFAULT_RESET_PROB,
    DEFAULT_TOLERANCE,
    PropagationConfig,
    PropagationEngine,
    compute_eigentrust,
    partition_ranges,
)

# 0 -> {1, 2}, {1, 2} -> 0: periodic, never settles when reset_prob is 0
BIPARTITE_RATINGS = [(0, 1, 1.0), (0, 2, 1.0), (1, 0, 1.0), (2, 0, 1.0)]


def mixed_ratings() -> list[tuple[int, int, float]]:
    """A deterministic 45-vertex graph with duplicates, cycles and dangling peers."""
    ratings = [(i, (i * 7 + 3) % 40, float((i * 13) % 5 + 1)) for i in range(40)]
    ratings += [(i, (i * 11 + 5) % 40, 0.5 + (i % 3)) for i in range(0, 40, 2)]
    ratings += [(i, 40 + i % 5, 1.0) for i in range(0, 40, 7)]
    ratings += [(3, (3 * 7 + 3) % 40, 2.5)]
    return ratings


class TestPropagationConfig:
    """Tests for PropagationConfig dataclass."""

    def test_default_values(self):
        """Config should have sensible defaults."""
        config = PropagationConfig()
        assert config.reset_prob == DEFAULT_RESET_PROB
        assert config.tolerance == DEFAULT_TOLERANCE
        assert config.max_iterations == DEFAULT_MAX_ITERATIONS
        assert config.num_workers == DEFAULT_NUM_WORKERS
        assert config.record_history is True

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"reset_prob": -0.1},
            {"reset_prob": 1.5},
            {"reset_prob": math.nan},
            {"tolerance": -1e-3},
            {"tolerance": math.nan},
            {"max_iterations": 0},
            {"num_workers": 0},
        ],
    )
    def test_validate_rejects_out_of_range(self, kwargs):
        """Out-of-range parameters should raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            PropagationConfig(**kwargs).validate()

    @pytest.mark.parametrize("reset_prob", [0.0, 1.0])
    def test_validate_accepts_bounds(self, reset_prob):
        """The closed interval [0, 1] and zero tolerance are valid."""
        PropagationConfig(reset_prob=reset_prob, tolerance=0.0).validate()


class TestPartitionRanges:
    """Tests for splitting the vertex index space across workers."""

    def test_even_split(self):
        assert partition_ranges(9, 3) == [(0, 3), (3, 6), (6, 9)]

    def test_remainder_goes_to_first_partitions(self):
        assert partition_ranges(10, 3) == [(0, 4), (4, 7), (7, 10)]

    def test_more_workers_than_vertices(self):
        """No partition should be empty."""
        assert partition_ranges(2, 8) == [(0, 1), (1, 2)]

    def test_single_worker(self):
        assert partition_ranges(5, 1) == [(0, 5)]


class TestParameterValidation:
    """Parameters are checked before any graph work starts."""

    @pytest.mark.parametrize(
        "overrides",
        [{"reset_prob": -0.01}, {"reset_prob": 1.01}, {"tol": -1.0}, {"max_iterations": 0}],
    )
    def test_run_rejects_invalid_overrides(self, cycle_ratings, overrides):
        """Invalid per-call overrides should raise ConfigurationError."""
        graph = build_graph(cycle_ratings, seed_id=0)

        with pytest.raises(ConfigurationError):
            PropagationEngine().run(graph, **overrides)

    def test_compute_validates_before_building(self):
        """A bad tolerance should win over a bad rating weight."""
        with pytest.raises(ConfigurationError):
            compute_eigentrust([(1, 2, -1.0)], 1, PropagationConfig(tolerance=-1.0))

    def test_overrides_do_not_change_engine_config(self, cycle_ratings):
        """Per-call overrides apply to that run only."""
        engine = PropagationEngine(PropagationConfig(reset_prob=0.2))
        engine.run(build_graph(cycle_ratings, seed_id=0), reset_prob=1.0)

        assert engine.config.reset_prob == 0.2


class TestExactCases:
    """Cases with exactly known answers."""

    def test_reset_prob_one_returns_seed_indicator(self):
        """With full teleport the seed keeps everything, regardless of topology."""
        ratings = [(0, 1, 1.0), (1, 2, 1.0), (2, 0, 1.0), (2, 3, 1.0), (1, 3, 4.0)]
        result = compute_eigentrust(ratings, 0, PropagationConfig(reset_prob=1.0, tolerance=0.0))

        assert result.scores == {0: 1.0, 1: 0.0, 2: 0.0, 3: 0.0}
        assert result.sink_score == 0.0
        assert result.converged is True
        assert result.supersteps == 1

    def test_seed_self_loop_converges_in_one_superstep(self):
        """A lone seed rating only itself should settle at exactly 1.0."""
        result = compute_eigentrust([(7, 7, 1.0)], 7, PropagationConfig(reset_prob=0.1))

        assert result.scores == {7: 1.0}
        assert result.supersteps == 1
        assert result.converged is True
        assert result.active_vertices == 0

    def test_dangling_chain_matches_stationary_distribution(self):
        """Seed 1 rates 2, 2 rates nobody: mass cycles seed -> 2 -> sink -> seed."""
        result = compute_eigentrust(
            [(1, 2, 1.0)], 1, PropagationConfig(reset_prob=0.1, tolerance=1e-9)
        )

        s1 = 0.1 / (1 - 0.9**3)
        assert result.converged is True
        assert result[1] == pytest.approx(s1, abs=1e-6)
        assert result[2] == pytest.approx(0.9 * s1, abs=1e-6)
        assert result.sink_id == -1
        assert result.sink_score == pytest.approx(0.81 * s1, abs=1e-6)
        assert -1 not in result
        assert sum(result.scores.values()) + result.sink_score == pytest.approx(1.0, abs=1e-6)

    def test_seed_without_inflow_falls_back_to_reset_mass(self):
        """A seed nobody rates keeps only the teleported share."""
        result = compute_eigentrust(
            [(1, 2, 1.0), (2, 3, 1.0), (3, 2, 1.0)],
            1,
            PropagationConfig(reset_prob=0.25, tolerance=1e-10),
        )

        assert result[1] == pytest.approx(0.25)
        assert result[2] + result[3] == pytest.approx(0.75, abs=1e-6)


class TestThreeCycleScenario:
    """Teleporting random walk on the ring 0 -> 1 -> 2 -> 0, seeded at 0."""

    @pytest.fixture
    def result(self, cycle_ratings):
        config = PropagationConfig(reset_prob=0.1, tolerance=1e-6, max_iterations=1000)
        return compute_eigentrust(cycle_ratings, 0, config)

    def test_converges(self, result):
        assert result.converged is True
        assert result.supersteps < 1000
        assert result.active_vertices == 0
        assert result.sink_id is None

    def test_scores_satisfy_stationary_equations(self, result):
        """score_i = 0.1 * [i is seed] + 0.9 * score_(i-1)."""
        for i in range(3):
            seed_term = 0.1 if i == 0 else 0.0
            assert result[i] == pytest.approx(seed_term + 0.9 * result[(i - 1) % 3], abs=1e-4)

    def test_scores_match_closed_form(self, result):
        """s0 = 0.1 / (1 - 0.9^3), s1 = 0.9 s0, s2 = 0.81 s0."""
        s0 = 0.1 / (1 - 0.9**3)
        assert result[0] == pytest.approx(s0, abs=1e-4)
        assert result[1] == pytest.approx(0.9 * s0, abs=1e-4)
        assert result[2] == pytest.approx(0.81 * s0, abs=1e-4)

    def test_seed_ranks_first_then_walk_order(self, result):
        """Trust decays along the ring away from the seed."""
        assert [vid for vid, _ in result.ranked()] == [0, 1, 2]

    def test_scores_sum_to_one(self, result):
        assert sum(result.scores.values()) == pytest.approx(1.0, abs=1e-4)


class TestMassConservation:
    """With no teleport, total mass stays at 1, dangling peers included."""

    def test_total_mass_constant_every_superstep(self):
        """The periodic bipartite walk never settles but never leaks mass."""
        config = PropagationConfig(reset_prob=0.0, tolerance=1e-9, max_iterations=25)

        with pytest.warns(NonConvergenceWarning):
            result = compute_eigentrust(BIPARTITE_RATINGS, 0, config)

        assert len(result.history) == 25
        for stats in result.history:
            assert stats.total_mass == pytest.approx(1.0, abs=1e-12)

    def test_superstep_zero_spreads_uniform_mass(self):
        """After the initial broadcast every vertex holds 1/N."""
        config = PropagationConfig(reset_prob=0.0, tolerance=1e-9, max_iterations=1)

        with pytest.warns(NonConvergenceWarning):
            result = compute_eigentrust(BIPARTITE_RATINGS, 0, config)

        assert result.scores == {0: 1 / 3, 1: 1 / 3, 2: 1 / 3}

    def test_dangling_mass_is_conserved_every_superstep(self):
        """Two dangling peers feed the sink, which hands the mass back to the seed."""
        ratings = [(0, 1, 1.0), (0, 2, 1.0), (0, 3, 1.0), (1, 0, 1.0)]
        config = PropagationConfig(reset_prob=0.0, tolerance=0.0, max_iterations=30)

        with pytest.warns(NonConvergenceWarning):
            result = compute_eigentrust(ratings, 0, config)

        assert len(result.history) == 30
        for stats in result.history:
            assert stats.total_mass == pytest.approx(1.0, abs=1e-12)
        assert sum(result.scores.values()) + result.sink_score == pytest.approx(1.0, abs=1e-12)

    def test_dangling_walk_approaches_stationary_distribution(self):
        """Without teleport the walk settles at 3/8 seed, 1/8 per leaf, 1/4 sink."""
        ratings = [(0, 1, 1.0), (0, 2, 1.0), (0, 3, 1.0), (1, 0, 1.0)]
        config = PropagationConfig(reset_prob=0.0, tolerance=1e-12, max_iterations=1000)

        result = compute_eigentrust(ratings, 0, config)

        assert result.converged is True
        assert result[0] == pytest.approx(3 / 8, abs=1e-6)
        assert result[1] == pytest.approx(1 / 8, abs=1e-6)
        assert result.sink_score == pytest.approx(1 / 4, abs=1e-6)


class TestNonConvergence:
    """Hitting the iteration cap returns a best-effort result."""

    def test_warning_carries_counts(self):
        config = PropagationConfig(reset_prob=0.0, tolerance=1e-9, max_iterations=10)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            result = compute_eigentrust(BIPARTITE_RATINGS, 0, config)

        non_convergence = [w for w in caught if issubclass(w.category, NonConvergenceWarning)]
        assert len(non_convergence) == 1
        warning = non_convergence[0].message
        assert warning.supersteps == 10
        assert warning.active_vertices == 3
        assert "did not converge after 10 supersteps" in str(warning)
        assert result.converged is False
        assert len(result) == 3

    def test_cap_cuts_converging_run_short(self, cycle_ratings):
        graph = build_graph(cycle_ratings, seed_id=0)

        with pytest.warns(NonConvergenceWarning):
            result = PropagationEngine().run(graph, tol=1e-9, max_iterations=3)

        assert result.supersteps == 3
        assert result.converged is False
        assert result.active_vertices > 0

    def test_not_converged_is_logged(self, caplog):
        config = PropagationConfig(reset_prob=0.0, tolerance=1e-9, max_iterations=4)

        with caplog.at_level(logging.WARNING), pytest.warns(NonConvergenceWarning):
            compute_eigentrust(BIPARTITE_RATINGS, 0, config)

        assert "propagation_not_converged" in caplog.text


class TestDeterminism:
    """Identical input yields bit-identical output."""

    def test_repeated_runs_are_identical(self):
        graph = build_graph(mixed_ratings(), seed_id=0)
        engine = PropagationEngine(PropagationConfig(tolerance=1e-8))

        first = engine.run(graph)
        second = engine.run(graph)

        assert first.scores == second.scores
        assert first.supersteps == second.supersteps

    @pytest.mark.parametrize("workers", [2, 3, 8, 64])
    def test_worker_count_does_not_change_scores(self, workers):
        graph = build_graph(mixed_ratings(), seed_id=0)
        serial = PropagationEngine(PropagationConfig(tolerance=1e-8)).run(graph)
        parallel = PropagationEngine(PropagationConfig(tolerance=1e-8, num_workers=workers)).run(
            graph
        )

        assert parallel.scores == serial.scores
        assert parallel.sink_score == serial.sink_score
        assert [s.model_dump() for s in parallel.history] == [
            s.model_dump() for s in serial.history
        ]


class TestResultShape:
    """Tests for what the engine reports alongside the scores."""

    def test_every_real_vertex_is_scored(self):
        graph = build_graph(mixed_ratings(), seed_id=0)
        result = PropagationEngine().run(graph)

        assert set(result.scores) == set(graph.vertex_ids) - {graph.sink_id}
        assert result.seed_id == 0

    def test_history_tracks_shrinking_active_set(self):
        result = compute_eigentrust(mixed_ratings(), 0, PropagationConfig(tolerance=1e-8))

        actives = [stats.active for stats in result.history]
        assert actives == sorted(actives, reverse=True)
        assert actives[-1] == 0
        assert result.history[0].updated == 45 + 1  # every vertex plus the sink
        assert result.history[-1].messages == 0

    def test_history_can_be_disabled(self, cycle_ratings):
        config = PropagationConfig(tolerance=1e-6, record_history=False)
        result = compute_eigentrust(cycle_ratings, 0, config)

        assert result.history == []
        assert result.supersteps > 0

    def test_scores_stay_non_negative(self):
        result = compute_eigentrust(mixed_ratings(), 0, PropagationConfig(tolerance=1e-8))

        assert all(score >= 0.0 for score in result.scores.values())
        assert result.sink_score >= 0.0

    def test_scores_and_sink_form_a_distribution(self):
        """Converged scores plus the sink's share account for all trust mass."""
        result = compute_eigentrust(mixed_ratings(), 0, PropagationConfig(tolerance=1e-8))

        assert result.sink_score > 0.0
        assert sum(result.scores.values()) + result.sink_score == pytest.approx(1.0, abs=1e-4)
