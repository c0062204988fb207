import pytest

from neat_snake.eras import EraEvent, era_state, event_for_era
from neat_snake.fitness import FitnessCriterion


class TestEraState:
    def test_no_stash_means_no_stagnation(self):
        state = era_state(57, None, 200)
        assert state.gens_since_max == 0
        assert state.era == 0
        assert not state.is_boundary
        assert state.multiplier == 1.0
        assert state.criterion is FitnessCriterion.NORMAL

    def test_era_arithmetic(self):
        state = era_state(1000, 450, 200)
        assert state.gens_since_max == 550
        assert state.era == 2
        assert not state.is_boundary
        assert state.multiplier == 3.0

    @pytest.mark.parametrize(
        "since, boundary",
        [(1, False), (199, False), (200, True), (400, True), (401, False)],
    )
    def test_boundaries(self, since, boundary):
        assert era_state(10 + since, 10, 200).is_boundary is boundary

    @pytest.mark.parametrize(
        "since, criterion",
        [
            (50, FitnessCriterion.NORMAL),
            (150, FitnessCriterion.NORMAL),
            (200, FitnessCriterion.FAVOR_EXPLORATION),
            (299, FitnessCriterion.FAVOR_EXPLORATION),
            (300, FitnessCriterion.NORMAL),
            (400, FitnessCriterion.FAVOR_SURVIVAL),
            (600, FitnessCriterion.NORMAL),
            (800, FitnessCriterion.FAVOR_EXPLORATION),
        ],
    )
    def test_criterion_rotates_in_the_first_half(self, since, criterion):
        assert era_state(since, 0, 200).criterion is criterion

    def test_rejects_bad_era_length(self):
        with pytest.raises(ValueError):
            era_state(5, 0, 0)


class TestEvents:
    def test_events_by_era(self):
        assert event_for_era(0) is EraEvent.NONE
        assert event_for_era(1) is EraEvent.CATACLYSM
        assert event_for_era(2) is EraEvent.RESURRECTION
        assert event_for_era(3) is EraEvent.CATACLYSM
        assert event_for_era(4) is EraEvent.RESURRECTION

    def test_state_carries_the_event(self):
        state = era_state(400, 0, 200)
        assert state.is_boundary
        assert state.event is EraEvent.RESURRECTION
