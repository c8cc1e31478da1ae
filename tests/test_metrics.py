"""Tests for mc_epidemic.metrics — status counts and R₀/Rₜ estimation."""

import numpy as np
import pytest

from mc_epidemic.metrics import (
    StatusCounts,
    compute_metrics,
    concluded_mask,
    count_statuses,
    reproduction_number,
)
from mc_epidemic.types import Status, allocate_agents


def make_outbreak():
    """Six agents, ids 0-1 are index cases.

    id  status        infectious_at  transmissions
    0   RECOVERED     0              3
    1   SYMPTOMATIC   0              1
    2   DEAD          500            2
    3   RECOVERED     NaN (vacc.)    0
    4   QUARANTINED   600            0
    5   HEALTHY       NaN            0
    """
    agents = allocate_agents(6)
    agents['status'] = [Status.RECOVERED, Status.SYMPTOMATIC, Status.DEAD,
                        Status.RECOVERED, Status.QUARANTINED, Status.HEALTHY]
    agents['infectious_at'] = [0.0, 0.0, 500.0, np.nan, 600.0, np.nan]
    agents['transmission_count'] = [3, 1, 2, 0, 0, 0]
    return agents


class TestCountStatuses:
    def test_partition(self):
        c = count_statuses(make_outbreak())
        assert c == StatusCounts(healthy=1, symptomatic=1, quarantined=1,
                                 recovered=2, dead=1)
        assert c.total == 6

    def test_active_is_detected_cases(self):
        c = StatusCounts(symptomatic=4, asymptomatic=7, quarantined=2)
        assert c.active == 6
        assert c.infectious == 11

    def test_as_dict_includes_active(self):
        d = StatusCounts(symptomatic=1, quarantined=1).as_dict()
        assert d['active'] == 2
        assert d['healthy'] == 0

    def test_empty(self):
        assert count_statuses(allocate_agents(0)).total == 0


class TestReproductionNumber:
    def test_concluded_excludes_vaccinated(self):
        np.testing.assert_array_equal(
            concluded_mask(make_outbreak()),
            [True, False, True, False, False, False],
        )

    def test_rt_over_all_concluded(self):
        assert reproduction_number(make_outbreak()) == pytest.approx(2.5)

    def test_r0_over_index_cases(self):
        assert reproduction_number(make_outbreak(), 2) == pytest.approx(3.0)

    def test_undefined_before_any_conclusion(self):
        agents = allocate_agents(3)
        agents['status'][0] = Status.SYMPTOMATIC
        agents['infectious_at'][0] = 0.0
        assert reproduction_number(agents) is None
        assert reproduction_number(agents, 1) is None

    def test_r0_undefined_when_no_index_case_concluded(self):
        agents = make_outbreak()
        agents['status'][0] = Status.QUARANTINED
        assert reproduction_number(agents, 2) is None
        assert reproduction_number(agents) == pytest.approx(2.0)


class TestComputeMetrics:
    def test_matches_helpers(self):
        agents = make_outbreak()
        m = compute_metrics(agents, 2)
        assert m.counts == count_statuses(agents)
        assert m.r0 == pytest.approx(3.0)
        assert m.rt == pytest.approx(2.5)
        assert m.n_index_resolved == 1
        assert m.n_resolved == 2

    def test_none_when_nothing_concluded(self):
        m = compute_metrics(allocate_agents(4), 1)
        assert m.r0 is None and m.rt is None
        assert m.n_resolved == 0

    def test_zero_index_cases(self):
        m = compute_metrics(make_outbreak(), 0)
        assert m.r0 is None
        assert m.rt == pytest.approx(2.5)

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_agrees_with_reproduction_number(self, seed):
        rng = np.random.default_rng(seed)
        agents = allocate_agents(300)
        agents['status'] = rng.integers(0, len(Status), 300)
        agents['infectious_at'] = np.where(rng.random(300) < 0.7, 0.0, np.nan)
        agents['transmission_count'] = rng.integers(0, 5, 300)
        m = compute_metrics(agents, 20)
        assert m.r0 == reproduction_number(agents, 20)
        assert m.rt == reproduction_number(agents)
        assert m.n_resolved == int(concluded_mask(agents).sum())
