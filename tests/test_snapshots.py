"""Tests for mc_epidemic.snapshots — interval sampling of time series."""

import numpy as np
import pytest

from mc_epidemic.metrics import EpidemicMetrics, StatusCounts
from mc_epidemic.snapshots import SeriesRecorder


def metrics(healthy=10, symptomatic=0, rt=None, r0=None):
    return EpidemicMetrics(
        counts=StatusCounts(healthy=healthy, symptomatic=symptomatic),
        r0=r0, rt=rt, n_index_resolved=0, n_resolved=0,
    )


class TestShouldRecord:
    def test_first_tick_past_boundary(self):
        rec = SeriesRecorder(interval_ms=500)
        clocks = np.arange(16, 2001, 16, dtype=float)
        hits = [c for c in clocks if rec.should_record(c, 16)]
        # 496 < 500 ≤ 512 → 512 is the first tick past 500
        assert hits == [512.0, 1008.0, 1504.0, 2000.0]

    def test_disabled(self):
        assert not SeriesRecorder(enabled=False).should_record(500.0, 16)


class TestRecord:
    def test_counts_always_reproduction_once_defined(self):
        rec = SeriesRecorder(interval_ms=100)
        assert rec.record(100.0, 16, metrics())
        assert rec.record(200.0, 16, metrics(rt=1.5, r0=2.0))
        assert len(rec) == 2
        assert len(rec.reproduction) == 1
        assert rec.reproduction[0].rt == 1.5

    def test_skips_between_boundaries(self):
        rec = SeriesRecorder(interval_ms=100)
        assert not rec.record(150.0, 16, metrics())
        assert len(rec) == 0

    def test_record_initial(self):
        rec = SeriesRecorder()
        rec.record_initial(0.0, metrics(healthy=7))
        assert rec.counts[0].time_ms == 0.0
        assert rec.counts[0].counts.healthy == 7

    def test_disabled_records_nothing(self):
        rec = SeriesRecorder(enabled=False)
        rec.record_initial(0.0, metrics())
        assert not rec.record(500.0, 16, metrics(rt=1.0))
        assert len(rec) == 0 and rec.reproduction == []

    def test_clear(self):
        rec = SeriesRecorder(interval_ms=100)
        rec.record(100.0, 16, metrics(rt=1.0))
        rec.clear()
        assert len(rec) == 0 and rec.reproduction == []


class TestAsArrays:
    def test_columns(self):
        rec = SeriesRecorder(interval_ms=500)
        rec.record_initial(0.0, metrics(healthy=10))
        rec.record(500.0, 16, metrics(healthy=8, symptomatic=2, rt=0.5))
        rec.record(1000.0, 16, metrics(healthy=7, symptomatic=1, rt=1.0, r0=2.0))
        arr = rec.as_arrays()
        np.testing.assert_allclose(arr['time_s'], [0.0, 0.5, 1.0])
        np.testing.assert_array_equal(arr['healthy'], [10, 8, 7])
        np.testing.assert_array_equal(arr['active'], [0, 2, 1])
        np.testing.assert_allclose(arr['rt_time_s'], [0.5, 1.0])
        np.testing.assert_allclose(arr['rt'], [0.5, 1.0])
        assert np.isnan(arr['r0'][0])
        assert arr['r0'][1] == pytest.approx(2.0)

    def test_empty(self):
        arr = SeriesRecorder().as_arrays()
        assert arr['time_s'].shape == (0,)
        assert arr['dead'].shape == (0,)
        assert arr['rt'].shape == (0,)
