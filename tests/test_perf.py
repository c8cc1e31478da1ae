"""Tests for mc_epidemic.perf — per-phase tick timing."""

from mc_epidemic.perf import PerfMonitor, PhaseStats


class TestPhaseStats:
    def test_accumulates(self):
        s = PhaseStats()
        s.add(0.002)
        s.add(0.004)
        assert s.call_count == 2
        assert s.max_time == 0.004
        assert abs(s.mean_time - 0.003) < 1e-12

    def test_mean_of_nothing(self):
        assert PhaseStats().mean_time == 0.0


class TestPerfMonitor:
    def test_disabled_records_nothing(self):
        perf = PerfMonitor()
        with perf.track('movement'):
            pass
        assert perf.phases == {}
        assert perf.total() == 0.0

    def test_tracks_phases(self):
        perf = PerfMonitor(enabled=True)
        for _ in range(3):
            with perf.track('movement'):
                sum(range(1000))
        with perf.track('contacts'):
            pass
        assert perf.phases['movement'].call_count == 3
        assert perf.phases['contacts'].call_count == 1
        assert perf.total() >= 0.0

    def test_records_when_body_raises(self):
        perf = PerfMonitor(enabled=True)
        try:
            with perf.track('disease'):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert perf.phases['disease'].call_count == 1

    def test_summary_and_report(self):
        perf = PerfMonitor(enabled=True)
        with perf.track('metrics'):
            pass
        summary = perf.summary()
        assert '_total_s' in summary
        assert summary['metrics']['calls'] == 1
        report = perf.report()
        assert 'metrics' in report
        assert 'TOTAL' in report

    def test_reset(self):
        perf = PerfMonitor(enabled=True)
        with perf.track('movement'):
            pass
        perf.reset()
        assert perf.phases == {}
