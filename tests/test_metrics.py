import io
import json

from dagledger import logs
from dagledger.metrics import Meter, Metrics, Timer


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_meter_counts_marks():
    meter = Meter(FakeClock())
    meter.mark(3)
    meter.mark(2)
    assert meter.count() == 5


def test_meter_rate_mean():
    clock = FakeClock()
    meter = Meter(clock)
    meter.mark(5)
    clock.now += 10
    assert meter.rate_mean() == 0.5


def test_meter_rate_without_elapsed_time_is_zero():
    meter = Meter(FakeClock())
    meter.mark(5)
    assert meter.rate_mean() == 0.0


def test_meter_ignores_marks_after_stop():
    meter = Meter(FakeClock())
    meter.mark(4)
    meter.stop()
    meter.mark(10)
    assert meter.count() == 4


def test_timer_statistics():
    timer = Timer(FakeClock())
    timer.update(0.1)
    timer.update(0.3)
    assert timer.max() == 0.3
    assert timer.min() == 0.1
    assert abs(timer.mean() - 0.2) < 1e-12


def test_empty_timer_reports_zero():
    timer = Timer(FakeClock())
    assert (timer.max(), timer.min(), timer.mean()) == (0.0, 0.0, 0.0)


def test_timer_time_returns_result_and_records():
    timer = Timer()
    assert timer.time(lambda: "done") == "done"
    assert timer.max() >= timer.min() >= 0.0
    assert timer.max() == timer.mean()


def test_timer_records_even_when_func_raises():
    timer = Timer()

    def boom():
        raise RuntimeError("boom")

    try:
        timer.time(boom)
    except RuntimeError as exc:
        assert str(exc) == "boom"
    assert timer.max() >= 0.0
    assert timer.max() == timer.min()


def test_metrics_report_reflects_meters():
    clock = FakeClock()
    m = Metrics(interval=None, clock=clock)
    m.received_tx.mark(7)
    m.queried.mark(2)
    clock.now += 1
    report = m.report()
    assert report["tx.received"] == 7
    assert report["round.queried"] == 2
    assert report["tx.accepted"] == 0
    assert report["tps.received"] == 7.0
    assert set(m.registry) == {
        "round.queried",
        "tx.gossiped",
        "tx.received",
        "tx.accepted",
        "tx.downloaded",
        "query.latency",
    }


def test_metrics_report_is_logged():
    sink = io.BytesIO()
    logs.set_writer("metrics-test", sink)
    m = Metrics(interval=None, clock=FakeClock())
    m.accepted_tx.mark(3)
    m.report()
    lines = [json.loads(line) for line in sink.getvalue().splitlines()]
    records = [r for r in lines if r.get("message") == "Updated metrics."]
    assert records
    assert records[-1]["mod"] == "metrics"
    assert records[-1]["tx.accepted"] == 3


def test_metrics_stop_halts_counting():
    m = Metrics(interval=0.01, clock=FakeClock())
    m.gossiped_tx.mark(1)
    m.stop()
    m.gossiped_tx.mark(5)
    assert m.gossiped_tx.count() == 1