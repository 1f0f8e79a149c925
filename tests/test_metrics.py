import time
from dataclasses import dataclass

import pytest

from rpcxkit.context import with_value
from rpcxkit.metrics import (
    START_REQUEST_CONTEXT_KEY,
    Counter,
    Histogram,
    Meter,
    MetricsPlugin,
    Registry,
)


@dataclass
class Message:
    service_path: str = ""
    service_method: str = ""
    metadata: dict | None = None


def test_meter_counts_marks():
    meter = Registry().get_or_register_meter("calls")
    meter.mark(1)
    meter.mark(2)
    assert meter.count() == 3


def test_meter_rate_mean_positive_after_mark():
    meter = Meter()
    meter.mark(5)
    assert meter.rate_mean() > 0


def test_meter_rate_mean_without_marks():
    assert Meter().rate_mean() == 0


def test_counter_inc():
    counter = Counter()
    counter.inc(4)
    assert counter.count() == 4


def test_registry_returns_same_metric():
    reg = Registry()
    reg.get_or_register_meter("m").mark(2)
    reg.get_or_register_meter("m").mark(3)
    assert reg.get_or_register_meter("m").count() == 5
    reg.get_or_register_counter("c").inc(1)
    reg.get_or_register_counter("c").inc(6)
    assert reg.get_or_register_counter("c").count() == 7


def test_registry_rejects_type_conflict():
    reg = Registry()
    reg.get_or_register_meter("x")
    with pytest.raises(TypeError):
        reg.get_or_register_counter("x")


def test_registry_each_lists_metrics():
    reg = Registry()
    reg.get_or_register_meter("a")
    reg.get_or_register_histogram("b")
    assert {name for name, _ in reg.each()} == {"a", "b"}


def test_histogram_percentiles_are_ordered():
    hist = Histogram()
    for v in range(1, 101):
        hist.update(v)
    assert hist.count() == 100
    assert hist.percentile(0) == 1
    assert hist.percentile(1.0) == 100
    assert hist.percentile(0.5) <= hist.percentile(0.75) <= hist.percentile(0.99)


def test_histogram_mean_of_equal_values():
    hist = Histogram()
    hist.update(5)
    hist.update(5)
    assert hist.mean() == 5


def test_histogram_sample_is_bounded():
    hist = Histogram(sample_size=10)
    for v in range(1000):
        hist.update(v)
    assert hist.count() == 1000
    assert 0 <= hist.percentile(0.5) < 1000


def test_plugin_register_counts_services():
    reg = Registry()
    plugin = MetricsPlugin(reg, "p.")
    plugin.register("Arith", object(), "")
    plugin.register("Echo", object(), "")
    assert reg.get_or_register_counter("p.serviceCounter").count() == 2


def test_plugin_handle_conn_accept_marks_client():
    reg = Registry()
    plugin = MetricsPlugin(reg, "")
    conn = object()
    result, ok = plugin.handle_conn_accept(conn)
    assert result is conn and ok
    assert reg.get_or_register_meter("clientMeter").count() == 1


def test_plugin_post_read_request_ignores_empty_path():
    reg = Registry()
    MetricsPlugin(reg, "").post_read_request(None, Message(), None)
    assert list(reg.each()) == []


def test_plugin_post_read_request_marks_method():
    reg = Registry()
    MetricsPlugin(reg, "").post_read_request(None, Message("Arith", "Mul"), None)
    assert reg.get_or_register_meter("service.Arith.Mul.Read_Qps").count() == 1


def test_plugin_post_write_response_records_call_time():
    reg = Registry()
    ctx = with_value(None, START_REQUEST_CONTEXT_KEY, time.time_ns() - 1000)
    res = Message("Arith", "Mul")
    MetricsPlugin(reg, "").post_write_response(ctx, res, res, None)
    assert reg.get_or_register_meter("service.Arith.Mul.Write_Qps").count() == 1
    assert reg.get_or_register_histogram("service.Arith.Mul.CallTime").count() == 1


@pytest.mark.parametrize("start", [0, time.time_ns() - 31 * 60 * 1_000_000_000])
def test_plugin_post_write_response_skips_bad_start(start):
    reg = Registry()
    ctx = with_value(None, START_REQUEST_CONTEXT_KEY, start)
    res = Message("Arith", "Mul")
    MetricsPlugin(reg, "").post_write_response(ctx, res, res, None)
    names = {name for name, _ in reg.each()}
    assert names == {"service.Arith.Mul.Write_Qps"}