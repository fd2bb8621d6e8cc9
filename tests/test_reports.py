from __future__ import annotations

from datetime import datetime
from itertools import permutations

import pytest

from perfreport.errors import EmptyReportError
from perfreport.models.reports import (
    AggregatedUriReport,
    PerformanceReport,
    SampledUriReport,
    UriReport,
    average_traffic_kb,
    compute_delta,
    error_percent,
    escaped_uri,
    http_code_changed,
    is_failed,
    short_uri,
)


def sampled(make_sample, durations, uri="/api/orders", **kwargs) -> SampledUriReport:
    report = SampledUriReport(uri)
    for d in durations:
        report.add_sample(make_sample(d, uri=uri, **kwargs))
    return report


def test_both_report_types_satisfy_protocol() -> None:
    assert isinstance(SampledUriReport("/a"), UriReport)
    assert isinstance(AggregatedUriReport("/a"), UriReport)


def test_sampled_report_statistics(make_sample) -> None:
    report = sampled(make_sample, [10, 20, 30, 40, 50, 60, 70, 80, 90, 100])

    assert report.size() == 10
    assert report.average() == 55
    assert report.min() == 10
    assert report.max() == 100
    # nearest rank: index floor(10 * 0.5) = 5, floor(10 * 0.9) = 9
    assert report.median() == 60
    assert report.percentile90() == 100


def test_sampled_average_truncates(make_sample) -> None:
    assert sampled(make_sample, [1, 2]).average() == 1


def test_min_average_max_ordering(make_sample) -> None:
    report = sampled(make_sample, [5, 7, 9, 11, 200])
    assert report.min() <= report.median() <= report.max()
    assert report.min() <= report.average() <= report.max()


def test_percentiles_do_not_depend_on_sample_order(make_sample) -> None:
    durations = [3, 1, 4, 15, 9, 2]
    expected = sampled(make_sample, sorted(durations))

    for order in permutations(durations):
        report = sampled(make_sample, order)
        assert report.median() == expected.median()
        assert report.percentile90() == expected.percentile90()


def test_empty_sampled_report() -> None:
    report = SampledUriReport("/empty")

    assert report.size() == 0
    assert report.count_errors() == 0
    assert report.median() == 0
    assert report.percentile90() == 0
    assert report.http_codes() == ""
    assert report.total_traffic_kb() == 0.0
    with pytest.raises(EmptyReportError):
        report.average()
    with pytest.raises(EmptyReportError):
        report.min()
    with pytest.raises(EmptyReportError):
        report.max()
    with pytest.raises(EmptyReportError):
        error_percent(report)
    with pytest.raises(EmptyReportError):
        average_traffic_kb(report)


def test_add_sample_rejects_none() -> None:
    with pytest.raises(ValueError):
        SampledUriReport("/a").add_sample(None)


def test_errors_and_error_percent(make_sample) -> None:
    report = SampledUriReport("/api/orders")
    report.add_sample(make_sample(10, status_code="200"))
    report.add_sample(make_sample(10, status_code="500", successful=False))
    report.add_sample(make_sample(10, status_code="200"))
    report.add_sample(make_sample(10, status_code="503", successful=False))

    assert report.count_errors() == 2
    assert report.count_errors() <= report.size()
    assert error_percent(report) == 50.0
    assert is_failed(report)


def test_http_codes_are_distinct_in_first_seen_order(make_sample) -> None:
    report = SampledUriReport("/a")
    for code in ["200", "302", "200", "500", "302"]:
        report.add_sample(make_sample(1, uri="/a", status_code=code))
    assert report.http_codes() == "200,302,500"


def test_http_codes_keep_codes_that_are_substrings_of_others(make_sample) -> None:
    report = SampledUriReport("/a")
    report.add_sample(make_sample(1, uri="/a", status_code="200"))
    report.add_sample(make_sample(1, uri="/a", status_code="20"))
    assert report.http_codes() == "200,20"


def test_traffic_rounds_half_up(make_sample) -> None:
    report = sampled(make_sample, [1, 1], size_kb=0.0625)
    assert report.total_traffic_kb() == 0.13
    assert average_traffic_kb(report) == 0.07


def test_short_uri_boundary() -> None:
    exact = "u" * 130
    longer = "u" * 131

    assert short_uri(exact) == exact
    assert short_uri(longer) == "u" * 129
    assert short_uri("/short") == "/short"


def test_escaped_uri() -> None:
    assert escaped_uri("http://example.com/api/orders") == "__example.com_api_orders"
    assert SampledUriReport("/a/b").escaped_uri == "_a_b"


def test_aggregated_report_accumulates() -> None:
    report = AggregatedUriReport("summary")
    report.add_requests(10)
    report.add_requests(5)
    report.add_errors(2)
    report.add_errors(1)
    report.extend_min(7)
    report.extend_min(9)
    report.extend_max(40)
    report.extend_max(30)
    report.set_average(20)

    assert report.size() == 15
    assert report.count_errors() == 3
    assert report.min() == 7
    assert report.max() == 40
    assert error_percent(report) == 20.0


def test_aggregated_report_falls_back_without_explicit_values() -> None:
    report = AggregatedUriReport("summary")
    report.add_requests(4)
    report.extend_max(90)
    report.set_average(25)

    assert report.percentile90() == 90
    assert report.median() == 25

    report.set_percentile90(80)
    report.set_median(22)
    assert report.percentile90() == 80
    assert report.median() == 22


def test_aggregated_report_rejects_more_errors_than_requests() -> None:
    report = AggregatedUriReport("summary")
    report.add_requests(1)
    with pytest.raises(ValueError):
        report.add_errors(2)


def test_aggregated_report_without_data() -> None:
    report = AggregatedUriReport("summary", date=datetime(2013, 3, 18))
    assert report.size() == 0
    assert report.http_codes() == ""
    assert report.total_traffic_kb() == 0.0
    with pytest.raises(EmptyReportError):
        report.min()
    with pytest.raises(EmptyReportError):
        report.percentile90()


def test_deltas_without_previous_are_zero(make_sample) -> None:
    report = sampled(make_sample, [10, 20])
    delta = compute_delta(report, None)

    assert delta.average == 0
    assert delta.median == 0
    assert delta.error_percent == 0.0
    assert delta.size == 0
    assert delta.previous_http_codes == ""


def test_deltas_against_previous(make_sample) -> None:
    previous = SampledUriReport("/api/orders")
    previous.add_sample(make_sample(10, status_code="200"))
    previous.add_sample(make_sample(30, status_code="500", successful=False))

    current = SampledUriReport("/api/orders")
    for d in (20, 40, 60):
        current.add_sample(make_sample(d, status_code="200"))

    delta = compute_delta(current, previous)
    assert delta.average == 40 - 20
    assert delta.median == 40 - 30
    assert delta.error_percent == -50.0
    assert delta.size == 1
    assert delta.previous_http_codes == "200,500"


def test_http_code_changed_is_empty_when_codes_match(make_sample) -> None:
    a = sampled(make_sample, [1], status_code="200")
    b = sampled(make_sample, [2], status_code="200")
    assert http_code_changed(a, b) == ""


def test_performance_report_keeps_one_entry_per_uri(make_sample) -> None:
    run = PerformanceReport("results.jsonl")
    run.add_sample(make_sample(10, uri="/a"))
    run.add_sample(make_sample(20, uri="/a"))
    run.add_sample(make_sample(30, uri="/b"))

    assert len(run) == 2
    assert run.get("/a").size() == 2
    assert run.get("/b").size() == 1
    assert run.get("/missing") is None


def test_performance_report_replaces_uri_report_by_key() -> None:
    run = PerformanceReport("summary.log", kind="summarizer")
    first = AggregatedUriReport("summary")
    second = AggregatedUriReport("summary")
    run.add_uri_report(first)
    run.add_uri_report(second)

    assert len(run) == 1
    assert run.get("summary") is second


def test_performance_report_rollups(make_sample) -> None:
    run = PerformanceReport("results.jsonl")
    for d in (10, 20, 30):
        run.add_sample(make_sample(d, uri="/a", size_kb=1.0))
    run.add_sample(make_sample(100, uri="/b", successful=False, size_kb=0.5))

    assert run.size() == 4
    assert run.count_errors() == 1
    assert run.error_percent() == 25.0
    assert run.average() == (20 * 3 + 100) // 4
    assert run.min() == 10
    assert run.max() == 100
    assert run.total_traffic_kb() == 3.5


def test_empty_performance_report() -> None:
    run = PerformanceReport("empty.jsonl")
    assert run.size() == 0
    with pytest.raises(EmptyReportError):
        run.average()
    with pytest.raises(EmptyReportError):
        run.error_percent()


def test_compare_to_matches_by_uri(make_sample) -> None:
    previous = PerformanceReport("old.jsonl")
    previous.add_sample(make_sample(10, uri="/a"))

    current = PerformanceReport("new.jsonl")
    current.add_sample(make_sample(25, uri="/a"))
    current.add_sample(make_sample(5, uri="/b"))

    deltas = current.compare_to(previous)
    assert deltas["/a"].average == 15
    assert deltas["/b"].average == 0
    assert current.compare_to(None)["/a"].average == 0
