"""
Aggregator Class - Builds report DTOs from parsed runs

This module loads every stored log through the matching parser and turns
the resulting reports into API-ready statistics.
"""

from typing import Callable, List, Optional, TypeVar

from perfreport.errors import EmptyReportError
from perfreport.models.data_models import RunSummary, UriStat
from perfreport.models.reports import (
    PerformanceReport,
    UriReport,
    average_traffic_kb,
    error_percent,
    escaped_uri,
    short_uri,
)
from perfreport.services.parser import SampleLogParser
from perfreport.services.storage import LogStore
from perfreport.services.summarizer import SummarizerLogParser

T = TypeVar("T")

SORT_KEYS = {
    "count": lambda s: s.count,
    "average": lambda s: s.avg_response_time or 0,
    "p90": lambda s: s.p90_response_time or 0,
    "errors": lambda s: s.errors,
    "uri": lambda s: s.uri,
}


def or_none(fn: Callable[[], T]) -> Optional[T]:
    """Value of fn(), or None when the report is empty"""
    try:
        return fn()
    except EmptyReportError:
        return None


class Aggregator:
    """
    Aggregates stored logs into report statistics.
    Responsibilities:
    - Route stored files to the summariser or sample parser
    - Compute run-level summaries
    - Compute per-URI statistics with deltas against a previous run
    """

    def __init__(
        self,
        log_store: LogStore,
        summarizer_parser: SummarizerLogParser,
        sample_parser: SampleLogParser,
    ):
        self.store = log_store
        self.summarizer = summarizer_parser
        self.samples = sample_parser

    def load_runs(self) -> List[PerformanceReport]:
        """
        Parse every stored file, named by its path relative to the store.
        A file matching both globs is read as a summariser log.
        """
        summarizer_paths = self.store.find(self.summarizer.glob)
        claimed = set(summarizer_paths)
        sample_paths = [p for p in self.store.find(self.samples.glob) if p not in claimed]

        runs = (
            self.summarizer.parse(summarizer_paths, self.store.directory)
            + self.samples.parse(sample_paths, self.store.directory)
        )
        runs.sort(key=lambda r: r.report_file_name)
        return runs

    def find_run(self, name: str, runs: Optional[List[PerformanceReport]] = None) -> Optional[PerformanceReport]:
        for run in runs if runs is not None else self.load_runs():
            if run.report_file_name == name:
                return run
        return None

    def run_summary(self, run: PerformanceReport) -> RunSummary:
        return RunSummary(
            name=run.report_file_name,
            kind=run.kind,
            uri_count=len(run),
            total_requests=run.size(),
            error_count=run.count_errors(),
            error_rate=or_none(run.error_percent),
            avg_response_time=or_none(run.average),
            min_response_time=or_none(run.min),
            max_response_time=or_none(run.max),
            total_traffic_kb=run.total_traffic_kb(),
        )

    def uri_stat(self, report: UriReport) -> UriStat:
        return UriStat(
            uri=report.uri,
            short_uri=short_uri(report.uri),
            escaped_uri=escaped_uri(report.uri),
            count=report.size(),
            errors=report.count_errors(),
            error_rate=or_none(lambda: error_percent(report)),
            avg_response_time=or_none(report.average),
            median_response_time=or_none(report.median),
            p90_response_time=or_none(report.percentile90),
            min_response_time=or_none(report.min),
            max_response_time=or_none(report.max),
            http_codes=report.http_codes(),
            total_traffic_kb=report.total_traffic_kb(),
            avg_traffic_kb=or_none(lambda: average_traffic_kb(report)),
        )

    def uri_stats(
        self,
        run: PerformanceReport,
        previous: Optional[PerformanceReport] = None,
        sort_by: str = "count",
        order: str = "desc",
        limit: Optional[int] = None,
    ) -> List[UriStat]:
        """Per-URI statistics, with deltas when a previous run is given"""
        deltas = run.compare_to(previous)

        stats: List[UriStat] = []
        for uri, report in run.uri_reports.items():
            stat = self.uri_stat(report)
            delta = deltas[uri]
            stat.average_delta = delta.average
            stat.median_delta = delta.median
            stat.error_rate_delta = delta.error_percent
            stat.count_delta = delta.size
            stat.previous_http_codes = delta.previous_http_codes
            stats.append(stat)

        key_fn = SORT_KEYS.get(sort_by.lower(), SORT_KEYS["count"])
        stats.sort(key=key_fn, reverse=order.lower() != "asc")

        return stats[:limit] if limit is not None else stats
