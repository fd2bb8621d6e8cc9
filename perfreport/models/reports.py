"""
URI Reports - per-endpoint statistics for one test run

Two report types satisfy the UriReport protocol:

- SampledUriReport keeps every Sample and computes statistics on demand.
- AggregatedUriReport is built from summariser lines that already carry
  count/avg/min/max/errors, so percentiles can only be approximated.

Arithmetic shared by both (error rate, traffic average, deltas against a
previous run) lives in plain functions that accept any UriReport.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Protocol, runtime_checkable

from perfreport.errors import EmptyReportError
from perfreport.models.data_models import Sample
from perfreport.utils.helpers import join_distinct, nearest_rank, round_two_decimals

SHORT_URI_LIMIT = 130


@runtime_checkable
class UriReport(Protocol):
    """Capabilities every per-URI report exposes"""

    uri: str

    def size(self) -> int: ...

    def count_errors(self) -> int: ...

    def average(self) -> int: ...

    def median(self) -> int: ...

    def percentile90(self) -> int: ...

    def min(self) -> int: ...

    def max(self) -> int: ...

    def http_codes(self) -> str: ...

    def total_traffic_kb(self) -> float: ...


# ──────────────────────────────────────────────────────────────────────────────
# Shared arithmetic
# ──────────────────────────────────────────────────────────────────────────────


def error_percent(report: UriReport) -> float:
    """Share of failed requests, in percent"""
    size = report.size()
    if size == 0:
        raise EmptyReportError(report.uri, "error percent")
    return report.count_errors() / size * 100


def average_traffic_kb(report: UriReport) -> float:
    """Average request size in KB, rounded to two decimals"""
    size = report.size()
    if size == 0:
        raise EmptyReportError(report.uri, "average traffic")
    return round_two_decimals(report.total_traffic_kb() / size)


def is_failed(report: UriReport) -> bool:
    """True when at least one request failed"""
    return report.count_errors() != 0


def short_uri(uri: str) -> str:
    """Truncate long URIs for display"""
    if len(uri) > SHORT_URI_LIMIT:
        return uri[: SHORT_URI_LIMIT - 1]
    return uri


def escaped_uri(uri: str) -> str:
    """URI reduced to a token usable as a single URL path segment"""
    return uri.replace("http:", "").replace("/", "_")


def average_delta(report: UriReport, previous: Optional[UriReport]) -> int:
    """Change in average response time against the previous run"""
    if previous is None:
        return 0
    return report.average() - previous.average()


def median_delta(report: UriReport, previous: Optional[UriReport]) -> int:
    """Change in median response time against the previous run"""
    if previous is None:
        return 0
    return report.median() - previous.median()


def error_percent_delta(report: UriReport, previous: Optional[UriReport]) -> float:
    """Change in error percent against the previous run"""
    if previous is None:
        return 0.0
    return error_percent(report) - error_percent(previous)


def size_delta(report: UriReport, previous: Optional[UriReport]) -> int:
    """Change in request count against the previous run"""
    if previous is None:
        return 0
    return report.size() - previous.size()


def http_code_changed(report: UriReport, previous: Optional[UriReport]) -> str:
    """Previous run's status codes when they differ from this run's, else ''"""
    if previous is None:
        return ""
    if previous.http_codes() == report.http_codes():
        return ""
    return previous.http_codes()


@dataclass(frozen=True)
class UriDelta:
    average: int = 0
    median: int = 0
    error_percent: float = 0.0
    size: int = 0
    previous_http_codes: str = ""


def compute_delta(report: UriReport, previous: Optional[UriReport]) -> UriDelta:
    """All deltas against the previous run; zeros when there is none"""
    if previous is None:
        return UriDelta()
    return UriDelta(
        average=average_delta(report, previous),
        median=median_delta(report, previous),
        error_percent=error_percent_delta(report, previous),
        size=size_delta(report, previous),
        previous_http_codes=http_code_changed(report, previous),
    )


# ──────────────────────────────────────────────────────────────────────────────
# Sample-backed report
# ──────────────────────────────────────────────────────────────────────────────


class SampledUriReport:
    """Report over individual samples; every statistic is recomputed on demand"""

    def __init__(self, uri: str):
        self.uri = uri
        self.escaped_uri = escaped_uri(uri)
        self.samples: List[Sample] = []

    def __repr__(self) -> str:
        return f"SampledUriReport(uri={self.uri!r}, samples={len(self.samples)})"

    def add_sample(self, sample: Sample) -> None:
        """Append one sample"""
        if sample is None:
            raise ValueError("sample must not be None")
        self.samples.append(sample)

    def size(self) -> int:
        """Number of samples"""
        return len(self.samples)

    def count_errors(self) -> int:
        """Number of unsuccessful samples"""
        return sum(1 for s in self.samples if not s.successful)

    def average(self) -> int:
        """Integer mean duration"""
        if not self.samples:
            raise EmptyReportError(self.uri, "average")
        return sum(s.duration_ms for s in self.samples) // len(self.samples)

    def _rank(self, q: float) -> int:
        ranked = nearest_rank(sorted(self.samples), q)
        return ranked.duration_ms if ranked is not None else 0

    def percentile90(self) -> int:
        """Nearest-rank 90th percentile duration, 0 when empty"""
        return self._rank(0.9)

    def median(self) -> int:
        """Nearest-rank median duration, 0 when empty"""
        return self._rank(0.5)

    def min(self) -> int:
        """Shortest duration"""
        if not self.samples:
            raise EmptyReportError(self.uri, "min")
        return min(s.duration_ms for s in self.samples)

    def max(self) -> int:
        """Longest duration"""
        if not self.samples:
            raise EmptyReportError(self.uri, "max")
        return max(s.duration_ms for s in self.samples)

    def http_codes(self) -> str:
        """Distinct status codes in first-seen order"""
        return join_distinct([s.status_code for s in self.samples])

    def total_traffic_kb(self) -> float:
        """Sum of sample sizes in KB"""
        return round_two_decimals(sum(s.size_kb for s in self.samples))


# ──────────────────────────────────────────────────────────────────────────────
# Pre-aggregated report
# ──────────────────────────────────────────────────────────────────────────────


class AggregatedUriReport:
    """
    Report built from already-summarized numbers.

    The raw samples are gone, so nothing can be recomputed: counts and
    extremes only accumulate, and percentile90/median fall back to max and
    average unless explicit values were supplied.
    """

    def __init__(self, uri: str, date: Optional[datetime] = None):
        self.uri = uri
        self.escaped_uri = escaped_uri(uri)
        self.date = date
        self.request_count = 0
        self.error_count = 0
        self.average_ms = 0
        self.traffic_kb = 0.0
        self.min_ms: Optional[int] = None
        self.max_ms: Optional[int] = None
        self.explicit_percentile90: Optional[int] = None
        self.explicit_median: Optional[int] = None
        self.codes = ""

    def __repr__(self) -> str:
        return (
            f"AggregatedUriReport(uri={self.uri!r}, requests={self.request_count}, "
            f"errors={self.error_count}, average={self.average_ms})"
        )

    # accumulating mutators

    def add_requests(self, count: int) -> None:
        """Add to the running request count"""
        if count < 0:
            raise ValueError(f"request count must be >= 0, got {count}")
        self.request_count += count

    def add_errors(self, count: int) -> None:
        """Add to the running error count"""
        if count < 0:
            raise ValueError(f"error count must be >= 0, got {count}")
        if self.error_count + count > self.request_count:
            raise ValueError(
                f"error count {self.error_count + count} exceeds "
                f"request count {self.request_count} for {self.uri!r}"
            )
        self.error_count += count

    def add_traffic_kb(self, kb: float) -> None:
        self.traffic_kb += kb

    def extend_min(self, value: int) -> None:
        """Lower the minimum if value is smaller"""
        if self.min_ms is None or value < self.min_ms:
            self.min_ms = value

    def extend_max(self, value: int) -> None:
        """Raise the maximum if value is larger"""
        if self.max_ms is None or value > self.max_ms:
            self.max_ms = value

    def set_average(self, value: int) -> None:
        self.average_ms = value

    def set_date(self, date: datetime) -> None:
        self.date = date

    def set_percentile90(self, value: int) -> None:
        self.explicit_percentile90 = value

    def set_median(self, value: int) -> None:
        self.explicit_median = value

    def set_http_codes(self, codes: str) -> None:
        """Comma-delimited, already de-duplicated status codes"""
        self.codes = codes

    # UriReport

    def size(self) -> int:
        return self.request_count

    def count_errors(self) -> int:
        return self.error_count

    def average(self) -> int:
        return self.average_ms

    def percentile90(self) -> int:
        """Explicit 90th percentile, else the max"""
        if self.explicit_percentile90 is not None:
            return self.explicit_percentile90
        return self.max()

    def median(self) -> int:
        """Explicit median, else the average"""
        if self.explicit_median is not None:
            return self.explicit_median
        return self.average()

    def min(self) -> int:
        if self.min_ms is None:
            raise EmptyReportError(self.uri, "min")
        return self.min_ms

    def max(self) -> int:
        if self.max_ms is None:
            raise EmptyReportError(self.uri, "max")
        return self.max_ms

    def http_codes(self) -> str:
        return self.codes

    def total_traffic_kb(self) -> float:
        return round_two_decimals(self.traffic_kb)


# ──────────────────────────────────────────────────────────────────────────────
# One run
# ──────────────────────────────────────────────────────────────────────────────


class PerformanceReport:
    """All URI reports produced from one log file"""

    def __init__(self, report_file_name: str, kind: str = "samples"):
        self.report_file_name = report_file_name
        self.kind = kind
        self.uri_reports: Dict[str, UriReport] = {}

    def __repr__(self) -> str:
        return (
            f"PerformanceReport({self.report_file_name!r}, kind={self.kind!r}, "
            f"uris={sorted(self.uri_reports)})"
        )

    def __iter__(self) -> Iterator[UriReport]:
        return iter(self.uri_reports.values())

    def __len__(self) -> int:
        return len(self.uri_reports)

    def add_sample(self, sample: Sample) -> None:
        """Add a sample, creating the URI's report on first sight"""
        report = self.uri_reports.get(sample.uri)
        if report is None:
            report = SampledUriReport(sample.uri)
            self.uri_reports[sample.uri] = report
        if not isinstance(report, SampledUriReport):
            raise TypeError(f"{sample.uri!r} is backed by {type(report).__name__}, not samples")
        report.add_sample(sample)

    def add_uri_report(self, report: UriReport) -> None:
        """Add or replace the report for its URI"""
        self.uri_reports[report.uri] = report

    def get(self, uri: str) -> Optional[UriReport]:
        return self.uri_reports.get(uri)

    def _non_empty(self) -> List[UriReport]:
        return [r for r in self.uri_reports.values() if r.size() > 0]

    def size(self) -> int:
        """Total requests across all URIs"""
        return sum(r.size() for r in self.uri_reports.values())

    def count_errors(self) -> int:
        """Total failed requests across all URIs"""
        return sum(r.count_errors() for r in self.uri_reports.values())

    def error_percent(self) -> float:
        size = self.size()
        if size == 0:
            raise EmptyReportError(self.report_file_name, "error percent")
        return self.count_errors() / size * 100

    def average(self) -> int:
        """Request-weighted mean of the per-URI averages"""
        reports = self._non_empty()
        if not reports:
            raise EmptyReportError(self.report_file_name, "average")
        total = sum(r.average() * r.size() for r in reports)
        return total // sum(r.size() for r in reports)

    def min(self) -> int:
        reports = self._non_empty()
        if not reports:
            raise EmptyReportError(self.report_file_name, "min")
        return min(r.min() for r in reports)

    def max(self) -> int:
        reports = self._non_empty()
        if not reports:
            raise EmptyReportError(self.report_file_name, "max")
        return max(r.max() for r in reports)

    def total_traffic_kb(self) -> float:
        return round_two_decimals(sum(r.total_traffic_kb() for r in self.uri_reports.values()))

    def compare_to(self, previous: Optional[PerformanceReport]) -> Dict[str, UriDelta]:
        """
        Deltas per URI against a previous run, matched by URI.

        URIs missing from the previous run, or empty on either side, get a zero delta.
        """
        deltas: Dict[str, UriDelta] = {}
        for uri, report in self.uri_reports.items():
            prev = previous.get(uri) if previous is not None else None
            if prev is not None and (prev.size() == 0 or report.size() == 0):
                prev = None
            deltas[uri] = compute_delta(report, prev)
        return deltas
