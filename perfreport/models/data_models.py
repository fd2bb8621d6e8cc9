"""
Data Models (DTOs - Data Transfer Objects)

This module contains the sample record and the dataclasses returned by the API.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Sample:
    """
    One observed HTTP request and how it went.

    Samples sort by duration only; equality still compares every field.
    """
    duration_ms: int
    timestamp: datetime
    uri: str
    status_code: str = ""
    successful: bool = True
    size_kb: float = 0.0

    def __post_init__(self) -> None:
        if self.duration_ms < 0:
            raise ValueError(f"duration_ms must be >= 0, got {self.duration_ms}")
        if self.size_kb < 0:
            raise ValueError(f"size_kb must be >= 0, got {self.size_kb}")

    def __lt__(self, other: Sample) -> bool:
        if not isinstance(other, Sample):
            return NotImplemented
        return self.duration_ms < other.duration_ms

    @property
    def failed(self) -> bool:
        return not self.successful


@dataclass
class StoreStatus:
    """Health check response"""
    status: str
    log_dir_exists: bool
    path: str
    file_count: int
    size_bytes: int


@dataclass
class RunSummary:
    """Run-level rollup of one parsed log file"""
    name: str
    kind: str
    uri_count: int
    total_requests: int
    error_count: int
    error_rate: Optional[float]
    avg_response_time: Optional[int]
    min_response_time: Optional[int]
    max_response_time: Optional[int]
    total_traffic_kb: float


@dataclass
class UriStat:
    """Per-URI statistics, with deltas against a previous run when given"""
    uri: str
    short_uri: str
    escaped_uri: str
    count: int
    errors: int
    error_rate: Optional[float]
    avg_response_time: Optional[int]
    median_response_time: Optional[int]
    p90_response_time: Optional[int]
    min_response_time: Optional[int]
    max_response_time: Optional[int]
    http_codes: str
    total_traffic_kb: float
    avg_traffic_kb: Optional[float]
    average_delta: int = 0
    median_delta: int = 0
    error_rate_delta: float = 0.0
    count_delta: int = 0
    previous_http_codes: str = ""
