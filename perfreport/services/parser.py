"""
SampleLogParser Class - Handles per-request JSONL logs

This module parses raw JSON lines, one HTTP request each, into Sample
objects and groups them into sample-backed URI reports.
"""

import json
import logging
import math
import os
from typing import Any, Dict, Iterable, List, Optional

from perfreport.models.data_models import Sample
from perfreport.models.reports import PerformanceReport
from perfreport.utils.helpers import (
    first_present,
    parse_epoch_ms,
    parse_ts,
    report_name,
    safe_float,
    safe_int,
)

DEFAULT_GLOB = "**/*.jsonl"


class SampleLogParser:
    """
    Parses per-request log lines into Samples.
    Responsibilities:
    - Parse JSON lines
    - Normalize the field names used by common load tools
    - Fold samples into one PerformanceReport per file
    """

    kind = "samples"

    def __init__(self, glob: Optional[str] = None, logger: Optional[logging.Logger] = None):
        self.glob = glob or DEFAULT_GLOB
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def parse_json(line: str) -> Optional[Dict[str, Any]]:
        """Parse JSON line, return None if invalid or not an object"""
        try:
            raw = json.loads(line)
        except ValueError:
            return None
        return raw if isinstance(raw, dict) else None

    @staticmethod
    def normalize(raw: Dict[str, Any]) -> Optional[Sample]:
        """
        Normalize raw log dict into a Sample.
        Entries without a timestamp, URI or duration are dropped.
        """
        ts = parse_ts(first_present(raw, ("timestamp",), ("time",), ("meta", "timestamp")))
        if ts is None:
            ts = parse_epoch_ms(raw.get("timeStamp"))
        if ts is None:
            return None

        uri = first_present(
            raw,
            ("uri",),
            ("path",),
            ("url",),
            ("request", "path"),
            ("http", "path"),
            ("label",),
        )
        if not uri:
            return None

        duration = safe_float(
            first_present(
                raw,
                ("duration_ms",),
                ("latency_ms",),
                ("response_time_ms",),
                ("elapsed",),
                ("timing", "duration_ms"),
            )
        )
        if duration is None or not math.isfinite(duration) or duration < 0:
            return None

        status_raw = first_present(
            raw,
            ("status_code",),
            ("status",),
            ("responseCode",),
            ("response", "status_code"),
            ("http", "status"),
        )
        status_code = str(status_raw) if status_raw is not None else ""

        # Explicit flag wins; otherwise anything below 400 counts as success
        success_raw = first_present(raw, ("success",), ("successful",))
        if isinstance(success_raw, bool):
            successful = success_raw
        elif success_raw is not None:
            successful = str(success_raw).strip().lower() in ("true", "1", "yes")
        else:
            status = safe_int(status_raw)
            successful = status is None or status < 400

        size_kb = safe_float(raw.get("size_kb"))
        if size_kb is None:
            size_bytes = safe_float(first_present(raw, ("bytes",), ("size_bytes",)))
            size_kb = size_bytes / 1024 if size_bytes is not None else 0.0
        if not math.isfinite(size_kb):
            return None

        return Sample(
            duration_ms=int(duration),
            timestamp=ts,
            uri=str(uri),
            status_code=status_code,
            successful=successful,
            size_kb=max(size_kb, 0.0),
        )

    def parse_lines(self, lines: Iterable[str], name: str) -> Optional[PerformanceReport]:
        run = PerformanceReport(name, kind=self.kind)
        for line in lines:
            line = line.strip()
            if not line:
                continue
            raw = self.parse_json(line)
            if raw is None:
                continue
            sample = self.normalize(raw)
            if sample is not None:
                run.add_sample(sample)
        return run if len(run) else None

    def parse_file(self, path: str, base_dir: Optional[str] = None) -> Optional[PerformanceReport]:
        self.logger.info("Parsing sample report file %s", os.path.basename(path))
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return self.parse_lines(f, report_name(path, base_dir))

    def parse(self, paths: Iterable[str], base_dir: Optional[str] = None) -> List[PerformanceReport]:
        result: List[PerformanceReport] = []
        for path in paths:
            try:
                run = self.parse_file(path, base_dir)
            except FileNotFoundError:
                self.logger.error("File not found: %s", path)
                continue
            except OSError as exc:
                self.logger.error("Could not read %s: %s", path, exc)
                continue

            if run is None:
                self.logger.warning("No samples in %s", path)
                continue
            result.append(run)
        return result
