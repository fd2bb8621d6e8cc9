"""
SummarizerLogParser - JMeter summariser log parsing

JMeter's Summariser writes lines such as::

    2013/03/18 11:05:41 INFO  - jmeter.reporters.Summariser: summary +     10 in   1.3s =    7.6/s Avg:    10 Min:     0 Max:    69 Err:     0 (0.00%)

Only lines carrying a ``+`` are interval summaries; everything else in the
log is noise. Each summary line is tokenized into a SummaryLine, the lines
are folded per key into a SummaryAccumulator, and the accumulator is
finalized into an AggregatedUriReport once the file is exhausted.
"""

import enum
import functools
import logging
import os
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from perfreport.errors import DateParseError, LogParseError, TokenizationError
from perfreport.models.reports import AggregatedUriReport, PerformanceReport
from perfreport.utils.helpers import nearest_rank, report_name

logger = logging.getLogger(__name__)

DEFAULT_GLOB = "**/*.log"
DEFAULT_DATE_FORMAT = "%Y/%m/%d %H:%M:%S"

LEVEL_MARKER = "INFO"
COMPONENT_MARKER = "jmeter.reporters.Summariser:"
KEY_DELIMITER = "+"


class Expect(enum.Enum):
    """What the tokenizer is looking for next"""

    DATE = "date"
    COMPONENT = "component"
    KEY = "key"
    COUNT = "count"
    AVG = "Avg:"
    MIN = "Min:"
    MAX = "Max:"
    ERR = "Err:"
    DONE = "done"


# Fields after the key are positional: count, then Avg, Min, Max, Err.
NUMERIC_FIELDS: Tuple[Expect, ...] = (Expect.AVG, Expect.MIN, Expect.MAX, Expect.ERR)


@dataclass(frozen=True)
class SummaryLine:
    timestamp: datetime
    key: str
    count: int
    average: int
    minimum: int
    maximum: int
    errors: int


def is_summary_line(line: str) -> bool:
    return KEY_DELIMITER in line


class SummaryLineTokenizer:
    """
    Turns one summariser line into a SummaryLine.

    Walks the states in Expect order; the first state that cannot be
    satisfied raises TokenizationError (or DateParseError for the prefix).
    """

    def __init__(self, date_format: str = DEFAULT_DATE_FORMAT):
        self.date_format = date_format

    def tokenize(self, line: str) -> SummaryLine:
        text = line.replace("=", " ")
        values: Dict[Expect, object] = {}
        state = Expect.DATE
        rest = text
        tokens: List[str] = []

        while state is not Expect.DONE:
            if state is Expect.DATE:
                prefix, marker, rest = rest.partition(LEVEL_MARKER)
                if not marker:
                    raise TokenizationError(f"missing {LEVEL_MARKER!r} marker")
                values[state] = self._parse_date(prefix.strip())
                state = Expect.COMPONENT

            elif state is Expect.COMPONENT:
                _, marker, rest = rest.partition(COMPONENT_MARKER)
                if not marker:
                    raise TokenizationError(f"missing {COMPONENT_MARKER!r} marker")
                state = Expect.KEY

            elif state is Expect.KEY:
                key, marker, rest = rest.partition(KEY_DELIMITER)
                if not marker:
                    raise TokenizationError(f"missing {KEY_DELIMITER!r} after key")
                values[state] = key.strip()
                tokens = rest.split()
                state = Expect.COUNT

            elif state is Expect.COUNT:
                if not tokens:
                    raise TokenizationError("missing request count")
                values[state] = self._parse_int(tokens.pop(0), state)
                state = Expect.AVG

            else:
                tokens = self._seek(tokens, state)
                values[state] = self._parse_int(tokens.pop(0), state)
                idx = NUMERIC_FIELDS.index(state)
                state = NUMERIC_FIELDS[idx + 1] if idx + 1 < len(NUMERIC_FIELDS) else Expect.DONE

        if values[Expect.ERR] > values[Expect.COUNT]:
            raise TokenizationError(
                f"error count {values[Expect.ERR]} exceeds request count {values[Expect.COUNT]}"
            )

        return SummaryLine(
            timestamp=values[Expect.DATE],
            key=values[Expect.KEY],
            count=values[Expect.COUNT],
            average=values[Expect.AVG],
            minimum=values[Expect.MIN],
            maximum=values[Expect.MAX],
            errors=values[Expect.ERR],
        )

    def _parse_date(self, value: str) -> datetime:
        try:
            return datetime.strptime(value, self.date_format)
        except ValueError as exc:
            raise DateParseError(
                f"unparseable date {value!r} for pattern {self.date_format!r}"
            ) from exc

    @staticmethod
    def _seek(tokens: List[str], state: Expect) -> List[str]:
        """Drop tokens up to and including the state's marker"""
        try:
            idx = tokens.index(state.value)
        except ValueError:
            raise TokenizationError(f"missing {state.value!r} marker") from None
        remaining = tokens[idx + 1:]
        if not remaining:
            raise TokenizationError(f"no value after {state.value!r}")
        return remaining

    @staticmethod
    def _parse_int(token: str, state: Expect) -> int:
        try:
            return int(token)
        except ValueError:
            raise TokenizationError(
                f"expected integer for {state.name.lower()}, got {token!r}"
            ) from None


# ──────────────────────────────────────────────────────────────────────────────
# Fold / finalize
# ──────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SummaryAccumulator:
    key: str
    date: Optional[datetime] = None
    requests: int = 0
    errors: int = 0
    average_sum: int = 0
    lines: int = 0
    minimum: Optional[int] = None
    maximum: Optional[int] = None
    averages: Tuple[int, ...] = field(default_factory=tuple)


def fold(acc: SummaryAccumulator, line: SummaryLine) -> SummaryAccumulator:
    return replace(
        acc,
        date=line.timestamp,
        requests=acc.requests + line.count,
        errors=acc.errors + line.errors,
        average_sum=acc.average_sum + line.average,
        lines=acc.lines + 1,
        minimum=line.minimum if acc.minimum is None else min(acc.minimum, line.minimum),
        maximum=line.maximum if acc.maximum is None else max(acc.maximum, line.maximum),
        averages=acc.averages + (line.average,),
    )


def fold_by_key(
    states: Dict[str, SummaryAccumulator], line: SummaryLine
) -> Dict[str, SummaryAccumulator]:
    acc = states.get(line.key) or SummaryAccumulator(key=line.key)
    return {**states, line.key: fold(acc, line)}


def finalize(acc: SummaryAccumulator) -> AggregatedUriReport:
    """Mean of the per-line averages (truncated) and their nearest-rank median"""
    if acc.lines == 0:
        raise ValueError(f"no summary lines folded for {acc.key!r}")

    report = AggregatedUriReport(acc.key, date=acc.date)
    report.add_requests(acc.requests)
    report.add_errors(acc.errors)
    report.extend_min(acc.minimum)
    report.extend_max(acc.maximum)
    report.set_average(int(acc.average_sum / acc.lines))
    report.set_median(nearest_rank(sorted(acc.averages), 0.5))
    return report


# ──────────────────────────────────────────────────────────────────────────────
# Parser
# ──────────────────────────────────────────────────────────────────────────────


class SummarizerLogParser:
    """
    Parses JMeter summariser logs into PerformanceReports, one per file.

    A file that cannot be read, or that contains a malformed summary line,
    is reported to the logger and left out of the result; the remaining
    files are still parsed.
    """

    kind = "summarizer"

    def __init__(
        self,
        glob: Optional[str] = None,
        date_format: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.glob = glob or DEFAULT_GLOB
        self.date_format = date_format or DEFAULT_DATE_FORMAT
        self.logger = logger or logging.getLogger(__name__)
        self.tokenizer = SummaryLineTokenizer(self.date_format)

    def summary_lines(self, lines: Iterable[str], path: str = "<lines>") -> Iterable[SummaryLine]:
        for number, line in enumerate(lines, start=1):
            if not is_summary_line(line):
                continue
            try:
                yield self.tokenizer.tokenize(line.rstrip("\n"))
            except LogParseError as exc:
                raise exc.at(path, number)

    def parse_lines(
        self, lines: Iterable[str], name: str, source: Optional[str] = None
    ) -> Optional[PerformanceReport]:
        states = functools.reduce(fold_by_key, self.summary_lines(lines, source or name), {})
        if not states:
            return None

        run = PerformanceReport(name, kind=self.kind)
        for acc in states.values():
            run.add_uri_report(finalize(acc))
        return run

    def parse_file(self, path: str, base_dir: Optional[str] = None) -> Optional[PerformanceReport]:
        """Parse one file; errors propagate to the caller"""
        self.logger.info("Parsing summariser report file %s", os.path.basename(path))
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return self.parse_lines(f, report_name(path, base_dir), source=path)

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
            except LogParseError as exc:
                self.logger.error("Skipping %s: %s", path, exc)
                continue

            if run is None:
                self.logger.warning("No summary lines in %s", path)
                continue
            result.append(run)
        return result
