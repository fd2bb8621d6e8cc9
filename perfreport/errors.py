"""
Exceptions raised while building and parsing performance reports.
"""

from typing import Optional


class ReportError(Exception):
    """Base class for every perfreport error"""


class EmptyReportError(ReportError, ValueError):
    """Statistic requested from a report that holds no requests"""

    def __init__(self, uri: str, statistic: str):
        super().__init__(f"{statistic} is undefined for empty report {uri!r}")
        self.uri = uri
        self.statistic = statistic


class LogParseError(ReportError):
    """A log line could not be turned into report data"""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        line_number: Optional[int] = None,
    ):
        self.message = message
        self.path = path
        self.line_number = line_number
        super().__init__(str(self))

    def __str__(self) -> str:
        where = ""
        if self.path is not None:
            where = f"{self.path}"
            if self.line_number is not None:
                where += f":{self.line_number}"
            where += ": "
        return where + self.message

    def at(self, path: str, line_number: int) -> "LogParseError":
        """Attach file position to an error raised by a line tokenizer"""
        self.path = path
        self.line_number = line_number
        self.args = (str(self),)
        return self


class DateParseError(LogParseError):
    """Timestamp prefix did not match the configured date pattern"""


class TokenizationError(LogParseError):
    """Expected marker or integer field missing from a summary line"""
