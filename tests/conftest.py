from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Callable

import pytest

from perfreport.models.data_models import Sample

DATA_DIR = os.path.join(os.path.dirname(__file__), "data")


@pytest.fixture
def summarizer_log() -> str:
    return os.path.join(DATA_DIR, "summarizer.log")


@pytest.fixture
def samples_jsonl() -> str:
    return os.path.join(DATA_DIR, "samples.jsonl")


@pytest.fixture
def make_sample() -> Callable[..., Sample]:
    def _make(duration_ms: int, uri: str = "/api/orders", **kwargs) -> Sample:
        kwargs.setdefault("timestamp", datetime(2024, 5, 1, tzinfo=timezone.utc))
        return Sample(duration_ms=duration_ms, uri=uri, **kwargs)

    return _make


def _summary_line(
    key: str = "summary",
    count: int = 10,
    avg: int = 10,
    min_: int = 0,
    max_: int = 45,
    err: int = 0,
    date: str = "2013/03/18 11:05:41",
) -> str:
    return (
        f"{date} INFO  - jmeter.reporters.Summariser: {key} +"
        f"  {count} in 1.0s =  1.0/s Avg:  {avg} Min:  {min_} Max:  {max_} Err:  {err} (0.00%)"
    )


@pytest.fixture
def summary_line() -> Callable[..., str]:
    return _summary_line


@pytest.fixture
def write_log(tmp_path) -> Callable[[str, str], str]:
    def _write(name: str, content: str) -> str:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return str(path)

    return _write
