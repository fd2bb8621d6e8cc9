from __future__ import annotations

import logging
import os
from dataclasses import asdict
from typing import Any, Dict, Optional

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from perfreport.services.aggregator import Aggregator
from perfreport.services.parser import SampleLogParser
from perfreport.services.storage import LogStore
from perfreport.services.summarizer import DEFAULT_DATE_FORMAT, SummarizerLogParser

# ──────────────────────────────────────────────────────────────────────────────
# Config
# ──────────────────────────────────────────────────────────────────────────────

API_PREFIX = "/api"
LOG_DIR = os.getenv("LOG_DIR", "./data")
SUMMARIZER_GLOB = os.getenv("SUMMARIZER_GLOB", "**/*.log")
SAMPLE_GLOB = os.getenv("SAMPLE_GLOB", "**/*.jsonl")
LOG_DATE_FORMAT = os.getenv("LOG_DATE_FORMAT", DEFAULT_DATE_FORMAT)

logger = logging.getLogger(__name__)


def build_aggregator(log_dir: str = LOG_DIR) -> Aggregator:
    return Aggregator(
        LogStore(log_dir),
        SummarizerLogParser(glob=SUMMARIZER_GLOB, date_format=LOG_DATE_FORMAT),
        SampleLogParser(glob=SAMPLE_GLOB),
    )


# ──────────────────────────────────────────────────────────────────────────────
# App
# ──────────────────────────────────────────────────────────────────────────────

app = FastAPI(title="Performance reports (upload result logs → per-URI statistics)")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # dev OK; lock down in prod
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.aggregator = build_aggregator()


def get_aggregator() -> Aggregator:
    return app.state.aggregator


# ──────────────────────────────────────────────────────────────────────────────
# Upload
# ──────────────────────────────────────────────────────────────────────────────

@app.post(f"{API_PREFIX}/upload-log")
async def upload_log_file(file: UploadFile = File(...)) -> Dict[str, Any]:
    """
    Stores a result log under its own name:
      - *.log   JMeter summariser output
      - *.jsonl one JSON object per request
    """
    content = await file.read()
    try:
        path = get_aggregator().store.save_upload(file.filename or "", content)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    logger.info("Stored upload %s", path)
    return {"status": "ok", "name": os.path.basename(path), "path": os.path.abspath(path)}


# ──────────────────────────────────────────────────────────────────────────────
# Health
# ──────────────────────────────────────────────────────────────────────────────

@app.get(f"{API_PREFIX}/health")
def health() -> Dict[str, Any]:
    return asdict(get_aggregator().store.stat())


# ──────────────────────────────────────────────────────────────────────────────
# Reports
# ──────────────────────────────────────────────────────────────────────────────

@app.get(f"{API_PREFIX}/reports")
def reports() -> Dict[str, Any]:
    aggregator = get_aggregator()
    return {"reports": [asdict(aggregator.run_summary(run)) for run in aggregator.load_runs()]}


@app.get(f"{API_PREFIX}/reports/{{name:path}}")
def report_detail(
    name: str,
    previous: Optional[str] = Query(None),  # report file to compute deltas against
    sort_by: str = Query("count"),  # "count", "average", "p90", "errors" or "uri"
    order: str = Query("desc"),  # "asc" or "desc"
    limit: int = Query(200, ge=1, le=1000),
) -> Dict[str, Any]:
    aggregator = get_aggregator()
    runs = aggregator.load_runs()

    run = aggregator.find_run(name, runs)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Unknown report: {name}")

    prev_run = None
    if previous:
        prev_run = aggregator.find_run(previous, runs)
        if prev_run is None:
            raise HTTPException(status_code=404, detail=f"Unknown report: {previous}")

    return {
        "summary": asdict(aggregator.run_summary(run)),
        "uris": [
            asdict(s)
            for s in aggregator.uri_stats(run, prev_run, sort_by=sort_by, order=order, limit=limit)
        ],
    }
