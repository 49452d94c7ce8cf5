# fallback.py
import math
import re
from typing import Any, List, Optional

from schema import CompanyInfo, ContentType, ExtractedContent, Metric, StartupAnalysis

FALLBACK_COMPANY_NAME = "Startup from Upload"
MAX_SCANNED_ROWS = 10

METRIC_KEYWORDS = ["revenue", "user", "growth", "conversion"]
CURRENCY_KEYWORDS = ["revenue", "mrr", "arr", "sales", "usd"]
RATE_KEYWORDS = ["rate", "growth", "conversion", "churn"]

HEADER_SPLIT = re.compile(r"[^a-z0-9]+")


def _parse_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "").replace("$", "").rstrip("%").strip()
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    # NaN / inf cannot be stored in a jsonb column
    if not math.isfinite(number):
        return None
    return number


def _header_words(header: str) -> set:
    words = set()
    for token in HEADER_SPLIT.split(header.lower()):
        if token:
            words.add(token)
            if token.endswith("s"):
                words.add(token[:-1])
    return words


def _metric_unit(header: str) -> str:
    words = _header_words(header)
    # "revenue_growth" is a rate, not an amount
    if "%" in header or words.intersection(RATE_KEYWORDS):
        return "%"
    if words.intersection(CURRENCY_KEYWORDS):
        return "USD"
    return "count"


def _is_metric_column(header: str) -> bool:
    key = header.lower()
    return any(k in key for k in METRIC_KEYWORDS)


def csv_metrics(rows: List[dict]) -> List[Metric]:
    """One metric per numeric cell in a metric-like column of the first rows."""
    metrics: List[Metric] = []
    for row in rows[:MAX_SCANNED_ROWS]:
        if not isinstance(row, dict):
            continue
        for header, value in row.items():
            if not _is_metric_column(str(header)):
                continue
            number = _parse_number(value)
            if number is None:
                continue
            metrics.append(Metric(
                metric_name=str(header),
                metric_value=number,
                metric_unit=_metric_unit(str(header)),
            ))
    return metrics


def build_fallback_analysis(extracted: ExtractedContent) -> StartupAnalysis:
    """
    Minimal analysis built straight from the extracted content, used when the
    model is unavailable or returns nothing usable. Never raises.
    """
    word_count = len((extracted.content or "").split())
    summary = (
        f"Startup information uploaded as {extracted.type.value.upper()} "
        f"({word_count} words). Automated AI analysis was unavailable; "
        "this record was generated from the raw file content."
    )

    metrics: List[Metric] = []
    if extracted.type is ContentType.CSV:
        rows = extracted.metadata.get("rows")
        if isinstance(rows, list):
            metrics = csv_metrics(rows)

    return StartupAnalysis(
        company=CompanyInfo(name=FALLBACK_COMPANY_NAME, pitch_deck_summary=summary),
        metrics=metrics,
    )
