"""
KPI read-back

Collects the metrics and latest financial model stored for a company so
they can be shown next to benchmark insights.
"""
import logging
from typing import Any, Dict, List

import psycopg2
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Kpi(BaseModel):
    name: str
    value: float
    unit: str = ""


class KpiData(BaseModel):
    company: Dict[str, Any] = {}
    financial: Dict[str, Any] = {}
    metrics: List[Kpi] = []


# financial_models column -> (label, unit)
FINANCIAL_KPIS = [
    ("monthly_revenue_usd", "Monthly Revenue", "USD"),
    ("burn_rate_usd", "Burn Rate", "USD"),
    ("ltv_cac_ratio", "LTV/CAC Ratio", ":1"),
    ("runway_months", "Runway", "months"),
]


def _fetch(conn, table: str, sql: str, params) -> List[Dict[str, Any]]:
    try:
        with conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                columns = [d[0] for d in cur.description]
                return [dict(zip(columns, row)) for row in cur.fetchall()]
    except psycopg2.Error as e:
        logger.error("Reading %s failed: %s", table, e)
        return []


def fetch_kpi_data(conn, company_id: str) -> KpiData:
    companies = _fetch(
        conn, "companies",
        "SELECT name, valuation_target_usd, funding_goal_usd FROM companies WHERE id = %s;",
        (company_id,),
    )
    metric_rows = _fetch(
        conn, "metrics",
        """
        SELECT metric_name, metric_value, metric_unit, as_of_date
        FROM metrics WHERE company_id = %s
        ORDER BY as_of_date DESC;
        """,
        (company_id,),
    )
    financial_rows = _fetch(
        conn, "financial_models",
        """
        SELECT monthly_revenue_usd, burn_rate_usd, ltv_cac_ratio, runway_months
        FROM financial_models WHERE company_id = %s
        ORDER BY id DESC LIMIT 1;
        """,
        (company_id,),
    )

    metrics = [
        Kpi(
            name=row.get("metric_name") or "Unknown Metric",
            value=float(row.get("metric_value") or 0),
            unit=row.get("metric_unit") or "",
        )
        for row in metric_rows
    ]

    financial = financial_rows[0] if financial_rows else {}
    for column, label, unit in FINANCIAL_KPIS:
        value = financial.get(column)
        if value:
            metrics.append(Kpi(name=label, value=float(value), unit=unit))

    return KpiData(
        company=companies[0] if companies else {},
        financial=financial,
        metrics=metrics,
    )


def metric_insight(metric_name: str, value: float) -> str:
    name = metric_name.lower()

    if "revenue" in name or "mrr" in name:
        if value >= 100000:
            return "Strong revenue base - ready for Series A discussions"
        if value >= 10000:
            return "Good traction - focus on growth acceleration"
        return "Early stage - prioritize product-market fit"

    if "cac" in name or "acquisition" in name:
        if value <= 100:
            return "Excellent CAC - highly efficient acquisition"
        if value <= 500:
            return "Good CAC - sustainable growth model"
        return "High CAC - optimize acquisition channels"

    if "ltv" in name or "lifetime" in name:
        if value >= 1000:
            return "Strong LTV - indicates product stickiness"
        if value >= 500:
            return "Decent LTV - room for improvement"
        return "Low LTV - focus on retention and expansion"

    if "churn" in name:
        if value <= 2:
            return "Excellent retention - best-in-class"
        if value <= 5:
            return "Good retention - industry standard"
        return "High churn - urgent retention focus needed"

    return "Track this metric against industry benchmarks"
