# db.py
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import psycopg2
from psycopg2.extras import Json

from errors import QueueRecordError
from schema import (
    IngestionQueueRecord,
    PersistenceResult,
    StartupAnalysis,
    has_fields,
    is_empty_analysis,
)

logger = logging.getLogger(__name__)

DEFAULT_COMPANY_NAME = "Unnamed Startup"
ANCHOR_COMPANY_NAME = "Startup from Upload"
DEFAULT_FOUNDER_NAME = "Unknown Founder"
DEFAULT_METRIC_NAME = "Unknown Metric"


def connect(dsn: str):
    if not dsn:
        raise RuntimeError("DATABASE_URL missing in .env")
    return psycopg2.connect(dsn)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StartupRepository:
    """
    Writes a StartupAnalysis across the companies / founders / pitch_decks /
    financial_models / go_to_market / metrics tables.

    Every table is written in its own transaction; a failure is recorded and
    the remaining tables are still attempted. Child tables need a company id.
    """

    def __init__(self, conn):
        self.conn = conn

    def _execute(self, sql: str, params: Sequence[Any]) -> Optional[tuple]:
        with self.conn:
            with self.conn.cursor() as cur:
                cur.execute(sql, params)
                if "RETURNING" in sql:
                    return cur.fetchone()
        return None

    def _execute_many(self, sql: str, rows: List[Sequence[Any]]) -> None:
        with self.conn:
            with self.conn.cursor() as cur:
                cur.executemany(sql, rows)

    def _step(self, result: PersistenceResult, table: str, label: str, fn, *args):
        try:
            out = fn(*args)
        except psycopg2.Error as e:
            logger.error(
                "Insert into %s failed (company_id=%s): %s",
                table, result.company_id, e,
            )
            result.errors.append(f"{label} insert failed: {e}")
            return None
        result.inserted_tables.append(table)
        logger.info("Inserted into %s (company_id=%s)", table, result.company_id)
        return out

    # --------------------------------------------------
    # companies
    # --------------------------------------------------
    def _insert_company(self, analysis: StartupAnalysis, user_id: Optional[str]) -> Optional[str]:
        c = analysis.company
        row = self._execute(
            """
            INSERT INTO companies
                (name, industry_name, sub_industry_name, country, geo_region,
                 startup_stage, valuation_target_usd, funding_goal_usd,
                 incorporation_year, pitch_deck_summary, user_id, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id;
            """,
            (
                c.name or DEFAULT_COMPANY_NAME,
                c.industry_name,
                c.sub_industry_name,
                c.country,
                c.geo_region,
                c.startup_stage,
                c.valuation_target_usd,
                c.funding_goal_usd,
                c.incorporation_year,
                c.pitch_deck_summary,
                user_id,
                _now(),
            ),
        )
        return str(row[0]) if row else None

    def _insert_anchor_company(self, user_id: Optional[str]) -> Optional[str]:
        row = self._execute(
            """
            INSERT INTO companies (name, user_id, created_at)
            VALUES (%s, %s, %s)
            RETURNING id;
            """,
            (ANCHOR_COMPANY_NAME, user_id, _now()),
        )
        return str(row[0]) if row else None

    # --------------------------------------------------
    # child tables
    # --------------------------------------------------
    def _insert_founders(self, company_id: str, analysis: StartupAnalysis) -> None:
        self._execute_many(
            """
            INSERT INTO founders
                (company_id, full_name, linkedin_url, education_history,
                 domain_experience_yrs, technical_skills, notable_achievements)
            VALUES (%s, %s, %s, %s, %s, %s, %s);
            """,
            [
                (
                    company_id,
                    f.full_name or DEFAULT_FOUNDER_NAME,
                    f.linkedin_url,
                    f.education_history,
                    f.domain_experience_yrs,
                    f.technical_skills,
                    f.notable_achievements,
                )
                for f in analysis.founders
            ],
        )

    def _insert_pitch_deck(self, company_id: str, analysis: StartupAnalysis) -> None:
        p = analysis.pitch_deck
        self._execute(
            """
            INSERT INTO pitch_decks
                (company_id, core_problem, core_solution, customer_segment,
                 product_summary_md, upload_timestamp)
            VALUES (%s, %s, %s, %s, %s, %s);
            """,
            (
                company_id,
                p.core_problem,
                p.core_solution,
                p.customer_segment,
                p.product_summary_md,
                _now(),
            ),
        )

    def _insert_financial_model(self, company_id: str, analysis: StartupAnalysis) -> None:
        f = analysis.financial_model
        self._execute(
            """
            INSERT INTO financial_models
                (company_id, monthly_revenue_usd, burn_rate_usd, ltv_cac_ratio,
                 runway_months, revenue_model_notes)
            VALUES (%s, %s, %s, %s, %s, %s);
            """,
            (
                company_id,
                f.monthly_revenue_usd,
                f.burn_rate_usd,
                f.ltv_cac_ratio,
                f.runway_months,
                f.revenue_model_notes,
            ),
        )

    def _insert_go_to_market(self, company_id: str, analysis: StartupAnalysis) -> None:
        g = analysis.go_to_market
        self._execute(
            """
            INSERT INTO go_to_market (company_id, gtm_channels, gtm_notes_md)
            VALUES (%s, %s, %s);
            """,
            (company_id, g.gtm_channels, g.gtm_notes_md),
        )

    def _insert_metrics(self, company_id: str, analysis: StartupAnalysis) -> None:
        today = date.today()
        self._execute_many(
            """
            INSERT INTO metrics
                (company_id, metric_name, metric_value, metric_unit, as_of_date)
            VALUES (%s, %s, %s, %s, %s);
            """,
            [
                (
                    company_id,
                    m.metric_name or DEFAULT_METRIC_NAME,
                    m.metric_value if m.metric_value is not None else 0,
                    m.metric_unit,
                    today,
                )
                for m in analysis.metrics
            ],
        )

    # --------------------------------------------------
    # entry point
    # --------------------------------------------------
    def insert_startup_data(
        self, analysis: StartupAnalysis, user_id: Optional[str] = None
    ) -> PersistenceResult:
        """Insert what can be inserted and report what failed."""
        result = PersistenceResult()

        if analysis is None or is_empty_analysis(analysis):
            logger.warning("No analysis data provided (user_id=%s)", user_id)
            result.errors.append("No analysis data provided")
            return result

        company_id: Optional[str] = None
        if has_fields(analysis.company):
            company_id = self._step(
                result, "companies", "Company", self._insert_company, analysis, user_id
            )
        elif (
            analysis.founders
            or analysis.metrics
            or has_fields(analysis.pitch_deck)
            or has_fields(analysis.financial_model)
        ):
            company_id = self._step(
                result, "companies", "Minimal company", self._insert_anchor_company, user_id
            )
        result.company_id = company_id

        if not company_id:
            logger.warning("No company row; skipping dependent tables (user_id=%s)", user_id)
            return result

        if analysis.founders:
            self._step(result, "founders", "Founders", self._insert_founders, company_id, analysis)
        if has_fields(analysis.pitch_deck):
            self._step(result, "pitch_decks", "Pitch deck", self._insert_pitch_deck, company_id, analysis)
        if has_fields(analysis.financial_model):
            self._step(
                result, "financial_models", "Financial model",
                self._insert_financial_model, company_id, analysis,
            )
        if has_fields(analysis.go_to_market):
            self._step(result, "go_to_market", "GTM", self._insert_go_to_market, company_id, analysis)
        if analysis.metrics:
            self._step(result, "metrics", "Metrics", self._insert_metrics, company_id, analysis)

        logger.info(
            "Persistence finished: company_id=%s inserted=%s errors=%d",
            company_id, result.inserted_tables, len(result.errors),
        )
        return result

    # --------------------------------------------------
    # uploads_queue
    # --------------------------------------------------
    def insert_ingestion_record(self, record: IngestionQueueRecord) -> None:
        try:
            self._execute(
                """
                INSERT INTO uploads_queue
                    (file_url, input_type, company_id, status, parsed_json, raw_text)
                VALUES (%s, %s, %s, %s, %s, %s);
                """,
                (
                    record.file_url,
                    record.input_type,
                    record.company_id,
                    record.status,
                    Json(record.parsed_json),
                    record.raw_text,
                ),
            )
        except psycopg2.Error as e:
            logger.error("uploads_queue insert failed for %s: %s", record.file_url, e)
            raise QueueRecordError(f"Failed to record upload: {e}") from e
        logger.info("Queued upload record for %s", record.file_url)


def queue_payload(parts: Dict[str, Any]) -> Dict[str, Any]:
    """Drop empty sections so parsed_json only carries what the run produced."""
    return {k: v for k, v in parts.items() if v is not None}
