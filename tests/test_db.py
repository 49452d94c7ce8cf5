"""
Tests for db.py: insert ordering, dependency rules and per-table failure handling.
"""
import pytest

from conftest import FakeConnection


def _full_analysis():
    from schema import (
        StartupAnalysis, CompanyInfo, Founder, PitchDeck, FinancialModel, GoToMarket, Metric,
    )
    return StartupAnalysis(
        company=CompanyInfo(name="Acme Analytics", industry_name="SaaS", funding_goal_usd=2000000),
        founders=[Founder(full_name="Jane Doe", education_history=["MIT"]), Founder()],
        pitch_deck=PitchDeck(core_problem="Retail waste"),
        financial_model=FinancialModel(monthly_revenue_usd=12000, burn_rate_usd=30000),
        go_to_market=GoToMarket(gtm_channels=["SEO", "Partnerships"]),
        metrics=[Metric(metric_name="MRR", metric_value=12000, metric_unit="USD"), Metric()],
    )


class TestInsertStartupData:
    """Tests for StartupRepository.insert_startup_data."""

    def test_full_analysis_inserts_all_tables_in_order(self):
        from db import StartupRepository

        conn = FakeConnection(company_id="c-1")
        result = StartupRepository(conn).insert_startup_data(_full_analysis(), user_id="user-9")

        assert conn.tables == [
            "companies", "founders", "pitch_decks", "financial_models", "go_to_market", "metrics",
        ]
        assert result.inserted_tables == conn.tables
        assert result.company_id == "c-1"
        assert result.errors == []
        assert result.success is True

    def test_company_defaults_and_user_id(self):
        """Missing company name defaults; user id is stored."""
        from db import StartupRepository, DEFAULT_COMPANY_NAME
        from schema import StartupAnalysis, CompanyInfo

        conn = FakeConnection()
        analysis = StartupAnalysis(company=CompanyInfo(pitch_deck_summary="AI for shops"))
        StartupRepository(conn).insert_startup_data(analysis, user_id="user-9")

        params = conn.params_for("companies")[0]
        assert params[0] == DEFAULT_COMPANY_NAME
        assert params[1] is None
        assert params[9] == "AI for shops"
        assert params[10] == "user-9"

    def test_child_rows_carry_company_id_and_defaults(self):
        from db import StartupRepository, DEFAULT_FOUNDER_NAME, DEFAULT_METRIC_NAME

        conn = FakeConnection(company_id="c-7")
        StartupRepository(conn).insert_startup_data(_full_analysis())

        founders = conn.params_for("founders")[0]
        assert [f[0] for f in founders] == ["c-7", "c-7"]
        assert founders[0][1] == "Jane Doe"
        assert founders[0][3] == ["MIT"]
        assert founders[1][1] == DEFAULT_FOUNDER_NAME

        metrics = conn.params_for("metrics")[0]
        assert metrics[1][1] == DEFAULT_METRIC_NAME
        assert metrics[1][2] == 0
        assert metrics[0][4] == metrics[1][4]

    def test_anchor_company_for_orphan_data(self):
        """No company data but founders present: a generic company is created first."""
        from db import StartupRepository, ANCHOR_COMPANY_NAME
        from schema import StartupAnalysis, Founder

        conn = FakeConnection()
        result = StartupRepository(conn).insert_startup_data(
            StartupAnalysis(founders=[Founder(full_name="Jane")])
        )

        assert conn.tables == ["companies", "founders"]
        assert conn.params_for("companies")[0][0] == ANCHOR_COMPANY_NAME
        assert result.success

    def test_company_failure_blocks_children(self):
        """If the company insert fails nothing else is attempted."""
        from db import StartupRepository

        conn = FakeConnection(fail_tables={"companies"})
        result = StartupRepository(conn).insert_startup_data(_full_analysis())

        assert conn.tables == []
        assert result.company_id is None
        assert result.inserted_tables == []
        assert result.success is False
        assert result.errors == ["Company insert failed: companies rejected"]

    def test_child_failure_does_not_stop_others(self):
        """A failed table is reported; later tables are still written."""
        from db import StartupRepository

        conn = FakeConnection(fail_tables={"founders", "financial_models"})
        result = StartupRepository(conn).insert_startup_data(_full_analysis())

        assert result.inserted_tables == ["companies", "pitch_decks", "go_to_market", "metrics"]
        assert result.errors == [
            "Founders insert failed: founders rejected",
            "Financial model insert failed: financial_models rejected",
        ]
        assert result.success is True
        assert conn.rollbacks == 2

    def test_empty_analysis_rejected(self):
        from db import StartupRepository
        from schema import StartupAnalysis

        conn = FakeConnection()
        result = StartupRepository(conn).insert_startup_data(StartupAnalysis())

        assert conn.executed == []
        assert result.errors == ["No analysis data provided"]
        assert not result.success

    def test_success_serialized(self):
        """success is part of the dumped result."""
        from schema import PersistenceResult

        assert PersistenceResult(inserted_tables=["companies"]).model_dump()["success"] is True
        assert PersistenceResult().model_dump()["success"] is False


class TestIngestionRecord:
    """Tests for the uploads_queue insert."""

    def test_record_written(self):
        from db import StartupRepository
        from schema import IngestionQueueRecord

        conn = FakeConnection()
        record = IngestionQueueRecord(
            file_url="https://x/uploads/a.csv", input_type="csv", company_id="c-1",
            parsed_json={"row_count": 3}, raw_text="CSV Data Analysis",
        )
        StartupRepository(conn).insert_ingestion_record(record)

        params = conn.params_for("uploads_queue")[0]
        assert params[0] == "https://x/uploads/a.csv"
        assert params[2] == "c-1"
        assert params[4].adapted == {"row_count": 3}

    def test_record_failure_raises(self):
        from db import StartupRepository
        from errors import QueueRecordError
        from schema import IngestionQueueRecord

        conn = FakeConnection(fail_tables={"uploads_queue"})
        record = IngestionQueueRecord(file_url="u", input_type="txt")

        with pytest.raises(QueueRecordError, match="uploads_queue rejected"):
            StartupRepository(conn).insert_ingestion_record(record)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
