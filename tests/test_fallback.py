"""
Tests for fallback.py and the emptiness rule in schema.py.
"""
import pytest


def _csv(rows, headers=None):
    from schema import ContentType, ExtractedContent
    headers = headers or (list(rows[0].keys()) if rows else [])
    return ExtractedContent(
        type=ContentType.CSV,
        content=f"CSV Data Analysis:\n- Total rows: {len(rows)}",
        metadata={"headers": headers, "row_count": len(rows), "rows": rows},
    )


class TestEmptiness:
    """Tests for is_empty_analysis."""

    def test_blank_analysis_is_empty(self):
        from schema import StartupAnalysis, is_empty_analysis

        assert is_empty_analysis(StartupAnalysis())

    def test_company_needs_name_or_summary(self):
        """A company with only an industry does not count."""
        from schema import StartupAnalysis, CompanyInfo, is_empty_analysis

        assert is_empty_analysis(StartupAnalysis(company=CompanyInfo(industry_name="SaaS")))
        assert not is_empty_analysis(StartupAnalysis(company=CompanyInfo(name="Acme")))
        assert not is_empty_analysis(StartupAnalysis(company=CompanyInfo(pitch_deck_summary="AI for shops")))

    def test_sub_records_count_when_populated(self):
        """Founders, metrics and populated sub-records make it non-empty."""
        from schema import (
            StartupAnalysis, Founder, Metric, PitchDeck, FinancialModel, GoToMarket,
            is_empty_analysis,
        )

        assert not is_empty_analysis(StartupAnalysis(founders=[Founder(full_name="Jane")]))
        assert not is_empty_analysis(StartupAnalysis(metrics=[Metric(metric_name="MRR", metric_value=1)]))
        assert not is_empty_analysis(StartupAnalysis(pitch_deck=PitchDeck(core_problem="Waste")))
        assert not is_empty_analysis(StartupAnalysis(financial_model=FinancialModel(burn_rate_usd=0)))
        assert not is_empty_analysis(StartupAnalysis(go_to_market=GoToMarket(gtm_channels=["SEO"])))

    def test_empty_sub_records_do_not_count(self):
        """Sub-records with every field unset are still empty."""
        from schema import StartupAnalysis, PitchDeck, GoToMarket, is_empty_analysis

        analysis = StartupAnalysis(pitch_deck=PitchDeck(), go_to_market=GoToMarket(gtm_channels=[]))
        assert is_empty_analysis(analysis)

    def test_vc_fit_report_counts(self):
        from schema import StartupAnalysis, is_empty_analysis

        assert not is_empty_analysis(StartupAnalysis(vc_fit_report={"score": 80}))


class TestFallbackAnalysis:
    """Tests for build_fallback_analysis."""

    def test_always_names_company(self):
        """Every content type gets the generic company name and a summary."""
        from fallback import build_fallback_analysis, FALLBACK_COMPANY_NAME
        from schema import ContentType, ExtractedContent

        for content_type in ContentType:
            extracted = ExtractedContent(type=content_type, content="one two three", metadata={})
            analysis = build_fallback_analysis(extracted)

            assert analysis.company.name == FALLBACK_COMPANY_NAME
            assert content_type.value.upper() in analysis.company.pitch_deck_summary
            assert "3 words" in analysis.company.pitch_deck_summary

    def test_deterministic(self):
        """Same input, same output."""
        from fallback import build_fallback_analysis

        extracted = _csv([{"revenue": "100", "users": "10"}])
        assert build_fallback_analysis(extracted) == build_fallback_analysis(extracted)

    def test_revenue_users_scenario(self):
        """3-row revenue/users CSV yields revenue metrics in USD and user counts."""
        from fallback import build_fallback_analysis

        rows = [
            {"revenue": "100", "users": "10"},
            {"revenue": "200", "users": "20"},
            {"revenue": "300", "users": "30"},
        ]
        analysis = build_fallback_analysis(_csv(rows))

        revenue = [m for m in analysis.metrics if m.metric_name == "revenue"]
        users = [m for m in analysis.metrics if m.metric_name == "users"]
        assert [m.metric_value for m in revenue] == [100, 200, 300]
        assert all(m.metric_unit == "USD" for m in revenue)
        assert [m.metric_value for m in users] == [10, 20, 30]
        assert all(m.metric_unit == "count" for m in users)

    def test_any_keyword_matches(self):
        """growth and conversion columns are picked up too, as rates."""
        from fallback import build_fallback_analysis

        rows = [{"Month": "Jan", "MoM Growth": "12%", "Conversion Rate": "3.5", "Notes": "7"}]
        analysis = build_fallback_analysis(_csv(rows))

        by_name = {m.metric_name: m for m in analysis.metrics}
        assert set(by_name) == {"MoM Growth", "Conversion Rate"}
        assert by_name["MoM Growth"].metric_value == 12
        assert by_name["MoM Growth"].metric_unit == "%"
        assert by_name["Conversion Rate"].metric_unit == "%"

    def test_non_numeric_values_skipped(self):
        from fallback import build_fallback_analysis

        rows = [{"revenue": "n/a"}, {"revenue": ""}, {"revenue": "$1,250"}]
        analysis = build_fallback_analysis(_csv(rows))

        assert [m.metric_value for m in analysis.metrics] == [1250]

    def test_non_finite_values_skipped(self):
        """NaN / inf cells (pandas and Excel exports) never become metrics."""
        from fallback import build_fallback_analysis

        rows = [
            {"revenue": "NaN", "users": "10"},
            {"revenue": "inf", "users": "-Infinity"},
            {"revenue": float("nan"), "users": "20"},
        ]
        analysis = build_fallback_analysis(_csv(rows))

        assert [(m.metric_name, m.metric_value) for m in analysis.metrics] == [
            ("users", 10), ("users", 20),
        ]

    @pytest.mark.parametrize("header,unit", [
        ("generated_revenue", "USD"),
        ("Operating Revenue", "USD"),
        ("Total Sales (users)", "USD"),
        ("revenue_growth", "%"),
        ("User Churn Rate", "%"),
        ("Conversion %", "%"),
        ("paying_users", "count"),
    ])
    def test_unit_from_header_words(self, header, unit):
        """Units follow whole header words, not substrings."""
        from fallback import csv_metrics

        assert csv_metrics([{header: "5000"}])[0].metric_unit == unit

    def test_only_first_ten_rows_scanned(self):
        from fallback import build_fallback_analysis

        rows = [{"revenue": str(i)} for i in range(25)]
        analysis = build_fallback_analysis(_csv(rows))

        assert len(analysis.metrics) == 10

    def test_no_metrics_for_text(self):
        """Non-CSV content never produces metrics."""
        from fallback import build_fallback_analysis
        from schema import ContentType, ExtractedContent

        extracted = ExtractedContent(
            type=ContentType.TXT, content="revenue 100", metadata={"rows": [{"revenue": "100"}]}
        )
        assert build_fallback_analysis(extracted).metrics == []

    def test_malformed_metadata_does_not_raise(self):
        """Odd metadata shapes are ignored."""
        from fallback import build_fallback_analysis
        from schema import ContentType, ExtractedContent

        for rows in [None, "oops", [1, "x", None]]:
            extracted = ExtractedContent(type=ContentType.CSV, content="x", metadata={"rows": rows})
            analysis = build_fallback_analysis(extracted)
            assert analysis.company.name
            assert analysis.metrics == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
