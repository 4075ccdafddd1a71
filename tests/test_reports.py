"""
Reporting tests: group-by aggregation, daily trend, dashboard and exports.
"""

import io
from datetime import date, datetime, timezone

import openpyxl
import pytest

from fintrack.domain.helpers.aggregation import daily_series, group_totals
from fintrack.domain.helpers.timezone import WIB
from fintrack.domain.models.invoice import Invoice, InvoiceFilter
from fintrack.domain.services.invoice_service import create_invoice
from fintrack.domain.services.report_service import trend_report


def _invoice(invoice_id, total, category=None, division=None, when=None):
    return Invoice(
        id=invoice_id,
        invoice_number=f"INV-{invoice_id}",
        title="x",
        date=when or datetime(2024, 3, 5, 10, 0, tzinfo=WIB),
        pic_id=1,
        division_id=1,
        category_id=1,
        subcategory_id=1,
        total_amount=total,
        category_name=category,
        division_name=division,
    )


class TestGroupTotals:
    def test_empty_input(self):
        summary = group_totals([], "category")
        assert summary.groups == []
        assert summary.grand_total == 0
        assert summary.invoice_count == 0

    def test_percentages_and_encounter_order(self):
        invoices = [
            _invoice(1, 300, category="Travel"),
            _invoice(2, 100, category="Office"),
            _invoice(3, 100, category="Travel"),
        ]
        summary = group_totals(invoices, "category")
        assert [(g.key, g.total) for g in summary.groups] == [
            ("Travel", 400),
            ("Office", 100),
        ]
        assert summary.grand_total == 500
        assert [g.percentage for g in summary.groups] == [80.0, 20.0]

    def test_zero_totals_do_not_divide_by_zero(self):
        summary = group_totals([_invoice(1, 0, category="Travel")], "category")
        assert summary.groups[0].percentage == 0

    def test_missing_name_gets_fallback_key(self):
        summary = group_totals([_invoice(1, 10)], "division")
        assert summary.groups[0].key == "No division"

    def test_month_keys_use_wib_date(self):
        # 2024-01-31 20:00 UTC is already February in WIB.
        late_utc = datetime(2024, 1, 31, 20, 0, tzinfo=timezone.utc)
        summary = group_totals([_invoice(1, 10, when=late_utc)], "month")
        assert summary.groups[0].key == "2024-02"

    def test_unknown_group_by(self):
        with pytest.raises(ValueError):
            group_totals([], "weekday")


class TestDailySeries:
    def test_zero_filled_oldest_first(self):
        invoices = [
            _invoice(1, 50, when=datetime(2024, 3, 5, 9, 0, tzinfo=WIB)),
            _invoice(2, 25, when=datetime(2024, 3, 5, 18, 0, tzinfo=WIB)),
            _invoice(3, 10, when=datetime(2024, 3, 3, 12, 0, tzinfo=WIB)),
        ]
        series = daily_series(invoices, days=3, today=date(2024, 3, 5))
        assert series == [
            {"date": "2024-03-03", "total": 10},
            {"date": "2024-03-04", "total": 0},
            {"date": "2024-03-05", "total": 75},
        ]

    def test_outside_window_is_ignored(self):
        invoices = [_invoice(1, 50, when=datetime(2024, 2, 1, 9, 0, tzinfo=WIB))]
        series = daily_series(invoices, days=7, today=date(2024, 3, 5))
        assert len(series) == 7
        assert sum(p["total"] for p in series) == 0

    def test_days_must_be_positive(self):
        with pytest.raises(ValueError):
            daily_series([], days=0)


class TestReportEndpoints:
    def test_summary_on_empty_database(self, client, admin_headers):
        resp = client.get("/api/reports/summary", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json() == {
            "group_by": "category",
            "grand_total": 0,
            "invoice_count": 0,
            "groups": [],
        }

    def test_summary_by_division(self, client, admin_headers, pen_and_paper):
        client.post("/api/invoices", json=pen_and_paper, headers=admin_headers)
        resp = client.get(
            "/api/reports/summary", params={"group_by": "division"}, headers=admin_headers
        )
        data = resp.json()
        assert data["grand_total"] == 245000
        assert data["groups"] == [
            {"key": "Operations", "total": 245000, "percentage": 100.0}
        ]

    def test_summary_rejects_unknown_group_by(self, client, admin_headers):
        resp = client.get(
            "/api/reports/summary", params={"group_by": "weekday"}, headers=admin_headers
        )
        assert resp.status_code == 400
        assert resp.json()["details"] == {"field": "group_by"}

    def test_trend(self, client, admin_headers):
        resp = client.get(
            "/api/reports/trend", params={"days": 5}, headers=admin_headers
        )
        assert resp.status_code == 200
        assert resp.json()["days"] == 5
        assert len(resp.json()["series"]) == 5

    def test_trend_leaves_caller_filter_untouched(self, db_session, pen_and_paper):
        create_invoice(db_session, pen_and_paper)
        invoice_filter = InvoiceFilter(division_id=pen_and_paper["division_id"])
        trend = trend_report(
            db_session, days=3, today=date(2024, 3, 5), invoice_filter=invoice_filter
        )
        assert [p["total"] for p in trend["series"]] == [0, 0, 245000]
        assert invoice_filter.date_from is None
        assert invoice_filter.date_to is None
        assert invoice_filter.division_id == pen_and_paper["division_id"]

    def test_trend_rejects_zero_days(self, client, admin_headers):
        resp = client.get(
            "/api/reports/trend", params={"days": 0}, headers=admin_headers
        )
        assert resp.status_code == 400

    def test_dashboard(self, client, admin_headers, pen_and_paper):
        for _ in range(4):
            client.post("/api/invoices", json=pen_and_paper, headers=admin_headers)
        data = client.get("/api/reports/dashboard", headers=admin_headers).json()
        assert len(data["recent_invoices"]) == 3
        assert data["invoice_count"] == 4
        assert data["grand_total"] == 4 * 245000
        assert len(data["trend"]) == 7
        assert data["by_category"][0]["key"] == "Office Supplies"

    def test_dashboard_page_renders(self, client, admin_headers, pen_and_paper):
        client.post("/api/invoices", json=pen_and_paper, headers=admin_headers)
        resp = client.get("/", headers=admin_headers)
        assert resp.status_code == 200
        assert "Rp 245.000" in resp.text


class TestExports:
    def test_csv_export(self, client, admin_headers, pen_and_paper):
        client.post("/api/invoices", json=pen_and_paper, headers=admin_headers)
        resp = client.get(
            "/api/reports/export", params={"format": "csv"}, headers=admin_headers
        )
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert "attachment; filename=expense-report-" in resp.headers["content-disposition"]
        lines = resp.text.strip().splitlines()
        assert lines[0].startswith("No,Invoice Number,Title")
        assert len(lines) == 3
        assert lines[-1].split(",")[2] == "TOTAL"

    def test_xlsx_export(self, client, admin_headers, pen_and_paper):
        client.post("/api/invoices", json=pen_and_paper, headers=admin_headers)
        resp = client.get("/api/reports/export", headers=admin_headers)
        assert resp.status_code == 200
        workbook = openpyxl.load_workbook(io.BytesIO(resp.content))
        sheet = workbook.active
        assert sheet.title == "Expense Report"
        assert sheet["B1"].value == "Invoice Number"
        assert sheet["J2"].value == 245000
        assert sheet["C3"].value == "TOTAL"
        assert sheet["C3"].font.bold

    def test_export_respects_filters(self, client, admin_headers, pen_and_paper):
        client.post("/api/invoices", json=pen_and_paper, headers=admin_headers)
        resp = client.get(
            "/api/reports/export",
            params={"format": "csv", "date_from": "2025-01-01"},
            headers=admin_headers,
        )
        lines = resp.text.strip().splitlines()
        assert len(lines) == 2

    def test_unknown_format(self, client, admin_headers):
        resp = client.get(
            "/api/reports/export", params={"format": "pdf"}, headers=admin_headers
        )
        assert resp.status_code == 400
