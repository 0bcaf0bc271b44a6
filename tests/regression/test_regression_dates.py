import pytest
pytestmark = pytest.mark.regression

# tests/regression/test_regression_dates.py
"""
Regression tests for date handling and boundary conditions.
"""
from datetime import date, datetime

from common.utils import parse_date, format_display_date
from config import get_financial_year_sheet_name
from services.invoice_service import InvoiceRequest, NoMatch, generate_invoice
from services.sheets_connection import SheetsStore
from tests.helpers.fake_sheets import FakeSpreadsheet


class TestFinancialYearBoundaries:

    def test_last_day_and_first_day(self):
        assert get_financial_year_sheet_name(date(2025, 3, 31)) == "FY2024-25"
        assert get_financial_year_sheet_name(date(2025, 4, 1)) == "FY2025-26"

    def test_january(self):
        assert get_financial_year_sheet_name(date(2026, 1, 1)) == "FY2025-26"


class TestInvalidDateHandling:

    def test_impossible_dates(self):
        assert parse_date("31/02/2024") is None
        assert parse_date("2024-13-01") is None

    def test_leap_day(self):
        assert parse_date("29/02/2024") == date(2024, 2, 29)

    def test_display_passthrough(self):
        assert format_display_date("31/02/2024") == "31/02/2024"
        assert format_display_date("TBD") == "TBD"

    def test_datetime_input(self):
        assert format_display_date(datetime(2024, 1, 5, 23, 59)) == "05/01/2024"


class TestInvoiceDateFilter:
    """Rows with unreadable dates are left out of invoices instead of failing them."""

    def _store(self, *rows):
        return SheetsStore(FakeSpreadsheet({
            "FY2024-25": [["date", "buyerCompanyName", "sellerCompanyName", "qty"]] + list(rows),
        }))

    def _request(self):
        return InvoiceRequest("Acme", date(2024, 5, 1), date(2024, 5, 31), 10.0)

    def test_mixed_formats(self):
        store = self._store(["2024-05-01", "Acme", "Beta", "1"], ["31/05/2024", "Acme", "Beta", "2"],
                            ["2024-05-31T18:30:00", "Acme", "Beta", "4"])
        result = generate_invoice(store, self._request(), table="FY2024-25")
        assert result.summary.total_qty == 7

    def test_unparseable_dates_excluded(self):
        store = self._store(["soon", "Acme", "Beta", "1"], ["", "Acme", "Beta", "2"])
        assert isinstance(generate_invoice(store, self._request(), table="FY2024-25"), NoMatch)

    def test_boundary_days_outside(self):
        store = self._store(["30/04/2024", "Acme", "Beta", "1"], ["01/06/2024", "Acme", "Beta", "2"])
        assert isinstance(generate_invoice(store, self._request(), table="FY2024-25"), NoMatch)
