import pytest
pytestmark = pytest.mark.unit

# tests/unit/services/test_transactions_service.py
"""Unit tests for services/transactions_service.py — writes re-derive master data."""
from datetime import date
from unittest.mock import patch

from services.errors import InvalidPosition, TableNotFound, ValidationError
from services.normalizer import MasterLookups, Company, Product
from services.sheets_connection import RowRef, SheetsStore
from services.transactions_service import (
    get_transactions_table, load_lookups, get_transactions, build_transaction,
    add_transaction, update_transaction, delete_transaction, is_current,
    export_transactions_csv
)
from tests.helpers.fake_sheets import FakeSpreadsheet

TABLE = "FY2024-25"


@pytest.fixture
def lookups():
    return MasterLookups.from_masters(
        [Company("Acme", "Mumbai"), Company("Beta", "Pune")],
        [Product("P001", "Cotton")],
    )


def _payload(**overrides):
    data = {
        "date": "2024-06-10", "buyerCompanyName": "Acme", "sellerCompanyName": "Beta",
        "product": "P001", "qty": "20", "price": "45", "remarks": "",
    }
    data.update(overrides)
    return data


class TestTableName:

    def test_follows_financial_year(self):
        assert get_transactions_table(date(2024, 6, 1)) == TABLE
        assert get_transactions_table(date(2025, 2, 1)) == TABLE


class TestLoadLookups:

    def test_reads_masters(self, store):
        lookups = load_lookups(store)
        assert lookups.city_for("Acme") == "Mumbai"
        assert lookups.product_name_for("P002") == "Wheat"

    def test_missing_masters_are_empty(self, empty_store):
        lookups = load_lookups(empty_store)
        assert lookups.company_cities == {}
        assert lookups.product_names == {}


class TestGetTransactions:

    def test_normalized_in_sheet_order(self, store):
        transactions = get_transactions(store, TABLE)
        assert [t.row_number for t in transactions] == [2, 3]
        assert transactions[0].buyer_company_city == "Mumbai"
        assert transactions[1].remarks == "25.5"

    def test_missing_table(self, store):
        with pytest.raises(TableNotFound):
            get_transactions(store, "FY1999-00")


class TestBuildTransaction:

    def test_product_code_resolved_to_name(self, lookups):
        tx = build_transaction(_payload(), lookups)
        assert tx.product == "Cotton"
        assert tx.product_code == "P001"

    def test_product_name_resolved_to_code(self, lookups):
        tx = build_transaction(_payload(product="Cotton"), lookups)
        assert tx.product_code == "P001"

    def test_unknown_product_kept(self, lookups):
        tx = build_transaction(_payload(product="Barley"), lookups)
        assert (tx.product, tx.product_code) == ("Barley", "")

    def test_caller_cities_are_ignored(self, lookups):
        tx = build_transaction(_payload(buyerCompanyCity="Nowhere", sellerCompanyCity="Elsewhere"), lookups)
        assert tx.buyer_company_city == "Mumbai"
        assert tx.seller_company_city == "Pune"

    def test_unknown_company_has_empty_city(self, lookups):
        tx = build_transaction(_payload(buyerCompanyName="Gamma"), lookups)
        assert tx.buyer_company_city == ""

    def test_date_stored_as_iso(self, lookups):
        assert build_transaction(_payload(date="10/06/2024"), lookups).date == "2024-06-10"

    @pytest.mark.parametrize("field", ["buyerCompanyName", "sellerCompanyName", "date", "product"])
    def test_required_fields(self, lookups, field):
        with pytest.raises(ValidationError) as exc:
            build_transaction(_payload(**{field: ""}), lookups)
        assert exc.value.field == field

    def test_bad_date(self, lookups):
        with pytest.raises(ValidationError) as exc:
            build_transaction(_payload(date="someday"), lookups)
        assert exc.value.field == "date"

    @pytest.mark.parametrize("value", ["-1", "lots"])
    def test_bad_quantity(self, lookups, value):
        with pytest.raises(ValidationError) as exc:
            build_transaction(_payload(qty=value), lookups)
        assert exc.value.field == "qty"

    def test_missing_numbers_default_to_zero(self, lookups):
        tx = build_transaction(_payload(qty=None, price=""), lookups)
        assert tx.quantity == 0.0
        assert tx.price == 0.0


class TestAddTransaction:

    def test_appends_in_header_order(self, store, fake_spreadsheet):
        tx = add_transaction(store, _payload(), TABLE)
        assert tx.quantity == 20.0
        assert fake_spreadsheet.values(TABLE)[-1] == [
            "2024-06-10", "Acme", "Mumbai", "Beta", "Pune", "Cotton", "P001", "20", "45", ""
        ]

    def test_bootstraps_new_table(self, store, fake_spreadsheet):
        add_transaction(store, _payload(), "FY2025-26")
        rows = fake_spreadsheet.values("FY2025-26")
        assert rows[0][0] == "date"
        assert len(rows) == 2

    def test_legacy_header_order_is_respected(self):
        spreadsheet = FakeSpreadsheet({TABLE: [["Buyer", "Seller", "Date", "Qty"]]})
        add_transaction(SheetsStore(spreadsheet), _payload(), TABLE)
        assert spreadsheet.values(TABLE)[1] == ["Acme", "Beta", "2024-06-10", "20"]

    def test_validation_happens_before_writing(self, store, fake_spreadsheet):
        with pytest.raises(ValidationError):
            add_transaction(store, _payload(buyerCompanyName=""), TABLE)
        assert len(fake_spreadsheet.values(TABLE)) == 3

    def test_not_idempotent(self, store, fake_spreadsheet):
        add_transaction(store, _payload(), TABLE)
        add_transaction(store, _payload(), TABLE)
        assert len(fake_spreadsheet.values(TABLE)) == 5


class TestIsCurrent:

    def test_unchanged_row(self, store):
        expected = get_transactions(store, TABLE)[1]
        assert is_current(store, RowRef(TABLE, 3), expected) is True

    def test_shifted_row(self, store):
        expected = get_transactions(store, TABLE)[1]
        delete_transaction(store, 2, TABLE)
        assert is_current(store, RowRef(TABLE, 3), expected) is False


class TestUpdateTransaction:

    def test_overwrites_row(self, store, fake_spreadsheet):
        updated = update_transaction(store, 2, _payload(qty="99"), TABLE)
        assert updated.row_number == 2
        assert fake_spreadsheet.values(TABLE)[1][7] == "99"
        assert len(fake_spreadsheet.values(TABLE)) == 3

    def test_header_position_rejected(self, store):
        with pytest.raises(InvalidPosition):
            update_transaction(store, 1, _payload(), TABLE)

    def test_position_past_last_row(self, store, fake_spreadsheet):
        with pytest.raises(InvalidPosition):
            update_transaction(store, 10, _payload(), TABLE)
        assert len(fake_spreadsheet.values(TABLE)) == 3

    def test_stale_expected_rejected(self, store, fake_spreadsheet):
        first, second = get_transactions(store, TABLE)
        with pytest.raises(InvalidPosition):
            update_transaction(store, 2, _payload(), TABLE, expected=second)
        assert fake_spreadsheet.values(TABLE)[1][1] == "Acme"

    def test_current_expected_accepted(self, store):
        first, _ = get_transactions(store, TABLE)
        update_transaction(store, 2, _payload(qty="1"), TABLE, expected=first)

    def test_preserves_unknown_columns(self):
        spreadsheet = FakeSpreadsheet({TABLE: [["date", "buyerCompanyName", "sellerCompanyName", "product",
                                                "qty", "Broker"],
                                               ["2024-06-01", "Acme", "Beta", "Cotton", "5", "Ravi"]]})
        update_transaction(SheetsStore(spreadsheet), 2, _payload(), TABLE)
        assert spreadsheet.values(TABLE)[1][-1] == "Ravi"


class TestDeleteTransaction:

    def test_deletes_and_shifts(self, store):
        delete_transaction(store, 2, TABLE)
        remaining = get_transactions(store, TABLE)
        assert len(remaining) == 1
        assert remaining[0].row_number == 2
        assert remaining[0].remarks == "25.5"

    def test_stale_expected_rejected(self, store):
        first, second = get_transactions(store, TABLE)
        with pytest.raises(InvalidPosition):
            delete_transaction(store, 2, TABLE, expected=second)
        assert len(get_transactions(store, TABLE)) == 2

    def test_invalid_position(self, store):
        with pytest.raises(InvalidPosition):
            delete_transaction(store, 0, TABLE)

    def test_position_past_last_row(self, store):
        with pytest.raises(InvalidPosition):
            delete_transaction(store, 4, TABLE)


class TestExportCsv:

    def test_quotes_every_field(self, store):
        csv_text = export_transactions_csv(store, TABLE)
        lines = csv_text.splitlines()
        assert lines[0].startswith('"date","buyerCompanyName"')
        assert lines[2] == '"2024-05-15","Beta","","Acme","","Cotton","P001","50","60","25.5"'
        assert len(lines) == 3

    def test_empty_table(self):
        store = SheetsStore(FakeSpreadsheet({TABLE: [["date", "qty"]]}))
        with pytest.raises(ValidationError):
            export_transactions_csv(store, TABLE)

    @patch("services.transactions_service.get_transactions_table", return_value=TABLE)
    def test_defaults_to_current_year(self, mock_table, store):
        assert export_transactions_csv(store)
        mock_table.assert_called_once()
