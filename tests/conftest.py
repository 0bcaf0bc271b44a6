# tests/conftest.py
"""
Shared pytest fixtures for the brokerage books test suite.
"""
import pytest

from tests.helpers.fake_sheets import FakeSpreadsheet

FY_TABLE = "FY2024-25"

TRANSACTION_HEADER_ROW = [
    "date", "buyerCompanyName", "buyerCompanyCity", "sellerCompanyName", "sellerCompanyCity",
    "product", "productCode", "qty", "price", "remarks"
]


@pytest.fixture
def sample_transaction_rows():
    """Acme buys from Beta, then sells back to Beta with a manual other-side amount in remarks."""
    return [
        TRANSACTION_HEADER_ROW,
        ["2024-05-01", "Acme", "", "Beta", "", "Cotton", "P001", "100", "50", ""],
        ["2024-05-15", "Beta", "", "Acme", "", "Cotton", "P001", "50", "60", "25.5"],
    ]


@pytest.fixture
def sample_company_rows():
    return [
        ["companyName", "companyCity"],
        ["Acme", "Mumbai"],
        ["Beta", "Pune"],
    ]


@pytest.fixture
def sample_product_rows():
    return [
        ["productCode", "productName"],
        ["P001", "Cotton"],
        ["P002", "Wheat"],
    ]


@pytest.fixture
def fake_spreadsheet(sample_transaction_rows, sample_company_rows, sample_product_rows):
    return FakeSpreadsheet({
        "Company Master": sample_company_rows,
        "Product Master": sample_product_rows,
        FY_TABLE: sample_transaction_rows,
    })


@pytest.fixture
def store(fake_spreadsheet):
    from services.sheets_connection import SheetsStore
    return SheetsStore(fake_spreadsheet)


@pytest.fixture
def empty_store():
    from services.sheets_connection import SheetsStore
    return SheetsStore(FakeSpreadsheet())
