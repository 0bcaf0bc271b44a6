import re
from datetime import date, datetime
from typing import Optional, Union

print("INFO: Loading business definitions...")

# --- Spreadsheet table names ---
COMPANY_SHEET_NAME = "Company Master"
PRODUCT_SHEET_NAME = "Product Master"
FINANCIAL_YEAR_START_MONTH = 4  # April

# --- Canonical headers ---
TRANSACTION_HEADERS = [
    "date", "buyerCompanyName", "buyerCompanyCity", "sellerCompanyName", "sellerCompanyCity",
    "product", "productCode", "qty", "price", "remarks"
]
COMPANY_HEADERS = ["companyName", "companyCity"]
PRODUCT_HEADERS = ["productCode", "productName"]

# --- Column aliases, in resolution order (first non-empty wins) ---
BUYER_NAME_ALIASES = ("buyerCompanyN", "buyerCompanyName", "Buyer Company", "Buyer")
SELLER_NAME_ALIASES = ("sellerCompanyN", "sellerCompanyName", "Seller Company", "Seller")
BUYER_CITY_ALIASES = ("buyerCompanyCity", "Buyer City")
SELLER_CITY_ALIASES = ("sellerCompanyCity", "Seller City")
DATE_ALIASES = ("date", "Date")
PRODUCT_ALIASES = ("product", "Product")
PRODUCT_NAME_ALIASES = ("productName", "Product Name")
PRODUCT_CODE_ALIASES = ("productCode", "Product Code")
QUANTITY_ALIASES = ("qty", "Qty", "quantity", "Quantity")
PRICE_ALIASES = ("price", "Price", "rate", "Rate")
REMARKS_ALIASES = ("remarks", "Remarks")

COMPANY_NAME_ALIASES = ("companyName", "Company Name", "Name", "name")
COMPANY_CITY_ALIASES = ("companyCity", "Company City", "City", "city")
MASTER_PRODUCT_CODE_ALIASES = ("productCode", "Product Code", "Code", "code")
MASTER_PRODUCT_NAME_ALIASES = ("productName", "Product Name", "Name", "name")
MASTER_PRODUCT_RATE_ALIASES = ("rate", "Rate")
MASTER_PRODUCT_COMPANY_ALIASES = ("companyName", "Company Name")

# --- Invoicing ---
INVOICE_NUMBER_PREFIX = "INV-"
INVOICE_NUMBER_WIDTH = 3
PREVIEW_INVOICE_NUMBER = "PREVIEW"
PREVIEW_INVOICE_DATE = "Preview Date"
NO_MATCH_MESSAGE = "No matching transactions found."
MIN_BROKERAGE_RATE = 0
MAX_BROKERAGE_RATE = 1000

# --- Percentage-of-value policy ---
GST_RATE = 0.18
GST_THRESHOLD = 5000


def get_financial_year_sheet_name(target_date: Optional[Union[date, datetime]] = None) -> str:
    """Transactions live in one table per financial year, e.g. 'FY2024-25'."""
    target_date = target_date or datetime.now()
    fy_start = target_date.year if target_date.month >= FINANCIAL_YEAR_START_MONTH else target_date.year - 1
    return f"FY{fy_start}-{str(fy_start + 1)[-2:]}"


_FINANCIAL_YEAR_SHEET_RE = re.compile(r"FY(\d{4})-(\d{2})")


def is_financial_year_sheet_name(name: str) -> bool:
    """True for names shaped like 'FY2024-25' whose two years are consecutive."""
    match = _FINANCIAL_YEAR_SHEET_RE.fullmatch(name or "")
    if not match:
        return False
    start, end = int(match.group(1)), int(match.group(2))
    return (start + 1) % 100 == end
