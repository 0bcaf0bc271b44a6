# services/transactions_service.py
"""
Transactions of the active financial year: list, add, update, delete, export.

Writes never trust the caller's cities or product names: both are derived
again from the company and product masters at write time. Rows are addressed
by position; pass the Transaction you read as ``expected`` to update/delete
to have the position re-validated first.
"""
import csv
import io
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from config import (
    TRANSACTION_HEADERS, COMPANY_SHEET_NAME, PRODUCT_SHEET_NAME,
    get_financial_year_sheet_name
)
from common.utils import clean_cell, parse_date, parse_number
from services.bootstrap import ensure_headers
from services.errors import InvalidPosition, TableNotFound, ValidationError
from services.normalizer import (
    MasterLookups, Transaction, normalize_company, normalize_product,
    normalize_transaction, normalize_transactions, transaction_to_row
)
from services.sheets_connection import ROW_NUMBER_KEY, RowRef, SheetsStore

logger = logging.getLogger(__name__)


def get_transactions_table(today: Optional[datetime] = None) -> str:
    return get_financial_year_sheet_name(today)


def load_lookups(store: SheetsStore) -> MasterLookups:
    """Reads both master tables. A missing master table is treated as empty."""
    try:
        companies = [normalize_company(r) for r in store.read_all(COMPANY_SHEET_NAME)]
    except TableNotFound:
        logger.info(f"Table '{COMPANY_SHEET_NAME}' not found; cities will be empty.")
        companies = []
    try:
        products = [normalize_product(r) for r in store.read_all(PRODUCT_SHEET_NAME)]
    except TableNotFound:
        logger.info(f"Table '{PRODUCT_SHEET_NAME}' not found; product codes will not be resolved.")
        products = []
    return MasterLookups.from_masters(companies, products)


def get_transactions(store: SheetsStore, table: Optional[str] = None,
                     lookups: Optional[MasterLookups] = None) -> List[Transaction]:
    """Normalized transactions in sheet order. Raises TableNotFound if the table does not exist."""
    table = table or get_transactions_table()
    records = store.read_all(table)
    if lookups is None:
        lookups = load_lookups(store)
    return normalize_transactions(records, lookups)


def _required_text(data: Dict[str, Any], field_name: str, *aliases: str) -> str:
    for key in (field_name,) + aliases:
        value = clean_cell(data.get(key))
        if value:
            return value
    raise ValidationError(field_name, "is required")


def _non_negative(data: Dict[str, Any], field_name: str, *aliases: str) -> float:
    raw = None
    for key in (field_name,) + aliases:
        if clean_cell(data.get(key)):
            raw = data.get(key)
            break
    if raw is None:
        return 0.0
    number = parse_number(raw)
    if number is None or number < 0:
        raise ValidationError(field_name, "must be a non-negative number")
    return number


def build_transaction(data: Dict[str, Any], lookups: MasterLookups) -> Transaction:
    """Validates caller input and derives cities and product code from the masters.

    Unlike reads, writes are strict: missing names or malformed numbers raise ValidationError.
    """
    buyer = _required_text(data, "buyerCompanyName", "buyer")
    seller = _required_text(data, "sellerCompanyName", "seller")
    raw_date = _required_text(data, "date")
    parsed = parse_date(raw_date)
    if parsed is None:
        raise ValidationError("date", f"'{raw_date}' is not a valid date")
    product_input = _required_text(data, "product", "productCode")

    name = lookups.product_name_for(product_input)
    if name is not None:
        product, product_code = name, product_input
    else:
        product = product_input
        product_code = lookups.product_code_for_name(product_input) or clean_cell(data.get("productCode"))

    for company in (buyer, seller):
        if not lookups.has_company(company):
            logger.warning(f"Company '{company}' is not in '{COMPANY_SHEET_NAME}'; its city will be empty.")

    return Transaction(
        date=parsed.isoformat(),
        buyer_company_name=buyer,
        seller_company_name=seller,
        buyer_company_city=lookups.city_for(buyer),
        seller_company_city=lookups.city_for(seller),
        product=product,
        product_code=product_code,
        quantity=_non_negative(data, "qty", "quantity"),
        price=_non_negative(data, "price"),
        remarks=clean_cell(data.get("remarks")),
    )


def add_transaction(store: SheetsStore, data: Dict[str, Any], table: Optional[str] = None) -> Transaction:
    """Appends one transaction. Not idempotent: calling twice records two rows."""
    table = table or get_transactions_table()
    transaction = build_transaction(data, load_lookups(store))
    headers = ensure_headers(store, table, TRANSACTION_HEADERS)
    store.append(table, transaction_to_row(transaction, headers))
    logger.info(f"Transaction recorded in '{table}': {transaction.buyer_company_name} <- "
                f"{transaction.seller_company_name}, {transaction.quantity} x {transaction.product}")
    return transaction


def _record_at(store: SheetsStore, ref: RowRef, headers: List[str]) -> Dict[str, Any]:
    values = store.row_values_at(ref.table, ref.position)
    record = {h: (values[i] if i < len(values) else "") for i, h in enumerate(headers) if h}
    record[ROW_NUMBER_KEY] = ref.position
    return record


def is_current(store: SheetsStore, ref: RowRef, expected: Transaction,
               lookups: Optional[MasterLookups] = None) -> bool:
    """True if the row at ref still normalizes to expected.

    Any position held across another write (by anyone) must pass this check
    before it is used: a delete elsewhere shifts rows and the position may now
    name a different transaction.
    """
    headers = store.read_headers(ref.table)
    lookups = lookups or load_lookups(store)
    actual = normalize_transaction(_record_at(store, ref, headers), lookups)
    if actual != expected:
        logger.warning(f"Stale position {ref.position} in '{ref.table}': expected {expected}, found {actual}.")
        return False
    return True


def _check_current(store: SheetsStore, ref: RowRef, expected: Optional[Transaction],
                   lookups: MasterLookups) -> None:
    if expected is not None and not is_current(store, ref, expected, lookups):
        raise InvalidPosition(ref.position, f"Row {ref.position} of '{ref.table}' changed since it was read")


def update_transaction(store: SheetsStore, position: int, data: Dict[str, Any], table: Optional[str] = None,
                       expected: Optional[Transaction] = None) -> Transaction:
    """Overwrites the transaction at position, keeping values of columns this system does not know."""
    table = table or get_transactions_table()
    headers = store.read_headers(table)
    lookups = load_lookups(store)
    ref = RowRef(table, position)
    _check_current(store, ref, expected, lookups)
    transaction = build_transaction(data, lookups)
    existing = _record_at(store, ref, headers)
    if not any(clean_cell(v) for k, v in existing.items() if k != ROW_NUMBER_KEY):
        raise InvalidPosition(position, f"No transaction at row {position} of '{table}'")
    store.update_at(table, position, transaction_to_row(transaction, headers, existing))
    return replace(transaction, row_number=position)


def delete_transaction(store: SheetsStore, position: int, table: Optional[str] = None,
                       expected: Optional[Transaction] = None) -> None:
    """Deletes the row at position; later transactions move up one position."""
    table = table or get_transactions_table()
    if expected is not None:
        _check_current(store, RowRef(table, position), expected, load_lookups(store))
    if not any(store.row_values_at(table, position)):
        raise InvalidPosition(position, f"No transaction at row {position} of '{table}'")
    store.delete_at(table, position)


def export_transactions_csv(store: SheetsStore, table: Optional[str] = None) -> str:
    """The raw table as CSV, every field quoted. Raises ValidationError when there is nothing to export."""
    table = table or get_transactions_table()
    snapshot = store.snapshot(table)
    if not snapshot.records:
        raise ValidationError("transactions", "No transactions to export")
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(snapshot.headers)
    for record in snapshot.records:
        writer.writerow(snapshot.values_for(record))
    logger.info(f"Exported {len(snapshot.records)} transactions from '{table}'.")
    return buffer.getvalue()
