# services/products_service.py
"""
Product master: products are keyed by code; transactions refer to the code
and display the name.
"""
import logging
from typing import Any, List, Optional, Tuple

from config import PRODUCT_SHEET_NAME, PRODUCT_HEADERS
from common.utils import parse_number
from services.bootstrap import ensure_headers
from services.errors import RecordNotFound, ValidationError
from services.normalizer import Product, normalize_product, product_to_row
from services.sheets_connection import SheetsStore, TableSnapshot

logger = logging.getLogger(__name__)


def _require(value: Optional[str], field_name: str, label: str) -> str:
    cleaned = value.strip() if isinstance(value, str) else ""
    if not cleaned:
        raise ValidationError(field_name, f"{label} is required")
    return cleaned


def _optional_rate(rate: Any) -> Optional[float]:
    if rate is None or rate == "":
        return None
    parsed = parse_number(rate)
    if parsed is None or parsed < 0:
        raise ValidationError("rate", "Rate must be a non-negative number")
    return parsed


def _snapshot(store: SheetsStore) -> Tuple[TableSnapshot, List[Product]]:
    ensure_headers(store, PRODUCT_SHEET_NAME, PRODUCT_HEADERS)
    snapshot = store.snapshot(PRODUCT_SHEET_NAME)
    return snapshot, [normalize_product(r) for r in snapshot.records]


def get_products(store: SheetsStore) -> List[Product]:
    _, products = _snapshot(store)
    return [p for p in products if p.code]


def find_product(store: SheetsStore, code: str) -> Product:
    for product in get_products(store):
        if product.code == code:
            return product
    raise RecordNotFound(PRODUCT_SHEET_NAME, code)


def add_product(store: SheetsStore, code: str, name: str, rate: Any = None, company_name: str = "") -> Product:
    code = _require(code, "productCode", "Product code")
    name = _require(name, "productName", "Product name")
    headers = ensure_headers(store, PRODUCT_SHEET_NAME, PRODUCT_HEADERS)
    if any(p.code == code for p in get_products(store)):
        raise ValidationError("productCode", f"Product '{code}' already exists")
    product = Product(code=code, name=name, rate=_optional_rate(rate), company_name=(company_name or "").strip())
    store.append(PRODUCT_SHEET_NAME, product_to_row(product, headers))
    logger.info(f"Product added: {code} - {name}")
    return product


def update_product(store: SheetsStore, old_code: str, code: str, name: str,
                   rate: Any = None, company_name: Optional[str] = None) -> Product:
    """Rewrites the row of old_code. rate/company_name left as None keep their current values."""
    old_code = _require(old_code, "oldProductCode", "Old product code")
    code = _require(code, "productCode", "Product code")
    name = _require(name, "productName", "Product name")
    snapshot, products = _snapshot(store)
    target = next((p for p in products if p.code == old_code), None)
    if target is None:
        raise RecordNotFound(PRODUCT_SHEET_NAME, old_code)
    if code != old_code and any(p.code == code for p in products):
        raise ValidationError("productCode", f"Product '{code}' already exists")
    updated = Product(
        code=code,
        name=name,
        rate=target.rate if rate is None else _optional_rate(rate),
        company_name=target.company_name if company_name is None else company_name.strip(),
        row_number=target.row_number,
    )
    existing = snapshot.find(lambda r: r.get("row_number") == target.row_number)
    store.update_at(PRODUCT_SHEET_NAME, target.row_number, product_to_row(updated, snapshot.headers, existing))
    logger.info(f"Product '{old_code}' updated to {code} - {name} at row {target.row_number}.")
    return updated


def delete_product(store: SheetsStore, code: str) -> Product:
    code = _require(code, "productCode", "Product code")
    _, products = _snapshot(store)
    target = next((p for p in products if p.code == code), None)
    if target is None:
        raise RecordNotFound(PRODUCT_SHEET_NAME, code)
    store.delete_at(PRODUCT_SHEET_NAME, target.row_number)
    logger.info(f"Product '{code}' deleted from row {target.row_number}.")
    return target
