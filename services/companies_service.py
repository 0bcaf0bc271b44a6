# services/companies_service.py
"""
Company master: list, add, rename/move and delete companies. Company names
are the lookup key transactions use to derive cities.
"""
import logging
from typing import List, Optional, Tuple

from config import COMPANY_SHEET_NAME, COMPANY_HEADERS
from services.bootstrap import ensure_headers
from services.errors import RecordNotFound, ValidationError
from services.normalizer import Company, normalize_company, company_to_row
from services.sheets_connection import SheetsStore, TableSnapshot

logger = logging.getLogger(__name__)


def _require(value: Optional[str], field_name: str, label: str) -> str:
    cleaned = (value or "").strip() if isinstance(value, str) else ""
    if not cleaned:
        raise ValidationError(field_name, f"{label} is required")
    return cleaned


def _snapshot(store: SheetsStore) -> Tuple[TableSnapshot, List[Company]]:
    ensure_headers(store, COMPANY_SHEET_NAME, COMPANY_HEADERS)
    snapshot = store.snapshot(COMPANY_SHEET_NAME)
    return snapshot, [normalize_company(r) for r in snapshot.records]


def get_companies(store: SheetsStore) -> List[Company]:
    """All companies with a name, in sheet order."""
    _, companies = _snapshot(store)
    return [c for c in companies if c.name]


def find_company(store: SheetsStore, name: str) -> Company:
    """Exact name match. Raises RecordNotFound."""
    for company in get_companies(store):
        if company.name == name:
            return company
    raise RecordNotFound(COMPANY_SHEET_NAME, name)


def add_company(store: SheetsStore, name: str, city: str) -> Company:
    name = _require(name, "companyName", "Company name")
    city = _require(city, "companyCity", "City")
    headers = ensure_headers(store, COMPANY_SHEET_NAME, COMPANY_HEADERS)
    if any(c.name == name for c in get_companies(store)):
        raise ValidationError("companyName", f"Company '{name}' already exists")
    company = Company(name=name, city=city)
    store.append(COMPANY_SHEET_NAME, company_to_row(company, headers))
    logger.info(f"Company added: {name} ({city})")
    return company


def update_company(store: SheetsStore, old_name: str, name: str, city: str) -> Company:
    """Rewrites the row of old_name. Columns other than name and city are preserved."""
    old_name = _require(old_name, "oldCompanyName", "Old company name")
    name = _require(name, "companyName", "Company name")
    city = _require(city, "companyCity", "City")
    snapshot, companies = _snapshot(store)
    target = next((c for c in companies if c.name == old_name), None)
    if target is None:
        raise RecordNotFound(COMPANY_SHEET_NAME, old_name)
    if name != old_name and any(c.name == name for c in companies):
        raise ValidationError("companyName", f"Company '{name}' already exists")
    existing = snapshot.find(lambda r: r.get("row_number") == target.row_number)
    updated = Company(name=name, city=city, row_number=target.row_number)
    store.update_at(COMPANY_SHEET_NAME, target.row_number, company_to_row(updated, snapshot.headers, existing))
    logger.info(f"Company '{old_name}' updated to {name} ({city}) at row {target.row_number}.")
    return updated


def delete_company(store: SheetsStore, name: str) -> Company:
    name = _require(name, "companyName", "Company name")
    _, companies = _snapshot(store)
    target = next((c for c in companies if c.name == name), None)
    if target is None:
        raise RecordNotFound(COMPANY_SHEET_NAME, name)
    store.delete_at(COMPANY_SHEET_NAME, target.row_number)
    logger.info(f"Company '{name}' deleted from row {target.row_number}.")
    return target
