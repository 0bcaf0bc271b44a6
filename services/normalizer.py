# services/normalizer.py
"""
Maps raw sheet records onto canonical Transaction, Company and Product values.

The transaction tables have gone through several header conventions
('buyerCompanyN', 'Buyer Company', 'Buyer', ...). Each canonical field has an
ordered alias list in ``config.definitions``; the first alias holding a
non-empty value wins. Reads are permissive: malformed numbers become 0 and
unknown companies get an empty city, so a single bad cell never aborts a
report.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, List, Dict, Any, Iterable, Sequence

from config import (
    BUYER_NAME_ALIASES, SELLER_NAME_ALIASES, BUYER_CITY_ALIASES, SELLER_CITY_ALIASES,
    DATE_ALIASES, PRODUCT_ALIASES, PRODUCT_NAME_ALIASES, PRODUCT_CODE_ALIASES,
    QUANTITY_ALIASES, PRICE_ALIASES, REMARKS_ALIASES,
    COMPANY_NAME_ALIASES, COMPANY_CITY_ALIASES,
    MASTER_PRODUCT_CODE_ALIASES, MASTER_PRODUCT_NAME_ALIASES,
    MASTER_PRODUCT_RATE_ALIASES, MASTER_PRODUCT_COMPANY_ALIASES,
)
from common.utils import clean_cell, to_non_negative_number, parse_number, parse_leading_number, parse_date
from services.sheets_connection import ROW_NUMBER_KEY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Company:
    name: str
    city: str = ""
    row_number: Optional[int] = field(default=None, compare=False)


@dataclass(frozen=True)
class Product:
    code: str
    name: str = ""
    rate: Optional[float] = None
    company_name: str = ""
    row_number: Optional[int] = field(default=None, compare=False)


@dataclass(frozen=True)
class Transaction:
    """One buy/sell event. ``date`` keeps the cell text; use ``parsed_date`` for comparisons."""
    date: str
    buyer_company_name: str
    seller_company_name: str
    buyer_company_city: str = ""
    seller_company_city: str = ""
    product: str = ""
    product_code: str = ""
    quantity: float = 0.0
    price: float = 0.0
    remarks: str = ""
    row_number: Optional[int] = field(default=None, compare=False)

    @property
    def parsed_date(self) -> Optional[date]:
        return parse_date(self.date)

    @property
    def other_side_override(self) -> float:
        """Manual other-side brokerage typed into remarks. Unparsable or empty remarks count as 0."""
        amount = parse_leading_number(self.remarks)
        return amount if amount is not None else 0.0


@dataclass
class MasterLookups:
    """Company -> city and product code -> name tables, read fresh for every request."""
    company_cities: Dict[str, str] = field(default_factory=dict)
    product_names: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_masters(cls, companies: Iterable[Company], products: Iterable[Product]) -> "MasterLookups":
        company_cities = {}
        for company in companies:
            if company.name and company.name not in company_cities:
                company_cities[company.name] = company.city
        product_names = {}
        for product in products:
            if product.code and product.code not in product_names:
                product_names[product.code] = product.name
        return cls(company_cities, product_names)

    def city_for(self, company_name: str) -> str:
        """Exact, case-sensitive lookup. Unknown companies have no city."""
        return self.company_cities.get(company_name, "")

    def has_company(self, company_name: str) -> bool:
        return company_name in self.company_cities

    def product_name_for(self, code: str) -> Optional[str]:
        if not code:
            return None
        return self.product_names.get(code)

    def product_code_for_name(self, name: str) -> Optional[str]:
        for code, product_name in self.product_names.items():
            if product_name and product_name == name:
                return code
        return None


def first_value(record: Dict[str, Any], aliases: Sequence[str]) -> str:
    """Returns the first non-empty value among aliases, as a stripped string, or ''."""
    for alias in aliases:
        value = clean_cell(record.get(alias))
        if value:
            return value
    return ""


def _first_raw(record: Dict[str, Any], aliases: Sequence[str]) -> Any:
    for alias in aliases:
        value = record.get(alias)
        if clean_cell(value):
            return value
    return None


def resolve_product(record: Dict[str, Any], lookups: MasterLookups) -> tuple:
    """Returns (display_name, product_code) for a raw transaction record.

    The row's own product text always wins; the master name is only used
    when every name column is empty.
    """
    explicit_name = first_value(record, PRODUCT_NAME_ALIASES)
    generic = first_value(record, PRODUCT_ALIASES)
    code = first_value(record, PRODUCT_CODE_ALIASES)

    if not code and not explicit_name and generic:
        # Older rows stored the code itself in the generic product column.
        looked_up = lookups.product_name_for(generic)
        if looked_up:
            return looked_up, generic

    name = explicit_name or generic
    if not name:
        name = lookups.product_name_for(code) or ""
    return name, code


def normalize_transaction(record: Dict[str, Any], lookups: Optional[MasterLookups] = None) -> Transaction:
    lookups = lookups or MasterLookups()
    buyer = first_value(record, BUYER_NAME_ALIASES)
    seller = first_value(record, SELLER_NAME_ALIASES)
    product, product_code = resolve_product(record, lookups)
    return Transaction(
        date=first_value(record, DATE_ALIASES),
        buyer_company_name=buyer,
        seller_company_name=seller,
        buyer_company_city=lookups.city_for(buyer) or first_value(record, BUYER_CITY_ALIASES),
        seller_company_city=lookups.city_for(seller) or first_value(record, SELLER_CITY_ALIASES),
        product=product,
        product_code=product_code,
        quantity=to_non_negative_number(_first_raw(record, QUANTITY_ALIASES)),
        price=to_non_negative_number(_first_raw(record, PRICE_ALIASES)),
        remarks=first_value(record, REMARKS_ALIASES),
        row_number=record.get(ROW_NUMBER_KEY),
    )


def normalize_transactions(records: Iterable[Dict[str, Any]], lookups: Optional[MasterLookups] = None) -> List[Transaction]:
    transactions = [normalize_transaction(r, lookups) for r in records]
    incomplete = sum(1 for t in transactions if not t.buyer_company_name or not t.seller_company_name)
    if incomplete:
        logger.warning(f"{incomplete} transaction rows are missing a buyer or seller name.")
    return transactions


def normalize_company(record: Dict[str, Any]) -> Company:
    return Company(
        name=first_value(record, COMPANY_NAME_ALIASES),
        city=first_value(record, COMPANY_CITY_ALIASES),
        row_number=record.get(ROW_NUMBER_KEY),
    )


def normalize_product(record: Dict[str, Any]) -> Product:
    return Product(
        code=first_value(record, MASTER_PRODUCT_CODE_ALIASES),
        name=first_value(record, MASTER_PRODUCT_NAME_ALIASES),
        rate=parse_number(_first_raw(record, MASTER_PRODUCT_RATE_ALIASES)),
        company_name=first_value(record, MASTER_PRODUCT_COMPANY_ALIASES),
        row_number=record.get(ROW_NUMBER_KEY),
    )


# --- Canonical record -> ordered row values ---

def _number_cell(value: Optional[float]) -> Any:
    if value is None:
        return ""
    return int(value) if float(value).is_integer() else value


_TRANSACTION_FIELDS = {
    "date": DATE_ALIASES,
    "buyerCompanyName": BUYER_NAME_ALIASES,
    "buyerCompanyCity": BUYER_CITY_ALIASES,
    "sellerCompanyName": SELLER_NAME_ALIASES,
    "sellerCompanyCity": SELLER_CITY_ALIASES,
    "product": PRODUCT_ALIASES + PRODUCT_NAME_ALIASES,
    "productCode": PRODUCT_CODE_ALIASES,
    "qty": QUANTITY_ALIASES,
    "price": PRICE_ALIASES,
    "remarks": REMARKS_ALIASES,
}
_COMPANY_FIELDS = {
    "companyName": COMPANY_NAME_ALIASES,
    "companyCity": COMPANY_CITY_ALIASES,
}
_PRODUCT_FIELDS = {
    "productCode": MASTER_PRODUCT_CODE_ALIASES,
    "productName": MASTER_PRODUCT_NAME_ALIASES,
    "rate": MASTER_PRODUCT_RATE_ALIASES,
    "companyName": MASTER_PRODUCT_COMPANY_ALIASES,
}


def _order_by_headers(values: Dict[str, Any], fields: Dict[str, Sequence[str]], headers: Sequence[str],
                      existing: Optional[Dict[str, Any]] = None) -> List[Any]:
    """Lays canonical values out in the sheet's header order; a header may be any alias of a field.

    Columns that map to no field keep their value from existing (or '').
    """
    existing = existing or {}
    alias_to_field = {}
    for canonical, aliases in fields.items():
        alias_to_field.setdefault(canonical, canonical)
        for alias in aliases:
            alias_to_field.setdefault(alias, canonical)
    row = []
    for header in headers:
        canonical = alias_to_field.get(header)
        row.append(values.get(canonical, "") if canonical else clean_cell(existing.get(header)))
    return row


def transaction_to_row(transaction: Transaction, headers: Sequence[str], existing: Optional[Dict[str, Any]] = None) -> List[Any]:
    values = {
        "date": transaction.date,
        "buyerCompanyName": transaction.buyer_company_name,
        "buyerCompanyCity": transaction.buyer_company_city,
        "sellerCompanyName": transaction.seller_company_name,
        "sellerCompanyCity": transaction.seller_company_city,
        "product": transaction.product,
        "productCode": transaction.product_code,
        "qty": _number_cell(transaction.quantity),
        "price": _number_cell(transaction.price),
        "remarks": transaction.remarks,
    }
    return _order_by_headers(values, _TRANSACTION_FIELDS, headers, existing)


def company_to_row(company: Company, headers: Sequence[str], existing: Optional[Dict[str, Any]] = None) -> List[Any]:
    values = {"companyName": company.name, "companyCity": company.city}
    return _order_by_headers(values, _COMPANY_FIELDS, headers, existing)


def product_to_row(product: Product, headers: Sequence[str], existing: Optional[Dict[str, Any]] = None) -> List[Any]:
    values = {
        "productCode": product.code,
        "productName": product.name,
        "rate": _number_cell(product.rate),
        "companyName": product.company_name,
    }
    return _order_by_headers(values, _PRODUCT_FIELDS, headers, existing)
