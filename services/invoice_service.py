# services/invoice_service.py
"""
Brokerage invoices, recomputed from the transaction table on every call.

Nothing is persisted: an invoice is a view over the transactions of one
company in a date range. A preview and a final invoice for the same request
therefore always carry the same figures; only the number and date differ.

The invoice number is ``count of transactions + 1`` at generation time. It
changes whenever rows are added or removed and must not be used as a key.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from config import (
    DEFAULT_BROKERAGE_RATE, MIN_BROKERAGE_RATE, MAX_BROKERAGE_RATE,
    INVOICE_NUMBER_PREFIX, INVOICE_NUMBER_WIDTH, PREVIEW_INVOICE_NUMBER, PREVIEW_INVOICE_DATE,
    NO_MATCH_MESSAGE
)
from common.utils import names_match, parse_date, parse_number, format_display_date, clean_cell
from services.brokerage import BrokeragePolicy, get_policy
from services.errors import ValidationError
from services.normalizer import MasterLookups, Transaction
from services.sheets_connection import SheetsStore
from services.transactions_service import get_transactions, get_transactions_table, load_lookups

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvoiceRequest:
    company_name: str
    start_date: date
    end_date: date
    brokerage_rate: float
    is_preview: bool = False
    policy: Optional[str] = None


@dataclass(frozen=True)
class NoMatch:
    """No transaction of the company falls in the range. Distinct from an invoice with zero totals."""
    company_name: str = ""
    message: str = NO_MATCH_MESSAGE
    success: bool = field(default=False, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message}


@dataclass(frozen=True)
class InvoiceSummary:
    invoice_no: str
    company_name: str
    company_city: str
    invoice_date: str
    start: str
    end: str
    brokerage_rate: float
    policy: str
    total_qty: float
    brokerage_amount: float
    other_side_brokerage: float
    other_side_total_qty: float
    other_side_total_payable: float
    gst_amount: float
    total_payable: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "invoiceNo": self.invoice_no,
            "companyName": self.company_name,
            "companyCity": self.company_city,
            "invoiceDate": self.invoice_date,
            "dateRange": {"start": self.start, "end": self.end},
            "brokerageRate": self.brokerage_rate,
            "policy": self.policy,
            "totalQty": self.total_qty,
            "brokerageAmount": self.brokerage_amount,
            "otherSideBrokerage": self.other_side_brokerage,
            "otherSideTotalQty": self.other_side_total_qty,
            "otherSideTotalPayable": self.other_side_total_payable,
            "gstAmount": self.gst_amount,
            "totalPayable": self.total_payable,
        }


@dataclass(frozen=True)
class InvoiceResult:
    summary: InvoiceSummary
    transactions: List[Dict[str, Any]]
    other_side_transactions: List[Dict[str, Any]]
    success: bool = field(default=True, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "summary": self.summary.to_dict(),
            "transactions": list(self.transactions),
            "otherSideTransactions": list(self.other_side_transactions),
        }


def format_invoice_number(sequence: int) -> str:
    return f"{INVOICE_NUMBER_PREFIX}{str(sequence).zfill(INVOICE_NUMBER_WIDTH)}"


def _required_string(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(key, "is required")
    return value.strip()


def _required_date(payload: Dict[str, Any], key: str) -> date:
    text = _required_string(payload, key)
    parsed = parse_date(text)
    if parsed is None:
        raise ValidationError(key, f"'{text}' is not a valid date")
    return parsed


def validate_invoice_request(payload: Any) -> InvoiceRequest:
    """Builds an InvoiceRequest from a camelCase request body. Raises ValidationError naming the bad field."""
    if not isinstance(payload, dict):
        raise ValidationError("body", "must be a JSON object")

    company_name = _required_string(payload, "companyName")
    start_date = _required_date(payload, "startDate")
    end_date = _required_date(payload, "endDate")
    if start_date > end_date:
        raise ValidationError("startDate", "must not be after endDate")

    raw_rate = payload.get("brokerageRate")
    if raw_rate is None or raw_rate == "":
        rate = DEFAULT_BROKERAGE_RATE
    else:
        rate = parse_number(raw_rate)
        if rate is None:
            raise ValidationError("brokerageRate", "must be a number")
    if not MIN_BROKERAGE_RATE <= rate <= MAX_BROKERAGE_RATE:
        raise ValidationError("brokerageRate", f"must be between {MIN_BROKERAGE_RATE} and {MAX_BROKERAGE_RATE}")

    is_preview = payload.get("isPreview", False)
    if is_preview is None:
        is_preview = False
    if not isinstance(is_preview, bool):
        raise ValidationError("isPreview", "must be true or false")

    policy = payload.get("policy")
    if policy is not None and not isinstance(policy, str):
        raise ValidationError("policy", "must be a string")

    return InvoiceRequest(
        company_name=company_name,
        start_date=start_date,
        end_date=end_date,
        brokerage_rate=rate,
        is_preview=is_preview,
        policy=policy or None,
    )


def _in_range(transaction: Transaction, start: date, end: date) -> bool:
    parsed = transaction.parsed_date
    return parsed is not None and start <= parsed <= end


def _line_item(transaction: Transaction, company_name: str, rate: float, policy: BrokeragePolicy) -> Dict[str, Any]:
    is_seller = names_match(transaction.seller_company_name, company_name)
    return {
        "date": format_display_date(transaction.date),
        "buyerCompanyName": transaction.buyer_company_name,
        "buyerCompanyCity": transaction.buyer_company_city,
        "sellerCompanyName": transaction.seller_company_name,
        "sellerCompanyCity": transaction.seller_company_city,
        "product": transaction.product,
        "productCode": transaction.product_code,
        "qty": transaction.quantity,
        "price": transaction.price,
        "rate": rate,
        "amount": policy.line_amount(transaction, rate),
        "remarks": clean_cell(transaction.remarks) if is_seller else "",
    }


def _company_city(company_name: str, lookups: MasterLookups, transactions: List[Transaction]) -> str:
    """Company Master first; otherwise the city recorded on the company's first transaction."""
    for name, city in lookups.company_cities.items():
        if names_match(name, company_name) and city:
            return city
    for transaction in transactions:
        if names_match(transaction.buyer_company_name, company_name):
            return transaction.buyer_company_city
        if names_match(transaction.seller_company_name, company_name):
            return transaction.seller_company_city
    return ""


def generate_invoice(store: SheetsStore, request: InvoiceRequest, policy: Optional[BrokeragePolicy] = None,
                     today: Optional[Union[date, datetime]] = None,
                     table: Optional[str] = None) -> Union[InvoiceResult, NoMatch]:
    """Computes the brokerage invoice for request.company_name over the active financial-year table.

    Returns NoMatch when the company has no transaction in the range. Store
    failures propagate unchanged.
    """
    policy = policy or get_policy(request.policy)
    today = today or datetime.now()
    table = table or get_transactions_table(today)
    company = request.company_name
    rate = request.brokerage_rate

    lookups = load_lookups(store)
    transactions = get_transactions(store, table, lookups)
    in_range = [t for t in transactions if _in_range(t, request.start_date, request.end_date)]

    primary = [
        t for t in in_range
        if names_match(t.buyer_company_name, company) or names_match(t.seller_company_name, company)
    ]
    if not primary:
        logger.info(f"No transactions for '{company}' between {request.start_date} and {request.end_date} in '{table}'.")
        return NoMatch(company)

    acted_as_buyer = any(names_match(t.buyer_company_name, company) for t in primary)
    acted_as_seller = any(names_match(t.seller_company_name, company) for t in primary)
    other_side = [
        t for t in in_range
        if (acted_as_buyer and names_match(t.seller_company_name, company))
        or (acted_as_seller and names_match(t.buyer_company_name, company))
    ]

    total_qty = sum(t.quantity for t in primary)
    brokerage_amount = policy.brokerage(primary, rate)
    other_side_brokerage = sum(t.other_side_override for t in primary if names_match(t.seller_company_name, company))
    other_side_total_qty = sum(t.quantity for t in other_side)
    other_side_total_payable = policy.brokerage(other_side, rate)
    gst_amount = policy.gst(primary, rate)
    # Other-side total payable is reported, not added to the total.
    total_payable = brokerage_amount + other_side_brokerage + gst_amount

    if request.is_preview:
        invoice_no, invoice_date = PREVIEW_INVOICE_NUMBER, PREVIEW_INVOICE_DATE
    else:
        invoice_no = format_invoice_number(len(transactions) + 1)
        invoice_date = format_display_date(today)

    summary = InvoiceSummary(
        invoice_no=invoice_no,
        company_name=company,
        company_city=_company_city(company, lookups, transactions),
        invoice_date=invoice_date,
        start=format_display_date(request.start_date),
        end=format_display_date(request.end_date),
        brokerage_rate=rate,
        policy=policy.name,
        total_qty=total_qty,
        brokerage_amount=brokerage_amount,
        other_side_brokerage=other_side_brokerage,
        other_side_total_qty=other_side_total_qty,
        other_side_total_payable=other_side_total_payable,
        gst_amount=gst_amount,
        total_payable=total_payable,
    )
    logger.info(f"Invoice {invoice_no} for '{company}': {len(primary)} transactions, "
                f"qty {total_qty}, total payable {total_payable} ({policy.name}).")
    return InvoiceResult(
        summary=summary,
        transactions=[_line_item(t, company, rate, policy) for t in primary],
        other_side_transactions=[_line_item(t, company, rate, policy) for t in other_side],
    )
