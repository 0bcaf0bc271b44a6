# services/__init__.py
"""
Services package — re-exports the public API.
Consumers can import directly from `services` or from individual submodules.
"""

# --- errors ---
from services.errors import (
    BrokerageError, ConfigurationError,
    NotFound, WorkspaceNotFound, TableNotFound, RecordNotFound,
    InvalidPosition, StoreError, WriteError, ValidationError,
)

# --- sheets_connection ---
from services.sheets_connection import (
    RowRef, TableSnapshot, SheetsStore,
    resolve_workspace_id, get_client, connect_to_workspace,
    apply_table_formatting,
)

# --- bootstrap ---
from services.bootstrap import (
    ensure_headers,
    ensure_workspace,
)

# --- normalizer ---
from services.normalizer import (
    Company, Product, Transaction, MasterLookups,
    normalize_transaction, normalize_transactions,
    normalize_company, normalize_product,
    transaction_to_row, company_to_row, product_to_row,
)

# --- companies_service ---
from services.companies_service import (
    get_companies, find_company, add_company, update_company, delete_company,
)

# --- products_service ---
from services.products_service import (
    get_products, find_product, add_product, update_product, delete_product,
)

# --- transactions_service ---
from services.transactions_service import (
    get_transactions_table, load_lookups, get_transactions, build_transaction,
    add_transaction, update_transaction, delete_transaction,
    is_current, export_transactions_csv,
)

# --- brokerage ---
from services.brokerage import (
    BrokeragePolicy, FLAT_RATE_PER_UNIT, PERCENTAGE_OF_VALUE, POLICIES, get_policy,
)

# --- invoice_service ---
from services.invoice_service import (
    InvoiceRequest, InvoiceSummary, InvoiceResult, NoMatch,
    validate_invoice_request, generate_invoice, format_invoice_number,
)
