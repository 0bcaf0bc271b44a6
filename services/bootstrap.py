# services/bootstrap.py
"""
Guarantees a table and its header row exist before anything is written.

Call ``ensure_headers`` first and build value rows from the list it returns:
the header row as it exists in the sheet, not the canonical list, decides
column order for every append and update.
"""
import logging
from typing import Dict, List, Sequence

from config import COMPANY_SHEET_NAME, COMPANY_HEADERS, PRODUCT_SHEET_NAME, PRODUCT_HEADERS, TRANSACTION_HEADERS
from services.sheets_connection import SheetsStore

logger = logging.getLogger(__name__)


def ensure_headers(store: SheetsStore, table: str, canonical_headers: Sequence[str]) -> List[str]:
    """Creates the table or its header row if missing and returns the authoritative header order.

    Idempotent: an existing header row is left untouched, even if it differs
    from canonical_headers.
    """
    if not store.table_exists(table):
        store.create_table(table, canonical_headers)
        return list(canonical_headers)

    headers = store.read_headers(table)
    if not headers:
        logger.info(f"Table '{table}' has no header row. Writing canonical headers.")
        store.write_headers(table, canonical_headers)
        return list(canonical_headers)

    missing = [h for h in canonical_headers if h not in headers]
    if missing:
        logger.warning(f"Table '{table}' lacks canonical columns {missing}; writes fall back to alias columns.")
    return headers


def ensure_workspace(store: SheetsStore, transactions_table: str, force: bool = False) -> Dict[str, List[str]]:
    """Prepares the master tables and the transactions table of the period.

    With force, non-conforming header rows are overwritten with the canonical ones.
    """
    layout = {
        COMPANY_SHEET_NAME: COMPANY_HEADERS,
        PRODUCT_SHEET_NAME: PRODUCT_HEADERS,
        transactions_table: TRANSACTION_HEADERS,
    }
    result = {}
    for table, headers in layout.items():
        if force:
            store.ensure_table(table, headers)
            result[table] = list(headers)
        else:
            result[table] = ensure_headers(store, table, headers)
    logger.info(f"Workspace '{store.workspace_id}' ready: {sorted(result)}")
    return result
