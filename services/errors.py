# services/errors.py
"""
Exception taxonomy shared by the store adapter, the master data services and
the invoice engine. Empty invoice filters are not errors: see
``services.invoice_service.NoMatch``.
"""


class BrokerageError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(BrokerageError):
    """Credentials or workspace identifiers are missing or unusable."""


class NotFound(BrokerageError):
    """A referenced table, record or workspace does not exist."""


class WorkspaceNotFound(NotFound):
    pass


class TableNotFound(NotFound):
    def __init__(self, table: str):
        super().__init__(f"Table '{table}' not found")
        self.table = table


class RecordNotFound(NotFound):
    def __init__(self, table: str, key: str):
        super().__init__(f"No record '{key}' in table '{table}'")
        self.table = table
        self.key = key


class InvalidPosition(BrokerageError):
    """Row positions are 1-based and row 1 is the header, so data rows start at 2."""

    def __init__(self, position, message: str = None):
        super().__init__(message or f"Invalid row position: {position}. Data rows start at position 2.")
        self.position = position


class StoreError(BrokerageError):
    """The spreadsheet service failed (network, auth, quota)."""


class WriteError(StoreError):
    """A mutation (append, update, delete, header write) failed."""


class ValidationError(BrokerageError):
    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message
