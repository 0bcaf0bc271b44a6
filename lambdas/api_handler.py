# lambdas/api_handler.py
import logging
import json

from services import (
    connect_to_workspace, resolve_workspace_id, get_transactions_table,
    ensure_workspace, export_transactions_csv,
    validate_invoice_request, generate_invoice,
)
from config import is_financial_year_sheet_name
from services.errors import (
    BrokerageError, ValidationError, NotFound, InvalidPosition
)

logger = logging.getLogger("api_handler")
logger.setLevel(logging.INFO)

GENERIC_ERROR_MESSAGE = "Internal error. Please try again later."


def _response(status_code: int, body, content_type: str = "application/json", extra_headers: dict = None) -> dict:
    headers = {"Content-Type": content_type}
    headers.update(extra_headers or {})
    return {
        'statusCode': status_code,
        'headers': headers,
        'body': body if isinstance(body, str) else json.dumps(body)
    }


def _error_response(error: Exception) -> dict:
    """Maps the error taxonomy onto HTTP statuses. Internal details are logged, never returned."""
    if isinstance(error, ValidationError):
        return _response(400, {"success": False, "error": error.message, "field": error.field})
    if isinstance(error, InvalidPosition):
        return _response(400, {"success": False, "error": str(error)})
    if isinstance(error, NotFound):
        return _response(404, {"success": False, "error": str(error)})
    logger.error(f"Request failed: {error}", exc_info=error)
    return _response(500, {"success": False, "error": GENERIC_ERROR_MESSAGE})


def _parse_body(event: dict):
    body = event.get('body')
    if body is None:
        return {}
    if isinstance(body, str):
        if not body.strip():
            return {}
        try:
            return json.loads(body)
        except json.JSONDecodeError:
            logger.error("Request body is not valid JSON.")
            raise ValidationError("body", "Invalid JSON")
    return body


def _user_email(event: dict, payload) -> str:
    """The caller's email, used only to pick a workspace.

    The value is not verified here: an upstream authorizer (API Gateway
    Cognito/JWT authorizer) must set or overwrite the X-User-Email header,
    or strip userEmail from the body, before the event reaches this handler.
    """
    headers = {str(k).lower(): v for k, v in (event.get('headers') or {}).items()}
    email = headers.get('x-user-email')
    if not email and isinstance(payload, dict):
        email = payload.get('userEmail')
    return email or None


def _open_store(event: dict, payload):
    return connect_to_workspace(resolve_workspace_id(_user_email(event, payload)))


def handle_generate_invoice(event: dict) -> dict:
    payload = _parse_body(event)
    request = validate_invoice_request(payload)
    store = _open_store(event, payload)
    result = generate_invoice(store, request)
    # No match is a business outcome, reported with 200 and success=false.
    return _response(200, result.to_dict())


def handle_export_transactions(event: dict) -> dict:
    params = event.get('queryStringParameters') or {}
    table = params.get('table') or get_transactions_table()
    if not is_financial_year_sheet_name(table):
        raise ValidationError("table", f"'{table}' is not a financial-year transactions table")
    store = _open_store(event, params)
    csv_text = export_transactions_csv(store, table)
    return _response(200, csv_text, content_type="text/csv",
                     extra_headers={"Content-Disposition": f'attachment; filename="transactions_{table}.csv"'})


def handle_bootstrap(event: dict) -> dict:
    payload = _parse_body(event)
    store = _open_store(event, payload)
    force = bool(payload.get('force')) if isinstance(payload, dict) else False
    tables = ensure_workspace(store, get_transactions_table(), force=force)
    return _response(200, {"success": True, "tables": tables})


ROUTES = {
    ('POST', '/invoice/generate'): handle_generate_invoice,
    ('GET', '/transactions/export'): handle_export_transactions,
    ('POST', '/bootstrap'): handle_bootstrap,
}


def _route_key(event: dict):
    method = event.get('httpMethod') or event.get('requestContext', {}).get('http', {}).get('method') or 'POST'
    path = event.get('path') or event.get('rawPath') or '/invoice/generate'
    return method.upper(), '/' + path.strip('/')


def lambda_handler(event, context):
    """Entry point for API Gateway proxy events."""
    method, path = _route_key(event or {})
    logger.info(f"Request received: {method} {path}")
    handler = ROUTES.get((method, path))
    if handler is None:
        return _response(404, {"success": False, "error": f"No route for {method} {path}"})
    try:
        return handler(event)
    except BrokerageError as e:
        return _error_response(e)
    except Exception as e:
        logger.critical(f"Unexpected error handling {method} {path}: {e}", exc_info=True)
        return _response(500, {"success": False, "error": GENERIC_ERROR_MESSAGE})
