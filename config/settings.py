import os
import json
import boto3
from google.oauth2.service_account import Credentials

print("INFO: Loading configuration (settings)...")

CONFIG = {}

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def _load_secrets():
    """Loads secrets from AWS Secrets Manager into CONFIG dict."""
    global CONFIG
    secret_name = os.environ.get("SECRET_NAME")
    if not secret_name:
        print("WARNING: SECRET_NAME environment variable is not set. Falling back to environment.")
        return
    try:
        session = boto3.session.Session()
        client = session.client(service_name='secretsmanager')
        get_secret_value_response = client.get_secret_value(SecretId=secret_name)
        secrets = json.loads(get_secret_value_response['SecretString'])
        CONFIG.update(secrets)
    except Exception as e:
        print(f"CRITICAL ERROR: Could not load secrets from AWS Secrets Manager: {e}")

_load_secrets()


def get_setting(key: str, default=None):
    """Secret value first, then the process environment, then the default."""
    value = CONFIG.get(key)
    if value is None or value == "":
        value = os.environ.get(key, default)
    return value


# --- Google Sheets ---
SHEET_ID = get_setting("SHEET_ID")
SERVICE_ACCOUNT_FILE = get_setting("SERVICE_ACCOUNT_FILE", "service-account.json")
GOOGLE_CREDENTIALS_JSON = get_setting("GOOGLE_CREDENTIALS_JSON")
USER_SHEET_MAP_STR = get_setting("USER_SHEET_MAP", "{}")

# --- Invoicing ---
DEFAULT_BROKERAGE_RATE_STR = get_setting("DEFAULT_BROKERAGE_RATE", "10")
BROKERAGE_POLICY = get_setting("BROKERAGE_POLICY", "flat_rate_per_unit")

# --- Processed values ---
try:
    USER_SHEET_MAP = {
        str(email).strip().lower(): str(sheet_id).strip()
        for email, sheet_id in json.loads(USER_SHEET_MAP_STR or "{}").items()
        if email and sheet_id
    }
except (ValueError, TypeError, AttributeError) as e:
    print(f"WARNING: Could not parse USER_SHEET_MAP: {e}")
    USER_SHEET_MAP = {}

try:
    DEFAULT_BROKERAGE_RATE = float(DEFAULT_BROKERAGE_RATE_STR)
except (ValueError, TypeError) as e:
    print(f"WARNING: Could not parse DEFAULT_BROKERAGE_RATE: {e}")
    DEFAULT_BROKERAGE_RATE = 10.0


def _load_google_credentials():
    if GOOGLE_CREDENTIALS_JSON:
        info = json.loads(GOOGLE_CREDENTIALS_JSON)
        # Private keys pasted into env vars usually carry escaped newlines.
        if "private_key" in info:
            info["private_key"] = info["private_key"].replace("\\n", "\n")
        return Credentials.from_service_account_info(info, scopes=SCOPES)
    if SERVICE_ACCOUNT_FILE and os.path.exists(SERVICE_ACCOUNT_FILE):
        return Credentials.from_service_account_file(SERVICE_ACCOUNT_FILE, scopes=SCOPES)
    return None


google_credentials = None
try:
    google_credentials = _load_google_credentials()
    if google_credentials:
        print("INFO: Google credentials loaded successfully.")
    else:
        print("WARNING: No Google credentials configured.")
except Exception as e:
    print(f"ERROR: Could not load Google credentials: {e}")
