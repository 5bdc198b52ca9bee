import json
import os


def normalize_database_url(database_url: str) -> str:
    """Force the psycopg (v3) driver and keepalive/SSL options on Postgres URLs."""
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql+psycopg://", 1)
    elif database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+psycopg://", 1)
    elif database_url.startswith("postgresql+psycopg2://"):
        database_url = database_url.replace("postgresql+psycopg2://", "postgresql+psycopg://", 1)

    if not database_url.startswith("postgresql"):
        return database_url

    params = []
    if "sslmode=" not in database_url:
        params.append("sslmode=require")
    for key, value in (
        ("keepalives", "1"),
        ("keepalives_idle", "30"),
        ("keepalives_interval", "10"),
        ("keepalives_count", "3"),
        ("connect_timeout", "10"),
    ):
        if f"{key}=" not in database_url:
            params.append(f"{key}={value}")
    if params:
        connector = "&" if "?" in database_url else "?"
        database_url = f"{database_url}{connector}{'&'.join(params)}"
    return database_url


def _json_env(name: str, default):
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        return default


class BaseConfig:
    # Security
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me")

    # Database
    DATABASE_URL = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 270,
    }

    # Data store selection: "sql" or "documents"
    DATA_STORE = os.getenv("DATA_STORE", "sql")

    # Document database
    DOCSTORE_ENDPOINT = os.getenv("DOCSTORE_ENDPOINT", "")
    DOCSTORE_PROJECT_ID = os.getenv("DOCSTORE_PROJECT_ID", "")
    DOCSTORE_API_KEY = os.getenv("DOCSTORE_API_KEY", "")
    DOCSTORE_DATABASE_ID = os.getenv("DOCSTORE_DATABASE_ID", "")
    DOCSTORE_COLLECTIONS = _json_env("DOCSTORE_COLLECTIONS", {})
    DOCSTORE_TIMEOUT = float(os.getenv("DOCSTORE_TIMEOUT", "15"))

    # Invoicing
    TAX_RATE = float(os.getenv("TAX_RATE", "0.0"))
    CURRENCY_LABEL = os.getenv("CURRENCY_LABEL", "DH")

    # Rooming list sync
    ROOMING_REFRESH_INTERVAL = int(os.getenv("ROOMING_REFRESH_INTERVAL", "30"))
    ROOMING_REFRESH_ENABLED = os.getenv("ROOMING_REFRESH_ENABLED", "1") in ("1", "true", "yes")

    # Credentials: {"email": "<werkzeug hash>"}
    AGENT_CREDENTIALS = _json_env("AGENT_CREDENTIALS", {})
    AGENT_CREDENTIALS_FILE = os.getenv("AGENT_CREDENTIALS_FILE", "")

    # Logging
    LOG_DIR = os.getenv("LOG_DIR", "")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class DevConfig(BaseConfig):
    DEBUG = True


class ProdConfig(BaseConfig):
    DEBUG = False


class TestConfig(BaseConfig):
    TESTING = True
    SECRET_KEY = "test"
    DATABASE_URL = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    DATA_STORE = "sql"
    TAX_RATE = 0.0
    ROOMING_REFRESH_ENABLED = False
    AGENT_CREDENTIALS = {}
    AGENT_CREDENTIALS_FILE = ""
    LOG_DIR = ""
