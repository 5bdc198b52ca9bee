import logging
import os
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify
from sqlalchemy.exc import OperationalError

from umrah_office.auth.credentials import HashedCredentialVerifier
from umrah_office.auth.routes import auth_bp
from umrah_office.clients.routes import clients_bp
from umrah_office.config import DevConfig, ProdConfig, normalize_database_url
from umrah_office.dashboard.routes import dashboard_bp
from umrah_office.errors import UmrahError
from umrah_office.extensions import db
from umrah_office.invoices.routes import invoices_bp
from umrah_office.invoices.services import InvoiceService
from umrah_office.rooming.routes import rooming_bp
from umrah_office.rooming.services import RoomAssignmentManager, RoomingRefresher
from umrah_office.store.factory import StoreFactory, store_config

logger = logging.getLogger(__name__)


# ======================
# logging
# ======================

def configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    logging.getLogger().setLevel(level)

    log_dir = app.config.get("LOG_DIR")
    if not log_dir:
        return
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.abspath(os.path.join(log_dir, "umrah_office.log"))
    root = logging.getLogger()
    if any(getattr(h, "baseFilename", None) == log_path for h in root.handlers):
        return

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=1_000_000,   # 1MB
        backupCount=5,
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    root.addHandler(file_handler)


# ======================
# database
# ======================

def configure_database(app: Flask) -> None:
    # DATABASE_URL (e.g. Postgres on Render), else SQLite in instance/umrah.db
    os.makedirs(app.instance_path, exist_ok=True)
    default_sqlite_uri = "sqlite:///" + os.path.join(app.instance_path, "umrah.db")
    database_url = app.config.get("DATABASE_URL") or default_sqlite_uri

    app.config["SQLALCHEMY_DATABASE_URI"] = normalize_database_url(database_url)
    db.init_app(app)

    if app.config.get("DATA_STORE", "sql") == "sql":
        with app.app_context():
            try:
                db.create_all()
            except OperationalError:
                logger.exception("Could not create database tables")
                raise


def create_app(config_object=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    if config_object is None:
        config_object = ProdConfig if os.getenv("FLASK_ENV") == "production" else DevConfig
    app.config.from_object(config_object)
    app.secret_key = app.config["SECRET_KEY"]

    configure_logging(app)
    configure_database(app)

    # ---------------- services ----------------
    store = StoreFactory.get_store(app.config.get("DATA_STORE", "sql"), store_config(app.config))
    app.extensions["store"] = store
    app.extensions["invoices"] = InvoiceService(store, tax_rate=float(app.config.get("TAX_RATE") or 0.0))
    app.extensions["rooming"] = RoomAssignmentManager(store)
    app.extensions["credentials"] = HashedCredentialVerifier.from_config(app.config)
    logger.info("Using the %s data store", app.config.get("DATA_STORE", "sql"))

    # ---------------- blueprints ----------------
    app.register_blueprint(auth_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(rooming_bp)
    app.register_blueprint(dashboard_bp)

    @app.errorhandler(UmrahError)
    def _handle_umrah_error(err):
        if err.status_code >= 500:
            logger.error("%s: %s", err.__class__.__name__, err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "store": app.config.get("DATA_STORE", "sql")})

    if app.config.get("ROOMING_REFRESH_ENABLED"):
        refresher = RoomingRefresher(
            app,
            app.extensions["rooming"],
            interval=app.config.get("ROOMING_REFRESH_INTERVAL", 30),
        )
        app.extensions["rooming_refresher"] = refresher
        refresher.start()

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
