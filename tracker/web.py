"""
HTTP layer: JSON endpoints, the admin cookie and error mapping.

Public:
    GET  /api/track/<tracking_id>    (may contain "/", sent raw or as %2F)
    POST /api/admin/login
    POST /api/admin/logout
    GET  /health

Admin (``admin_token`` cookie required):
    POST /api/admin/create
    POST /api/admin/update
"""

import functools
import logging

import click
from flask import Blueprint, Flask, current_app, g, has_request_context, jsonify, request
from flask_babel import Babel
from werkzeug.exceptions import HTTPException

from tracker.auth import AuthGate
from tracker.config import load_config
from tracker.errors import AdminDisabled, ConfigurationError, StoreError, TrackerError, Unauthorized
from tracker.ledger import ShipmentLedger
from tracker.models import utcnow
from tracker.store import SQLiteStore

logger = logging.getLogger(__name__)

COOKIE_NAME = "admin_token"
SUPPORTED_LOCALES = ("en", "ar")

api = Blueprint("api", __name__, cli_group=None)


def get_locale():
    if has_request_context() and request.args.get("lang") in SUPPORTED_LOCALES:
        return request.args["lang"]
    return current_app.config["BABEL_DEFAULT_LOCALE"]


def _ledger() -> ShipmentLedger:
    return current_app.extensions["tracker"]["ledger"]


def _gate() -> AuthGate:
    gate = current_app.extensions["tracker"]["gate"]
    if gate is None:
        raise AdminDisabled()
    return gate


def _payload():
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form


def require_admin(view):
    @functools.wraps(view)
    def wrapped(*args, **kwargs):
        g.admin = _gate().verify(request.cookies.get(COOKIE_NAME))
        return view(*args, **kwargs)

    return wrapped


# ===== Public API (customer) =====


@api.route("/api/track/<path:tracking_id>")
def track(tracking_id):
    return jsonify(_ledger().lookup(tracking_id).to_dict())


@api.route("/health")
def health():
    return jsonify({"status": "ok"})


# ===== Admin API =====


@api.route("/api/admin/login", methods=["POST"])
def admin_login():
    data = _payload()
    # "email" is what older login forms send as the username.
    username = data.get("username", data.get("email"))
    try:
        token = _gate().issue(username, data.get("password"))
    except Unauthorized:
        logger.warning("Failed admin login from %s", request.remote_addr)
        raise
    logger.info("Admin %s logged in", username)
    resp = jsonify({"ok": True})
    resp.set_cookie(
        COOKIE_NAME,
        token,
        httponly=True,
        samesite="Lax",
        secure=current_app.config["TRACKER"].admin.cookie_secure,
    )
    return resp


@api.route("/api/admin/logout", methods=["POST"])
def admin_logout():
    resp = jsonify({"ok": True})
    resp.delete_cookie(
        COOKIE_NAME,
        httponly=True,
        samesite="Lax",
        secure=current_app.config["TRACKER"].admin.cookie_secure,
    )
    return resp


@api.route("/api/admin/create", methods=["POST"])
@require_admin
def admin_create():
    data = _payload()
    ledger = _ledger()
    view = ledger.create(
        data.get("trackingId"), data.get("status"), data.get("note"), actor=g.admin.identity
    )
    return jsonify({"ok": True, "trackingLink": ledger.tracking_link(view.tracking_id)}), 201


@api.route("/api/admin/update", methods=["POST"])
@require_admin
def admin_update():
    data = _payload()
    _ledger().update(
        data.get("trackingId"), data.get("status"), data.get("note"), actor=g.admin.identity
    )
    return jsonify({"ok": True})


# ===== Errors =====


def handle_tracker_error(exc: TrackerError):
    if isinstance(exc, StoreError):
        logger.error("Store failure: %s", exc, exc_info=exc)
        return jsonify(TrackerError().to_dict()), 500
    return jsonify(exc.to_dict()), exc.status


def handle_http_error(exc: HTTPException):
    code = (exc.name or "error").lower().replace(" ", "_")
    return jsonify({"ok": False, "error": code, "message": exc.description}), exc.code


# ===== CLI =====


@api.cli.command("init-db")
@click.option("--demo", is_flag=True, help="Also create demo shipments.")
def init_db_command(demo):
    """Create the database tables (and optionally demo data)."""
    ledger = _ledger()
    ledger.store.init_schema()
    if demo:
        created = ledger.seed_demo()
        click.echo(f"Seeded {len(created)} demo shipment(s).")
    click.echo("Database initialised.")


def create_app(config=None, store=None, clock=None) -> Flask:
    """Application factory.

    ``store`` defaults to a ``SQLiteStore`` at the configured path; ``clock``
    defaults to the system UTC clock.
    """
    if config is None:
        config = load_config()

    app = Flask(__name__)
    app.config["TRACKER"] = config
    app.config["BABEL_DEFAULT_LOCALE"] = config.server.default_locale
    Babel(app, locale_selector=get_locale)

    if store is None:
        store = SQLiteStore(config.database.absolute_path)
    store.init_schema()
    ledger = ShipmentLedger(store, clock=clock or utcnow, base_url=config.server.base_url)

    try:
        gate = AuthGate(config.admin)
    except ConfigurationError as exc:
        logger.warning("Admin endpoints disabled: %s", exc)
        gate = None

    app.extensions["tracker"] = {"ledger": ledger, "gate": gate}
    app.register_blueprint(api)
    app.register_error_handler(TrackerError, handle_tracker_error)
    app.register_error_handler(HTTPException, handle_http_error)
    return app
