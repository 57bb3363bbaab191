"""Flask front door for the template catalog.

- Public callers resolve a stable product name (optionally a version) to the
  currently correct template file and are redirected to it.
- Administrators manage the catalog sheet through token-protected JSON
  endpoints; every successful write drops the cached catalog so the change is
  visible on the next request.
- Choosing which catalog sheet is authoritative is a runtime setting stored
  next to the data, so first-run setup only has to happen once.
"""

from __future__ import annotations

from functools import wraps
from pathlib import Path
import hmac
import logging

from flask import Flask, current_app, jsonify, redirect, request
from flask_cors import CORS
from flask_talisman import Talisman
from pydantic import ValidationError as PydanticValidationError

from catalogcore.config import PortalConfig, load_portal_config
from catalogcore.errors import CatalogError, ValidationError
from catalogcore.logging import setup_logging
from catalogcore.schemas import SourceUpdate, describe_errors
from catalogcore.storage import StoreError
from portal.services.catalog_service import CatalogServices, build_services, parse_csv

BASE_DIR = Path(__file__).resolve().parent

logger = logging.getLogger(__name__)


def _services() -> CatalogServices:
    return current_app.extensions["catalog"]


def _wants_json_response() -> bool:
    if request.args.get("format") == "json" or request.is_json:
        return True
    accept = request.accept_mimetypes
    return bool(accept) and accept.best == "application/json"


def _json_body():
    payload = request.get_json(silent=True)
    if payload is None:
        raise ValidationError("Request body must be JSON")
    return payload


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        expected = current_app.config.get("ADMIN_TOKEN") or ""
        if not expected:
            return jsonify({"error": "Admin access is not configured"}), 503
        supplied = request.headers.get("X-Admin-Token", "")
        auth = request.headers.get("Authorization", "")
        if auth.lower().startswith("bearer "):
            supplied = auth[7:].strip()
        if not supplied:
            return jsonify({"error": "Authentication required"}), 401
        if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
            return jsonify({"error": "Admin privileges required"}), 403
        return fn(*args, **kwargs)

    return wrapper


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(CatalogError)
    def handle_catalog_error(err: CatalogError):
        return jsonify({"error": str(err)}), err.status_code

    @app.errorhandler(PydanticValidationError)
    def handle_pydantic_error(err: PydanticValidationError):
        return jsonify({"error": describe_errors(err)}), 400

    @app.errorhandler(StoreError)
    def handle_store_error(err: StoreError):
        logger.error("Storage failure: %s", err)
        return jsonify({"error": "Catalog storage is unavailable"}), 503


def _register_public_routes(app: Flask) -> None:
    @app.route("/healthz")
    def healthz():
        info = _services().resolver.describe()
        return jsonify({"ok": True, "source": info.tier})

    @app.route("/products", methods=["GET"])
    def list_products():
        catalog = _services().resolver.load()
        return jsonify([product.public_dict() for product in catalog.enabled()])

    @app.route("/t/<name>", methods=["GET"])
    @app.route("/t/<name>/<version>", methods=["GET"])
    def resolve_template(name: str, version: str | None = None):
        wanted = version or request.args.get("version") or None
        resolution = _services().resolve(name, wanted)
        if _wants_json_response():
            return jsonify(resolution.to_dict())
        return redirect(resolution.artifact.locator, code=302)


def _register_admin_routes(app: Flask) -> None:
    @app.route("/admin/products", methods=["GET"])
    @admin_required
    def admin_list_products():
        catalog = _services().resolver.load()
        return jsonify({
            "source_id": catalog.source_id,
            "products": [product.to_dict() for product in catalog],
        })

    @app.route("/admin/products", methods=["POST"])
    @admin_required
    def admin_create_product():
        result = _services().mutator.add_product(_json_body())
        return jsonify(result.to_dict()), 201

    @app.route("/admin/products/<name>", methods=["PUT", "PATCH"])
    @admin_required
    def admin_update_product(name: str):
        result = _services().mutator.update_product(name, _json_body())
        return jsonify(result.to_dict())

    @app.route("/admin/products/<name>/toggle", methods=["POST"])
    @admin_required
    def admin_toggle_product(name: str):
        enabled = _services().mutator.toggle_enabled(name)
        return jsonify({"ok": True, "name": name, "enabled": enabled})

    @app.route("/admin/products/<name>", methods=["DELETE"])
    @admin_required
    def admin_delete_product(name: str):
        result = _services().mutator.delete_product(name)
        return jsonify(result.to_dict())

    @app.route("/admin/products/bulk", methods=["POST"])
    @admin_required
    def admin_bulk():
        payload = _json_body()
        ops = payload.get("operations") if isinstance(payload, dict) else payload
        if not isinstance(ops, list):
            raise ValidationError("Expected a list of operations")
        report = _services().mutator.bulk_apply(ops)
        return jsonify(report.to_dict())

    @app.route("/admin/products/import", methods=["POST"])
    @admin_required
    def admin_import():
        upload = request.files.get("file")
        raw = upload.read() if upload is not None else request.get_data()
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValidationError("CSV upload must be UTF-8 encoded") from exc
        if not text.strip():
            raise ValidationError("CSV body is empty")
        report = _services().mutator.import_rows(parse_csv(text))
        return jsonify(report.to_dict())

    @app.route("/admin/source", methods=["GET"])
    @admin_required
    def admin_get_source():
        services = _services()
        data = services.resolver.describe().to_dict()
        data["available"] = services.sheets.list_ids() if services.sheets else []
        return jsonify(data)

    @app.route("/admin/source", methods=["PUT"])
    @admin_required
    def admin_set_source():
        services = _services()
        update = SourceUpdate.model_validate(_json_body())
        if update.create:
            if services.sheets is None:
                raise ValidationError("Creating catalog sheets is not supported here")
            services.sheets.create(update.source_id)
        services.resolver.set_source_id(update.source_id)
        return jsonify(services.resolver.describe().to_dict())

    @app.route("/admin/source", methods=["DELETE"])
    @admin_required
    def admin_clear_source():
        services = _services()
        services.resolver.clear_source_id()
        return jsonify(services.resolver.describe().to_dict())

    @app.route("/admin/cache/invalidate", methods=["POST"])
    @admin_required
    def admin_invalidate_cache():
        _services().resolver.invalidate()
        return jsonify({"ok": True})

    @app.route("/admin/stats", methods=["GET"])
    @admin_required
    def admin_stats():
        return jsonify(_services().usage.snapshot())


def create_app(config: PortalConfig | None = None, *, services: CatalogServices | None = None) -> Flask:
    config = config or load_portal_config(BASE_DIR)
    setup_logging(config.log_level)

    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=config.secret_key,
        ADMIN_TOKEN=config.admin_token,
        PREFERRED_URL_SCHEME="https" if config.force_tls else "http",
    )
    if not config.admin_token:
        logger.warning("ADMIN_TOKEN not set; /admin endpoints will answer 503")

    app.extensions["catalog"] = services or build_services(config)

    CORS(app, resources={r"/*": {"origins": list(config.allowed_origins)}})
    Talisman(app, content_security_policy=None, force_https=config.force_tls, frame_options="DENY")

    _register_error_handlers(app)
    _register_public_routes(app)
    _register_admin_routes(app)

    @app.after_request
    def secure_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        return resp

    return app


if __name__ == "__main__":
    cfg = load_portal_config(BASE_DIR)
    create_app(cfg).run(host="0.0.0.0", port=7890, ssl_context="adhoc" if cfg.force_tls else None)
