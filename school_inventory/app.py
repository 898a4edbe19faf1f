"""Flask application exposing the school inventory as a JSON API."""
from __future__ import annotations

import logging
import time
from datetime import timedelta
from functools import wraps
from pathlib import Path
from typing import Any, Dict, List, Optional

from flask import Flask, Response, g, jsonify, request, session

from .config import Settings, get_settings
from .errors import (
    AuthRequired,
    ConfirmationRequired,
    InventoryError,
    ValidationError,
)
from .models import RecordForm
from .registry import query, select_for_export
from .session import AppSession
from .views import VIEW_TITLES, View

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def create_app(
    storage_path: str | Path | None = None,
    settings: Optional[Settings] = None,
    *,
    scheduler: Any = None,
) -> Flask:
    settings = settings or get_settings()
    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.secret_key
    app.permanent_session_lifetime = timedelta(days=14)

    state = AppSession(
        settings,
        storage_path=Path(storage_path) if storage_path is not None else None,
        scheduler=scheduler,
    )
    app.extensions["school_inventory"] = state

    def _json_error(
        message: str,
        status: int = 400,
        *,
        code: Optional[str] = None,
        fields: Optional[Dict[str, str]] = None,
    ) -> Any:
        payload: Dict[str, Any] = {"error": message, "status": "error"}
        if code:
            payload["code"] = code
        if fields:
            payload["fields"] = fields
        return jsonify(payload), status

    def _current_user():
        return getattr(g, "current_user", None)

    def _require_confirmation(payload: Dict[str, Any]) -> None:
        if not _is_truthy(payload.get("confirm")):
            raise ConfirmationRequired("Confirm this action to continue")

    def _records_view() -> List[Any]:
        return query(state.registry.list_records(), request.args.get("search"))

    @app.errorhandler(InventoryError)
    def handle_inventory_error(exc: InventoryError) -> Any:
        fields = exc.fields if isinstance(exc, ValidationError) else None
        return _json_error(exc.message, exc.status_code, code=exc.code, fields=fields)

    @app.errorhandler(KeyError)
    def handle_missing(exc: KeyError) -> Any:
        message = exc.args[0] if exc.args else "Not found"
        return _json_error(str(message), 404, code="not_found")

    @app.before_request
    def load_current_user() -> None:
        g.current_user = None
        email = session.get("user")
        if not email:
            return
        try:
            user = state.accounts.get_user(email)
        except InventoryError:
            session.pop("user", None)
            return
        if user.is_verified:
            g.current_user = user

    def login_required(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if _current_user() is None:
                raise AuthRequired("Unauthorized")
            return func(*args, **kwargs)

        return wrapper

    # accounts -----------------------------------------------------------
    @app.post("/api/auth/register")
    def register() -> Any:
        user = state.accounts.register(_get_payload(request))
        return (
            jsonify(
                {
                    "status": "pending",
                    "user": user.to_public_dict(),
                    "message": f"Confirmation link sent to {user.email}",
                }
            ),
            201,
        )

    @app.post("/api/auth/confirm")
    def confirm_registration() -> Any:
        payload = _get_payload(request)
        user = state.accounts.confirm(str(payload.get("email") or ""))
        state.accounts.start_session(user)
        state.sign_in(user)
        session["user"] = user.email
        session.permanent = True
        return jsonify({"status": "success", "user": user.to_public_dict()})

    @app.post("/login")
    def login() -> Any:
        payload = _get_payload(request)
        user = state.accounts.login(
            str(payload.get("email") or ""), str(payload.get("password") or "")
        )
        state.sign_in(user)
        session["user"] = user.email
        session.permanent = True
        return jsonify({"status": "success", "user": user.to_public_dict()})

    @app.post("/logout")
    @login_required
    def logout() -> Any:
        session.pop("user", None)
        state.sign_out()
        return jsonify({"status": "success"})

    @app.get("/api/profile")
    @login_required
    def profile() -> Any:
        records = state.registry.list_records()
        synced = sum(1 for record in records if record.is_synced)
        return jsonify(
            state.accounts.profile_summary(_current_user(), len(records), synced)
        )

    @app.post("/api/profile/password")
    @login_required
    def change_password() -> Any:
        payload = _get_payload(request)
        user = state.accounts.change_password(
            _current_user().email,
            str(payload.get("current") or ""),
            str(payload.get("new") or ""),
            str(payload.get("confirm") or ""),
        )
        state.user = user
        return jsonify({"status": "success", "message": "Password changed"})

    @app.post("/api/profile/notifications")
    @login_required
    def toggle_notifications() -> Any:
        user = state.accounts.toggle_notifications(_current_user().email)
        state.user = user
        return jsonify({"notificationsEnabled": user.notifications_enabled})

    @app.post("/api/profile/delete")
    @login_required
    def delete_account() -> Any:
        payload = _get_payload(request)
        _require_confirmation(payload)
        state.accounts.delete_account(
            _current_user().email, str(payload.get("password") or "")
        )
        session.pop("user", None)
        state.sign_out()
        return jsonify({"status": "success"})

    # views --------------------------------------------------------------
    @app.get("/api/views")
    @login_required
    def list_views() -> Any:
        return jsonify(
            {
                "current": state.router.current.value,
                "title": state.router.title,
                "views": [
                    {"name": view.value, "title": VIEW_TITLES[view]} for view in View
                ],
            }
        )

    @app.post("/api/views/<string:name>")
    @login_required
    def navigate(name: str) -> Any:
        view = state.router.navigate(name, _current_user())
        return jsonify({"current": view.value, "title": state.router.title})

    # registry -----------------------------------------------------------
    @app.get("/api/records")
    @login_required
    def list_records() -> Any:
        records = _records_view()
        return jsonify([record.to_record() for record in records])

    @app.post("/api/records")
    @login_required
    def add_record() -> Any:
        form = RecordForm.from_payload(_get_payload(request))
        record = state.registry.add(form)
        state.router.navigate(View.REGISTRY, _current_user())
        return jsonify(record.to_record()), 201

    @app.post("/api/records/delete")
    @login_required
    def delete_records() -> Any:
        payload = _get_payload(request)
        selection = state.selection("records")
        ids = _id_list(payload.get("ids"))
        if ids is None:
            ids = list(selection.ids)
        if not ids:
            return jsonify({"deleted": 0})
        _require_confirmation(payload)
        deleted = state.registry.delete_many(ids)
        selection.discard_many(ids)
        state.prune_selections()
        return jsonify({"deleted": deleted})

    @app.get("/api/records/export")
    @login_required
    def export_records() -> Response:
        records = _export_selection()
        content, filename = state.registry.export_workbook(records)
        return _xlsx_response(content, filename)

    @app.post("/api/records/export/remote")
    @login_required
    def export_records_remote() -> Response:
        records = _export_selection()
        # simulated upload; blocks this request thread for the configured delay
        time.sleep(settings.remote_export_delay)
        # no remote drive is configured: hand the prepared file back for a local download
        content, filename = state.registry.export_workbook(records)
        response = _xlsx_response(content, filename)
        response.headers["X-Export-Target"] = "local"
        return response

    def _export_selection() -> List[Any]:
        return select_for_export(
            state.registry.list_records(),
            _records_view(),
            state.selection("records").ids,
        )

    @app.get("/api/stats")
    @login_required
    def stats() -> Any:
        return jsonify(state.registry.statistics())

    @app.post("/api/records/analyze")
    @login_required
    def analyze_photo() -> Any:
        upload = request.files.get("file")
        image: Any
        if upload is not None and upload.filename:
            image = upload.read()
        else:
            image = str(_get_payload(request).get("photoUrl") or "")
        suggestions = state.analyzer.analyze(image) if image else None
        return jsonify({"suggestions": suggestions})

    # catalog ------------------------------------------------------------
    @app.get("/api/catalog")
    @login_required
    def list_catalog() -> Any:
        return jsonify([item.to_record() for item in state.catalog.list_items()])

    @app.post("/api/catalog/import")
    @login_required
    def import_catalog() -> Any:
        upload = request.files.get("file")
        if upload is None or upload.filename == "":
            return _json_error("Missing upload file", 400, code="import_error")
        try:
            raw_bytes = upload.read()
        finally:
            upload.close()
        result = state.catalog.import_file(raw_bytes, upload.filename or "")
        return jsonify(result.to_dict())

    @app.get("/api/catalog/files")
    @login_required
    def list_catalog_files() -> Any:
        return jsonify([group.to_dict() for group in state.catalog.group_by_source_file()])

    @app.get("/api/catalog/suggestions")
    @login_required
    def catalog_suggestions() -> Any:
        category = request.args.get("category") or None
        return jsonify(
            {
                "categories": state.catalog.categories(),
                "names": state.catalog.names(category),
            }
        )

    @app.post("/api/catalog/items/delete")
    @login_required
    def delete_catalog_items() -> Any:
        payload = _get_payload(request)
        selection = state.selection("catalog_items")
        ids = _id_list(payload.get("ids"))
        if ids is None:
            ids = list(selection.ids)
        if not ids:
            return jsonify({"deleted": 0})
        _require_confirmation(payload)
        deleted = state.catalog.delete_by_ids(ids)
        selection.discard_many(ids)
        state.prune_selections()
        return jsonify({"deleted": deleted})

    @app.post("/api/catalog/files/delete")
    @login_required
    def delete_catalog_files() -> Any:
        payload = _get_payload(request)
        selection = state.selection("catalog_files")
        file_names = _id_list(payload.get("fileNames"))
        if file_names is None:
            file_names = list(selection.ids)
        if not file_names:
            return jsonify({"deleted": 0})
        _require_confirmation(payload)
        deleted = state.catalog.delete_by_source_files(file_names)
        selection.discard_many(file_names)
        state.prune_selections()
        return jsonify({"deleted": deleted})

    @app.post("/api/catalog/clear")
    @login_required
    def clear_catalog() -> Any:
        _require_confirmation(_get_payload(request))
        deleted = state.catalog.clear()
        state.selection("catalog_items").clear()
        state.selection("catalog_files").clear()
        return jsonify({"deleted": deleted})

    # selection ----------------------------------------------------------
    def _scope_ids(scope: str) -> List[str]:
        if scope == "records":
            return [record.id for record in _records_view()]
        return state.displayed_ids(scope)

    def _selection_payload(scope: str) -> Dict[str, Any]:
        selection = state.selection(scope)
        return {
            "scope": scope,
            "ids": sorted(selection.ids),
            "count": len(selection),
            "allSelected": selection.is_all_selected(_scope_ids(scope)),
        }

    @app.get("/api/selection/<string:scope>")
    @login_required
    def get_selection(scope: str) -> Any:
        return jsonify(_selection_payload(scope))

    @app.post("/api/selection/<string:scope>/toggle")
    @login_required
    def toggle_selection(scope: str) -> Any:
        selection = state.selection(scope)
        identifier = str(_get_payload(request).get("id") or "")
        if identifier not in state.displayed_ids(scope):
            raise KeyError(f"'{identifier}' is not in the displayed collection")
        selection.toggle(identifier)
        return jsonify(_selection_payload(scope))

    @app.post("/api/selection/<string:scope>/toggle-all")
    @login_required
    def toggle_all_selection(scope: str) -> Any:
        state.selection(scope).toggle_all(_scope_ids(scope))
        return jsonify(_selection_payload(scope))

    @app.post("/api/selection/<string:scope>/clear")
    @login_required
    def clear_selection(scope: str) -> Any:
        state.selection(scope).clear()
        return jsonify(_selection_payload(scope))

    return app


def _get_payload(req: Any) -> Dict[str, Any]:
    if req.is_json:
        return req.get_json(silent=True) or {}
    if req.form:
        return req.form.to_dict()
    return req.get_json(silent=True) or {}


def _is_truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _id_list(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(part) for part in value if str(part).strip()]
    raise ValidationError("Identifiers must be a list", {"ids": "Expected a list"})


def _xlsx_response(content: bytes, filename: str) -> Response:
    response = Response(content, mimetype=XLSX_MIMETYPE)
    response.headers["Content-Disposition"] = f"attachment; filename={filename}"
    return response
