from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from umrah_office.auth.decorators import login_required
from umrah_office.clients.forms import validate_client_form
from umrah_office.clients.importer import import_clients
from umrah_office.clients.services import search_clients
from umrah_office.domain import Client
from umrah_office.errors import ImportParseError, ValidationError

clients_bp = Blueprint("clients", __name__, url_prefix="/clients")


def _store():
    return current_app.extensions["store"]


def _rooming():
    return current_app.extensions["rooming"]


@clients_bp.route("", methods=["GET"])
@login_required
def list_clients():
    q = (request.args.get("q") or "").strip()
    clients = search_clients(_store().get_clients(), q)
    return jsonify({"status": "ok", "clients": [c.to_dict() for c in clients]})


@clients_bp.route("", methods=["POST"])
@login_required
def create_client():
    data, errors = validate_client_form(request.get_json(silent=True) or {})
    if errors:
        raise ValidationError(errors)
    client = _store().create_client(Client(id=None, **data))
    _rooming().mark_dirty()
    return jsonify({"status": "ok", "client": client.to_dict()}), 201


@clients_bp.route("/<client_id>", methods=["GET"])
@login_required
def get_client(client_id):
    return jsonify({"status": "ok", "client": _store().get_client(client_id).to_dict()})


@clients_bp.route("/<client_id>", methods=["PUT", "PATCH"])
@login_required
def update_client(client_id):
    data, errors = validate_client_form(request.get_json(silent=True) or {}, partial=True)
    if errors:
        raise ValidationError(errors)
    client = _store().update_client(client_id, data)
    _rooming().mark_dirty()
    return jsonify({"status": "ok", "client": client.to_dict()})


@clients_bp.route("/<client_id>", methods=["DELETE"])
@login_required
def delete_client(client_id):
    _store().delete_client(client_id)
    _rooming().mark_dirty()
    return jsonify({"status": "ok"})


@clients_bp.route("/import", methods=["POST"])
@login_required
def import_file():
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise ImportParseError("No file uploaded")
    dry_run = (request.form.get("dry_run") or request.args.get("dry_run") or "").lower() in ("1", "true", "yes")

    clients = import_clients(_store(), upload.stream, upload.filename, dry_run=dry_run)
    if not dry_run:
        _rooming().mark_dirty()
    return jsonify(
        {
            "status": "ok",
            "dryRun": dry_run,
            "count": len(clients),
            "clients": [c.to_dict() for c in clients],
        }
    ), (200 if dry_run else 201)
