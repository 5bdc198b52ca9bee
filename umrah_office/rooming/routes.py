from __future__ import annotations

from datetime import date
from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file

from umrah_office.auth.decorators import login_required
from umrah_office.domain import CITIES
from umrah_office.errors import ValidationError
from umrah_office.rooming.export import make_rooming_xlsx
from umrah_office.rooming.forms import validate_assignment_form, validate_room_form

rooming_bp = Blueprint("rooming", __name__, url_prefix="/rooming")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _manager():
    return current_app.extensions["rooming"]


def _city_arg(default=None):
    city = (request.args.get("city") or "").strip() or default
    if city and city not in CITIES:
        raise ValidationError({"city": "City must be Makkah or Madinah"})
    return city


@rooming_bp.route("/rooms", methods=["GET"])
@login_required
def list_rooms():
    rooms = _manager().rooms_with_occupancy(_city_arg())
    return jsonify({"status": "ok", "rooms": [r.to_dict() for r in rooms]})


@rooming_bp.route("/rooms", methods=["POST"])
@login_required
def create_room():
    data, errors = validate_room_form(request.get_json(silent=True) or {})
    if errors:
        raise ValidationError(errors)
    room = _manager().create_room(data)
    return jsonify({"status": "ok", "room": room.to_dict()}), 201


@rooming_bp.route("/rooms/<room_id>", methods=["PUT", "PATCH"])
@login_required
def update_room(room_id):
    data, errors = validate_room_form(request.get_json(silent=True) or {}, partial=True)
    if errors:
        raise ValidationError(errors)
    room = _manager().update_room(room_id, data)
    return jsonify({"status": "ok", "room": room.to_dict()})


@rooming_bp.route("/rooms/<room_id>", methods=["DELETE"])
@login_required
def delete_room(room_id):
    _manager().delete_room(room_id)
    return jsonify({"status": "ok"})


@rooming_bp.route("/unassigned", methods=["GET"])
@login_required
def unassigned():
    city = _city_arg("Makkah")
    clients = _manager().unassigned_clients(city, request.args.get("q") or "")
    return jsonify({"status": "ok", "city": city, "clients": [c.to_dict() for c in clients]})


@rooming_bp.route("/assign", methods=["POST"])
@login_required
def assign():
    data, errors = validate_assignment_form(request.get_json(silent=True) or {})
    if errors:
        raise ValidationError(errors)
    assignment = _manager().assign(data["room_id"], data["client_id"], data["city"])
    return jsonify({"status": "ok", "assignment": assignment.to_dict()})


@rooming_bp.route("/unassign", methods=["POST"])
@login_required
def unassign():
    data, errors = validate_assignment_form(request.get_json(silent=True) or {}, need_room=False)
    if errors:
        raise ValidationError(errors)
    removed = _manager().unassign(data["client_id"], data["city"])
    return jsonify({"status": "ok", "removed": removed})


@rooming_bp.route("/refresh", methods=["POST"])
@login_required
def refresh():
    changed = _manager().sync()
    return jsonify({"status": "ok", "changed": changed})


@rooming_bp.route("/export", methods=["GET"])
@login_required
def export():
    city = _city_arg()
    manager = _manager()
    # export what the server has, not the local view
    manager.sync()
    content = make_rooming_xlsx(manager.rooms_with_occupancy(city), city)
    filename = f"rooming-{(city or 'all').lower()}-{date.today():%Y%m%d}.xlsx"
    return send_file(BytesIO(content), mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)
