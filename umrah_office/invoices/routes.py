from __future__ import annotations

from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file

from umrah_office.auth.decorators import current_agent, login_required
from umrah_office.errors import ValidationError
from umrah_office.invoices.forms import validate_invoice_form, validate_status_form
from umrah_office.invoices.pdf import build_invoice_pdf
from umrah_office.invoices.services import filter_invoices, sort_invoices, summarize

invoices_bp = Blueprint("invoices", __name__, url_prefix="/invoices")


# ---------- Helpers ----------

def _service():
    return current_app.extensions["invoices"]


def _rooming_changed():
    # invoices create and update clients, which the rooming list shows
    current_app.extensions["rooming"].mark_dirty()


# ---------- Endpoints ----------

@invoices_bp.route("", methods=["GET"])
@login_required
def list_invoices():
    agent = current_agent()
    invoices = filter_invoices(
        _service().list_for(agent),
        query=request.args.get("q") or "",
        status=(request.args.get("status") or "").strip() or None,
        visa_status=(request.args.get("visaStatus") or "").strip() or None,
        agent_id=(request.args.get("agentId") or "").strip() or None,
    )
    invoices = sort_invoices(
        invoices,
        by=(request.args.get("sort") or "date").strip(),
        order=(request.args.get("order") or "desc").strip(),
    )
    summary = summarize(invoices)
    return jsonify(
        {
            "status": "ok",
            "invoices": [inv.to_dict() for inv in invoices],
            "summary": {
                "count": summary["count"],
                "totalAmount": summary["total_amount"],
                "paidAmount": summary["paid_amount"],
                "pendingAmount": summary["pending_amount"],
            },
        }
    )


@invoices_bp.route("", methods=["POST"])
@login_required
def create_invoice():
    data, errors = validate_invoice_form(request.get_json(silent=True) or {})
    if errors:
        raise ValidationError(errors)
    invoice = _service().create(data, current_agent())
    _rooming_changed()
    return jsonify({"status": "ok", "invoice": invoice.to_dict()}), 201


@invoices_bp.route("/<invoice_id>", methods=["GET"])
@login_required
def get_invoice(invoice_id):
    invoice = _service().get_for(invoice_id, current_agent())
    return jsonify({"status": "ok", "invoice": invoice.to_dict()})


@invoices_bp.route("/<invoice_id>", methods=["PUT"])
@login_required
def update_invoice(invoice_id):
    data, errors = validate_invoice_form(request.get_json(silent=True) or {})
    if errors:
        raise ValidationError(errors)
    invoice = _service().update(invoice_id, data, current_agent())
    _rooming_changed()
    return jsonify({"status": "ok", "invoice": invoice.to_dict()})


@invoices_bp.route("/<invoice_id>/status", methods=["POST"])
@login_required
def update_status(invoice_id):
    data, errors = validate_status_form(request.get_json(silent=True) or {})
    if errors:
        raise ValidationError(errors)
    invoice = _service().change_status(invoice_id, data["status"], current_agent())
    return jsonify({"status": "ok", "invoice": invoice.to_dict()})


@invoices_bp.route("/<invoice_id>", methods=["DELETE"])
@login_required
def delete_invoice(invoice_id):
    _service().delete(invoice_id, current_agent())
    return jsonify({"status": "ok"})


@invoices_bp.route("/<invoice_id>/pdf", methods=["GET"])
@login_required
def invoice_pdf(invoice_id):
    invoice = _service().get_for(invoice_id, current_agent())
    content = build_invoice_pdf(invoice, currency=current_app.config.get("CURRENCY_LABEL", "DH"))
    return send_file(
        BytesIO(content),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"{invoice.invoice_number}.pdf",
    )
