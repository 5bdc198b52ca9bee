from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from umrah_office.auth.decorators import current_agent, login_required, roles_required
from umrah_office.auth.forms import validate_agent_form
from umrah_office.auth.services import add_agent, edit_agent
from umrah_office.dashboard.services import agent_performance, dashboard_stats, todays_invoices
from umrah_office.errors import ValidationError

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/dashboard")


def _invoices():
    return current_app.extensions["invoices"].list_for(current_agent())


@dashboard_bp.route("/stats")
@login_required
def stats():
    data = dashboard_stats(_invoices())
    return jsonify(
        {
            "status": "ok",
            "stats": {
                "totalInvoices": data["total_invoices"],
                "paidInvoices": data["paid_invoices"],
                "pendingInvoices": data["pending_invoices"],
                "overdueInvoices": data["overdue_invoices"],
                "totalRevenue": data["total_revenue"],
                "recentInvoices": [inv.to_dict() for inv in data["recent_invoices"]],
            },
        }
    )


@dashboard_bp.route("/today")
@login_required
def today():
    invoices = todays_invoices(_invoices())
    return jsonify({"status": "ok", "count": len(invoices), "invoices": [inv.to_dict() for inv in invoices]})


@dashboard_bp.route("/agents")
@roles_required("director")
def agents():
    store = current_app.extensions["store"]
    include_directors = (request.args.get("include_directors") or "").lower() in ("1", "true", "yes")
    rows = agent_performance(store.get_agents(), store.get_invoices(), include_directors=include_directors)
    return jsonify(
        {
            "status": "ok",
            "agents": [
                {
                    **row["agent"].to_dict(),
                    "totalInvoices": row["total_invoices"],
                    "todayInvoices": row["today_invoices"],
                    "totalRevenue": row["total_revenue"],
                    "successRate": row["success_rate"],
                }
                for row in rows
            ],
        }
    )


@dashboard_bp.route("/agents", methods=["POST"])
@roles_required("director")
def add_agent_route():
    data, errors = validate_agent_form(request.get_json(silent=True) or {})
    if errors:
        raise ValidationError(errors)
    agent = add_agent(current_app.extensions["store"], current_app.extensions["credentials"], data)
    return jsonify({"status": "ok", "agent": agent.to_dict()}), 201


@dashboard_bp.route("/agents/<agent_id>", methods=["PUT", "PATCH"])
@roles_required("director")
def edit_agent_route(agent_id):
    data, errors = validate_agent_form(request.get_json(silent=True) or {}, partial=True)
    if errors:
        raise ValidationError(errors)
    agent = edit_agent(current_app.extensions["store"], current_app.extensions["credentials"], agent_id, data)
    return jsonify({"status": "ok", "agent": agent.to_dict()})
