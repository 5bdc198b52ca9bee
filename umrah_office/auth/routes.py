from __future__ import annotations

import logging

from flask import Blueprint, current_app, g, jsonify, request, session

from umrah_office.auth.decorators import current_agent, login_required
from umrah_office.errors import AuthenticationError

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.route("/login", methods=["POST"])
def login():
    payload = request.get_json(silent=True) or request.form
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    verifier = current_app.extensions["credentials"]
    agent = current_app.extensions["store"].get_agent_by_email(email) if email else None
    # same answer for unknown email and wrong password
    if agent is None or not verifier.verify(email, password):
        logger.info("Rejected login for %s", email or "<empty>")
        raise AuthenticationError("Invalid email or password")

    session.clear()
    session["agent_id"] = agent.id
    session["role"] = agent.role
    g.agent = agent
    logger.info("Agent %s logged in (%s)", agent.email, agent.role)
    return jsonify({"status": "ok", "agent": agent.to_dict()})


@auth_bp.route("/logout", methods=["POST"])
def logout():
    session.clear()
    return jsonify({"status": "ok"})


@auth_bp.route("/me")
@login_required
def me():
    return jsonify({"status": "ok", "agent": current_agent().to_dict()})
