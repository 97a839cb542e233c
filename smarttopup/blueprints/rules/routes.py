from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from ...engine import get_engine
from ...errors import InvalidInput

rules_bp = Blueprint("rules", __name__, url_prefix="/rules")


@rules_bp.route("/", methods=["GET"])
@login_required
def list_rules():
    rules = get_engine().rule_engine(current_user.id).list()
    return jsonify({"ok": True, "rules": [r.to_dict() for r in rules]})


@rules_bp.route("/", methods=["POST"])
@login_required
def create_rule():
    payload = request.get_json(silent=True) or {}
    rule = get_engine().rule_engine(current_user.id).create(
        type=payload.get("type"),
        threshold_percentage=payload.get("threshold_percentage"),
        topup_amount=payload.get("topup_amount"),
        phone_number_id=payload.get("phone_number_id"),
        is_enabled=payload.get("is_enabled", True),
    )
    return jsonify({"ok": True, "rule": rule.to_dict()}), 201


@rules_bp.route("/<int:rule_id>", methods=["PATCH"])
@login_required
def update_rule(rule_id):
    payload = request.get_json(silent=True) or {}
    rule = get_engine().rule_engine(current_user.id).update(
        rule_id,
        threshold_percentage=payload.get("threshold_percentage"),
        topup_amount=payload.get("topup_amount"),
    )
    return jsonify({"ok": True, "rule": rule.to_dict()})


@rules_bp.route("/<int:rule_id>/toggle", methods=["POST"])
@login_required
def toggle_rule(rule_id):
    rule = get_engine().rule_engine(current_user.id).toggle(rule_id)
    return jsonify({"ok": True, "rule": rule.to_dict()})


@rules_bp.route("/<int:rule_id>", methods=["DELETE"])
@login_required
def delete_rule(rule_id):
    get_engine().rule_engine(current_user.id).delete(rule_id)
    return jsonify({"ok": True})


@rules_bp.route("/<int:rule_id>/evaluate", methods=["POST"])
@login_required
def evaluate_rule(rule_id):
    """Called by the usage monitor with the line's remaining allowance."""
    payload = request.get_json(silent=True) or {}
    if payload.get("remaining_percentage") is None:
        raise InvalidInput("remaining_percentage is required")
    outcome = get_engine().rule_engine(current_user.id).trigger(rule_id, payload["remaining_percentage"])
    if outcome is None:
        return jsonify({"ok": True, "fired": False})
    return jsonify({"ok": True, "fired": True, "outcome": outcome.to_dict()})
