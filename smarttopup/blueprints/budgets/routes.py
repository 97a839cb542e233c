from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from ...engine import get_engine

budgets_bp = Blueprint("budgets", __name__, url_prefix="/budgets")


@budgets_bp.route("/", methods=["GET", "POST"])
@login_required
def manage_budget():
    tracker = get_engine().budget_tracker(current_user.id)
    if request.method == "POST":
        payload = request.get_json(silent=True) or {}
        status = tracker.set_budget(payload.get("budget_amount"))
        return jsonify({"ok": True, "budget": status.to_dict()})

    status = tracker.get_status()
    # No budget for the current month yet
    if status is None:
        return jsonify({"ok": True, "budget": None})
    return jsonify({"ok": True, "budget": status.to_dict()})


@budgets_bp.route("/history")
@login_required
def budget_history():
    limit = request.args.get("limit", default=12, type=int)
    history = get_engine().budget_tracker(current_user.id).history(limit=max(1, min(limit, 60)))
    return jsonify({"ok": True, "budgets": [s.to_dict() for s in history]})
