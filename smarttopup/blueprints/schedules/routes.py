from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from ...engine import get_engine
from ...recurrence import recurrence_from_payload

schedules_bp = Blueprint("schedules", __name__, url_prefix="/schedules")


@schedules_bp.route("/", methods=["GET"])
@login_required
def list_schedules():
    schedules = get_engine().schedule_manager(current_user.id).list(status=request.args.get("status"))
    return jsonify({"ok": True, "schedules": [s.to_dict() for s in schedules]})


@schedules_bp.route("/", methods=["POST"])
@login_required
def create_schedule():
    payload = request.get_json(silent=True) or {}
    engine = get_engine()
    recurrence = recurrence_from_payload(payload.get("schedule_type"), payload, engine.tz)
    schedule = engine.schedule_manager(current_user.id).create(
        type=payload.get("type"),
        amount=payload.get("amount"),
        recurrence=recurrence,
        phone_number_id=payload.get("phone_number_id"),
        network=payload.get("network"),
        plan_id=payload.get("plan_id"),
        max_executions=payload.get("max_executions"),
    )
    return jsonify({"ok": True, "schedule": schedule.to_dict()}), 201


@schedules_bp.route("/<int:schedule_id>", methods=["GET"])
@login_required
def get_schedule(schedule_id):
    schedule = get_engine().schedule_manager(current_user.id).get(schedule_id)
    return jsonify({"ok": True, "schedule": schedule.to_dict()})


@schedules_bp.route("/<int:schedule_id>", methods=["PATCH"])
@login_required
def update_schedule(schedule_id):
    payload = request.get_json(silent=True) or {}
    engine = get_engine()
    changes = {}
    # Only fields present in the body are touched; plan_id and max_executions may be cleared with null.
    for field in ("plan_id", "max_executions"):
        if field in payload:
            changes[field] = payload[field]
    if "schedule_type" in payload:
        changes["recurrence"] = recurrence_from_payload(payload["schedule_type"], payload, engine.tz)
    schedule = engine.schedule_manager(current_user.id).update(
        schedule_id,
        amount=payload.get("amount"),
        network=payload.get("network"),
        phone_number_id=payload.get("phone_number_id"),
        **changes,
    )
    return jsonify({"ok": True, "schedule": schedule.to_dict()})


@schedules_bp.route("/<int:schedule_id>/pause", methods=["POST"])
@login_required
def pause_schedule(schedule_id):
    schedule = get_engine().schedule_manager(current_user.id).pause(schedule_id)
    return jsonify({"ok": True, "schedule": schedule.to_dict()})


@schedules_bp.route("/<int:schedule_id>/resume", methods=["POST"])
@login_required
def resume_schedule(schedule_id):
    schedule = get_engine().schedule_manager(current_user.id).resume(schedule_id)
    return jsonify({"ok": True, "schedule": schedule.to_dict()})


@schedules_bp.route("/<int:schedule_id>/cancel", methods=["POST"])
@login_required
def cancel_schedule(schedule_id):
    schedule = get_engine().schedule_manager(current_user.id).cancel(schedule_id)
    return jsonify({"ok": True, "schedule": schedule.to_dict()})
