from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from ...engine import get_engine

phones_bp = Blueprint("phones", __name__, url_prefix="/phones")


@phones_bp.route("/", methods=["GET"])
@login_required
def list_phones():
    phones = get_engine().phone_book(current_user.id).list()
    return jsonify({"ok": True, "phone_numbers": [p.to_dict() for p in phones]})


@phones_bp.route("/", methods=["POST"])
@login_required
def add_phone():
    payload = request.get_json(silent=True) or {}
    book = get_engine().phone_book(current_user.id)
    if payload.get("is_primary"):
        phone = book.register_primary(payload.get("phone_number"))
    else:
        phone = book.add(payload.get("phone_number"), payload.get("label"))
    return jsonify({"ok": True, "phone_number": phone.to_dict()}), 201


@phones_bp.route("/<int:phone_id>", methods=["PATCH"])
@login_required
def update_phone(phone_id):
    payload = request.get_json(silent=True) or {}
    phone = get_engine().phone_book(current_user.id).update(
        phone_id,
        phone_number=payload.get("phone_number"),
        label=payload.get("label"),
    )
    return jsonify({"ok": True, "phone_number": phone.to_dict()})


@phones_bp.route("/<int:phone_id>", methods=["DELETE"])
@login_required
def delete_phone(phone_id):
    removed = get_engine().phone_book(current_user.id).delete(phone_id)
    return jsonify({"ok": True, **removed})
