from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from ...engine import get_engine
from ...enums import Network, TopUpType, TransactionStatus
from ...errors import InvalidInput
from ...services.purchases import PurchaseIntent
from ...services.store import get_owned
from ...services.validation import to_money
from ...models import PhoneNumber, Transaction

purchases_bp = Blueprint("purchases", __name__, url_prefix="/purchases")


def _purchase_type(value):
    try:
        return TopUpType(value)
    except ValueError:
        raise InvalidInput("type must be airtime or data") from None


@purchases_bp.route("/", methods=["POST"])
@login_required
def buy():
    payload = request.get_json(silent=True) or {}
    engine = get_engine()
    phone_number, network = payload.get("phone_number"), payload.get("network")
    phone_number_id = payload.get("phone_number_id")
    if phone_number_id is not None:
        saved = get_owned(PhoneNumber, current_user.id, phone_number_id, "Phone number")
        phone_number, network = saved.phone_number, network or saved.network
    try:
        network = Network(network) if network else None
    except ValueError:
        raise InvalidInput("Unknown network") from None

    amount = to_money(payload.get("amount"))
    if amount is None:
        raise InvalidInput("amount must be a number")

    intent = PurchaseIntent(
        user_id=current_user.id,
        type=_purchase_type(payload.get("type")),
        amount=amount,
        phone_number=phone_number or "",
        phone_number_id=phone_number_id,
        network=network,
        plan_id=payload.get("plan_id"),
    )
    outcome = engine.executor().submit(intent)
    if outcome.error is not None:
        raise outcome.error
    if not outcome.accepted:
        return jsonify({"ok": False, "outcome": outcome.to_dict()}), 400
    return jsonify({"ok": True, "outcome": outcome.to_dict()}), 201


@purchases_bp.route("/", methods=["GET"])
@login_required
def list_transactions():
    query = Transaction.query.filter_by(user_id=current_user.id)
    status = request.args.get("status")
    if status:
        try:
            query = query.filter(Transaction.status == TransactionStatus(status))
        except ValueError:
            raise InvalidInput("Unknown transaction status") from None
    limit = request.args.get("limit", 50, type=int)
    transactions = query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).all()
    return jsonify({"ok": True, "transactions": [t.to_dict() for t in transactions]})


@purchases_bp.route("/<reference>/settle", methods=["POST"])
@login_required
def settle(reference):
    payload = request.get_json(silent=True) or {}
    txn = get_engine().executor().settle(
        current_user.id, reference, payload.get("status"), message=payload.get("message") or ""
    )
    return jsonify({"ok": True, "transaction": txn.to_dict()})


@purchases_bp.route("/validate", methods=["POST"])
@login_required
def validate_purchase():
    payload = request.get_json(silent=True) or {}
    engine = get_engine()
    result = engine.validator.validate(
        payload.get("phone_number"),
        payload.get("amount"),
        payload.get("type", TopUpType.AIRTIME.value),
        engine.ledger.get_balance(current_user.id),
    )
    body = {
        "ok": result.valid,
        "cleaned_number": result.cleaned_number,
        "network": result.network.value if result.network else None,
    }
    if result.error is not None:
        body.update(kind=result.error.kind, message=result.error.message)
    return jsonify(body)


@purchases_bp.route("/validate-topup", methods=["POST"])
@login_required
def validate_wallet_topup():
    payload = request.get_json(silent=True) or {}
    engine = get_engine()
    result = engine.validator.validate_wallet_topup(
        payload.get("amount"), engine.ledger.get_balance(current_user.id)
    )
    if result.error is not None:
        return jsonify(result.error.to_dict())
    return jsonify({"ok": True})
