import csv
from io import StringIO
from datetime import datetime
from flask import Blueprint, request, jsonify, make_response
from flask_login import login_required, current_user
from ...engine import get_engine
from ...enums import Network
from ...errors import InvalidInput
from ...recurrence import parse_timestamp

reports_bp = Blueprint("reports", __name__, url_prefix="/reports")


def _date_arg(name, tz):
    value = request.args.get(name)
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise InvalidInput(f"{name} must be an ISO 8601 date") from None
    return parse_timestamp(parsed, tz)


@reports_bp.route("/")
@login_required
def index():
    engine = get_engine()
    network = request.args.get("network")
    try:
        network = Network(network) if network else None
    except ValueError:
        raise InvalidInput("Unknown network") from None

    summary = engine.spending_report(current_user.id).summary(
        network=network,
        start=_date_arg("start", engine.tz),
        end=_date_arg("end", engine.tz),
    )
    return jsonify({"ok": True, "analytics": summary})


@reports_bp.route("/export.csv")
@login_required
def export_csv():
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["Reference", "Date", "Type", "Network", "Phone", "Amount", "Status", "Source"])
    for txn in get_engine().spending_report(current_user.id).transactions():
        writer.writerow([
            txn.reference,
            txn.created_at.isoformat() if txn.created_at else "",
            txn.type.value,
            txn.network.value if txn.network else "",
            txn.phone_number,
            f"{txn.amount:.2f}",
            txn.status.value,
            txn.source.value,
        ])
    response = make_response(output.getvalue())
    response.headers["Content-Disposition"] = "attachment; filename=transactions.csv"
    response.headers["Content-Type"] = "text/csv"
    return response
