import logging

import click
from flask import Flask, current_app, jsonify
from flask.cli import AppGroup

from .extensions import db, migrate, login_manager
from .config import Config
from .engine import Engine, get_engine
from .errors import TopUpError
from .services.gateways import PurchaseGatewayError
from .services.schedules import run_due_schedules

from .blueprints.phones.routes import phones_bp
from .blueprints.rules.routes import rules_bp
from .blueprints.schedules.routes import schedules_bp
from .blueprints.budgets.routes import budgets_bp
from .blueprints.purchases.routes import purchases_bp
from .blueprints.reports.routes import reports_bp

logger = logging.getLogger("smarttopup")


def create_app(config_object=Config, *, ledger=None, gateway=None, notifier=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # Ensure tables exist for a smooth first run
    with app.app_context():
        db.create_all()

    app.extensions["smarttopup"] = Engine(
        ledger=ledger,
        gateway=gateway,
        notifier=notifier,
        timezone=app.config["LOCAL_TIMEZONE"],
    )

    # Register blueprints
    app.register_blueprint(phones_bp)
    app.register_blueprint(rules_bp)
    app.register_blueprint(schedules_bp)
    app.register_blueprint(budgets_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(reports_bp)

    @app.errorhandler(TopUpError)
    def handle_topup_error(err):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(PurchaseGatewayError)
    def handle_gateway_error(err):
        logger.warning("purchase gateway unavailable: %s", err)
        body = {"ok": False, "kind": "GatewayUnavailable", "message": "The top-up service is unavailable, please try again"}
        return jsonify(body), 503

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"ok": False, "kind": "Unauthorized", "message": "Authentication required"}), 401

    app.cli.add_command(topups_cli)
    return app


topups_cli = AppGroup("topups", help="Scheduled top-up maintenance.")


@topups_cli.command("run-due")
@click.option("--limit", type=int, default=None, help="Maximum schedules to run in this pass.")
def run_due_command(limit):
    """Execute every scheduled top-up that is due now."""
    outcomes = run_due_schedules(get_engine(), limit=limit or current_app.config["SCHEDULE_BATCH_SIZE"])
    for outcome in outcomes:
        click.echo(f"schedule {outcome.schedule_id}: {outcome.status}")
    click.echo(f"{len(outcomes)} schedule(s) processed")
