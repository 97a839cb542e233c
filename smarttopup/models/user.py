from datetime import datetime
from flask import current_app
from flask_login import UserMixin
from ..extensions import db, login_manager


class User(UserMixin, db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    phone_numbers = db.relationship("PhoneNumber", backref="user", lazy=True, cascade="all, delete-orphan")
    budgets = db.relationship("Budget", backref="user", lazy=True, cascade="all, delete-orphan")
    wallet = db.relationship("Wallet", backref="user", uselist=False, cascade="all, delete-orphan")


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.request_loader
def load_user_from_request(request):
    # Sessions are authenticated upstream; the gateway forwards the user id.
    raw = request.headers.get(current_app.config["AUTH_USER_HEADER"])
    if not raw or not raw.isdigit():
        return None
    return db.session.get(User, int(raw))
