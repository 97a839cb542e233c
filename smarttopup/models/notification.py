from datetime import datetime
from ..extensions import db


class Notification(db.Model):
    __tablename__ = "notifications"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    category = db.Column(db.String(20), nullable=False)  # budget/transaction
    level = db.Column(db.String(10), nullable=False, default="info")
    title = db.Column(db.String(120), nullable=False)
    message = db.Column(db.Text, nullable=False)
    details = db.Column(db.JSON, default=dict)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
