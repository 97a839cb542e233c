import tempfile
import threading
import time
import unittest
from decimal import Decimal
from pathlib import Path

from smarttopup import create_app
from smarttopup.config import TestConfig
from smarttopup.engine import get_engine
from smarttopup.enums import TransactionStatus
from smarttopup.extensions import db
from smarttopup.models import User, Wallet
from smarttopup.services.gateways import GatewayResult, PurchaseGatewayError

PRIMARY_NUMBER = "08031234567"  # MTN


class FakeGateway:
    """Answers with the queued statuses (default: completed) and records every call.

    ``raise_next`` may be True (a gateway timeout) or an exception to raise.
    """

    def __init__(self):
        self.calls = []
        self.statuses = []
        self.raise_next = False
        self.delay = 0

    def purchase(self, type, network, phone_number, amount, plan_id=None):
        self.calls.append((type, network, phone_number, amount))
        if self.delay:
            time.sleep(self.delay)
        if self.raise_next:
            error = self.raise_next if isinstance(self.raise_next, Exception) else PurchaseGatewayError("gateway timed out")
            self.raise_next = False
            raise error
        status = self.statuses.pop(0) if self.statuses else TransactionStatus.COMPLETED
        message = "Declined by carrier" if status is TransactionStatus.FAILED else ""
        return GatewayResult(reference=f"TEST-{len(self.calls)}", status=status, message=message)


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, user_id, event):
        self.events.append((user_id, event))

    def titles(self):
        return [event.title for _, event in self.events]


class AppTestCase(unittest.TestCase):
    config = TestConfig

    def setUp(self) -> None:
        self.gateway = FakeGateway()
        self.notifier = RecordingNotifier()
        self.app = create_app(self.config, gateway=self.gateway, notifier=self.notifier)
        self.ctx = self.app.app_context()
        self.ctx.push()
        self.engine = get_engine()

    def tearDown(self) -> None:
        db.session.remove()
        db.drop_all()
        self.ctx.pop()

    def make_user(self, name="Ada", balance="50000", primary=PRIMARY_NUMBER) -> User:
        user = User(name=name)
        db.session.add(user)
        db.session.flush()
        db.session.add(Wallet(user_id=user.id, balance=Decimal(balance)))
        db.session.commit()
        if primary:
            self.engine.phone_book(user.id).register_primary(primary)
        return user

    def balance(self, user) -> Decimal:
        return self.engine.ledger.get_balance(user.id)


class ThreadedTestCase(AppTestCase):
    """Backed by a database file, so each thread gets a connection of its own."""

    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        uri = f"sqlite:///{Path(self.tmpdir.name) / 'topups.db'}"
        self.config = type("FileConfig", (TestConfig,), {"SQLALCHEMY_DATABASE_URI": uri})
        super().setUp()

    def tearDown(self) -> None:
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
        self.ctx.pop()
        self.tmpdir.cleanup()

    def in_threads(self, target, count=2) -> list:
        """Call ``target`` from ``count`` threads released together; return the results."""
        barrier = threading.Barrier(count)
        results, errors = [], []

        def worker():
            with self.app.app_context():
                barrier.wait()
                try:
                    results.append(target())
                except Exception as exc:
                    errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)
        if errors:
            raise errors[0]
        db.session.expire_all()
        return results
