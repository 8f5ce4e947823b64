import itertools
from decimal import Decimal

import pytest

from app import create_app
from config import TestingConfig
from extensions import db
from ledger.errors import UpstreamFailure
from ledger.gateway import GatewayTransaction
from ledger.referrals import generate_referral_code
from models import User


class FakeGateway:
    """Stands in for FlutterwaveClient; transactions are registered by the test."""

    def __init__(self):
        self.links = []
        self.verified = []
        self.transactions = {}
        self.fail_links = False

    def create_payment_link(self, tx_ref, amount, currency, customer, redirect_url):
        if self.fail_links:
            raise UpstreamFailure("Failed to initialize payment")
        self.links.append({
            "tx_ref": tx_ref,
            "amount": amount,
            "currency": currency,
            "customer": customer,
            "redirect_url": redirect_url,
        })
        return f"https://checkout.flutterwave.test/pay/{tx_ref}"

    def add_transaction(self, transaction_id, tx_ref, amount, status="successful", currency="NGN"):
        raw = {"id": transaction_id, "tx_ref": tx_ref, "amount": amount,
               "status": status, "currency": currency}
        self.transactions[str(transaction_id)] = GatewayTransaction(
            transaction_id=str(transaction_id),
            tx_ref=tx_ref,
            status=status,
            amount=Decimal(str(amount)),
            currency=currency,
            raw=raw,
        )

    def verify_transaction(self, transaction_id):
        self.verified.append(str(transaction_id))
        transaction = self.transactions.get(str(transaction_id))
        if transaction is None:
            return GatewayTransaction(str(transaction_id), None, "unverified", None, None, raw={})
        return transaction


def build_app(config_class):
    app = create_app(config_class)
    app.extensions["payment_gateway"] = FakeGateway()
    return app


@pytest.fixture
def app():
    app = build_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def file_app(tmp_path):
    """File-backed SQLite so worker threads get their own connections."""

    class ThreadedConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'ledger.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30, "check_same_thread": False}}

    app = build_app(ThreadedConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def gateway(app):
    return app.extensions["payment_gateway"]


_user_numbers = itertools.count(1)


def create_user(email=None, name="Test User", password="secret123", **fields):
    """Insert and commit a user in the active app context."""
    email = email or f"user{next(_user_numbers)}@example.com"
    user = User(
        name=name,
        email=email.lower(),
        referral_code=fields.pop("referral_code", None) or generate_referral_code(email),
        **fields,
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def make_user(app):
    return create_user


@pytest.fixture
def admin_headers(app):
    return {"X-Admin-Token": app.config["ADMIN_API_TOKEN"]}
