import json

import pytest

from extensions import db
from ledger.deposits import DepositService, MIN_DEPOSIT
from ledger.errors import (BelowMinimumDeposit, UserNotFound, DepositNotFound, UpstreamFailure,
                           PaymentNotSuccessful, AmountMismatch, ReferenceMismatch,
                           InvalidStateTransition, InvalidAmount, ValidationError)
from ledger.promo import PromoCounter
from models import User, Deposit


def balance_of(user_id):
    return db.session.get(User, user_id, populate_existing=True).balance


def pending_deposit(user, amount=10000):
    return DepositService.initiate(user.id, amount).deposit


# ---------------------------------------------------------- initiate
def test_initiate_creates_pending_deposit_and_returns_link(app, make_user, gateway):
    user = make_user(name="Ada", email="ada@example.com")

    result = DepositService.initiate(user.id, "10000")

    deposit = result.deposit
    assert deposit.status == "pending"
    assert deposit.amount == 10000
    assert deposit.tx_ref.startswith("HT-")
    assert deposit.email == "ada@example.com"
    assert result.payment_link.endswith(deposit.tx_ref)

    call = gateway.links[0]
    assert call["tx_ref"] == deposit.tx_ref
    assert call["currency"] == "NGN"
    assert call["customer"] == {"email": "ada@example.com", "name": "Ada"}
    assert call["redirect_url"] == "https://back.test/payment/callback"


def test_initiate_generates_unique_references(make_user):
    user = make_user()
    refs = {pending_deposit(user).tx_ref for _ in range(5)}
    assert len(refs) == 5


def test_initiate_below_minimum(make_user, gateway):
    user = make_user()
    with pytest.raises(BelowMinimumDeposit) as exc:
        DepositService.initiate(user.id, MIN_DEPOSIT - 1)
    assert exc.value.message == "Minimum deposit is ₦5,000"
    assert Deposit.query.count() == 0
    assert gateway.links == []


def test_initiate_rejects_fractional_amount(make_user):
    user = make_user()
    with pytest.raises(InvalidAmount):
        DepositService.initiate(user.id, "5000.50")


def test_initiate_unknown_user(app, gateway):
    with pytest.raises(UserNotFound):
        DepositService.initiate(777, 5000)
    assert gateway.links == []


def test_initiate_marks_deposit_failed_when_gateway_is_down(make_user, gateway):
    user = make_user()
    gateway.fail_links = True

    with pytest.raises(UpstreamFailure):
        DepositService.initiate(user.id, 5000)

    deposit = Deposit.query.one()
    assert deposit.status == "failed"


# ---------------------------------------------------------- reconcile
def test_reconcile_credits_once(make_user, gateway):
    user = make_user(balance=100)
    deposit = pending_deposit(user, 10000)
    gateway.add_transaction("555001", deposit.tx_ref, 10000)

    result = DepositService.reconcile(deposit.tx_ref, "555001")

    assert result.credited is True
    assert result.already_successful is False
    assert balance_of(user.id) == 10100
    stored = Deposit.query.filter_by(tx_ref=deposit.tx_ref).one()
    assert stored.status == "successful"
    assert stored.tx_id == "555001"
    assert json.loads(stored.gateway_response)["tx_ref"] == deposit.tx_ref


def test_reconcile_twice_yields_one_credit(make_user, gateway):
    user = make_user()
    deposit = pending_deposit(user, 7000)
    gateway.add_transaction("555002", deposit.tx_ref, 7000)

    first = DepositService.reconcile(deposit.tx_ref, "555002")
    second = DepositService.reconcile(deposit.tx_ref, "555002")

    assert first.credited is True
    assert second.credited is False
    assert second.already_successful is True
    assert balance_of(user.id) == 7000
    assert Deposit.query.filter_by(status="successful").count() == 1


def test_reconcile_falls_back_to_gateway_reference(make_user, gateway):
    user = make_user()
    deposit = pending_deposit(user, 5000)
    gateway.add_transaction("555003", deposit.tx_ref, 5000)

    result = DepositService.reconcile(None, "555003")

    assert result.credited is True
    assert balance_of(user.id) == 5000


def test_reconcile_amount_mismatch_leaves_deposit_pending(make_user, gateway):
    user = make_user()
    deposit = pending_deposit(user, 50000)
    gateway.add_transaction("555004", deposit.tx_ref, 5000)

    with pytest.raises(AmountMismatch):
        DepositService.reconcile(deposit.tx_ref, "555004")

    assert balance_of(user.id) == 0
    assert Deposit.query.filter_by(tx_ref=deposit.tx_ref).one().status == "pending"


def test_reconcile_currency_mismatch(make_user, gateway):
    user = make_user()
    deposit = pending_deposit(user, 5000)
    gateway.add_transaction("555005", deposit.tx_ref, 5000, currency="USD")

    with pytest.raises(AmountMismatch):
        DepositService.reconcile(deposit.tx_ref, "555005")
    assert balance_of(user.id) == 0


def test_reconcile_rejects_transaction_paid_for_another_reference(make_user, gateway):
    user = make_user()
    cheap = pending_deposit(user, 5000)
    expensive = pending_deposit(user, 5000)
    gateway.add_transaction("555006", cheap.tx_ref, 5000)

    with pytest.raises(ReferenceMismatch):
        DepositService.reconcile(expensive.tx_ref, "555006")
    assert balance_of(user.id) == 0


def test_reconcile_fails_closed_when_gateway_does_not_confirm(make_user, gateway):
    user = make_user()
    deposit = pending_deposit(user, 5000)
    gateway.add_transaction("555007", deposit.tx_ref, 5000, status="failed")

    with pytest.raises(PaymentNotSuccessful):
        DepositService.reconcile(deposit.tx_ref, "555007")
    with pytest.raises(PaymentNotSuccessful):
        DepositService.reconcile(deposit.tx_ref, "unknown-id")

    assert Deposit.query.filter_by(tx_ref=deposit.tx_ref).one().status == "pending"
    assert balance_of(user.id) == 0


def test_reconcile_unknown_reference(app, gateway):
    gateway.add_transaction("555008", "HT-nope", 5000)
    with pytest.raises(DepositNotFound):
        DepositService.reconcile("HT-nope", "555008")


def test_reconcile_requires_transaction_id(app):
    with pytest.raises(ValidationError):
        DepositService.reconcile("HT-x", None)


def test_reconcile_failed_deposit_is_terminal(make_user, gateway):
    user = make_user()
    gateway.fail_links = True
    with pytest.raises(UpstreamFailure):
        DepositService.initiate(user.id, 5000)
    deposit = Deposit.query.one()
    gateway.add_transaction("555009", deposit.tx_ref, 5000)

    with pytest.raises(InvalidStateTransition):
        DepositService.reconcile(deposit.tx_ref, "555009")
    assert balance_of(user.id) == 0


# ---------------------------------------------------------- promo
def test_successful_deposits_consume_promo_until_exhausted(app, make_user, gateway):
    user = make_user()
    applied = []
    for n in range(app.config["PROMO_LIMIT"] + 2):
        deposit = pending_deposit(user, 5000)
        gateway.add_transaction(f"777{n}", deposit.tx_ref, 5000)
        applied.append(DepositService.reconcile(deposit.tx_ref, f"777{n}").promo_applied)

    assert applied == [True, True, True, False, False]
    assert PromoCounter.status() == {"limit": 3, "used": 3}
    assert Deposit.query.filter_by(promo_applied=True).count() == 3
    assert balance_of(user.id) == 5000 * 5
