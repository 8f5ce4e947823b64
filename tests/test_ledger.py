from datetime import datetime, timedelta, timezone

import pytest

from extensions import db
from ledger.account import AccountLedger, parse_amount, earning_cooldown_ends, MAX_AMOUNT
from ledger.catalog import get_package
from ledger.errors import (InsufficientFunds, UnknownPackage, UserNotFound, CooldownActive,
                           NoActiveSubscription, BelowMinimumWithdrawal, InvalidAmount,
                           InvalidWithdrawalType, ValidationError)
from models import User, Withdrawal, as_utc

DESTINATION = {"bank": "Access Bank", "account_number": "0123456789", "account_name": "Ada Obi"}
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

pytestmark = pytest.mark.usefixtures("app")


def reload(user):
    return db.session.get(User, user.id, populate_existing=True)


# ---------------------------------------------------------- amounts
@pytest.mark.parametrize("value, expected", [(5000, 5000), ("7500", 7500), (" 12 ", 12), ("1e3", 1000)])
def test_parse_amount_accepts_positive_whole_numbers(value, expected):
    assert parse_amount(value) == expected


@pytest.mark.parametrize("value", [0, -5, "abc", None, True, 10.5, "NaN", "Infinity", ""])
def test_parse_amount_rejects_everything_else(value):
    with pytest.raises(InvalidAmount):
        parse_amount(value)


def test_parse_amount_caps_large_values():
    assert parse_amount(MAX_AMOUNT) == MAX_AMOUNT
    for value in (MAX_AMOUNT + 1, 10 ** 20, "1e30"):
        with pytest.raises(InvalidAmount) as exc:
            parse_amount(value)
        assert exc.value.details == {"maximum": MAX_AMOUNT}


@pytest.mark.parametrize("package_id, expected", [(1, 1), ("2", 2), (" 3 ", 3), (4.0, 4)])
def test_get_package_accepts_ints_and_digit_strings(package_id, expected):
    assert get_package(package_id).id == expected


@pytest.mark.parametrize("package_id", [True, False, 1.9, "1.9", "-1", "²", "", None, [1]])
def test_get_package_rejects_non_integral_ids(package_id):
    assert get_package(package_id) is None


# ---------------------------------------------------------- subscribe
def test_subscribe_debits_price_and_sets_package(make_user):
    user = make_user(balance=12000)

    result = AccountLedger.subscribe(user.id, 2, now=NOW)

    user = reload(user)
    assert user.balance == 2000
    assert user.package_id == 2
    assert as_utc(user.subscribed_at) == NOW
    assert result.referral_bonus == 0


def test_subscribe_with_insufficient_balance_changes_nothing(make_user):
    user = make_user(balance=4999)

    with pytest.raises(InsufficientFunds):
        AccountLedger.subscribe(user.id, 1)

    user = reload(user)
    assert user.balance == 4999
    assert user.package_id is None
    assert user.subscribed_at is None


def test_subscribe_unknown_package(make_user):
    user = make_user(balance=100000)
    with pytest.raises(UnknownPackage) as exc:
        AccountLedger.subscribe(user.id, 9)
    assert exc.value.status_code == 400
    assert reload(user).balance == 100000


def test_subscribe_missing_user_is_checked_before_package():
    with pytest.raises(UserNotFound):
        AccountLedger.subscribe(999, 9)


def test_subscribe_pays_referrer_ten_percent_every_time(make_user):
    referrer = make_user(email="boss@example.com")
    user = make_user(balance=15000, referred_by=referrer.referral_code)

    first = AccountLedger.subscribe(user.id, 1)
    second = AccountLedger.subscribe(user.id, 2)

    assert first.referral_bonus == 500
    assert second.referral_bonus == 1000
    assert first.referrer_id == referrer.id
    assert reload(referrer).referral_earnings == 1500
    assert reload(user).balance == 0


def test_subscribe_first_time_only_bonus_when_configured(app, make_user):
    app.config["REFERRAL_BONUS_EVERY_SUBSCRIPTION"] = False
    referrer = make_user()
    user = make_user(balance=10000, referred_by=referrer.referral_code)

    AccountLedger.subscribe(user.id, 1)
    again = AccountLedger.subscribe(user.id, 1)

    assert again.referral_bonus == 0
    assert reload(referrer).referral_earnings == 500


def test_subscribe_ignores_dangling_referral_code(make_user):
    user = make_user(balance=5000, referred_by="NOBODY1234")
    result = AccountLedger.subscribe(user.id, 1)
    assert result.referrer_id is None
    assert reload(user).balance == 0


# ---------------------------------------------------------- deposit credit
def test_credit_deposit_adds_to_balance(make_user):
    user = make_user(balance=100)
    AccountLedger.credit_deposit(user.id, 5000)
    db.session.commit()
    assert reload(user).balance == 5100


def test_credit_deposit_unknown_user():
    with pytest.raises(UserNotFound):
        AccountLedger.credit_deposit(424242, 5000)


# ---------------------------------------------------------- referral withdrawals
def test_referral_withdrawal_below_floor_fails_even_with_funds(make_user):
    user = make_user(referral_earnings=50000)
    with pytest.raises(BelowMinimumWithdrawal):
        AccountLedger.request_withdrawal(user.id, "referral", 4999, DESTINATION)
    assert reload(user).referral_earnings == 50000
    assert Withdrawal.query.count() == 0


def test_referral_withdrawal_of_exactly_the_floor_zeroes_earnings(make_user):
    user = make_user(referral_earnings=5000)

    withdrawal = AccountLedger.request_withdrawal(user.id, "referral", 5000, DESTINATION)

    assert reload(user).referral_earnings == 0
    assert withdrawal.status == "pending"
    assert withdrawal.type == "referral"
    assert withdrawal.amount == 5000


def test_referral_withdrawal_insufficient(make_user):
    user = make_user(referral_earnings=6000)
    with pytest.raises(InsufficientFunds):
        AccountLedger.request_withdrawal(user.id, "referral", 7000, DESTINATION)
    assert reload(user).referral_earnings == 6000


# ---------------------------------------------------------- earning withdrawals
def test_earning_withdrawal_requires_subscription(make_user):
    user = make_user(balance=10000)
    with pytest.raises(NoActiveSubscription):
        AccountLedger.request_withdrawal(user.id, "earning", 1000, DESTINATION)


def test_earning_withdrawal_inside_cooldown_fails(make_user):
    user = make_user(balance=10000, package_id=1, subscribed_at=NOW - timedelta(days=6, hours=23))
    with pytest.raises(CooldownActive):
        AccountLedger.request_withdrawal(user.id, "earning", 1000, DESTINATION, now=NOW)
    assert reload(user).balance == 10000


def test_earning_withdrawal_at_exactly_seven_days_succeeds(make_user):
    user = make_user(balance=10000, package_id=1, subscribed_at=NOW - timedelta(days=7))

    AccountLedger.request_withdrawal(user.id, "earning", 4000, DESTINATION, now=NOW)

    user = reload(user)
    assert user.balance == 6000
    assert as_utc(user.last_earning_withdrawal) == NOW


def test_earning_cooldown_counts_from_last_withdrawal(make_user):
    user = make_user(balance=10000, package_id=1,
                     subscribed_at=NOW - timedelta(days=30),
                     last_earning_withdrawal=NOW - timedelta(days=3))

    assert earning_cooldown_ends(user) == as_utc(user.last_earning_withdrawal) + timedelta(days=7)
    with pytest.raises(CooldownActive) as exc:
        AccountLedger.request_withdrawal(user.id, "earning", 1000, DESTINATION, now=NOW)
    assert "availableAt" in exc.value.details


def test_earning_withdrawal_insufficient_balance_keeps_cooldown_clock(make_user):
    user = make_user(balance=500, package_id=1, subscribed_at=NOW - timedelta(days=8))
    with pytest.raises(InsufficientFunds):
        AccountLedger.request_withdrawal(user.id, "earning", 1000, DESTINATION, now=NOW)
    assert reload(user).last_earning_withdrawal is None


def test_withdrawal_rejects_bad_type_amount_and_destination(make_user):
    user = make_user(balance=10000, referral_earnings=10000)
    with pytest.raises(InvalidWithdrawalType):
        AccountLedger.request_withdrawal(user.id, "bonus", 5000, DESTINATION)
    with pytest.raises(InvalidAmount):
        AccountLedger.request_withdrawal(user.id, "referral", -5000, DESTINATION)
    with pytest.raises(ValidationError):
        AccountLedger.request_withdrawal(user.id, "referral", 5000, dict(DESTINATION, account_number="12ab"))


def test_withdrawal_for_missing_user():
    with pytest.raises(UserNotFound):
        AccountLedger.request_withdrawal(31337, "referral", 5000, DESTINATION)
