# ==========================================================
#                  ACCOUNT LEDGER
# ==========================================================
"""
Balance mutations on a user: subscribing to a package, crediting a
confirmed deposit and reserving funds for a withdrawal.

Every mutating call runs under the user's entity lock and inside one
database transaction; the debits themselves are conditional UPDATEs
(see ledger.stores), so a balance is never driven below zero.
"""
import re
from collections import namedtuple
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from flask import current_app
from ledger.catalog import get_package
from ledger.errors import (InvalidAmount, UserNotFound, UnknownPackage, InsufficientFunds,
                           CooldownActive, NoActiveSubscription, BelowMinimumWithdrawal,
                           InvalidWithdrawalType, ValidationError)
from ledger.locks import user_lock
from ledger.notifications import WithdrawalNotifier
from ledger.referrals import commission
from ledger.stores import UserStore, atomic
from ledger.withdrawals import WithdrawalQueue
from logger import ledger_logger as logger
from models import WithdrawalType, as_utc, utcnow

MIN_REFERRAL_WITHDRAWAL = 5000
# Largest single deposit or withdrawal; balances stay well inside a BIGINT.
MAX_AMOUNT = 1_000_000_000
EARNING_WITHDRAWAL_COOLDOWN = timedelta(days=7)

SubscriptionResult = namedtuple("SubscriptionResult", ["user", "package", "referrer_id", "referral_bonus"])


def parse_amount(value) -> int:
    """Whole number of currency units in 1..MAX_AMOUNT, from an int or numeric string."""
    if value is None or isinstance(value, bool):
        raise InvalidAmount()
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount()
    if not amount.is_finite() or amount != amount.to_integral_value():
        raise InvalidAmount()
    amount = int(amount)
    if amount <= 0:
        raise InvalidAmount()
    if amount > MAX_AMOUNT:
        raise InvalidAmount(f"Amount must not exceed ₦{MAX_AMOUNT:,}", maximum=MAX_AMOUNT)
    return amount


def parse_destination(bank, account_number, account_name) -> dict:
    bank = str(bank or "").strip()
    account_number = str(account_number or "").strip()
    account_name = str(account_name or "").strip()
    if not bank or not account_number or not account_name:
        raise ValidationError("Bank, account number and account name are required")
    if not re.fullmatch(r"\d{6,20}", account_number):
        raise ValidationError("Account number must be 6 to 20 digits")
    return {"bank": bank, "account_number": account_number, "account_name": account_name}


def earning_cooldown_ends(user):
    """When the next earning withdrawal becomes possible, or None without a subscription."""
    subscribed_at = as_utc(user.subscribed_at)
    if subscribed_at is None:
        return None
    anchor = subscribed_at
    last_withdrawal = as_utc(user.last_earning_withdrawal)
    if last_withdrawal and last_withdrawal > anchor:
        anchor = last_withdrawal
    return anchor + EARNING_WITHDRAWAL_COOLDOWN


class AccountLedger:

    @staticmethod
    def subscribe(user_id, package_id, now=None) -> SubscriptionResult:
        """
        Debit the package price, activate the package and pay the referrer
        their commission. Nothing changes if the balance is short.
        """
        now = as_utc(now) or utcnow()
        package = get_package(package_id)

        with user_lock(user_id):
            with atomic(f"subscribe user={user_id} package={package_id}"):
                user = UserStore.get_for_update(user_id)
                if not user:
                    raise UserNotFound()
                if not package:
                    raise UnknownPackage()

                first_subscription = user.subscribed_at is None
                available = user.balance
                if not UserStore.debit_balance(user.id, package.price,
                                               package_id=package.id, subscribed_at=now):
                    raise InsufficientFunds(required=package.price, available=available)

                referrer_id, bonus = None, 0
                every_time = current_app.config.get("REFERRAL_BONUS_EVERY_SUBSCRIPTION", True)
                if user.referred_by and (every_time or first_subscription):
                    referrer = UserStore.get_by_referral_code(user.referred_by)
                    if referrer and referrer.id != user.id:
                        bonus = commission(package.price)
                        UserStore.credit_referral_earnings(referrer.id, bonus)
                        referrer_id = referrer.id

        logger.info(
            f"User {user.id} subscribed to package {package.id} for {package.price}"
            + (f"; referrer {referrer_id} credited {bonus}" if referrer_id else "")
        )
        return SubscriptionResult(user=user, package=package, referrer_id=referrer_id, referral_bonus=bonus)

    @staticmethod
    def credit_deposit(user_id, amount: int):
        """
        Add a confirmed deposit to the balance. Not idempotent: only
        DepositService.reconcile calls this, inside its own transaction,
        after winning the pending -> successful transition.
        """
        if amount <= 0:
            raise InvalidAmount()
        if not UserStore.credit_balance(user_id, amount):
            raise UserNotFound()
        logger.info(f"Deposit of {amount} credited to user {user_id}")

    @staticmethod
    def request_withdrawal(user_id, withdrawal_type, amount, destination: dict, now=None):
        """
        Reserve funds and queue a withdrawal for admin approval.

        Referral withdrawals draw on referral_earnings and have a 5000
        floor. Earning withdrawals draw on balance, need a subscription and
        are limited to one per 7 days counted from the later of the
        subscription and the previous earning withdrawal.
        """
        now = as_utc(now) or utcnow()
        amount = parse_amount(amount)
        destination = parse_destination(destination.get("bank"), destination.get("account_number"),
                                        destination.get("account_name"))
        try:
            withdrawal_type = WithdrawalType(str(withdrawal_type or "").lower())
        except ValueError:
            raise InvalidWithdrawalType()

        with user_lock(user_id):
            with atomic(f"withdrawal user={user_id} type={withdrawal_type.value}"):
                user = UserStore.get_for_update(user_id)
                if not user:
                    raise UserNotFound()

                if withdrawal_type is WithdrawalType.REFERRAL:
                    AccountLedger._reserve_referral(user, amount)
                else:
                    AccountLedger._reserve_earning(user, amount, now)

                withdrawal = WithdrawalQueue.submit(user.id, withdrawal_type.value, amount, destination)

        logger.info(f"Withdrawal {withdrawal.id} queued: user {user.id} {withdrawal_type.value} {amount}")
        WithdrawalNotifier.notify_admin(withdrawal, user)
        return withdrawal

    @staticmethod
    def _reserve_referral(user, amount: int):
        if amount < MIN_REFERRAL_WITHDRAWAL:
            raise BelowMinimumWithdrawal(minimum=MIN_REFERRAL_WITHDRAWAL)
        available = user.referral_earnings
        if not UserStore.debit_referral_earnings(user.id, amount):
            raise InsufficientFunds(required=amount, available=available)

    @staticmethod
    def _reserve_earning(user, amount: int, now):
        cooldown_ends = earning_cooldown_ends(user)
        if cooldown_ends is None:
            raise NoActiveSubscription()
        if now < cooldown_ends:
            raise CooldownActive(availableAt=cooldown_ends.isoformat())
        available = user.balance
        if not UserStore.debit_balance(user.id, amount, last_earning_withdrawal=now):
            raise InsufficientFunds(required=amount, available=available)
