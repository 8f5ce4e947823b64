# ==========================================================
#                  DEPOSIT RECONCILIATION
# ==========================================================
"""
pending -> successful, or pending -> failed when no payment link could be
created. Both are terminal.

reconcile() may be called any number of times for the same tx_ref: the
pending -> successful compare-and-set is the single point that lets a
credit through, and it runs in the same transaction as the credit.
"""
import uuid
from collections import namedtuple
from decimal import Decimal
from flask import current_app
from ledger.account import AccountLedger, parse_amount
from ledger.errors import (BelowMinimumDeposit, UserNotFound, DepositNotFound, UpstreamFailure,
                           PaymentNotSuccessful, AmountMismatch, ReferenceMismatch,
                           InvalidStateTransition, ValidationError)
from ledger.gateway import get_gateway
from ledger.locks import user_lock
from ledger.promo import PromoCounter
from ledger.stores import UserStore, DepositStore, atomic
from logger import payments_logger as logger
from extensions import db
from models import DepositStatus

MIN_DEPOSIT = 5000

DepositLink = namedtuple("DepositLink", ["deposit", "payment_link"])
ReconcileResult = namedtuple("ReconcileResult", ["deposit", "credited", "promo_applied", "already_successful"])


def new_tx_ref() -> str:
    return f"HT-{uuid.uuid4().hex}"


class DepositService:

    @staticmethod
    def initiate(user_id, amount) -> DepositLink:
        """Create a pending deposit and ask the gateway for a hosted payment link."""
        amount = parse_amount(amount)
        if amount < MIN_DEPOSIT:
            raise BelowMinimumDeposit(minimum=MIN_DEPOSIT)

        with atomic(f"deposit init user={user_id}"):
            user = UserStore.get(user_id)
            if not user:
                raise UserNotFound()
            deposit = DepositStore.create(user, amount, new_tx_ref())
            customer = {"email": user.email, "name": user.name}
            tx_ref = deposit.tx_ref

        config = current_app.config
        redirect_url = f"{config['BACKEND_URL'].rstrip('/')}/payment/callback"
        try:
            link = get_gateway().create_payment_link(
                tx_ref=tx_ref,
                amount=amount,
                currency=config.get("PAYMENT_CURRENCY", "NGN"),
                customer=customer,
                redirect_url=redirect_url,
            )
        except UpstreamFailure:
            with atomic(f"deposit fail tx_ref={tx_ref}"):
                DepositStore.mark_failed(deposit.id, gateway_response=None)
            logger.warning(f"Deposit {tx_ref} marked failed: payment link not created")
            raise

        logger.info(f"Deposit {tx_ref} initiated: user {user_id} amount {amount}")
        return DepositLink(deposit=deposit, payment_link=link)

    @staticmethod
    def reconcile(tx_ref, transaction_id) -> ReconcileResult:
        """
        Verify a gateway confirmation and credit the deposit exactly once.

        Every field the gateway reports is checked against the stored
        deposit before any money moves. A verification that is not an
        affirmative success leaves the deposit pending.
        """
        if not transaction_id:
            raise ValidationError("transaction_id is required")

        transaction = get_gateway().verify_transaction(transaction_id)
        if not transaction.is_successful:
            logger.warning(f"Transaction {transaction_id} not successful "
                           f"(status={transaction.status}, tx_ref={tx_ref})")
            raise PaymentNotSuccessful()

        deposit = DepositStore.get_by_tx_ref(tx_ref or transaction.tx_ref)
        if not deposit:
            logger.error(f"Deposit not found for tx_ref {tx_ref or transaction.tx_ref}")
            raise DepositNotFound()

        if deposit.status == DepositStatus.SUCCESSFUL.value:
            logger.info(f"Deposit {deposit.tx_ref} already successful; nothing to credit")
            return ReconcileResult(deposit, False, deposit.promo_applied, True)
        if deposit.status == DepositStatus.FAILED.value:
            raise InvalidStateTransition("Deposit already failed")

        DepositService._check_integrity(deposit, transaction)

        PromoCounter.ensure()
        with user_lock(deposit.user_id):
            with atomic(f"deposit credit tx_ref={deposit.tx_ref}"):
                won = DepositStore.mark_successful(deposit.id, transaction.transaction_id,
                                                   transaction.to_json())
                promo_applied = False
                if won:
                    AccountLedger.credit_deposit(deposit.user_id, deposit.amount)
                    promo_applied = PromoCounter.try_consume()
                    if promo_applied:
                        DepositStore.set_promo_applied(deposit.id)

        db.session.refresh(deposit)
        if not won and deposit.status != DepositStatus.SUCCESSFUL.value:
            raise InvalidStateTransition("Deposit is no longer pending")
        if won:
            logger.info(f"Deposit {deposit.tx_ref} credited {deposit.amount} to user {deposit.user_id}"
                        f"{' (promo applied)' if promo_applied else ''}")
        else:
            logger.info(f"Deposit {deposit.tx_ref} was credited by a concurrent confirmation")
        return ReconcileResult(deposit, won, deposit.promo_applied, not won)

    @staticmethod
    def _check_integrity(deposit, transaction):
        if transaction.tx_ref != deposit.tx_ref:
            logger.error(f"tx_ref mismatch: deposit {deposit.tx_ref}, gateway {transaction.tx_ref}")
            raise ReferenceMismatch()

        currency = current_app.config.get("PAYMENT_CURRENCY", "NGN")
        if transaction.currency and transaction.currency.upper() != currency:
            logger.error(f"Currency mismatch for {deposit.tx_ref}: {transaction.currency}")
            raise AmountMismatch(f"Payment currency must be {currency}")

        if transaction.amount is None or transaction.amount != Decimal(deposit.amount):
            logger.error(f"Amount mismatch for {deposit.tx_ref}: "
                         f"expected {deposit.amount}, gateway {transaction.amount}")
            raise AmountMismatch()
