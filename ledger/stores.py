# ledger/stores.py
"""
Repositories over the ledger tables.

These are the only code paths that change balances or statuses. Every
monetary mutation is a single conditional UPDATE, so a concurrent writer in
another worker process can never push a balance below zero, credit a
deposit twice or overrun the promo limit. The boolean result tells the
caller whether its compare-and-set won.

Nothing here commits except PromoStore.get_or_create, which seeds the
singleton row in its own short transaction. The calling service owns
every other transaction.
"""
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy import update, func
from sqlalchemy.exc import IntegrityError
from extensions import db
from ledger.errors import LedgerError
from logger import ledger_logger as logger
from models import (User, Deposit, Withdrawal, DailyAdProgress, Promo,
                    DepositStatus, WithdrawalStatus)

PROMO_ID = 1


def _compare_and_set(stmt) -> bool:
    result = db.session.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount == 1


@contextmanager
def atomic(action: str):
    """Commit on success, roll back on any error. Unexpected errors are logged here."""
    try:
        yield db.session
        db.session.commit()
    except LedgerError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"{action} failed: {e}", exc_info=True)
        raise


# ==========================================================
#                  USERS
# ==========================================================
class UserStore:

    @staticmethod
    def get(user_id) -> Optional[User]:
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    @staticmethod
    def get_for_update(user_id) -> Optional[User]:
        """Row-locked read (FOR UPDATE on Postgres, plain SELECT on SQLite)."""
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            return None
        return (User.query.filter_by(id=user_id)
                .with_for_update()
                .populate_existing()
                .first())

    @staticmethod
    def get_by_email(email: str) -> Optional[User]:
        return User.query.filter(func.lower(User.email) == (email or "").strip().lower()).first()

    @staticmethod
    def get_by_referral_code(code: str) -> Optional[User]:
        if not code:
            return None
        return User.query.filter_by(referral_code=code).first()

    @staticmethod
    def referral_code_taken(code: str) -> bool:
        return db.session.query(User.id).filter_by(referral_code=code).first() is not None

    @staticmethod
    def add(user: User) -> User:
        db.session.add(user)
        db.session.flush()
        return user

    @staticmethod
    def list_all() -> List[User]:
        return User.query.order_by(User.created_at.desc()).all()

    @staticmethod
    def list_referred_by(code: str) -> List[User]:
        return User.query.filter_by(referred_by=code).order_by(User.created_at.asc(), User.id.asc()).all()

    @staticmethod
    def debit_balance(user_id: int, amount: int, **values) -> bool:
        """balance -= amount only if balance >= amount; extra column values ride along."""
        stmt = (update(User)
                .where(User.id == user_id, User.balance >= amount)
                .values(balance=User.balance - amount, **values))
        return _compare_and_set(stmt)

    @staticmethod
    def credit_balance(user_id: int, amount: int) -> bool:
        stmt = (update(User)
                .where(User.id == user_id)
                .values(balance=User.balance + amount))
        return _compare_and_set(stmt)

    @staticmethod
    def debit_referral_earnings(user_id: int, amount: int) -> bool:
        stmt = (update(User)
                .where(User.id == user_id, User.referral_earnings >= amount)
                .values(referral_earnings=User.referral_earnings - amount))
        return _compare_and_set(stmt)

    @staticmethod
    def credit_referral_earnings(user_id: int, amount: int) -> bool:
        stmt = (update(User)
                .where(User.id == user_id)
                .values(referral_earnings=User.referral_earnings + amount))
        return _compare_and_set(stmt)


# ==========================================================
#                  DEPOSITS
# ==========================================================
class DepositStore:

    @staticmethod
    def create(user: User, amount: int, tx_ref: str) -> Deposit:
        deposit = Deposit(
            user_id=user.id,
            email=user.email,
            amount=amount,
            tx_ref=tx_ref,
            status=DepositStatus.PENDING.value,
            promo_applied=False,
        )
        db.session.add(deposit)
        db.session.flush()
        return deposit

    @staticmethod
    def get_by_tx_ref(tx_ref: str) -> Optional[Deposit]:
        if not tx_ref:
            return None
        return Deposit.query.filter_by(tx_ref=tx_ref).first()

    @staticmethod
    def mark_successful(deposit_id: int, tx_id: str, gateway_response: str) -> bool:
        stmt = (update(Deposit)
                .where(Deposit.id == deposit_id, Deposit.status == DepositStatus.PENDING.value)
                .values(status=DepositStatus.SUCCESSFUL.value,
                        tx_id=tx_id,
                        gateway_response=gateway_response,
                        updated_at=datetime.now(timezone.utc)))
        return _compare_and_set(stmt)

    @staticmethod
    def mark_failed(deposit_id: int, gateway_response: Optional[str] = None) -> bool:
        stmt = (update(Deposit)
                .where(Deposit.id == deposit_id, Deposit.status == DepositStatus.PENDING.value)
                .values(status=DepositStatus.FAILED.value,
                        gateway_response=gateway_response,
                        updated_at=datetime.now(timezone.utc)))
        return _compare_and_set(stmt)

    @staticmethod
    def set_promo_applied(deposit_id: int) -> bool:
        stmt = update(Deposit).where(Deposit.id == deposit_id).values(promo_applied=True)
        return _compare_and_set(stmt)

    @staticmethod
    def list_recent(limit: int = 200) -> List[Deposit]:
        return Deposit.query.order_by(Deposit.created_at.desc(), Deposit.id.desc()).limit(limit).all()


# ==========================================================
#                  WITHDRAWALS
# ==========================================================
class WithdrawalStore:

    @staticmethod
    def create(user_id: int, withdrawal_type: str, amount: int, destination: dict) -> Withdrawal:
        withdrawal = Withdrawal(
            user_id=user_id,
            type=withdrawal_type,
            amount=amount,
            bank=destination["bank"],
            account_number=destination["account_number"],
            account_name=destination["account_name"],
            status=WithdrawalStatus.PENDING.value,
        )
        db.session.add(withdrawal)
        db.session.flush()
        return withdrawal

    @staticmethod
    def get(withdrawal_id) -> Optional[Withdrawal]:
        try:
            return db.session.get(Withdrawal, int(withdrawal_id))
        except (TypeError, ValueError):
            return None

    @staticmethod
    def transition(withdrawal_id: int, from_status: WithdrawalStatus, to_status: WithdrawalStatus) -> bool:
        stmt = (update(Withdrawal)
                .where(Withdrawal.id == withdrawal_id, Withdrawal.status == from_status.value)
                .values(status=to_status.value, processed_at=datetime.now(timezone.utc)))
        return _compare_and_set(stmt)

    @staticmethod
    def list_by_status(status: Optional[str] = None, limit: int = 200) -> List[Withdrawal]:
        query = Withdrawal.query
        if status:
            query = query.filter_by(status=status)
        return query.order_by(Withdrawal.created_at.desc(), Withdrawal.id.desc()).limit(limit).all()


# ==========================================================
#                  DAILY AD PROGRESS
# ==========================================================
class AdProgressStore:

    @staticmethod
    def get(user_id: int, day) -> Optional[DailyAdProgress]:
        return (DailyAdProgress.query
                .filter_by(user_id=user_id, day=day)
                .populate_existing()
                .first())

    @staticmethod
    def get_or_create(user_id: int, day) -> DailyAdProgress:
        """
        Must be the first write of the transaction: a losing insert race is
        resolved by rolling back and reading the winner's row.
        """
        progress = AdProgressStore.get(user_id, day)
        if progress:
            return progress
        progress = DailyAdProgress(user_id=user_id, day=day, count=0, rewarded=False)
        db.session.add(progress)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            progress = AdProgressStore.get(user_id, day)
        return progress

    @staticmethod
    def increment(progress_id: int, cap: int) -> bool:
        stmt = (update(DailyAdProgress)
                .where(DailyAdProgress.id == progress_id,
                       DailyAdProgress.count < cap,
                       DailyAdProgress.rewarded.is_(False))
                .values(count=DailyAdProgress.count + 1))
        return _compare_and_set(stmt)

    @staticmethod
    def mark_rewarded(progress_id: int, cap: int) -> bool:
        stmt = (update(DailyAdProgress)
                .where(DailyAdProgress.id == progress_id,
                       DailyAdProgress.count == cap,
                       DailyAdProgress.rewarded.is_(False))
                .values(rewarded=True))
        return _compare_and_set(stmt)


# ==========================================================
#                  PROMO
# ==========================================================
class PromoStore:

    @staticmethod
    def get() -> Optional[Promo]:
        return db.session.get(Promo, PROMO_ID, populate_existing=True)

    @staticmethod
    def get_or_create(limit: int) -> Promo:
        promo = PromoStore.get()
        if promo:
            return promo
        promo = Promo(id=PROMO_ID, limit=limit, used=0)
        db.session.add(promo)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            promo = PromoStore.get()
        return promo

    @staticmethod
    def try_consume() -> bool:
        stmt = (update(Promo)
                .where(Promo.id == PROMO_ID, Promo.used < Promo.limit)
                .values(used=Promo.used + 1))
        return _compare_and_set(stmt)
