# ==========================================================
#                  WITHDRAWAL REQUEST QUEUE
# ==========================================================
from typing import List, Optional
from ledger.errors import WithdrawalNotFound, InvalidStateTransition, ValidationError
from ledger.locks import user_lock
from ledger.stores import UserStore, WithdrawalStore, atomic
from logger import ledger_logger as logger
from extensions import db
from models import Withdrawal, WithdrawalStatus, WithdrawalType


class WithdrawalQueue:
    """
    Pending payout requests awaiting an admin decision. Funds have already
    left the ledger when a request is submitted; approving only records the
    decision, rejecting refunds the reserved amount.
    """

    @staticmethod
    def submit(user_id: int, withdrawal_type: str, amount: int, destination: dict) -> Withdrawal:
        """Enqueue inside the caller's transaction, after its debit went through."""
        return WithdrawalStore.create(user_id, withdrawal_type, amount, destination)

    @staticmethod
    def approve(withdrawal_id) -> Withdrawal:
        withdrawal = WithdrawalStore.get(withdrawal_id)
        if not withdrawal:
            raise WithdrawalNotFound()

        with atomic(f"approve withdrawal={withdrawal.id}"):
            won = WithdrawalStore.transition(withdrawal.id, WithdrawalStatus.PENDING, WithdrawalStatus.APPROVED)

        db.session.refresh(withdrawal)
        if not won:
            if withdrawal.status == WithdrawalStatus.APPROVED.value:
                return withdrawal
            raise InvalidStateTransition(f"Withdrawal already {withdrawal.status}")

        logger.info(f"Withdrawal {withdrawal.id} approved ({withdrawal.type} {withdrawal.amount} "
                    f"for user {withdrawal.user_id})")
        return withdrawal

    @staticmethod
    def reject(withdrawal_id) -> Withdrawal:
        withdrawal = WithdrawalStore.get(withdrawal_id)
        if not withdrawal:
            raise WithdrawalNotFound()

        with user_lock(withdrawal.user_id):
            with atomic(f"reject withdrawal={withdrawal.id}"):
                won = WithdrawalStore.transition(withdrawal.id, WithdrawalStatus.PENDING,
                                                 WithdrawalStatus.REJECTED)
                if won:
                    if withdrawal.type == WithdrawalType.REFERRAL.value:
                        UserStore.credit_referral_earnings(withdrawal.user_id, withdrawal.amount)
                    else:
                        UserStore.credit_balance(withdrawal.user_id, withdrawal.amount)

        db.session.refresh(withdrawal)
        if not won:
            if withdrawal.status == WithdrawalStatus.REJECTED.value:
                return withdrawal
            raise InvalidStateTransition(f"Withdrawal already {withdrawal.status}")

        logger.info(f"Withdrawal {withdrawal.id} rejected; {withdrawal.amount} refunded to "
                    f"user {withdrawal.user_id} {withdrawal.type}")
        return withdrawal

    @staticmethod
    def list_requests(status: Optional[str] = None) -> List[Withdrawal]:
        if status:
            try:
                status = WithdrawalStatus(status.lower()).value
            except ValueError:
                raise ValidationError("Unknown withdrawal status")
        return WithdrawalStore.list_by_status(status)
