# ==========================================================
#                  LEDGER EXCEPTIONS
# ==========================================================
"""
Every rule the ledger enforces fails with a subclass of LedgerError.
The HTTP layer maps them to a status code and a stable ``error`` code.
"""


class LedgerError(Exception):
    """Base ledger exception"""
    status_code = 500
    code = "server_error"
    message = "Server error"

    def __init__(self, message=None, **details):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        payload = {"success": False, "error": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


# ---------------------------------------------------------- 400 validation
class ValidationError(LedgerError):
    status_code = 400
    code = "validation_error"
    message = "Invalid request"


class InvalidAmount(ValidationError):
    code = "invalid_amount"
    message = "Amount must be a positive whole number"


class BelowMinimumDeposit(ValidationError):
    code = "below_minimum_deposit"
    message = "Minimum deposit is ₦5,000"


class BelowMinimumWithdrawal(ValidationError):
    code = "below_minimum_withdrawal"
    message = "Minimum referral withdrawal is ₦5,000"


class InvalidWithdrawalType(ValidationError):
    code = "invalid_withdrawal_type"
    message = "Withdrawal type must be 'referral' or 'earning'"


# ---------------------------------------------------------- 404 not found
class NotFound(LedgerError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class UserNotFound(NotFound):
    code = "user_not_found"
    message = "User not found"


class DepositNotFound(NotFound):
    code = "deposit_not_found"
    message = "Deposit not found"


class WithdrawalNotFound(NotFound):
    code = "withdrawal_not_found"
    message = "Withdrawal not found"


class UnknownPackage(NotFound):
    status_code = 400
    code = "unknown_package"
    message = "Invalid package"


# ---------------------------------------------------------- 401 / 403
class Unauthorized(LedgerError):
    status_code = 401
    code = "unauthorized"
    message = "Invalid credentials"


class Forbidden(LedgerError):
    status_code = 403
    code = "forbidden"
    message = "Forbidden"


# ---------------------------------------------------------- 400 business rules
class BusinessRuleViolation(LedgerError):
    status_code = 400
    code = "business_rule_violation"
    message = "Request not allowed"


class InsufficientFunds(BusinessRuleViolation):
    code = "insufficient_funds"
    message = "Insufficient balance"


class CooldownActive(BusinessRuleViolation):
    code = "cooldown_active"
    message = "Earnings can only be withdrawn once every 7 days"


class NoActiveSubscription(BusinessRuleViolation):
    code = "no_active_subscription"
    message = "Subscribe to a package first"


class AmountMismatch(BusinessRuleViolation):
    code = "amount_mismatch"
    message = "Paid amount does not match the deposit"


class ReferenceMismatch(BusinessRuleViolation):
    code = "reference_mismatch"
    message = "Payment does not belong to this deposit"


class PaymentNotSuccessful(BusinessRuleViolation):
    code = "payment_not_successful"
    message = "Payment was not successful"


class InvalidStateTransition(BusinessRuleViolation):
    code = "invalid_state_transition"
    message = "Request is no longer pending"


# ---------------------------------------------------------- 502 upstream
class UpstreamFailure(LedgerError):
    status_code = 502
    code = "upstream_failure"
    message = "Payment provider unavailable. Please try again."
