# ledger/referrals.py
import secrets
import string
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from ledger.errors import UserNotFound
from ledger.stores import UserStore
from logger import ledger_logger as logger
from models import isoformat

REFERRAL_RATE = Decimal("0.10")
CODE_ATTEMPTS = 10


def commission(amount, rate=REFERRAL_RATE) -> int:
    """Referral commission in whole units, rounded half-up."""
    value = Decimal(str(amount)) * Decimal(str(rate))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _code_prefix(email: str) -> str:
    local_part = (email or "").split("@")[0]
    return "".join(ch for ch in local_part if ch.isalnum()).upper()[:40] or "HT"


def generate_referral_code(email: str) -> str:
    """
    Email local part plus a random number below 9000, uppercased,
    e.g. JOHN4821. Retries on collision, then falls back to a longer
    alphanumeric suffix.
    """
    prefix = _code_prefix(email)
    for _ in range(CODE_ATTEMPTS):
        code = f"{prefix}{secrets.randbelow(9000)}"
        if not UserStore.referral_code_taken(code):
            return code

    chars = string.ascii_uppercase + string.digits
    while True:
        code = prefix + ''.join(secrets.choice(chars) for _ in range(8))
        if not UserStore.referral_code_taken(code):
            logger.info(f"Referral code fallback used for prefix {prefix}")
            return code


def register_referral(new_user, referral_code: Optional[str]):
    """
    Link a user being signed up to the owner of referral_code.
    The edge is written once, here, and never re-parented. Unknown
    codes are ignored. Returns the referrer or None.
    """
    code = (referral_code or "").strip().upper()
    if not code:
        return None

    referrer = UserStore.get_by_referral_code(code)
    if not referrer:
        logger.info(f"Signup with unknown referral code {code} ignored")
        return None

    if new_user.referred_by:
        return None

    new_user.referred_by = referrer.referral_code
    logger.info(f"User {new_user.email} referred by {referrer.id} ({code})")
    return referrer


def list_referrals(user_id):
    user = UserStore.get(user_id)
    if not user:
        raise UserNotFound()
    return [
        {"name": referred.name, "email": referred.email, "createdAt": isoformat(referred.created_at)}
        for referred in UserStore.list_referred_by(user.referral_code)
    ]
