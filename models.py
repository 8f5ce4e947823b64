# models.py: Flask-SQLAlchemy models for the HIGHTECH ledger
from datetime import datetime, timezone
import enum
from sqlalchemy import UniqueConstraint, Index, CheckConstraint, text
from extensions import db
from werkzeug.security import check_password_hash, generate_password_hash
from flask_login import UserMixin

# ===========================================================
# ENUM DEFINITIONS
# ===========================================================

class DepositStatus(enum.Enum):
    PENDING = "pending"
    SUCCESSFUL = "successful"
    FAILED = "failed"


class WithdrawalStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WithdrawalType(enum.Enum):
    REFERRAL = "referral"
    EARNING = "earning"


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def isoformat(value):
    return as_utc(value).isoformat() if value else None


# ===========================================================
# BASE MIXIN FOR COMMON FIELDS
# ===========================================================

class BaseMixin:
    """Provides created_at and updated_at timestamps to inheriting models."""
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

# ===========================================================
# USER
# ===========================================================

class User(UserMixin, db.Model, BaseMixin):
    """Identity plus the ledger fields. Balances are integer minor units."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="user", index=True)
    verified = db.Column(db.Boolean, nullable=False, default=True)

    balance = db.Column(db.BigInteger, nullable=False, default=0, server_default=text("0"))
    referral_earnings = db.Column(db.BigInteger, nullable=False, default=0, server_default=text("0"))

    referral_code = db.Column(db.String(80), unique=True, nullable=False)
    referred_by = db.Column(db.String(80), nullable=True, index=True)  # referrer's code, not an FK

    package_id = db.Column(db.Integer, nullable=True)
    subscribed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_earning_withdrawal = db.Column(db.DateTime(timezone=True), nullable=True)

    deposits = db.relationship('Deposit', back_populates='user', lazy='dynamic')
    withdrawals = db.relationship('Withdrawal', back_populates='user', lazy='dynamic')

    __table_args__ = (
        CheckConstraint('balance >= 0', name='chk_user_balance_non_negative'),
        CheckConstraint('referral_earnings >= 0', name='chk_user_referral_non_negative'),
        Index('idx_user_referral_code', 'referral_code'),
    )

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == "admin"

    def to_dict(self):
        """Safe projection returned by login; never includes the password hash."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "balance": self.balance,
            "referralEarnings": self.referral_earnings,
            "referralCode": self.referral_code,
            "packageId": self.package_id,
            "subscribedAt": isoformat(self.subscribed_at),
        }

    def to_admin_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "balance": self.balance,
            "referralEarnings": self.referral_earnings,
            "packageId": self.package_id,
            "createdAt": isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.id} {self.email}>'

# ===========================================================
# DEPOSITS
# ===========================================================

class Deposit(db.Model, BaseMixin):
    __tablename__ = 'deposits'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    email = db.Column(db.String(120), nullable=False)
    amount = db.Column(db.BigInteger, nullable=False)
    tx_ref = db.Column(db.String(64), nullable=False)
    tx_id = db.Column(db.String(64), nullable=True, index=True)
    status = db.Column(db.String(20), nullable=False, default=DepositStatus.PENDING.value, index=True)
    promo_applied = db.Column(db.Boolean, nullable=False, default=False)
    gateway_response = db.Column(db.Text)

    user = db.relationship('User', back_populates='deposits')

    __table_args__ = (
        UniqueConstraint('tx_ref', name='uq_deposits_tx_ref'),
        CheckConstraint('amount > 0', name='chk_deposit_amount_positive'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "email": self.email,
            "amount": self.amount,
            "txRef": self.tx_ref,
            "txId": self.tx_id,
            "status": self.status,
            "promoApplied": self.promo_applied,
            "createdAt": isoformat(self.created_at),
        }

# ===========================================================
# WITHDRAWALS
# ===========================================================

class Withdrawal(db.Model, BaseMixin):
    __tablename__ = 'withdrawals'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False)
    amount = db.Column(db.BigInteger, nullable=False)
    bank = db.Column(db.String(120), nullable=False)
    account_number = db.Column(db.String(32), nullable=False)
    account_name = db.Column(db.String(120), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=WithdrawalStatus.PENDING.value, index=True)
    processed_at = db.Column(db.DateTime(timezone=True))

    user = db.relationship('User', back_populates='withdrawals')

    __table_args__ = (
        CheckConstraint('amount > 0', name='chk_withdrawal_amount_positive'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "amount": self.amount,
            "bank": self.bank,
            "accountNumber": self.account_number,
            "accountName": self.account_name,
            "status": self.status,
            "createdAt": isoformat(self.created_at),
            "processedAt": isoformat(self.processed_at),
        }

# ===========================================================
# DAILY AD PROGRESS & PROMO
# ===========================================================

class DailyAdProgress(db.Model):
    """One row per (user, UTC calendar day). Missing row == nothing watched."""
    __tablename__ = 'daily_ad_progress'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    day = db.Column(db.Date, nullable=False)
    count = db.Column(db.Integer, nullable=False, default=0)
    rewarded = db.Column(db.Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'day', name='uq_ad_progress_user_day'),
        CheckConstraint('count >= 0 AND count <= 5', name='chk_ad_progress_count'),
    )


class Promo(db.Model):
    __tablename__ = 'promos'

    id = db.Column(db.Integer, primary_key=True)
    limit = db.Column(db.Integer, nullable=False)
    used = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint('used <= "limit"', name='chk_promo_used_within_limit'),
    )

    def to_dict(self):
        return {"limit": self.limit, "used": self.used}
