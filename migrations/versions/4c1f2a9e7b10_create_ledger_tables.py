"""Create users, deposits, withdrawals, daily ad progress and promo tables"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1f2a9e7b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=120), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('verified', sa.Boolean(), nullable=False),
        sa.Column('balance', sa.BigInteger(), server_default=sa.text('0'), nullable=False),
        sa.Column('referral_earnings', sa.BigInteger(), server_default=sa.text('0'), nullable=False),
        sa.Column('referral_code', sa.String(length=80), nullable=False),
        sa.Column('referred_by', sa.String(length=80), nullable=True),
        sa.Column('package_id', sa.Integer(), nullable=True),
        sa.Column('subscribed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_earning_withdrawal', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('balance >= 0', name='chk_user_balance_non_negative'),
        sa.CheckConstraint('referral_earnings >= 0', name='chk_user_referral_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('referral_code'),
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index('idx_user_referral_code', ['referral_code'], unique=False)
        batch_op.create_index(batch_op.f('ix_users_referred_by'), ['referred_by'], unique=False)
        batch_op.create_index(batch_op.f('ix_users_role'), ['role'], unique=False)

    op.create_table(
        'deposits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=120), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('tx_ref', sa.String(length=64), nullable=False),
        sa.Column('tx_id', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('promo_applied', sa.Boolean(), nullable=False),
        sa.Column('gateway_response', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('amount > 0', name='chk_deposit_amount_positive'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tx_ref', name='uq_deposits_tx_ref'),
    )
    with op.batch_alter_table('deposits', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_deposits_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_deposits_tx_id'), ['tx_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_deposits_user_id'), ['user_id'], unique=False)

    op.create_table(
        'withdrawals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('bank', sa.String(length=120), nullable=False),
        sa.Column('account_number', sa.String(length=32), nullable=False),
        sa.Column('account_name', sa.String(length=120), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('amount > 0', name='chk_withdrawal_amount_positive'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('withdrawals', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_withdrawals_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_withdrawals_user_id'), ['user_id'], unique=False)

    op.create_table(
        'daily_ad_progress',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False),
        sa.Column('rewarded', sa.Boolean(), nullable=False),
        sa.CheckConstraint('count >= 0 AND count <= 5', name='chk_ad_progress_count'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'day', name='uq_ad_progress_user_day'),
    )

    op.create_table(
        'promos',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('limit', sa.Integer(), nullable=False),
        sa.Column('used', sa.Integer(), nullable=False),
        sa.CheckConstraint('used <= "limit"', name='chk_promo_used_within_limit'),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade():
    op.drop_table('promos')
    op.drop_table('daily_ad_progress')
    with op.batch_alter_table('withdrawals', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_withdrawals_user_id'))
        batch_op.drop_index(batch_op.f('ix_withdrawals_status'))
    op.drop_table('withdrawals')
    with op.batch_alter_table('deposits', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_deposits_user_id'))
        batch_op.drop_index(batch_op.f('ix_deposits_tx_id'))
        batch_op.drop_index(batch_op.f('ix_deposits_status'))
    op.drop_table('deposits')
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_users_role'))
        batch_op.drop_index(batch_op.f('ix_users_referred_by'))
        batch_op.drop_index('idx_user_referral_code')
    op.drop_table('users')
