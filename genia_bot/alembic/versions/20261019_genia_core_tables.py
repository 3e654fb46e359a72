# alembic revision: users, whatsapp_messages, user_actions, auth_tokens, subscriptions
from alembic import op
import sqlalchemy as sa

revision = '20261019_genia_core_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone_number', sa.String(20), nullable=False, unique=True),
        sa.Column('plan', sa.String(20), nullable=False, server_default='free'),
        sa.Column('credits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True),
                  server_default=sa.text("now()")),
        sa.CheckConstraint('credits >= 0', name='ck_users_credits_nonneg'),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table(
        'whatsapp_messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('message_sid', sa.Text(), nullable=True),
        sa.Column('from_number', sa.String(20), nullable=False),
        sa.Column('to_number', sa.String(20), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('direction', sa.String(10), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('clone_type', sa.String(20), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True),
                  server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("direction IN ('inbound','outbound')", name='ck_whatsapp_messages_direction'),
    )
    op.create_index('ix_whatsapp_messages_from_created', 'whatsapp_messages', ['from_number', 'created_at'])
    op.create_index('ix_whatsapp_messages_to_created', 'whatsapp_messages', ['to_number', 'created_at'])

    op.create_table(
        'user_actions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action_type', sa.String(50), nullable=False),
        sa.Column('clone_type', sa.String(20), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True),
                  server_default=sa.text("now()"), nullable=False),
    )
    op.create_index(
        'ix_user_actions_user_type_created',
        'user_actions',
        ['user_id', 'action_type', 'created_at']
    )

    op.create_table(
        'auth_tokens',
        sa.Column('token_hash', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True),
                  server_default=sa.text("now()")),
    )
    op.create_index('ix_auth_tokens_user_id', 'auth_tokens', ['user_id'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('stripe_subscription_id', sa.String(255), nullable=False, unique=True),
        sa.Column('stripe_customer_id', sa.String(255), nullable=True),
        sa.Column('stripe_price_id', sa.String(255), nullable=True),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('plan', sa.String(20), nullable=False),
        sa.Column('current_period_start', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('current_period_end', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True),
                  server_default=sa.text("now()")),
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'])


def downgrade():
    op.drop_index('ix_subscriptions_user_id', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_index('ix_auth_tokens_user_id', table_name='auth_tokens')
    op.drop_table('auth_tokens')
    op.drop_index('ix_user_actions_user_type_created', table_name='user_actions')
    op.drop_table('user_actions')
    op.drop_index('ix_whatsapp_messages_to_created', table_name='whatsapp_messages')
    op.drop_index('ix_whatsapp_messages_from_created', table_name='whatsapp_messages')
    op.drop_table('whatsapp_messages')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
