"""create_role_tag_tables

Revision ID: d3f1c0a9b7e2
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'd3f1c0a9b7e2'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table('accounts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('login', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('company', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_accounts_login', 'accounts', ['login'], unique=True)

    op.create_table('sub_users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('login', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('company', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'login', name='uq_sub_user_login'),
    )
    op.create_index('ix_sub_users_account_id', 'sub_users', ['account_id'])

    op.create_table('policies',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('rules', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'name', name='uq_policy_name'),
    )
    op.create_index('ix_policies_account_id', 'policies', ['account_id'])

    # Members and policies are stored as lists of DNs
    op.create_table('roles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('members', sa.JSON(), nullable=False),
        sa.Column('default_members', sa.JSON(), nullable=False),
        sa.Column('policies', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'name', name='uq_role_name'),
    )
    op.create_index('ix_roles_account_id', 'roles', ['account_id'])

    op.create_table('account_resources',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=512), nullable=False),
        sa.Column('member_roles', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'name', name='uq_account_resource_name'),
    )
    op.create_index('ix_account_resources_account_id', 'account_resources', ['account_id'])

    op.create_table('machines',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('alias', sa.String(length=189), nullable=True),
        sa.Column('state', sa.Enum('PROVISIONING', 'RUNNING', 'STOPPED', 'DESTROYED', name='machinestate'),
                  nullable=False),
        sa.Column('role_tags', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['owner_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_machines_owner_id', 'machines', ['owner_id'])


def downgrade() -> None:
    op.drop_index('ix_machines_owner_id', table_name='machines')
    op.drop_table('machines')
    sa.Enum(name='machinestate').drop(op.get_bind(), checkfirst=True)

    op.drop_index('ix_account_resources_account_id', table_name='account_resources')
    op.drop_table('account_resources')

    op.drop_index('ix_roles_account_id', table_name='roles')
    op.drop_table('roles')

    op.drop_index('ix_policies_account_id', table_name='policies')
    op.drop_table('policies')

    op.drop_index('ix_sub_users_account_id', table_name='sub_users')
    op.drop_table('sub_users')

    op.drop_index('ix_accounts_login', table_name='accounts')
    op.drop_table('accounts')
