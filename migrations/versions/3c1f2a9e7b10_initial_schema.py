"""Initial schema: companies, users, approval rules, expenses, approval steps, audit log

Revision ID: 3c1f2a9e7b10
Revises:
Create Date: 2025-10-04 09:12:44.118203

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '3c1f2a9e7b10'
down_revision = None
branch_labels = None
depends_on = None

RULE_TYPES = ('PERCENTAGE', 'SPECIFIC_APPROVER', 'HYBRID')


def upgrade():
    op.create_table(
        'companies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('country', sa.String(length=120), nullable=True),
        sa.Column('base_currency', sa.String(length=10), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=True),
        sa.Column('role', sa.Enum('ADMIN', 'MANAGER', 'EMPLOYEE', name='user_role'), nullable=False),
        sa.Column('manager_id', sa.Integer(), nullable=True),
        sa.Column('department', sa.String(length=120), nullable=True),
        sa.Column('job_title', sa.String(length=120), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['manager_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_company_id', 'users', ['company_id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_manager_id', 'users', ['manager_id'])

    op.create_table(
        'approval_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('rule_type', sa.Enum(*RULE_TYPES, name='approval_rule_type'), nullable=False),
        sa.Column('percentage', sa.Integer(), nullable=True),
        sa.Column('specific_approver', sa.String(length=255), nullable=True),
        sa.Column('approvers', sa.JSON(), nullable=False),
        sa.Column('amount_threshold', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('category', sa.String(length=120), nullable=True),
        sa.Column('department', sa.String(length=120), nullable=True),
        sa.Column('is_sequential', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_approval_rules_company_id', 'approval_rules', ['company_id'])

    op.create_table(
        'expenses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('submitter_user_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('amount_in_company_currency', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('category', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('department', sa.String(length=120), nullable=True),
        sa.Column('date_spent', sa.Date(), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'APPROVED', 'REJECTED', name='expense_status'), nullable=False),
        sa.Column('approval_rule_id', sa.Integer(), nullable=True),
        sa.Column(
            'rule_type',
            postgresql.ENUM(*RULE_TYPES, name='approval_rule_type', create_type=False),
            nullable=False,
        ),
        sa.Column('percentage_threshold', sa.Integer(), nullable=True),
        sa.Column('is_sequential', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('decided_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['approval_rule_id'], ['approval_rules.id']),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['submitter_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_expenses_company_id', 'expenses', ['company_id'])
    op.create_index('ix_expenses_submitter_user_id', 'expenses', ['submitter_user_id'])

    op.create_table(
        'approval_steps',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('expense_id', sa.Integer(), nullable=False),
        sa.Column('approver_user_id', sa.Integer(), nullable=False),
        sa.Column('sequence_index', sa.Integer(), nullable=False),
        sa.Column(
            'status',
            sa.Enum('PENDING', 'APPROVED', 'REJECTED', 'SKIPPED', name='approval_decision_status'),
            nullable=False,
        ),
        sa.Column('is_specific_approver', sa.Boolean(), nullable=False),
        sa.Column('counts_toward_percentage', sa.Boolean(), nullable=False),
        sa.Column('required', sa.Boolean(), nullable=False),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['approver_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['expense_id'], ['expenses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('expense_id', 'approver_user_id', name='uq_approval_steps_expense_approver'),
        sa.UniqueConstraint('expense_id', 'sequence_index', name='uq_approval_steps_expense_sequence'),
    )
    op.create_index('ix_approval_steps_expense_id', 'approval_steps', ['expense_id'])
    op.create_index('ix_approval_steps_approver_user_id', 'approval_steps', ['approver_user_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('entity_type', sa.String(length=120), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=120), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('extra_data', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_company_id', 'audit_logs', ['company_id'])


def downgrade():
    op.drop_index('ix_audit_logs_company_id', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_approval_steps_approver_user_id', table_name='approval_steps')
    op.drop_index('ix_approval_steps_expense_id', table_name='approval_steps')
    op.drop_table('approval_steps')
    op.drop_index('ix_expenses_submitter_user_id', table_name='expenses')
    op.drop_index('ix_expenses_company_id', table_name='expenses')
    op.drop_table('expenses')
    op.drop_index('ix_approval_rules_company_id', table_name='approval_rules')
    op.drop_table('approval_rules')
    op.drop_index('ix_users_manager_id', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_company_id', table_name='users')
    op.drop_table('users')
    op.drop_table('companies')

    bind = op.get_bind()
    for enum_name in ('approval_decision_status', 'expense_status', 'approval_rule_type', 'user_role'):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
