"""Create claims, rules, evaluation, assessment and audit tables

Revision ID: 0001a2b3c4d5
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001a2b3c4d5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. Claims and their attachments
    op.create_table(
        'claims',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('claim_id', sa.String(length=30), nullable=False),
        sa.Column('policy_id', sa.String(length=64), nullable=False),
        sa.Column('claimant_name', sa.String(length=200), nullable=False),
        sa.Column('claimant_age', sa.Integer(), nullable=True),
        sa.Column('claimed_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('risk_score', sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column('risk_level', sa.String(length=10), nullable=True),
        sa.Column('risk_reasons', sa.JSON(), nullable=False),
        sa.Column('validated', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_claims_claim_id', 'claims', ['claim_id'], unique=True)
    op.create_index('ix_claims_policy_id', 'claims', ['policy_id'])
    op.create_index('ix_claims_claimant_name', 'claims', ['claimant_name'])
    op.create_index('ix_claims_status', 'claims', ['status'])
    op.create_index('ix_claims_risk_level', 'claims', ['risk_level'])
    op.create_index('ix_claims_created_at', 'claims', ['created_at'])

    op.create_table(
        'claim_attachments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('claim_pk', sa.Integer(), sa.ForeignKey('claims.id'), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('content_type', sa.String(length=120), nullable=False),
        sa.Column('storage_handle', sa.String(length=255), nullable=False),
        sa.Column('document_type', sa.String(length=30), nullable=False),
        sa.Column('size_bytes', sa.Integer(), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_claim_attachments_claim_pk', 'claim_attachments', ['claim_pk'])

    # 2. Rule catalog with activation history
    op.create_table(
        'rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('rule_id', sa.String(length=40), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=False),
        sa.Column('rule_type', sa.String(length=20), nullable=False),
        sa.Column('priority', sa.String(length=10), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('parameters', sa.JSON(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('last_modified_by', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_rules_rule_id', 'rules', ['rule_id'], unique=True)
    op.create_index('ix_rules_rule_type', 'rules', ['rule_type'])

    op.create_table(
        'rule_activations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('rule_pk', sa.Integer(), sa.ForeignKey('rules.id'), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('actor', sa.String(length=100), nullable=False),
        sa.Column('changed_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_rule_activations_rule_pk', 'rule_activations', ['rule_pk'])

    # 3. Immutable evaluation and fraud assessment history
    op.create_table(
        'evaluation_results',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('evaluation_id', sa.String(length=36), nullable=False),
        sa.Column('claim_pk', sa.Integer(), sa.ForeignKey('claims.id'), nullable=False),
        sa.Column('recommendation', sa.String(length=20), nullable=False),
        sa.Column('verdicts', sa.JSON(), nullable=False),
        sa.Column('rule_snapshot', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_evaluation_results_evaluation_id', 'evaluation_results', ['evaluation_id'], unique=True)
    op.create_index('ix_evaluation_results_claim_pk', 'evaluation_results', ['claim_pk'])

    op.create_table(
        'fraud_assessments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('assessment_id', sa.String(length=36), nullable=False),
        sa.Column('claim_pk', sa.Integer(), sa.ForeignKey('claims.id'), nullable=False),
        sa.Column('external_score', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('risk_score', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('risk_level', sa.String(length=10), nullable=False),
        sa.Column('reasons', sa.JSON(), nullable=False),
        sa.Column('duplicate_claim_ids', sa.JSON(), nullable=False),
        sa.Column('recommendation', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_fraud_assessments_assessment_id', 'fraud_assessments', ['assessment_id'], unique=True)
    op.create_index('ix_fraud_assessments_claim_pk', 'fraud_assessments', ['claim_pk'])
    op.create_index('ix_fraud_assessments_risk_level', 'fraud_assessments', ['risk_level'])

    # 4. Append-only, per-resource hash-chained audit log
    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.String(length=36), nullable=False),
        sa.Column('event_type', sa.String(length=30), nullable=False),
        sa.Column('actor', sa.String(length=100), nullable=False),
        sa.Column('action', sa.String(length=500), nullable=False),
        sa.Column('resource_type', sa.String(length=30), nullable=False),
        sa.Column('resource_id', sa.String(length=50), nullable=False),
        sa.Column('prior_status', sa.String(length=20), nullable=True),
        sa.Column('new_status', sa.String(length=20), nullable=True),
        sa.Column('evaluation_id', sa.String(length=36), nullable=True),
        sa.Column('assessment_id', sa.String(length=36), nullable=True),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('previous_hash', sa.String(length=64), nullable=True),
        sa.Column('current_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_log_event_id', 'audit_log', ['event_id'], unique=True)
    op.create_index('ix_audit_log_event_type', 'audit_log', ['event_type'])
    op.create_index('ix_audit_log_resource_id', 'audit_log', ['resource_id'])
    op.create_index('ix_audit_log_created_at', 'audit_log', ['created_at'])


def downgrade() -> None:
    op.drop_table('audit_log')
    op.drop_table('fraud_assessments')
    op.drop_table('evaluation_results')
    op.drop_table('rule_activations')
    op.drop_table('rules')
    op.drop_table('claim_attachments')
    op.drop_table('claims')
