"""create interaction session, question, option, participant and response tables

Revision ID: 4b7d2e91c0aa
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4b7d2e91c0aa'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'interaction_session',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('required_participant_fields', sa.Text(), nullable=True),
        sa.Column('current_question_index', sa.Integer(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_interaction_session_status', 'interaction_session', ['status'])

    op.create_table(
        'interaction_question',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('correct_option_id', sa.String(length=64), nullable=True),
        sa.Column('duration', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['session_id'], ['interaction_session.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_interaction_question_session_id', 'interaction_question', ['session_id'])

    op.create_table(
        'question_option',
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('text', sa.String(length=512), nullable=False),
        sa.ForeignKeyConstraint(['question_id'], ['interaction_question.id']),
        sa.PrimaryKeyConstraint('question_id', 'id'),
    )

    op.create_table(
        'participant',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('external_id', sa.String(length=64), nullable=True),
        sa.Column('organization', sa.String(length=128), nullable=True),
        sa.Column('mobile', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=254), nullable=True),
        sa.Column('location', sa.String(length=128), nullable=True),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['session_id'], ['interaction_session.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_participant_session_id', 'participant', ['session_id'])

    op.create_table(
        'interaction_response',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('participant_id', sa.Integer(), nullable=False),
        sa.Column('answer', sa.Text(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['session_id'], ['interaction_session.id']),
        sa.ForeignKeyConstraint(['question_id'], ['interaction_question.id']),
        sa.ForeignKeyConstraint(['participant_id'], ['participant.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('participant_id', 'question_id', name='uq_response_participant_question'),
    )
    op.create_index('ix_interaction_response_session_id', 'interaction_response', ['session_id'])
    op.create_index('ix_interaction_response_question_id', 'interaction_response', ['question_id'])


def downgrade():
    op.drop_index('ix_interaction_response_question_id', table_name='interaction_response')
    op.drop_index('ix_interaction_response_session_id', table_name='interaction_response')
    op.drop_table('interaction_response')
    op.drop_index('ix_participant_session_id', table_name='participant')
    op.drop_table('participant')
    op.drop_table('question_option')
    op.drop_index('ix_interaction_question_session_id', table_name='interaction_question')
    op.drop_table('interaction_question')
    op.drop_index('ix_interaction_session_status', table_name='interaction_session')
    op.drop_table('interaction_session')
