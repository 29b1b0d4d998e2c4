"""Campaign pipeline schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


json_document = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')

campaign_status = sa.Enum('running', 'stopped', 'completed', 'failed', name='campaignstatus')
relevance = sa.Enum('pending', 'relevant', 'irrelevant', name='relevance')
tailoring_status = sa.Enum('pending', 'processing', 'completed', 'failed', 'skipped', name='tailoringstatus')
artifact_status = sa.Enum('pending', 'success', 'failed', name='artifactstatus')


def upgrade():
    op.create_table(
        'campaigns',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('owner_id', sa.String(length=64), nullable=False),
        sa.Column('resume_id', sa.String(length=36), nullable=False),
        sa.Column('target_role', sa.String(), nullable=False),
        sa.Column('target_location', sa.String(), nullable=False, server_default=''),
        sa.Column('status', campaign_status, nullable=False),
        sa.Column('scraper_instances', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('scrapes_completed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('scrape_failures', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('dedicated_workers', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('last_stats', json_document, nullable=True),
        sa.Column('stable_polls', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('stopped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(op.f('ix_campaigns_owner_id'), 'campaigns', ['owner_id'], unique=False)
    op.create_index(op.f('ix_campaigns_status'), 'campaigns', ['status'], unique=False)
    op.create_index('ix_campaigns_owner_status', 'campaigns', ['owner_id', 'status'], unique=False)

    op.create_table(
        'resumes',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('owner_id', sa.String(length=64), nullable=False),
        sa.Column('original_name', sa.String(), nullable=True),
        sa.Column('file_path', sa.String(), nullable=True),
        sa.Column('text_content', sa.Text(), nullable=False),
        sa.Column('is_master', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('blueprint', json_document, nullable=True),
        sa.Column('blueprint_generated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )
    op.create_index(op.f('ix_resumes_owner_id'), 'resumes', ['owner_id'], unique=False)

    op.create_table(
        'scraped_jobs',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('posting_id', sa.String(length=64), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('company_name', sa.String(), nullable=False),
        sa.Column('company_url', sa.String(), nullable=True),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('description', json_document, nullable=True),
        sa.Column('posted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('owner_id', sa.String(length=64), nullable=False),
        sa.Column('campaign_id', sa.String(length=64), nullable=False),
        sa.Column('relevance', relevance, nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('scraped_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.UniqueConstraint('url'),
    )
    op.create_index(op.f('ix_scraped_jobs_posting_id'), 'scraped_jobs', ['posting_id'], unique=False)
    op.create_index(op.f('ix_scraped_jobs_owner_id'), 'scraped_jobs', ['owner_id'], unique=False)
    op.create_index(op.f('ix_scraped_jobs_campaign_id'), 'scraped_jobs', ['campaign_id'], unique=False)
    op.create_index('ix_scraped_jobs_campaign_deleted', 'scraped_jobs', ['campaign_id', 'is_deleted'], unique=False)

    op.create_table(
        'matched_pairs',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('owner_id', sa.String(length=64), nullable=False),
        sa.Column('job_id', sa.String(length=36), sa.ForeignKey('scraped_jobs.id'), nullable=False),
        sa.Column('resume_id', sa.String(length=36), nullable=False),
        sa.Column('campaign_id', sa.String(length=64), nullable=False),
        sa.Column('decision', sa.String(length=32), nullable=False),
        sa.Column('is_positive', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('confidence', sa.Float(), nullable=False),
        sa.Column('reasoning', sa.Text(), nullable=True),
        sa.Column('analysis_report', json_document, nullable=True),
        sa.Column('tailoring_status', tailoring_status, nullable=False),
        sa.Column('tailored_resume_id', sa.String(length=36), nullable=True),
        sa.Column('tailoring_error', sa.Text(), nullable=True),
        sa.Column('tailoring_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('owner_id', 'job_id', name='uq_matched_pairs_owner_job'),
    )
    op.create_index(op.f('ix_matched_pairs_owner_id'), 'matched_pairs', ['owner_id'], unique=False)
    op.create_index(op.f('ix_matched_pairs_job_id'), 'matched_pairs', ['job_id'], unique=False)
    op.create_index(op.f('ix_matched_pairs_campaign_id'), 'matched_pairs', ['campaign_id'], unique=False)
    op.create_index(op.f('ix_matched_pairs_tailoring_status'), 'matched_pairs', ['tailoring_status'], unique=False)
    op.create_index('ix_matched_pairs_campaign_positive', 'matched_pairs', ['campaign_id', 'is_positive'], unique=False)

    op.create_table(
        'tailored_resumes',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('owner_id', sa.String(length=64), nullable=False),
        sa.Column('resume_id', sa.String(length=36), nullable=False),
        sa.Column('job_id', sa.String(length=36), nullable=False),
        sa.Column('matched_pair_id', sa.String(length=36), nullable=False),
        sa.Column('campaign_id', sa.String(length=64), nullable=False),
        sa.Column('status', artifact_status, nullable=False),
        sa.Column('content', json_document, nullable=True),
        sa.Column('tailored_text', sa.Text(), nullable=True),
        sa.Column('master_plan', json_document, nullable=True),
        sa.Column('interview_prep', json_document, nullable=True),
        sa.Column('document_path', sa.String(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('matched_pair_id'),
    )
    op.create_index(op.f('ix_tailored_resumes_owner_id'), 'tailored_resumes', ['owner_id'], unique=False)
    op.create_index(op.f('ix_tailored_resumes_job_id'), 'tailored_resumes', ['job_id'], unique=False)
    op.create_index(op.f('ix_tailored_resumes_campaign_id'), 'tailored_resumes', ['campaign_id'], unique=False)
    op.create_index(op.f('ix_tailored_resumes_status'), 'tailored_resumes', ['status'], unique=False)


def downgrade():
    op.drop_table('tailored_resumes')
    op.drop_table('matched_pairs')
    op.drop_table('scraped_jobs')
    op.drop_table('resumes')
    op.drop_table('campaigns')

    bind = op.get_bind()
    for enum_type in (artifact_status, tailoring_status, relevance, campaign_status):
        enum_type.drop(bind, checkfirst=True)
