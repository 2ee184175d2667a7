"""initial schema

Revision ID: 0c4e7a91d2b3
Revises:
Create Date: 2026-10-19 11:45:02.118734

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0c4e7a91d2b3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table('delivery_streams',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('name', sa.String(length=100), nullable=False),
    sa.Column('display_name', sa.String(length=200), nullable=True),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    *_timestamps(),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('name')
    )
    op.create_table('tech_streams',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('name', sa.String(length=100), nullable=False),
    sa.Column('display_name', sa.String(length=200), nullable=True),
    sa.Column('github_org', sa.String(length=200), nullable=True),
    sa.Column('github_install_id', sa.String(length=50), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    *_timestamps(),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('name')
    )
    with op.batch_alter_table('tech_streams', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_tech_streams_github_install_id'), ['github_install_id'], unique=True)

    op.create_table('repositories',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('tech_stream_id', sa.Uuid(), nullable=False),
    sa.Column('github_org', sa.String(length=200), nullable=False),
    sa.Column('github_repo_name', sa.String(length=200), nullable=False),
    sa.Column('full_name', sa.String(length=400), nullable=False),
    sa.Column('default_branch', sa.String(length=200), nullable=False),
    sa.Column('deploy_target', sa.String(length=200), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    *_timestamps(),
    sa.ForeignKeyConstraint(['tech_stream_id'], ['tech_streams.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('full_name')
    )
    with op.batch_alter_table('repositories', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_repositories_tech_stream_id'), ['tech_stream_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_repositories_deploy_target'), ['deploy_target'], unique=False)

    op.create_table('status_mappings',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('project_key', sa.String(length=50), nullable=False),
    sa.Column('status_name', sa.String(length=200), nullable=False),
    sa.Column('pipeline_stage', sa.String(length=20), nullable=False),
    sa.Column('is_active_work', sa.Boolean(), nullable=False),
    sa.Column('display_order', sa.Integer(), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('project_key', 'status_name', name='uq_status_mapping')
    )
    with op.batch_alter_table('status_mappings', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_status_mappings_project_key'), ['project_key'], unique=False)

    op.create_table('sprints',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('delivery_stream_id', sa.Uuid(), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('state', sa.String(length=20), nullable=False),
    sa.Column('start_date', sa.Date(), nullable=True),
    sa.Column('end_date', sa.Date(), nullable=False),
    sa.ForeignKeyConstraint(['delivery_stream_id'], ['delivery_streams.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('sprints', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sprints_delivery_stream_id'), ['delivery_stream_id'], unique=False)

    op.create_table('sprint_snapshots',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('sprint_id', sa.Uuid(), nullable=False),
    sa.Column('snapshot_date', sa.Date(), nullable=False),
    sa.Column('committed_count', sa.Integer(), nullable=False),
    sa.Column('completed_count', sa.Integer(), nullable=False),
    sa.Column('remaining_count', sa.Integer(), nullable=False),
    sa.Column('captured_at', sa.DateTime(timezone=True), nullable=True),
    sa.ForeignKeyConstraint(['sprint_id'], ['sprints.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('sprint_snapshots', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sprint_snapshots_sprint_id'), ['sprint_id'], unique=False)

    op.create_table('public_holidays',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('holiday_date', sa.Date(), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('holiday_date')
    )

    op.create_table('event_queue',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('event_source', sa.String(length=20), nullable=False),
    sa.Column('event_type', sa.String(length=100), nullable=True),
    sa.Column('signature', sa.String(length=200), nullable=True),
    sa.Column('payload', sa.JSON(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('attempt_count', sa.Integer(), nullable=False),
    sa.Column('last_error', sa.Text(), nullable=True),
    sa.Column('enqueued_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('event_queue', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_event_queue_event_source'), ['event_source'], unique=False)
        batch_op.create_index(batch_op.f('ix_event_queue_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_event_queue_enqueued_at'), ['enqueued_at'], unique=False)

    op.create_table('work_item_events',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('source', sa.String(length=20), nullable=False),
    sa.Column('ticket_id', sa.String(length=50), nullable=False),
    sa.Column('event_type', sa.String(length=30), nullable=False),
    sa.Column('ticket_type', sa.String(length=50), nullable=True),
    sa.Column('from_status', sa.String(length=200), nullable=True),
    sa.Column('to_status', sa.String(length=200), nullable=True),
    sa.Column('from_stage', sa.String(length=20), nullable=True),
    sa.Column('to_stage', sa.String(length=20), nullable=True),
    sa.Column('priority', sa.String(length=50), nullable=True),
    sa.Column('story_points', sa.Float(), nullable=True),
    sa.Column('labels', sa.JSON(), nullable=True),
    sa.Column('delivery_stream_id', sa.Uuid(), nullable=True),
    sa.Column('blocking_tech_stream_id', sa.Uuid(), nullable=True),
    sa.Column('blocked_reason', sa.Text(), nullable=True),
    sa.Column('event_timestamp', sa.DateTime(timezone=True), nullable=False),
    sa.Column('received_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['delivery_stream_id'], ['delivery_streams.id'], ),
    sa.ForeignKeyConstraint(['blocking_tech_stream_id'], ['tech_streams.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('ticket_id', 'event_type', 'event_timestamp', name='uq_work_item_event')
    )
    with op.batch_alter_table('work_item_events', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_work_item_events_ticket_id'), ['ticket_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_work_item_events_to_stage'), ['to_stage'], unique=False)
        batch_op.create_index(batch_op.f('ix_work_item_events_delivery_stream_id'), ['delivery_stream_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_work_item_events_blocking_tech_stream_id'), ['blocking_tech_stream_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_work_item_events_event_timestamp'), ['event_timestamp'], unique=False)

    op.create_table('defect_events',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('source', sa.String(length=20), nullable=False),
    sa.Column('ticket_id', sa.String(length=50), nullable=False),
    sa.Column('event_type', sa.String(length=30), nullable=False),
    sa.Column('delivery_stream_id', sa.Uuid(), nullable=True),
    sa.Column('found_in_stage', sa.String(length=30), nullable=False),
    sa.Column('introduced_in_stage', sa.String(length=30), nullable=True),
    sa.Column('severity', sa.String(length=20), nullable=True),
    sa.Column('event_timestamp', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['delivery_stream_id'], ['delivery_streams.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('ticket_id', 'event_type', 'event_timestamp', name='uq_defect_event')
    )
    with op.batch_alter_table('defect_events', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_defect_events_ticket_id'), ['ticket_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_defect_events_event_timestamp'), ['event_timestamp'], unique=False)

    op.create_table('pr_events',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('source', sa.String(length=20), nullable=False),
    sa.Column('event_type', sa.String(length=30), nullable=False),
    sa.Column('pr_number', sa.Integer(), nullable=False),
    sa.Column('repo_id', sa.Uuid(), nullable=False),
    sa.Column('github_org', sa.String(length=200), nullable=False),
    sa.Column('github_repo', sa.String(length=200), nullable=False),
    sa.Column('author_hash', sa.String(length=64), nullable=True),
    sa.Column('reviewer_hash', sa.String(length=64), nullable=True),
    sa.Column('review_state', sa.String(length=30), nullable=True),
    sa.Column('branch_name', sa.String(length=300), nullable=True),
    sa.Column('base_branch', sa.String(length=300), nullable=True),
    sa.Column('linked_ticket_id', sa.String(length=50), nullable=True),
    sa.Column('lines_added', sa.Integer(), nullable=True),
    sa.Column('lines_removed', sa.Integer(), nullable=True),
    sa.Column('files_changed', sa.Integer(), nullable=True),
    sa.Column('tech_stream_id', sa.Uuid(), nullable=False),
    sa.Column('delivery_stream_id', sa.Uuid(), nullable=True),
    sa.Column('event_timestamp', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['repo_id'], ['repositories.id'], ),
    sa.ForeignKeyConstraint(['tech_stream_id'], ['tech_streams.id'], ),
    sa.ForeignKeyConstraint(['delivery_stream_id'], ['delivery_streams.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('repo_id', 'pr_number', 'event_type', 'event_timestamp', name='uq_pr_event')
    )
    with op.batch_alter_table('pr_events', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_pr_events_repo_id'), ['repo_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_pr_events_linked_ticket_id'), ['linked_ticket_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_pr_events_tech_stream_id'), ['tech_stream_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_pr_events_event_timestamp'), ['event_timestamp'], unique=False)

    op.create_table('cicd_events',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('source', sa.String(length=20), nullable=False),
    sa.Column('tech_stream_id', sa.Uuid(), nullable=False),
    sa.Column('event_type', sa.String(length=30), nullable=False),
    sa.Column('pipeline_id', sa.String(length=100), nullable=False),
    sa.Column('pipeline_run_id', sa.String(length=100), nullable=False),
    sa.Column('environment', sa.String(length=50), nullable=False),
    sa.Column('status', sa.String(length=30), nullable=False),
    sa.Column('commit_sha', sa.String(length=64), nullable=True),
    sa.Column('event_timestamp', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['tech_stream_id'], ['tech_streams.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('pipeline_id', 'pipeline_run_id', 'event_type', name='uq_cicd_event')
    )
    with op.batch_alter_table('cicd_events', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_cicd_events_tech_stream_id'), ['tech_stream_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_cicd_events_event_timestamp'), ['event_timestamp'], unique=False)

    op.create_table('deployment_records',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('tech_stream_id', sa.Uuid(), nullable=False),
    sa.Column('repo_id', sa.Uuid(), nullable=True),
    sa.Column('environment', sa.String(length=50), nullable=False),
    sa.Column('status', sa.String(length=30), nullable=False),
    sa.Column('commit_sha', sa.String(length=64), nullable=True),
    sa.Column('pipeline_id', sa.String(length=100), nullable=True),
    sa.Column('trigger_type', sa.String(length=50), nullable=True),
    sa.Column('linked_pr_number', sa.Integer(), nullable=True),
    sa.Column('linked_ticket_id', sa.String(length=50), nullable=True),
    sa.Column('lead_time_hrs', sa.Float(), nullable=True),
    sa.Column('caused_incident', sa.Boolean(), nullable=False),
    sa.Column('incident_id', sa.String(length=100), nullable=True),
    sa.Column('deployed_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['tech_stream_id'], ['tech_streams.id'], ),
    sa.ForeignKeyConstraint(['repo_id'], ['repositories.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('tech_stream_id', 'environment', 'deployed_at', 'commit_sha', name='uq_deployment_record')
    )
    with op.batch_alter_table('deployment_records', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_deployment_records_tech_stream_id'), ['tech_stream_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_deployment_records_deployed_at'), ['deployed_at'], unique=False)

    op.create_table('incident_events',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('event_type', sa.String(length=30), nullable=False),
    sa.Column('incident_id', sa.String(length=100), nullable=False),
    sa.Column('service_name', sa.String(length=200), nullable=False),
    sa.Column('severity', sa.String(length=20), nullable=True),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('tech_stream_id', sa.Uuid(), nullable=False),
    sa.Column('related_deploy_id', sa.Uuid(), nullable=True),
    sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('time_to_restore_min', sa.Integer(), nullable=True),
    sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['tech_stream_id'], ['tech_streams.id'], ),
    sa.ForeignKeyConstraint(['related_deploy_id'], ['deployment_records.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('incident_id', 'event_type', name='uq_incident_event')
    )
    with op.batch_alter_table('incident_events', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_incident_events_incident_id'), ['incident_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_incident_events_tech_stream_id'), ['tech_stream_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_incident_events_occurred_at'), ['occurred_at'], unique=False)

    op.create_table('work_item_cycles',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('ticket_id', sa.String(length=50), nullable=False),
    sa.Column('delivery_stream_id', sa.Uuid(), nullable=True),
    sa.Column('ticket_type', sa.String(length=50), nullable=True),
    sa.Column('story_points', sa.Float(), nullable=True),
    sa.Column('created_at_source', sa.DateTime(timezone=True), nullable=False),
    sa.Column('first_in_progress', sa.DateTime(timezone=True), nullable=True),
    sa.Column('completed_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('lead_time_days', sa.Float(), nullable=False),
    sa.Column('cycle_time_days', sa.Float(), nullable=False),
    sa.Column('active_time_days', sa.Float(), nullable=False),
    sa.Column('wait_time_days', sa.Float(), nullable=False),
    sa.Column('flow_efficiency_pct', sa.Float(), nullable=False),
    sa.Column('stage_durations', sa.JSON(), nullable=False),
    *_timestamps(),
    sa.ForeignKeyConstraint(['delivery_stream_id'], ['delivery_streams.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('ticket_id')
    )
    with op.batch_alter_table('work_item_cycles', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_work_item_cycles_delivery_stream_id'), ['delivery_stream_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_work_item_cycles_completed_at'), ['completed_at'], unique=False)

    op.create_table('pr_cycles',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('repo_id', sa.Uuid(), nullable=False),
    sa.Column('tech_stream_id', sa.Uuid(), nullable=False),
    sa.Column('delivery_stream_id', sa.Uuid(), nullable=True),
    sa.Column('pr_number', sa.Integer(), nullable=False),
    sa.Column('linked_ticket_id', sa.String(length=50), nullable=True),
    sa.Column('author_hash', sa.String(length=64), nullable=True),
    sa.Column('opened_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('first_review_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('merged_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('time_to_first_review_hrs', sa.Float(), nullable=True),
    sa.Column('time_to_merge_hrs', sa.Float(), nullable=True),
    sa.Column('review_rounds', sa.Integer(), nullable=True),
    sa.Column('reviewer_hashes', sa.JSON(), nullable=True),
    sa.Column('reviewer_count', sa.Integer(), nullable=True),
    sa.Column('lines_changed', sa.Integer(), nullable=True),
    sa.Column('files_changed', sa.Integer(), nullable=True),
    *_timestamps(),
    sa.ForeignKeyConstraint(['repo_id'], ['repositories.id'], ),
    sa.ForeignKeyConstraint(['tech_stream_id'], ['tech_streams.id'], ),
    sa.ForeignKeyConstraint(['delivery_stream_id'], ['delivery_streams.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('repo_id', 'pr_number', name='uq_pr_cycle')
    )
    with op.batch_alter_table('pr_cycles', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_pr_cycles_tech_stream_id'), ['tech_stream_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_pr_cycles_linked_ticket_id'), ['linked_ticket_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_pr_cycles_opened_at'), ['opened_at'], unique=False)

    op.create_table('forecast_snapshots',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('delivery_stream_id', sa.Uuid(), nullable=False),
    sa.Column('forecast_date', sa.Date(), nullable=False),
    sa.Column('scope_item_count', sa.Integer(), nullable=False),
    sa.Column('throughput_samples', sa.Integer(), nullable=False),
    sa.Column('simulation_runs', sa.Integer(), nullable=False),
    sa.Column('is_low_confidence', sa.Boolean(), nullable=False),
    sa.Column('linear_projection_weeks', sa.Float(), nullable=True),
    sa.Column('p50_completion_date', sa.Date(), nullable=True),
    sa.Column('p70_completion_date', sa.Date(), nullable=True),
    sa.Column('p85_completion_date', sa.Date(), nullable=True),
    sa.Column('p95_completion_date', sa.Date(), nullable=True),
    sa.Column('distribution_data', sa.JSON(), nullable=True),
    sa.Column('computed_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['delivery_stream_id'], ['delivery_streams.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('delivery_stream_id', 'forecast_date', name='uq_forecast_snapshot')
    )
    with op.batch_alter_table('forecast_snapshots', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_forecast_snapshots_delivery_stream_id'), ['delivery_stream_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_forecast_snapshots_computed_at'), ['computed_at'], unique=False)

    op.create_table('cross_stream_correlations',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('analysis_date', sa.Date(), nullable=False),
    sa.Column('tech_stream_id', sa.Uuid(), nullable=False),
    sa.Column('impacted_delivery_streams', sa.JSON(), nullable=False),
    sa.Column('block_count_14d', sa.Integer(), nullable=False),
    sa.Column('avg_confidence_pct', sa.Float(), nullable=True),
    sa.Column('severity', sa.String(length=20), nullable=False),
    sa.Column('computed_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['tech_stream_id'], ['tech_streams.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('analysis_date', 'tech_stream_id', name='uq_cross_stream_correlation')
    )
    with op.batch_alter_table('cross_stream_correlations', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_cross_stream_correlations_analysis_date'), ['analysis_date'], unique=False)

    op.create_table('platform_settings',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('key', sa.String(length=100), nullable=False),
    sa.Column('value', sa.JSON(), nullable=True),
    sa.Column('description', sa.Text(), nullable=True),
    *_timestamps(),
    sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('platform_settings', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_platform_settings_key'), ['key'], unique=True)


def downgrade() -> None:
    for table in (
        'platform_settings',
        'cross_stream_correlations',
        'forecast_snapshots',
        'pr_cycles',
        'work_item_cycles',
        'incident_events',
        'deployment_records',
        'cicd_events',
        'pr_events',
        'defect_events',
        'work_item_events',
        'event_queue',
        'public_holidays',
        'sprint_snapshots',
        'sprints',
        'status_mappings',
        'repositories',
        'tech_streams',
        'delivery_streams',
    ):
        op.drop_table(table)
