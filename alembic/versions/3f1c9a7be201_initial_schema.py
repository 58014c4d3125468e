"""initial schema

Revision ID: 3f1c9a7be201
Revises: 
Create Date: 2026-10-19 09:12:41.530118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7be201'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # groups.teacher_id and users.group_id point at each other; the teacher FK is added last
    op.create_table(
        'groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False, unique=True),
        sa.Column('subject', sa.String(), nullable=False),
        sa.Column('level', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('teacher_id', sa.Integer(), nullable=True),
        sa.Column('max_students', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_groups_id', 'groups', ['id'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('first_name', sa.String(length=50), nullable=False),
        sa.Column('last_name', sa.String(length=50), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id'), nullable=True),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('points >= 0', name='ck_users_points_non_negative'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    with op.batch_alter_table('groups') as batch_op:
        batch_op.create_foreign_key('fk_groups_teacher_id', 'users', ['teacher_id'], ['id'])

    op.create_table(
        'parent_children',
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('child_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'ratings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('grades', sa.Float(), nullable=False),
        sa.Column('attendance', sa.Float(), nullable=False),
        sa.Column('homework_completion', sa.Float(), nullable=False),
        sa.Column('class_participation', sa.Float(), nullable=False),
        sa.Column('total_score', sa.Integer(), nullable=False),
        sa.Column('rank_in_group', sa.Integer(), nullable=False),
        sa.Column('total_homeworks', sa.Integer(), nullable=False),
        sa.Column('completed_homeworks', sa.Integer(), nullable=False),
        sa.Column('total_classes', sa.Integer(), nullable=False),
        sa.Column('attended_classes', sa.Integer(), nullable=False),
        sa.Column('participation_count', sa.Integer(), nullable=False),
        sa.Column('average_grade', sa.Float(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('last_updated', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('student_id', 'group_id', name='uq_rating_student_group'),
    )
    op.create_index('ix_ratings_id', 'ratings', ['id'])
    op.create_index('ix_ratings_group_total_score', 'ratings', ['group_id', 'total_score'])

    op.create_table(
        'rating_monthly_stats',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('rating_id', sa.Integer(), sa.ForeignKey('ratings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('grades', sa.Float(), nullable=False),
        sa.Column('attendance', sa.Float(), nullable=False),
        sa.Column('homework_completion', sa.Float(), nullable=False),
        sa.Column('class_participation', sa.Float(), nullable=False),
        sa.Column('total_score', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('rating_id', 'month', 'year', name='uq_rating_month_year'),
    )
    op.create_index('ix_rating_monthly_stats_id', 'rating_monthly_stats', ['id'])

    op.create_table(
        'class_attendance',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('session_date', sa.Date(), nullable=False),
        sa.Column('present', sa.Boolean(), nullable=False),
        sa.Column('participation', sa.Integer(), nullable=True),
        sa.Column('marked_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('student_id', 'group_id', 'session_date', name='uq_attendance_student_group_date'),
    )
    op.create_index('ix_class_attendance_id', 'class_attendance', ['id'])

    op.create_table(
        'homework',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_homework_id', 'homework', ['id'])

    op.create_table(
        'homework_submissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('homework_id', sa.Integer(), sa.ForeignKey('homework.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('answer', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('total_grade', sa.Float(), nullable=True),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('graded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('graded_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.UniqueConstraint('homework_id', 'student_id', name='uq_submission_homework_student'),
    )
    op.create_index('ix_homework_submissions_id', 'homework_submissions', ['id'])

    op.create_table(
        'point_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(), nullable=False),
        sa.Column('reference', sa.String(), nullable=True),
        sa.Column('reason', sa.String(), nullable=True),
        sa.Column('balance_after', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_point_transactions_id', 'point_transactions', ['id'])
    op.create_index('ix_point_transactions_user_id', 'point_transactions', ['user_id'])

    op.create_table(
        'completed_bonus_tasks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('task_id', sa.Integer(), nullable=False),
        sa.Column('proof', sa.Text(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=False),
        sa.Column('points_earned', sa.Integer(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'task_id', name='uq_completed_bonus_task_user_task'),
    )
    op.create_index('ix_completed_bonus_tasks_id', 'completed_bonus_tasks', ['id'])

    op.create_table(
        'achievements',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('earned_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_achievements_id', 'achievements', ['id'])
    op.create_index('ix_achievements_user_id', 'achievements', ['user_id'])

    op.create_table(
        'rewards',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('points_required', sa.Integer(), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False, unique=True),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('image', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('points_required >= 1', name='ck_rewards_points_required_positive'),
    )
    op.create_index('ix_rewards_id', 'rewards', ['id'])

    op.create_table(
        'reward_claims',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('reward_id', sa.Integer(), sa.ForeignKey('rewards.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('points_spent', sa.Integer(), nullable=False),
        sa.Column('claimed_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('reward_id', 'student_id', name='uq_reward_claim_reward_student'),
    )
    op.create_index('ix_reward_claims_id', 'reward_claims', ['id'])

    op.create_table(
        'competitions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('rules', sa.JSON(), nullable=False),
        sa.Column('prizes', sa.JSON(), nullable=False),
        sa.Column('created_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('is_cancelled', sa.Boolean(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_competitions_id', 'competitions', ['id'])

    op.create_table(
        'competition_groups',
        sa.Column('competition_id', sa.Integer(), sa.ForeignKey('competitions.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'competition_participants',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('competition_id', sa.Integer(), sa.ForeignKey('competitions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('registered_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('competition_id', 'student_id', name='uq_participant_competition_student'),
    )
    op.create_index('ix_competition_participants_id', 'competition_participants', ['id'])

    op.create_table(
        'competition_winners',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('competition_id', sa.Integer(), sa.ForeignKey('competitions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('prize', sa.String(), nullable=True),
        sa.Column('points_awarded', sa.Integer(), nullable=False),
        sa.Column('announced_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('competition_id', 'position', name='uq_winner_competition_position'),
    )
    op.create_index('ix_competition_winners_id', 'competition_winners', ['id'])

    op.create_table(
        'direct_messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sender_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('recipient_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=True),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_direct_messages_id', 'direct_messages', ['id'])
    op.create_index('ix_direct_messages_pair', 'direct_messages', ['sender_id', 'recipient_id'])


def downgrade() -> None:
    op.drop_table('direct_messages')
    op.drop_table('competition_winners')
    op.drop_table('competition_participants')
    op.drop_table('competition_groups')
    op.drop_table('competitions')
    op.drop_table('reward_claims')
    op.drop_table('rewards')
    op.drop_table('achievements')
    op.drop_table('completed_bonus_tasks')
    op.drop_table('point_transactions')
    op.drop_table('homework_submissions')
    op.drop_table('homework')
    op.drop_table('class_attendance')
    op.drop_table('rating_monthly_stats')
    op.drop_table('ratings')
    op.drop_table('parent_children')
    with op.batch_alter_table('groups') as batch_op:
        batch_op.drop_constraint('fk_groups_teacher_id', type_='foreignkey')
    op.drop_table('users')
    op.drop_table('groups')
