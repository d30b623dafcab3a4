"""create_alliance_tables

Revision ID: 4b1e7c2a9d10
Revises:
Create Date: 2026-10-19 09:12:41.502318

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4b1e7c2a9d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'registered_users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('hashed_password', sa.String(length=1024), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_superuser', sa.Boolean(), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('nickname', sa.String(length=20), nullable=False),
        sa.Column('preferred_language', sa.String(length=5), nullable=False),
        sa.Column('alliance_server', sa.String(length=30), nullable=True),
        sa.Column('is_online', sa.Boolean(), nullable=False),
        sa.Column('last_seen', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_registered_users_email', 'registered_users', ['email'], unique=True)
    op.create_index('ix_registered_users_nickname', 'registered_users', ['nickname'], unique=True)
    op.create_index('ix_registered_users_alliance_server', 'registered_users', ['alliance_server'])

    op.create_table(
        'alliances',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('server_name', sa.String(length=30), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('tag', sa.String(length=5), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('game_name', sa.String(length=50), nullable=True),
        sa.Column('leader_id', sa.Integer(), nullable=False),
        sa.Column('invite_code', sa.String(length=16), nullable=False),
        sa.Column('is_private', sa.Boolean(), nullable=False),
        sa.Column('auto_translate', sa.Boolean(), nullable=False),
        sa.Column('total_messages', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['leader_id'], ['registered_users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tag'),
    )
    op.create_index('ix_alliances_id', 'alliances', ['id'])
    op.create_index('ix_alliances_server_name', 'alliances', ['server_name'], unique=True)
    op.create_index('ix_alliances_invite_code', 'alliances', ['invite_code'], unique=True)

    op.create_table(
        'alliance_members',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('alliance_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['alliance_id'], ['alliances.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['registered_users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('alliance_id', 'user_id', name='uq_alliance_members_alliance_user'),
    )
    op.create_index('ix_alliance_members_id', 'alliance_members', ['id'])
    op.create_index('ix_alliance_members_alliance_id', 'alliance_members', ['alliance_id'])
    op.create_index('ix_alliance_members_user_id', 'alliance_members', ['user_id'])

    op.create_table(
        'alliance_channels',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('alliance_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('description', sa.String(length=200), nullable=True),
        sa.Column('can_read', sa.JSON(), nullable=False),
        sa.Column('can_write', sa.JSON(), nullable=False),
        sa.Column('is_private', sa.Boolean(), nullable=False),
        sa.Column('access_code', sa.String(length=16), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['alliance_id'], ['alliances.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by'], ['registered_users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_alliance_channels_id', 'alliance_channels', ['id'])
    op.create_index('ix_alliance_channels_alliance_id', 'alliance_channels', ['alliance_id'])

    op.create_table(
        'channel_authorizations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('channel_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('authorized_at', sa.DateTime(), nullable=False),
        sa.Column('authorized_by', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['channel_id'], ['alliance_channels.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['registered_users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['authorized_by'], ['registered_users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('channel_id', 'user_id', name='uq_channel_authorizations_channel_user'),
    )
    op.create_index('ix_channel_authorizations_id', 'channel_authorizations', ['id'])
    op.create_index('ix_channel_authorizations_channel_id', 'channel_authorizations', ['channel_id'])
    op.create_index('ix_channel_authorizations_user_id', 'channel_authorizations', ['user_id'])

    op.create_table(
        'alliance_messages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('alliance_id', sa.Integer(), nullable=False),
        sa.Column('channel_id', sa.Integer(), nullable=False),
        sa.Column('sender_id', sa.Integer(), nullable=True),
        sa.Column('original_text', sa.Text(), nullable=False),
        sa.Column('original_language', sa.String(length=5), nullable=False),
        sa.Column('message_type', sa.String(length=10), nullable=False),
        sa.Column('attachments', sa.JSON(), nullable=False),
        sa.Column('reply_to_id', sa.Integer(), nullable=True),
        sa.Column('is_edited', sa.Boolean(), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('is_pinned', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['alliance_id'], ['alliances.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['channel_id'], ['alliance_channels.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sender_id'], ['registered_users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['reply_to_id'], ['alliance_messages.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_alliance_messages_id', 'alliance_messages', ['id'])
    op.create_index('ix_alliance_messages_alliance_id', 'alliance_messages', ['alliance_id'])
    op.create_index('ix_alliance_messages_channel_id', 'alliance_messages', ['channel_id'])
    op.create_index('ix_alliance_messages_sender_id', 'alliance_messages', ['sender_id'])
    op.create_index('ix_alliance_messages_is_deleted', 'alliance_messages', ['is_deleted'])
    op.create_index('ix_alliance_messages_created_at', 'alliance_messages', ['created_at'])

    op.create_table(
        'message_translations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('message_id', sa.Integer(), nullable=False),
        sa.Column('language', sa.String(length=5), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('translated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['message_id'], ['alliance_messages.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('message_id', 'language', name='uq_message_translations_message_language'),
    )
    op.create_index('ix_message_translations_message_id', 'message_translations', ['message_id'])

    op.create_table(
        'message_edits',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('message_id', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('edited_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['message_id'], ['alliance_messages.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_message_edits_message_id', 'message_edits', ['message_id'])


def downgrade() -> None:
    op.drop_index('ix_message_edits_message_id', 'message_edits')
    op.drop_table('message_edits')

    op.drop_index('ix_message_translations_message_id', 'message_translations')
    op.drop_table('message_translations')

    for index in ('created_at', 'is_deleted', 'sender_id', 'channel_id', 'alliance_id', 'id'):
        op.drop_index(f'ix_alliance_messages_{index}', 'alliance_messages')
    op.drop_table('alliance_messages')

    for index in ('user_id', 'channel_id', 'id'):
        op.drop_index(f'ix_channel_authorizations_{index}', 'channel_authorizations')
    op.drop_table('channel_authorizations')

    op.drop_index('ix_alliance_channels_alliance_id', 'alliance_channels')
    op.drop_index('ix_alliance_channels_id', 'alliance_channels')
    op.drop_table('alliance_channels')

    for index in ('user_id', 'alliance_id', 'id'):
        op.drop_index(f'ix_alliance_members_{index}', 'alliance_members')
    op.drop_table('alliance_members')

    for index in ('invite_code', 'server_name', 'id'):
        op.drop_index(f'ix_alliances_{index}', 'alliances')
    op.drop_table('alliances')

    for index in ('alliance_server', 'nickname', 'email'):
        op.drop_index(f'ix_registered_users_{index}', 'registered_users')
    op.drop_table('registered_users')
