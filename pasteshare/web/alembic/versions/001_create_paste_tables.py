"""create_paste_tables

Revision ID: 001
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table('pastes',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('custom_url', sa.String(length=50), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_jupyter_style', sa.Boolean(), nullable=False),
        sa.Column('is_private', sa.Boolean(), nullable=False),
        sa.Column('is_editable', sa.Boolean(), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('views', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('custom_url')
    )
    op.create_index('ix_pastes_expires_at', 'pastes', ['expires_at'])
    op.create_index('ix_pastes_is_private', 'pastes', ['is_private'])

    op.create_table('blocks',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('paste_id', sa.Uuid(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('language', sa.String(length=50), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['paste_id'], ['pastes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_blocks_paste_id', 'blocks', ['paste_id'])

    op.create_table('files',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('paste_id', sa.Uuid(), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('original_name', sa.String(length=255), nullable=False),
        sa.Column('mime_type', sa.String(length=100), nullable=False),
        sa.Column('size', sa.BigInteger(), nullable=False),
        sa.Column('storage_path', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['paste_id'], ['pastes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_files_paste_id', 'files', ['paste_id'])


def downgrade() -> None:
    op.drop_index('ix_files_paste_id', table_name='files')
    op.drop_table('files')
    op.drop_index('ix_blocks_paste_id', table_name='blocks')
    op.drop_table('blocks')
    op.drop_index('ix_pastes_is_private', table_name='pastes')
    op.drop_index('ix_pastes_expires_at', table_name='pastes')
    op.drop_table('pastes')
