"""Initial schema: profiles, notebooks, sources, notes, embedding records, chat history.

Revision ID: 001
Create Date: 2026-10-17 00:00:00.000000

1. pgvector extension and the source_type enum
2. Foreign keys with CASCADE deletes from notebooks to everything they own
3. Indexes on the owner, notebook and status query paths
4. HNSW cosine index on embedding vectors
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from pgvector.sqlalchemy import Vector

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

EMBEDDING_DIMENSION = 1536

SOURCE_TYPES = ('pdf', 'text', 'website', 'youtube', 'audio')
PROCESSING_STATUSES = ('pending', 'uploading', 'processing', 'completed', 'failed')


def upgrade() -> None:
    """Create schema with indexes."""

    op.execute("CREATE EXTENSION IF NOT EXISTS vector")
    source_type = postgresql.ENUM(*SOURCE_TYPES, name='source_type')
    source_type.create(op.get_bind(), checkfirst=True)

    # Profiles mirror the auth provider's users
    op.create_table(
        'profiles',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'], unique=True)

    op.create_table(
        'notebooks',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('title', sa.String(500), nullable=False, server_default='Untitled Notebook'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('color', sa.String(50), server_default='gray'),
        sa.Column('icon', sa.String(50), server_default='📝'),
        sa.Column('generation_status', sa.String(50), server_default='completed'),
        sa.Column('audio_overview_generation_status', sa.String(50), nullable=True),
        sa.Column('audio_overview_url', sa.Text(), nullable=True),
        sa.Column('audio_url_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('example_questions', postgresql.JSONB(), server_default=sa.text("'[]'::jsonb")),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
    )
    # List a user's notebooks, newest first
    op.create_index('ix_notebooks_user_id', 'notebooks', ['user_id'])
    op.create_index('idx_notebooks_user_created', 'notebooks', ['user_id', 'created_at'],
                    postgresql_ops={'created_at': 'DESC'})

    op.create_table(
        'sources',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('notebook_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('type', postgresql.ENUM(*SOURCE_TYPES, name='source_type', create_type=False), nullable=False),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('file_path', sa.Text(), nullable=True),
        sa.Column('file_size', sa.BigInteger(), nullable=True),
        sa.Column('display_name', sa.Text(), nullable=True),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('processing_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('metadata', postgresql.JSONB(), server_default=sa.text("'{}'::jsonb")),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['notebook_id'], ['notebooks.id'], ondelete='CASCADE'),
        sa.CheckConstraint(
            "processing_status IN ({})".format(", ".join(f"'{s}'" for s in PROCESSING_STATUSES)),
            name='source_processing_status',
        ),
    )
    op.create_index('ix_sources_notebook_id', 'sources', ['notebook_id'])
    op.create_index('ix_sources_processing_status', 'sources', ['processing_status'])
    # Stale sweep scans processing rows by age
    op.create_index('idx_sources_processing_updated', 'sources', ['updated_at'],
                    postgresql_where=sa.text("processing_status = 'processing'"))

    op.create_table(
        'notes',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('notebook_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('source_type', sa.String(20), server_default='user'),
        sa.Column('extracted_text', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['notebook_id'], ['notebooks.id'], ondelete='CASCADE'),
        sa.CheckConstraint("source_type IN ('user', 'ai_response')", name='notes_source_type'),
    )
    op.create_index('ix_notes_notebook_id', 'notes', ['notebook_id'])

    op.create_table(
        'documents',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('notebook_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('metadata', postgresql.JSONB(), server_default=sa.text("'{}'::jsonb")),
        sa.Column('embedding', Vector(EMBEDDING_DIMENSION), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['notebook_id'], ['notebooks.id'], ondelete='CASCADE'),
        # The metadata copy must agree with the column
        sa.CheckConstraint("(metadata->>'notebook_id')::uuid = notebook_id", name='documents_metadata_notebook'),
    )
    op.create_index('ix_documents_notebook_id', 'documents', ['notebook_id'])
    op.create_index('idx_documents_source_id', 'documents', [sa.text("(metadata->>'source_id')")])
    op.execute("""
        CREATE INDEX idx_documents_embedding
        ON documents
        USING hnsw (embedding vector_cosine_ops)
        WITH (m = 16, ef_construction = 64)
        WHERE embedding IS NOT NULL
    """)

    op.create_table(
        'chat_histories',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('session_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('message', postgresql.JSONB(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_chat_histories_session_id', 'chat_histories', ['session_id'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('chat_histories')
    op.execute('DROP INDEX IF EXISTS idx_documents_embedding')
    op.drop_table('documents')
    op.drop_table('notes')
    op.drop_table('sources')
    op.drop_table('notebooks')
    op.drop_table('profiles')
    postgresql.ENUM(name='source_type').drop(op.get_bind(), checkfirst=True)
