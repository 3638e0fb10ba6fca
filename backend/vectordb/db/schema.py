"""
Development schema provisioning.

The managed platform owns the production schema. For local databases this
module creates the tables from SQLModel metadata, then installs the pieces
the service delegates to: the embedding column, the stored procedures and
the usage-counter triggers.
"""
from typing import List
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import SQLModel

import vectordb.db.base  # noqa: F401

logger = logging.getLogger(__name__)


EMBEDDING_DIMENSIONS = 1536

# One statement per entry: asyncpg cannot prepare multi-statement strings.
PLATFORM_SQL: List[str] = [
    "CREATE EXTENSION IF NOT EXISTS vector",

    f"ALTER TABLE documents ADD COLUMN IF NOT EXISTS embedding vector({EMBEDDING_DIMENSIONS})",

    # Forces re-embedding when content changes
    """
    CREATE OR REPLACE FUNCTION reset_document_embedding()
    RETURNS TRIGGER
    LANGUAGE plpgsql
    AS $$
    BEGIN
      NEW.embedding := NULL;
      NEW.updated_at := NOW();
      RETURN NEW;
    END;
    $$
    """,
    "DROP TRIGGER IF EXISTS trigger_reset_document_embedding ON documents",
    """
    CREATE TRIGGER trigger_reset_document_embedding
    BEFORE UPDATE ON documents
    FOR EACH ROW
    WHEN (OLD.content IS DISTINCT FROM NEW.content)
    EXECUTE FUNCTION reset_document_embedding()
    """,

    # Releases a record slot when a document is deleted
    """
    CREATE OR REPLACE FUNCTION decrement_record_count()
    RETURNS TRIGGER
    LANGUAGE plpgsql
    AS $$
    BEGIN
      UPDATE usage_metrics
      SET record_count = GREATEST(0, record_count - 1)
      WHERE organization_id = OLD.organization_id
        AND month = DATE_TRUNC('month', NOW())::date;
      RETURN OLD;
    END;
    $$
    """,
    "DROP TRIGGER IF EXISTS trigger_decrement_record_count ON documents",
    """
    CREATE TRIGGER trigger_decrement_record_count
    AFTER DELETE ON documents
    FOR EACH ROW
    EXECUTE FUNCTION decrement_record_count()
    """,

    # Quota gate: a single conditional UPDATE is the check and the increment
    """
    CREATE OR REPLACE FUNCTION check_usage_limit_and_increment(
      org_id UUID,
      metric TEXT,
      amount INTEGER DEFAULT 1
    )
    RETURNS BOOLEAN
    LANGUAGE plpgsql
    SECURITY DEFINER
    AS $$
    DECLARE
      this_month DATE := DATE_TRUNC('month', NOW())::date;
      max_allowed INTEGER;
    BEGIN
      IF amount < 1 THEN
        RAISE EXCEPTION 'amount must be positive';
      END IF;

      SELECT CASE WHEN metric = 'records' THEN p.max_records ELSE p.max_queries_per_month END
        INTO max_allowed
      FROM subscriptions s
      JOIN plans p ON p.id = s.plan_id
      WHERE s.organization_id = org_id AND s.status = 'active'
      LIMIT 1;

      IF max_allowed IS NULL THEN
        RETURN FALSE;
      END IF;

      INSERT INTO usage_metrics (organization_id, month, record_count, query_count)
      VALUES (org_id, this_month, 0, 0)
      ON CONFLICT (organization_id, month) DO NOTHING;

      IF metric = 'records' THEN
        UPDATE usage_metrics
        SET record_count = record_count + amount
        WHERE organization_id = org_id
          AND month = this_month
          AND record_count + amount <= max_allowed;
      ELSIF metric = 'queries' THEN
        UPDATE usage_metrics
        SET query_count = query_count + amount
        WHERE organization_id = org_id
          AND month = this_month
          AND query_count + amount <= max_allowed;
      ELSE
        RAISE EXCEPTION 'unknown usage metric: %', metric;
      END IF;

      RETURN FOUND;
    END;
    $$
    """,

    """
    CREATE OR REPLACE FUNCTION create_document_with_categories(
      p_title TEXT,
      p_content TEXT,
      p_organization_id UUID,
      p_collection_id UUID DEFAULT NULL,
      p_external_id TEXT DEFAULT NULL,
      p_metadata JSONB DEFAULT '{}',
      p_created_by UUID DEFAULT NULL,
      p_categories UUID[] DEFAULT '{}'
    )
    RETURNS TABLE (
      id UUID, organization_id UUID, collection_id UUID, title VARCHAR, content TEXT,
      external_id VARCHAR, metadata JSONB, created_by UUID,
      created_at TIMESTAMPTZ, updated_at TIMESTAMPTZ
    )
    LANGUAGE plpgsql
    AS $$
    DECLARE
      new_id UUID;
    BEGIN
      INSERT INTO documents AS d (organization_id, collection_id, title, content, external_id, metadata, created_by)
      VALUES (p_organization_id, p_collection_id, p_title, p_content, p_external_id,
              COALESCE(p_metadata, '{}'), p_created_by)
      RETURNING d.id INTO new_id;

      INSERT INTO document_categories (document_id, category_id)
      SELECT new_id, c.id
      FROM categories c
      WHERE c.id = ANY(COALESCE(p_categories, '{}'))
        AND c.organization_id = p_organization_id;

      RETURN QUERY
      SELECT d.id, d.organization_id, d.collection_id, d.title, d.content,
             d.external_id, d.metadata, d.created_by, d.created_at, d.updated_at
      FROM documents d WHERE d.id = new_id;
    END;
    $$
    """,

    """
    CREATE OR REPLACE FUNCTION update_document_with_categories(
      p_id UUID,
      p_organization_id UUID,
      p_title TEXT DEFAULT NULL,
      p_content TEXT DEFAULT NULL,
      p_collection_id UUID DEFAULT NULL,
      p_external_id TEXT DEFAULT NULL,
      p_metadata JSONB DEFAULT NULL,
      p_categories UUID[] DEFAULT NULL
    )
    RETURNS TABLE (
      id UUID, organization_id UUID, collection_id UUID, title VARCHAR, content TEXT,
      external_id VARCHAR, metadata JSONB, created_by UUID,
      created_at TIMESTAMPTZ, updated_at TIMESTAMPTZ
    )
    LANGUAGE plpgsql
    AS $$
    BEGIN
      UPDATE documents d SET
        title = COALESCE(p_title, d.title),
        content = COALESCE(p_content, d.content),
        collection_id = COALESCE(p_collection_id, d.collection_id),
        external_id = COALESCE(p_external_id, d.external_id),
        metadata = COALESCE(p_metadata, d.metadata),
        updated_at = NOW()
      WHERE d.id = p_id AND d.organization_id = p_organization_id;

      IF p_categories IS NOT NULL THEN
        DELETE FROM document_categories dc WHERE dc.document_id = p_id;
        INSERT INTO document_categories (document_id, category_id)
        SELECT p_id, c.id
        FROM categories c
        WHERE c.id = ANY(p_categories) AND c.organization_id = p_organization_id;
      END IF;

      RETURN QUERY
      SELECT d.id, d.organization_id, d.collection_id, d.title, d.content,
             d.external_id, d.metadata, d.created_by, d.created_at, d.updated_at
      FROM documents d WHERE d.id = p_id AND d.organization_id = p_organization_id;
    END;
    $$
    """,

    """
    CREATE OR REPLACE FUNCTION batch_create_documents(
      p_documents JSONB,
      p_organization_id UUID,
      p_created_by UUID DEFAULT NULL
    )
    RETURNS TABLE (
      id UUID, organization_id UUID, collection_id UUID, title VARCHAR, content TEXT,
      external_id VARCHAR, metadata JSONB, created_by UUID,
      created_at TIMESTAMPTZ, updated_at TIMESTAMPTZ
    )
    LANGUAGE plpgsql
    AS $$
    DECLARE
      item JSONB;
    BEGIN
      FOR item IN SELECT * FROM jsonb_array_elements(p_documents)
      LOOP
        RETURN QUERY
        SELECT * FROM create_document_with_categories(
          p_title => item->>'title',
          p_content => item->>'content',
          p_organization_id => p_organization_id,
          p_collection_id => NULLIF(item->>'collection_id', '')::uuid,
          p_external_id => item->>'external_id',
          p_metadata => COALESCE(item->'metadata', '{}'),
          p_created_by => p_created_by,
          p_categories => ARRAY(SELECT jsonb_array_elements_text(COALESCE(item->'categories', '[]')))::uuid[]
        );
      END LOOP;
    END;
    $$
    """,

    # platform_embed() is supplied by the platform's automatic-embeddings extension
    """
    CREATE OR REPLACE FUNCTION search_documents(
      query_text TEXT,
      organization_id UUID,
      match_count INTEGER DEFAULT 10,
      collection_id UUID DEFAULT NULL,
      category_ids UUID[] DEFAULT NULL,
      similarity_threshold FLOAT DEFAULT 0.7
    )
    RETURNS TABLE (id UUID, title VARCHAR, content TEXT, metadata JSONB, similarity FLOAT)
    LANGUAGE plpgsql
    AS $$
    DECLARE
      query_embedding vector(1536) := platform_embed(query_text);
    BEGIN
      RETURN QUERY
      SELECT ranked.id, ranked.title, ranked.content, ranked.metadata, ranked.similarity
      FROM (
        SELECT d.id, d.title, d.content, d.metadata,
               1 - (d.embedding <=> query_embedding) AS similarity
        FROM documents d
        WHERE d.organization_id = search_documents.organization_id
          AND d.embedding IS NOT NULL
          AND (search_documents.collection_id IS NULL OR d.collection_id = search_documents.collection_id)
          AND (
            search_documents.category_ids IS NULL
            OR EXISTS (
              SELECT 1 FROM document_categories dc
              WHERE dc.document_id = d.id AND dc.category_id = ANY(search_documents.category_ids)
            )
          )
      ) ranked
      WHERE ranked.similarity >= similarity_threshold
      ORDER BY ranked.similarity DESC
      LIMIT match_count;
    END;
    $$
    """,
]


async def provision_platform_schema(engine: AsyncEngine) -> None:
    """
    Create tables and install procedures on a development database.

    Every statement is idempotent, so this is safe to run on each startup.
    """
    logger.info("Provisioning platform schema")

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
        for statement in PLATFORM_SQL:
            await conn.execute(text(statement))

    logger.info(f"Installed {len(PLATFORM_SQL)} platform statements")
