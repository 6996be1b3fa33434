# =============================================================================
# Context Loader — Bounded Knowledge-Base Excerpt per Request
# =============================================================================
#
# Turns the caller's most recent uploaded documents into one text block
# that is prepended to every agent prompt:
#
#   === KNOWLEDGE BASE ===
#   📄 GCC_market_report.pdf:
#   <first 1500 chars of extracted text>
#   ---
#   📄 competitor_pricing.xlsx:
#   ...
#
# BOUNDS (settings):
#   context_max_documents   newest N documents (5)
#   context_document_chars  per-document excerpt (1500)
#   context_max_chars       whole block, marker included (4000)
#
# SCOPING: project_id wins over workspace_id when both are given.
#
# Anonymous callers (user_id=None) get "" and the workflow proceeds
# without context. A database error degrades the same way.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.models import KnowledgeDocument

logger = logging.getLogger(__name__)

CONTEXT_HEADER = "\n=== KNOWLEDGE BASE ===\n"


async def load_context(
    session: AsyncSession,
    user_id: str | None,
    workspace_id: str | None = None,
    project_id: str | None = None,
) -> str:
    """
    Load the knowledge-base context for one request.

    Args:
        session: Database session.
        user_id: Authenticated identity, or None for anonymous callers.
        workspace_id: Optional workspace scope.
        project_id: Optional project scope (takes precedence).

    Returns:
        Context text no longer than settings.context_max_chars, or "".
    """
    if not user_id:
        return ""

    stmt = build_documents_query(user_id, workspace_id, project_id)
    try:
        result = await session.execute(stmt)
        rows = result.all()
    except SQLAlchemyError as e:
        logger.warning("Failed to load knowledge context for %s: %s", user_id, e)
        return ""

    context = render_context((row.file_name, row.content) for row in rows)
    logger.info(
        "Loaded knowledge context: user=%s, documents=%d, chars=%d",
        user_id, len(rows), len(context),
    )
    return context


def build_documents_query(
    user_id: str,
    workspace_id: str | None,
    project_id: str | None,
) -> Select:
    """Newest documents of `user_id`, scoped by project or else workspace."""
    stmt = select(KnowledgeDocument.file_name, KnowledgeDocument.content).where(
        KnowledgeDocument.user_id == user_id,
    )
    if project_id:
        stmt = stmt.where(KnowledgeDocument.project_id == project_id)
    elif workspace_id:
        stmt = stmt.where(KnowledgeDocument.workspace_id == workspace_id)

    return stmt.order_by(KnowledgeDocument.created_at.desc()).limit(
        settings.context_max_documents,
    )


def render_context(documents: Iterable[tuple[str, str | None]]) -> str:
    """Format (file_name, content) pairs and cap the result."""
    sections = [
        f"📄 {file_name}:\n{content[:settings.context_document_chars]}\n---\n"
        for file_name, content in documents
        if content
    ]
    if not sections:
        return ""

    return truncate_text(
        CONTEXT_HEADER + "".join(sections),
        settings.context_max_chars,
        settings.context_truncation_marker,
    )


def truncate_text(text: str, max_chars: int, marker: str) -> str:
    """
    Hard-cut `text` so that, marker included, it fits in `max_chars`.

    Text already within the cap is returned unchanged.
    """
    if len(text) <= max_chars:
        return text
    keep = max(max_chars - len(marker), 0)
    return text[:keep] + marker
