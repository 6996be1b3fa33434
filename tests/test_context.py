# =============================================================================
# Unit Tests — Knowledge Context Loader
# =============================================================================

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.exc import OperationalError

from app.config import settings
from app.services.context import (
    CONTEXT_HEADER,
    build_documents_query,
    load_context,
    render_context,
    truncate_text,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


@dataclass
class FakeRow:
    file_name: str
    content: str | None


def _session_returning(rows: list[FakeRow]) -> AsyncMock:
    result = MagicMock()
    result.all.return_value = rows
    session = AsyncMock()
    session.execute.return_value = result
    return session


class TestLoadContext:
    """Tests for load_context()."""

    def test_anonymous_gets_empty_context(self):
        session = AsyncMock()
        assert _run(load_context(session, None)) == ""
        session.execute.assert_not_awaited()

    def test_large_documents_are_capped(self):
        rows = [FakeRow(f"report_{i}.pdf", "x" * 2000) for i in range(5)]
        context = _run(load_context(_session_returning(rows), "user-1"))

        assert len(context) <= settings.context_max_chars
        assert context.endswith(settings.context_truncation_marker)
        assert context.startswith(CONTEXT_HEADER)

    def test_small_documents_unchanged(self):
        rows = [FakeRow("pricing.xlsx", "Competitor A: $49/month")]
        context = _run(load_context(_session_returning(rows), "user-1"))
        assert context == (
            CONTEXT_HEADER + "📄 pricing.xlsx:\nCompetitor A: $49/month\n---\n"
        )

    def test_no_documents(self):
        assert _run(load_context(_session_returning([]), "user-1")) == ""

    def test_database_error_degrades_to_empty(self):
        session = AsyncMock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))
        assert _run(load_context(session, "user-1")) == ""


class TestRenderContext:
    """Tests for render_context()."""

    def test_per_document_excerpt(self):
        context = render_context([("a.pdf", "y" * 1600)])
        assert "y" * 1500 in context
        assert "y" * 1501 not in context

    def test_skips_documents_without_text(self):
        context = render_context([("empty.pdf", ""), ("none.pdf", None), ("b.txt", "b")])
        assert "empty.pdf" not in context
        assert "none.pdf" not in context
        assert "📄 b.txt:\nb\n---\n" in context

    def test_preserves_order(self):
        context = render_context([("new.pdf", "n"), ("old.pdf", "o")])
        assert context.index("new.pdf") < context.index("old.pdf")


class TestDocumentsQuery:
    """Tests for document scoping."""

    def test_project_takes_precedence(self):
        sql = str(build_documents_query("u", "ws", "proj"))
        assert "documents.project_id" in sql
        assert "documents.workspace_id" not in sql

    def test_workspace_scope(self):
        sql = str(build_documents_query("u", "ws", None))
        assert "documents.workspace_id" in sql
        assert "documents.project_id" not in sql

    def test_user_scope_newest_first_limited(self):
        sql = str(build_documents_query("u", None, None))
        assert "documents.user_id" in sql
        assert "ORDER BY documents.created_at DESC" in sql
        assert "LIMIT" in sql


class TestTruncateText:
    """Tests for truncate_text()."""

    def test_under_cap_untouched(self):
        assert truncate_text("short", 10, "[cut]") == "short"

    def test_exactly_at_cap_untouched(self):
        assert truncate_text("x" * 10, 10, "[cut]") == "x" * 10

    def test_over_cap_includes_marker(self):
        result = truncate_text("x" * 20, 10, "[cut]")
        assert result == "xxxxx[cut]"
        assert len(result) == 10
