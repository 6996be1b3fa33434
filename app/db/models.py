# =============================================================================
# Database Models — SQLAlchemy ORM
# =============================================================================
#
# SCHEMA OVERVIEW:
#
# ┌──────────────────┐   ┌──────────────────┐   ┌──────────────────────┐
# │  documents       │   │  api_keys        │   │  workflow_runs       │
# ├──────────────────┤   ├──────────────────┤   ├──────────────────────┤
# │ id (PK)          │   │ id (PK)          │   │ id (PK, workflow id) │
# │ user_id          │   │ name             │   │ user_id              │
# │ workspace_id     │   │ user_id          │   │ workspace_id         │
# │ project_id       │   │ key_prefix       │   │ project_id           │
# │ file_name        │   │ key_hash (uniq)  │   │ name, status         │
# │ file_type        │   │ is_active        │   │ request              │
# │ content (text)   │   │ expires_at       │   │ step_count           │
# │ created_at       │   │ last_used_at     │   │ failed_steps         │
# └──────────────────┘   │ created_at       │   │ steps (jsonb)        │
#                        └──────────────────┘   │ final_result         │
#                                               │ total_latency_ms     │
#                                               │ created_at           │
#                                               └──────────────────────┘
#
# documents      — read-only here. Rows are written by the upload/text
#                  extraction service; `content` holds the extracted text.
# api_keys       — bearer keys resolving to a user identity.
# workflow_runs  — write-only log of completed workflows.
#
# user_id / workspace_id / project_id are opaque identifiers issued by
# the identity service (UUID strings), hence String columns.
# =============================================================================

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


class KnowledgeDocument(Base):
    """An uploaded document whose extracted text feeds the knowledge context."""

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Owner and optional scoping
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    workspace_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    project_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Original filename as uploaded (e.g., "GCC_market_report_2025.pdf")
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Extracted text; null for images or while extraction is pending
    content: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<KnowledgeDocument(id={self.id}, file_name='{self.file_name}')>"


# Supports the context query: newest documents of one user
document_user_created_idx = Index(
    "idx_document_user_created",
    KnowledgeDocument.user_id,
    KnowledgeDocument.created_at,
)


class ApiKey(Base):
    """
    A bearer API key. Only the SHA-256 hash is stored; the raw key is
    shown once at creation (see scripts/create_api_key.py).
    """

    __tablename__ = "api_keys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Human-readable label, e.g. "dashboard-prod"
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Identity the key authenticates as
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # First 8 chars of the raw key, for identification in logs
    key_prefix: Mapped[str] = mapped_column(String(16), nullable=False)
    key_hash: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ApiKey(id={self.id}, name='{self.name}', prefix='{self.key_prefix}')>"


class WorkflowRun(Base):
    """One row per completed multi-agent workflow."""

    __tablename__ = "workflow_runs"

    # The workflow's own uuid4
    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    workspace_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    project_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    name: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    request: Mapped[str] = mapped_column(Text, nullable=False)

    step_count: Mapped[int] = mapped_column(Integer, nullable=False)
    failed_steps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # [{"agent_id": ..., "task": ..., "status": ...}, ...]
    steps: Mapped[list | None] = mapped_column(JSONB, nullable=True)

    final_result: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_latency_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<WorkflowRun(id={self.id}, name='{self.name}', "
            f"steps={self.step_count}, failed={self.failed_steps})>"
        )
