"""Database configuration and session management."""

from collections.abc import Callable, Generator
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Engine, Integer, String, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from labflow.core.config import settings

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests and local runs)
DocumentType = JSON().with_variant(JSONB(), "postgresql")

# Lazy initialized engine and session factory
_engine: Engine | None = None
_session_maker: sessionmaker[Session] | None = None


def get_engine() -> Engine:
    """Get or create the database engine.

    Lazily creates the engine on first use so that importing the
    application never requires a reachable database or an installed
    driver.
    """
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.database_url,
            echo=settings.debug,
            future=True,
            pool_pre_ping=True,
        )
    return _engine


def get_session_maker() -> sessionmaker[Session]:
    """Get or create the session factory bound to the engine."""
    global _session_maker
    if _session_maker is None:
        _session_maker = sessionmaker(
            bind=get_engine(),
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )
    return _session_maker


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


class ResourceRecordMixin:
    """Columns shared by every stored FHIR resource table.

    Provides:
    - id: FHIR logical id (client-supplied or generated UUID)
    - document: the full resource JSON, stored verbatim
    - created_at / last_updated: UTC timestamps
    - version_id: starts at 1, incremented on every mutation
    - is_deleted: soft-delete flag
    """

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )
    document: Mapped[dict] = mapped_column(
        DocumentType,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    version_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )
    is_deleted: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        index=True,
    )

    @classmethod
    def extracted_columns(cls) -> list[str]:
        """Names of the searchable columns mirrored from the document."""
        return [name for name in cls.__table__.columns.keys() if name not in RECORD_COLUMNS]

    def apply_document(self, document: dict, extract: Callable[[dict], dict[str, Any]]) -> None:
        """Replace the document and re-derive every extracted column from it.

        This is the only place extracted columns are assigned. Columns the
        extractor does not return are reset to None.
        """
        fields = extract(document)
        unknown = set(fields) - set(self.extracted_columns())
        if unknown:
            raise ValueError(f"Extractor returned unknown columns: {sorted(unknown)}")

        self.document = document
        for name in self.extracted_columns():
            setattr(self, name, fields.get(name))


# Columns owned by ResourceRecordMixin; everything else on a record table is extracted
RECORD_COLUMNS = frozenset(
    {"id", "document", "created_at", "last_updated", "version_id", "is_deleted"}
)


def get_db() -> Generator[Session, None, None]:
    """Dependency to get database session.

    Usage in FastAPI:
        @router.get("/Patient")
        def search(db: Session = Depends(get_db)):
            ...
    """
    session = get_session_maker()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Initialize database tables.

    For development only; production schemas are managed outside the app.
    """
    # Import models so their tables are registered on Base.metadata
    import labflow.models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


def close_db() -> None:
    """Close database connections."""
    global _engine, _session_maker
    if _engine is not None:
        _engine.dispose()
        _engine = None
        _session_maker = None
