"""SQLAlchemy model for stored DiagnosticReport resources."""

from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from labflow.core.database import Base, ResourceRecordMixin


class DiagnosticReportRecord(ResourceRecordMixin, Base):
    """Report grouping laboratory observations (e.g. a CBC or metabolic panel)."""

    __tablename__ = "diagnostic_reports"

    subject_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    code: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    code_display: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    status: Mapped[str | None] = mapped_column(String(30), nullable=True, index=True)

    # Upper-cased v2-0074 section code (LAB, HM, CH, ...)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)

    effective_date_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )
    issued: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )

    # Comma-separated Observation ids from DiagnosticReport.result
    result_ids: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)

    conclusion: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)

    __table_args__ = (
        Index("ix_diagnostic_reports_subject_id_effective", "subject_id", "effective_date_time"),
    )

    def __repr__(self) -> str:
        return f"<DiagnosticReportRecord(id={self.id}, code={self.code}, status={self.status})>"
