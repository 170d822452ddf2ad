"""SQLAlchemy model for stored ServiceRequest resources."""

from datetime import datetime

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from labflow.core.database import Base, ResourceRecordMixin


class ServiceRequestRecord(ResourceRecordMixin, Base):
    """Laboratory test order."""

    __tablename__ = "service_requests"

    subject_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    code: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    code_display: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    status: Mapped[str | None] = mapped_column(String(30), nullable=True, index=True)

    # proposal, plan, directive, order, ...
    intent: Mapped[str | None] = mapped_column(String(30), nullable=True, index=True)

    category: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)

    # routine, urgent, asap, stat
    priority: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)

    authored_on: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )

    # Full reference strings ("Practitioner/123"); targets may live on other servers
    requester_id: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)
    performer_id: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)

    occurrence_date_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )

    __table_args__ = (
        Index("ix_service_requests_subject_id_authored", "subject_id", "authored_on"),
    )

    def __repr__(self) -> str:
        return f"<ServiceRequestRecord(id={self.id}, code={self.code}, intent={self.intent})>"
