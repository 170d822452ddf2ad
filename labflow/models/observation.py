"""SQLAlchemy model for stored Observation resources."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from labflow.core.database import Base, ResourceRecordMixin


class ObservationRecord(ResourceRecordMixin, Base):
    """Laboratory result or measurement.

    Examples:
    - Hemoglobin 13.2 g/dL (LOINC 718-7)
    - Glucose 95 mg/dL (LOINC 2339-0)
    - Blood culture: no growth (coded value)
    """

    __tablename__ = "observations"

    # Patient id from subject reference ("Patient/123" -> "123")
    subject_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    # First coding of Observation.code
    code: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    code_display: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    status: Mapped[str | None] = mapped_column(String(30), nullable=True, index=True)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)

    effective_date_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )

    # valueQuantity
    value_quantity: Mapped[float | None] = mapped_column(Float, nullable=True, index=True)
    value_unit: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)

    # valueCodeableConcept first code
    value_code: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)

    __table_args__ = (
        Index("ix_observations_subject_id_effective", "subject_id", "effective_date_time"),
    )

    def __repr__(self) -> str:
        return f"<ObservationRecord(id={self.id}, code={self.code}, subject_id={self.subject_id})>"
