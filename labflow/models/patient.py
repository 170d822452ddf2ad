"""SQLAlchemy model for stored Patient resources."""

from datetime import date

from sqlalchemy import Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from labflow.core.database import Base, ResourceRecordMixin


class PatientRecord(ResourceRecordMixin, Base):
    """Patient demographics and identification.

    The FHIR document is authoritative; the remaining columns are mirrored
    from it on every write to make search filters indexable.
    """

    __tablename__ = "patients"

    family_name: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    given_name: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    # Lower-cased family, given and text name parts, space separated
    name_text: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    identifier: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    gender: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)

    __table_args__ = (
        Index("ix_patients_family_name_birth_date", "family_name", "birth_date"),
    )

    def __repr__(self) -> str:
        return f"<PatientRecord(id={self.id}, family_name={self.family_name}, version={self.version_id})>"
