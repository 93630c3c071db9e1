"""
Record Store Models

SQLAlchemy 2.0 ORM models for the clinic records the suggestion service
reads: pets (patient context) and medical records (SOAP notes to reindex).

Tables:
    pets:            Patients, scoped by tenant.
    medical_records: One SOAP note per visit, linked to a pet.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from soap_assist.models.base import Base, TimestampMixin


class Pet(Base, TimestampMixin):
    """
    A patient of a clinic.

    Attributes:
        id: UUID primary key.
        tenant_id: Owning clinic; every lookup filters on it.
        name: Pet name.
        species / breed / sex: Free-text descriptors.
        age: Age in years (fractional for young animals).
    """

    __tablename__ = "pets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    species: Mapped[str | None] = mapped_column(String(100), nullable=True)
    breed: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sex: Mapped[str | None] = mapped_column(String(20), nullable=True)
    age: Mapped[float | None] = mapped_column(Float, nullable=True)

    records: Mapped[list[MedicalRecord]] = relationship(back_populates="pet")

    def __repr__(self) -> str:
        return f"<Pet(id={self.id!s:.8}, name='{self.name}', species={self.species})>"


class MedicalRecord(Base, TimestampMixin):
    """
    A visit's SOAP note.

    Any of the four sections may be empty; empty sections are never indexed.
    """

    __tablename__ = "medical_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    pet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("pets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    veterinarian: Mapped[str | None] = mapped_column(String(200), nullable=True)
    visit_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    subjective: Mapped[str | None] = mapped_column(Text, nullable=True)
    objective: Mapped[str | None] = mapped_column(Text, nullable=True)
    assessment: Mapped[str | None] = mapped_column(Text, nullable=True)
    plan: Mapped[str | None] = mapped_column(Text, nullable=True)

    pet: Mapped[Pet] = relationship(back_populates="records")

    def __repr__(self) -> str:
        return f"<MedicalRecord(id={self.id!s:.8}, pet={self.pet_id!s:.8})>"
