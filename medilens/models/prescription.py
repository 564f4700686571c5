import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medilens.db.base import Base


class Prescription(Base):
    """One analysed prescription image and everything extracted from it."""

    __tablename__ = "prescriptions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    ocr_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )

    # Relationships
    extracted_data: Mapped["ExtractedDataRecord | None"] = relationship(
        "ExtractedDataRecord", back_populates="prescription", uselist=False, cascade="all, delete-orphan"
    )
    authenticity_result: Mapped["AuthenticityRecord | None"] = relationship(
        "AuthenticityRecord", back_populates="prescription", uselist=False, cascade="all, delete-orphan"
    )
    drug_interactions: Mapped[list["DrugInteractionRecord"]] = relationship(
        "DrugInteractionRecord", back_populates="prescription", cascade="all, delete-orphan"
    )


class ExtractedDataRecord(Base):
    __tablename__ = "extracted_data"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    prescription_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("prescriptions.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    doctor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    hospital: Mapped[str | None] = mapped_column(String(255), nullable=True)
    prescription_date: Mapped[str | None] = mapped_column(String(50), nullable=True)  # as printed, not parsed

    prescription: Mapped["Prescription"] = relationship("Prescription", back_populates="extracted_data")
    medicines: Mapped[list["MedicineRecord"]] = relationship(
        "MedicineRecord", back_populates="extracted_data", cascade="all, delete-orphan"
    )


class MedicineRecord(Base):
    __tablename__ = "medicines"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    extracted_data_id: Mapped[int] = mapped_column(
        ForeignKey("extracted_data.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    dose: Mapped[str | None] = mapped_column(String(100), nullable=True)
    frequency: Mapped[str | None] = mapped_column(String(100), nullable=True)

    extracted_data: Mapped["ExtractedDataRecord"] = relationship("ExtractedDataRecord", back_populates="medicines")


class AuthenticityRecord(Base):
    __tablename__ = "authenticity_results"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    prescription_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("prescriptions.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    authenticity: Mapped[str] = mapped_column(String(20), nullable=False)  # genuine | suspicious | fake
    reasons: Mapped[list | None] = mapped_column(JSONB, nullable=True)

    prescription: Mapped["Prescription"] = relationship("Prescription", back_populates="authenticity_result")


class DrugInteractionRecord(Base):
    __tablename__ = "drug_interactions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    prescription_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("prescriptions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    drug_a: Mapped[str] = mapped_column(String(255), nullable=False)
    drug_b: Mapped[str] = mapped_column(String(255), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)  # none | mild | moderate | severe
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    prescription: Mapped["Prescription"] = relationship("Prescription", back_populates="drug_interactions")
