from medilens.models.prescription import (
    AuthenticityRecord,
    DrugInteractionRecord,
    ExtractedDataRecord,
    MedicineRecord,
    Prescription,
)

__all__ = [
    "AuthenticityRecord",
    "DrugInteractionRecord",
    "ExtractedDataRecord",
    "MedicineRecord",
    "Prescription",
]
