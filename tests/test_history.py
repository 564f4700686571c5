"""Tests for saving and listing prescription analyses."""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from medilens.models.prescription import Prescription
from medilens.schemas.history import HistoryItem, SaveAnalysisRequest
from medilens.services.history import build_prescription, save_analysis, to_history_item

SAVE_PAYLOAD = {
    "imageUrl": "https://storage.example.com/rx/1.jpg",
    "ocrText": "Dr. Karim\nTab. Warfarin 5mg\nTab. Aspirin 75mg",
    "extractedData": {
        "doctor": "Dr. Karim",
        "hospital": None,
        "date": "12/05/2024",
        "medicines": [{"name": "Warfarin", "dose": "5mg"}, {"name": "Aspirin", "dose": "75mg"}],
    },
    "authenticity": {"authenticity": "genuine", "reasons": ["Signed", "Registration number present"]},
    "interactions": [{"drug_a": "Warfarin", "drug_b": "Aspirin", "severity": "severe", "description": "Bleeding"}],
}


class TestBuildPrescription:
    def test_maps_full_graph(self):
        user_id = uuid.uuid4()
        payload = SaveAnalysisRequest.model_validate(SAVE_PAYLOAD)

        prescription = build_prescription(user_id, payload)

        assert prescription.user_id == user_id
        assert prescription.image_url == SAVE_PAYLOAD["imageUrl"]
        assert prescription.extracted_data.doctor == "Dr. Karim"
        assert prescription.extracted_data.prescription_date == "12/05/2024"
        assert [m.name for m in prescription.extracted_data.medicines] == ["Warfarin", "Aspirin"]
        assert prescription.authenticity_result.reasons == ["Signed", "Registration number present"]
        assert prescription.drug_interactions[0].severity == "severe"

    def test_round_trips_to_history_item(self):
        payload = SaveAnalysisRequest.model_validate(SAVE_PAYLOAD)
        prescription = build_prescription(uuid.uuid4(), payload)
        prescription.id = uuid.uuid4()
        prescription.created_at = datetime(2024, 5, 12, tzinfo=timezone.utc)

        item = to_history_item(prescription)

        assert item.id == prescription.id
        assert item.extracted_data == payload.extracted_data
        assert item.authenticity == payload.authenticity
        assert item.interactions == payload.interactions

    def test_history_item_without_children(self):
        prescription = Prescription(
            id=uuid.uuid4(),
            user_id=uuid.uuid4(),
            image_url="https://storage.example.com/rx/2.jpg",
            created_at=datetime.now(timezone.utc),
        )
        item = to_history_item(prescription)
        assert item.extracted_data is None
        assert item.authenticity is None
        assert item.interactions == []


async def test_save_analysis_adds_and_flushes():
    db = MagicMock()
    db.flush = AsyncMock()
    payload = SaveAnalysisRequest.model_validate(SAVE_PAYLOAD)

    prescription = await save_analysis(db, uuid.uuid4(), payload)

    db.add.assert_called_once_with(prescription)
    db.flush.assert_awaited_once()


# ==========================================================================
# API
# ==========================================================================


class TestHistoryApi:
    async def test_save_requires_auth(self, client, db_session):
        resp = await client.post("/api/v1/history", json=SAVE_PAYLOAD)
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "error": "Not authenticated"}

    async def test_save(self, client, db_session, auth_headers, user_id):
        saved = MagicMock(id=uuid.uuid4())
        with patch("medilens.api.v1.history.save_analysis", AsyncMock(return_value=saved)) as mock_save:
            resp = await client.post("/api/v1/history", json=SAVE_PAYLOAD, headers=auth_headers)

        assert resp.status_code == 201
        assert resp.json() == {"success": True, "prescriptionId": str(saved.id)}
        args = mock_save.await_args.args
        assert args[0] is db_session
        assert args[1] == user_id
        assert args[2].extracted_data.medicines[0].name == "Warfarin"

    async def test_save_validates_body(self, client, db_session, auth_headers):
        resp = await client.post("/api/v1/history", json={"imageUrl": "x"}, headers=auth_headers)
        assert resp.status_code == 422

    async def test_list(self, client, db_session, auth_headers, user_id):
        item = HistoryItem(
            id=uuid.uuid4(),
            image_url="https://storage.example.com/rx/1.jpg",
            ocr_text="...",
            created_at=datetime(2024, 5, 12, tzinfo=timezone.utc),
        )
        with patch("medilens.api.v1.history.list_history", AsyncMock(return_value=[item])) as mock_list:
            resp = await client.get("/api/v1/history?limit=10", headers=auth_headers)

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"][0]["imageUrl"] == "https://storage.example.com/rx/1.jpg"
        assert body["data"][0]["interactions"] == []
        mock_list.assert_awaited_once_with(db_session, user_id, limit=10, offset=0)

    async def test_list_rejects_bad_token(self, client, db_session, token_factory, user_id):
        token = token_factory(user_id, secret="some-other-secret-that-is-long-enough")
        resp = await client.get("/api/v1/history", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
