"""API tests for /api/v1/analyze and /api/v1/analyze-health-report."""

import base64
import json

import httpx

IMAGE_URL = "data:image/jpeg;base64," + base64.b64encode(b"fake-jpeg").decode()

EXTRACTED = {
    "doctor": "Dr. Karim",
    "hospital": "City Clinic",
    "date": "12/05/2024",
    "medicines": [
        {"name": "Warfarin", "dose": "5mg", "frequency": "once daily"},
        {"name": "Aspirin", "dose": "75mg", "frequency": None},
    ],
}


def _overloaded():
    return httpx.Response(503, json={"error": {"code": 503, "message": "The model is overloaded."}})


# ==========================================================================
# /analyze
# ==========================================================================


class TestAnalyze:
    async def test_ocr(self, client, use_gemini, gemini_response):
        script, _ = use_gemini(gemini_response("Dr. Karim\nTab. Warfarin 5mg"))

        resp = await client.post("/api/v1/analyze", json={"action": "ocr", "imageUrl": IMAGE_URL})

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "data": "Dr. Karim\nTab. Warfarin 5mg"}
        parts = json.loads(script.requests[0].content)["contents"][0]["parts"]
        assert parts[1]["inline_data"]["data"] == base64.b64encode(b"fake-jpeg").decode()

    async def test_ocr_requires_image(self, client, use_gemini):
        script, _ = use_gemini()
        resp = await client.post("/api/v1/analyze", json={"action": "ocr"})
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Image URL required"}
        assert script.requests == []

    async def test_extract(self, client, use_gemini, gemini_response):
        use_gemini(gemini_response("```json\n" + json.dumps(EXTRACTED) + "\n```"))

        resp = await client.post("/api/v1/analyze", json={"action": "extract", "ocrText": "Dr. Karim Tab. Warfarin 5mg"})

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["doctor"] == "Dr. Karim"
        assert data["medicines"][1] == {"name": "Aspirin", "dose": "75mg", "frequency": None}

    async def test_extract_rejects_short_ocr_text(self, client, use_gemini):
        script, _ = use_gemini()
        resp = await client.post("/api/v1/analyze", json={"action": "extract", "ocrText": "too short"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Valid OCR text required"
        assert script.requests == []

    async def test_extract_unparseable_is_500(self, client, use_gemini, gemini_response):
        use_gemini(gemini_response("I am unable to read this prescription."))
        resp = await client.post("/api/v1/analyze", json={"action": "extract", "ocrText": "long enough ocr text"})
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "Failed to parse extraction result", "isQuotaError": False}

    async def test_authenticity(self, client, use_gemini, gemini_response):
        use_gemini(gemini_response('{"authenticity": "suspicious", "reasons": ["No registration number"]}'))

        resp = await client.post(
            "/api/v1/analyze",
            json={"action": "authenticity", "ocrText": "Dr. Karim ...", "extractedData": EXTRACTED},
        )

        assert resp.status_code == 200
        assert resp.json()["data"] == {"authenticity": "suspicious", "reasons": ["No registration number"]}

    async def test_authenticity_requires_extracted_data(self, client, use_gemini):
        use_gemini()
        resp = await client.post("/api/v1/analyze", json={"action": "authenticity", "ocrText": "Dr. Karim ..."})
        assert resp.status_code == 400
        assert resp.json()["error"] == "OCR text and extracted data required"

    async def test_interactions(self, client, use_gemini, gemini_response):
        reply = '[{"drug_a": "Warfarin", "drug_b": "Aspirin", "severity": "severe", "description": "Bleeding"}]'
        use_gemini(gemini_response(reply))

        resp = await client.post("/api/v1/analyze", json={"action": "interactions", "extractedData": EXTRACTED})

        assert resp.status_code == 200
        assert resp.json()["data"] == [
            {"drug_a": "Warfarin", "drug_b": "Aspirin", "severity": "severe", "description": "Bleeding"}
        ]

    async def test_interactions_single_medicine_skips_model(self, client, use_gemini):
        script, _ = use_gemini()
        single = {**EXTRACTED, "medicines": EXTRACTED["medicines"][:1]}

        resp = await client.post("/api/v1/analyze", json={"action": "interactions", "extractedData": single})

        assert resp.json() == {"success": True, "data": []}
        assert script.requests == []

    async def test_invalid_action(self, client, use_gemini):
        use_gemini()
        resp = await client.post("/api/v1/analyze", json={"action": "diagnose"})
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Invalid action"}

    async def test_capacity_exceeded_is_429(self, client, use_gemini):
        script, sleep = use_gemini(_overloaded(), _overloaded(), _overloaded())

        resp = await client.post("/api/v1/analyze", json={"action": "extract", "ocrText": "long enough ocr text"})

        assert resp.status_code == 429
        body = resp.json()
        assert body["success"] is False
        assert body["isQuotaError"] is True
        assert "at capacity" in body["error"]
        assert len(script.requests) == 3
        assert sleep.await_count == 2

    async def test_remote_error_is_500(self, client, use_gemini):
        use_gemini(httpx.Response(400, json={"error": {"message": "API key not valid"}}))

        resp = await client.post("/api/v1/analyze", json={"action": "extract", "ocrText": "long enough ocr text"})

        assert resp.status_code == 500
        assert resp.json()["isQuotaError"] is False
        assert "API key not valid" in resp.json()["error"]


# ==========================================================================
# /analyze-health-report
# ==========================================================================

LAB_REPLY = {
    "rawText": "Hemoglobin 10.2",
    "analysis": {
        "extractedData": {"patientName": None, "testResults": [{"testName": "Hemoglobin", "value": "10.2", "status": "low"}]},
        "abnormalities": [],
        "dietRecommendations": [],
        "overallHealthAssessment": "Low hemoglobin.",
    },
}


class TestHealthReport:
    async def test_analyze_lab_report(self, client, use_gemini, gemini_response):
        script, _ = use_gemini(gemini_response(json.dumps(LAB_REPLY)))

        resp = await client.post(
            "/api/v1/analyze-health-report", json={"action": "analyze-lab-report", "imageUrl": IMAGE_URL}
        )

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["rawText"] == "Hemoglobin 10.2"
        assert data["analysis"]["extractedData"]["testResults"][0]["testName"] == "Hemoglobin"
        assert data["analysis"]["overallHealthAssessment"] == "Low hemoglobin."
        body = json.loads(script.requests[0].content)
        assert body["generationConfig"]["responseMimeType"] == "application/json"

    async def test_requires_image(self, client, use_gemini):
        use_gemini()
        resp = await client.post("/api/v1/analyze-health-report", json={"action": "analyze-lab-report"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Image URL required"

    async def test_invalid_action(self, client, use_gemini):
        use_gemini()
        resp = await client.post("/api/v1/analyze-health-report", json={"action": "ocr", "imageUrl": IMAGE_URL})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid action"

    async def test_unparseable_reply(self, client, use_gemini, gemini_response):
        use_gemini(gemini_response("not json at all"))
        resp = await client.post(
            "/api/v1/analyze-health-report", json={"action": "analyze-lab-report", "imageUrl": IMAGE_URL}
        )
        assert resp.status_code == 500
        assert resp.json()["error"] == "Failed to parse AI response. Please try again."

    async def test_invalid_image_url(self, client, use_gemini):
        use_gemini()
        resp = await client.post(
            "/api/v1/analyze-health-report", json={"action": "analyze-lab-report", "imageUrl": "not-a-url"}
        )
        assert resp.status_code == 400


async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


async def test_metrics(client):
    await client.get("/api/v1/health")
    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
