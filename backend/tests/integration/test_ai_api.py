"""
Integration tests for the inline AI analysis endpoints.
"""

import os

import openai

from tests.conftest import auth_headers
from tests.samples import PNG_BYTES, make_completion, make_pdf_bytes, openai_response


def post_png(client, user, path, data=None):
    return client.post(
        f"/api/ai/{path}",
        files={"report": ("scan.png", PNG_BYTES, "image/png")},
        data=data or {},
        headers=auth_headers(user),
    )


class TestAnalyzeReport:

    def test_explanation_returned_and_file_removed(self, client, patient, upload_dir):
        response = post_png(client, patient, "analyze-report")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["analysis"] == "Your hemoglobin is within the normal range."
        assert data["model"] == "gpt-4o"
        assert data["total_tokens"] == 321
        assert data["timestamp"]
        assert os.listdir(upload_dir) == []

    def test_upstream_failure_is_502(self, client, patient, mock_openai_client, upload_dir):
        mock_openai_client.chat.completions.create.side_effect = openai.AuthenticationError(
            "bad key", response=openai_response(401), body=None
        )

        response = post_png(client, patient, "analyze-report")

        assert response.status_code == 502
        assert response.json() == {"success": False, "message": "Invalid OpenAI API key."}
        assert os.listdir(upload_dir) == []

    def test_unsupported_type_rejected(self, client, patient, mock_openai_client):
        response = client.post(
            "/api/ai/analyze-report",
            files={"report": ("notes.txt", b"hello", "text/plain")},
            headers=auth_headers(patient),
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid file type"
        mock_openai_client.chat.completions.create.assert_not_called()

    def test_inline_size_limit(self, client, patient):
        response = client.post(
            "/api/ai/analyze-report",
            files={"report": ("big.pdf", make_pdf_bytes(10 * 1024 * 1024 + 1), "application/pdf")},
            headers=auth_headers(patient),
        )

        assert response.status_code == 413
        assert response.json()["message"] == "File size too large (max 10MB)"

    def test_requires_authentication(self, client):
        response = client.post(
            "/api/ai/analyze-report",
            files={"report": ("scan.png", PNG_BYTES, "image/png")},
        )
        assert response.status_code == 401


class TestAnalyzeWithContext:

    def test_context_echoed_and_used(self, client, patient, mock_openai_client):
        response = post_png(
            client, patient, "analyze-report-with-context",
            data={"age": "72", "gender": "male", "medical_history": "COPD"},
        )

        assert response.status_code == 200
        assert response.json()["patient_context"] == {"age": 72, "gender": "male", "medical_history": "COPD"}
        prompt = mock_openai_client.chat.completions.create.call_args.kwargs["messages"][0]["content"][0]["text"]
        assert "Patient Age: 72" in prompt

    def test_invalid_age(self, client, patient):
        response = post_png(client, patient, "analyze-report-with-context", data={"age": "-3"})
        assert response.status_code == 422


class TestExtractInformation:

    def test_structured_extraction(self, client, patient, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = make_completion(
            '```json\n{"vitals": {"blood_pressure": "130/85"}, "medications": ["Lisinopril"], '
            '"summary": "Mild hypertension"}\n```'
        )

        response = post_png(client, patient, "extract-information", data={"information_types": "Vitals, medications"})

        assert response.status_code == 200
        data = response.json()
        assert data["information_types"] == ["vitals", "medications"]
        assert data["extracted_data"]["vitals"]["blood_pressure"] == "130/85"
        assert data["extracted_data"]["medications"] == ["Lisinopril"]
        assert data["extracted_data"]["diagnoses"] == []
        assert data["extracted_data"]["summary"] == "Mild hypertension"

    def test_default_information_types(self, client, patient, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = make_completion('{"summary": "ok"}')

        data = post_png(client, patient, "extract-information").json()

        assert data["information_types"] == ["vitals", "medications", "diagnoses", "recommendations"]

    def test_malformed_answer_is_422(self, client, patient, mock_openai_client, upload_dir):
        mock_openai_client.chat.completions.create.return_value = make_completion(
            "The patient's blood pressure is slightly elevated."
        )

        response = post_png(client, patient, "extract-information")

        assert response.status_code == 422
        assert response.json()["success"] is False
        assert "not valid JSON" in response.json()["message"]
        assert os.listdir(upload_dir) == []
