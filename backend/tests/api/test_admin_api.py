"""
Tests for the admin endpoints (/v1/admin).
"""
from assessment.models import Section
from assessment.models import models as m

MIDDLE_TWO_SURVEY = {
    "grade": "중2",
    "currentAcademyCount": "none",
    "highestEnglishScore": 96,
    "weeklyReadingCount": "1권",
    "weakestSubject": "듣기",
}


class TestAdminAuth:
    """Tests for X-Admin-Token verification."""

    def test_missing_token(self, client, student):
        response = client.post("/v1/admin/tests", json={"student_id": student.id})
        assert response.status_code == 422

    def test_invalid_token(self, client, student):
        response = client.post(
            "/v1/admin/tests",
            json={"student_id": student.id},
            headers={"X-Admin-Token": "wrong-token"},
        )
        assert response.status_code == 401

    def test_token_not_configured(self, client, student, admin_headers, monkeypatch):
        from assessment.core.config import settings

        monkeypatch.setattr(settings, "ADMIN_TOKEN", "")
        response = client.post(
            "/v1/admin/tests", json={"student_id": student.id}, headers=admin_headers
        )
        assert response.status_code == 500


class TestProvisionTest:
    """Tests for POST /v1/admin/tests."""

    def test_default_seed_without_survey(self, client, student, admin_headers, db_session):
        response = client.post(
            "/v1/admin/tests", json={"student_id": student.id}, headers=admin_headers
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "assigned"
        assert data["seed_source"] == "default"
        assert data["seeds"] == {s.value: "2.1" for s in Section}
        assert data["time_limit_seconds"] == 3000

        rows = db_session.query(m.TestSection).filter_by(test_id=data["test_id"]).all()
        assert sorted(row.section.value for row in rows) == sorted(s.value for s in Section)

    def test_seed_from_latest_survey(self, client, student, admin_headers, add_survey):
        add_survey(student.id, MIDDLE_TWO_SURVEY)

        response = client.post(
            "/v1/admin/tests", json={"student_id": student.id}, headers=admin_headers
        )

        data = response.json()
        assert data["seed_source"] == "parent_survey"
        assert data["seeds"] == {
            "grammar": "4.2",
            "reading": "4.2",
            "listening": "3.3",
            "dialog": "4.2",
        }
        assert data["seed_start"]["__meta"]["base_level"] == 4.2
        assert "weak_listening" in data["seed_start"]["__meta"]["profile_tags"]

    def test_seed_is_frozen_at_provisioning(
        self, client, student, auth_headers, admin_headers, add_survey, provision, add_questions
    ):
        add_questions(Section.GRAMMAR, "4.2", count=1)
        add_survey(student.id, MIDDLE_TWO_SURVEY)
        test_id = provision(student.id)["test_id"]
        add_survey(student.id, {"grade": "초1"})

        response = client.post(f"/v1/tests/{test_id}/start", headers=auth_headers)

        assert response.json()["seeds"]["grammar"] == "4.2"

    def test_malformed_survey_fields_are_ignored(
        self, client, student, admin_headers, add_survey
    ):
        add_survey(
            student.id,
            {
                **MIDDLE_TWO_SURVEY,
                "pastLearningMethods": 5,
                "highestEnglishScore": float("inf"),
            },
        )

        preview = client.get(
            f"/v1/admin/students/{student.id}/placement", headers=admin_headers
        )
        response = client.post(
            "/v1/admin/tests", json={"student_id": student.id}, headers=admin_headers
        )

        assert preview.status_code == 200
        assert preview.json()["source"] == "parent_survey"
        assert response.status_code == 201
        assert response.json()["seed_source"] == "parent_survey"

    def test_custom_time_limit(self, client, student, admin_headers):
        response = client.post(
            "/v1/admin/tests",
            json={"student_id": student.id, "time_limit_seconds": 1200},
            headers=admin_headers,
        )
        assert response.json()["time_limit_seconds"] == 1200

    def test_time_limit_validation(self, client, student, admin_headers):
        response = client.post(
            "/v1/admin/tests",
            json={"student_id": student.id, "time_limit_seconds": 10},
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_unknown_student(self, client, admin_headers, db_session):
        response = client.post(
            "/v1/admin/tests", json={"student_id": 4242}, headers=admin_headers
        )
        assert response.status_code == 404


class TestPlacementPreview:
    """Tests for GET /v1/admin/students/{student_id}/placement."""

    def test_preview_from_survey(self, client, student, admin_headers, add_survey):
        add_survey(student.id, MIDDLE_TWO_SURVEY)

        response = client.get(
            f"/v1/admin/students/{student.id}/placement", headers=admin_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["source"] == "parent_survey"
        assert data["background"] == "mixed"
        assert data["base_level"] == 4.2
        assert data["start_levels"]["listening"] == 3.3
        assert data["seeds"]["listening"] == "3.3"

    def test_preview_default(self, client, student, admin_headers):
        response = client.get(
            f"/v1/admin/students/{student.id}/placement", headers=admin_headers
        )

        data = response.json()
        assert data["source"] == "default"
        assert data["background"] is None
        assert data["seeds"] == {s.value: "2.1" for s in Section}

    def test_preview_does_not_create_tests(self, client, student, admin_headers, db_session):
        client.get(f"/v1/admin/students/{student.id}/placement", headers=admin_headers)
        assert db_session.query(m.Test).count() == 0


class TestReviewTest:
    """Tests for POST /v1/admin/tests/{test_id}/review."""

    def test_review_completed_test(
        self, client, student, auth_headers, admin_headers, catalog, provision
    ):
        test_id = provision(student.id)["test_id"]
        client.post(f"/v1/tests/{test_id}/start", headers=auth_headers)
        client.post(f"/v1/tests/{test_id}/finalize", headers=auth_headers)

        response = client.post(f"/v1/admin/tests/{test_id}/review", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "reviewed"

        # Reviewed tests still report their summary
        finalize = client.post(f"/v1/tests/{test_id}/finalize", headers=auth_headers)
        assert finalize.status_code == 200
        assert finalize.json()["summary"]["weighted_level"] == 2.1

        again = client.post(f"/v1/admin/tests/{test_id}/review", headers=admin_headers)
        assert again.status_code == 409

    def test_review_unfinished_test(self, client, student, admin_headers, provision):
        test_id = provision(student.id)["test_id"]

        response = client.post(f"/v1/admin/tests/{test_id}/review", headers=admin_headers)

        assert response.status_code == 409

    def test_review_unknown_test(self, client, admin_headers, db_session):
        response = client.post("/v1/admin/tests/999/review", headers=admin_headers)
        assert response.status_code == 404


class TestSectionWeights:
    """Tests for /v1/admin/config/section-weights."""

    def test_defaults_from_settings(self, client, admin_headers, db_session):
        response = client.get("/v1/admin/config/section-weights", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {
            "weights": {"reading": 0.4, "grammar": 0.3, "listening": 0.2, "dialog": 0.1},
            "source": "settings",
        }

    def test_update_and_read_back(self, client, admin_headers, db_session):
        weights = {"reading": 0.25, "grammar": 0.25, "listening": 0.25, "dialog": 0.25}

        response = client.put(
            "/v1/admin/config/section-weights",
            json={"weights": weights},
            headers=admin_headers,
        )
        assert response.status_code == 200

        data = client.get("/v1/admin/config/section-weights", headers=admin_headers).json()
        assert data == {"weights": weights, "source": "system_config"}

    def test_invalid_weights_rejected(self, client, admin_headers, db_session):
        response = client.put(
            "/v1/admin/config/section-weights",
            json={"weights": {"reading": -1.0}},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert "Invalid section weights" in response.json()["detail"]

    def test_unknown_section_rejected(self, client, admin_headers, db_session):
        response = client.put(
            "/v1/admin/config/section-weights",
            json={"weights": {"writing": 1.0}},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_weights_apply_to_finalization(
        self, client, student, auth_headers, admin_headers, add_questions, provision
    ):
        add_questions(Section.GRAMMAR, "2.1", count=1)
        client.put(
            "/v1/admin/config/section-weights",
            json={"weights": {"grammar": 1.0}},
            headers=admin_headers,
        )
        test_id = provision(student.id)["test_id"]
        item = client.post(f"/v1/tests/{test_id}/next", headers=auth_headers).json()
        client.post(
            f"/v1/tests/{test_id}/submit",
            json={"question_id": item["question"]["id"], "selected_index": 0},
            headers=auth_headers,
        )
        # grammar at 2.1 has no more content, so the next request completes it
        client.post(f"/v1/tests/{test_id}/next", headers=auth_headers)

        summary = client.post(f"/v1/tests/{test_id}/next", headers=auth_headers).json()

        assert summary["done"] is True
        assert summary["summary"]["weighted_level"] == 2.1
        assert summary["summary"]["total_score"] == 25.0
