"""HTTP tests for submission, job readback and health."""

from repowiki.main import app
from repowiki.models import RepositoryJob

ADDRESS = "https://github.com/acme/widgets"


class TestSubmitRepository:

    def test_creates_pending_job_and_enqueues_it(self, client, db):
        resp = client.post("/api/repositories", json={
            "address": ADDRESS, "git_user_name": "bot", "git_password": "hunter22",
        })

        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "Pending"
        assert body["address"] == ADDRESS + ".git"
        assert "git_password" not in body
        assert "git_user_name" not in body
        assert app.state.job_queue.qsize() == 1

    def test_duplicate_is_rejected(self, client):
        client.post("/api/repositories", json={"address": ADDRESS})
        resp = client.post("/api/repositories", json={"address": ADDRESS + ".git"})

        assert resp.status_code == 409
        assert resp.json()["error"] == "REPOSITORY_ALREADY_EXISTS"
        assert resp.json()["details"]["status"] == "Pending"

    def test_failed_job_can_be_resubmitted(self, client, db):
        first = client.post("/api/repositories", json={"address": ADDRESS}).json()
        job = db.get(RepositoryJob, first["id"])
        job.status = "Failed"
        db.commit()

        resp = client.post("/api/repositories", json={"address": ADDRESS})

        assert resp.status_code == 201
        assert resp.json()["id"] != first["id"]
        assert client.get(f"/api/repositories/{first['id']}").status_code == 404

    def test_invalid_address(self, client):
        resp = client.post("/api/repositories", json={"address": "ssh://host/only"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "VALIDATION_ERROR"
        assert resp.json()["details"] == {"field": "address"}

    def test_blank_address(self, client):
        resp = client.post("/api/repositories", json={"address": "   "})
        assert resp.status_code == 422

    def test_closed_queue_returns_503_and_keeps_job(self, client, db):
        app.state.job_queue.close()

        resp = client.post("/api/repositories", json={"address": ADDRESS})

        assert resp.status_code == 503
        job_id = resp.json()["details"]["job_id"]
        assert db.get(RepositoryJob, job_id).status == "Pending"


class TestReadJobs:

    def test_get_job(self, client):
        created = client.post("/api/repositories", json={"address": ADDRESS}).json()

        resp = client.get(f"/api/repositories/{created['id']}")

        assert resp.status_code == 200
        assert resp.json()["id"] == created["id"]

    def test_get_missing_job(self, client):
        resp = client.get("/api/repositories/does-not-exist")

        assert resp.status_code == 404
        assert resp.json() == {
            "error": "JOB_NOT_FOUND",
            "message": "Repository job not found: does-not-exist",
            "details": {"job_id": "does-not-exist"},
        }

    def test_list_filters_by_status(self, client, db):
        a = client.post("/api/repositories", json={"address": ADDRESS}).json()
        client.post("/api/repositories", json={"address": "https://github.com/acme/gears"})
        job = db.get(RepositoryJob, a["id"])
        job.status = "Completed"
        db.commit()

        assert len(client.get("/api/repositories").json()) == 2
        completed = client.get("/api/repositories", params={"status": "Completed"}).json()
        assert [j["id"] for j in completed] == [a["id"]]

    def test_list_rejects_unknown_status(self, client):
        assert client.get("/api/repositories", params={"status": "Done"}).status_code == 422


class TestHealth:

    def test_reports_database_and_queue(self, client):
        client.post("/api/repositories", json={"address": ADDRESS})

        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["db"] == "ok"
        assert body["job_count"] == 1
        assert body["queued"] == 1
        assert body["version"] == "1.0.0"
