import pytest

from job_extract import tracker
from job_extract.models import ExtractedJobRecord


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(tracker, "DATA_DIR", tmp_path)
    return tmp_path


def test_ensure_table_writes_headers(data_dir):
    path = tracker.ensure_table("applications")
    assert path == data_dir / "applications.csv"
    assert path.read_text(encoding="utf-8").strip() == ",".join(tracker.TABLES["applications"])


def test_unknown_table():
    with pytest.raises(ValueError):
        tracker.create_record("offers", {})


def test_crud_round_trip():
    row = tracker.create_record("applications", {"user_id": "u1", "company": "Acme", "position": "Engineer"})
    assert len(row["id"]) == 12
    assert row["created_at"] == row["updated_at"]

    assert tracker.query_records("applications", {"company": "Acme"}) == [row]

    updated = tracker.update_record("applications", row["id"], {"status": "Interview", "id": "hijack"})
    assert updated["status"] == "Interview"
    assert updated["id"] == row["id"]
    assert tracker.query_records("applications", {"id": row["id"]})[0]["status"] == "Interview"
    assert tracker.update_record("applications", "missing", {"status": "Offer"}) is None

    assert tracker.delete_record("applications", row["id"])
    assert not tracker.delete_record("applications", row["id"])
    assert tracker.query_records("applications") == []


def test_save_application_from_record():
    record = ExtractedJobRecord(
        company=" Acme ",
        position="Senior Engineer",
        salary="$120k",
        location="Remote",
        source_url="https://boards.greenhouse.io/acme/jobs/12345",
    )
    row = tracker.save_application("u1", record, date_applied="2024-05-01")
    assert row["company"] == "Acme"
    assert row["job_url"] == "https://boards.greenhouse.io/acme/jobs/12345"
    assert row["status"] == "Applied"
    assert row["date_applied"] == "2024-05-01"

    tracker.save_application("u2", {"company": "Globex", "position": "Analyst"})
    assert [r["company"] for r in tracker.get_applications("u1")] == ["Acme"]


def test_save_application_rejects_invalid_data():
    with pytest.raises(tracker.ApplicationValidationError) as info:
        tracker.save_application("u1", {"company": "", "position": " ", "job_url": "not a url"}, status="Ghosted")
    assert set(info.value.errors) == {"company", "position", "job_url", "status"}
    assert tracker.get_applications("u1") == []


def test_validate_application_accepts_complete_data():
    assert tracker.validate_application({"company": "Acme", "position": "Engineer", "status": "Offer"}) == {}
