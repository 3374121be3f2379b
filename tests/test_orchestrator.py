import json
from datetime import timedelta

import pytest

from cms_i18n.core import database as db
from cms_i18n.core.modules import get_module_config
from cms_i18n.translation.orchestrator import ModuleOrchestrator


def make_orchestrator(client):
    return ModuleOrchestrator(client, tolerance_ms=5000, request_delay=0, source_language="en")


def stored_content(config, record_id, language="nl"):
    row = db.get_record(config, record_id)
    raw = row[f"content_{language}"]
    return json.loads(raw) if raw else None


def test_translates_pending_records(faqs, make_faqs, fake_client):
    ids = make_faqs(3)

    result = make_orchestrator(fake_client).run(faqs, "nl")

    assert result.success is True
    assert result.translated_items == 3
    assert result.failed_items == 0
    assert result.errors == ()
    assert result.last_translated_at is not None
    assert result.total_items == 3
    assert result.skipped_items == 0
    assert result.total_tokens == 30
    assert fake_client.calls[0] == {"question": "Q1", "answer": "Answer 1"}

    content = stored_content(faqs, ids[0])
    assert content == {"question": "[nl] Q1", "answer": "[nl] Answer 1"}
    row = db.get_record(faqs, ids[0])
    assert row["last_translated_at_nl"] is not None
    assert row["translation_status"] == "translated"


def test_second_run_is_idempotent(faqs, make_faqs, fake_client):
    make_faqs(4)
    orchestrator = make_orchestrator(fake_client)

    first = orchestrator.run(faqs, "nl")
    second = orchestrator.run(faqs, "nl")

    assert first.translated_items == 4
    assert second.success is True
    assert second.translated_items == 0
    assert second.failed_items == 0
    assert second.last_translated_at is None
    assert second.skipped_items == 4
    assert len(fake_client.calls) == 4


def test_partial_failure_is_contained(faqs, make_faqs, make_client):
    make_faqs(5)
    client = make_client(fail_on={"Q3"})

    result = make_orchestrator(client).run(faqs, "nl")

    assert [call["question"] for call in client.calls] == ["Q1", "Q2", "Q3", "Q4", "Q5"]
    assert result.success is False
    assert result.translated_items == 4
    assert result.failed_items == 1
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Q3: ")
    assert "model unavailable" in result.errors[0]
    assert result.last_translated_at is not None


def test_failed_record_stays_pending(faqs, make_faqs, make_client):
    ids = make_faqs(3)
    make_orchestrator(make_client(fail_on={"Q2"})).run(faqs, "nl")

    retry_client = make_client()
    result = make_orchestrator(retry_client).run(faqs, "nl")

    assert result.translated_items == 1
    assert [call["question"] for call in retry_client.calls] == ["Q2"]
    assert stored_content(faqs, ids[1])["question"] == "[nl] Q2"


def test_force_all_processes_every_active_record(faqs, make_faqs, fake_client):
    make_faqs(3)
    orchestrator = make_orchestrator(fake_client)
    orchestrator.run(faqs, "nl")

    result = orchestrator.run(faqs, "nl", force_all=True)

    assert result.translated_items == 3
    assert result.skipped_items == 0
    assert len(fake_client.calls) == 6


def test_inactive_records_are_ignored(faqs, make_faqs, fake_client):
    make_faqs(2)
    hidden = make_faqs(1, prefix="Hidden", active=False)

    result = make_orchestrator(fake_client).run(faqs, "nl", force_all=True)

    assert result.translated_items == 2
    assert result.total_items == 2
    assert stored_content(faqs, hidden[0]) is None


def test_empty_work_set_is_success(faqs, fake_client):
    result = make_orchestrator(fake_client).run(faqs, "nl")

    assert result.success is True
    assert result.translated_items == 0
    assert result.last_translated_at is None
    assert fake_client.calls == []


def test_progress_callback_order(faqs, make_faqs, make_client):
    make_faqs(3)
    seen = []

    make_orchestrator(make_client(fail_on={"Q2"})).run(
        faqs, "nl", progress_callback=lambda current, total, label: seen.append((current, total, label))
    )

    assert seen == [(1, 3, "Q1"), (2, 3, "Q2"), (3, 3, "Q3")]


def test_source_edit_after_translation_makes_record_pending(faqs, make_faqs, fake_client):
    ids = make_faqs(2)
    orchestrator = make_orchestrator(fake_client)
    orchestrator.run(faqs, "nl")

    translated_at = db.get_record(faqs, ids[1])["last_translated_at_nl"]
    edited_at = db.utc_now() + timedelta(seconds=8)
    db.update_record(faqs, ids[1], {"answer": "Changed"}, updated_at=edited_at)
    assert translated_at is not None

    result = orchestrator.run(faqs, "nl")

    assert result.translated_items == 1
    assert fake_client.calls[-1] == {"question": "Q2", "answer": "Changed"}


def test_cleared_source_field_loses_its_translation(faqs, fake_client):
    record_id = db.create_record(faqs, {"question": "Q1", "answer": "Old answer"})
    orchestrator = make_orchestrator(fake_client)
    orchestrator.run(faqs, "nl")
    assert stored_content(faqs, record_id)["answer"] == "[nl] Old answer"

    db.update_record(faqs, record_id, {"answer": ""}, updated_at=db.utc_now() + timedelta(seconds=10))
    result = orchestrator.run(faqs, "nl")

    assert result.translated_items == 1
    assert fake_client.calls[-1] == {"question": "Q1"}
    assert stored_content(faqs, record_id) == {"question": "[nl] Q1"}


def test_preserves_unrelated_blob_keys(faqs, make_faqs, fake_client):
    ids = make_faqs(1)
    db.patch_translation(
        faqs, ids[0], "nl",
        {"question": "Oude vraag", "seo_slug": "oude-vraag"},
        translated_at=db.utc_now() - timedelta(hours=1),
    )

    result = make_orchestrator(fake_client).run(faqs, "nl")

    assert result.translated_items == 1
    assert stored_content(faqs, ids[0]) == {
        "question": "[nl] Q1",
        "answer": "[nl] Answer 1",
        "seo_slug": "oude-vraag",
    }


def test_languages_are_stored_separately(faqs, make_faqs, fake_client):
    ids = make_faqs(1)
    orchestrator = make_orchestrator(fake_client)

    orchestrator.run(faqs, "nl")
    orchestrator.run(faqs, "de")

    assert stored_content(faqs, ids[0], "nl")["question"] == "[nl] Q1"
    assert stored_content(faqs, ids[0], "de")["question"] == "[de] Q1"


def test_array_fields_keep_source_element_keys(fake_client):
    config = get_module_config("service_pages")
    record_id = db.create_record(config, {
        "title": "SAP Consulting",
        "core_offerings": [{"title": "Migration", "description": "Move", "icon": "rocket"}],
        "slug": "sap",
    })

    result = make_orchestrator(fake_client).run(config, "de")

    assert result.translated_items == 1
    assert fake_client.calls[0]["core_offerings"] == [{"title": "Migration", "description": "Move"}]
    content = stored_content(config, record_id, "de")
    assert content["core_offerings"] == [{"title": "[de] Migration", "description": "[de] Move", "icon": "rocket"}]
    assert "slug" not in content


def test_record_without_translatable_content_is_marked_translated(faqs, fake_client):
    record_id = db.create_record(faqs, {"question": "", "answer": "   "})

    result = make_orchestrator(fake_client).run(faqs, "nl")

    assert result.translated_items == 1
    assert fake_client.calls == []
    assert db.get_record(faqs, record_id)["last_translated_at_nl"] is not None


def test_invalid_client_output_is_a_record_failure(faqs, make_faqs):
    make_faqs(2)

    class BadClient:
        def translate(self, fields, source_language, target_language):
            return {"question": 42}

    result = make_orchestrator(BadClient()).run(faqs, "nl")

    assert result.failed_items == 2
    assert result.translated_items == 0
    assert result.last_translated_at is None
    assert "not a string" in result.errors[0]


def test_unexpected_client_exception_is_a_record_failure(faqs, make_faqs):
    make_faqs(2)

    class CrashingClient:
        def translate(self, fields, source_language, target_language):
            if fields["question"] == "Q1":
                raise RuntimeError("socket closed")
            return fields

    result = make_orchestrator(CrashingClient()).run(faqs, "nl")

    assert result.translated_items == 1
    assert result.failed_items == 1
    assert "socket closed" in result.errors[0]


def test_storage_write_failure_is_a_record_failure(faqs, make_faqs, fake_client, monkeypatch):
    ids = make_faqs(3)
    real_patch = db.patch_translation

    def flaky_patch(config, record_id, *args, **kwargs):
        if record_id == ids[1]:
            raise db.StorageError("disk full")
        return real_patch(config, record_id, *args, **kwargs)

    monkeypatch.setattr(db, "patch_translation", flaky_patch)

    result = make_orchestrator(fake_client).run(faqs, "nl")

    assert result.translated_items == 2
    assert result.failed_items == 1
    assert result.errors == ("Q2: disk full",)
    assert db.get_record(faqs, ids[1])["last_translated_at_nl"] is None


def test_initial_load_failure_raises(faqs, fake_client, monkeypatch):
    def broken(config):
        raise db.StorageError("database is locked")

    monkeypatch.setattr(db, "list_active_records", broken)
    seen = []

    with pytest.raises(db.StorageError):
        make_orchestrator(fake_client).run(faqs, "nl", progress_callback=lambda *a: seen.append(a))

    assert seen == []
    assert fake_client.calls == []


def test_malformed_existing_translation_is_replaced(faqs, make_faqs, fake_client):
    ids = make_faqs(1)
    with db.get_connection() as conn:
        conn.execute("UPDATE faqs SET content_nl = ? WHERE id = ?", ("{broken", ids[0]))
        conn.commit()

    result = make_orchestrator(fake_client).run(faqs, "nl")

    assert result.translated_items == 1
    assert stored_content(faqs, ids[0]) == {"question": "[nl] Q1", "answer": "[nl] Answer 1"}


def test_translation_logs_record_state_changes(faqs, make_faqs, make_client):
    ids = make_faqs(2)
    make_orchestrator(make_client(fail_on={"Q2"})).run(faqs, "nl")

    first = db.get_translation_logs("faqs", ids[0])
    second = db.get_translation_logs("faqs", ids[1])

    assert [entry["status"] for entry in first] == ["started", "completed"]
    assert first[1]["tokens_used"] == 10
    assert [entry["status"] for entry in second] == ["started", "failed"]
    assert second[1]["error_message"] == "model unavailable"
