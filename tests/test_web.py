import pytest

from cms_i18n import config as app_config
from cms_i18n.translation.coordinator import TranslationCoordinator
from cms_i18n.web import create_app, tasks


@pytest.fixture
def coordinator(fake_client, monkeypatch):
    coordinator = TranslationCoordinator(client=fake_client, tolerance_ms=5000, request_delay=0)
    monkeypatch.setattr(tasks, "_coordinator", coordinator)
    return coordinator


@pytest.fixture
def client(coordinator):
    app = create_app()
    app.config["TESTING"] = True
    return app.test_client()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_list_modules(client):
    payload = client.get("/api/modules").get_json()
    identifiers = [module["identifier"] for module in payload["modules"]]
    assert identifiers == [
        "service_pages", "jobs", "team_members", "testimonials",
        "industries", "technology_stack", "faqs", "company_info",
    ]
    assert payload["languages"] == ["nl", "de"]


def test_translate_and_wait(client, make_faqs):
    make_faqs(3)

    response = client.post("/api/modules/faqs/translate", json={"language": "nl", "wait": True})

    assert response.status_code == 200
    job = response.get_json()
    assert job["state"] == "completed"
    assert job["result"]["translated_items"] == 3
    assert job["result"]["success"] is True
    assert [entry["current_item"] for entry in job["progress_history"]] == [1, 2, 3]
    assert job["progress"]["phase"] == "completed"

    status = client.get("/api/modules/faqs/status?language=nl").get_json()
    assert status["pending_count"] == 0
    assert status["state"] == "completed"
    assert status["latest_job"]["job_id"] == job["job_id"]


def test_translate_in_background(client, make_faqs):
    make_faqs(2)

    response = client.post("/api/modules/faqs/translate", json={"language": "de"})

    assert response.status_code == 202
    job_id = response.get_json()["job_id"]
    job = tasks.wait_for_job(job_id, timeout=10)
    assert job.is_finished

    payload = client.get(f"/api/jobs/{job_id}").get_json()
    assert payload["result"]["translated_items"] == 2
    assert payload["language"] == "de"


def test_busy_module_returns_conflict(client, coordinator):
    coordinator.acquire("faqs")
    try:
        response = client.post("/api/modules/faqs/translate", json={"language": "nl"})
    finally:
        coordinator.release("faqs")

    assert response.status_code == 409
    assert response.get_json()["code"] == "module_busy"


def test_invalid_module_and_language(client):
    assert client.post("/api/modules/client_logos/translate", json={"language": "nl"}).status_code == 404
    assert client.post("/api/modules/faqs/translate", json={"language": "fr"}).status_code == 400
    assert client.get("/api/modules/faqs/status?language=xx").status_code == 400
    assert client.get("/api/modules/nope/diagnostics?language=nl").status_code == 404
    assert client.get("/api/jobs/unknown").status_code == 404


def test_all_statuses(client, make_faqs):
    make_faqs(1)
    statuses = client.get("/api/modules/status?language=nl").get_json()["statuses"]
    assert len(statuses) == 8
    assert {s["module"]: s["pending_count"] for s in statuses}["faqs"] == 1


def test_diagnostics(client, make_faqs):
    make_faqs(2)
    client.post("/api/modules/faqs/translate", json={"language": "nl", "wait": True})

    report = client.get("/api/modules/faqs/diagnostics?language=nl").get_json()

    assert report["summary"]["fully_translated"] == 2
    assert len(report["findings"]) == 2
    assert report["findings"][0]["issues"] == []


def test_translate_requires_ai_config_when_using_ai_service(make_faqs, monkeypatch):
    monkeypatch.setattr(tasks, "_coordinator", TranslationCoordinator(request_delay=0))
    app = create_app()
    make_faqs(1)

    response = app.test_client().post("/api/modules/faqs/translate", json={"language": "nl"})

    assert response.status_code == 400
    assert response.get_json()["code"] == "ai_config_missing"


def test_settings_masks_keys_and_updates(client):
    settings = app_config.load_config()
    settings["openai"]["api_key"] = "sk-abcdef123456"
    app_config.save_config(settings)

    payload = client.get("/api/settings").get_json()
    assert payload["config"]["openai"]["api_key"] == "********3456"

    response = client.put("/api/settings", json={"config": {
        "openai": {"api_key": "********3456", "models": ["gpt-4o"]},
        "translation": {"request_delay_seconds": 0.5},
    }})
    assert response.status_code == 200

    stored = app_config.load_config()
    assert stored["openai"]["api_key"] == "sk-abcdef123456"
    assert stored["openai"]["models"] == ["gpt-4o"]
    assert stored["translation"]["request_delay_seconds"] == 0.5
    assert stored["translation"]["target_languages"] == ["nl", "de"]


def test_settings_validation(client):
    assert client.put("/api/settings", json={}).status_code == 400
    assert client.put("/api/settings", json={"config": {"log_mode": "loud"}}).status_code == 400
    assert client.put(
        "/api/settings", json={"config": {"translation": {"target_languages": ["fr"]}}}
    ).status_code == 400
    assert client.put(
        "/api/settings", json={"config": {"openai": {"max_retries": 0}}}
    ).status_code == 400


def test_translate_flags_must_be_booleans(client, make_faqs):
    make_faqs(1)

    response = client.post("/api/modules/faqs/translate", json={"language": "nl", "force_all": "false"})
    assert response.status_code == 400
    assert "force_all" in response.get_json()["error"]

    assert client.post(
        "/api/modules/faqs/translate", json={"language": "nl", "wait": 1}
    ).status_code == 400
    assert tasks.get_coordinator().is_translating("faqs") is False
