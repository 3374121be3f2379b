from cms_i18n import config as app_config
from cms_i18n.core import database as db


def test_load_config_defaults_without_stored_config():
    loaded = app_config.load_config()

    assert loaded["ai_provider"] == "huggingface"
    assert loaded["translation"]["staleness_tolerance_ms"] == 5000
    assert loaded["translation"]["target_languages"] == ["nl", "de"]


def test_stored_config_is_merged_over_defaults():
    db.set_app_config("config", '{"translation": {"request_delay_seconds": 0}, "log_mode": "debug"}')

    loaded = app_config.load_config()

    assert loaded["translation"]["request_delay_seconds"] == 0
    assert loaded["translation"]["staleness_tolerance_ms"] == 5000
    assert loaded["log_mode"] == "debug"
    assert loaded["huggingface"]["api_url"] == "https://router.huggingface.co/v1/chat/completions"


def test_unreadable_config_falls_back_to_defaults():
    db.set_app_config("config", "{not json")
    assert app_config.load_config() == app_config.DEFAULT_CONFIG


def test_initialize_app_keeps_existing_config():
    app_config.initialize_app()
    settings = app_config.load_config()
    settings["log_mode"] = "off"
    app_config.save_config(settings)

    app_config.initialize_app()

    assert app_config.load_config()["log_mode"] == "off"


def test_prompt_mentions_language_placeholders():
    prompt = app_config.get_prompt()["prompt"]
    assert "{source_language_name}" in prompt
    assert "{target_language_name}" in prompt
