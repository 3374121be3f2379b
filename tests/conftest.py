import os
import tempfile
import threading

# Keep logs and the default database out of the working tree
os.environ.setdefault("CMS_I18N_LOG_DIR", tempfile.mkdtemp(prefix="cms-i18n-logs-"))
os.environ.setdefault(
    "CMS_I18N_DB_FILE", os.path.join(tempfile.mkdtemp(prefix="cms-i18n-db-"), "content.db")
)

import pytest

from cms_i18n.ai.exceptions import TranslationError
from cms_i18n.core import database
from cms_i18n.core.modules import get_module_config
from cms_i18n.core.schema import initialize_database


def translate_value(value, target_language):
    if isinstance(value, str):
        return f"[{target_language}] {value}"
    if isinstance(value, list):
        return [translate_value(item, target_language) for item in value]
    if isinstance(value, dict):
        return {key: translate_value(item, target_language) for key, item in value.items()}
    return value


class FakeClient:
    """Translation client that prefixes every string with the target language."""

    def __init__(self, fail_on=(), block_on=(), tokens=10):
        self.calls = []
        self.fail_on = set(fail_on)
        self.block_on = set(block_on)
        self.release = threading.Event()
        self.tokens = tokens

    def _matches(self, fields, values):
        return any(isinstance(v, str) and v in values for v in fields.values())

    def translate(self, fields, source_language, target_language):
        self.calls.append(dict(fields))
        if self._matches(fields, self.block_on):
            self.release.wait(timeout=10)
        if self._matches(fields, self.fail_on):
            raise TranslationError("model unavailable", code="api_error")
        return translate_value(fields, target_language)

    def get_last_token_usage(self):
        return {"prompt_tokens": 6, "completion_tokens": 4, "total_tokens": self.tokens}


@pytest.fixture(autouse=True)
def temp_db(tmp_path, monkeypatch):
    db_file = tmp_path / "content.db"
    monkeypatch.setattr(database, "DB_FILE", db_file)
    initialize_database()
    yield db_file


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def make_client():
    return FakeClient


@pytest.fixture
def faqs():
    return get_module_config("faqs")


@pytest.fixture
def make_faqs(faqs):
    def _make(count, prefix="Q", active=True):
        return [
            database.create_record(
                faqs,
                {"question": f"{prefix}{i}", "answer": f"Answer {i}", "sort_order": i},
                active=active,
            )
            for i in range(1, count + 1)
        ]
    return _make
