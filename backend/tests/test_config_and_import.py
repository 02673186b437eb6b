import importlib.util
import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from roster.config import Settings
from roster.main import create_app
from roster.repositories import SqlStudentStore
from roster.services import StudentService

SCRIPT = Path(__file__).resolve().parents[1] / 'scripts' / 'import_students.py'


def _load_script():
    loader = importlib.util.spec_from_file_location('import_students', SCRIPT)
    module = importlib.util.module_from_spec(loader)
    loader.loader.exec_module(module)
    return module


def test_settings_defaults(monkeypatch):
    for var in ('STORE_BACKEND', 'PORT', 'MONGO_DB', 'MONGO_COLLECTION', 'DATABASE_URL'):
        monkeypatch.delenv(var, raising=False)
    s = Settings()
    assert s.STORE_BACKEND == 'sql'
    assert s.PORT == 1234
    assert (s.MONGO_DB, s.MONGO_COLLECTION) == ('test', 'db')
    assert s.DATABASE_URL.startswith('sqlite:///')


def test_settings_reject_unknown_backend(monkeypatch):
    monkeypatch.setenv('STORE_BACKEND', 'redis')
    with pytest.raises(RuntimeError):
        Settings()


def test_create_app_opens_configured_store(monkeypatch, tmp_path):
    monkeypatch.setenv('STORE_BACKEND', 'sql')
    monkeypatch.setenv('DATABASE_URL', f"sqlite:///{tmp_path / 'app.db'}")
    app = create_app(Settings())
    assert isinstance(app.state.store, SqlStudentStore)
    with TestClient(app) as client:
        assert client.post('/Student', json={'netid': 'x1'}).status_code == 200
        assert client.get('/Student/listall').text.count('Student\n') == 1


def test_import_records_summary(store):
    items = [
        {'netid': 'i1', 'name': 'One', 'year': 2017, 'grade': 88},
        {'NetID': 'i2', 'Name': 'Two'},
        {'netid': 'i1', 'name': 'Again'},
        {'name': 'missing id'},
        'not an object',
    ]
    summary = StudentService(store).import_records(items)
    assert summary['added'] == 2
    assert summary['duplicates'] == 1
    assert [e['index'] for e in summary['errors']] == [3, 4]
    assert [s.netid for s in store.find_all()] == ['i1', 'i2']


def test_import_script_reports_summary(store, tmp_path, monkeypatch, capsys):
    module = _load_script()
    monkeypatch.setattr(module, 'open_store', lambda _settings: store)
    path = tmp_path / 'students.json'
    path.write_text(json.dumps([{'netid': 'a'}, {'netid': 'a'}, {'grade': 3}]), encoding='utf-8')
    assert module.main(path) == 0
    out = capsys.readouterr().out
    assert 'Added 1, duplicates 1, invalid 1' in out


def test_import_script_rejects_non_array(tmp_path):
    module = _load_script()
    path = tmp_path / 'students.json'
    path.write_text('{"netid": "a"}', encoding='utf-8')
    assert module.main(path) == 1
