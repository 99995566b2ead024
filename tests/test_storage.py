import pytest

from keysafe_core.storage import (
    FileStorage, InMemoryStorage, SQLiteStorage, load_storage_provider, validate_storage_key,
)


@pytest.fixture(params=["memory", "file", "sqlite"])
def provider(request, tmp_path):
    if request.param == "memory":
        return InMemoryStorage()
    if request.param == "file":
        return FileStorage(tmp_path / "store")
    return SQLiteStorage(str(tmp_path / "kv.db"))


def test_save_and_load(provider):
    provider.save("alpha", '{"a": 1}')
    assert provider.load("alpha") == '{"a": 1}'
    provider.save("alpha", '{"a": 2}')
    assert provider.load("alpha") == '{"a": 2}'


def test_load_missing_returns_none(provider):
    assert provider.load("missing") is None


def test_delete(provider):
    provider.save("alpha", "1")
    assert provider.delete("alpha") is True
    assert provider.load("alpha") is None
    assert provider.delete("alpha") is False


def test_list_and_clear(provider):
    provider.save("alpha", "1")
    provider.save("beta", "2")
    assert sorted(provider.list_keys()) == ["alpha", "beta"]
    provider.clear()
    assert provider.list_keys() == []


@pytest.mark.parametrize("key", ["", "../escape", "a/b", "a.b", "key with space", "x" * 256])
def test_file_storage_rejects_unsafe_keys(tmp_path, key):
    store = FileStorage(tmp_path)
    with pytest.raises(ValueError):
        store.save(key, "v")
    with pytest.raises(ValueError):
        validate_storage_key(key)


def test_file_storage_layout(tmp_path):
    store = FileStorage(tmp_path / "nested" / "dir")
    store.save("keysafe_keyring", "{}")
    path = tmp_path / "nested" / "dir" / "keysafe_keyring.json"
    assert path.read_text() == "{}"
    assert oct(path.stat().st_mode & 0o777) == oct(0o600)
    assert not list(path.parent.glob("*.tmp"))


def test_sqlite_persists_across_connections(tmp_path):
    db = str(tmp_path / "kv.db")
    first = SQLiteStorage(db)
    first.save("k", "v")
    first.close()
    assert SQLiteStorage(db).load("k") == "v"


def test_factory_from_config(tmp_path):
    assert isinstance(load_storage_provider({"provider": "memory"}), InMemoryStorage)
    fs = load_storage_provider({"provider": "file", "storage_dir": str(tmp_path)})
    assert isinstance(fs, FileStorage) and fs.directory == tmp_path
    db = load_storage_provider({"provider": "sqlite", "sqlite_path": str(tmp_path / "x.db")})
    assert isinstance(db, SQLiteStorage)


def test_factory_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("KEYSAFE_STORAGE_PROVIDER", "file")
    monkeypatch.setenv("KEYSAFE_STORAGE_DIR", str(tmp_path))
    store = load_storage_provider()
    assert isinstance(store, FileStorage)
    assert store.directory == tmp_path

    monkeypatch.setenv("KEYSAFE_STORAGE_PROVIDER", "memory")
    assert isinstance(load_storage_provider(), InMemoryStorage)


def test_factory_unknown_provider():
    with pytest.raises(ValueError):
        load_storage_provider({"provider": "floppy"})
