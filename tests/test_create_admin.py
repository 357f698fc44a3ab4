"""Tests for scripts/create_admin.py."""

from config import Settings
from scripts import create_admin
from storage.repository import SqlStorage


def _use_database(monkeypatch, tmp_path):
    url = f"sqlite:///{tmp_path / 'admin.db'}"
    monkeypatch.setattr(create_admin, "settings", Settings(database_url=url, bcrypt_rounds=4))
    return url


def test_creates_admin(monkeypatch, tmp_path, capsys):
    url = _use_database(monkeypatch, tmp_path)

    code = create_admin.main(
        ["--username", "root", "--email", "Root@Example.com", "--password", "s3cret!"]
    )

    assert code == 0
    assert "Created admin user root" in capsys.readouterr().out
    storage = SqlStorage(url)
    try:
        user = storage.get_user_by_email("root@example.com")
        assert user.role == "admin"
        assert user.password_hash != "s3cret!"
    finally:
        storage.close()


def test_duplicate_admin_rejected(monkeypatch, tmp_path):
    _use_database(monkeypatch, tmp_path)
    args = ["--username", "root", "--email", "root@example.com", "--password", "s3cret!"]
    assert create_admin.main(args) == 0
    assert create_admin.main(args) == 1


def test_short_password_rejected(monkeypatch, tmp_path):
    _use_database(monkeypatch, tmp_path)
    code = create_admin.main(["--username", "root", "--email", "r@example.com", "--password", "123"])
    assert code == 2
