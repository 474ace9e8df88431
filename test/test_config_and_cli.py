import json
from pathlib import Path

from conftest import register_user

from bsm.config import Settings, get_app_paths
from bsm.main import main
from bsm.repositories.sqlite_repo import SqliteRepository
from bsm.services.auth_service import AuthService, LoginPolicy


def test_settings_from_env():
    s = Settings.from_env({
        "BSM_SECRET_KEY": "abc",
        "BSM_SESSION_TTL_SECONDS": "120",
        "CLOUDINARY_CLOUD_NAME": " demo ",
        "BSM_PORT": "9000",
        "BSM_SECURE_COOKIES": "true",
    })
    assert s.secret_key == "abc"
    assert s.session_ttl_seconds == 120
    assert s.cloudinary_cloud_name == "demo"
    assert s.port == 9000
    assert s.secure_cookies is True


def test_missing_secret_key_gets_random_value():
    a = Settings.from_env({})
    b = Settings.from_env({})
    assert a.secret_key and a.secret_key != b.secret_key


def test_app_paths_honour_home_override(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("BSM_HOME", str(tmp_path / "home"))
    paths = get_app_paths()
    assert paths.db_path == tmp_path / "home" / "shop.db"
    assert paths.logs_dir.is_dir()


def test_sweep_command_prints_report(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.setenv("BSM_HOME", str(tmp_path / "home"))

    assert main(["sweep"]) == 0

    out = json.loads(capsys.readouterr().out)
    assert out == {"status": "ok", "checked": 0, "deleted": 0, "errors": []}


def test_sweep_command_purges_expired_sessions(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.setenv("BSM_HOME", str(tmp_path / "home"))
    repo = SqliteRepository(get_app_paths().db_path)
    repo.init_db()
    auth = AuthService(repo, LoginPolicy(session_ttl_seconds=-1))
    email, password = register_user(auth)
    auth.login(email, password)

    assert main(["sweep"]) == 0
    capsys.readouterr()

    assert auth.purge_expired_sessions() == 0
