from pathlib import Path

import pytest
from conftest import register_user

from bsm.domain.errors import AuthorizationError, ValidationError
from bsm.repositories.sqlite_repo import SqliteRepository
from bsm.services.auth_service import AuthService, LoginPolicy, hash_token


def _auth(tmp_path: Path, name: str, **policy) -> AuthService:
    repo = SqliteRepository(tmp_path / name)
    repo.init_db()
    return AuthService(repo, policy=LoginPolicy(**policy) if policy else None)


def test_register_then_login_creates_session(tmp_path: Path):
    auth = _auth(tmp_path, "a.db")
    user = auth.register("  Owner@Shop.TEST ", "Water1234", "Water1234")
    assert user.email == "owner@shop.test"

    session = auth.login("owner@shop.test", "Water1234")
    assert auth.authenticate(session.token) == session.user
    assert auth.authenticate("not-a-token") is None


def test_session_token_is_stored_hashed(tmp_path: Path):
    auth = _auth(tmp_path, "h.db")
    email, password = register_user(auth)
    session = auth.login(email, password)

    conn = auth.repo._conn()
    stored = [r[0] for r in conn.execute("SELECT token_hash FROM sessions")]
    conn.close()
    assert stored == [hash_token(session.token)]


@pytest.mark.parametrize(
    "email, password, confirm, message",
    [
        ("not-an-email", "Water1234", "Water1234", "valid email"),
        ("a@b.co", "short1", "short1", "at least 8"),
        ("a@b.co", "onlyletters", "onlyletters", "number"),
        ("a@b.co", "Water1234", "Water12345", "confirmation"),
    ],
)
def test_register_validation(tmp_path: Path, email, password, confirm, message):
    auth = _auth(tmp_path, "v.db")
    with pytest.raises(ValidationError, match=message):
        auth.register(email, password, confirm)


def test_duplicate_registration_is_rejected(tmp_path: Path):
    auth = _auth(tmp_path, "d.db")
    register_user(auth)
    with pytest.raises(ValidationError, match="already exists"):
        register_user(auth)


def test_wrong_password_is_rejected(tmp_path: Path):
    auth = _auth(tmp_path, "w.db")
    email, _ = register_user(auth)
    with pytest.raises(AuthorizationError, match="Invalid email or password"):
        auth.login(email, "Wrong1234")


def test_lockout_after_failed_attempts_persists(tmp_path: Path):
    auth = _auth(tmp_path, "l.db", max_failed_attempts=2, lockout_seconds=30)
    email, password = register_user(auth)

    with pytest.raises(AuthorizationError):
        auth.login(email, "Wrong1234")
    with pytest.raises(AuthorizationError, match="locked"):
        auth.login(email, "Wrong1234")

    fresh = AuthService(auth.repo, policy=LoginPolicy(max_failed_attempts=2, lockout_seconds=30))
    with pytest.raises(AuthorizationError, match="locked"):
        fresh.login(email, password)


def test_logout_ends_session(tmp_path: Path):
    auth = _auth(tmp_path, "o.db")
    email, password = register_user(auth)
    session = auth.login(email, password)

    auth.logout(session.token)
    assert auth.authenticate(session.token) is None


def test_expired_session_is_not_accepted(tmp_path: Path):
    auth = _auth(tmp_path, "e.db", session_ttl_seconds=-1)
    email, password = register_user(auth)
    session = auth.login(email, password)

    assert auth.authenticate(session.token) is None
    assert auth.purge_expired_sessions() == 1


def test_change_password_revokes_sessions(tmp_path: Path):
    auth = _auth(tmp_path, "c.db")
    email, password = register_user(auth)
    session = auth.login(email, password)

    with pytest.raises(AuthorizationError):
        auth.change_password(session.user, "Wrong1234", "Fresh5678", "Fresh5678")

    auth.change_password(session.user, password, "Fresh5678", "Fresh5678")
    assert auth.authenticate(session.token) is None
    assert auth.login(email, "Fresh5678").user.email == email


def test_login_purges_previously_expired_sessions(tmp_path: Path):
    auth = _auth(tmp_path, "p.db", session_ttl_seconds=-1)
    email, password = register_user(auth)
    auth.login(email, password)
    auth.login(email, password)

    # only the session from the second login is left to purge
    assert auth.purge_expired_sessions() == 1
