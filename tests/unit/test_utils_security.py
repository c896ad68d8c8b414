from types import SimpleNamespace

import pytest

from backend.utils import security


def _supabase_returning(user):
    auth = SimpleNamespace(get_user=lambda token: SimpleNamespace(user=user))
    return SimpleNamespace(auth=auth)


@pytest.fixture
def supabase_user(monkeypatch):
    monkeypatch.setattr(security, "ADMIN_EMAILS", [])

    def _install(**fields):
        user = SimpleNamespace(id="user-1", email="customer@example.com", app_metadata={}, user_metadata={})
        for key, value in fields.items():
            setattr(user, key, value)
        monkeypatch.setattr("backend.infra.supabase_client.get_supabase", lambda: _supabase_returning(user))
        return user
    return _install


def test_user_metadata_role_does_not_grant_admin(supabase_user):
    supabase_user(user_metadata={"role": "admin"})
    user = security.get_user_from_token("tok")
    assert user["role"] == "user"
    assert user["user_metadata"] == {"role": "admin"}


def test_app_metadata_role_grants_admin(supabase_user):
    supabase_user(app_metadata={"role": "admin"}, user_metadata={"role": "user"})
    assert security.get_user_from_token("tok")["role"] == "admin"


def test_admin_email_grants_admin(supabase_user, monkeypatch):
    monkeypatch.setattr(security, "ADMIN_EMAILS", ["boss@example.com"])
    supabase_user(email="Boss@example.com")
    assert security.get_user_from_token("tok")["role"] == "admin"


def test_unknown_token_yields_empty_user(monkeypatch):
    monkeypatch.setattr("backend.infra.supabase_client.get_supabase", lambda: _supabase_returning(None))
    assert security.get_user_from_token("tok") == {}
