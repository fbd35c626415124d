from conftest import make_user
from utils.services import get_services


def test_set_admin_by_email(app):
    with app.app_context():
        make_user(get_services().store, "g-5", email="clerk@example.com")

    result = app.test_cli_runner().invoke(args=["set-admin", "clerk@example.com"])

    assert result.exit_code == 0
    assert "clerk@example.com has been set as admin" in result.output
    with app.app_context():
        assert get_services().store.get("users/g-5")["role"] == "admin"


def test_set_admin_unknown_user_fails(app):
    result = app.test_cli_runner().invoke(args=["set-admin", "ghost", "--id"])

    assert result.exit_code != 0
    assert "not found" in result.output


def test_default_admin_promoted_on_startup(app, config_overrides, storage, http):
    from app import create_app

    with app.app_context():
        make_user(get_services().store, "g-6", email="mayor@example.com")

    second = create_app("testing", overrides=dict(config_overrides, DEFAULT_ADMIN_EMAIL="Mayor@example.com"), storage=storage, http=http)
    with second.app_context():
        assert get_services().store.get("users/g-6")["role"] == "admin"
        get_services().submitter.shutdown()


def test_default_admin_email_matches_regardless_of_case(app, client, http, config_overrides, storage):
    from app import create_app

    http.register("tok-clerk", "g-7", "Clerk.Ana@Example.COM")
    assert client.post("/auth/session", json={"id_token": "tok-clerk"}).status_code == 200
    with app.app_context():
        assert get_services().store.get("users/g-7")["email"] == "clerk.ana@example.com"

    second = create_app("testing", overrides=dict(config_overrides, DEFAULT_ADMIN_EMAIL=" CLERK.ana@example.com "), storage=storage, http=http)
    with second.app_context():
        assert get_services().store.get("users/g-7")["role"] == "admin"
        get_services().submitter.shutdown()
