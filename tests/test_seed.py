# tests/test_seed.py
from app import crud
from app.security import verify_password
from app.seed import create_or_update_admin


def test_seed_skipped_without_password(database, settings):
    assert create_or_update_admin(database, settings) is None


def test_seed_creates_then_rehashes_admin(database, settings, db_session):
    first = settings.model_copy(update={"admin_default_password": "first-secret"})
    admin_id = create_or_update_admin(database, first)
    assert admin_id is not None

    second = settings.model_copy(update={"admin_default_password": "second-secret"})
    assert create_or_update_admin(database, second) == admin_id

    admin = crud.get_admin_by_username(db_session, "admin")
    assert verify_password("second-secret", admin.password_hash)
    assert not verify_password("first-secret", admin.password_hash)
