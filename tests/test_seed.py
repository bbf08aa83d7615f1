"""Tests for reference data and admin seeding."""

from pitchperfect.backend import seed
from pitchperfect.backend.auth import verify_password
from pitchperfect.backend.storage import InMemoryStore


def test_reference_data_is_idempotent():
    store = InMemoryStore()
    first = seed.seed_reference_data(store)
    second = seed.seed_reference_data(store)

    assert first == second
    assert len(store.list_industries()) == len(seed.INDUSTRIES)
    assert len(store.list_learning_modules()) == len(seed.LEARNING_MODULES)


def test_seed_admin_creates_then_promotes():
    store = InMemoryStore()
    admin = seed.seed_admin(store, "admin@example.com", "s3cret-pass")
    assert admin.role == "admin"
    assert verify_password("s3cret-pass", admin.password_hash)

    existing = store.create_user(email="lead@example.com", password_hash="x", name="Lead", role="team_lead")
    promoted = seed.seed_admin(store, "lead@example.com", "ignored")
    assert promoted.id == existing.id
    assert promoted.role == "admin"
    assert promoted.password_hash == "x"
