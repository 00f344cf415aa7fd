import pytest

from snapybara.core.exceptions import ValidationError
from snapybara.models import UserRole
from snapybara.schemas.user import IdentityWebhookEvent
from snapybara.services.auth import AuthUser
from snapybara.services.users import UserService


@pytest.fixture
def service(db):
    return UserService(db.uow)


def _event(type_, user_id="user-1", **record):
    body = {"id": user_id, "email": f"{user_id}@example.com", **record}
    key = "old_record" if type_ == "DELETE" else "record"
    return IdentityWebhookEvent.model_validate({"type": type_, key: body})


@pytest.mark.asyncio
async def test_insert_then_update_upserts_the_user(service, db):
    created = await service.apply_event(
        _event("INSERT", raw_user_meta_data={"full_name": " Ana ", "picture": "https://a/p.png"})
    )
    updated = await service.apply_event(
        _event(
            "UPDATE",
            raw_user_meta_data={"username": "ana"},
            raw_app_meta_data={"role": "admin"},
        )
    )

    assert (created, updated) == ("created", "updated")
    user = db.users["user-1"]
    assert user.username == "ana"
    assert user.avatar_url is None
    assert user.role == UserRole.admin.value


@pytest.mark.asyncio
async def test_unknown_roles_fall_back_to_user(service, db):
    await service.apply_event(_event("INSERT", raw_app_meta_data={"role": "superuser"}))

    assert db.users["user-1"].role == UserRole.user.value


@pytest.mark.asyncio
async def test_delete_deactivates_known_users_and_ignores_others(service, db):
    await service.apply_event(_event("INSERT"))

    assert await service.apply_event(_event("DELETE")) == "deactivated"
    assert db.users["user-1"].is_active is False
    assert await service.apply_event(_event("DELETE", user_id="ghost")) == "ignored"


@pytest.mark.asyncio
async def test_events_without_a_record_are_rejected(service):
    with pytest.raises(ValidationError):
        await service.apply_event(IdentityWebhookEvent(type="INSERT"))
    with pytest.raises(ValidationError):
        await service.apply_event(IdentityWebhookEvent(type="DELETE"))


@pytest.mark.asyncio
async def test_profile_of_an_unsynced_user_comes_from_claims(service):
    auth_user = AuthUser(id="user-9", email="nine@example.com", claims={"id": "user-9"})

    profile = await service.get_profile(auth_user)

    assert profile.synced is False
    assert profile.email == "nine@example.com"


@pytest.mark.asyncio
async def test_profile_of_a_synced_user(service):
    await service.apply_event(_event("INSERT", raw_user_meta_data={"username": "one"}))

    profile = await service.get_profile(AuthUser(id="user-1"))

    assert profile.synced is True
    assert profile.username == "one"
    assert profile.email == "user-1@example.com"
