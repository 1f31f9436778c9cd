"""Channel profile and watch history tests.

Learn: Videos, subscriptions and history rows have no write endpoints here,
so they are seeded straight through the test session.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text
from structlog.testing import capture_logs

from vidtube.db.models import Subscription, Video, WatchHistoryEntry
from vidtube.errors import InfrastructureError, NotFoundError, ValidationError
from vidtube.services.profile_service import ProfileService

from helpers import bearer, login_via_api, register_via_api


async def register_three(client):
    ids = {}
    for name in ("alice", "bob", "carol"):
        r = await register_via_api(
            client, username=name, email=f"{name}@x.com", full_name=name.title()
        )
        ids[name] = r.json()["data"]["id"]
    return ids


def as_uuid(value):
    return uuid.UUID(value)


async def subscribe(db, subscriber, channel):
    db.add(Subscription(subscriber_id=as_uuid(subscriber), channel_id=as_uuid(channel)))
    await db.commit()


# ═══════════════════════════════════════════════════════════
# Channel profile
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_channel_profile_counts(client, db_session):
    ids = await register_three(client)
    await subscribe(db_session, ids["alice"], ids["bob"])
    await subscribe(db_session, ids["carol"], ids["bob"])
    await subscribe(db_session, ids["bob"], ids["carol"])

    tokens = await login_via_api(client, username="alice")
    r = await client.get("/api/v1/users/c/BOB", headers=bearer(tokens["access_token"]))
    assert r.status_code == 200
    channel = r.json()["data"]
    assert channel["username"] == "bob"
    assert channel["full_name"] == "Bob"
    assert channel["subscribers_count"] == 2
    assert channel["channels_subscribed_to_count"] == 1
    assert channel["is_subscribed"] is True
    assert "password_hash" not in channel


@pytest.mark.asyncio
async def test_channel_profile_not_subscribed(client, db_session):
    ids = await register_three(client)
    await subscribe(db_session, ids["alice"], ids["bob"])

    tokens = await login_via_api(client, username="carol")
    r = await client.get("/api/v1/users/c/bob", headers=bearer(tokens["access_token"]))
    channel = r.json()["data"]
    assert channel["subscribers_count"] == 1
    assert channel["channels_subscribed_to_count"] == 0
    assert channel["is_subscribed"] is False


@pytest.mark.asyncio
async def test_channel_profile_unknown(client):
    await register_via_api(client)
    tokens = await login_via_api(client)
    r = await client.get("/api/v1/users/c/nobody", headers=bearer(tokens["access_token"]))
    assert r.status_code == 404
    assert r.json()["message"] == "Channel does not exist"


@pytest.mark.asyncio
async def test_channel_profile_blank_username(db_session):
    profiles = ProfileService(db_session)
    with pytest.raises(ValidationError):
        await profiles.get_channel_profile("  ", uuid.uuid4())
    with pytest.raises(NotFoundError):
        await profiles.get_channel_profile("ghost", uuid.uuid4())


# ═══════════════════════════════════════════════════════════
# Watch history
# ═══════════════════════════════════════════════════════════


def make_video(owner_id, title):
    return Video(
        owner_id=as_uuid(owner_id),
        title=title,
        video_file=f"https://media.test/{title}.mp4",
        thumbnail=f"https://media.test/{title}.jpg",
        duration=12.5,
    )


@pytest.mark.asyncio
async def test_watch_history_in_watch_order(client, db_session):
    ids = await register_three(client)
    first = make_video(ids["bob"], "first")
    second = make_video(ids["carol"], "second")
    db_session.add_all([first, second])
    await db_session.commit()

    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    db_session.add_all([
        WatchHistoryEntry(
            account_id=as_uuid(ids["alice"]), video_id=second.id, watched_at=start + timedelta(hours=1)
        ),
        WatchHistoryEntry(
            account_id=as_uuid(ids["alice"]), video_id=first.id, watched_at=start
        ),
        WatchHistoryEntry(
            account_id=as_uuid(ids["bob"]), video_id=first.id, watched_at=start
        ),
    ])
    await db_session.commit()

    tokens = await login_via_api(client, username="alice")
    r = await client.get("/api/v1/users/history", headers=bearer(tokens["access_token"]))
    assert r.status_code == 200
    videos = r.json()["data"]
    assert [v["title"] for v in videos] == ["first", "second"]
    assert videos[0]["owner"]["username"] == "bob"
    assert videos[0]["owner"]["full_name"] == "Bob"
    assert "email" not in videos[0]["owner"]
    assert videos[1]["owner"]["username"] == "carol"
    assert videos[0]["duration"] == 12.5


@pytest.mark.asyncio
async def test_watch_history_empty(client):
    await register_via_api(client)
    tokens = await login_via_api(client)
    r = await client.get("/api/v1/users/history", headers=bearer(tokens["access_token"]))
    assert r.json()["data"] == []


# ═══════════════════════════════════════════════════════════
# Query failures
# ═══════════════════════════════════════════════════════════


async def break_watch_history(db):
    await db.execute(text("ALTER TABLE watch_history RENAME COLUMN watched_at TO watched_gone"))
    await db.commit()


@pytest.mark.asyncio
async def test_history_query_failure_is_infrastructure_error(db_session):
    await break_watch_history(db_session)
    with capture_logs() as logs:
        with pytest.raises(InfrastructureError):
            await ProfileService(db_session).get_watch_history(uuid.uuid4())
    failed = [e for e in logs if e["event"] == "profile.query_failed"]
    assert failed[0]["error_type"] == "OperationalError"


@pytest.mark.asyncio
async def test_history_query_failure_is_server_error(client, db_session):
    await register_via_api(client)
    tokens = await login_via_api(client)
    await break_watch_history(db_session)

    r = await client.get("/api/v1/users/history", headers=bearer(tokens["access_token"]))
    assert r.status_code == 500
    assert r.json()["error"] == "server_error"
