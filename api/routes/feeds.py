"""
api/routes/feeds.py -- Media and follower collection endpoints.

Routes:
  GET  /api/media              -- list media records
  GET  /api/followers          -- list follower records
  POST /api/followers          -- add a follower; 201
  POST /api/notify-followers   -- report whether an account reached a follower threshold

These collections exist here mostly as change sources for the live feed:
every write goes through RecordStore, which publishes it to /sse/updates.
Record shapes beyond the fields used below are not validated.
"""

from typing import Optional

from fastapi import APIRouter, Request

from api.models import Follower, FollowerCreate, NotifyFollowersRequest, NotifyFollowersResponse
from core.config import now_iso
from core.errors import ValidationError
from store.records import FOLLOWERS, MEDIA, RecordStore, new_record_id

router = APIRouter()


@router.get("/media")
def list_media(request: Request) -> list[dict]:
    records: RecordStore = request.app.state.records
    return records.read(MEDIA)


@router.get("/followers")
def list_followers(request: Request) -> list[dict]:
    records: RecordStore = request.app.state.records
    return records.read(FOLLOWERS)


@router.post("/followers", response_model=Follower, status_code=201)
def add_follower(request: Request, body: Optional[FollowerCreate] = None) -> dict:
    """Subscribe an email address to an account's updates."""
    body = body or FollowerCreate()
    if not body.account_id or not body.email:
        raise ValidationError("accountId and email required")

    records: RecordStore = request.app.state.records
    with records.mutate(FOLLOWERS) as followers:
        entry = {
            "id": new_record_id("foll", {f.get("id") for f in followers}),
            "accountId": body.account_id,
            "email": body.email,
            "name": body.name or None,
            "subscribedAt": now_iso(),
        }
        followers.append(entry)
    return entry


@router.post(
    "/notify-followers",
    response_model=NotifyFollowersResponse,
    response_model_exclude_unset=True,
)
def notify_followers(request: Request, body: Optional[NotifyFollowersRequest] = None) -> NotifyFollowersResponse:
    """Check an account's follower count against threshold.

    Below the threshold: {notified: false, count, needed}. At or above it:
    {notified: true, count, emails, message} -- the caller does the sending.
    """
    body = body or NotifyFollowersRequest()
    if not body.account_id or not body.threshold:
        raise ValidationError("accountId and threshold required")

    records: RecordStore = request.app.state.records
    emails = [f.get("email") for f in records.read(FOLLOWERS) if f.get("accountId") == body.account_id]
    if len(emails) < body.threshold:
        return NotifyFollowersResponse(notified=False, count=len(emails), needed=body.threshold)
    return NotifyFollowersResponse(notified=True, count=len(emails), emails=emails, message=body.message or None)
