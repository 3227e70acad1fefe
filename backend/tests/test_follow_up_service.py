"""
Unit tests for follow-up listing and update.
"""

import uuid
from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from app.exceptions import ForbiddenError, NotFoundError
from app.models.visit import FollowUp, Visit
from app.schemas.visit import FollowUpUpdate
from app.services.follow_up_service import get_follow_ups, update_follow_up

USER_ID = uuid.uuid4()


def make_follow_up(visit_id, status="PENDING"):
    return FollowUp(
        id=uuid.uuid4(),
        visit_id=visit_id,
        due_date=date.today() + timedelta(days=3),
        status=status,
        priority="MEDIUM",
        notes="Send the quote",
    )


def make_visit(user_id=USER_ID):
    return Visit(
        id=uuid.uuid4(),
        user_id=user_id,
        company_id=uuid.uuid4(),
        start_time=datetime.now(timezone.utc),
        status="DETAILS_CAPTURED",
        purpose="Review",
    )


def make_db(follow_up=None, visit=None):
    db = MagicMock()
    db.get.side_effect = lambda model, ident: follow_up if model is FollowUp else visit
    return db


def test_update_follow_up_complete():
    visit = make_visit()
    follow_up = make_follow_up(visit.id)
    db = make_db(follow_up, visit)

    with patch("app.services.follow_up_service.cache_service") as cache:
        cache.visit_key.return_value = f"visit:{visit.id}"
        result = update_follow_up(db, follow_up.id, USER_ID, FollowUpUpdate(status="COMPLETED"))

    assert result.status == "COMPLETED"
    assert result.notes == "Send the quote"
    cache.delete.assert_called_once_with(f"visit:{visit.id}")


def test_update_follow_up_clear_notes():
    visit = make_visit()
    follow_up = make_follow_up(visit.id)
    db = make_db(follow_up, visit)

    result = update_follow_up(db, follow_up.id, USER_ID, FollowUpUpdate(notes=None))

    assert result.notes is None


def test_update_follow_up_not_found():
    with pytest.raises(NotFoundError):
        update_follow_up(make_db(None, None), uuid.uuid4(), USER_ID, FollowUpUpdate(status="COMPLETED"))


def test_update_follow_up_other_user():
    visit = make_visit(user_id=uuid.uuid4())
    follow_up = make_follow_up(visit.id)
    db = make_db(follow_up, visit)

    with pytest.raises(ForbiddenError):
        update_follow_up(db, follow_up.id, USER_ID, FollowUpUpdate(priority="HIGH"))
    assert follow_up.priority == "MEDIUM"
    db.commit.assert_not_called()


def test_follow_up_update_invalid_status():
    with pytest.raises(ValidationError):
        FollowUpUpdate(status="DONE")


def test_get_follow_ups_paginated():
    visit_id = uuid.uuid4()
    rows = [make_follow_up(visit_id), make_follow_up(visit_id)]
    db = MagicMock()
    db.execute.return_value.scalar_one.return_value = 2
    db.execute.return_value.scalars.return_value.all.return_value = rows

    items, total = get_follow_ups(db, USER_ID, page=1, limit=10, status="PENDING")

    assert total == 2
    assert len(items) == 2
    assert items[0].visit_id == visit_id
