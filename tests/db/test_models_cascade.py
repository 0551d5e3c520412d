"""Ownership cascades and SQLite foreign-key enforcement."""

import pytest
from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import IntegrityError

from wpmanager.db.models import (
    Action,
    ActionStatus,
    Activity,
    ApiKey,
    Conversation,
    HostingAccount,
    Message,
    Site,
    User,
)


def _count(session, model) -> int:
    return session.scalar(select(func.count()).select_from(model))


@pytest.fixture
def populated(db_session, site):
    """One site with a conversation, message, action and activity."""
    conversation = Conversation(user_id=site.user_id, site_id=site.id)
    db_session.add(conversation)
    db_session.flush()
    message = Message(
        conversation_id=conversation.id, role="assistant", content="Done", sequence=2
    )
    db_session.add(message)
    db_session.flush()
    db_session.add_all([
        Action(
            site_id=site.id,
            message_id=message.id,
            action_type="plugin_install",
            params_json='{"plugin": "akismet"}',
            status=ActionStatus.pending.value,
        ),
        Activity(site_id=site.id, activity_type="site_connected", description="Connected"),
        ApiKey(user_id=site.user_id, provider="openai", key_name="k", encrypted_key="x"),
        HostingAccount(
            user_id=site.user_id, provider="kinsta", account_name="a", encrypted_credentials="x"
        ),
    ])
    db_session.commit()
    return site


def test_foreign_keys_pragma_is_on(db_session):
    assert db_session.execute(text("PRAGMA foreign_keys")).scalar() == 1


def test_orphan_site_rejected(db_session):
    db_session.add(Site(user_id="nobody", name="x", url="https://x.test", username="u", encrypted_password="p"))
    with pytest.raises(IntegrityError):
        db_session.commit()


def test_defaults(db_session, user):
    conversation = Conversation(user_id=user.id)
    db_session.add(conversation)
    db_session.commit()

    assert conversation.title == "New Conversation"
    assert conversation.site_id is None
    assert conversation.created_at


def test_deleting_site_removes_its_records(db_session, populated):
    db_session.delete(populated)
    db_session.commit()

    for model in (Site, Conversation, Message, Action, Activity):
        assert _count(db_session, model) == 0
    # user-owned secrets survive a site removal
    assert _count(db_session, ApiKey) == 1
    assert _count(db_session, HostingAccount) == 1


def test_bulk_site_delete_cascades_in_database(db_session, populated):
    db_session.execute(delete(Site).where(Site.id == populated.id))
    db_session.commit()

    assert _count(db_session, Action) == 0
    assert _count(db_session, Activity) == 0
    assert _count(db_session, Conversation) == 0


def test_deleting_user_removes_everything_they_own(db_session, populated):
    owner = db_session.get(User, populated.user_id)
    db_session.delete(owner)
    db_session.commit()

    for model in (User, Site, Conversation, Message, Action, Activity, ApiKey, HostingAccount):
        assert _count(db_session, model) == 0


def test_deleting_message_keeps_action(db_session, populated):
    message = db_session.scalars(select(Message)).one()
    db_session.execute(delete(Message).where(Message.id == message.id))
    db_session.commit()

    action = db_session.scalars(select(Action)).one()
    assert action.message_id is None
