"""
Tests for the entity repositories.
"""
import time

import pytest

from chathub.core.errors import DuplicateEmailError, DuplicateInstanceNameError, StoreUnavailableError
from chathub.models.user import UserRole
from chathub.repositories.chats import ChatRepository
from chathub.repositories.contacts import ContactRepository
from chathub.repositories.instances import InstanceRepository
from chathub.repositories.messages import MessageRepository
from chathub.repositories.users import UserRepository
from chathub.schemas.entities import (
    ChatCreate,
    ContactCreate,
    ContactUpdate,
    InstanceCreate,
    InstanceUpdate,
    MessageCreate,
    UserCreate,
    UserUpdate,
)


@pytest.fixture
def instances(session):
    repository = InstanceRepository(session)
    repository.create(InstanceCreate(name="shop1"))
    repository.create(InstanceCreate(name="shop2"))
    return repository


def add_message(session, message_id, owner="shop1", remote_jid="1@s.whatsapp.net", **fields):
    chats = ChatRepository(session)
    if chats.get_by_id(remote_jid) is None:
        chats.create(ChatCreate(id=remote_jid, owner=owner))
    return MessageRepository(session).create(MessageCreate(id=message_id, remote_jid=remote_jid, owner=owner, **fields))


class TestBaseContract:
    def test_repository_without_session_raises(self):
        with pytest.raises(StoreUnavailableError):
            ContactRepository(None)

    def test_get_by_id_missing_returns_none(self, session, instances):
        assert ContactRepository(session).get_by_id("nobody") is None

    def test_create_overwrites_every_column_but_created_at(self, session, instances):
        contacts = ContactRepository(session)
        first = contacts.create(ContactCreate(id="c1", owner="shop1", push_name="Ana", profile_picture_url="https://pic"))
        created_at = first.created_at

        time.sleep(0.01)
        second = contacts.create(ContactCreate(id="c1", owner="shop1", push_name="Ana B"))

        assert second.push_name == "Ana B"
        assert second.profile_picture_url is None
        assert second.created_at == created_at
        assert second.updated_at > created_at
        assert len(contacts.get_all()) == 1

    def test_update_writes_only_supplied_fields(self, session, instances):
        contacts = ContactRepository(session)
        contacts.create(ContactCreate(id="c1", owner="shop1", push_name="Ana", profile_picture_url="https://pic"))

        updated = contacts.update("c1", ContactUpdate(push_name="Bea"))

        assert updated.push_name == "Bea"
        assert updated.profile_picture_url == "https://pic"

    def test_update_can_clear_a_field(self, session, instances):
        contacts = ContactRepository(session)
        contacts.create(ContactCreate(id="c1", owner="shop1", profile_picture_url="https://pic"))
        assert contacts.update("c1", ContactUpdate(profile_picture_url=None)).profile_picture_url is None

    def test_empty_update_refreshes_only_updated_at(self, session, instances):
        contacts = ContactRepository(session)
        before = contacts.create(ContactCreate(id="c1", owner="shop1", push_name="Ana"))
        stamp = before.updated_at

        time.sleep(0.01)
        after = contacts.update("c1", ContactUpdate())

        assert after.push_name == "Ana"
        assert after.updated_at > stamp

    def test_update_missing_returns_none(self, session, instances):
        assert ContactRepository(session).update("ghost", ContactUpdate(push_name="x")) is None

    def test_delete_reports_whether_a_row_was_removed(self, session, instances):
        contacts = ContactRepository(session)
        contacts.create(ContactCreate(id="c1", owner="shop1"))
        assert contacts.delete("c1") is True
        assert contacts.delete("c1") is False


class TestMessages:
    def test_get_all_newest_first(self, session, instances):
        add_message(session, "old", message_timestamp=100)
        add_message(session, "new", message_timestamp=300)
        add_message(session, "mid", message_timestamp=200)

        assert [m.id for m in MessageRepository(session).get_all()] == ["new", "mid", "old"]

    def test_chat_upsert_keeps_its_messages(self, session, instances):
        add_message(session, "m1")
        ChatRepository(session).create(ChatCreate(id="1@s.whatsapp.net", owner="shop1", raw_data={"name": "x"}))
        assert MessageRepository(session).get_by_id("m1") is not None

    def test_page_filters_by_owner_and_search(self, session, instances):
        add_message(session, "a", content="hola mundo")
        add_message(session, "b", content="adios")
        add_message(session, "c", owner="shop2", remote_jid="2@s.whatsapp.net", content="hola otra vez")

        total, filtered, rows = MessageRepository(session).page(owners=["shop1"], search="hola")

        assert total == 2
        assert filtered == 1
        assert [m.id for m in rows] == ["a"]

    def test_page_length_minus_one_returns_everything(self, session, instances):
        for index in range(15):
            add_message(session, f"m{index}", message_timestamp=index)

        _, _, rows = MessageRepository(session).page(start=0, length=-1)
        _, _, page = MessageRepository(session).page(start=10, length=10)

        assert len(rows) == 15
        assert len(page) == 5


class TestInstances:
    def test_duplicate_name_rejected(self, session, instances):
        with pytest.raises(DuplicateInstanceNameError):
            instances.create(InstanceCreate(name="shop1"))

    def test_rename_to_existing_name_rejected(self, session, instances):
        shop2 = instances.get_by_name("shop2")
        with pytest.raises(DuplicateInstanceNameError):
            instances.update(shop2.id, InstanceUpdate(name="shop1"))

    def test_delete_cascades_to_dependent_rows(self, session, instances):
        ContactRepository(session).create(ContactCreate(id="c1", owner="shop1"))
        add_message(session, "m1")

        instances.delete(instances.get_by_name("shop1").id)

        assert ContactRepository(session).get_all() == []
        assert ChatRepository(session).get_all() == []
        assert MessageRepository(session).get_all() == []

    def test_stats_count_dependent_rows(self, session, instances):
        owner = UserRepository(session).create(UserCreate(email="o@x.io", password="p", name="Owner"))
        instances.update(instances.get_by_name("shop1").id, InstanceUpdate(user_id=owner.id))
        ContactRepository(session).create(ContactCreate(id="c1", owner="shop1"))
        add_message(session, "m1")
        add_message(session, "m2")

        stats = {row.name: row for row in instances.get_all_with_stats()}

        assert stats["shop1"].owner_name == "Owner"
        assert (stats["shop1"].chat_count, stats["shop1"].message_count, stats["shop1"].contact_count) == (1, 2, 1)
        assert stats["shop2"].message_count == 0
        assert [row.name for row in instances.get_all_with_stats(user_id=owner.id)] == ["shop1"]

    def test_update_status_by_name(self, session, instances):
        assert instances.update_status_by_name("shop1", "open") is True
        assert instances.get_by_name("shop1").status == "open"
        assert instances.update_status_by_name("missing", "open") is False


class TestUsers:
    def test_password_is_hashed_and_never_returned(self, session):
        users = UserRepository(session)
        user = users.create(UserCreate(email="a@x.io", password="secret", name="A"))

        assert not hasattr(user, "password_hash")
        assert users.authenticate("a@x.io", "secret").id == user.id
        assert users.authenticate("a@x.io", "wrong") is None
        assert users.authenticate("nobody@x.io", "secret") is None

    def test_duplicate_email_rejected(self, session):
        users = UserRepository(session)
        users.create(UserCreate(email="a@x.io", password="secret", name="A"))
        with pytest.raises(DuplicateEmailError):
            users.create(UserCreate(email="a@x.io", password="other", name="B"))

    def test_update_rehashes_password_and_changes_role(self, session):
        users = UserRepository(session)
        user = users.create(UserCreate(email="a@x.io", password="secret", name="A"))

        updated = users.update(user.id, UserUpdate(password="new-secret", role=UserRole.ADMIN))

        assert updated.role == UserRole.ADMIN
        assert users.authenticate("a@x.io", "new-secret") is not None
        assert users.authenticate("a@x.io", "secret") is None
