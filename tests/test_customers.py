import uuid

import pytest

from contact_center.customers import schemas
from contact_center.customers.service import CustomerService
from contact_center.errors import ConflictError, NotFoundError


@pytest.fixture
def customers(session):
    return CustomerService(session)


def test_create_and_find_by_any_phone_format(customers):
    created = customers.create(schemas.CustomerCreate(name="Ana", phone="+54 9 11 1234-5678"), actor="api")
    assert created.normalized_phone == "5491112345678"
    assert created.status == "ACTIVE"
    assert customers.find_by_phone("549-11-1234-5678").id == created.id
    assert customers.find_by_phone("") is None


def test_duplicate_phone_conflicts(customers):
    customers.create(schemas.CustomerCreate(name="Ana", phone="1112345678"))
    with pytest.raises(ConflictError):
        customers.create(schemas.CustomerCreate(name="Other", phone="11-1234-5678"))


def test_update_phone_checks_uniqueness(customers):
    ana = customers.create(schemas.CustomerCreate(name="Ana", phone="1112345678"))
    bob = customers.create(schemas.CustomerCreate(name="Bob", phone="1187654321"))
    with pytest.raises(ConflictError):
        customers.update(bob.id, schemas.CustomerUpdate(phone="1112345678"))
    updated = customers.update(ana.id, schemas.CustomerUpdate(name="Ana Maria"))
    assert updated.name == "Ana Maria"


def test_soft_delete_hides_customer(customers):
    ana = customers.create(schemas.CustomerCreate(name="Ana", phone="1112345678"))
    deleted = customers.delete(ana.id)
    assert deleted.status == "INACTIVE"
    assert deleted.deleted_at is not None
    assert customers.find_by_phone("1112345678") is None
    rows, total = customers.list()
    assert rows == [] and total == 0


def test_block_and_list_filters(customers):
    ana = customers.create(schemas.CustomerCreate(name="Ana", phone="1112345678"))
    customers.create(schemas.CustomerCreate(name="Bob", phone="1187654321"))
    customers.block(ana.id)

    rows, total = customers.list(status="blocked")
    assert total == 1 and rows[0].id == ana.id
    rows, total = customers.list(search="bob")
    assert [row.name for row in rows] == ["Bob"]
    rows, _ = customers.list(search="8765")
    assert [row.name for row in rows] == ["Bob"]


def test_tags_and_notes(customers):
    ana = customers.create(schemas.CustomerCreate(name="Ana", phone="1112345678"))
    tag = customers.add_tag(ana.id, schemas.TagCreate(tag="vip"))
    with pytest.raises(ConflictError):
        customers.add_tag(ana.id, schemas.TagCreate(tag="vip"))
    customers.remove_tag(ana.id, tag.id)
    with pytest.raises(NotFoundError):
        customers.remove_tag(ana.id, tag.id)

    note = customers.add_note(ana.id, schemas.NoteCreate(content="Called twice"), actor="agent-1")
    assert note.created_by == "agent-1"
    assert customers.update_note(note.id, schemas.NoteUpdate(content="Called 3x")).content == "Called 3x"
    customers.delete_note(note.id)
    with pytest.raises(NotFoundError):
        customers.delete_note(note.id)


def test_unknown_customer(customers):
    with pytest.raises(NotFoundError):
        customers.get(uuid.uuid4())
    with pytest.raises(NotFoundError):
        customers.add_tag(uuid.uuid4(), schemas.TagCreate(tag="x"))
