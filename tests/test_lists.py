from datetime import datetime, timedelta, timezone

from makerbook.models import ChecklistItem
from makerbook.schemas import ChecklistItemCreate, ShoppingListItemCreate
from makerbook.services.content_schemas import get_schema
from makerbook.services.content_store import TutorialStore
from makerbook.services.lists import ChecklistService, ShoppingListService
from makerbook.services.normalize import normalize


def test_checklist_add_and_toggle(db_session):
    service = ChecklistService(db_session)
    item = service.add(ChecklistItemCreate(name="Sandpaper", quantity="3", unit="sheets"))

    assert item.checked == 0
    assert service.toggle(item.id).checked == 1
    assert service.toggle(item.id).checked == 0


def test_checklist_newest_first(db_session):
    service = ChecklistService(db_session)
    old = service.add(ChecklistItemCreate(name="Old"))
    new = service.add(ChecklistItemCreate(name="New", item_type="tool"))
    db_session.get(ChecklistItem, old.id).created_at = datetime.now(timezone.utc) - timedelta(days=1)
    db_session.commit()

    assert [i.name for i in service.list()] == ["New", "Old"]
    assert new.item_type == "tool"


def test_checklist_remove_and_clear(db_session):
    service = ChecklistService(db_session)
    a = service.add(ChecklistItemCreate(name="A"))
    service.add(ChecklistItemCreate(name="B"))
    service.add(ChecklistItemCreate(name="C"))

    assert service.remove(a.id) is True
    assert service.remove(a.id) is False
    assert service.clear() == 2
    assert service.list() == []


def test_toggle_missing_item(db_session):
    assert ChecklistService(db_session).toggle("missing") is None
    assert ShoppingListService(db_session).toggle("missing") is None


def test_checklist_items_outlive_tutorial(db_session):
    store = TutorialStore(db_session)
    tutorial_id = store.save(normalize(
        {"title": "Stool", "materials": [{"name": "Oak"}], "tools": [{"name": "Chisel"}]},
        get_schema("tutorial"),
    ))
    store.add_to_checklist(tutorial_id)
    store.delete(tutorial_id)

    items = ChecklistService(db_session).list()
    assert sorted(i.name for i in items) == ["Chisel", "Oak"]
    assert {i.tutorial_id for i in items} == {tutorial_id}


def test_shopping_list_add_toggle_clear(db_session):
    service = ShoppingListService(db_session)
    item = service.add(ShoppingListItemCreate(ingredient_name="Basil", quantity="1", unit="bunch"))

    assert service.toggle(item.id).checked == 1
    assert service.list()[0].ingredient_name == "Basil"
    assert service.clear() == 1
