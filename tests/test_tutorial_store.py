import pytest

from makerbook.models import (
    ChecklistItem,
    GlossaryTerm,
    Material,
    Step,
    StepImage,
    StepSafetyWarning,
    StepSkillReference,
    Tool,
    Tutorial,
)
from makerbook.schemas import TutorialContent
from makerbook.services.content_schemas import get_schema
from makerbook.services.content_store import TutorialStore
from makerbook.services.normalize import normalize

RAW_TUTORIAL = {
    "title": "Floating Shelf",
    "overview": "A simple wall shelf",
    "difficulty": "beginner",
    "estimated_time": "2 hours",
    "tags": ["woodworking", "home"],
    "glossary": [{"term": "Kerf", "definition": "Width of a saw cut"}],
    "materials": [
        {"name": "Pine board", "quantity": "1", "unit": "piece",
         "measurement": {"original": "24 in", "metric": "61 cm", "imperial": "24 in"}},
        {"name": "Wood screws", "quantity": "8"},
    ],
    "tools": [
        {"name": "Drill"},
        {"name": "Sander", "required": False},
    ],
    "steps": [
        {
            "step_number": 1,
            "title": "Cut",
            "instructions": "Cut the board to length",
            "tips": "Measure twice",
            "image_urls": ["https://img/1.jpg", "https://img/2.jpg"],
            "measurements": [{"original": "24 in", "metric": "61 cm", "imperial": "24 in"}],
            "helpful_links": [{"title": "Saw basics", "url": "https://x/saw", "type": "video"}],
            "skill_references": [{"skill_name": "Crosscut", "difficulty": "beginner",
                                  "description": "Cut across the grain", "search_query": "how to crosscut"}],
            "safety_warnings": [{"warning": "Wear eye protection", "severity": "warning",
                                 "ppe_required": ["goggles", "gloves"]}],
        },
        {"step_number": 2, "title": "Mount", "instructions": "Screw it to the wall"},
    ],
}


def _content() -> TutorialContent:
    return normalize(RAW_TUTORIAL, get_schema("tutorial"))


def test_save_and_load_round_trip(db_session):
    content = _content()
    store = TutorialStore(db_session)

    tutorial_id = store.save(content, source_url="https://example.com/shelf")
    loaded = store.load(tutorial_id)

    assert loaded.id == tutorial_id
    assert loaded.source_url == "https://example.com/shelf"
    assert TutorialContent.model_validate(loaded.model_dump()) == content


def test_children_keep_source_order(db_session):
    store = TutorialStore(db_session)
    tutorial_id = store.save(_content())

    loaded = store.load(tutorial_id)

    assert [m.name for m in loaded.materials] == ["Pine board", "Wood screws"]
    assert [t.required for t in loaded.tools] == [True, False]
    assert [s.step_number for s in loaded.steps] == [1, 2]
    assert loaded.steps[0].image_urls == ["https://img/1.jpg", "https://img/2.jpg"]


def test_duplicate_step_numbers_keep_insertion_order(db_session):
    content = normalize(
        {"title": "Dupes", "steps": [
            {"step_number": 2, "instructions": "b"},
            {"step_number": 1, "instructions": "a"},
            {"step_number": 2, "instructions": "c"},
        ]},
        get_schema("tutorial"),
    )
    store = TutorialStore(db_session)
    loaded = store.load(store.save(content))

    assert [s.instructions for s in loaded.steps] == ["a", "b", "c"]


def test_empty_collections_stored_as_null(db_session):
    store = TutorialStore(db_session)
    tutorial_id = store.save(normalize({"title": "Bare", "steps": ["Just do it"]}, get_schema("tutorial")))

    step = db_session.query(Step).filter_by(tutorial_id=tutorial_id).one()
    tutorial = db_session.get(Tutorial, tutorial_id)
    assert step.measurements_json is None
    assert step.helpful_links_json is None
    assert tutorial.tags_json is None


def test_malformed_json_column_reads_back_empty(db_session):
    store = TutorialStore(db_session)
    tutorial_id = store.save(_content())

    step = db_session.query(Step).filter_by(tutorial_id=tutorial_id, step_number=1).one()
    step.measurements_json = "{not json"
    step.helpful_links_json = '{"title": "not a list"}'
    material = db_session.query(Material).filter_by(tutorial_id=tutorial_id, sort_order=0).one()
    material.measurement_json = "[]"
    db_session.commit()

    loaded = store.load(tutorial_id)

    assert loaded.steps[0].measurements == []
    assert loaded.steps[0].helpful_links == []
    assert loaded.materials[0].measurement is None


def test_mistyped_json_column_drops_bad_entries(db_session):
    store = TutorialStore(db_session)
    tutorial_id = store.save(_content())

    step = db_session.query(Step).filter_by(tutorial_id=tutorial_id, step_number=1).one()
    step.measurements_json = '[{"original": 2}, {"original": "1 in", "metric": "2.5 cm"}]'
    step.helpful_links_json = '[{"url": 5, "title": []}, {"url": "https://example.com"}]'
    material = db_session.query(Material).filter_by(tutorial_id=tutorial_id, sort_order=0).one()
    material.measurement_json = '{"original": 2}'
    db_session.commit()

    loaded = store.load(tutorial_id)

    assert loaded.materials[0].measurement is None
    assert [m.original for m in loaded.steps[0].measurements] == ["1 in"]
    assert [link.url for link in loaded.steps[0].helpful_links] == ["https://example.com"]


def test_list_newest_first(db_session):
    store = TutorialStore(db_session)
    first = store.save(normalize({"title": "First"}, get_schema("tutorial")))
    second = store.save(normalize({"title": "Second"}, get_schema("tutorial")))
    older = db_session.get(Tutorial, first)
    newer = db_session.get(Tutorial, second)
    older.created_at = newer.created_at.replace(year=newer.created_at.year - 1)
    db_session.commit()

    assert [t.id for t in store.list()] == [second, first]


def test_load_missing(db_session):
    assert TutorialStore(db_session).load("missing") is None


def test_delete_removes_every_child(db_session):
    store = TutorialStore(db_session)
    tutorial_id = store.save(_content())

    assert store.delete(tutorial_id) is True

    db_session.expire_all()
    for model in (Tutorial, GlossaryTerm, Material, Tool, Step, StepImage, StepSkillReference, StepSafetyWarning):
        assert db_session.query(model).count() == 0


def test_delete_missing(db_session):
    assert TutorialStore(db_session).delete("missing") is False


def test_add_to_checklist_copies_materials_and_required_tools(db_session):
    store = TutorialStore(db_session)
    tutorial_id = store.save(_content())

    added = store.add_to_checklist(tutorial_id)

    assert added == 3
    items = db_session.query(ChecklistItem).all()
    assert sorted((i.name, i.item_type) for i in items) == [
        ("Drill", "tool"),
        ("Pine board", "material"),
        ("Wood screws", "material"),
    ]
    assert all(i.checked == 0 and i.tutorial_id == tutorial_id for i in items)


def test_add_to_checklist_missing_tutorial(db_session):
    assert TutorialStore(db_session).add_to_checklist("missing") is None


def test_failed_checklist_copy_rolls_back(db_session, monkeypatch):
    store = TutorialStore(db_session)
    tutorial_id = store.save(_content())

    def boom(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(db_session, "commit", boom)
    with pytest.raises(RuntimeError):
        store.add_to_checklist(tutorial_id)
    monkeypatch.undo()

    assert db_session.query(ChecklistItem).count() == 0
    assert store.exists(tutorial_id)
