"""SqlQuestionStore and crud against an in-memory SQLite database."""

import pytest

from conftest import make_candidate
from database import crud
from extraction.question_store import SqlQuestionStore
from extraction.schemas import QuestionStatus
from extraction.service import load_vocabulary


@pytest.fixture
def store(session_factory):
    return SqlQuestionStore(session_factory, model="llama3.1")


def _candidate(**overrides):
    candidate = make_candidate(**overrides)
    return candidate.model_copy(update={"source_document": "MRCS-Sept-2023.pdf", "source_page": 4})


def test_create_and_find(store):
    qid = store.create(_candidate())

    matches = store.find_similar("WHICH NERVE supplies the diaphragm")

    assert [m.id for m in matches] == [qid]
    found = matches[0]
    assert found.status == QuestionStatus.UNVERIFIED
    assert found.categories == ["anatomy-thorax"]
    assert found.intake == "january"
    assert found.options["A"] == "Phrenic nerve"
    assert found.confidence == 0.85


def test_find_similar_respects_limit(store):
    for n in range(4):
        store.create(_candidate(question=f"Variant {n}: which nerve supplies the diaphragm muscle?"))
    assert len(store.find_similar("which nerve", limit=3)) == 3
    assert store.find_similar("no such stem anywhere") == []


def test_search_treats_wildcards_literally(store):
    store.create(_candidate())
    assert store.find_similar("%") == []


def test_provenance_and_metadata(store, session_factory):
    qid = store.create(_candidate())
    db = session_factory()
    try:
        row = crud.get_question(db, qid)
        assert row.source_document == "MRCS-Sept-2023.pdf"
        assert row.source_page == 4
        assert row.ai_metadata["model"] == "llama3.1"
        assert row.ai_metadata["source_page"] == 4
    finally:
        db.close()


def test_update_keeps_review_status(store, session_factory):
    qid = store.create(_candidate())
    db = session_factory()
    try:
        crud.set_question_status(db, qid, QuestionStatus.APPROVED.value)
    finally:
        db.close()

    store.update(qid, _candidate(
        question="Which nerve supplies the diaphragm and arises from the C3, C4 and C5 roots?",
        confidence=0.95,
        categories=["anatomy-thorax", "physiology"],
    ))

    found = store.find_similar("arises from the C3")[0]
    assert found.id == qid
    assert found.status == QuestionStatus.APPROVED
    assert found.confidence == 0.95
    assert sorted(found.categories) == ["anatomy-thorax", "physiology"]


def test_update_missing_question(store):
    with pytest.raises(LookupError):
        store.update(999, _candidate())


def test_unknown_labels_fall_back_to_first_active_row(store):
    candidate = _candidate().model_copy(update={"categories": ["astrology"], "intake": "june"})
    qid = store.create(candidate)
    found = store.find_similar("which nerve")[0]
    assert found.id == qid
    assert found.categories == ["anatomy-thorax"]
    assert found.intake == "january"


def test_count_filters(store):
    store.create(_candidate())
    store.create(_candidate(question="Which muscle is the principal muscle of inspiration?", intake="september"))

    assert store.count() == 2
    assert store.count(intake="september") == 1
    assert store.count(category="anatomy-thorax") == 2
    assert store.count(status="approved") == 0
    assert store.count(source_document="MRCS-Sept-2023.pdf") == 2
    assert store.count(exam_year=2019) == 0


def test_seed_is_idempotent(session_factory):
    db = session_factory()
    try:
        crud.seed_vocabulary(db)
        assert len(crud.get_active_categories(db)) == 23
        assert [i.name for i in crud.get_active_intakes(db)] == ["january", "april-may", "september"]
    finally:
        db.close()


def test_vocabulary_is_read_from_database(session_factory):
    vocab = load_vocabulary(session_factory)
    assert vocab.has_category("clinical-urology")
    assert vocab.intakes == ("january", "april-may", "september")
