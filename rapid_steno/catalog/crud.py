from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from .models import Option, Question, Test, TestCategory, TestTopic


# Categories

def list_categories(db: Session) -> list[TestCategory]:
    return db.query(TestCategory).order_by(TestCategory.display_order.asc(), TestCategory.id.asc()).all()


def get_category(db: Session, category_id: int) -> TestCategory | None:
    return db.query(TestCategory).filter(TestCategory.id == category_id).first()


def create_category(db: Session, name: str, description: str = "") -> TestCategory:
    if db.query(TestCategory).filter(func.lower(TestCategory.name) == name.lower()).first():
        raise ValueError("Category already exists")
    next_order = (db.query(func.max(TestCategory.display_order)).scalar() or 0) + 1
    c = TestCategory(name=name, description=description, display_order=next_order)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def update_category(db: Session, category_id: int, payload: dict) -> TestCategory | None:
    c = get_category(db, category_id)
    if not c:
        return None
    for field, value in payload.items():
        if hasattr(c, field):
            setattr(c, field, value)
    db.commit()
    db.refresh(c)
    return c


def delete_category(db: Session, category_id: int) -> bool:
    c = get_category(db, category_id)
    if not c:
        return False
    db.delete(c)
    db.commit()
    return True


# Topics

def list_topics(db: Session, category_id: int | None = None) -> list[TestTopic]:
    q = db.query(TestTopic)
    if category_id is not None:
        q = q.filter(TestTopic.category_id == category_id)
    return q.order_by(TestTopic.display_order.asc(), TestTopic.id.asc()).all()


def get_topic(db: Session, topic_id: int) -> TestTopic | None:
    return db.query(TestTopic).filter(TestTopic.id == topic_id).first()


def create_topic(db: Session, category_id: int, name: str, description: str = "") -> TestTopic:
    if not get_category(db, category_id):
        raise LookupError("Category not found")
    next_order = (
        db.query(func.max(TestTopic.display_order)).filter(TestTopic.category_id == category_id).scalar() or 0
    ) + 1
    t = TestTopic(category_id=category_id, name=name, description=description, display_order=next_order)
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


def update_topic(db: Session, topic_id: int, payload: dict) -> TestTopic | None:
    t = get_topic(db, topic_id)
    if not t:
        return None
    for field, value in payload.items():
        if hasattr(t, field):
            setattr(t, field, value)
    db.commit()
    db.refresh(t)
    return t


def delete_topic(db: Session, topic_id: int) -> bool:
    t = get_topic(db, topic_id)
    if not t:
        return False
    db.delete(t)
    db.commit()
    return True


# Tests

def list_tests(db: Session, exclude_drafts: bool = False) -> list[Test]:
    q = db.query(Test)
    if exclude_drafts:
        q = q.filter(Test.status != "draft")
    return q.order_by(Test.created_at.desc(), Test.id.desc()).all()


def get_test(db: Session, test_id: int) -> Test | None:
    return db.query(Test).filter(Test.id == test_id).first()


def get_test_with_questions(db: Session, test_id: int) -> Test | None:
    return (
        db.query(Test)
        .options(selectinload(Test.questions).selectinload(Question.options))
        .filter(Test.id == test_id)
        .first()
    )


def question_counts(db: Session, test_ids: list[int]) -> dict[int, int]:
    if not test_ids:
        return {}
    rows = (
        db.query(Question.test_id, func.count(Question.id))
        .filter(Question.test_id.in_(test_ids))
        .group_by(Question.test_id)
        .all()
    )
    return {test_id: int(count) for test_id, count in rows}


def _apply_question(question: Question, data: dict, negative_marking: bool, order_index: int) -> Question:
    question.text = data["text"].strip()
    question.points = data.get("points") or 1
    question.negative_points = data.get("negative_points", 0) if negative_marking else 0
    question.order_index = order_index

    current = {o.id: o for o in question.options}
    options = []
    for j, o in enumerate(data.get("options", [])):
        option = current.pop(o.get("id"), None) or Option()
        option.label = o["label"].strip()
        option.is_correct = bool(o.get("is_correct"))
        option.order_index = j
        options.append(option)
    question.options = options
    return question


def _build_questions(questions: list[dict], negative_marking: bool, start_index: int = 0) -> list[Question]:
    return [
        _apply_question(Question(), q, negative_marking, start_index + i)
        for i, q in enumerate(questions)
    ]


def _sync_questions(t: Test, questions: list[dict]) -> None:
    """
    Edit questions in place, matched by id, so answers of earlier attempts
    keep pointing at them. Entries without a known id are added; questions
    left out of the list are deleted.
    """
    current = {q.id: q for q in t.questions}
    t.questions = [
        _apply_question(current.pop(q.get("id"), None) or Question(), q, t.negative_marking, i)
        for i, q in enumerate(questions)
    ]


def _check_refs(db: Session, payload: dict) -> None:
    category_id = payload.get("category_id")
    topic_id = payload.get("topic_id")
    if category_id is not None and not get_category(db, category_id):
        raise LookupError("Category not found")
    if topic_id is not None:
        topic = get_topic(db, topic_id)
        if not topic:
            raise LookupError("Topic not found")
        if category_id is not None and topic.category_id != category_id:
            raise ValueError("Topic does not belong to the selected category")


def create_test(db: Session, payload: dict) -> Test:
    payload = dict(payload)
    questions = payload.pop("questions", None) or []
    _check_refs(db, payload)

    t = Test(**payload)
    t.questions = _build_questions(questions, t.negative_marking)
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


def update_test(db: Session, test_id: int, payload: dict) -> Test | None:
    """
    Update test settings. When `questions` is given it becomes the test's
    question list (see _sync_questions); otherwise questions are left as they are.
    """
    t = get_test_with_questions(db, test_id)
    if not t:
        return None

    payload = dict(payload)
    questions = payload.pop("questions", None)
    _check_refs(db, payload)

    for field, value in payload.items():
        if hasattr(t, field):
            setattr(t, field, value)

    if questions is not None:
        _sync_questions(t, questions)

    db.commit()
    db.refresh(t)
    return t


def set_test_status(db: Session, test_id: int, status: str) -> Test | None:
    t = get_test(db, test_id)
    if not t:
        return None
    t.status = status
    db.commit()
    db.refresh(t)
    return t


def delete_test(db: Session, test_id: int) -> bool:
    t = get_test(db, test_id)
    if not t:
        return False
    # questions, options, attempts and answers go with it
    db.delete(t)
    db.commit()
    return True


def add_questions(db: Session, test: Test, questions: list[dict]) -> int:
    last = db.query(func.coalesce(func.max(Question.order_index), -1)).filter(Question.test_id == test.id).scalar()
    start = last + 1
    for q in _build_questions(questions, test.negative_marking, start_index=start):
        q.test_id = test.id
        db.add(q)
    db.commit()
    return len(questions)


def list_questions(db: Session, test_id: int) -> list[Question]:
    return (
        db.query(Question)
        .options(selectinload(Question.options))
        .filter(Question.test_id == test_id)
        .order_by(Question.order_index.asc(), Question.id.asc())
        .all()
    )
