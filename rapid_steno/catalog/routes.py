import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..shared.context import RequestUser, current_user, require_admin
from ..shared.database import db_dependency
from ..subscriptions.access import can_access_category, get_user_access, is_sample_category, upgrade_message
from .crud import (
    add_questions,
    create_category,
    create_test,
    create_topic,
    delete_category,
    delete_test,
    delete_topic,
    get_test,
    get_test_with_questions,
    list_categories,
    list_questions,
    list_tests,
    list_topics,
    question_counts,
    set_test_status,
    update_category,
    update_test,
    update_topic,
)
from .importer import parse_questions_csv, template_csv
from .models import Question, Test, TestCategory, TestTopic
from .schemas import (
    CategoryIn,
    CategoryListingOut,
    CategoryOut,
    ImportResultOut,
    OptionAdminOut,
    QuestionAdminOut,
    StudentTestOut,
    TestDetailOut,
    TestIn,
    TestOut,
    TestStatusIn,
    TopicIn,
    TopicListingOut,
    TopicOut,
)

logger = logging.getLogger("rapid-steno.catalog")

UNCATEGORIZED = "Uncategorized"


def _category_out(c: TestCategory) -> CategoryOut:
    return CategoryOut(id=c.id, name=c.name, description=c.description or "", display_order=c.display_order)


def _topic_out(t: TestTopic) -> TopicOut:
    return TopicOut(
        id=t.id,
        category_id=t.category_id,
        name=t.name,
        description=t.description or "",
        display_order=t.display_order,
    )


def _test_out(t: Test, count: int = 0) -> TestOut:
    return TestOut(
        id=t.id,
        title=t.title,
        description=t.description or "",
        category_id=t.category_id,
        category_name=t.category_name,
        topic_id=t.topic_id,
        duration_minutes=t.duration_minutes,
        status=t.status,
        shuffle_questions=t.shuffle_questions,
        shuffle_options=t.shuffle_options,
        negative_marking=t.negative_marking,
        question_count=count,
        created_at=t.created_at,
    )


def _question_admin_out(q: Question) -> QuestionAdminOut:
    return QuestionAdminOut(
        id=q.id,
        text=q.text,
        points=q.points,
        negative_points=q.negative_points,
        order_index=q.order_index,
        options=[
            OptionAdminOut(id=o.id, label=o.label, is_correct=o.is_correct, order_index=o.order_index)
            for o in q.options
        ],
    )


def _test_detail_out(t: Test) -> TestDetailOut:
    return TestDetailOut(
        **_test_out(t, len(t.questions)).model_dump(),
        questions=[_question_admin_out(q) for q in t.questions],
    )


def build_router(SessionLocal):
    router = APIRouter()
    get_db = db_dependency(SessionLocal)

    # Student listing
    @router.get("/tests", response_model=list[CategoryListingOut])
    def browse(db: Session = Depends(get_db), user: RequestUser = Depends(current_user)):
        access = get_user_access(db, user)
        tests = list_tests(db, exclude_drafts=True)
        counts = question_counts(db, [t.id for t in tests])

        def student_test(t: Test, accessible: bool, category_name: str) -> StudentTestOut:
            return StudentTestOut(
                id=t.id,
                title=t.title,
                description=t.description or "",
                duration_minutes=t.duration_minutes,
                status=t.status,
                question_count=counts.get(t.id, 0),
                accessible=accessible and t.status == "published",
                upgrade_message=None if accessible else upgrade_message(category_name),
            )

        listing = []
        for c in list_categories(db):
            if user.is_demo and not is_sample_category(c.name):
                continue
            accessible = can_access_category(access, c.name)
            own = [t for t in tests if t.category_id == c.id]
            topics = [
                TopicListingOut(
                    id=tp.id,
                    name=tp.name,
                    description=tp.description or "",
                    tests=[student_test(t, accessible, c.name) for t in own if t.topic_id == tp.id],
                )
                for tp in c.topics
            ]
            listing.append(CategoryListingOut(
                id=c.id,
                name=c.name,
                description=c.description or "",
                accessible=accessible,
                upgrade_message=None if accessible else upgrade_message(c.name),
                topics=topics,
                tests=[student_test(t, accessible, c.name) for t in own if t.topic_id is None],
            ))

        loose = [t for t in tests if t.category_id is None]
        if loose and not user.is_demo:
            accessible = can_access_category(access, "")
            listing.append(CategoryListingOut(
                name=UNCATEGORIZED,
                accessible=accessible,
                upgrade_message=None if accessible else upgrade_message(""),
                tests=[student_test(t, accessible, "") for t in loose],
            ))
        return listing

    # Admin: categories
    @router.get("/admin/categories", response_model=list[CategoryOut])
    def admin_categories(db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        return [_category_out(c) for c in list_categories(db)]

    @router.post("/admin/categories", response_model=CategoryOut)
    def admin_create_category(payload: CategoryIn, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        try:
            c = create_category(db, payload.name, payload.description)
        except ValueError as e:
            raise HTTPException(409, str(e))
        return _category_out(c)

    @router.put("/admin/categories/{category_id}", response_model=CategoryOut)
    def admin_update_category(
        category_id: int,
        payload: CategoryIn,
        db: Session = Depends(get_db),
        admin: RequestUser = Depends(require_admin),
    ):
        c = update_category(db, category_id, payload.model_dump())
        if not c:
            raise HTTPException(404, "Category not found")
        return _category_out(c)

    @router.delete("/admin/categories/{category_id}")
    def admin_delete_category(category_id: int, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        if not delete_category(db, category_id):
            raise HTTPException(404, "Category not found")
        return {"deleted": True}

    # Admin: topics
    @router.get("/admin/topics", response_model=list[TopicOut])
    def admin_topics(
        category_id: int | None = None,
        db: Session = Depends(get_db),
        admin: RequestUser = Depends(require_admin),
    ):
        return [_topic_out(t) for t in list_topics(db, category_id)]

    @router.post("/admin/topics", response_model=TopicOut)
    def admin_create_topic(payload: TopicIn, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        try:
            t = create_topic(db, payload.category_id, payload.name, payload.description)
        except LookupError as e:
            raise HTTPException(404, str(e))
        return _topic_out(t)

    @router.put("/admin/topics/{topic_id}", response_model=TopicOut)
    def admin_update_topic(
        topic_id: int,
        payload: TopicIn,
        db: Session = Depends(get_db),
        admin: RequestUser = Depends(require_admin),
    ):
        t = update_topic(db, topic_id, payload.model_dump())
        if not t:
            raise HTTPException(404, "Topic not found")
        return _topic_out(t)

    @router.delete("/admin/topics/{topic_id}")
    def admin_delete_topic(topic_id: int, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        if not delete_topic(db, topic_id):
            raise HTTPException(404, "Topic not found")
        return {"deleted": True}

    # Admin: tests
    @router.get("/admin/tests", response_model=list[TestOut])
    def admin_tests(db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        tests = list_tests(db)
        counts = question_counts(db, [t.id for t in tests])
        return [_test_out(t, counts.get(t.id, 0)) for t in tests]

    @router.post("/admin/tests", response_model=TestDetailOut)
    def admin_create_test(payload: TestIn, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        try:
            t = create_test(db, payload.model_dump())
        except LookupError as e:
            raise HTTPException(404, str(e))
        except ValueError as e:
            raise HTTPException(400, str(e))
        logger.info("Test %s created by %s", t.id, admin.email or admin.key)
        return _test_detail_out(get_test_with_questions(db, t.id))

    @router.get("/admin/tests/{test_id}", response_model=TestDetailOut)
    def admin_get_test(test_id: int, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        t = get_test_with_questions(db, test_id)
        if not t:
            raise HTTPException(404, "Test not found")
        return _test_detail_out(t)

    @router.put("/admin/tests/{test_id}", response_model=TestDetailOut)
    def admin_update_test(
        test_id: int,
        payload: TestIn,
        db: Session = Depends(get_db),
        admin: RequestUser = Depends(require_admin),
    ):
        try:
            t = update_test(db, test_id, payload.model_dump())
        except LookupError as e:
            raise HTTPException(404, str(e))
        except ValueError as e:
            raise HTTPException(400, str(e))
        if not t:
            raise HTTPException(404, "Test not found")
        return _test_detail_out(get_test_with_questions(db, t.id))

    @router.patch("/admin/tests/{test_id}/status", response_model=TestOut)
    def admin_set_status(
        test_id: int,
        payload: TestStatusIn,
        db: Session = Depends(get_db),
        admin: RequestUser = Depends(require_admin),
    ):
        t = set_test_status(db, test_id, payload.status)
        if not t:
            raise HTTPException(404, "Test not found")
        return _test_out(t, question_counts(db, [t.id]).get(t.id, 0))

    @router.delete("/admin/tests/{test_id}")
    def admin_delete_test(test_id: int, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        if not delete_test(db, test_id):
            raise HTTPException(404, "Test not found")
        return {"deleted": True}

    @router.get("/admin/tests/{test_id}/questions", response_model=list[QuestionAdminOut])
    def admin_questions(test_id: int, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        if not get_test(db, test_id):
            raise HTTPException(404, "Test not found")
        return [_question_admin_out(q) for q in list_questions(db, test_id)]

    @router.post("/admin/tests/{test_id}/questions/import", response_model=ImportResultOut)
    def admin_import_questions(
        test_id: int,
        file: UploadFile = File(...),
        db: Session = Depends(get_db),
        admin: RequestUser = Depends(require_admin),
    ):
        t = get_test(db, test_id)
        if not t:
            raise HTTPException(404, "Test not found")
        try:
            parsed = parse_questions_csv(file.file.read(), negative_marking=t.negative_marking)
        except ValueError as e:
            raise HTTPException(400, str(e))
        if not parsed.questions:
            raise HTTPException(400, "No valid questions found in the CSV file.")

        imported = add_questions(db, t, parsed.questions)
        return ImportResultOut(
            imported=imported,
            skipped=parsed.skipped,
            question_count=question_counts(db, [t.id]).get(t.id, 0),
        )

    @router.get("/admin/questions/template")
    def admin_question_template(admin: RequestUser = Depends(require_admin)):
        return Response(
            content=template_csv(),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="mcq-template.csv"'},
        )

    return router
