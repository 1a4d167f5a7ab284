from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile
from sqlalchemy.orm import Session

from ..results.crud import AttemptSummary, attempt_summaries, delete_attempt
from ..shared.context import RequestUser, require_admin
from ..shared.database import db_dependency
from .crud import (
    create_student,
    delete_student,
    generate_secret_keys,
    import_students,
    key_status,
    list_secret_keys,
    list_students,
    log_activity,
    read_student_sheet,
    results_csv,
    students_csv,
    unused_keys_csv,
    update_student,
)
from .schemas import (
    AdminResultOut,
    SecretKeyGenerateIn,
    SecretKeyOut,
    StudentCreateIn,
    StudentImportOut,
    StudentOut,
    StudentUpdateIn,
)


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _result_out(s: AttemptSummary) -> AdminResultOut:
    return AdminResultOut(
        attempt_id=s.attempt_id,
        user_id=s.user_id,
        user_name=s.user_name,
        user_email=s.user_email,
        test_id=s.test_id,
        test_title=s.test_title,
        category_name=s.category_name,
        submitted_at=s.submitted_at,
        score=s.total_score,
        max_score=s.max_score,
        percentage=s.percentage,
        grade=s.grade,
        correct=s.correct,
        incorrect=s.incorrect,
        unanswered=s.unanswered,
        time_spent_seconds=s.time_spent_seconds,
    )


def build_router(SessionLocal):
    router = APIRouter()
    get_db = db_dependency(SessionLocal)

    # Students
    @router.get("/students", response_model=list[StudentOut])
    def students(search: str = "", db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        return list_students(db, search)

    @router.post("/students", response_model=StudentOut)
    def add_student(payload: StudentCreateIn, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        try:
            return create_student(db, payload.email, payload.full_name)
        except ValueError as e:
            raise HTTPException(409, str(e))

    @router.put("/students/{user_id}", response_model=StudentOut)
    def edit_student(
        user_id: int,
        payload: StudentUpdateIn,
        db: Session = Depends(get_db),
        admin: RequestUser = Depends(require_admin),
    ):
        try:
            user = update_student(db, user_id, payload.model_dump(exclude_unset=True))
        except ValueError as e:
            raise HTTPException(409, str(e))
        if not user:
            raise HTTPException(404, "Student not found")
        return user

    @router.delete("/students/{user_id}")
    def remove_student(user_id: int, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        if not delete_student(db, user_id):
            raise HTTPException(404, "Student not found")
        return {"deleted": True}

    @router.post("/students/import", response_model=StudentImportOut)
    async def bulk_import(
        file: UploadFile = File(...),
        db: Session = Depends(get_db),
        admin: RequestUser = Depends(require_admin),
    ):
        content = await file.read()
        try:
            df = read_student_sheet(content, file.filename or "")
        except ValueError as e:
            raise HTTPException(400, str(e))
        report = import_students(db, df)
        log_activity(
            db,
            "bulk_import_students",
            {"created": len(report.created), "skipped": len(report.skipped), "errors": len(report.errors)},
            performed_by=admin.email or admin.key,
        )
        return StudentImportOut(created=report.created, skipped=report.skipped, errors=report.errors)

    @router.get("/students/export")
    def export_students(db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        return _csv_response(students_csv(list_students(db)), "students.csv")

    # Results
    @router.get("/results", response_model=list[AdminResultOut])
    def results(
        test_id: Optional[int] = None,
        db: Session = Depends(get_db),
        admin: RequestUser = Depends(require_admin),
    ):
        return [_result_out(s) for s in attempt_summaries(db, test_id=test_id)]

    @router.get("/results/export")
    def export_results(
        test_id: Optional[int] = None,
        db: Session = Depends(get_db),
        admin: RequestUser = Depends(require_admin),
    ):
        return _csv_response(results_csv(attempt_summaries(db, test_id=test_id)), "results.csv")

    @router.get("/results/{attempt_id}", response_model=AdminResultOut)
    def result_detail(attempt_id: int, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        summary = next((s for s in attempt_summaries(db, status=None) if s.attempt_id == attempt_id), None)
        if not summary:
            raise HTTPException(404, "Attempt not found")
        return _result_out(summary)

    @router.delete("/results/{attempt_id}")
    def remove_result(attempt_id: int, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        if not delete_attempt(db, attempt_id):
            raise HTTPException(404, "Attempt not found")
        return {"deleted": True}

    # Secret keys
    @router.get("/secret-keys", response_model=list[SecretKeyOut])
    def secret_keys(db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        return [
            SecretKeyOut(
                id=k.id,
                code=k.code,
                status=key_status(k),
                expires_at=k.expires_at,
                created_at=k.created_at,
                used_at=k.used_at,
                used_by_name=user.full_name if user else None,
                used_by_email=user.email if user else None,
            )
            for k, user in list_secret_keys(db)
        ]

    @router.post("/secret-keys", response_model=list[SecretKeyOut])
    def create_secret_keys(
        payload: SecretKeyGenerateIn,
        db: Session = Depends(get_db),
        admin: RequestUser = Depends(require_admin),
    ):
        keys = generate_secret_keys(db, payload.count, payload.days)
        log_activity(db, "generate_secret_keys", {"count": len(keys), "days": payload.days}, performed_by=admin.email or admin.key)
        return [
            SecretKeyOut(id=k.id, code=k.code, status=key_status(k), expires_at=k.expires_at, created_at=k.created_at)
            for k in keys
        ]

    @router.get("/secret-keys/export")
    def export_secret_keys(db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        return _csv_response(unused_keys_csv(db), "secret-keys.csv")

    return router
