from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from ..catalog.models import Test
from ..shared.context import RequestUser, require_student
from ..subscriptions.access import can_access_category, get_user_access, upgrade_message
from .controller import TestSession
from .errors import AlreadySubmitted
from .registry import SessionRegistry
from .schemas import NavigateIn, SelectIn, SessionOut, SubmissionOut
from .store import results_location


def build_router(SessionLocal, registry: SessionRegistry):
    router = APIRouter()

    def check_access(test_id: int, user: RequestUser) -> None:
        with SessionLocal() as db:
            t = db.query(Test).filter(Test.id == test_id).first()
            # missing or unpublished tests are reported by the session itself
            if not t or t.status != "published":
                return
            if not can_access_category(get_user_access(db, user), t.category_name):
                raise HTTPException(403, upgrade_message(t.category_name))

    async def known_session(test_id: int, user: RequestUser) -> TestSession:
        session = registry.current(user, test_id)
        if session is not None:
            return session
        previous = await registry.find_submitted(user, test_id)
        if previous is not None:
            raise AlreadySubmitted("You have already submitted this test", results_location(previous))
        raise HTTPException(404, "No active session for this test")

    @router.post("/tests/{test_id}/session", response_model=SessionOut)
    async def enter(test_id: int, user: RequestUser = Depends(require_student)):
        await run_in_threadpool(check_access, test_id, user)
        session = await registry.enter(user, test_id)
        return session.snapshot()

    @router.get("/tests/{test_id}/session", response_model=SessionOut)
    async def snapshot(test_id: int, user: RequestUser = Depends(require_student)):
        session = await known_session(test_id, user)
        return session.snapshot()

    @router.put("/tests/{test_id}/session/answers/{question_id}", response_model=SessionOut)
    async def select(test_id: int, question_id: int, payload: SelectIn, user: RequestUser = Depends(require_student)):
        session = await known_session(test_id, user)
        session.select_option(question_id, payload.option_id)
        return session.snapshot()

    @router.delete("/tests/{test_id}/session/answers/{question_id}", response_model=SessionOut)
    async def clear(test_id: int, question_id: int, user: RequestUser = Depends(require_student)):
        session = await known_session(test_id, user)
        session.clear_selection(question_id)
        return session.snapshot()

    @router.post("/tests/{test_id}/session/navigate", response_model=SessionOut)
    async def navigate(test_id: int, payload: NavigateIn, user: RequestUser = Depends(require_student)):
        session = await known_session(test_id, user)
        if payload.index is not None:
            session.navigate(index=payload.index)
        else:
            session.navigate(step=1 if payload.direction == "next" else -1)
        return session.snapshot()

    @router.post("/tests/{test_id}/session/submit", response_model=SubmissionOut)
    async def submit(test_id: int, user: RequestUser = Depends(require_student)):
        session = await known_session(test_id, user)
        result = await session.submit()
        return SubmissionOut(**result.__dict__)

    return router
