from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..shared.context import RequestUser, current_user, require_admin
from ..shared.database import db_dependency
from ..subscriptions.access import UserAccess, can_access_category, get_user_access, upgrade_message
from .crud import (
    create_material,
    create_material_category,
    delete_material,
    delete_material_category,
    get_material,
    list_material_categories,
    list_materials,
    update_material,
    update_material_category,
)
from .models import Material
from .schemas import (
    MaterialCategoryIn,
    MaterialCategoryOut,
    MaterialGroupOut,
    MaterialIn,
    MaterialOut,
    MaterialUpdateIn,
)

UNCATEGORIZED = "Uncategorized"


def _material_out(m: Material, access: UserAccess | None = None) -> MaterialOut:
    # access is None for admin views, which always see the PDF
    accessible = access is None or can_access_category(access, m.category_name)
    return MaterialOut(
        id=m.id,
        title=m.title,
        description=m.description or "",
        tags=m.tags or [],
        pdf_url=m.pdf_url if accessible else None,
        category_id=m.category_id,
        category_name=m.category_name or UNCATEGORIZED,
        associated_test_id=m.associated_test_id,
        status=m.status,
        accessible=accessible,
        upgrade_message=None if accessible else upgrade_message(m.category_name),
        created_at=m.created_at,
    )


def build_router(SessionLocal):
    router = APIRouter()
    get_db = db_dependency(SessionLocal)

    # Student endpoints
    @router.get("/", response_model=list[MaterialGroupOut])
    def browse(db: Session = Depends(get_db), user: RequestUser = Depends(current_user)):
        access = get_user_access(db, user)
        groups: dict[str, list[MaterialOut]] = {}
        for m in list_materials(db, exclude_drafts=True):
            out = _material_out(m, access)
            groups.setdefault(out.category_name, []).append(out)
        return [
            MaterialGroupOut(
                category_name=name,
                accessible=can_access_category(access, "" if name == UNCATEGORIZED else name),
                materials=items,
            )
            for name, items in sorted(groups.items())
        ]

    @router.get("/items/{material_id}", response_model=MaterialOut)
    def detail(material_id: int, db: Session = Depends(get_db), user: RequestUser = Depends(current_user)):
        m = get_material(db, material_id)
        if not m or m.status == "draft":
            raise HTTPException(404, "Material not found")
        return _material_out(m, get_user_access(db, user))

    # Admin endpoints
    @router.get("/admin/categories", response_model=list[MaterialCategoryOut])
    def categories(db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        return list_material_categories(db)

    @router.post("/admin/categories", response_model=MaterialCategoryOut)
    def add_category(payload: MaterialCategoryIn, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        try:
            return create_material_category(db, payload.name, payload.description)
        except ValueError as e:
            raise HTTPException(409, str(e))

    @router.put("/admin/categories/{category_id}", response_model=MaterialCategoryOut)
    def edit_category(
        category_id: int,
        payload: MaterialCategoryIn,
        db: Session = Depends(get_db),
        admin: RequestUser = Depends(require_admin),
    ):
        c = update_material_category(db, category_id, payload.name, payload.description)
        if not c:
            raise HTTPException(404, "Category not found")
        return c

    @router.delete("/admin/categories/{category_id}")
    def remove_category(category_id: int, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        if not delete_material_category(db, category_id):
            raise HTTPException(404, "Category not found")
        return {"deleted": True}

    @router.get("/admin/items", response_model=list[MaterialOut])
    def materials(db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        return [_material_out(m) for m in list_materials(db)]

    @router.post("/admin/items", response_model=MaterialOut)
    def add_material(payload: MaterialIn, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        m = create_material(db, payload.model_dump())
        return _material_out(get_material(db, m.id))

    @router.put("/admin/items/{material_id}", response_model=MaterialOut)
    def edit_material(
        material_id: int,
        payload: MaterialUpdateIn,
        db: Session = Depends(get_db),
        admin: RequestUser = Depends(require_admin),
    ):
        m = update_material(db, material_id, payload.model_dump(exclude_unset=True))
        if not m:
            raise HTTPException(404, "Material not found")
        return _material_out(get_material(db, m.id))

    @router.delete("/admin/items/{material_id}")
    def remove_material(material_id: int, db: Session = Depends(get_db), admin: RequestUser = Depends(require_admin)):
        if not delete_material(db, material_id):
            raise HTTPException(404, "Material not found")
        return {"deleted": True}

    return router
