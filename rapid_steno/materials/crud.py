from sqlalchemy.orm import Session, selectinload

from .models import Material, MaterialCategory


def list_material_categories(db: Session) -> list[MaterialCategory]:
    return db.query(MaterialCategory).order_by(MaterialCategory.name.asc()).all()


def get_material_category(db: Session, category_id: int) -> MaterialCategory | None:
    return db.query(MaterialCategory).filter(MaterialCategory.id == category_id).first()


def create_material_category(db: Session, name: str, description: str = "") -> MaterialCategory:
    name = name.strip()
    if db.query(MaterialCategory).filter(MaterialCategory.name == name).first():
        raise ValueError("Category already exists")
    c = MaterialCategory(name=name, description=description)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def update_material_category(db: Session, category_id: int, name: str, description: str) -> MaterialCategory | None:
    c = get_material_category(db, category_id)
    if not c:
        return None
    c.name = name.strip()
    c.description = description
    db.commit()
    db.refresh(c)
    return c


def delete_material_category(db: Session, category_id: int) -> bool:
    c = get_material_category(db, category_id)
    if not c:
        return False
    db.delete(c)
    db.commit()
    return True


def list_materials(db: Session, exclude_drafts: bool = False) -> list[Material]:
    q = db.query(Material).options(selectinload(Material.category))
    if exclude_drafts:
        q = q.filter(Material.status != "draft")
    return q.order_by(Material.created_at.desc(), Material.id.desc()).all()


def get_material(db: Session, material_id: int) -> Material | None:
    return (
        db.query(Material)
        .options(selectinload(Material.category))
        .filter(Material.id == material_id)
        .first()
    )


def _clean_tags(tags: list[str]) -> list[str]:
    return [t.strip() for t in tags if t and t.strip()]


def create_material(db: Session, payload: dict) -> Material:
    payload = dict(payload)
    payload["tags"] = _clean_tags(payload.get("tags") or [])
    m = Material(**payload)
    db.add(m)
    db.commit()
    db.refresh(m)
    return m


def update_material(db: Session, material_id: int, payload: dict) -> Material | None:
    m = get_material(db, material_id)
    if not m:
        return None
    for field, value in payload.items():
        if field == "tags":
            value = _clean_tags(value or [])
        setattr(m, field, value)
    db.commit()
    db.refresh(m)
    return m


def delete_material(db: Session, material_id: int) -> bool:
    m = get_material(db, material_id)
    if not m:
        return False
    db.delete(m)
    db.commit()
    return True
