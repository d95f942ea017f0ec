from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from sqlalchemy.orm import Session

from app.models.tables import MessageTemplate
from app.util.ids import new_uuid
from app.util.time import now_utc

BUILTIN_DIR = Path(__file__).resolve().parent / "xml"

SECURITIES_SETTLEMENT = "SWIFT_SECURITIES_SETTLEMENT"
PLEDGE_INSTRUCTION = "SWIFT_PLEDGE_INSTRUCTION"


class TemplateNotFoundError(LookupError):
    pass


@lru_cache(maxsize=32)
def load_builtin(name: str) -> str | None:
    path = BUILTIN_DIR / f"{name}.xml"
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8")


def get_template(db: Session, name: str) -> str:
    """Active DB override first, then the XML shipped with the package."""

    row = db.query(MessageTemplate).filter(MessageTemplate.name == name).one_or_none()
    if row is not None and row.is_active:
        return row.content

    builtin = load_builtin(name)
    if builtin is None:
        if row is not None:
            raise TemplateNotFoundError(f"Template is not active: {name}")
        raise TemplateNotFoundError(f"Template not found: {name}")
    return builtin


def upsert_template(db: Session, *, name: str, content: str, description: str | None = None) -> MessageTemplate:
    now = now_utc()
    row = db.query(MessageTemplate).filter(MessageTemplate.name == name).one_or_none()
    if row is None:
        row = MessageTemplate(
            id=new_uuid(),
            name=name,
            template_type="SWIFT",
            content=content,
            description=description,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        db.add(row)
    else:
        row.content = content
        row.description = description if description is not None else row.description
        row.is_active = True
        row.updated_at = now
    db.commit()
    return row
