"""Tag entity.

Names are stored lower-cased and reserved in ``tag_name``; slugs in
``tag_slug``. ``post_count`` is maintained by atomic deltas as posts add
and drop the tag.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from inkpress.utils.timestamps import from_iso, to_iso, utcnow


DEFAULT_TAG_COLOR = "#3B82F6"
MAX_TAG_NAME_LENGTH = 30


def normalize_tag_name(name: str) -> str:
    return " ".join(name.split()).lower()


@dataclass
class Tag:
    id: str
    name: str
    slug: str
    description: str | None = None
    color: str = DEFAULT_TAG_COLOR
    post_count: int = 0
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(cls, name: str, slug: str, tag_id: str | None = None) -> "Tag":
        return cls(id=tag_id or str(uuid4()), name=name, slug=slug)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Tag":
        return cls(
            id=document["id"],
            name=document["name"],
            slug=document["slug"],
            description=document.get("description"),
            color=document.get("color") or DEFAULT_TAG_COLOR,
            post_count=document.get("post_count", 0),
            created_at=from_iso(document["created_at"]),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "color": self.color,
            "post_count": self.post_count,
            "created_at": to_iso(self.created_at),
        }
