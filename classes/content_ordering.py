"""One position sequence over the chapters and quizzes of a course.

Chapters and quizzes keep their own tables, but their ``position`` columns
form a single sequence 1..N per course. All reads and writes of positions go
through this module, which keys items by ``(type, id)``.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.chapters import Chapter
from models.quizzes import Quiz
from classes.errors import ValidationError, PersistenceFailure
from utils.helpers import parse_int

logger = logging.getLogger(__name__)

CHAPTER = "chapter"
QUIZ = "quiz"

CONTENT_MODELS = {
    CHAPTER: Chapter,
    QUIZ: Quiz,
}


@dataclass(frozen=True)
class ContentItem:
    type: str
    id: int
    position: int

    @property
    def key(self):
        return (self.type, self.id)


def _load(course_id, published_only=False):
    """Return ``{(type, id): model}`` for every item of the course."""
    items = {}
    for content_type, model in CONTENT_MODELS.items():
        query = model.query.filter_by(course_id=course_id)
        if published_only:
            query = query.filter_by(is_published=True)
        for obj in query.all():
            items[(content_type, obj.id)] = obj
    return items


def _sort_key(entry):
    (content_type, item_id), obj = entry
    return (obj.position, content_type, item_id)


def merged_content(course_id, published_only=False):
    """Chapters and quizzes of a course as ``[(type, model)]`` ordered by position."""
    items = sorted(_load(course_id, published_only).items(), key=_sort_key)
    return [(content_type, obj) for (content_type, _), obj in items]


def content_items(course_id, published_only=False):
    return [
        ContentItem(content_type, obj.id, obj.position)
        for content_type, obj in merged_content(course_id, published_only)
    ]


def parse_reorder_list(entries):
    """Turn a raw ``[{"id", "type", "position"}]`` payload into ContentItems."""
    if not isinstance(entries, list) or not entries:
        raise ValidationError("Reorder list must be a non-empty list")

    parsed = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise ValidationError("Each reorder entry must be an object")
        content_type = entry.get("type")
        if content_type not in CONTENT_MODELS:
            raise ValidationError(f"Unknown content type: {content_type!r}")
        parsed.append(ContentItem(
            content_type,
            parse_int(entry.get("id"), "id"),
            parse_int(entry.get("position"), "position"),
        ))
    return parsed


def validate_reorder(current_keys, items):
    """Check that ``items`` re-positions exactly ``current_keys`` as 1..N."""
    keys = [item.key for item in items]
    if len(set(keys)) != len(keys):
        raise ValidationError("Each content item may appear only once")

    unknown = set(keys) - set(current_keys)
    if unknown:
        raise ValidationError("Reorder list contains items outside this course",
                              unknown=[{"type": t, "id": i} for t, i in sorted(unknown)])

    missing = set(current_keys) - set(keys)
    if missing:
        raise ValidationError("Reorder list must include every chapter and quiz of the course",
                              missing=[{"type": t, "id": i} for t, i in sorted(missing)])

    positions = sorted(item.position for item in items)
    if positions != list(range(1, len(items) + 1)):
        raise ValidationError("Positions must be unique and contiguous from 1")


def apply_reorder(course_id, entries):
    """Validate and write a full reorder in one transaction.

    Nothing is written when validation fails.
    """
    items = parse_reorder_list(entries)
    current = _load(course_id)
    validate_reorder(current.keys(), items)

    try:
        for item in items:
            current[item.key].position = item.position
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Reorder of course %s failed", course_id)
        raise PersistenceFailure()

    logger.info("Reordered %s content items in course %s", len(items), course_id)
    return content_items(course_id)


def next_position(course_id):
    positions = [obj.position for obj in _load(course_id).values()]
    return max(positions, default=0) + 1


def make_room(course_id, position=None):
    """Reserve a position for a new item and return it. Does not commit.

    Without ``position`` the item goes to the end. Otherwise items at or after
    ``position`` move down by one.
    """
    last = next_position(course_id)
    if position is None:
        return last

    position = parse_int(position, "position")
    if not 1 <= position <= last:
        raise ValidationError(f"Position must be between 1 and {last}")

    for obj in _load(course_id).values():
        if obj.position >= position:
            obj.position += 1
    return position


def close_gap(course_id, removed_position, exclude=None):
    """Shift items after a removed position up by one. Does not commit."""
    for key, obj in _load(course_id).items():
        if key == exclude:
            continue
        if obj.position > removed_position:
            obj.position -= 1


def navigation(course_id, content_type, item_id, published_only=True):
    """Previous and next content item around ``(content_type, item_id)``."""
    ordered = merged_content(course_id, published_only)
    keys = [(t, obj.id) for t, obj in ordered]

    try:
        index = keys.index((content_type, item_id))
    except ValueError:
        return {
            "previous_content_id": None, "previous_content_type": None,
            "next_content_id": None, "next_content_type": None,
        }

    previous = keys[index - 1] if index > 0 else (None, None)
    following = keys[index + 1] if index + 1 < len(keys) else (None, None)
    return {
        "previous_content_type": previous[0],
        "previous_content_id": previous[1],
        "next_content_type": following[0],
        "next_content_id": following[1],
    }
