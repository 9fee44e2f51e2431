"""ObjectId parsing shared by services. Malformed ids are treated as missing entities."""

from bson import ObjectId
from bson.errors import InvalidId

from blog_platform.errors import NotFoundError


def parse_object_id(value: str, entity: str = "Resource") -> ObjectId:
    """
    Parse a path identifier into an `ObjectId`.

    Raises:
        NotFoundError: If `value` is not a valid ObjectId, since no such entity can exist.
    """
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise NotFoundError(f"{entity} not found")
