from typing import Optional
from bson import ObjectId
from bson.errors import InvalidId


def to_object_id(value) -> Optional[ObjectId]:
    """Parse an id received from a client. Returns None for anything malformed."""
    if isinstance(value, ObjectId):
        return value
    if not value:
        return None
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None
