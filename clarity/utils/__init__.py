from .map_to_dict import map_message_to_public, map_message_to_public_dict, serialize_for_json
from .ids import to_object_id
