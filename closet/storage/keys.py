CUTOUT_NAME = "cutout.png"


def user_prefix(user_id: str) -> str:
    return f"{user_id}/"


def item_prefix(user_id: str, item_id: str) -> str:
    return f"{user_id}/{item_id}/"


def original_key(user_id: str, item_id: str, ext: str = "jpg") -> str:
    return f"{item_prefix(user_id, item_id)}original.{ext}"


def cutout_key(user_id: str, item_id: str) -> str:
    return f"{item_prefix(user_id, item_id)}{CUTOUT_NAME}"
