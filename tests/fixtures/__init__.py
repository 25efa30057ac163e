from .closet_fixtures import (
    USER,
    FakeCompletions,
    FakeOpenAI,
    add_item,
    block_inserts,
    image_reply,
    status_error,
    unblock_inserts,
)

__all__ = [
    "USER",
    "FakeCompletions",
    "FakeOpenAI",
    "add_item",
    "block_inserts",
    "image_reply",
    "status_error",
    "unblock_inserts",
]
