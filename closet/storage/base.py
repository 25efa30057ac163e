from typing import List, Protocol, Sequence


class ObjectStore(Protocol):
    async def upload(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        ...

    def public_url(self, bucket: str, key: str) -> str:
        ...

    async def list(self, bucket: str, prefix: str) -> List[str]:
        ...

    async def remove(self, bucket: str, keys: Sequence[str]) -> None:
        ...
