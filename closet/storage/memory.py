from typing import Dict, List, Sequence, Tuple


class InMemoryObjectStore:
    """Process-local object store for development and tests."""

    def __init__(self, base_url: str = "memory://") -> None:
        self.base_url = base_url.rstrip("/")
        self.objects: Dict[Tuple[str, str], Tuple[bytes, str]] = {}

    async def upload(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        self.objects[(bucket, key)] = (data, content_type)

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self.base_url}/{bucket}/{key}"

    async def list(self, bucket: str, prefix: str) -> List[str]:
        return sorted(k for (b, k) in self.objects if b == bucket and k.startswith(prefix))

    async def remove(self, bucket: str, keys: Sequence[str]) -> None:
        for key in keys:
            self.objects.pop((bucket, key), None)

    def keys(self, bucket: str) -> List[str]:
        return sorted(k for (b, k) in self.objects if b == bucket)
