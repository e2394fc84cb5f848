from typing import Any, Iterable


class BaseDatabase:
    async def connect(self) -> None:
        raise NotImplementedError

    async def fetch(self, query: str, *params: Any) -> Iterable[dict]:
        raise NotImplementedError

    async def execute(self, query: str, *params: Any) -> int:
        raise NotImplementedError

    async def health_check(self) -> bool:
        raise NotImplementedError

    async def close(self) -> None:
        """Close any underlying connection pools."""
        raise NotImplementedError
