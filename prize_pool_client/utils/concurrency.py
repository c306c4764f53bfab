"""
并发工具
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Generic, Hashable, List, Mapping, Optional, Tuple, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Settled(Generic[T]):
    """单个任务的结果：成功时 value 有值，失败时 error 有值"""
    key: Hashable
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def gather_settled(tasks: Mapping[Hashable, Awaitable[T]]) -> List[Settled[T]]:
    """
    并发执行所有任务，等待全部结束（不会因为某个任务失败而提前返回）

    Args:
        tasks: {key: awaitable}

    Returns:
        与 tasks 顺序一致的 Settled 列表
    """
    keys = list(tasks.keys())
    results: List[Any] = await asyncio.gather(*tasks.values(), return_exceptions=True)

    settled: List[Settled[T]] = []
    for key, result in zip(keys, results):
        if isinstance(result, BaseException):
            settled.append(Settled(key=key, error=result))
        else:
            settled.append(Settled(key=key, value=result))
    return settled


def partition_settled(results: List[Settled[T]]) -> Tuple[List[Settled[T]], List[Settled[T]]]:
    """拆分为 (成功, 失败) 两组"""
    fulfilled = [r for r in results if r.ok]
    rejected = [r for r in results if not r.ok]
    return fulfilled, rejected
