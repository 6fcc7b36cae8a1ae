"""
顺序降级与退避重试

first_success 同时用于"模型名降级"（Gemini）和"提供方降级"（分析/摘要编排）
"""
import asyncio
import random
from typing import Any, Awaitable, Callable, Iterable, List, Tuple, TypeVar

from loguru import logger

C = TypeVar("C")
R = TypeVar("R")


class AllCandidatesFailed(Exception):
    """所有候选都失败了，errors 按尝试顺序保存 (候选, 异常)"""

    def __init__(self, errors: List[Tuple[Any, BaseException]]):
        self.errors = errors
        super().__init__(f"all {len(errors)} candidates failed")

    @property
    def last_error(self) -> BaseException | None:
        return self.errors[-1][1] if self.errors else None


async def first_success(
    candidates: Iterable[C],
    call: Callable[[C], Awaitable[R]],
    should_continue: Callable[[BaseException], bool],
) -> Tuple[C, R]:
    """
    按顺序尝试候选，返回第一个成功的 (候选, 结果)

    Args:
        candidates: 有序候选列表
        call: 对单个候选发起调用
        should_continue: 某个候选失败后是否继续尝试下一个；返回 False 时立即抛出

    Raises:
        AllCandidatesFailed: 候选全部失败（或列表为空）
    """
    errors: List[Tuple[Any, BaseException]] = []
    for candidate in candidates:
        try:
            return candidate, await call(candidate)
        except Exception as e:
            if not should_continue(e):
                raise
            errors.append((candidate, e))
    raise AllCandidatesFailed(errors)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[R]],
    should_retry: Callable[[BaseException], bool],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_jitter: float = 1.0,
) -> R:
    """
    指数退避重试

    只有 should_retry 为 True 的异常才会重试，第 n 次失败后等待
    base_delay * 2^n + [0, max_jitter) 秒；次数用完后抛出最后一次的异常
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            attempt += 1
            if not should_retry(e) or attempt >= max_attempts:
                raise
            delay = base_delay * (2 ** (attempt - 1)) + random.random() * max_jitter
            logger.warning(f"⚠️ 触发限流，{delay:.1f}s 后重试（{attempt}/{max_attempts}）")
            await asyncio.sleep(delay)
