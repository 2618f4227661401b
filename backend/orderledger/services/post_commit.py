"""
Post-commit hooks
Project: Order Ledger

Best-effort steps that run after a financial write has been committed
(advance auto-allocation, PDF rendering). Each hook runs independently:
a failure is logged and reported, never re-raised, and never undoes the
committed write.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

HookFn = Callable[[], Awaitable[Any]]


@dataclass
class HookFailure:
    hook: str
    error: str

    def as_dict(self) -> dict[str, str]:
        return {"hook": self.hook, "error": self.error}


@dataclass
class HookReport:
    results: dict[str, Any] = field(default_factory=dict)
    failures: list[HookFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def result(self, name: str, default: Any = None) -> Any:
        return self.results.get(name, default)

    def error_for(self, name: str) -> Optional[str]:
        for failure in self.failures:
            if failure.hook == name:
                return failure.error
        return None

    @property
    def warnings(self) -> list[dict[str, str]]:
        return [f.as_dict() for f in self.failures]


class PostCommitHooks:
    """
    Ordered list of named async callables.

    Usage:
        hooks = PostCommitHooks()
        hooks.add("auto_allocate", lambda: service.auto_allocate_committed(db, order.id))
        ...
        await db.commit()
        report = await hooks.run()
    """

    def __init__(self) -> None:
        self._hooks: list[tuple[str, HookFn]] = []

    def add(self, name: str, fn: HookFn) -> None:
        self._hooks.append((name, fn))

    def __len__(self) -> int:
        return len(self._hooks)

    async def run(self) -> HookReport:
        report = HookReport()
        for name, fn in self._hooks:
            try:
                report.results[name] = await fn()
            except Exception as e:
                logger.warning("Post-commit hook '%s' failed: %s", name, e, exc_info=True)
                report.failures.append(HookFailure(hook=name, error=str(e)))
        self._hooks.clear()
        return report
