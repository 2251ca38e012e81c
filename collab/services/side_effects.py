"""
Fire-and-forget side effects with observable outcomes.

A lifecycle transition commits first, then runs its side effects
(notifications, webhooks, balance snapshots) through ``run_side_effect``.
Failures are logged and captured as a ``SideEffectOutcome`` instead of
propagating, so the primary result is reported regardless.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class SideEffectOutcome:
    name: str
    ok: bool
    error: Optional[BaseException] = None

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None


@dataclass
class TransitionResult(Generic[T]):
    primary_result: T
    side_effect_outcomes: List[SideEffectOutcome] = field(default_factory=list)

    @property
    def failed_side_effects(self) -> List[SideEffectOutcome]:
        return [o for o in self.side_effect_outcomes if not o.ok]


def run_side_effect(
    name: str,
    func: Callable[..., Any],
    *args,
    on_error: Optional[Callable[[], None]] = None,
    **kwargs,
) -> SideEffectOutcome:
    try:
        func(*args, **kwargs)
        return SideEffectOutcome(name=name, ok=True)
    except Exception as e:
        # Don't fail the primary operation if a side effect fails
        logger.warning(f"Side effect '{name}' failed: {e}", exc_info=True)
        if on_error is not None:
            try:
                on_error()
            except Exception:
                logger.exception(f"Cleanup after side effect '{name}' failed")
        return SideEffectOutcome(name=name, ok=False, error=e)
