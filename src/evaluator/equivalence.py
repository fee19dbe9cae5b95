"""
Side-by-side evaluation of a program and its rewritten form.

Each program runs in a fresh interpreter with a fresh host (built by
`host_factory`), so instrumented host functions such as call counters start
from zero for both runs. Two runs agree when they print the same console
output, finish with the same completion value and fail (if at all) with the
same kind of error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .interpreter import EvaluationError, evaluate, to_string

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    output: List[str]
    completion: Optional[str]
    error: Optional[str]

    def describe(self) -> str:
        if self.error is not None:
            return f"error {self.error}"
        return f"completion {self.completion}"


@dataclass(frozen=True)
class Comparison:
    original: Outcome
    rewritten: Outcome

    @property
    def equivalent(self) -> bool:
        return self.original == self.rewritten

    @property
    def differences(self) -> List[str]:
        found: List[str] = []
        if self.original.output != self.rewritten.output:
            found.append(
                f"console output differs: {self.original.output!r} != {self.rewritten.output!r}"
            )
        if (self.original.completion, self.original.error) != (
            self.rewritten.completion,
            self.rewritten.error,
        ):
            found.append(f"{self.original.describe()} != {self.rewritten.describe()}")
        return found


def _run(program: Dict[str, Any], host: Optional[Dict[str, Any]]) -> Outcome:
    try:
        result = evaluate(program, host=host)
    except EvaluationError as exc:
        return Outcome(output=[], completion=None, error=f"{type(exc).__name__}: {exc.message}")
    return Outcome(output=result.output, completion=to_string(result.completion), error=None)


def compare_programs(
    original: Dict[str, Any],
    rewritten: Dict[str, Any],
    *,
    host_factory: Optional[Callable[[], Dict[str, Any]]] = None,
) -> Comparison:
    """Evaluate both programs and report whether they behave the same."""
    factory = host_factory or dict
    comparison = Comparison(
        original=_run(original, factory()),
        rewritten=_run(rewritten, factory()),
    )
    if not comparison.equivalent:
        logger.debug("programs diverge: %s", "; ".join(comparison.differences))
    return comparison


__all__ = ["Comparison", "Outcome", "compare_programs"]
