"""
Dictionary-based rule registry for the analysis engines.
Rules are registered by ID and can be enabled, disabled or replaced at runtime.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .models import StructuredEstimate

logger = logging.getLogger(__name__)

T = TypeVar("T")

RuleCheck = Callable[[StructuredEstimate, dict[str, Any]], list[T]]


@dataclass
class EstimateRule(Generic[T]):
    """Definition of one independent check over a structured estimate."""

    rule_id: str
    name: str
    description: str
    check: RuleCheck | None = None
    enabled: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)


class RuleEngine(Generic[T]):
    """
    Registry that executes independent rules against one estimate.

    Rules are side-effect free, so execution order only affects the order of
    the returned findings. Exceptions from a rule propagate: a failing rule
    is a defect, not a finding.
    """

    def __init__(self) -> None:
        self._rules: dict[str, EstimateRule[T]] = {}

    def add_rule(self, rule: EstimateRule[T]) -> None:
        """Add or replace a rule."""
        self._rules[rule.rule_id] = rule

    def remove_rule(self, rule_id: str) -> bool:
        """Remove a rule from the engine."""
        return self._rules.pop(rule_id, None) is not None

    def get_rule(self, rule_id: str) -> EstimateRule[T] | None:
        """Get a specific rule by ID."""
        return self._rules.get(rule_id)

    def enable_rule(self, rule_id: str) -> bool:
        """Enable a specific rule."""
        if rule_id in self._rules:
            self._rules[rule_id].enabled = True
            return True
        return False

    def disable_rule(self, rule_id: str) -> bool:
        """Disable a specific rule."""
        if rule_id in self._rules:
            self._rules[rule_id].enabled = False
            return True
        return False

    def execute_rule(
        self, rule: EstimateRule[T], estimate: StructuredEstimate, context: dict[str, Any] | None = None
    ) -> list[T]:
        """Execute a single rule against an estimate."""
        if not rule.enabled or rule.check is None:
            return []
        results = rule.check(estimate, context or {})
        logger.debug("Rule %s produced %d result(s)", rule.rule_id, len(results))
        return results

    def execute_all(
        self, estimate: StructuredEstimate, context: dict[str, Any] | None = None
    ) -> list[T]:
        """Execute all enabled rules in registration order."""
        results: list[T] = []
        ctx = context or {}
        for rule in self._rules.values():
            results.extend(self.execute_rule(rule, estimate, ctx))
        return results

    def list_rules(self) -> list[dict[str, Any]]:
        """List all rules with their status."""
        return [
            {
                "rule_id": rule.rule_id,
                "name": rule.name,
                "enabled": rule.enabled,
                "description": rule.description,
            }
            for rule in self._rules.values()
        ]
