"""
In-memory availability rule store.

In production, rules live in the hosted database's ``appointment_slots``
table and are read through its REST client. This store mirrors that
query surface for tests and the console demo.
"""

import logging
import uuid
from typing import Iterable, Optional

from realty_booking.schemas.availability_schema import AvailabilityRule, RuleDraft

logger = logging.getLogger(__name__)


def _display_order(rule: AvailabilityRule) -> tuple[int, object]:
    return (rule.weekday, rule.start_time)


class InMemoryRuleStore:
    """Rule rows keyed by id. Reads return copies so callers get a snapshot."""

    def __init__(self, rules: Optional[Iterable[AvailabilityRule]] = None) -> None:
        self._rules: dict[str, AvailabilityRule] = {}
        for rule in rules or ():
            self._rules[rule.id] = rule

    def list_rules(
        self, owner_id: Optional[str] = None, active_only: bool = True
    ) -> list[AvailabilityRule]:
        """Return rules ordered by weekday, then start time."""
        rows = [
            rule.model_copy()
            for rule in self._rules.values()
            if (owner_id is None or rule.owner_id == owner_id)
            and (rule.is_active or not active_only)
        ]
        return sorted(rows, key=_display_order)

    def get_rule(self, rule_id: str) -> Optional[AvailabilityRule]:
        rule = self._rules.get(rule_id)
        return rule.model_copy() if rule is not None else None

    def insert_rule(self, owner_id: str, draft: RuleDraft) -> AvailabilityRule:
        rule = AvailabilityRule(
            id=f"RULE-{uuid.uuid4().hex[:8].upper()}",
            owner_id=owner_id,
            **draft.model_dump(),
        )
        self._rules[rule.id] = rule
        logger.info(
            "Rule created: %s for %s (weekday %d, %s-%s)",
            rule.id, owner_id, rule.weekday,
            rule.start_time.strftime("%H:%M"), rule.end_time.strftime("%H:%M"),
        )
        return rule.model_copy()

    def update_rule(self, rule: AvailabilityRule) -> AvailabilityRule:
        if rule.id not in self._rules:
            raise KeyError(rule.id)
        self._rules[rule.id] = rule.model_copy()
        return rule

    def delete_rule(self, rule_id: str) -> bool:
        removed = self._rules.pop(rule_id, None)
        if removed is not None:
            logger.info("Rule deleted: %s", rule_id)
        return removed is not None

    def reset(self) -> None:
        """Clear all rules. Used by test fixtures for isolation."""
        self._rules.clear()
