"""Admin management of weekly availability rules."""

import logging
from typing import Optional, Protocol

from realty_booking.auth.capabilities import require_admin
from realty_booking.config import settings
from realty_booking.errors import InvalidRuleError, RuleNotFoundError
from realty_booking.schemas.availability_schema import AvailabilityRule, RuleDraft
from realty_booking.schemas.profile_schema import Profile

logger = logging.getLogger(__name__)


class RuleRepository(Protocol):
    def list_rules(
        self, owner_id: Optional[str] = None, active_only: bool = True
    ) -> list[AvailabilityRule]: ...

    def get_rule(self, rule_id: str) -> Optional[AvailabilityRule]: ...

    def insert_rule(self, owner_id: str, draft: RuleDraft) -> AvailabilityRule: ...

    def update_rule(self, rule: AvailabilityRule) -> AvailabilityRule: ...

    def delete_rule(self, rule_id: str) -> bool: ...


class AvailabilityManager:
    """
    Create, list, toggle and delete an admin's own availability rules.

    Every method checks the admin capability itself.
    """

    def __init__(
        self, rule_store: RuleRepository, min_slot_duration_minutes: Optional[int] = None
    ) -> None:
        self.rule_store = rule_store
        self.min_slot_duration_minutes = (
            min_slot_duration_minutes or settings.booking.min_slot_duration_minutes
        )

    def validate_draft(self, draft: RuleDraft) -> RuleDraft:
        """Return a normalized copy of ``draft`` or raise InvalidRuleError."""
        if draft.start_time >= draft.end_time:
            raise InvalidRuleError("End time must be after start time.")
        if draft.slot_duration_minutes < self.min_slot_duration_minutes:
            raise InvalidRuleError(
                f"Duration must be at least {self.min_slot_duration_minutes} minutes."
            )
        if draft.buffer_minutes < 0:
            raise InvalidRuleError("Buffer time cannot be negative.")
        if draft.price < 0:
            raise InvalidRuleError("Price cannot be negative.")
        currency = draft.currency.strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise InvalidRuleError(f"Currency must be a three-letter code, got {draft.currency!r}.")
        return draft.model_copy(update={"currency": currency})

    def list_rules(self, actor: Profile) -> list[AvailabilityRule]:
        """All of the admin's rules, active or not, by weekday then start."""
        admin = require_admin(actor)
        return self.rule_store.list_rules(owner_id=admin.id, active_only=False)

    def add_rule(self, actor: Profile, draft: RuleDraft) -> AvailabilityRule:
        admin = require_admin(actor)
        return self.rule_store.insert_rule(admin.id, self.validate_draft(draft))

    def set_rule_active(self, actor: Profile, rule_id: str, active: bool) -> AvailabilityRule:
        rule = self._owned_rule(require_admin(actor), rule_id)
        updated = self.rule_store.update_rule(rule.model_copy(update={"is_active": active}))
        logger.info("Rule %s set %s", rule_id, "active" if active else "inactive")
        return updated

    def delete_rule(self, actor: Profile, rule_id: str) -> None:
        self._owned_rule(require_admin(actor), rule_id)
        self.rule_store.delete_rule(rule_id)

    def _owned_rule(self, admin: Profile, rule_id: str) -> AvailabilityRule:
        rule = self.rule_store.get_rule(rule_id)
        if rule is None or rule.owner_id != admin.id:
            raise RuleNotFoundError(f"Availability rule {rule_id} not found.")
        return rule
