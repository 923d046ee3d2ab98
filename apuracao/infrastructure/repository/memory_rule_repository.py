"""
Rule Repository — in-memory, per company.

Handles:
  - Rule admission (manual or extracted) under a per-company writer lock
  - Deactivation on replacement and on validity expiry (never deletes)
  - Immutable, priority-ordered snapshots for apuração runs
"""

import logging
import threading
from dataclasses import replace
from datetime import date, datetime

from apuracao.core.entities.rule import Rule, RuleProvenance
from apuracao.core.errors import ValidationRejection
from apuracao.core.interfaces.rule_repository import IRuleRepository
from apuracao.core.rules.validator import RuleValidator

logger = logging.getLogger(__name__)


def priority_order(rules) -> tuple[Rule, ...]:
    """Descending priority; ties broken by id so evaluation order is stable."""
    return tuple(sorted(rules, key=lambda r: (-r.priority, r.id)))


class InMemoryRuleRepository(IRuleRepository):
    """Repository for rules, kept in process memory."""

    def __init__(self, validator: RuleValidator | None = None, confidence_threshold: float = 70.0):
        self._validator = validator
        self._confidence_threshold = confidence_threshold
        self._rules: dict[str, dict[str, Rule]] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def writer_lock(self, company_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(company_id)
            if lock is None:
                lock = self._locks[company_id] = threading.RLock()
            return lock

    def admit(self, company_id: str, rule: Rule) -> Rule:
        if self._validator is not None:
            self._validator.check_rule(rule)

        with self.writer_lock(company_id):
            rules = self._rules.setdefault(company_id, {})
            if rule.id in rules:
                raise ValidationRejection(rule.name, f"rule id {rule.id} already admitted")

            for existing in list(rules.values()):
                if existing.active and self._is_replaced_by(existing, rule):
                    rules[existing.id] = self._deactivated(existing)
                    logger.info(f"Rule {existing.id} replaced by {rule.id} [{company_id}]")

            stored = replace(rule, company_id=company_id)
            rules[stored.id] = stored
            logger.info(f"Admitted rule {stored.id} '{stored.name}' ({stored.provenance.value}) [{company_id}]")
            return stored

    def snapshot(self, company_id: str, on_date: date | None = None) -> tuple[Rule, ...]:
        day = on_date or date.today()
        with self.writer_lock(company_id):
            rules = list(self._rules.get(company_id, {}).values())
        eligible = [r for r in rules if r.is_eligible(day, self._confidence_threshold)]
        return priority_order(eligible)

    def list_rules(self, company_id: str, include_inactive: bool = False) -> list[Rule]:
        with self.writer_lock(company_id):
            rules = list(self._rules.get(company_id, {}).values())
        if not include_inactive:
            rules = [r for r in rules if r.active]
        return list(priority_order(rules))

    def get(self, company_id: str, rule_id: str) -> Rule | None:
        return self._rules.get(company_id, {}).get(rule_id)

    def deactivate(self, company_id: str, rule_id: str) -> bool:
        with self.writer_lock(company_id):
            rules = self._rules.get(company_id, {})
            rule = rules.get(rule_id)
            if rule is None or not rule.active:
                return False
            rules[rule_id] = self._deactivated(rule)
            logger.info(f"Deactivated rule {rule_id} [{company_id}]")
            return True

    def deactivate_expired(self, company_id: str, today: date) -> int:
        count = 0
        with self.writer_lock(company_id):
            rules = self._rules.get(company_id, {})
            for rule in list(rules.values()):
                if rule.active and rule.valid_until is not None and rule.valid_until < today:
                    rules[rule.id] = self._deactivated(rule)
                    count += 1
        if count:
            logger.info(f"Deactivated {count} expired rules [{company_id}]")
        return count

    @staticmethod
    def _is_replaced_by(existing: Rule, incoming: Rule) -> bool:
        if incoming.replaces == existing.id:
            return True
        return (
            incoming.provenance == RuleProvenance.AUTOMATIC_EXTRACTION
            and existing.provenance == RuleProvenance.AUTOMATIC_EXTRACTION
            and existing.name == incoming.name
            and existing.kind == incoming.kind
        )

    @staticmethod
    def _deactivated(rule: Rule) -> Rule:
        return replace(rule, active=False, updated_at=datetime.utcnow())
