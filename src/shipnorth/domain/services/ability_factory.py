"""Derives a user's ability from their roles."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from shipnorth.domain.models.permission import (
    Ability,
    Action,
    conditions_from_mapping,
    PermissionRule,
    Subject,
)
from shipnorth.domain.models.user import Role, User


# Placeholder replaced by the user's id when a template is instantiated.
SELF = "$self"


class RuleTemplate:
    """A role rule whose conditions may reference the user via ``SELF``."""

    __slots__ = ("action", "subject", "conditions")

    def __init__(
        self,
        action: Action,
        subject: Subject,
        conditions: Mapping[str, str] | None = None,
    ) -> None:
        self.action = action
        self.subject = subject
        self.conditions = dict(conditions or {})

    def instantiate(self, user_id: str) -> PermissionRule:
        bound = {
            field: user_id if value == SELF else value
            for field, value in self.conditions.items()
        }
        return PermissionRule(
            action=self.action,
            subject=self.subject,
            conditions=conditions_from_mapping(bound),
        )

    def __repr__(self) -> str:
        return f"RuleTemplate({self.action.value!r}, {self.subject.value!r}, {self.conditions!r})"


ROLE_RULE_TEMPLATES: dict[Role, tuple[RuleTemplate, ...]] = {
    Role.CUSTOMER: (
        RuleTemplate(Action.READ, Subject.PACKAGE, {"customer_id": SELF}),
        RuleTemplate(Action.READ, Subject.INVOICE, {"customer_id": SELF}),
    ),
    Role.STAFF: (
        RuleTemplate(Action.MANAGE, Subject.PACKAGE),
        RuleTemplate(Action.MANAGE, Subject.CUSTOMER),
        RuleTemplate(Action.MANAGE, Subject.LOAD),
        RuleTemplate(Action.READ, Subject.REPORT),
    ),
    Role.ADMIN: (
        RuleTemplate(Action.MANAGE, Subject.ALL),
    ),
    Role.DRIVER: (
        RuleTemplate(Action.READ, Subject.LOAD, {"driver_id": SELF}),
        RuleTemplate(Action.UPDATE, Subject.LOAD, {"driver_id": SELF}),
    ),
}


def build_ability_for_roles(roles: Iterable[Role | str], user_id: str) -> Ability:
    """Union the rule templates of ``roles`` for ``user_id``.

    Roles are visited in ``Role`` declaration order, so any permutation of
    the same role set yields an identical ability.
    """
    held = {Role(r) for r in roles}
    rules: list[PermissionRule] = []
    for role in Role:
        if role not in held:
            continue
        rules.extend(t.instantiate(user_id) for t in ROLE_RULE_TEMPLATES[role])
    return Ability.from_rules(rules)


def build_ability(user: User | None) -> Ability:
    """Build the ability of ``user``; anonymous and inactive users get none."""
    if user is None or not user.is_active:
        return Ability.empty()
    return build_ability_for_roles(user.roles, user.id)
