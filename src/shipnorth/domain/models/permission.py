"""Permission rules, conditions and the ability set.

A rule grants ``action`` on ``subject``, optionally restricted to resource
instances whose fields equal fixed values. Rules are purely additive: an
ability allows a check as soon as any one of its rules matches.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import Field

from shipnorth.domain.models.base import ValueObject
from shipnorth.domain.models.user import Portal


class Action(str, Enum):
    """Permission actions. ``manage`` implies every other action."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"


class Subject(str, Enum):
    """Resource types. ``all`` is the wildcard subject."""

    PACKAGE = "Package"
    CUSTOMER = "Customer"
    LOAD = "Load"
    INVOICE = "Invoice"
    USER = "User"
    SETTINGS = "Settings"
    REPORT = "Report"
    ROUTE = "Route"
    DELIVERY = "Delivery"
    AUDIT_LOG = "AuditLog"
    ALL = "all"


ConditionValue = Union[str, int, bool, None]

_MISSING = object()


class FieldEquals(ValueObject):
    """Predicate: the instance field at ``field`` equals ``value``."""

    kind: Literal["eq"] = "eq"
    field: str
    value: ConditionValue


class AllOf(ValueObject):
    """Conjunction of field-equality predicates."""

    kind: Literal["all"] = "all"
    conditions: tuple[FieldEquals, ...]


Condition = Annotated[Union[FieldEquals, AllOf], Field(discriminator="kind")]


def _resolve_field(instance: Any, path: str) -> Any:
    current = instance
    for part in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(part, _MISSING)
        else:
            current = getattr(current, part, _MISSING)
        if current is _MISSING:
            return _MISSING
    return current


def condition_matches(condition: FieldEquals | AllOf, instance: Any) -> bool:
    """Evaluate a condition against a resource instance (mapping or object)."""
    if isinstance(condition, AllOf):
        return all(condition_matches(c, instance) for c in condition.conditions)
    actual = _resolve_field(instance, condition.field)
    if actual is _MISSING:
        return False
    if isinstance(actual, Enum):
        actual = actual.value
    return bool(actual == condition.value)


def conditions_from_mapping(mapping: Mapping[str, ConditionValue]) -> FieldEquals | AllOf | None:
    """Build a condition from a ``{field: value}`` mapping."""
    predicates = tuple(FieldEquals(field=k, value=v) for k, v in mapping.items())
    if not predicates:
        return None
    if len(predicates) == 1:
        return predicates[0]
    return AllOf(conditions=predicates)


def conditions_to_mapping(condition: FieldEquals | AllOf) -> dict[str, ConditionValue]:
    if isinstance(condition, AllOf):
        return {c.field: c.value for c in condition.conditions}
    return {condition.field: condition.value}


def _value_of(value: Enum | str) -> str:
    return value.value if isinstance(value, Enum) else str(value)


class PermissionRule(ValueObject):
    """Grants ``action`` on ``subject``, optionally under ``conditions``."""

    action: Action
    subject: Subject
    conditions: Condition | None = None

    def matches(
        self, action: Action | str, subject: Subject | str, instance: Any = None,
    ) -> bool:
        if self.action is not Action.MANAGE and self.action.value != _value_of(action):
            return False
        if self.subject is not Subject.ALL and self.subject.value != _value_of(subject):
            return False
        if self.conditions is None:
            return True
        # Conditional rules never satisfy type-level checks.
        if instance is None:
            return False
        return condition_matches(self.conditions, instance)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"action": self.action.value, "subject": self.subject.value}
        if self.conditions is not None:
            data["conditions"] = conditions_to_mapping(self.conditions)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PermissionRule:
        """Parse a wire rule, raising ``ValueError`` on any shape mismatch."""
        if not isinstance(data, Mapping):
            raise ValueError(f"Rule must be an object, got {type(data).__name__}")
        raw_conditions = data.get("conditions") or {}
        if not isinstance(raw_conditions, Mapping):
            raise ValueError(
                f"Rule conditions must be an object, got {type(raw_conditions).__name__}"
            )
        return cls(
            action=Action(data["action"]),
            subject=Subject(data["subject"]),
            conditions=conditions_from_mapping(raw_conditions),
        )


class Ability(ValueObject):
    """The resolved, deduplicated rule set of one user."""

    rules: tuple[PermissionRule, ...] = ()

    @classmethod
    def empty(cls) -> Ability:
        return cls()

    @classmethod
    def from_rules(cls, rules: Iterable[PermissionRule]) -> Ability:
        return cls(rules=tuple(dict.fromkeys(rules)))

    @classmethod
    def from_wire(cls, data: Iterable[Mapping[str, Any]]) -> Ability:
        return cls.from_rules(PermissionRule.from_dict(item) for item in data)

    def can(self, action: Action | str, subject: Subject | str, instance: Any = None) -> bool:
        return any(rule.matches(action, subject, instance) for rule in self.rules)

    def cannot(self, action: Action | str, subject: Subject | str, instance: Any = None) -> bool:
        return not self.can(action, subject, instance)

    @property
    def is_empty(self) -> bool:
        return not self.rules

    @property
    def rule_set(self) -> frozenset[PermissionRule]:
        return frozenset(self.rules)

    def to_wire(self) -> list[dict[str, Any]]:
        return [rule.to_dict() for rule in self.rules]


class PermissionSnapshot(ValueObject):
    """Everything a client needs to gate its UI for one user."""

    user_id: str
    rules: list[dict[str, Any]] = Field(default_factory=list)
    available_portals: list[Portal] = Field(default_factory=list)
    current_portal: Portal = Portal.CUSTOMER
    has_admin_access: bool = False
