"""Session-scoped ability holder with a loading/ready lifecycle."""

from __future__ import annotations

from enum import Enum
from typing import Any

import structlog

from shipnorth.domain.models.permission import Ability, Action, Subject
from shipnorth.domain.models.user import User
from shipnorth.domain.ports.services import PermissionSource, PermissionSourceError
from shipnorth.domain.services.ability_factory import build_ability


logger = structlog.get_logger(__name__)


class AbilityState(str, Enum):
    """Whether the session's rules have been resolved."""

    LOADING = "loading"
    READY = "ready"


class AbilitySession:
    """Holds the current user's ability and rebuilds it on session changes.

    While ``loading`` every check answers ``False``. Upstream lookup
    failures fall back to the user's locally known roles instead of
    surfacing an error, so a flaky session service does not lock users out.
    Overlapping refreshes resolve last-write-wins.
    """

    def __init__(self, permission_source: PermissionSource | None = None) -> None:
        self._permission_source = permission_source
        self._ability = Ability.empty()
        self._state = AbilityState.LOADING
        self._user: User | None = None
        self._generation = 0

    @property
    def state(self) -> AbilityState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state is AbilityState.LOADING

    @property
    def ability(self) -> Ability:
        return self._ability

    @property
    def user(self) -> User | None:
        return self._user

    async def refresh(self, user: User | None, token: str | None = None) -> Ability:
        """Rebuild the ability for a new session state."""
        self._generation += 1
        generation = self._generation

        if user is None or not token:
            self._apply(generation, None, Ability.empty())
            return self._ability

        self._state = AbilityState.LOADING
        ability = await self._resolve(user, token)
        if generation != self._generation:
            logger.debug("ability_refresh_superseded", user_id=user.id, generation=generation)
            return self._ability

        self._apply(generation, user, ability)
        return ability

    def logout(self) -> None:
        """Drop all rules immediately."""
        self._generation += 1
        self._user = None
        self._ability = Ability.empty()
        self._state = AbilityState.LOADING
        logger.info("ability_cleared")

    def can(self, action: Action | str, subject: Subject | str, instance: Any = None) -> bool:
        if self.is_loading:
            return False
        return self._ability.can(action, subject, instance)

    def cannot(self, action: Action | str, subject: Subject | str, instance: Any = None) -> bool:
        if self.is_loading:
            return False
        return self._ability.cannot(action, subject, instance)

    async def _resolve(self, user: User, token: str) -> Ability:
        if self._permission_source is None:
            return build_ability(user)
        try:
            rules = await self._permission_source.fetch_rules(token)
        except PermissionSourceError as e:
            logger.warning(
                "permission_lookup_failed_using_local_roles",
                user_id=user.id,
                roles=sorted(r.value for r in user.roles),
                error=str(e),
            )
            return build_ability(user)
        if not rules:
            return build_ability(user)
        return Ability.from_rules(rules)

    def _apply(self, generation: int, user: User | None, ability: Ability) -> None:
        self._user = user
        self._ability = ability
        self._state = AbilityState.READY
        logger.info(
            "ability_ready",
            user_id=user.id if user else None,
            rule_count=len(ability.rules),
            generation=generation,
        )
