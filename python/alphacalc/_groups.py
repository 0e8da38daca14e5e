"""Group aggregator: derives one group value from a named set of member cells."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from alphacalc._errors import Diagnostic, DiagnosticKind
from alphacalc._events import EventChannel, EventKind, Subscription
from alphacalc._numeric import parse_numeric
from alphacalc._store import VALUE_TOLERANCE, CellKind, ValueStore

logger = logging.getLogger(__name__)


class GroupMode(Enum):
    EXCLUSIVE = "exclusive"  # one active member contributes
    ADDITIVE = "additive"    # sum of contributing members


@dataclass
class Group:
    name: str
    members: tuple[str, ...]
    mode: GroupMode
    value: float = 0.0
    _subscriptions: list[Subscription] = field(default_factory=list, repr=False)

    @property
    def is_exclusive(self) -> bool:
        return self.mode is GroupMode.EXCLUSIVE


class GroupAggregator:
    """Keeps every registered group's value in step with its members.

    Each member change recomputes the member's group synchronously and
    publishes the aggregate under the group name, so formulas can read a group
    like any other cell.
    """

    def __init__(self, store: ValueStore, channel: EventChannel) -> None:
        self._store = store
        self._channel = channel
        self._groups: dict[str, Group] = {}
        # member id -> names of the groups it belongs to
        self._membership: dict[str, list[str]] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._groups

    @property
    def names(self) -> list[str]:
        return list(self._groups)

    def get(self, name: str) -> Group | None:
        return self._groups.get(name)

    def register(
        self,
        name: str,
        members: Iterable[str],
        mode: GroupMode | str = GroupMode.ADDITIVE,
    ) -> Group | None:
        """Create a group and publish its initial value.

        Returns None, with a diagnostic, when *name* collides with an existing
        cell or group id.  Unknown member ids are skipped and an unknown mode
        aggregates as additive.
        """
        if name in self._groups or name in self._store:
            self._report(DiagnosticKind.DUPLICATE_IDENTIFIER,
                         f"Group name {name!r} is already in use", name)
            return None
        mode = self._resolve_mode(name, mode)

        valid: list[str] = []
        for member_id in members:
            if not member_id or member_id not in self._store:
                self._report(DiagnosticKind.MISSING_IDENTIFIER,
                             f"Group {name!r} member {member_id!r} is not a registered cell",
                             name)
                continue
            if member_id not in valid:
                valid.append(member_id)

        if mode is GroupMode.EXCLUSIVE and not all(self._is_toggle(m) for m in valid):
            logger.warning(
                "Group %r has non-toggle members; aggregating it as additive", name
            )
            mode = GroupMode.ADDITIVE

        group = Group(name, tuple(valid), mode)
        self._groups[name] = group
        self._store.register(name, CellKind.GROUP)
        for member_id in valid:
            self._membership.setdefault(member_id, []).append(name)
            group._subscriptions.append(self._channel.subscribe(
                EventKind.VALUE_CHANGED,
                lambda _event, group_name=name: self.update_group_value(group_name),
                key=member_id,
            ))

        self.update_group_value(name)
        logger.debug("Group %r initialized with %d members", name, len(valid))
        return group

    def unregister(self, name: str) -> None:
        group = self._groups.pop(name, None)
        if group is None:
            return
        for sub in group._subscriptions:
            sub.cancel()
        for member_id in group.members:
            names = self._membership.get(member_id, [])
            if name in names:
                names.remove(name)
        self._store.unregister(name)

    def clear(self) -> None:
        for name in list(self._groups):
            self.unregister(name)

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def update_group_value(self, name: str) -> float:
        """Recompute and publish the aggregate for *name*."""
        group = self._groups.get(name)
        if group is None:
            self._unknown(name)
            return 0.0

        if group.is_exclusive:
            value = 0.0
            for member_id in group.members:
                if self._is_active(member_id):
                    value = self._store.get(member_id)
                    break
        else:
            # inactive toggles already read as 0
            value = sum(self._store.get(member_id) for member_id in group.members)

        group.value = self._store.publish_group(name, value)
        logger.debug("Group %r updated with value %s", name, group.value)
        return group.value

    def group_value(self, name: str) -> float:
        group = self._groups.get(name)
        if group is None:
            self._unknown(name)
            return 0.0
        return group.value

    def members(self, name: str) -> list[str]:
        group = self._groups.get(name)
        return [] if group is None else list(group.members)

    def active_members(self, name: str) -> list[str]:
        """Members that currently contribute: active toggles and every plain member."""
        group = self._groups.get(name)
        if group is None:
            return []
        return [m for m in group.members if self._is_active(m)]

    def is_exclusive(self, name: str) -> bool:
        group = self._groups.get(name)
        return group is not None and group.is_exclusive

    def groups_of(self, member_id: str) -> list[str]:
        return list(self._membership.get(member_id, []))

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def activate(self, member_id: str, active: bool = True) -> bool:
        """Switch a toggle member, deselecting its exclusive-group siblings.

        Siblings are switched off silently before the member is switched on,
        so the group never publishes a state with two selections; their
        change notifications follow afterwards.
        """
        if not self._is_toggle(member_id):
            logger.debug("Cannot activate %r: not a toggle cell", member_id)
            return False

        deselected: list[str] = []
        if active:
            for name in self.groups_of(member_id):
                group = self._groups[name]
                if not group.is_exclusive:
                    continue
                for sibling in group.members:
                    cell = self._store.cell(sibling)
                    if sibling != member_id and cell is not None and cell.active:
                        self._store.set_active(sibling, False, notify=False)
                        deselected.append(sibling)

        self._store.set_active(member_id, active)
        for sibling in deselected:
            self._store.notify(sibling)
        return True

    def select_value(self, name: str, value: object) -> bool:
        """Activate the exclusive member whose value matches *value*."""
        group = self._groups.get(name)
        if group is None:
            self._unknown(name)
            return False
        if not group.is_exclusive:
            logger.debug("Setting values for additive group %r is not supported", name)
            return False

        target = parse_numeric(value)
        for member_id in group.members:
            cell = self._store.cell(member_id)
            if cell is not None and abs(cell.value - target) < VALUE_TOLERANCE:
                return self.activate(member_id)

        logger.debug("No member with value %s found in group %r", value, name)
        return False

    # ------------------------------------------------------------------

    def _resolve_mode(self, name: str, mode: GroupMode | str) -> GroupMode:
        if isinstance(mode, GroupMode):
            return mode
        try:
            return GroupMode(str(mode).strip().lower())
        except ValueError:
            self._report(DiagnosticKind.INVALID_ARGUMENT,
                         f"Group {name!r} has unknown mode {mode!r}; aggregating it as additive",
                         name)
            return GroupMode.ADDITIVE

    def _is_toggle(self, member_id: str) -> bool:
        cell = self._store.cell(member_id)
        return cell is not None and cell.toggle

    def _is_active(self, member_id: str) -> bool:
        cell = self._store.cell(member_id)
        if cell is None:
            return False
        return cell.active if cell.toggle else True

    def _unknown(self, name: str) -> None:
        logger.debug("Group %r not found", name)
        self._report(DiagnosticKind.UNKNOWN_GROUP_REFERENCE, f"Group {name!r} not found", name)

    def _report(self, kind: DiagnosticKind, message: str, cell_id: str | None) -> None:
        if kind is not DiagnosticKind.UNKNOWN_GROUP_REFERENCE:
            logger.warning(message)
        self._channel.report(Diagnostic(kind, message, cell_id))
