from __future__ import annotations
"""Simple finite state machine utility for enforcing allowed status transitions.

Used by the purchase and folder engines:
    from reimburse.utils.fsm import TransitionValidator
    PURCHASE_FSM = TransitionValidator({
        'DRAFT': {'UNDER_REVIEW'},
        'UNDER_REVIEW': {'VALIDATED', 'REJECTED'},
        'VALIDATED': set(),
        'REJECTED': set(),
    }, entity='purchase')
    PURCHASE_FSM.assert_can_transition(current_status, target_status)

Raises StateError if invalid.
"""
from typing import Dict, Set, Type
from reimburse.errors import StateError


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], entity: str = 'record', field_name: str = 'validationStatus'):
        self.graph = graph
        self.entity = entity
        self.field_name = field_name

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str, error: Type[StateError] = StateError):
        if not self.can_transition(current, target):
            raise error(f"Invalid {self.entity} {self.field_name} transition {current} -> {target}")
        return True

    def sources_of(self, target: str) -> Set[str]:
        return {src for src, targets in self.graph.items() if target in targets}

__all__ = ['TransitionValidator']
