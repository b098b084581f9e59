"""Live goal selector: the user's active goals and the current selection."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from pomogoal.focus.models import GoalOption, coerce_goal_id

logger = logging.getLogger(__name__)


class GoalSelector:
    """Active goals offered to the timer, in display order.

    Completed or deleted goals are removed from the selector; a session that
    referenced them keeps the label it captured.
    """

    def __init__(self, options: Iterable[GoalOption] = ()):
        self._options: dict[int, GoalOption] = {}
        for option in options:
            self._options[option.id] = option
        self._selected_id: int | None = None

    @classmethod
    def from_goals(cls, goals: Iterable[Mapping[str, Any]]) -> GoalSelector:
        """Build from goal dicts as returned by the goal store."""
        options = []
        for goal in goals:
            try:
                options.append(GoalOption.from_dict(goal))
            except ValueError as e:
                logger.warning(f"Skipping goal: {e}")
        return cls(options)

    @property
    def options(self) -> list[GoalOption]:
        return list(self._options.values())

    @property
    def selected_id(self) -> int | None:
        return self._selected_id

    @property
    def selected(self) -> GoalOption | None:
        if self._selected_id is None:
            return None
        return self._options.get(self._selected_id)

    def labels(self) -> dict[int, str]:
        """Map of goal id to its current label."""
        return {option.id: option.label for option in self._options.values()}

    def get(self, goal_id: Any) -> GoalOption | None:
        goal_id = coerce_goal_id(goal_id)
        if goal_id is None:
            return None
        return self._options.get(goal_id)

    def label_for(self, goal_id: Any) -> str | None:
        """Label of a goal if it is still offered, otherwise None."""
        option = self.get(goal_id)
        return option.label if option else None

    def select(self, goal_id: Any) -> GoalOption | None:
        """Select a goal by id; unknown ids clear the selection."""
        option = self.get(goal_id)
        self._selected_id = option.id if option else None
        return option

    def remove(self, goal_id: Any) -> bool:
        """Drop a goal from the selector, clearing the selection if it pointed there."""
        goal_id = coerce_goal_id(goal_id)
        if goal_id is None or goal_id not in self._options:
            return False
        del self._options[goal_id]
        if self._selected_id == goal_id:
            self._selected_id = None
        logger.debug(f"Goal {goal_id} removed from selector")
        return True

    def __contains__(self, goal_id: object) -> bool:
        return coerce_goal_id(goal_id) in self._options

    def __len__(self) -> int:
        return len(self._options)
