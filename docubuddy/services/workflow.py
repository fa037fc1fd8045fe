"""Admin workflow: pick a team first, then manage it.

The selected team id is the only state that survives a reload. It is stored
under a fixed key of the device's preference store, so two admin accounts
sharing one device profile see each other's selection.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional
from ..config import SELECTION_KEY
from .preferences import PreferenceStore


logger = logging.getLogger(__name__)

SELECT_TEAM = "select_team"
MANAGE_TEAM = "manage_team"


@dataclass(frozen=True)
class WorkflowState:
    step: str
    current_team_id: Optional[str]

    @property
    def upload_enabled(self) -> bool:
        return self.step == MANAGE_TEAM


def _team_ids(teams: Iterable) -> list[str]:
    return [team.id for team in teams]


class WorkflowMachine:
    def __init__(self, store: PreferenceStore):
        self.store = store
        self.step = SELECT_TEAM

    @property
    def current_team_id(self) -> Optional[str]:
        return self.store.get(SELECTION_KEY)

    @property
    def state(self) -> WorkflowState:
        return WorkflowState(step=self.step, current_team_id=self.current_team_id)

    def _persist(self, team_id: Optional[str]) -> None:
        if team_id:
            self.store.set(SELECTION_KEY, team_id)
        else:
            self.store.remove(SELECTION_KEY)

    def load(self, teams: Iterable) -> WorkflowState:
        """Pick the step for a freshly loaded team list."""
        team_ids = _team_ids(teams)
        selected = self.current_team_id

        if not team_ids:
            self._persist(None)
            self.step = SELECT_TEAM
        elif len(team_ids) == 1 and not selected:
            self._persist(team_ids[0])
            self.step = MANAGE_TEAM
        elif selected and selected in team_ids:
            self.step = MANAGE_TEAM
        elif not selected:
            self.step = SELECT_TEAM
        else:
            logger.info(f"Persisted team {selected} is no longer visible, clearing selection")
            self._persist(None)
            self.step = SELECT_TEAM
        return self.state

    def select_team(self, team_id: str, teams: Iterable) -> WorkflowState:
        if team_id not in _team_ids(teams):
            logger.warning(f"Ignoring selection of unknown team {team_id}")
            return self.state
        self._persist(team_id)
        self.step = MANAGE_TEAM
        return self.state

    def change_team(self) -> WorkflowState:
        # The previous selection stays until another team is chosen
        self.step = SELECT_TEAM
        return self.state

    def clear(self) -> WorkflowState:
        self._persist(None)
        self.step = SELECT_TEAM
        return self.state
