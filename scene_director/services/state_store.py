"""项目状态存储

update_state_and_record 是唯一的修改入口：updater 接收旧状态、返回新状态，
旧状态被记入撤销历史。状态对象本身是不可变的（copy-on-write）。
"""
from __future__ import annotations

import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

from scene_director.exceptions import ProjectNotFoundError
from scene_director.schemas.project import ProjectState

StateUpdater = Callable[[ProjectState], ProjectState]


@dataclass
class _ProjectEntry:
    state: ProjectState
    past: deque[ProjectState]
    future: list[ProjectState] = field(default_factory=list)


class StateStore:
    def __init__(self, history_limit: int = 50) -> None:
        self.history_limit = history_limit
        # project_id -> entry
        self._projects: dict[str, _ProjectEntry] = {}

    def create(self, state: ProjectState, project_id: str | None = None) -> str:
        project_id = project_id or uuid.uuid4().hex
        self._projects[project_id] = _ProjectEntry(state=state, past=deque(maxlen=self.history_limit))
        return project_id

    def exists(self, project_id: str) -> bool:
        return project_id in self._projects

    def _entry(self, project_id: str) -> _ProjectEntry:
        entry = self._projects.get(project_id)
        if entry is None:
            raise ProjectNotFoundError("Project not found", details={"project_id": project_id})
        return entry

    def get(self, project_id: str) -> ProjectState:
        return self._entry(project_id).state

    def update_state_and_record(self, project_id: str, updater: StateUpdater) -> ProjectState:
        entry = self._entry(project_id)
        new_state = updater(entry.state)
        if new_state is entry.state:
            return new_state
        entry.past.append(entry.state)
        entry.future.clear()
        entry.state = new_state
        return new_state

    def replace(self, project_id: str, state: ProjectState) -> ProjectState:
        return self.update_state_and_record(project_id, lambda _: state)

    def can_undo(self, project_id: str) -> bool:
        return bool(self._entry(project_id).past)

    def can_redo(self, project_id: str) -> bool:
        return bool(self._entry(project_id).future)

    def undo(self, project_id: str) -> ProjectState:
        entry = self._entry(project_id)
        if entry.past:
            entry.future.append(entry.state)
            entry.state = entry.past.pop()
        return entry.state

    def redo(self, project_id: str) -> ProjectState:
        entry = self._entry(project_id)
        if entry.future:
            entry.past.append(entry.state)
            entry.state = entry.future.pop()
        return entry.state

    def remove(self, project_id: str) -> None:
        self._projects.pop(project_id, None)


# 全局单例
state_store = StateStore()
