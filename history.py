import logging

import project_store
from project_store import ValidationError

logger = logging.getLogger(__name__)


class HistoryController:
    """Linear undo/redo over full project snapshots.

    Every forward edit goes through ``push``. Pushing from the middle of the
    log drops everything after the cursor, so redo never resurrects an
    abandoned branch. Identical snapshots are not de-duplicated.
    """

    def __init__(self, state):
        self.state = state
        self._log = [state.files]
        self._index = 0

    def __len__(self):
        return len(self._log)

    @property
    def index(self):
        return self._index

    @property
    def current(self):
        assert self._log, "history log must never be empty"
        return self._log[self._index]

    @property
    def can_undo(self):
        return self._index > 0

    @property
    def can_redo(self):
        return self._index < len(self._log) - 1

    def push(self, snapshot):
        snapshot = tuple(snapshot)
        del self._log[self._index + 1:]
        self._log.append(snapshot)
        self._index = len(self._log) - 1
        self._show_current()

    def undo(self):
        if not self.can_undo:
            return False
        self._index -= 1
        self._show_current()
        return True

    def redo(self):
        if not self.can_redo:
            return False
        self._index += 1
        self._show_current()
        return True

    def _show_current(self):
        self.state.files = self.current
        self.state.active_file()

    # Commands. Each successful one is exactly one history entry.

    def create_file(self, name):
        snapshot = project_store.create_file(self.state.files, name)
        created = snapshot[-1]
        self.push(snapshot)
        self.state.active_file_id = created.id
        logger.info("Created %s (%s)", created.name, created.id)
        return created

    def update_file(self, file_id, content):
        if project_store.find_file(self.state.files, file_id) is None:
            raise ValidationError(f"Unknown file: {file_id}")
        self.push(project_store.update_file_content(self.state.files, file_id, content))

    def delete_file(self, file_id):
        if project_store.find_file(self.state.files, file_id) is None:
            raise ValidationError(f"Unknown file: {file_id}")
        if len(self.state.files) <= 1:
            raise ValidationError("A project must keep at least one file")
        self.push(project_store.delete_file(self.state.files, file_id))
        logger.info("Deleted %s", file_id)

    def select_file(self, file_id):
        if project_store.find_file(self.state.files, file_id) is None:
            raise ValidationError(f"Unknown file: {file_id}")
        self.state.active_file_id = file_id
