import secrets
import threading
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from .config import DEFAULT_MAX_FORM_SESSIONS
from .form import FormController

SESSION_COOKIE = "form_session"


class FormSessionStore:
    """One FormController per visitor, keyed by an opaque cookie value.

    Holds at most `max_sessions` forms; the least recently used one is
    dropped when a new visitor arrives at capacity.
    """

    def __init__(
        self,
        factory: Callable[[], FormController],
        max_sessions: int = DEFAULT_MAX_FORM_SESSIONS,
    ):
        self._factory = factory
        self._forms: "OrderedDict[str, FormController]" = OrderedDict()
        self._lock = threading.Lock()
        self.max_sessions = max(1, max_sessions)

    def get_or_create(self, session_id: Optional[str]) -> Tuple[str, FormController]:
        with self._lock:
            if session_id and session_id in self._forms:
                self._forms.move_to_end(session_id)
                return session_id, self._forms[session_id]

            while len(self._forms) >= self.max_sessions:
                self._forms.popitem(last=False)

            session_id = secrets.token_urlsafe(16)
            form = self._factory()
            self._forms[session_id] = form
            return session_id, form

    def __len__(self) -> int:
        return len(self._forms)
