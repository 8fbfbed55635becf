"""
Attempt Store
Attempt documents keyed by id, with per-attempt write locks.
"""
import threading
import weakref
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional, Tuple

from attempt_engine.errors import NotFound
from attempt_engine.schemas import AttemptStatus, TestAttempt


class AttemptStore:
    """
    In-process attempt store.

    Attempts are kept as serialized camelCase documents; every read returns a
    fresh model, so callers mutate a private copy and persist it with save().
    Mutating operations hold lock(attempt_id) for the whole read-modify-write.
    """

    def __init__(self):
        self._documents: Dict[str, dict] = {}
        # Entries vanish once no caller holds the lock.
        self._locks = weakref.WeakValueDictionary()
        self._registry_lock = threading.Lock()
        self._create_lock = threading.Lock()

    @contextmanager
    def lock(self, attempt_id: str) -> Iterator[None]:
        with self._registry_lock:
            attempt_lock = self._locks.setdefault(attempt_id, threading.Lock())
        with attempt_lock:
            yield

    def get(self, attempt_id: str, user_id: str) -> TestAttempt:
        """Loads an attempt owned by user_id; other users' attempts are NotFound."""
        document = self._documents.get(attempt_id)
        if document is None or document.get("user") != user_id:
            raise NotFound("Attempt not found")
        return TestAttempt.model_validate(document)

    def find_in_progress(self, user_id: str, template_id: str) -> Optional[TestAttempt]:
        for document in list(self._documents.values()):
            if (
                document.get("user") == user_id
                and document.get("testTemplate") == template_id
                and document.get("status") == AttemptStatus.IN_PROGRESS.value
            ):
                return TestAttempt.model_validate(document)
        return None

    def create_once(
        self, user_id: str, template_id: str, factory: Callable[[], TestAttempt]
    ) -> Tuple[TestAttempt, bool]:
        """
        Returns the user's in-progress attempt for the template, or creates one.

        The lookup and insert run under one lock so two concurrent starts
        cannot both create an attempt.

        Returns:
            (attempt, created)
        """
        with self._create_lock:
            existing = self.find_in_progress(user_id, template_id)
            if existing is not None:
                return existing, False
            attempt = factory()
            self.insert(attempt)
            return attempt, True

    def insert(self, attempt: TestAttempt) -> None:
        self._documents[attempt.id] = attempt.to_document()

    def save(self, attempt: TestAttempt) -> None:
        if attempt.id not in self._documents:
            raise NotFound("Attempt not found")
        self._documents[attempt.id] = attempt.to_document()

    def document(self, attempt_id: str) -> Optional[dict]:
        """Raw stored document (camelCase), or None."""
        return self._documents.get(attempt_id)

    def __len__(self) -> int:
        return len(self._documents)
