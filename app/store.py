from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator
from uuid import UUID

from app.models import Todo

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 8


class StoreError(Exception):
    """Base class for store failures."""


class IdentifierExhausted(StoreError):
    pass


class ReadWriteLock:
    """
    Many concurrent readers or one writer.

    Writer-preferring: once a writer is waiting, new readers queue behind it.
    Not reentrant.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class TodoStore:
    """
    Process-local todo collection keyed by id.

    Callers only ever see copies; the map and its lock stay private.
    """

    def __init__(
        self,
        todos: Iterable[Todo] | None = None,
        id_factory: Callable[[], UUID] = uuid.uuid4,
    ) -> None:
        self._lock = ReadWriteLock()
        self._todos: dict[UUID, Todo] = {todo.id: todo for todo in todos or ()}
        self._id_factory = id_factory

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._todos)

    def list(self) -> list[Todo]:
        with self._lock.read():
            return [todo.model_copy() for todo in self._todos.values()]

    def get(self, todo_id: UUID) -> Todo | None:
        with self._lock.read():
            todo = self._todos.get(todo_id)
        return todo.model_copy() if todo else None

    def create(self, text: str, user: str | None = None) -> Todo:
        with self._lock.write():
            todo_id = self._next_id()
            todo = Todo(id=todo_id, user=user, text=text, completed=False)
            self._todos[todo_id] = todo
        logger.debug("Created todo %s", todo_id)
        return todo.model_copy()

    def _next_id(self) -> UUID:
        # caller holds the write lock
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = self._id_factory()
            if candidate not in self._todos:
                return candidate
        raise IdentifierExhausted(f"No free todo id after {MAX_ID_ATTEMPTS} attempts")
