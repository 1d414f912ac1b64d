"""Undo journal — rollback support for the ledger's atomic operations.

Components record one undo step per mutation while a transaction is open.
A failed transaction runs its own steps in reverse; a successful outermost
transaction drops them. Transactions nest: a re-entrant operation opened
from inside a transfer rolls back only its own steps, while a failure in
the enclosing operation also undoes the nested one.

Only the entries an operation touches are journaled, so rollback cost is
proportional to the work done, not to the size of the book.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator


UndoStep = Callable[[], None]


class UndoJournal:
    """Stack of undo steps shared by the ledger's components."""

    def __init__(self) -> None:
        self._steps: list[UndoStep] = []
        self._depth = 0

    @property
    def active(self) -> bool:
        return self._depth > 0

    @property
    def pending(self) -> int:
        return len(self._steps)

    def record(self, step: UndoStep) -> None:
        """Remember how to reverse a mutation. No-op outside a transaction."""
        if self._depth > 0:
            self._steps.append(step)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        mark = len(self._steps)
        self._depth += 1
        try:
            yield
        except Exception:
            while len(self._steps) > mark:
                self._steps.pop()()
            raise
        finally:
            self._depth -= 1
            if self._depth == 0:
                self._steps.clear()
