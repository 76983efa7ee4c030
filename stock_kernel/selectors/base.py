"""
Module: stock_kernel.selectors.base
Responsibility: Base class for the read-only query selectors.  Selectors are
    the query side of the ledger: structured read access to stock positions
    and movements without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/ (for the frozen result types).

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but never
      call session.add(), session.delete(), session.commit(), or
      session.flush().
    - DTO return convention: Selectors return frozen dataclasses, not ORM
      instances.
    - Selectors never take row locks.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Base class for all selectors.

    Selectors accept a Session from the caller, perform read-only queries,
    and return DTOs.  The caller owns the session and its transaction.
    """

    def __init__(self, session: Session):
        self.session = session
