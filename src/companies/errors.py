"""Error taxonomy for company operations.

Expected failures are raised by the components as typed errors and turned
into ``ServiceResult`` values at the company boundary; callers of the public
API never see them raised.

- AuthorizationError: caller is not the leader when the leader is required.
- StateConflictError: the roster or policy state forbids the transition
  (already invited, already employed, not employed, is leader, ...).
- ExternalRejection: the action pipeline rejected a transition for a reason
  outside the company's own checks.
- IntegrityDesync: recorded state disagreed with the external source of
  truth. Always self-healed by the detecting routine, then reported.
- InternalLookupFailure: an expected external hook or record was missing.
  Logged, then surfaced as a generic internal error.
"""

from __future__ import annotations


class CompanyError(Exception):
    """Base class. ``code`` is machine readable, ``message`` is for humans."""

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code
        self.message = message or code

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code!r})"


class AuthorizationError(CompanyError):
    pass


class StateConflictError(CompanyError):
    pass


class ExternalRejection(CompanyError):
    pass


class IntegrityDesync(CompanyError):
    pass


class InternalLookupFailure(CompanyError):
    pass
