"""cleankiss: a student API built from small handlers with permission checks
and idempotent writes.

The reusable pieces are:

- :mod:`cleankiss.results` - ``Result`` outcome type.
- :mod:`cleankiss.core` - handler contract, authorization decorator and the
  idempotency middleware.
- :mod:`cleankiss.storage` - idempotency stores and the shared in-memory
  backend.
- :mod:`cleankiss.adapters` - Starlette/FastAPI middleware.
"""

__version__ = "0.1.0"
