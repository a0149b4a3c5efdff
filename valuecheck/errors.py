"""
Error taxonomy for the stock pipeline.

  ValueCheckError
    ├── UpstreamError             network / HTTP failure from SEC, FMP or FX
    │     └── IdentifierNotFoundError   ticker unresolvable after variant retry
    └── QuotaExceededError        daily new-ticker cap reached (HTTP 429)

Missing financial data is never an exception: it propagates as None.
"""


class ValueCheckError(RuntimeError):
    pass


class UpstreamError(ValueCheckError):
    pass


class IdentifierNotFoundError(UpstreamError):
    pass


class QuotaExceededError(ValueCheckError):
    pass
