# dealsync/core/errors.py


class MarketplaceError(Exception):
    """A marketplace search failed.

    ``kind`` is one of ``rate_limited``, ``unauthenticated`` or ``transient``.
    """

    RATE_LIMITED = "rate_limited"
    UNAUTHENTICATED = "unauthenticated"
    TRANSIENT = "transient"

    def __init__(self, message: str, kind: str = TRANSIENT, status_code: int = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class ScheduleError(ValueError):
    """A rule's cron expression could not be parsed."""


class RuleNotFoundError(LookupError):
    def __init__(self, rule_id: int):
        super().__init__(f"Rule {rule_id} not found")
        self.rule_id = rule_id


class RuleBusyError(RuntimeError):
    def __init__(self, rule_id: int):
        super().__init__(f"Rule {rule_id} is already running")
        self.rule_id = rule_id
