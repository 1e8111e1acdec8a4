"""
LedgerPolicy -- runtime knobs for posting behaviour.

The kernel owns this type; ``inventory_config.bridges.build_ledger_policy``
produces one from a YAML configuration set.  The kernel never imports the
config package.
"""

from dataclasses import dataclass
from enum import Enum


class NegativeQuantityPolicy(str, Enum):
    """What a posting does when a resulting quantity would be negative.

    REJECT: the whole posting fails with InsufficientQuantityError.
    ALLOW_AND_FLAG: the posting proceeds; affected lines are flagged
        is_negative_anomaly and the header has_anomaly.
    """

    REJECT = "reject"
    ALLOW_AND_FLAG = "allow_and_flag"


@dataclass(frozen=True)
class LedgerPolicy:
    """
    Immutable posting policy.

    Guarantees:
        - max_retries >= 1 (total attempts, including the first).
        - retry_backoff_seconds >= 0 (linear: attempt * backoff).
    """

    negative_quantity_policy: NegativeQuantityPolicy = NegativeQuantityPolicy.REJECT
    max_retries: int = 5
    retry_backoff_seconds: float = 0.05
    chemical_audit_enabled: bool = True

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.retry_backoff_seconds < 0:
            raise ValueError(
                f"retry_backoff_seconds must be >= 0, got {self.retry_backoff_seconds}"
            )
        # Accept the plain string form as well
        object.__setattr__(
            self,
            "negative_quantity_policy",
            NegativeQuantityPolicy(self.negative_quantity_policy),
        )

    @property
    def rejects_negative(self) -> bool:
        return self.negative_quantity_policy == NegativeQuantityPolicy.REJECT
