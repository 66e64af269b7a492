"""End-to-end mail delivery checker: send a tagged probe over SMTP, find it over IMAP."""

from mchk.config import Settings, load_settings
from mchk.models import (
    ReceiveStatus,
    RunConfig,
    RunResult,
    TestOutcome,
    TestSpec,
    VerificationResult,
)
from mchk.orchestrator import TestOrchestrator
from mchk.submitter import DeliverySubmitter
from mchk.token import generate_token
from mchk.verifier import DeliveryVerifier
from mchk.waiter import IntervalWaiter

__version__ = "0.1.0"

__all__ = [
    "DeliverySubmitter",
    "DeliveryVerifier",
    "IntervalWaiter",
    "ReceiveStatus",
    "RunConfig",
    "RunResult",
    "Settings",
    "TestOrchestrator",
    "TestOutcome",
    "TestSpec",
    "VerificationResult",
    "generate_token",
    "load_settings",
]
