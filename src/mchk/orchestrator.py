"""Runs configured probes one after another.

Per test: validate, send, wait, verify, classify. Whether a failed test stops
the run is decided here and nowhere else.
"""

from collections.abc import Callable

import structlog
from pydantic import SecretStr

from mchk.credentials.base import SecretKind, SecretProvider
from mchk.exceptions import (
    CredentialNotFoundError,
    InvalidTestSpecError,
    SubmissionError,
    VerificationError,
)
from mchk.models import ReceiveStatus, RunConfig, RunResult, TestOutcome, TestSpec, TestState
from mchk.reporting import EventKind, Reporter, ReportEvent
from mchk.submitter import DeliverySubmitter
from mchk.token import generate_token
from mchk.verifier import DeliveryVerifier
from mchk.waiter import IntervalWaiter, WaitObserver

logger = structlog.get_logger()


class TestOrchestrator:
    """Drives the send-then-verify cycle for each test in order.

    Configuration problems and token failures propagate and end the run.
    Every other failure lands on the test's outcome, and ``continue_on_errors``
    decides whether the next test runs.
    """

    __test__ = False

    def __init__(
        self,
        submitter: DeliverySubmitter,
        verifier: DeliveryVerifier,
        waiter: IntervalWaiter,
        reporter: Reporter,
        secrets: SecretProvider,
        token_factory: Callable[[str], str] = generate_token,
        wait_observer: WaitObserver | None = None,
    ) -> None:
        self._submitter = submitter
        self._verifier = verifier
        self._waiter = waiter
        self._reporter = reporter
        self._secrets = secrets
        self._token_factory = token_factory
        self._wait_observer = wait_observer
        self.state = TestState.DONE

    def _enter(self, state: TestState, test: str) -> None:
        self.state = state
        logger.debug("Test state changed", test=test, state=state.value)

    def _emit(self, kind: EventKind, test: str, **fields: object) -> None:
        self._reporter.report(ReportEvent(kind=kind, test=test, **fields))

    def run(self, config: RunConfig) -> RunResult:
        """Run every test in order, stopping at the first failure unless told to continue.

        Raises:
            ConfigError: If a test is incomplete or a secret cannot be obtained.
            TokenGenerationError: If no secure randomness is available.
        """
        result = RunResult()
        total = len(config.tests)

        for spec in config.tests:
            missing = spec.missing_fields()
            if missing:
                raise InvalidTestSpecError(spec.name, missing)

        logger.info("Run started", tests=total, continue_on_errors=config.continue_on_errors)

        for index, spec in enumerate(config.tests):
            outcome = self.run_test(spec)
            result.outcomes.append(outcome)
            if not outcome.matched_expectation and not config.continue_on_errors:
                result.aborted = True
                result.skipped = total - index - 1
                self._emit(EventKind.RUN_ABORTED, spec.name, skipped=result.skipped)
                break

        self._emit(
            EventKind.RUN_FINISHED,
            "",
            passed=result.passed,
            failed=result.failed,
            skipped=result.skipped,
        )
        logger.info(
            "Run finished",
            passed=result.passed,
            failed=result.failed,
            skipped=result.skipped,
            aborted=result.aborted,
        )
        return result

    def validate(self, spec: TestSpec) -> TestSpec:
        """Check required fields and fill in secrets the config left out.

        Returns:
            A runnable copy of ``spec``; the input is not modified.

        Raises:
            InvalidTestSpecError: Naming every missing field.
            CredentialNotFoundError: If a secret provider cannot supply a password.
        """
        missing = spec.missing_fields()
        if missing:
            raise InvalidTestSpecError(spec.name, missing)

        sender_password = None
        if spec.sender_password is None:
            sender_password = self._resolve_secret("smtp", spec.sender_login)
        imap_password = None
        if spec.imap_password is None:
            imap_password = self._resolve_secret("imap", spec.imap_login)
        return spec.with_secrets(sender_password=sender_password, imap_password=imap_password)

    def _resolve_secret(self, kind: SecretKind, login: str) -> SecretStr:
        secret = self._secrets.get_secret(kind, login)
        if not secret.get_secret_value():
            raise CredentialNotFoundError(kind, login, "empty password")
        return secret

    def run_test(self, spec: TestSpec) -> TestOutcome:
        """Run a single test and return its classified outcome."""
        name = spec.name
        self._emit(EventKind.TEST_STARTED, name)

        self._enter(TestState.VALIDATING, name)
        spec = self.validate(spec)
        token = self._token_factory(spec.smtp_server)
        outcome = TestOutcome(name=name)

        self._enter(TestState.SENDING, name)
        outbound = spec.outbound
        self._emit(
            EventKind.SEND_STARTED,
            name,
            target=f"{outbound.host}:{outbound.port}",
            sender=outbound.sender,
            recipient=outbound.recipient,
        )
        try:
            self._submitter.submit(outbound, token)
        except SubmissionError as e:
            outcome.send_error = str(e)
            self._emit(EventKind.SEND_FAILED, name, expected=not spec.should_send, error=str(e))
            if spec.should_send:
                return self._finish(outcome, matched=False)
        else:
            outcome.sent = True
            if not spec.should_send:
                outcome.soft_mismatch = True
                logger.warning("Probe sent although sending was expected to fail", test=name)
            self._emit(EventKind.SEND_SUCCEEDED, name, expected=spec.should_send)

        self._enter(TestState.WAITING, name)
        self._emit(EventKind.WAIT_STARTED, name, seconds=spec.wait_for)
        self._waiter.wait(spec.wait_for, self._wait_observer)
        self._emit(EventKind.WAIT_FINISHED, name, seconds=spec.wait_for)

        self._enter(TestState.VERIFYING, name)
        inbound = spec.inbound
        target = f"{inbound.host}:{inbound.port}"
        self._emit(EventKind.VERIFY_STARTED, name, target=target)
        try:
            found = self._verifier.verify(inbound, token, spec.leave_message)
        except VerificationError as e:
            outcome.receive_error = str(e)
            self._emit(EventKind.VERIFY_ERROR, name, target=target, error=str(e))
            return self._finish(outcome, matched=False)

        self._enter(TestState.CLASSIFYING, name)
        outcome.received = found.status
        if found.status is ReceiveStatus.AMBIGUOUS:
            outcome.receive_error = f"Found {found.matches} messages with subject {token}"
            self._emit(EventKind.VERIFY_AMBIGUOUS, name, target=target, matches=found.matches, expected=False)
            return self._finish(outcome, matched=False)

        if found.status is ReceiveStatus.FOUND:
            matched = spec.should_receive
            self._emit(EventKind.VERIFY_FOUND, name, target=target, expected=matched)
        else:
            matched = not spec.should_receive
            if spec.should_receive:
                outcome.receive_error = f"Sent message not found on {inbound.host}"
            self._emit(EventKind.VERIFY_NOT_FOUND, name, target=target, expected=matched)
        return self._finish(outcome, matched=matched)

    def _finish(self, outcome: TestOutcome, matched: bool) -> TestOutcome:
        outcome.matched_expectation = matched
        self._emit(EventKind.TEST_PASSED if matched else EventKind.TEST_FAILED, outcome.name)
        self._enter(TestState.DONE, outcome.name)
        return outcome
