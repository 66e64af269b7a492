"""Tests for TestOrchestrator."""

from unittest.mock import MagicMock

import pytest
from pydantic import SecretStr

from mchk.connectors.config import IMAPConfig, SMTPConfig
from mchk.credentials.base import SecretProvider
from mchk.credentials.prompt import PromptSecretProvider
from mchk.exceptions import (
    CredentialNotFoundError,
    InvalidTestSpecError,
    MailboxConnectionError,
    SubmissionError,
    TokenGenerationError,
)
from mchk.models import ReceiveStatus, RunConfig, TestSpec, TestState, VerificationResult
from mchk.orchestrator import TestOrchestrator
from mchk.reporting import EventKind, Reporter, ReportEvent
from mchk.waiter import IntervalWaiter


def make_spec(**overrides: object) -> TestSpec:
    values: dict[str, object] = {
        "name": "relay",
        "should_send": True,
        "smtp_server": "smtp.example.com",
        "send_from": "probe@example.com",
        "send_to": "inbox@example.com",
        "sender_login": "probe@example.com",
        "sender_password": "smtp-secret",
        "wait_for": 2,
        "should_receive": True,
        "imap_server": "imap.example.com",
        "imap_login": "inbox@example.com",
        "imap_password": "imap-secret",
    }
    values.update(overrides)
    return TestSpec(**values)


class RecordingReporter(Reporter):
    def __init__(self) -> None:
        self.events: list[ReportEvent] = []

    def report(self, event: ReportEvent) -> None:
        self.events.append(event)

    @property
    def kinds(self) -> list[EventKind]:
        return [e.kind for e in self.events]


class FakeSubmitter:
    """Fails for relay hosts listed in ``failing_hosts``."""

    def __init__(self, failing_hosts: tuple[str, ...] = ()) -> None:
        self.failing_hosts = failing_hosts
        self.calls: list[tuple[SMTPConfig, str]] = []

    def submit(self, outbound: SMTPConfig, token: str) -> None:
        self.calls.append((outbound, token))
        if outbound.host in self.failing_hosts:
            raise SubmissionError(outbound.host, outbound.port, ConnectionRefusedError("refused"))


class FakeVerifier:
    """Answers with queued results (or exceptions) in order."""

    def __init__(self, *results: VerificationResult | Exception) -> None:
        self.results = list(results)
        self.calls: list[tuple[IMAPConfig, str, bool]] = []

    def verify(self, inbound: IMAPConfig, token: str, leave_message: bool = False) -> VerificationResult:
        self.calls.append((inbound, token, leave_message))
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


FOUND = VerificationResult(status=ReceiveStatus.FOUND, matches=1, deleted=True)
NOT_FOUND = VerificationResult(status=ReceiveStatus.NOT_FOUND)
AMBIGUOUS = VerificationResult(status=ReceiveStatus.AMBIGUOUS, matches=2)


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def sleep() -> MagicMock:
    return MagicMock()


@pytest.fixture
def secrets() -> MagicMock:
    provider = MagicMock(spec=SecretProvider)
    provider.get_secret.return_value = SecretStr("prompted")
    return provider


def make_orchestrator(
    submitter: FakeSubmitter,
    verifier: FakeVerifier,
    reporter: RecordingReporter,
    sleep: MagicMock,
    secrets: MagicMock,
    tokens: list[str] | None = None,
) -> TestOrchestrator:
    token_factory = MagicMock(side_effect=tokens) if tokens else MagicMock(return_value="tok")
    return TestOrchestrator(
        submitter=submitter,  # type: ignore[arg-type]
        verifier=verifier,  # type: ignore[arg-type]
        waiter=IntervalWaiter(sleep=sleep),
        reporter=reporter,
        secrets=secrets,
        token_factory=token_factory,
    )


class TestRunTest:
    def test_sent_and_received(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        """Expected send and expected receive both happen: pass."""
        submitter = FakeSubmitter()
        verifier = FakeVerifier(FOUND)
        orchestrator = make_orchestrator(submitter, verifier, reporter, sleep, secrets)

        outcome = orchestrator.run_test(make_spec())

        assert outcome.sent is True
        assert outcome.received is ReceiveStatus.FOUND
        assert outcome.matched_expectation is True
        assert outcome.soft_mismatch is False
        sleep.assert_called_once_with(2)
        assert orchestrator.state is TestState.DONE
        assert reporter.kinds == [
            EventKind.TEST_STARTED,
            EventKind.SEND_STARTED,
            EventKind.SEND_SUCCEEDED,
            EventKind.WAIT_STARTED,
            EventKind.WAIT_FINISHED,
            EventKind.VERIFY_STARTED,
            EventKind.VERIFY_FOUND,
            EventKind.TEST_PASSED,
        ]

    def test_token_links_send_and_verify(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        submitter = FakeSubmitter()
        verifier = FakeVerifier(FOUND)
        orchestrator = make_orchestrator(submitter, verifier, reporter, sleep, secrets, tokens=["t-1"])

        orchestrator.run_test(make_spec(leave_message=True))

        assert submitter.calls[0][1] == "t-1"
        assert verifier.calls[0][1] == "t-1"
        assert verifier.calls[0][2] is True

    def test_token_seeded_with_relay_host(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        orchestrator = make_orchestrator(FakeSubmitter(), FakeVerifier(FOUND), reporter, sleep, secrets)

        orchestrator.run_test(make_spec())

        orchestrator._token_factory.assert_called_once_with("smtp.example.com")  # type: ignore[attr-defined]

    def test_expected_failures_on_both_sides(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        """Closed relay and empty mailbox, both expected: pass, verification still runs."""
        submitter = FakeSubmitter(failing_hosts=("closed.example.com",))
        verifier = FakeVerifier(NOT_FOUND)
        orchestrator = make_orchestrator(submitter, verifier, reporter, sleep, secrets)

        outcome = orchestrator.run_test(
            make_spec(smtp_server="closed.example.com", should_send=False, should_receive=False)
        )

        assert outcome.sent is False
        assert outcome.send_error is not None
        assert outcome.received is ReceiveStatus.NOT_FOUND
        assert outcome.matched_expectation is True
        assert len(verifier.calls) == 1
        sleep.assert_called_once_with(2)
        send_failed = reporter.events[reporter.kinds.index(EventKind.SEND_FAILED)]
        assert send_failed.expected is True

    def test_not_received_when_expected(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        """Relay accepts but the probe never shows up: hard failure."""
        orchestrator = make_orchestrator(FakeSubmitter(), FakeVerifier(NOT_FOUND), reporter, sleep, secrets)

        outcome = orchestrator.run_test(make_spec())

        assert outcome.sent is True
        assert outcome.received is ReceiveStatus.NOT_FOUND
        assert outcome.matched_expectation is False
        assert "not found" in (outcome.receive_error or "")
        assert reporter.kinds[-1] is EventKind.TEST_FAILED

    def test_received_when_not_expected(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        orchestrator = make_orchestrator(FakeSubmitter(), FakeVerifier(FOUND), reporter, sleep, secrets)

        outcome = orchestrator.run_test(make_spec(should_receive=False))

        assert outcome.matched_expectation is False
        found = reporter.events[reporter.kinds.index(EventKind.VERIFY_FOUND)]
        assert found.expected is False

    @pytest.mark.parametrize("should_receive", [True, False])
    def test_ambiguous_never_passes(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock, should_receive: bool
    ) -> None:
        orchestrator = make_orchestrator(FakeSubmitter(), FakeVerifier(AMBIGUOUS), reporter, sleep, secrets)

        outcome = orchestrator.run_test(make_spec(should_receive=should_receive))

        assert outcome.received is ReceiveStatus.AMBIGUOUS
        assert outcome.matched_expectation is False
        assert "Found 2 messages" in (outcome.receive_error or "")
        assert EventKind.VERIFY_AMBIGUOUS in reporter.kinds

    def test_absence_passes_regardless_of_send(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        for should_send in (True, False):
            orchestrator = make_orchestrator(
                FakeSubmitter(), FakeVerifier(NOT_FOUND), reporter, sleep, secrets
            )
            outcome = orchestrator.run_test(make_spec(should_send=should_send, should_receive=False))
            assert outcome.matched_expectation is True

    def test_unexpected_send_is_soft_mismatch(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        orchestrator = make_orchestrator(FakeSubmitter(), FakeVerifier(FOUND), reporter, sleep, secrets)

        outcome = orchestrator.run_test(make_spec(should_send=False))

        assert outcome.sent is True
        assert outcome.soft_mismatch is True
        assert outcome.matched_expectation is True
        sent = reporter.events[reporter.kinds.index(EventKind.SEND_SUCCEEDED)]
        assert sent.expected is False

    def test_unexpected_send_failure_ends_test(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        submitter = FakeSubmitter(failing_hosts=("smtp.example.com",))
        verifier = FakeVerifier()
        orchestrator = make_orchestrator(submitter, verifier, reporter, sleep, secrets)

        outcome = orchestrator.run_test(make_spec())

        assert outcome.sent is False
        assert "refused" in (outcome.send_error or "")
        assert outcome.received is None
        assert outcome.matched_expectation is False
        assert verifier.calls == []
        sleep.assert_not_called()

    def test_mailbox_error_is_hard_failure(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        error = MailboxConnectionError("imap.example.com", 993, OSError("unreachable"))
        orchestrator = make_orchestrator(FakeSubmitter(), FakeVerifier(error), reporter, sleep, secrets)

        outcome = orchestrator.run_test(make_spec(should_receive=False))

        assert outcome.matched_expectation is False
        assert outcome.received is None
        assert "unreachable" in (outcome.receive_error or "")
        assert EventKind.VERIFY_ERROR in reporter.kinds

    def test_zero_wait(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        orchestrator = make_orchestrator(FakeSubmitter(), FakeVerifier(FOUND), reporter, sleep, secrets)

        orchestrator.run_test(make_spec(wait_for=0))

        sleep.assert_not_called()


class TestValidation:
    def test_names_every_missing_field(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        submitter = FakeSubmitter()
        orchestrator = make_orchestrator(submitter, FakeVerifier(), reporter, sleep, secrets)

        with pytest.raises(InvalidTestSpecError) as exc_info:
            orchestrator.run_test(make_spec(smtp_server="", send_to="", imap_server=""))

        assert exc_info.value.missing == ["smtp_server", "send_to", "imap_server"]
        message = str(exc_info.value)
        for field in ("smtp_server", "send_to", "imap_server"):
            assert field in message
        assert submitter.calls == []
        secrets.get_secret.assert_not_called()

    def test_missing_secrets_requested(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        submitter = FakeSubmitter()
        verifier = FakeVerifier(FOUND)
        orchestrator = make_orchestrator(submitter, verifier, reporter, sleep, secrets)

        orchestrator.run_test(make_spec(sender_password=None, imap_password=None))

        secrets.get_secret.assert_any_call("smtp", "probe@example.com")
        secrets.get_secret.assert_any_call("imap", "inbox@example.com")
        assert submitter.calls[0][0].password.get_secret_value() == "prompted"
        assert verifier.calls[0][0].password.get_secret_value() == "prompted"

    def test_configured_secrets_not_requested(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        orchestrator = make_orchestrator(FakeSubmitter(), FakeVerifier(FOUND), reporter, sleep, secrets)

        orchestrator.run_test(make_spec())

        secrets.get_secret.assert_not_called()

    def test_unavailable_secret_is_fatal(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        secrets.get_secret.side_effect = CredentialNotFoundError("smtp", "probe@example.com")
        orchestrator = make_orchestrator(FakeSubmitter(), FakeVerifier(), reporter, sleep, secrets)

        with pytest.raises(CredentialNotFoundError):
            orchestrator.run(RunConfig(tests=[make_spec(sender_password=None)], continue_on_errors=True))

    def test_validate_does_not_modify_spec(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        orchestrator = make_orchestrator(FakeSubmitter(), FakeVerifier(), reporter, sleep, secrets)
        spec = make_spec(sender_password=None)

        resolved = orchestrator.validate(spec)

        assert spec.sender_password is None
        assert resolved.sender_password is not None

    def test_empty_prompted_secret_is_fatal(
        self, reporter: RecordingReporter, sleep: MagicMock
    ) -> None:
        submitter = FakeSubmitter()
        prompt = PromptSecretProvider(prompt=MagicMock(return_value=""))
        orchestrator = make_orchestrator(
            submitter, FakeVerifier(FOUND), reporter, sleep, prompt  # type: ignore[arg-type]
        )

        with pytest.raises(CredentialNotFoundError, match="empty password"):
            orchestrator.run_test(make_spec(sender_password=None))

        assert submitter.calls == []

    def test_empty_secret_from_any_provider_rejected(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        secrets.get_secret.return_value = SecretStr("")
        verifier = FakeVerifier(FOUND)
        orchestrator = make_orchestrator(FakeSubmitter(), verifier, reporter, sleep, secrets)

        with pytest.raises(CredentialNotFoundError):
            orchestrator.validate(make_spec(imap_password=None))

        assert verifier.calls == []


class TestRun:
    def test_abort_on_first_failure(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        """Second test is never sent nor verified once the first fails."""
        submitter = FakeSubmitter(failing_hosts=("broken.example.com",))
        verifier = FakeVerifier(FOUND)
        orchestrator = make_orchestrator(submitter, verifier, reporter, sleep, secrets)
        config = RunConfig(
            tests=[
                make_spec(name="first", smtp_server="broken.example.com"),
                make_spec(name="second"),
                make_spec(name="third"),
            ],
            continue_on_errors=False,
        )

        result = orchestrator.run(config)

        assert result.aborted is True
        assert result.skipped == 2
        assert [o.name for o in result.outcomes] == ["first"]
        assert len(submitter.calls) == 1
        assert verifier.calls == []
        aborted = reporter.events[reporter.kinds.index(EventKind.RUN_ABORTED)]
        assert aborted.test == "first"
        assert aborted.skipped == 2

    def test_continue_after_failure(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        submitter = FakeSubmitter()
        verifier = FakeVerifier(NOT_FOUND, FOUND)
        orchestrator = make_orchestrator(
            submitter, verifier, reporter, sleep, secrets, tokens=["t-1", "t-2"]
        )
        config = RunConfig(
            tests=[make_spec(name="first"), make_spec(name="second")],
            continue_on_errors=True,
        )

        result = orchestrator.run(config)

        assert result.aborted is False
        assert [o.matched_expectation for o in result.outcomes] == [False, True]
        assert [call[1] for call in verifier.calls] == ["t-1", "t-2"]
        assert result.passed == 1
        assert result.failed == 1

    def test_all_pass(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        orchestrator = make_orchestrator(
            FakeSubmitter(), FakeVerifier(FOUND, FOUND), reporter, sleep, secrets
        )

        result = orchestrator.run(RunConfig(tests=[make_spec(name="a"), make_spec(name="b")]))

        assert result.aborted is False
        assert result.passed == 2
        finished = reporter.events[-1]
        assert finished.kind is EventKind.RUN_FINISHED
        assert (finished.passed, finished.failed, finished.skipped) == (2, 0, 0)

    def test_tests_run_in_order(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        submitter = FakeSubmitter()
        orchestrator = make_orchestrator(
            submitter, FakeVerifier(FOUND, FOUND, FOUND), reporter, sleep, secrets
        )
        hosts = ["a.example.com", "b.example.com", "c.example.com"]

        orchestrator.run(RunConfig(tests=[make_spec(smtp_server=h) for h in hosts]))

        assert [call[0].host for call in submitter.calls] == hosts

    def test_empty_run(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        orchestrator = make_orchestrator(FakeSubmitter(), FakeVerifier(), reporter, sleep, secrets)

        result = orchestrator.run(RunConfig())

        assert result.outcomes == []
        assert result.aborted is False

    def test_invalid_spec_aborts_whole_run(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        submitter = FakeSubmitter()
        orchestrator = make_orchestrator(submitter, FakeVerifier(FOUND), reporter, sleep, secrets)
        config = RunConfig(
            tests=[make_spec(name="broken", imap_server=""), make_spec(name="fine")],
            continue_on_errors=True,
        )

        with pytest.raises(InvalidTestSpecError):
            orchestrator.run(config)

        assert submitter.calls == []

    def test_token_failure_aborts_whole_run(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        submitter = FakeSubmitter()
        orchestrator = make_orchestrator(submitter, FakeVerifier(), reporter, sleep, secrets)
        orchestrator._token_factory = MagicMock(side_effect=TokenGenerationError("no entropy"))

        with pytest.raises(TokenGenerationError):
            orchestrator.run(RunConfig(tests=[make_spec()], continue_on_errors=True))

        assert submitter.calls == []

    def test_incomplete_later_test_stops_run_before_any_send(
        self, reporter: RecordingReporter, sleep: MagicMock, secrets: MagicMock
    ) -> None:
        submitter = FakeSubmitter()
        verifier = FakeVerifier(FOUND)
        orchestrator = make_orchestrator(submitter, verifier, reporter, sleep, secrets)
        config = RunConfig(
            tests=[make_spec(name="fine"), make_spec(name="broken", smtp_server="")],
            continue_on_errors=True,
        )

        with pytest.raises(InvalidTestSpecError) as exc_info:
            orchestrator.run(config)

        assert exc_info.value.missing == ["smtp_server"]
        assert submitter.calls == []
        assert verifier.calls == []
        assert reporter.events == []
