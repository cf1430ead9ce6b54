"""Tests for credential verification/minting state and single-flight."""

import asyncio

import pytest

from certsync.state.machine import (
    MINT_TRANSITIONS,
    VERIFICATION_TRANSITIONS,
    CredentialStateTracker,
    InvalidTransitionError,
    MintStatus,
    VerificationStatus,
)


@pytest.fixture
def tracker():
    return CredentialStateTracker()


# =============================================================================
# Transitions
# =============================================================================


class TestVerificationMachine:
    """Tests for the verification machine."""

    def test_initial_state(self, tracker):
        state = tracker.get("1")
        assert state.verification is VerificationStatus.UNVERIFIED
        assert state.mint is MintStatus.NOT_MINTED
        assert tracker.all() == {}

    def test_happy_path(self, tracker):
        tracker.transition_verification("1", VerificationStatus.VERIFYING)
        state = tracker.transition_verification(
            "1", VerificationStatus.VERIFIED, object_id="0x1", content_address="blob"
        )
        assert state.verification is VerificationStatus.VERIFIED
        assert state.object_id == "0x1"
        assert state.updated_at is not None
        assert tracker.get("1") == state

    def test_failed_is_retryable(self, tracker):
        tracker.transition_verification("1", VerificationStatus.VERIFYING)
        tracker.transition_verification("1", VerificationStatus.FAILED, error="no match")
        state = tracker.transition_verification("1", VerificationStatus.VERIFYING, error=None)
        assert state.verification is VerificationStatus.VERIFYING
        assert state.error is None

    def test_verified_is_terminal(self, tracker):
        tracker.transition_verification("1", VerificationStatus.VERIFYING)
        tracker.transition_verification("1", VerificationStatus.VERIFIED)
        with pytest.raises(InvalidTransitionError) as exc_info:
            tracker.transition_verification("1", VerificationStatus.VERIFYING)
        assert exc_info.value.code == "INVALID_STATE_TRANSITION"
        assert exc_info.value.current is VerificationStatus.VERIFIED

    def test_cannot_skip_verifying(self, tracker):
        with pytest.raises(InvalidTransitionError):
            tracker.transition_verification("1", VerificationStatus.VERIFIED)

    def test_reopen_keeps_mint_state(self, tracker):
        tracker.transition_mint("1", MintStatus.MINTING)
        tracker.transition_mint("1", MintStatus.MINTED)
        tracker.transition_verification("1", VerificationStatus.VERIFYING)
        tracker.transition_verification("1", VerificationStatus.VERIFIED)

        state = tracker.reopen_verification("1")

        assert state.verification is VerificationStatus.UNVERIFIED
        assert state.mint is MintStatus.MINTED

    def test_reset(self, tracker):
        tracker.transition_verification("1", VerificationStatus.VERIFYING)
        tracker.transition_verification("2", VerificationStatus.VERIFYING)
        tracker.reset("1")
        assert set(tracker.all()) == {"2"}
        tracker.reset()
        assert tracker.all() == {}

    def test_tables_cover_every_status(self):
        assert set(VERIFICATION_TRANSITIONS) == set(VerificationStatus)
        assert set(MINT_TRANSITIONS) == set(MintStatus)


class TestMintMachine:
    """Tests for the minting machine."""

    def test_mint_failed_is_retryable(self, tracker):
        tracker.transition_mint("1", MintStatus.MINTING)
        tracker.transition_mint("1", MintStatus.MINT_FAILED, error="rejected")
        assert tracker.transition_mint("1", MintStatus.MINTING).mint is MintStatus.MINTING

    def test_minted_is_terminal(self, tracker):
        tracker.transition_mint("1", MintStatus.MINTING)
        tracker.transition_mint("1", MintStatus.MINTED)
        with pytest.raises(InvalidTransitionError):
            tracker.transition_mint("1", MintStatus.MINTING)

    def test_machines_are_independent(self, tracker):
        tracker.transition_mint("1", MintStatus.MINTING)
        state = tracker.transition_verification("1", VerificationStatus.VERIFYING)
        assert state.mint is MintStatus.MINTING
        assert state.verification is VerificationStatus.VERIFYING


# =============================================================================
# Single-flight
# =============================================================================


class TestSingleFlight:
    """Tests for per-id single-flight."""

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_run(self, tracker):
        calls = 0
        release = asyncio.Event()

        async def operation():
            nonlocal calls
            calls += 1
            await release.wait()
            return "done"

        first = asyncio.create_task(tracker.single_flight("1", tracker.VERIFY, operation))
        second = asyncio.create_task(tracker.single_flight("1", tracker.VERIFY, operation))
        await asyncio.sleep(0)
        assert tracker.is_in_flight("1", tracker.VERIFY)

        release.set()
        results = await asyncio.gather(first, second)

        assert results == ["done", "done"]
        assert calls == 1
        assert not tracker.is_in_flight("1", tracker.VERIFY)

    @pytest.mark.asyncio
    async def test_different_ids_run_independently(self, tracker):
        started = []

        async def operation(credential_id):
            started.append(credential_id)
            await asyncio.sleep(0)
            return credential_id

        results = await asyncio.gather(
            tracker.single_flight("1", tracker.VERIFY, lambda: operation("1")),
            tracker.single_flight("2", tracker.VERIFY, lambda: operation("2")),
        )
        assert results == ["1", "2"]
        assert sorted(started) == ["1", "2"]

    @pytest.mark.asyncio
    async def test_verify_and_mint_are_separate_slots(self, tracker):
        release = asyncio.Event()
        runs = []

        async def operation(kind):
            runs.append(kind)
            await release.wait()
            return kind

        verify = asyncio.create_task(tracker.single_flight("1", tracker.VERIFY, lambda: operation("v")))
        mint = asyncio.create_task(tracker.single_flight("1", tracker.MINT, lambda: operation("m")))
        await asyncio.sleep(0)
        release.set()

        assert await asyncio.gather(verify, mint) == ["v", "m"]
        assert sorted(runs) == ["m", "v"]

    @pytest.mark.asyncio
    async def test_failure_is_shared_and_slot_cleared(self, tracker):
        async def operation():
            await asyncio.sleep(0)
            raise RuntimeError("boom")

        results = await asyncio.gather(
            tracker.single_flight("1", tracker.MINT, operation),
            tracker.single_flight("1", tracker.MINT, operation),
            return_exceptions=True,
        )
        assert all(isinstance(r, RuntimeError) for r in results)
        await asyncio.sleep(0)
        assert not tracker.is_in_flight("1", tracker.MINT)

    @pytest.mark.asyncio
    async def test_sequential_calls_run_again(self, tracker):
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            return calls

        assert await tracker.single_flight("1", tracker.VERIFY, operation) == 1
        await asyncio.sleep(0)
        assert await tracker.single_flight("1", tracker.VERIFY, operation) == 2

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_operation(self, tracker):
        release = asyncio.Event()
        finished = []

        async def operation():
            await release.wait()
            finished.append(True)
            return "ok"

        waiter = asyncio.create_task(tracker.single_flight("1", tracker.VERIFY, operation))
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        joined = asyncio.create_task(tracker.single_flight("1", tracker.VERIFY, operation))
        await asyncio.sleep(0)
        release.set()
        assert await joined == "ok"
        assert finished == [True]
