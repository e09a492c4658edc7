"""Tests for ManifestPoller discovery, claim check and failure isolation.

Priority: [P0] - Entry point for every project.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from proof_of_build.exceptions import AudioGenerationError, ManifestNotFoundError, ManifestValidationError
from proof_of_build.schemas import PipelineStage
from proof_of_build.services.manifest_poller import (
    POLL_ERROR_BACKOFF_SECONDS,
    PollSummary,
    run_polling_loop,
)
from proof_of_build.utils.keys import build_audio_key, build_manifest_key, build_script_key, build_state_key
from tests.support.factories import create_manifest, create_state, put_manifest, put_state


class TestPollOnce:
    @pytest.mark.asyncio
    async def test_p0_processes_new_manifest_to_ready(self, poller, store):
        """[P0] A freshly uploaded manifest is driven to ready in one poll.

        GIVEN: uploads/p1/manifest.json and no state record
        WHEN: poll_once runs
        THEN: The project is processed and its state record reads ready
        """
        # GIVEN: New upload
        await put_manifest(store, create_manifest("p1"))

        # WHEN: Polling
        summary = await poller.poll_once()

        # THEN: Processed to ready
        assert summary.manifests_found == 1
        assert summary.processed == 1
        assert summary.skipped == 0
        assert summary.failed == 0
        assert store.stages_written("p1") == [
            "ingest",
            "classify",
            "generate-script",
            "generate-script",
            "generate-audio",
            "generate-audio",
            "ready",
        ]
        assert await store.exists(build_script_key("p1"))
        assert await store.exists(build_audio_key("p1"))
        assert poller.last_summary is summary

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "stage",
        [PipelineStage.CLASSIFY, PipelineStage.GENERATE_AUDIO, PipelineStage.READY, PipelineStage.ERROR],
    )
    async def test_p0_claimed_projects_are_skipped(self, poller, store, script_generator, stage):
        """[P0] Any state past ingest is treated as claimed and left alone."""
        await put_manifest(store, create_manifest("p1"))
        await put_state(store, create_state("p1", stage))
        writes_before = len(store.history)

        summary = await poller.poll_once()

        assert summary.skipped == 1
        assert summary.processed == 0
        assert len(store.history) == writes_before
        script_generator.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_p0_repoll_after_ready_writes_nothing(self, poller, store, script_generator, audio_generator):
        """[P0] A second poll over a finished project causes zero writes and zero calls."""
        await put_manifest(store, create_manifest("p1"))
        await poller.poll_once()
        writes_after_first = len(store.history)

        summary = await poller.poll_once()

        assert summary.skipped == 1
        assert len(store.history) == writes_after_first
        script_generator.generate.assert_awaited_once()
        audio_generator.synthesize.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_p0_state_at_ingest_is_picked_up(self, poller, store):
        """[P0] A state record left at ingest is unclaimed and gets processed."""
        await put_manifest(store, create_manifest("p1"))
        await put_state(store, create_state("p1", PipelineStage.INGEST))

        summary = await poller.poll_once()

        assert summary.processed == 1

    @pytest.mark.asyncio
    async def test_p0_failure_in_one_project_does_not_abort_batch(self, poller, store):
        """[P0] An unparseable manifest is reported while the next project still runs.

        GIVEN: p1 with a malformed manifest and p2 with a valid one
        WHEN: poll_once runs
        THEN: p1 fails without any state write, p2 reaches ready
        """
        # GIVEN: One bad, one good manifest
        await store.put(build_manifest_key("p1"), b"{not json")
        await put_manifest(store, create_manifest("p2"))

        # WHEN: Polling
        summary = await poller.poll_once()

        # THEN: Isolated failure
        assert summary.manifests_found == 2
        assert summary.failed == 1
        assert summary.processed == 1
        assert "p1" in summary.failures
        assert store.writes_to(build_state_key("p1")) == 0
        assert store.stages_written("p2")[-1] == "ready"

    @pytest.mark.asyncio
    async def test_p0_pipeline_failure_counts_as_failed(self, poller, store, audio_generator, retry_sleep):
        """[P0] Exhausted audio retries surface as a failed project with an error record."""
        audio_generator.synthesize.side_effect = AudioGenerationError("Service Unavailable", status_code=503)
        await put_manifest(store, create_manifest("p1"))

        summary = await poller.poll_once()

        assert summary.failed == 1
        assert summary.failures["p1"] == "Service Unavailable"
        final = store.snapshots(build_state_key("p1"))[-1]
        assert final["stage"] == "error"
        assert final["error"]["stage"] == "generate-audio"
        assert await store.exists(build_script_key("p1"))
        assert not await store.exists(build_audio_key("p1"))

    @pytest.mark.asyncio
    async def test_p1_errored_project_not_retried_on_next_poll(self, poller, store, audio_generator):
        audio_generator.synthesize.side_effect = AudioGenerationError("Unauthorized", status_code=401)
        await put_manifest(store, create_manifest("p1"))
        await poller.poll_once()

        summary = await poller.poll_once()

        assert summary.skipped == 1
        assert audio_generator.synthesize.await_count == 1

    @pytest.mark.asyncio
    async def test_p1_projectid_mismatch_fails_without_state(self, poller, store):
        """[P1] A manifest naming another project is rejected before any state write."""
        await store.put(build_manifest_key("p1"), create_manifest("other").to_json_bytes())

        summary = await poller.poll_once()

        assert summary.failed == 1
        assert store.writes_to(build_state_key("p1")) == 0
        assert store.writes_to(build_state_key("other")) == 0

    @pytest.mark.asyncio
    async def test_p1_non_manifest_keys_ignored(self, poller, store):
        """[P1] Artifact uploads and nested manifests are not projects."""
        await store.put("uploads/p1/frames/001.png", b"\x89PNG")
        await store.put("uploads/p1/nested/manifest.json", b"{}")
        await store.put("state/p9.json", b"{}")

        summary = await poller.poll_once()

        assert summary.manifests_found == 1
        assert summary.processed == 0
        assert summary.failed == 0
        assert summary.skipped == 0

    @pytest.mark.asyncio
    async def test_p1_invalid_state_record_is_not_a_claim(self, poller, store):
        """[P1] An unreadable state record is not a claim."""
        await put_manifest(store, create_manifest("p1"))
        await store.put(build_state_key("p1"), b"garbage")

        summary = await poller.poll_once()

        # get_or_create cannot parse the record either, so the project fails
        assert summary.skipped == 0
        assert summary.failed == 1

    @pytest.mark.asyncio
    async def test_p2_empty_store(self, poller):
        summary = await poller.poll_once()

        assert summary == PollSummary(
            started_at=summary.started_at,
            finished_at=summary.finished_at,
        )
        assert summary.finished_at is not None


class TestLoadManifest:
    @pytest.mark.asyncio
    async def test_p1_missing_manifest(self, poller):
        with pytest.raises(ManifestNotFoundError, match="uploads/p1/manifest.json"):
            await poller.load_manifest("p1")

    @pytest.mark.asyncio
    async def test_p1_mismatch_raises_validation_error(self, poller, store):
        await store.put(build_manifest_key("p1"), create_manifest("p2").to_json_bytes())

        with pytest.raises(ManifestValidationError, match="does not match"):
            await poller.load_manifest("p1")

    @pytest.mark.asyncio
    async def test_p1_process_project_resumes_stuck_project(self, poller, store, script_generator):
        """[P1] process_project bypasses the claim check, for operator resume."""
        await put_manifest(store, create_manifest("p1"))
        await put_state(store, create_state("p1", PipelineStage.CLASSIFY))

        final = await poller.process_project("p1")

        assert final.stage == PipelineStage.READY
        script_generator.generate.assert_awaited_once()


class TestPollSummary:
    def test_p2_to_dict_uses_camel_case(self):
        summary = PollSummary(manifests_found=3, processed=1, skipped=1, failed=1, failures={"p3": "boom"})

        data = summary.to_dict()

        assert data["manifestsFound"] == 3
        assert data["failures"] == {"p3": "boom"}
        assert data["finishedAt"] is None


class TestPollingLoop:
    @pytest.mark.asyncio
    async def test_p1_loop_stops_on_cancel(self):
        """[P1] Cancellation during the interval sleep ends the loop cleanly."""
        poller = AsyncMock()

        with patch(
            "proof_of_build.services.manifest_poller.asyncio.sleep",
            new_callable=AsyncMock,
            side_effect=[None, asyncio.CancelledError()],
        ) as mock_sleep:
            await run_polling_loop(poller, 30)

        assert poller.poll_once.await_count == 2
        assert [call.args[0] for call in mock_sleep.await_args_list] == [30, 30]

    @pytest.mark.asyncio
    async def test_p1_loop_survives_poll_errors(self):
        """[P1] An exception escaping poll_once triggers a backoff, not a crash."""
        poller = AsyncMock()
        poller.poll_once.side_effect = [RuntimeError("listing failed"), None]

        with patch(
            "proof_of_build.services.manifest_poller.asyncio.sleep",
            new_callable=AsyncMock,
            side_effect=[None, asyncio.CancelledError()],
        ) as mock_sleep:
            await run_polling_loop(poller, 30)

        assert poller.poll_once.await_count == 2
        assert [call.args[0] for call in mock_sleep.await_args_list] == [
            POLL_ERROR_BACKOFF_SECONDS,
            30,
        ]
