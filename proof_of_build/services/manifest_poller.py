"""Discovery poller: find unclaimed manifests and drive them through the executor.

Each poll lists the uploads namespace, keeps keys of the form
``uploads/<projectId>/manifest.json``, skips projects whose state is already
past ``ingest`` and processes the rest sequentially. A failure in one project
is logged and never aborts the batch.

Known Gap:
    The claim check is a plain read of the state record. Two overlapping polls
    can both see a project at ``ingest`` and both run the executor for it,
    duplicating generation calls (last snapshot write wins). There is no
    per-project lease.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from proof_of_build.clients.object_store import ObjectStore
from proof_of_build.constants import MANIFEST_SUFFIX, UPLOADS_PREFIX
from proof_of_build.exceptions import ManifestNotFoundError, ManifestValidationError
from proof_of_build.schemas import Manifest, State
from proof_of_build.services.manifest_service import parse_manifest
from proof_of_build.services.stage_executor import StageExecutor
from proof_of_build.services.state_store import StateStore
from proof_of_build.utils.keys import build_manifest_key, extract_project_id_from_key
from proof_of_build.utils.logging import get_logger

log = get_logger(__name__)

# Pause after an unexpected poll failure before the next cycle
POLL_ERROR_BACKOFF_SECONDS = 10


@dataclass
class PollSummary:
    """Outcome of one poll cycle.

    Attributes:
        manifests_found: Manifest keys seen under the uploads prefix
        processed: Projects driven through the executor without error
        skipped: Projects already claimed (stage past ingest)
        failed: Projects whose fetch, validation or execution raised
        failures: project_id -> error message for failed projects
    """

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None
    manifests_found: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    failures: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "manifestsFound": self.manifests_found,
            "processed": self.processed,
            "skipped": self.skipped,
            "failed": self.failed,
            "failures": dict(self.failures),
        }


class ManifestPoller:
    def __init__(self, store: ObjectStore, state_store: StateStore, executor: StageExecutor):
        self.store = store
        self.state_store = state_store
        self.executor = executor
        self.last_summary: PollSummary | None = None

    async def list_manifest_keys(self) -> list[str]:
        keys = await self.store.list_keys(UPLOADS_PREFIX)
        return [key for key in keys if key.endswith(MANIFEST_SUFFIX)]

    async def count_manifests(self) -> int:
        return len(await self.list_manifest_keys())

    async def load_manifest(self, project_id: str) -> Manifest:
        """Fetch and validate a project's manifest.

        Raises:
            ManifestValidationError: If the manifest is missing, malformed,
                or names a different project than its key
        """
        key = build_manifest_key(project_id)
        obj = await self.store.get(key)
        if obj is None:
            raise ManifestNotFoundError(f"Manifest not found: {key}", details={"key": key})
        manifest = parse_manifest(obj.body)
        if manifest.project_id != project_id:
            raise ManifestValidationError(
                f"Manifest projectId {manifest.project_id!r} does not match key {key}",
                details={"key": key, "manifest_project_id": manifest.project_id},
            )
        return manifest

    async def process_project(self, project_id: str) -> State:
        """Load the manifest and state for one project and run the executor.

        The claim check is not applied here; terminal stages are still honored
        by the executor.
        """
        manifest = await self.load_manifest(project_id)
        state = await self.state_store.get_or_create(project_id)
        return await self.executor.execute(manifest, state)

    async def poll_once(self) -> PollSummary:
        """Run one discovery cycle over all manifests, sequentially."""
        summary = PollSummary()
        poll_id = str(uuid.uuid4())
        manifest_keys = await self.list_manifest_keys()
        summary.manifests_found = len(manifest_keys)
        log.info("poll_started", poll_id=poll_id, manifests_found=summary.manifests_found)

        for key in manifest_keys:
            project_id = extract_project_id_from_key(key)
            if project_id is None:
                continue

            try:
                if await self.state_store.is_already_processed(project_id):
                    summary.skipped += 1
                    continue
                final_state = await self.process_project(project_id)
            except Exception as e:
                summary.failed += 1
                summary.failures[project_id] = str(e) or type(e).__name__
                log.error(
                    "project_processing_failed",
                    poll_id=poll_id,
                    project_id=project_id,
                    manifest_key=key,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            summary.processed += 1
            log.info(
                "project_processed",
                poll_id=poll_id,
                project_id=project_id,
                stage=final_state.stage.value,
            )

        summary.finished_at = datetime.now(timezone.utc)
        self.last_summary = summary
        log.info(
            "poll_completed",
            poll_id=poll_id,
            manifests_found=summary.manifests_found,
            processed=summary.processed,
            skipped=summary.skipped,
            failed=summary.failed,
        )
        return summary


async def run_polling_loop(poller: ManifestPoller, interval_seconds: int) -> None:
    """Background task: poll for manifests every ``interval_seconds``.

    Runs until cancelled. Per-project failures are handled inside poll_once;
    anything escaping it (e.g. a listing failure) is logged and the loop
    continues after a short pause.
    """
    log.info("polling_loop_started", interval_seconds=interval_seconds)

    while True:
        try:
            await poller.poll_once()
            await asyncio.sleep(interval_seconds)
        except asyncio.CancelledError:
            log.info("polling_loop_cancelled")
            break
        except Exception as e:
            log.error(
                "polling_loop_error",
                correlation_id=str(uuid.uuid4()),
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            await asyncio.sleep(POLL_ERROR_BACKOFF_SECONDS)
