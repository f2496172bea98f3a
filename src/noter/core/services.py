"""Service container handed to collaborators (CLI commands, tests).

Built once with :func:`build_services` and closed at shutdown. Replaces
process-wide singletons: every caller receives the same explicitly
constructed stores.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from noter.core.config import AppConfig
from noter.core.console import get_logger
from noter.core.history import HistoryStore
from noter.core.models import PendingSubmission, SubmissionResult, SubmissionStatus
from noter.core.process import ProcessRunner, ProcessRunnerProtocol
from noter.core.processor import QueueProcessor
from noter.core.queue import QueueStore
from noter.core.submission import SubmissionStream, submit

logger = get_logger(__name__)


@dataclass
class NoterServices:
    config: AppConfig
    history: HistoryStore
    queue: QueueStore
    processor: QueueProcessor
    runner: ProcessRunnerProtocol

    async def submit(
        self,
        note_text: str,
        target_directory: str | Path,
        executable_path: str,
        model_id: str,
    ) -> SubmissionStream:
        """Start an interactive submission whose outcome is logged to history.

        Completed submissions are recorded as processed with an output
        preview, failures as failed. Cancelled submissions leave no trace.

        Raises:
            SpawnError: the tool could not be started.
        """
        directory = str(target_directory)

        async def _record(result: SubmissionResult) -> None:
            match result.status:
                case SubmissionStatus.COMPLETED:
                    await self.history.add_processed(note_text, directory, result.output_preview)
                case SubmissionStatus.FAILED:
                    await self.history.add_failed(note_text, directory)
                case SubmissionStatus.CANCELLED:
                    logger.debug("Submission cancelled; nothing recorded")

        return await submit(
            note_text,
            directory,
            executable_path,
            model_id,
            runner=self.runner,
            on_complete=_record,
        )

    async def record_spawn_failure(self, note_text: str, target_directory: str | Path) -> None:
        """Log a submission that never started as failed."""
        await self.history.add_failed(note_text, str(target_directory))

    async def enqueue_failed(
        self,
        note_text: str,
        target_directory: str | Path,
        model_id: str,
        executable_path: str,
        error: str,
    ) -> PendingSubmission:
        """Queue a failed interactive note for later retries."""
        submission = PendingSubmission(
            note_text=note_text,
            last_error=error,
            target_directory=str(target_directory),
            model_id=model_id,
            executable_path=executable_path,
        )
        await self.queue.enqueue(submission)
        return submission

    def close(self) -> None:
        logger.debug(
            "Closing services (%d queued, %d history entries)",
            self.queue.count,
            self.history.count,
        )


def build_services(
    config: AppConfig, *, runner: ProcessRunnerProtocol | None = None
) -> NoterServices:
    """Construct stores and processor from configuration."""
    active_runner = runner or ProcessRunner()
    history = HistoryStore(config.history_path)
    queue = QueueStore(config.queue_path, history)
    processor = QueueProcessor(
        queue,
        history,
        retry_delay=config.queue.retry_delay,
        runner=active_runner,
    )
    return NoterServices(
        config=config,
        history=history,
        queue=queue,
        processor=processor,
        runner=active_runner,
    )


__all__ = ["NoterServices", "build_services"]
