"""Background execution of indexing runs.

Uploads trigger indexing without waiting for it. The runner keeps a
reference to every scheduled task, bounds how many runs execute at once
and logs each outcome when the run completes. Runs of the same file
queue up in upload order and only take a pool slot once the previous run
of that file is done, so repeated uploads never starve other files.
"""

import asyncio

from services.context_vectors.ContextVectorService import ContextVectorService
from shared.helper.HelperConfig import HelperConfig
from shared.helper.KeyedLock import KeyedLock
from shared.models.results import OperationResult


class IndexingTaskRunner:
    """Bounded async worker pool for fire-and-forget index_file runs."""

    def __init__(self, helper_config: HelperConfig, service: ContextVectorService, max_concurrent_runs: int = 4) -> None:
        if max_concurrent_runs < 1:
            raise ValueError(f"max_concurrent_runs must be at least 1, got {max_concurrent_runs}.")
        self.logging = helper_config.get_logger()
        self._service = service
        self._sem = asyncio.Semaphore(max_concurrent_runs)
        # runs queued behind a run of the same file wait here, without a pool slot
        self._file_queue = KeyedLock()
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule_index_file(
        self,
        context_id: str,
        file_id: str,
        file_name: str,
        mime_type: str,
        raw_text: str | None,
    ) -> asyncio.Task:
        """Start an index_file run in the background and return immediately.

        Must be called from within a running event loop.

        Returns:
            asyncio.Task: Resolves to the run's OperationResult. It never raises
                unless it is cancelled.
        """
        task = asyncio.create_task(
            self._run(context_id, file_id, file_name, mime_type, raw_text),
            name=f"index_file:{context_id}:{file_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        self.logging.debug("Scheduled indexing for context %s file %s (%d pending).", context_id, file_id, self.pending)
        return task

    async def drain(self) -> list[OperationResult]:
        """Wait for every scheduled run to finish.

        Returns:
            list[OperationResult]: Results of the runs that were pending when drain was called.
        """
        if not self._tasks:
            return []
        results = await asyncio.gather(*list(self._tasks), return_exceptions=True)
        return [result for result in results if isinstance(result, OperationResult)]

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _run(
        self,
        context_id: str,
        file_id: str,
        file_name: str,
        mime_type: str,
        raw_text: str | None,
    ) -> OperationResult:
        async with self._file_queue.hold((context_id, file_id)):
            async with self._sem:
                return await self._service.index_file(context_id, file_id, file_name, mime_type, raw_text)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self.logging.warning("Indexing task %s was cancelled.", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            self.logging.error("Indexing task %s crashed: %r", task.get_name(), exc)
            return
        result: OperationResult = task.result()
        self.logging.info(
            "Indexing task %s finished: %s%s",
            task.get_name(),
            result.status.value,
            f" ({result.count} chunks)" if result.is_ok else f" ({result.detail})",
        )
