"""
Adaptive batch execution for render jobs.

Small batches run sequentially on the calling thread. Larger batches get
one asyncio task per job; a semaphore caps how many tasks are inside the
render callback at once and the callback itself runs on a worker thread.
A failing job is recorded and never stops its siblings.
"""

# Standard Library
import asyncio
import concurrent.futures
import logging
import threading
import typing

# local repo modules
import bulk_text_render as btr
import bulk_text_render.config
import bulk_text_render.progress


RenderJob = btr.config.RenderJob
JobFailure = btr.config.JobFailure
BatchOutcome = btr.config.BatchOutcome
ProgressTracker = btr.progress.ProgressTracker

DEFAULT_SEQUENTIAL_THRESHOLD = btr.config.DEFAULT_SEQUENTIAL_THRESHOLD
DEFAULT_BATCH_TIMEOUT = btr.config.DEFAULT_BATCH_TIMEOUT
TIMEOUT_REASON = "Cancelled: batch timeout exceeded"

RenderCallback = typing.Callable[[RenderJob], object]

logger = logging.getLogger(__name__)


class BatchRecorder:
	"""
	Collects per-job results from any number of workers.
	"""

	def __init__(self) -> None:
		self._lock = threading.Lock()
		self._success_count = 0
		self._failures: list[JobFailure] = []

	def record_success(self) -> None:
		with self._lock:
			self._success_count += 1

	def record_failure(self, job: RenderJob, reason: str) -> None:
		with self._lock:
			self._failures.append(JobFailure(text=job.text, error=reason))

	def outcome(self, timed_out: bool = False) -> BatchOutcome:
		with self._lock:
			return BatchOutcome(
				success_count=self._success_count,
				failures=tuple(self._failures),
				timed_out=timed_out,
			)


#============================================
def validate_batch_arguments(
	jobs: list[RenderJob] | None,
	render_callback: RenderCallback | None,
	max_concurrency: int,
	progress_tracker: ProgressTracker | None,
	sequential_threshold: int,
	timeout: float,
) -> None:
	"""
	Reject programmer errors before any job is dispatched.
	"""
	if jobs is None:
		raise ValueError("Job list is required")
	if render_callback is None or not callable(render_callback):
		raise ValueError("A callable render callback is required")
	if progress_tracker is None:
		raise ValueError("A progress tracker is required")
	if max_concurrency < 1:
		raise ValueError(f"max_concurrency must be at least 1: {max_concurrency}")
	if sequential_threshold < 0:
		raise ValueError(f"sequential_threshold cannot be negative: {sequential_threshold}")
	if timeout <= 0:
		raise ValueError(f"timeout must be positive: {timeout}")


#============================================
def describe_error(error: BaseException) -> str:
	return f"{type(error).__name__}: {error}"


#============================================
def handle_job_error(job: RenderJob, error: Exception) -> str:
	"""
	Log a failed job.

	Args:
		job: Failed job.
		error: Raised error.

	Returns:
		Error description recorded in the outcome.
	"""
	reason = describe_error(error)
	logger.error("Failed to render '%s': %s", job.text, reason, exc_info=error)
	return reason


#============================================
def advance_progress(progress_tracker: ProgressTracker, job: RenderJob) -> None:
	"""
	Count a finished job without letting progress reporting fail the batch.

	Args:
		progress_tracker: Tracker to increment.
		job: Job that just succeeded.
	"""
	try:
		progress_tracker.increment()
	except Exception as error:
		logger.warning("Progress update failed after '%s': %s", job.text, describe_error(error))


#============================================
def execute_all(
	jobs: list[RenderJob],
	render_callback: RenderCallback,
	max_concurrency: int,
	progress_tracker: ProgressTracker,
	sequential_threshold: int = DEFAULT_SEQUENTIAL_THRESHOLD,
	timeout: float = DEFAULT_BATCH_TIMEOUT,
) -> BatchOutcome:
	"""
	Run every job and summarize the results.

	Must not be called from a running event loop; use execute_all_async
	there instead.

	Args:
		jobs: Render jobs.
		render_callback: Called once per job; raising marks the job failed.
		max_concurrency: Maximum concurrently running callbacks.
		progress_tracker: Incremented once per successful job.
		sequential_threshold: Batches smaller than this run sequentially.
		timeout: Overall batch timeout in seconds (parallel mode).

	Returns:
		BatchOutcome.
	"""
	validate_batch_arguments(
		jobs, render_callback, max_concurrency, progress_tracker, sequential_threshold, timeout,
	)
	if not jobs:
		logger.debug("No jobs to execute")
		return BatchOutcome(success_count=0)
	if len(jobs) < sequential_threshold:
		logger.info("Processing %d jobs sequentially (below threshold of %d)", len(jobs), sequential_threshold)
		outcome = execute_sequentially(jobs, render_callback, progress_tracker)
	else:
		logger.info("Processing %d jobs in parallel with %d workers", len(jobs), max_concurrency)
		outcome = asyncio.run(
			execute_in_parallel(jobs, render_callback, max_concurrency, progress_tracker, timeout)
		)
	report_failures(outcome)
	return outcome


#============================================
async def execute_all_async(
	jobs: list[RenderJob],
	render_callback: RenderCallback,
	max_concurrency: int,
	progress_tracker: ProgressTracker,
	sequential_threshold: int = DEFAULT_SEQUENTIAL_THRESHOLD,
	timeout: float = DEFAULT_BATCH_TIMEOUT,
) -> BatchOutcome:
	"""
	Coroutine form of execute_all for callers inside an event loop.

	Sequential batches still run on the loop's thread.
	"""
	validate_batch_arguments(
		jobs, render_callback, max_concurrency, progress_tracker, sequential_threshold, timeout,
	)
	if not jobs:
		return BatchOutcome(success_count=0)
	if len(jobs) < sequential_threshold:
		outcome = execute_sequentially(jobs, render_callback, progress_tracker)
	else:
		outcome = await execute_in_parallel(jobs, render_callback, max_concurrency, progress_tracker, timeout)
	report_failures(outcome)
	return outcome


#============================================
def execute_sequentially(
	jobs: list[RenderJob],
	render_callback: RenderCallback,
	progress_tracker: ProgressTracker,
) -> BatchOutcome:
	"""
	Run jobs in input order on the calling thread.
	"""
	recorder = BatchRecorder()
	for job in jobs:
		try:
			logger.debug("Rendering job for text: %s", job.text)
			render_callback(job)
		except Exception as error:
			recorder.record_failure(job, handle_job_error(job, error))
			continue
		recorder.record_success()
		advance_progress(progress_tracker, job)
	return recorder.outcome()


#============================================
async def execute_in_parallel(
	jobs: list[RenderJob],
	render_callback: RenderCallback,
	max_concurrency: int,
	progress_tracker: ProgressTracker,
	timeout: float,
) -> BatchOutcome:
	"""
	Run jobs as concurrent tasks bounded by a semaphore.

	Tasks still outstanding when the timeout elapses are cancelled and
	recorded as failures. Callbacks already running on a worker thread
	cannot be interrupted and may finish after this returns.
	"""
	recorder = BatchRecorder()
	semaphore = asyncio.Semaphore(max_concurrency)
	loop = asyncio.get_running_loop()
	pool = concurrent.futures.ThreadPoolExecutor(
		max_workers=max_concurrency,
		thread_name_prefix="render-worker",
	)

	async def run_job(job: RenderJob) -> None:
		try:
			async with semaphore:
				logger.debug("Rendering job for text: %s", job.text)
				await loop.run_in_executor(pool, render_callback, job)
		except asyncio.CancelledError:
			recorder.record_failure(job, TIMEOUT_REASON)
			raise
		except Exception as error:
			recorder.record_failure(job, handle_job_error(job, error))
			return
		recorder.record_success()
		advance_progress(progress_tracker, job)

	timed_out = False
	try:
		tasks = [asyncio.create_task(run_job(job)) for job in jobs]
		_done, pending = await asyncio.wait(tasks, timeout=timeout)
		if pending:
			timed_out = True
			logger.warning("%d job(s) did not complete within %.0f seconds", len(pending), timeout)
			for task in pending:
				task.cancel()
			await asyncio.gather(*pending, return_exceptions=True)
	finally:
		pool.shutdown(wait=False, cancel_futures=True)
	return recorder.outcome(timed_out=timed_out)


#============================================
def report_failures(outcome: BatchOutcome) -> None:
	if not outcome.failures:
		return
	logger.warning(
		"%d job(s) failed during rendering: %s",
		outcome.failure_count,
		", ".join(outcome.failed_texts()),
	)
