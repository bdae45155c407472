"""
Thread-safe completion counter for render batches.
"""

# Standard Library
import logging
import threading

# local repo modules
import bulk_text_render as btr
import bulk_text_render.config


PROGRESS_BAR_WIDTH = btr.config.PROGRESS_BAR_WIDTH

logger = logging.getLogger(__name__)


#============================================
def print_progress(prefix: str, current: int, total: int) -> None:
	"""
	Print a simple progress bar.

	Args:
		prefix: Label text.
		current: Current count.
		total: Total count.
	"""
	if total <= 0:
		return
	percent = (current * 100) // total
	filled = (PROGRESS_BAR_WIDTH * percent) // 100
	bar = "#" * filled + "-" * (PROGRESS_BAR_WIDTH - filled)
	end = "\n" if current >= total else "\r"
	print(f"{prefix} [{bar}] {current}/{total} ({percent}%)", end=end, flush=True)


class ProgressTracker:
	"""
	Shared completion counter.

	Only the integer update happens under the lock; the progress line is
	emitted after it is released so workers never wait on console output.
	"""

	def __init__(self, total: int, prefix: str = "Progress", display: bool = True) -> None:
		if total < 0:
			raise ValueError(f"Progress total cannot be negative: {total}")
		self._total = total
		self._completed = 0
		self._lock = threading.Lock()
		self.prefix = prefix
		self.display = display

	def increment(self) -> int:
		"""
		Record one completed job and emit a progress notification.

		Returns:
			Completed count after this increment.
		"""
		with self._lock:
			self._completed += 1
			current = self._completed
		logger.debug("%s: %d/%d", self.prefix, current, self._total)
		if self.display:
			print_progress(self.prefix, current, self._total)
		return current

	def get_completed(self) -> int:
		return self._completed

	def get_total(self) -> int:
		return self._total

	def get_progress_percentage(self) -> int:
		# an empty batch is vacuously complete
		if self._total == 0:
			return 100
		return (self._completed * 100) // self._total
