import threading

import pytest

import bulk_text_render.progress


ProgressTracker = bulk_text_render.progress.ProgressTracker


#============================================
def test_empty_batch_is_complete() -> None:
	"""
	A zero-total tracker reports 100 percent.
	"""
	tracker = ProgressTracker(0, display=False)
	assert tracker.get_progress_percentage() == 100
	assert tracker.get_completed() == 0
	assert tracker.get_total() == 0


#============================================
def test_percentage_is_floored() -> None:
	"""
	Percentages round down.
	"""
	tracker = ProgressTracker(3, display=False)
	tracker.increment()
	assert tracker.get_progress_percentage() == 33
	tracker.increment()
	assert tracker.get_progress_percentage() == 66
	tracker.increment()
	assert tracker.get_progress_percentage() == 100


#============================================
def test_concurrent_increments_are_not_lost() -> None:
	"""
	Many threads incrementing at once produce an exact count.
	"""
	tracker = ProgressTracker(800, display=False)

	def worker() -> None:
		for _ in range(100):
			tracker.increment()

	threads = [threading.Thread(target=worker) for _ in range(8)]
	for thread in threads:
		thread.start()
	for thread in threads:
		thread.join()
	assert tracker.get_completed() == 800
	assert tracker.get_progress_percentage() == 100


#============================================
def test_increment_prints_progress(capsys: pytest.CaptureFixture) -> None:
	"""
	Progress lines show current/total and percentage.
	"""
	tracker = ProgressTracker(2, prefix="Render")
	assert tracker.increment() == 1
	assert tracker.increment() == 2
	captured = capsys.readouterr().out
	assert "Render" in captured
	assert "1/2 (50%)" in captured
	assert "2/2 (100%)" in captured
	assert captured.endswith("\n")


#============================================
def test_negative_total_rejected() -> None:
	"""
	Negative totals are a programmer error.
	"""
	with pytest.raises(ValueError):
		ProgressTracker(-1)
