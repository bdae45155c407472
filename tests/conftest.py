"""
Pytest configuration: import bulk_text_render from the checkout.
"""

# Standard Library
import pathlib
import sys

REPO_ROOT = pathlib.Path(__file__).resolve().parent.parent


#============================================
def _ensure_repo_on_path() -> None:
	"""
	Put the repository root first on sys.path.
	"""
	if str(REPO_ROOT) not in sys.path:
		sys.path.insert(0, str(REPO_ROOT))


_ensure_repo_on_path()
