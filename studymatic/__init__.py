"""
Public interface for *studymatic*.

The package re-exports the records and the orchestrator most callers need so
that embedding code can simply do::

    from studymatic import SyncEngine, Study

Module attributes
-----------------
__version__ : str
    Semantic version derived from the installed distribution metadata.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__: str = version("studymatic")
except PackageNotFoundError:
    # Source checkout without an installed wheel.
    __version__ = "0.0.0"

from .models import Category, MirrorDocument, MirrorEntry, Study, Variable  # noqa: E402
from .mirror.engine import SyncEngine  # noqa: E402

__all__: list[str] = [
    "Category",
    "MirrorDocument",
    "MirrorEntry",
    "Study",
    "SyncEngine",
    "Variable",
    "__version__",
]
