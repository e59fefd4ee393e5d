"""safefix: transactional removal of debug leftovers from source trees."""

from safefix._version import __version__
from safefix.core.config import SafeFixConfig, load_config
from safefix.core.models import ChangeSet, Edit, EditOperation, FixCandidate, FixRunResult
from safefix.fix.engine import SafeFixEngine

__all__ = [
    "__version__",
    "SafeFixConfig",
    "load_config",
    "ChangeSet",
    "Edit",
    "EditOperation",
    "FixCandidate",
    "FixRunResult",
    "SafeFixEngine",
]
