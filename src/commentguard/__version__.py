"""Version information for Comment Guard.

Single source of truth for version number.
Follows PEP 440 and semantic versioning principles.
"""

__version__ = "1.3.0"
__version_info__ = tuple(int(part) for part in __version__.split("."))

# Version history:
# 1.3.0 - Secondary provider fallback, batch recheck pagination
# 1.2.0 - Per-model backoff, success-triggered throttle
# 1.1.0 - Author field checks, post context digest
# 1.0.0 - Initial release
