"""Version information for issue-notion-sync.

Single source of truth for version number.
"""

__version__ = "1.2.0"
__version_info__ = tuple(int(part) for part in __version__.split("."))

# Version history:
# 1.2.0 - Body sync appends a paragraph to empty pages, skips unchanged bodies
# 1.1.0 - Multi-repository sessions with a single identity map
# 1.0.0 - Initial release
