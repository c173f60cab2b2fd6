"""Workshop map names (build + install tooling).

Core design goals:
- Never re-derive a map identity that is already known
- Exact-once marker splicing into the game's text formats
- Backup before every mutation of the shared client config
- Centralized logging
"""

__version__ = "0.4.0"

__all__ = ["__version__"]
