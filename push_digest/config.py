"""
Configuration model for push-digest.

The CLI constructs a Config instance and passes it down into the push
processing code so behavior can be adjusted without relying on global
state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class Config:
    """
    Top-level configuration for a push-digest run.

    repository is the directory git runs in; None means the current
    directory (or whatever GIT_DIR points at when running as a hook).
    """

    repository: Optional[str] = None
    skip_malformed_diffs: bool = False
    show_stat: bool = False
    verbosity: int = 0
