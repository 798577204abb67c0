"""Single-use breadcrumb navigation tokens.

A breadcrumb jump moves a branch's history cursor and then asks the host to
load the entry's url.  The url change comes back as an ordinary
``tab-updated`` event, which must not be recorded as a new navigation.  The
bridge issues a token for the branch before loading and the next url update
for that branch consumes it.
"""
from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class NavigationTokens:
    """Pending breadcrumb navigations, keyed by branch id."""

    def __init__(self) -> None:
        self._pending: dict[str, str | None] = {}

    def issue(self, branch_id: str, url: str | None = None) -> None:
        """Mark the next url update of *branch_id* as a breadcrumb jump.

        When *url* is given, only an update to that url consumes the token;
        a different url clears it and counts as a fresh navigation.
        """
        self._pending[branch_id] = url

    def consume(self, branch_id: str, url: str | None = None) -> bool:
        """Consume the token of *branch_id*; True if one was pending and matched."""
        if branch_id not in self._pending:
            return False
        expected = self._pending.pop(branch_id)
        if expected is not None and url is not None and expected != url:
            logger.debug(
                "NavigationTokens: %r loaded %r instead of %r; treating as navigation",
                branch_id,
                url,
                expected,
            )
            return False
        return True

    def discard(self, branch_id: str) -> None:
        self._pending.pop(branch_id, None)

    def pending(self, branch_id: str) -> bool:
        return branch_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)


__all__ = ["NavigationTokens"]
