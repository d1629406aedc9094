"""
Match-clock arithmetic for the live reconciler.

The displayed minute is derived, never incremented:
    anchor elapsed + whole minutes since the anchor time, during active play.
A reconciliation tick only moves the anchor.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from shared.models.enums import FixtureStatus


def displayed_elapsed(
    anchor_elapsed: Optional[int],
    anchor_at: datetime,
    status: FixtureStatus,
    now: datetime,
) -> Optional[int]:
    if anchor_elapsed is None:
        return None
    if not status.is_active_play:
        return anchor_elapsed
    minutes = int(max(0.0, (now - anchor_at).total_seconds()) // 60)
    return anchor_elapsed + minutes


def reconcile_elapsed(
    local_estimate: Optional[int],
    authoritative: Optional[int],
    tolerance: int,
    inclusive: bool = True,
) -> tuple[Optional[int], bool]:
    """
    Pick the value to anchor on after a tick.

    Keeps ``local_estimate`` while it is within ``tolerance`` minutes of the
    authoritative value (boundary included when ``inclusive``); otherwise
    snaps. Returns ``(value, snapped)``.
    """
    if authoritative is None:
        return local_estimate, False
    if local_estimate is None:
        return authoritative, False
    delta = abs(authoritative - local_estimate)
    within = delta <= tolerance if inclusive else delta < tolerance
    if within:
        return local_estimate, False
    return authoritative, True
