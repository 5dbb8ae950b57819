"""Transfer Stats - pure shaping of per-status counts into the reporting summary.

Invariants:
    - Output always carries total plus one key per TransferStatus
    - Missing statuses default to 0; unknown statuses count toward total only
    - Never raises
"""

from transfer_scheduler.core.domain_types import TransferStatus


def compute_transfer_stats(counts: dict[str, int]) -> dict:
    """Flatten status counts into {total, scheduled, executing, ...}. Pure, no IO."""
    stats = {"total": sum(counts.values())}
    for status in TransferStatus:
        stats[status.value] = counts.get(status.value, 0)
    return stats
