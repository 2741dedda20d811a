"""Config hash shared by the /config endpoint and the audit script.

The hash covers everything that changes payout math: the segment table and
the ledger rules. Two runs with the same hash draw and pay identically for
the same seed.
"""
import hashlib
import json

from spinx.config import Settings, settings as default_settings
from spinx.logic.segments import SegmentTable


def get_config_hash(table: SegmentTable, config: Settings | None = None) -> str:
    """Return a 16-char hex hash of the payout-relevant configuration."""
    config = config or default_settings
    config_snapshot = {
        "segments": table.to_list(),
        "min_stake": config.min_stake,
        "reference_stake_unit": config.reference_stake_unit,
        "badge_threshold": config.badge_threshold,
    }
    canonical = json.dumps(config_snapshot, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()[:16]
