#!/usr/bin/env python3
"""
Audit simulation for the wheel: segment frequencies and return-to-player.

Draws N rounds headlessly with a seeded RNG, settles each one through the
Ledger, and writes a CSV with one row per segment (observed vs expected
frequency) plus the chi-squared statistic and RTP of the run.

Usage:
    python -m scripts.audit_sim --rounds 100000 --seed AUDIT_2025 --out out/audit_cash.csv
    python -m scripts.audit_sim --mode free --rounds 100000 --seed AUDIT_2025 --out out/audit_free.csv
"""
import argparse
import csv
import hashlib
import math
import subprocess
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from spinx.config import settings
from spinx.config_hash import get_config_hash
from spinx.logic.engine import build_segment_table
from spinx.logic.ledger import Ledger
from spinx.logic.models import WalletState
from spinx.logic.rng import SeededRNG
from spinx.logic.segments import GiftKind, SegmentTable
from spinx.logic.selector import OutcomeSelector


# Upper-tail standard normal quantile for p = 0.001
Z_999 = 3.090232


@dataclass
class SimulationStats:
    """Statistics accumulated during simulation."""
    rounds: int = 0
    total_wagered: float = 0.0
    total_won: float = 0.0
    wins: int = 0
    free_spins_won: int = 0
    threshold_rewards: int = 0
    counts: list[int] = field(default_factory=list)


def get_git_commit() -> str:
    """Get current git commit hash (short)."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            cwd=Path(__file__).parent.parent.parent,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return "unknown"


def get_timestamp_iso() -> str:
    """Get ISO 8601 UTC timestamp."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def seed_to_int(seed_str: str) -> int:
    """Convert string seed to integer deterministically."""
    return int(hashlib.sha256(seed_str.encode()).hexdigest(), 16) % (2**31)


def expected_frequencies(table: SegmentTable) -> list[float]:
    """Configured draw probability of each segment."""
    total = table.total_weight()
    if total == 0:
        return [1 / len(table)] * len(table)
    return [s.weight / total for s in table]


def chi_squared(counts: list[int], probabilities: list[float]) -> tuple[float, int]:
    """
    Pearson chi-squared statistic of observed counts against probabilities.

    Segments with zero probability are left out (they must never be drawn).
    Returns (statistic, degrees_of_freedom).
    """
    n = sum(counts)
    statistic = 0.0
    cells = 0
    for observed, p in zip(counts, probabilities):
        if p <= 0:
            continue
        expected = n * p
        statistic += (observed - expected) ** 2 / expected
        cells += 1
    return statistic, max(cells - 1, 1)


def chi_squared_critical(df: int, z: float = Z_999) -> float:
    """Wilson-Hilferty approximation of the chi-squared upper quantile."""
    a = 2 / (9 * df)
    return df * (1 - a + z * math.sqrt(a)) ** 3


def run_simulation(
    mode: str,
    rounds: int,
    seed_str: str,
    stake: float = 100.0,
    table: SegmentTable | None = None,
    verbose: bool = False,
) -> SimulationStats:
    """
    Run headless simulation.

    Args:
        mode: 'cash' (every round stakes `stake`) or 'free' (free-spin bets)
        rounds: Number of rounds to simulate
        seed_str: Seed string for reproducibility
        stake: Cash stake per round
        table: Segment table (default from settings)
        verbose: Print progress

    Returns:
        SimulationStats with aggregated results
    """
    table = table or build_segment_table(settings)
    selector = OutcomeSelector(table, SeededRNG(seed=seed_to_int(seed_str)))
    is_free_mode = mode == "free"

    stats = SimulationStats(counts=[0] * len(table))
    progress_interval = max(1, rounds // 100)

    for round_count in range(rounds):
        if verbose and round_count % progress_interval == 0:
            pct = (round_count / rounds) * 100
            print(f"\rProgress: {pct:.1f}%", end="", flush=True)

        # Fresh wallet each round so the run measures the wheel, not a bankroll
        wallet = WalletState(balance=stake, free_spins=1)
        ledger = Ledger(wallet, settings)
        bet = ledger.place_bet(stake, uses_free_spin=is_free_mode)

        index = selector.pick()
        resolution = ledger.resolve(bet, table.segment_at(index))

        stats.counts[index] += 1
        stats.rounds += 1
        stats.total_wagered += bet.stake_amount
        stats.total_won += resolution.payout
        if resolution.is_win:
            stats.wins += 1
        if resolution.gift is not None and resolution.gift.kind == GiftKind.FREE_SPIN:
            stats.free_spins_won += 1
        if resolution.threshold_reward:
            stats.threshold_rewards += 1

    if verbose:
        print("\rProgress: 100.0%")

    return stats


def generate_csv(
    mode: str,
    rounds: int,
    seed_str: str,
    stats: SimulationStats,
    table: SegmentTable,
    output_path: str,
) -> None:
    """Write one row per segment with run-level columns repeated."""
    timestamp = get_timestamp_iso()
    git_commit = get_git_commit()
    config_hash = get_config_hash(table, settings)
    probabilities = expected_frequencies(table)
    statistic, df = chi_squared(stats.counts, probabilities)

    rtp = (stats.total_won / stats.total_wagered * 100) if stats.total_wagered > 0 else 0
    hit_freq = (stats.wins / stats.rounds * 100) if stats.rounds > 0 else 0

    rows = []
    for index, segment in enumerate(table):
        observed = stats.counts[index] / stats.rounds if stats.rounds > 0 else 0
        rows.append({
            "timestamp": timestamp,
            "git_commit": git_commit,
            "config_hash": config_hash,
            "mode": mode,
            "rounds": rounds,
            "seed": seed_str,
            "segment_index": index,
            "segment_label": segment.label,
            "weight": segment.weight,
            "expected_freq": f"{probabilities[index]:.6f}",
            "observed_freq": f"{observed:.6f}",
            "chi_squared": f"{statistic:.4f}",
            "chi_squared_df": df,
            "chi_squared_critical_999": f"{chi_squared_critical(df):.4f}",
            "rtp": f"{rtp:.4f}",
            "hit_freq": f"{hit_freq:.4f}",
        })

    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)

    with open(output_file, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=rows[0].keys())
        writer.writeheader()
        writer.writerows(rows)

    print(f"CSV written to: {output_path}")


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Wheel audit simulation")
    parser.add_argument(
        "--mode",
        choices=["cash", "free"],
        default="cash",
        help="Bet type for every simulated round",
    )
    parser.add_argument("--rounds", type=int, required=True, help="Number of rounds to simulate")
    parser.add_argument("--seed", type=str, required=True, help="Seed string for reproducibility")
    parser.add_argument("--stake", type=float, default=100.0, help="Cash stake per round")
    parser.add_argument("--out", type=str, required=True, help="Output CSV path")
    parser.add_argument("--verbose", action="store_true", help="Show progress")

    args = parser.parse_args()

    table = build_segment_table(settings)
    print(f"Running simulation: mode={args.mode}, rounds={args.rounds}, seed={args.seed}")
    print(f"Config hash: {get_config_hash(table, settings)}")

    stats = run_simulation(
        mode=args.mode,
        rounds=args.rounds,
        seed_str=args.seed,
        stake=args.stake,
        table=table,
        verbose=args.verbose,
    )
    generate_csv(args.mode, args.rounds, args.seed, stats, table, args.out)

    statistic, df = chi_squared(stats.counts, expected_frequencies(table))
    critical = chi_squared_critical(df)
    rtp = (stats.total_won / stats.total_wagered * 100) if stats.total_wagered > 0 else 0

    print("\nSummary:")
    print(f"  Rounds: {stats.rounds}")
    print(f"  Total wagered: {stats.total_wagered:.2f}")
    print(f"  Total won: {stats.total_won:.2f}")
    print(f"  RTP: {rtp:.4f}%")
    print(f"  Hit frequency: {(stats.wins / stats.rounds * 100):.4f}%")
    print(f"  Free spins won: {stats.free_spins_won}")
    print(f"  Badge threshold rewards: {stats.threshold_rewards}")
    print(f"  Chi-squared: {statistic:.4f} (df={df}, critical@0.999={critical:.4f})")

    if statistic > critical:
        print("ASSERTION FAILED: segment frequencies diverge from configured weights")
        return 1

    print("ASSERTION PASSED: segment frequencies match configured weights")
    return 0


if __name__ == "__main__":
    sys.exit(main())
