#!/usr/bin/env python3
"""
GenerateSnapshot.py

Purpose
=======
This script consolidates three per-chain holder snapshots into the single
CoolCat catdrop snapshot:

  1) Cosmos Hub snapshot     (ATOM stakers, plus the "outside top 20" bonus)
  2) Juno snapshot           (JUNO stakers)
  3) Chihuahua snapshot      (HUAHUA stakers)

The same participant shows up once per chain under a different bech32 prefix
(cosmos1..., juno1..., chihuahua1...). The underlying 20-byte payload is the
same, so every address is re-encoded under the CoolCat prefix and that string
is used as the merge key ("canonical identity").

Inputs
======
Each input is a JSON file with an "accounts" member, either a list of records
or an object whose values are records.

1) Hub snapshot records:
       {"atom_address": "cosmos1...", "atom_staker": true, "atom_bonus": false}
   - atom_bonus is set when the holder delegates outside the top 20 validators.

2) Juno snapshot records:
       {"juno_address": "juno1...", "juno_staker": true}

3) Chihuahua snapshot records:
       {"huahua_address": "chihuahua1...", "huahua_staker": true}

Missing flags default to false.

Computation Details
===================
Step A — Merge (fixed order: Hub, then Juno, then Chihuahua)
  canonical = bech32(prefix, payload(native_address))
  Each chain only ever writes its own fields on the merged account, so a
  later chain never clobbers what an earlier chain set. A duplicate address
  inside one chain's list simply overwrites that chain's fields (last wins).

Step B — Reward units
  units = sum over accounts of:
            atom_staker + juno_staker + huahua_staker   (one unit each)
          + atom_bonus                                   (one extra unit)

Step C — Base reward (integer floor division, uccat)
  base_reward = total_supply // units
  The last (total_supply % units) uccat stay unallocated.

Step D — Per-account amount
  airdrop_amount = base_reward * (staker flags set + atom_bonus)

Output
======
{
    "total_catdrop_amount": "3500000000000000",
    "accounts": {
        "ccat1...": {
            "atom_address": "...", "juno_address": "...", "huahua_address": "...",
            "atom_bonus": false, "atom_staker": true, "juno_staker": false,
            "huahua_staker": false, "airdrop_amount": "..."
        }
    }
}
Accounts are written sorted by canonical address so repeated runs produce
byte-identical files. Amounts are decimal strings (they overflow float64).

Failure behavior
================
- Any malformed address (bad checksum, bad charset, bad payload) aborts the
  whole run with InvalidAddressEncoding. Skipping a record would silently
  shift every other holder's share.
- If no account carries a single reward unit the run aborts with
  NoEligibleRewardUnits; there is nothing to divide the supply by.

Usage
=====
    python GenerateSnapshot.py \
        hub-snapshot.json juno-snapshot.json huahua-snapshot.json \
        snapshot.json [prefix] [total_supply_uccat]

Example:
    python GenerateSnapshot.py hub.json juno.json huahua.json snapshot.json ccat 3500000000000000
"""

import json
import sys
from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bech32 import bech32_decode, bech32_encode, convertbits

DEFAULT_PREFIX = "ccat"
DEFAULT_TOTAL_SUPPLY = 3_500_000_000_000_000  # 3.5B CCAT in uccat
UCCAT_PER_CCAT = Decimal(1_000_000)

MAX_HRP_LENGTH = 83
MAX_ADDR_LEN = 255
# 255 payload bytes under an 83-character prefix still fit, so re-encoding
# never produces a string decode_address would refuse.
MAX_BECH32_LENGTH = 1023


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class SnapshotError(Exception):
    """Base class for bad snapshot input data."""


class InvalidAddressEncoding(SnapshotError, ValueError):
    def __init__(self, address: Any, reason: str, chain: Optional[str] = None):
        self.address = address
        self.reason = reason
        self.chain = chain
        where = f" in {chain} snapshot" if chain else ""
        super().__init__(f"invalid address {address!r}{where}: {reason}")


class NoEligibleRewardUnits(SnapshotError, ArithmeticError):
    def __init__(self, num_accounts: int):
        self.num_accounts = num_accounts
        super().__init__(
            f"no reward units across {num_accounts} accounts; "
            "nothing to divide the catdrop supply by"
        )


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HubAccount:
    atom_address: str
    atom_staker: bool = False
    atom_bonus: bool = False


@dataclass(frozen=True)
class JunoAccount:
    juno_address: str
    juno_staker: bool = False


@dataclass(frozen=True)
class HuahuaAccount:
    huahua_address: str
    huahua_staker: bool = False


@dataclass
class SnapshotAccount:
    """One participant reconciled across all three chains."""

    atom_address: str = ""
    juno_address: str = ""
    huahua_address: str = ""
    atom_bonus: bool = False
    atom_staker: bool = False
    juno_staker: bool = False
    huahua_staker: bool = False
    airdrop_amount: int = 0

    def staking_units(self) -> int:
        return int(self.atom_staker) + int(self.juno_staker) + int(self.huahua_staker)

    def bonus_units(self) -> int:
        return int(self.atom_bonus)

    def reward_units(self) -> int:
        return self.staking_units() + self.bonus_units()


@dataclass(frozen=True)
class CatdropSnapshot:
    total_catdrop_amount: int
    accounts: Dict[str, SnapshotAccount] = field(default_factory=dict)


@dataclass(frozen=True)
class SnapshotStats:
    total_accounts: int
    staking_rewards: int
    bonus_rewards: int
    base_reward: int
    average_reward: int
    total_allocated: int
    unallocated: int


# ---------------------------------------------------------------------------
# Address re-encoding
# ---------------------------------------------------------------------------

def validate_prefix(prefix: str) -> str:
    """Check that `prefix` can be used as a bech32 human-readable part."""
    if not isinstance(prefix, str) or not prefix:
        raise InvalidAddressEncoding(prefix, "empty bech32 prefix")
    if len(prefix) > MAX_HRP_LENGTH:
        raise InvalidAddressEncoding(prefix, f"bech32 prefix longer than {MAX_HRP_LENGTH} characters")
    if any(ord(c) < 33 or ord(c) > 126 for c in prefix):
        raise InvalidAddressEncoding(prefix, "bech32 prefix has non-printable characters")
    if prefix != prefix.lower():
        raise InvalidAddressEncoding(prefix, "bech32 prefix must be lowercase")
    return prefix


def decode_address(address: str) -> Tuple[str, bytes]:
    """
    Decode a bech32 address into (prefix, payload bytes).

    Raises InvalidAddressEncoding on bad checksum, mixed case, characters
    outside the bech32 charset, strings longer than MAX_BECH32_LENGTH, a 5-bit
    payload that does not pack back into whole bytes, or a payload that is
    empty or longer than MAX_ADDR_LEN bytes.
    """
    if not isinstance(address, str) or not address:
        raise InvalidAddressEncoding(address, "empty address")
    if len(address) > MAX_BECH32_LENGTH:
        raise InvalidAddressEncoding(address, f"address longer than {MAX_BECH32_LENGTH} characters")

    hrp, data = bech32_decode(address)
    if hrp is None or data is None:
        raise InvalidAddressEncoding(address, "not a valid bech32 string")

    payload = convertbits(data, 5, 8, False)
    if payload is None:
        raise InvalidAddressEncoding(address, "bech32 payload has invalid padding")
    if not payload:
        raise InvalidAddressEncoding(address, "empty address payload")
    if len(payload) > MAX_ADDR_LEN:
        raise InvalidAddressEncoding(address, f"address payload longer than {MAX_ADDR_LEN} bytes")

    return hrp, bytes(payload)


def reencode_address(address: str, prefix: str) -> str:
    """
    Return the canonical identity for `address`: the same payload bytes
    re-encoded under `prefix`. Pure format conversion, no lookups.

    Canonical addresses are fixed points: reencode_address(c, prefix) == c.
    """
    validate_prefix(prefix)
    _, payload = decode_address(address)
    return bech32_encode(prefix, convertbits(payload, 8, 5))


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------

def _account_for(
    accounts: Dict[str, SnapshotAccount],
    address: str,
    prefix: str,
    chain: str,
) -> SnapshotAccount:
    try:
        canonical = reencode_address(address, prefix)
    except InvalidAddressEncoding as e:
        raise InvalidAddressEncoding(address, e.reason, chain=chain) from e

    acc = accounts.get(canonical)
    if acc is None:
        acc = SnapshotAccount()
        accounts[canonical] = acc
    return acc


def merge_snapshots(
    hub_accounts: Iterable[HubAccount],
    juno_accounts: Iterable[JunoAccount],
    huahua_accounts: Iterable[HuahuaAccount],
    prefix: str = DEFAULT_PREFIX,
) -> Dict[str, SnapshotAccount]:
    """
    Fold the three chain lists into canonical address -> SnapshotAccount.

    Lists are processed Hub, Juno, Chihuahua. Each chain writes only its own
    fields, so the order matters only for reproducibility. The first
    malformed address aborts the merge.
    """
    validate_prefix(prefix)
    accounts: Dict[str, SnapshotAccount] = {}

    for hub in hub_accounts:
        acc = _account_for(accounts, hub.atom_address, prefix, "hub")
        acc.atom_address = hub.atom_address
        acc.atom_staker = hub.atom_staker
        acc.atom_bonus = hub.atom_bonus

    for juno in juno_accounts:
        acc = _account_for(accounts, juno.juno_address, prefix, "juno")
        acc.juno_address = juno.juno_address
        acc.juno_staker = juno.juno_staker

    for huahua in huahua_accounts:
        acc = _account_for(accounts, huahua.huahua_address, prefix, "huahua")
        acc.huahua_address = huahua.huahua_address
        acc.huahua_staker = huahua.huahua_staker

    return accounts


# ---------------------------------------------------------------------------
# Reward allocation
# ---------------------------------------------------------------------------

def count_reward_units(accounts: Dict[str, SnapshotAccount]) -> Tuple[int, int]:
    """Return (staking_units, bonus_units) summed over all accounts."""
    staking = sum(acc.staking_units() for acc in accounts.values())
    bonus = sum(acc.bonus_units() for acc in accounts.values())
    return staking, bonus


def allocate_rewards(
    accounts: Dict[str, SnapshotAccount],
    total_supply: int,
) -> Tuple[int, Dict[str, SnapshotAccount]]:
    """
    Fill airdrop_amount on every account and return (base_reward, accounts).

    base_reward = total_supply // reward_units. Each account gets
    base_reward per unit it holds, so the total handed out is never more than
    total_supply and falls short by less than reward_units.
    """
    if isinstance(total_supply, bool) or not isinstance(total_supply, int):
        raise TypeError(f"total_supply must be an int (got {type(total_supply).__name__})")
    if total_supply <= 0:
        raise ValueError(f"total_supply must be positive (got {total_supply})")

    staking, bonus = count_reward_units(accounts)
    units = staking + bonus
    if units == 0:
        raise NoEligibleRewardUnits(len(accounts))

    base_reward = total_supply // units

    for acc in accounts.values():
        acc.airdrop_amount = base_reward * acc.reward_units()

    return base_reward, accounts


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def assemble_snapshot(total_supply: int, accounts: Dict[str, SnapshotAccount]) -> CatdropSnapshot:
    """Package the allocated accounts, ordered by canonical address."""
    ordered = {addr: accounts[addr] for addr in sorted(accounts)}
    return CatdropSnapshot(total_catdrop_amount=total_supply, accounts=ordered)


def summarize(snapshot: CatdropSnapshot, base_reward: int) -> SnapshotStats:
    staking, bonus = count_reward_units(snapshot.accounts)
    total_allocated = sum(acc.airdrop_amount for acc in snapshot.accounts.values())
    num = len(snapshot.accounts)
    average = snapshot.total_catdrop_amount // num if num else 0
    return SnapshotStats(
        total_accounts=num,
        staking_rewards=staking,
        bonus_rewards=bonus,
        base_reward=base_reward,
        average_reward=average,
        total_allocated=total_allocated,
        unallocated=snapshot.total_catdrop_amount - total_allocated,
    )


def generate_snapshot(
    hub_accounts: Iterable[HubAccount],
    juno_accounts: Iterable[JunoAccount],
    huahua_accounts: Iterable[HuahuaAccount],
    prefix: str = DEFAULT_PREFIX,
    total_supply: int = DEFAULT_TOTAL_SUPPLY,
) -> Tuple[CatdropSnapshot, SnapshotStats]:
    """Run merge -> allocate -> assemble. Nothing is returned on failure."""
    accounts = merge_snapshots(hub_accounts, juno_accounts, huahua_accounts, prefix)
    base_reward, accounts = allocate_rewards(accounts, total_supply)
    snapshot = assemble_snapshot(total_supply, accounts)
    return snapshot, summarize(snapshot, base_reward)


# ---------------------------------------------------------------------------
# JSON loading / writing
# ---------------------------------------------------------------------------

def _iter_records(data: Any, path: str) -> List[Dict[str, Any]]:
    if not isinstance(data, dict) or "accounts" not in data:
        raise ValueError(f"{path} must be a JSON object with an 'accounts' member.")

    raw = data["accounts"]
    if raw is None:
        return []
    if isinstance(raw, dict):
        records = list(raw.values())
    elif isinstance(raw, list):
        records = raw
    else:
        raise ValueError(f"{path}: 'accounts' must be a list or an object.")

    for i, r in enumerate(records):
        if not isinstance(r, dict):
            raise ValueError(f"{path}: account #{i} is not a JSON object.")
    return records


def _read_address(record: Dict[str, Any], key: str, path: str, idx: int) -> str:
    v = record.get(key)
    if not isinstance(v, str) or not v.strip():
        raise ValueError(f"{path}: account #{idx} has no {key!r}.")
    return v.strip()


def _read_flag(record: Dict[str, Any], key: str, path: str, idx: int) -> bool:
    v = record.get(key, False)
    if v is None:
        return False
    if not isinstance(v, bool):
        raise ValueError(f"{path}: account #{idx} field {key!r} must be true/false (got {v!r}).")
    return v


def _read_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path} is not valid JSON: {e}") from e


def load_hub_snapshot(path: str) -> List[HubAccount]:
    out: List[HubAccount] = []
    for i, r in enumerate(_iter_records(_read_json(path), path)):
        out.append(
            HubAccount(
                atom_address=_read_address(r, "atom_address", path, i),
                atom_staker=_read_flag(r, "atom_staker", path, i),
                atom_bonus=_read_flag(r, "atom_bonus", path, i),
            )
        )
    return out


def load_juno_snapshot(path: str) -> List[JunoAccount]:
    out: List[JunoAccount] = []
    for i, r in enumerate(_iter_records(_read_json(path), path)):
        out.append(
            JunoAccount(
                juno_address=_read_address(r, "juno_address", path, i),
                juno_staker=_read_flag(r, "juno_staker", path, i),
            )
        )
    return out


def load_huahua_snapshot(path: str) -> List[HuahuaAccount]:
    out: List[HuahuaAccount] = []
    for i, r in enumerate(_iter_records(_read_json(path), path)):
        out.append(
            HuahuaAccount(
                huahua_address=_read_address(r, "huahua_address", path, i),
                huahua_staker=_read_flag(r, "huahua_staker", path, i),
            )
        )
    return out


def snapshot_to_json(snapshot: CatdropSnapshot) -> Dict[str, Any]:
    accounts: Dict[str, Any] = {}
    for addr in sorted(snapshot.accounts):
        acc = snapshot.accounts[addr]
        accounts[addr] = {
            "atom_address": acc.atom_address,
            "juno_address": acc.juno_address,
            "huahua_address": acc.huahua_address,
            "atom_bonus": acc.atom_bonus,
            "atom_staker": acc.atom_staker,
            "juno_staker": acc.juno_staker,
            "huahua_staker": acc.huahua_staker,
            "airdrop_amount": str(acc.airdrop_amount),
        }
    return {
        "total_catdrop_amount": str(snapshot.total_catdrop_amount),
        "accounts": accounts,
    }


def write_snapshot(path: str, snapshot: CatdropSnapshot) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(snapshot_to_json(snapshot), f, indent=4)
        f.write("\n")



# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def parse_uccat(value: str) -> int:
    """Parse a non-negative integer uccat string (no decimals, no sign except '+')."""
    v = (value or "").strip().replace("_", "")
    if v.startswith("+"):
        v = v[1:]
    if not v.isdigit():
        raise ValueError(f"amount must be an integer uccat string (got: {value!r})")
    return int(v)


def format_ccat(amount_uccat: int) -> str:
    """uccat -> CCAT, floored to two decimals, thousands separated."""
    ccat = (Decimal(amount_uccat) / UCCAT_PER_CCAT).quantize(Decimal("0.01"), rounding=ROUND_DOWN)
    return f"{ccat:,}"


def usage() -> str:
    return (
        "Usage:\n"
        "  python GenerateSnapshot.py <hub_json> <juno_json> <huahua_json> <output_json> "
        "[prefix] [total_supply]\n\n"
        "Arguments (positional):\n"
        "  <hub_json>      Cosmos Hub snapshot (atom_address, atom_staker, atom_bonus)\n"
        "  <juno_json>     Juno snapshot (juno_address, juno_staker)\n"
        "  <huahua_json>   Chihuahua snapshot (huahua_address, huahua_staker)\n"
        "  <output_json>   Output snapshot path (e.g. snapshot.json)\n"
        f"  [prefix]        Canonical bech32 prefix (default: {DEFAULT_PREFIX})\n"
        f"  [total_supply]  Catdrop supply in uccat (default: {DEFAULT_TOTAL_SUPPLY})\n"
    )


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> None:
    if not 5 <= len(sys.argv) <= 7:
        print(usage(), file=sys.stderr)
        raise SystemExit(2)

    hub_path = sys.argv[1]
    juno_path = sys.argv[2]
    huahua_path = sys.argv[3]
    output_path = sys.argv[4]
    prefix = sys.argv[5].strip() if len(sys.argv) > 5 else DEFAULT_PREFIX

    try:
        total_supply = parse_uccat(sys.argv[6]) if len(sys.argv) > 6 else DEFAULT_TOTAL_SUPPLY
    except ValueError as e:
        raise SystemExit(f"Bad total_supply: {e}")
    if total_supply <= 0:
        raise SystemExit("total_supply must be > 0.")

    try:
        hub = load_hub_snapshot(hub_path)
        juno = load_juno_snapshot(juno_path)
        huahua = load_huahua_snapshot(huahua_path)
    except FileNotFoundError as e:
        raise SystemExit(f"Input snapshot not found: {e.filename!r}")
    except (ValueError, OSError) as e:
        raise SystemExit(f"Could not read input snapshot: {e}")

    try:
        snapshot, stats = generate_snapshot(hub, juno, huahua, prefix, total_supply)
    except SnapshotError as e:
        raise SystemExit(f"Snapshot generation failed: {e}")

    try:
        write_snapshot(output_path, snapshot)
    except OSError as e:
        raise SystemExit(f"Failed to write snapshot {output_path!r}: {e}")

    # Diagnostics to stderr
    print("=== CoolCat Catdrop Generator ===", file=sys.stderr)
    print(f"Input records -> hub: {len(hub)}, juno: {len(juno)}, huahua: {len(huahua)}", file=sys.stderr)
    print(f"Total accounts: {stats.total_accounts}", file=sys.stderr)
    print(f"Staking rewards: {stats.staking_rewards}", file=sys.stderr)
    print(f"Outside-top-20 bonus rewards: {stats.bonus_rewards}", file=sys.stderr)
    print(f"Reward amount: {format_ccat(stats.base_reward)} CCAT ({stats.base_reward} uccat)", file=sys.stderr)
    print(f"Average reward amount: {format_ccat(stats.average_reward)} CCAT", file=sys.stderr)
    print(f"Total allocated: {stats.total_allocated} uccat", file=sys.stderr)
    print(f"Unallocated remainder: {stats.unallocated} uccat", file=sys.stderr)
    print(f"Wrote: {output_path}", file=sys.stderr)


if __name__ == "__main__":
    main()
