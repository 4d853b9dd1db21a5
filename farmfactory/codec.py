"""
codec.py - Byte-level encodings shared with off-chain consumers

Two tuples cross the boundary between the engine and the outside world:

1. Initialization bytes forwarded by the registry to a fresh clone:
       (address owner, address stakeAsset, address rewardAsset,
        uint256 durationSeconds, uint256 lockDurationSeconds, uint256 boostMultiplier)

2. The farm metadata tuple returned by getMetadata() and consumed by indexers:
       (address stakeAsset, address rewardAsset, uint256 totalStaked,
        uint256 rewardRatePerSecond, uint256 lastAccrualTime, bool isFunded,
        uint256 totalRewardAmount, uint256 endTimestamp)

Both use the standard Solidity ABI encoding. The order and arity of the
metadata tuple is a compatibility contract and must not change.

The human-facing metadata URI is a small JSON document (name, description,
type), stored verbatim by the registry.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Tuple
import json

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError

from .core import Address, InvalidArgument, normalize_address


FARM_INIT_TYPES = (
    'address', 'address', 'address',
    'uint256', 'uint256', 'uint256',
)

FARM_METADATA_TYPES = (
    'address', 'address', 'uint256', 'uint256', 'uint256',
    'bool', 'uint256', 'uint256',
)


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class FarmInit:
    """
    Parameters a fixed-rate farm is initialized with.

    Attributes:
        owner: Account allowed to fund the farm
        stake_asset: Asset depositors stake
        reward_asset: Asset paid out as rewards
        duration_seconds: Length of the reward schedule
        lock_duration_seconds: Lock applied on every stake (0 = no lock)
        boost_multiplier: Weight while locked, in hundredths (100 = 1.00x)
    """
    owner: Address
    stake_asset: Address
    reward_asset: Address
    duration_seconds: int
    lock_duration_seconds: int = 0
    boost_multiplier: int = 100

    def as_tuple(self) -> Tuple[Any, ...]:
        return (
            self.owner, self.stake_asset, self.reward_asset,
            self.duration_seconds, self.lock_duration_seconds, self.boost_multiplier,
        )


@dataclass(frozen=True, slots=True)
class FarmSnapshot:
    """
    Public accounting tuple of a farm, in wire order.

    The same record feeds on-chain callers (get_snapshot) and the off-chain
    projector.
    """
    stake_asset: Address
    reward_asset: Address
    total_staked: int
    reward_rate_per_second: int
    last_accrual_time: int
    is_funded: bool
    total_reward_amount: int
    end_timestamp: int

    def as_tuple(self) -> Tuple[Any, ...]:
        return (
            self.stake_asset, self.reward_asset, self.total_staked,
            self.reward_rate_per_second, self.last_accrual_time, self.is_funded,
            self.total_reward_amount, self.end_timestamp,
        )


# ============================================================================
# INIT BYTES
# ============================================================================

def encode_farm_init(params: FarmInit) -> bytes:
    """
    ABI-encode farm initialization parameters.

    Raises:
        InvalidArgument: If a field cannot be encoded (bad address, negative int)
    """
    try:
        return encode(list(FARM_INIT_TYPES), list(params.as_tuple()))
    except (EncodingError, TypeError, ValueError) as e:
        raise InvalidArgument(f"cannot encode init params: {e}") from e


def decode_farm_init(data: bytes) -> FarmInit:
    """
    Decode initialization bytes.

    Raises:
        InvalidArgument: If the bytes are not a valid encoding of the init tuple
    """
    if not isinstance(data, (bytes, bytearray)):
        raise InvalidArgument(f"init data must be bytes, got {type(data).__name__}")
    try:
        owner, stake, reward, duration, lock, boost = decode(list(FARM_INIT_TYPES), bytes(data))
    except (DecodingError, TypeError, ValueError) as e:
        raise InvalidArgument(f"malformed init bytes: {e}") from e
    return FarmInit(
        owner=normalize_address(owner),
        stake_asset=normalize_address(stake),
        reward_asset=normalize_address(reward),
        duration_seconds=duration,
        lock_duration_seconds=lock,
        boost_multiplier=boost,
    )


# ============================================================================
# METADATA TUPLE
# ============================================================================

def encode_farm_metadata(snapshot: FarmSnapshot) -> bytes:
    """ABI-encode a snapshot in the fixed eight-field wire order."""
    return encode(list(FARM_METADATA_TYPES), list(snapshot.as_tuple()))


def decode_farm_metadata(data: bytes) -> FarmSnapshot:
    """
    Decode the eight-field metadata tuple returned by getMetadata().

    Raises:
        InvalidArgument: If the bytes are not a valid metadata encoding
    """
    try:
        values = decode(list(FARM_METADATA_TYPES), bytes(data))
    except (DecodingError, TypeError, ValueError) as e:
        raise InvalidArgument(f"malformed metadata bytes: {e}") from e
    stake, reward, total, rate, last, funded, total_reward, end = values
    return FarmSnapshot(
        stake_asset=normalize_address(stake),
        reward_asset=normalize_address(reward),
        total_staked=total,
        reward_rate_per_second=rate,
        last_accrual_time=last,
        is_funded=funded,
        total_reward_amount=total_reward,
        end_timestamp=end,
    )


# ============================================================================
# METADATA URI
# ============================================================================

def build_metadata_uri(farm_name: str, description: str = "", farm_type: str = "FixedRateFarm") -> str:
    """
    Build the JSON document stored as a farm's metadata URI.

    Keys are sorted so the same inputs always produce the same string.
    """
    if not farm_name or not farm_name.strip():
        raise InvalidArgument("farm_name cannot be empty")
    return json.dumps(
        {"description": description, "farmName": farm_name, "farmType": farm_type},
        sort_keys=True,
        separators=(",", ":"),
    )


def parse_metadata_uri(uri: str) -> Dict[str, Any]:
    """
    Parse a metadata URI produced by build_metadata_uri().

    Non-JSON URIs (e.g. ipfs:// links) are returned as {"uri": uri}.
    """
    try:
        parsed = json.loads(uri)
    except (TypeError, ValueError):
        return {"uri": uri}
    if not isinstance(parsed, dict):
        return {"uri": uri}
    return parsed
