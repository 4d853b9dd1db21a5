"""
Core types and pure helpers for the farm factory system.

This module provides the foundational pieces shared by every other module:
1. Constants: fixed-point scale, boost base, null identifiers, reserved accounts
2. Exceptions: FarmError and one subclass per failure category
3. Checked arithmetic: uint256-bounded integer operations that fail closed
4. Immutable records: Event, Receipt, Asset
5. Identifier helpers: address normalisation and type ids

All functions in this module are pure. Nothing here touches chain or ledger state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from eth_utils import is_address, keccak, to_checksum_address


# ============================================================================
# CONSTANTS
# ============================================================================

# Fixed-point scale factor. Rates and accumulators are integers scaled by this.
SCALE = 10 ** 18

# Boost multipliers are expressed in hundredths: 100 == 1.00x, 150 == 1.50x.
BOOST_BASE = 100

# Every intermediate value must fit in an unsigned 256-bit word.
UINT256_MAX = 2 ** 256 - 1

ZERO_ADDRESS = "0x" + "0" * 40
ZERO_TYPE_ID = bytes(32)

# Reserved account for asset issuance and redemption.
# The system account is exempt from balance validation and may go negative.
SYSTEM_ACCOUNT = "system"

# Asset id of the chain's native coin (used to pay deployment fees).
# It is the null address so that no farm can be configured to stake it.
NATIVE_ASSET = ZERO_ADDRESS


# ============================================================================
# TYPE ALIASES
# ============================================================================

# EIP-55 checksummed hex address (or SYSTEM_ACCOUNT inside the ledger).
Address = str

# 32-byte opaque farm type identifier.
TypeId = bytes


# ============================================================================
# EXCEPTIONS
# ============================================================================

class FarmError(Exception):
    """Base exception for all farm factory errors."""
    pass


class InvalidArgument(FarmError):
    """Raised for zero addresses, zero duration, out-of-range boost or malformed init bytes."""
    pass


class AlreadyInitialized(FarmError):
    """Raised when initialize() is called on an instance that already ran it."""
    pass


class NotInitialized(FarmError):
    """Raised when a farm operation is attempted before initialize()."""
    pass


class AlreadyRegistered(FarmError):
    """Raised when a type id already maps to an implementation."""
    pass


class AlreadyFunded(FarmError):
    """Raised when fund() is called on a farm that has already been funded."""
    pass


class UnregisteredType(FarmError):
    """Raised when deploy() names a type id with no implementation."""
    pass


class InsufficientFee(FarmError):
    """Raised when the value attached to deploy() is below the configured fee."""

    def __init__(self, message: str, required: int = 0, supplied: int = 0):
        super().__init__(message)
        self.required = required
        self.supplied = supplied


class InitializationFailed(FarmError):
    """Raised when a freshly cloned instance rejects its initialization bytes."""
    pass


class StakeLocked(FarmError):
    """Raised when unstake() is attempted before the position's lock has expired."""

    def __init__(self, message: str, lock_end_time: int = 0):
        super().__init__(message)
        self.lock_end_time = lock_end_time


class TransferFailed(FarmError):
    """Raised when the token ledger rejects a pull or push (balance or allowance)."""
    pass


class ArithmeticOverflow(FarmError):
    """Raised when an intermediate value leaves the uint256 range."""
    pass


class Unauthorized(FarmError):
    """Raised when a restricted operation is called by the wrong account."""
    pass


class ReentrancyError(FarmError):
    """Raised when a call re-enters a contract that is already executing."""
    pass


class UnknownMethod(FarmError):
    """Raised when a call names a method the target contract does not expose."""
    pass


class ReadError(Exception):
    """Transient failure of an idempotent read (safe to retry)."""
    pass


# ============================================================================
# CHECKED ARITHMETIC
# ============================================================================

def _check(value: int, op: str) -> int:
    if value < 0:
        raise ArithmeticOverflow(f"{op} underflow")
    if value > UINT256_MAX:
        raise ArithmeticOverflow(f"{op} overflow")
    return value


def checked_add(a: int, b: int) -> int:
    """a + b, rejecting results outside uint256."""
    return _check(a + b, "add")


def checked_sub(a: int, b: int) -> int:
    """a - b, rejecting negative results."""
    return _check(a - b, "sub")


def checked_mul(*factors: int) -> int:
    """Product of all factors, rejecting any intermediate outside uint256."""
    result = 1
    for f in factors:
        result = _check(result * f, "mul")
    return result


def checked_div(a: int, b: int) -> int:
    """Floor division, rejecting division by zero."""
    if b == 0:
        raise ArithmeticOverflow("division by zero")
    return a // b


def require_uint(value: Any, name: str) -> int:
    """Validate that value is a uint256 int (bools are rejected)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise InvalidArgument(f"{name} out of uint256 range: {value}")
    return value


# ============================================================================
# IDENTIFIERS
# ============================================================================

def normalize_address(value: Any) -> Address:
    """
    Return the EIP-55 checksummed form of an address.

    Raises:
        InvalidArgument: If value is not a 20-byte hex address.
    """
    if isinstance(value, bytes) and len(value) == 20:
        return to_checksum_address(value)
    if not isinstance(value, str) or not is_address(value):
        raise InvalidArgument(f"not an address: {value!r}")
    return to_checksum_address(value)


def is_null_address(value: Optional[Address]) -> bool:
    """True for None, empty or the zero address."""
    if not value:
        return True
    return value.lower() == ZERO_ADDRESS


def derive_address(*parts: Any) -> Address:
    """
    Derive a deterministic address from arbitrary seed parts.

    The address is the last 20 bytes of keccak256 over the joined parts,
    mirroring how contract creation addresses depend only on creator and nonce.
    """
    seed = ":".join(str(p) for p in parts)
    return to_checksum_address(keccak(text=seed)[-20:])


def farm_type_id(name: str) -> TypeId:
    """
    Compute the 32-byte type id for a template name (keccak256 of the name).
    """
    if not name or not name.strip():
        raise InvalidArgument("type name cannot be empty")
    return keccak(text=name)


def require_type_id(value: Any) -> TypeId:
    """Validate a 32-byte type id."""
    if not isinstance(value, (bytes, bytearray)) or len(value) != 32:
        raise InvalidArgument(f"type id must be 32 bytes, got {value!r}")
    return bytes(value)


FIXED_RATE_FARM_TYPE = farm_type_id("FixedRateFarm")


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a call executed by the chain.

    APPLIED: The call ran to completion and its effects were committed.
    REJECTED: The call raised; every effect was rolled back.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


# ============================================================================
# IMMUTABLE RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Asset:
    """
    Definition of a fungible asset held in the token ledger.

    Attributes:
        address: Asset identifier (the token contract address).
        symbol: Short ticker (e.g., "STK", "RWD").
        name: Human-readable name.
        decimals: Display precision; amounts are always integer base units.
    """
    address: Address
    symbol: str
    name: str
    decimals: int = 18

    def __post_init__(self):
        if not self.symbol or not self.symbol.strip():
            raise ValueError("Asset symbol cannot be empty")
        if self.decimals < 0 or self.decimals > 77:
            raise ValueError(f"Asset decimals out of range: {self.decimals}")


@dataclass(frozen=True, slots=True)
class Event:
    """
    Log record emitted by a contract for off-chain indexing.

    Attributes:
        name: Event name (e.g., "FarmDeployed").
        address: Emitting contract.
        args: Sorted (key, value) pairs.
    """
    name: str
    address: Address
    args: Tuple[Tuple[str, Any], ...] = ()

    @property
    def data(self) -> Dict[str, Any]:
        return dict(self.args)

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v!r}" for k, v in self.args)
        return f"Event({self.name}@{self.address[:10]}: {inner})"


@dataclass(frozen=True, slots=True)
class Receipt:
    """
    Immutable record of an applied call - the chain's audit trail entry.

    Attributes:
        exec_id: Unique execution identifier (chain + sequence + time)
        sequence_number: Monotonic sequence within the chain
        sender: Account that submitted the call
        target: Contract address called
        method: Method name invoked
        value: Native value attached to the call
        timestamp: Chain time at execution
        status: ExecuteResult of the call
        return_value: Whatever the method returned
        events: Events emitted by the call and all nested calls, in order
    """
    exec_id: str
    sequence_number: int
    sender: Address
    target: Address
    method: str
    value: int
    timestamp: int
    status: ExecuteResult
    return_value: Any = None
    events: Tuple[Event, ...] = field(default_factory=tuple)

    def events_named(self, name: str) -> Tuple[Event, ...]:
        return tuple(e for e in self.events if e.name == name)
