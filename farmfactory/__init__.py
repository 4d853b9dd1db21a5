"""
farmfactory - Staking Farm Factory

A registry that clones fixed-rate staking farm templates, the farms
themselves, and an off-chain projector for pending rewards. Everything runs
on a small serialized chain simulation with an integer token ledger.

Usage:
    from farmfactory import (
        Chain, FarmRegistry, FixedRateFarm, FarmInit,
        FIXED_RATE_FARM_TYPE, encode_farm_init, build_metadata_uri,
    )

    chain = Chain("main")
    operator = chain.create_account("operator")
    alice = chain.create_account("alice")
    stake = chain.create_asset("STK", "Stake Token")
    reward = chain.create_asset("RWD", "Reward Token")

    template = chain.deploy(FixedRateFarm)
    registry = chain.deploy(FarmRegistry, operator)
    chain.transact(operator, registry, "register_type", FIXED_RATE_FARM_TYPE, template)

    init = encode_farm_init(FarmInit(alice, stake, reward, duration_seconds=30 * 86400))
    farm = chain.transact(
        alice, registry, "deploy",
        FIXED_RATE_FARM_TYPE, init, build_metadata_uri("My Farm"),
    )

    chain.ledger.mint(reward, alice, 1000 * 10**18)
    chain.ledger.approve(alice, farm, reward, 1000 * 10**18)
    chain.at(farm, sender=alice).fund(1000 * 10**18)
"""

# Core types
from .core import (
    Address,
    TypeId,
    Asset,
    Event,
    Receipt,
    ExecuteResult,
    FarmError,
    InvalidArgument,
    AlreadyInitialized,
    NotInitialized,
    AlreadyRegistered,
    AlreadyFunded,
    UnregisteredType,
    InsufficientFee,
    InitializationFailed,
    StakeLocked,
    TransferFailed,
    ArithmeticOverflow,
    Unauthorized,
    ReentrancyError,
    UnknownMethod,
    ReadError,
    SCALE,
    BOOST_BASE,
    UINT256_MAX,
    ZERO_ADDRESS,
    ZERO_TYPE_ID,
    SYSTEM_ACCOUNT,
    NATIVE_ASSET,
    FIXED_RATE_FARM_TYPE,
    farm_type_id,
    normalize_address,
)

# Ledger and chain
from .ledger import TokenLedger, AssetNotRegistered
from .chain import Chain, CallContext, Contract, ContractHandle, view

# Encodings
from .codec import (
    FarmInit,
    FarmSnapshot,
    encode_farm_init,
    decode_farm_init,
    encode_farm_metadata,
    decode_farm_metadata,
    build_metadata_uri,
    parse_metadata_uri,
)

# Reward math
from .rewards import (
    PoolState,
    StakePosition,
    calculate_reward_rate,
    calculate_accrual,
    calculate_earned,
    calculate_owed,
    calculate_token_apy,
)

# Contracts
from .farms import FarmPhase, FarmTerms, FixedRateFarm
from .registry import FarmRegistry

# Off-chain projection
from .projector import project_pending_reward, RewardTicker, TickerState

__version__ = '1.0.0'

__all__ = [
    # Core
    'Address', 'TypeId', 'Asset', 'Event', 'Receipt', 'ExecuteResult',
    'FarmError', 'InvalidArgument', 'AlreadyInitialized', 'NotInitialized',
    'AlreadyRegistered', 'AlreadyFunded', 'UnregisteredType', 'InsufficientFee',
    'InitializationFailed', 'StakeLocked', 'TransferFailed', 'ArithmeticOverflow',
    'Unauthorized', 'ReentrancyError', 'UnknownMethod', 'ReadError',
    'SCALE', 'BOOST_BASE', 'UINT256_MAX', 'ZERO_ADDRESS', 'ZERO_TYPE_ID',
    'SYSTEM_ACCOUNT', 'NATIVE_ASSET', 'FIXED_RATE_FARM_TYPE',
    'farm_type_id', 'normalize_address',
    # Ledger and chain
    'TokenLedger', 'AssetNotRegistered',
    'Chain', 'CallContext', 'Contract', 'ContractHandle', 'view',
    # Encodings
    'FarmInit', 'FarmSnapshot',
    'encode_farm_init', 'decode_farm_init',
    'encode_farm_metadata', 'decode_farm_metadata',
    'build_metadata_uri', 'parse_metadata_uri',
    # Reward math
    'PoolState', 'StakePosition', 'calculate_reward_rate', 'calculate_accrual',
    'calculate_earned', 'calculate_owed', 'calculate_token_apy',
    # Contracts
    'FarmPhase', 'FarmTerms', 'FixedRateFarm', 'FarmRegistry',
    # Projection
    'project_pending_reward', 'RewardTicker', 'TickerState',
]
