"""
registry.py - Farm template registry and factory

The FarmRegistry is the single entry point for creating farms:
1. The operator maps a 32-byte type id to a template implementation
2. Anyone calls deploy(type_id, init_bytes, metadata_uri), paying the
   deployment fee if one is configured
3. The registry clones the template, forwards init_bytes to the clone's
   initialize(), and records creator and metadata URI

Everything in deploy() happens in one call frame: if the fee forward, the
clone or its initialization fails, no farm, record or payment survives.
"""

from __future__ import annotations
from typing import Dict, List, Tuple

from .chain import CallContext, Contract, view
from .core import (
    Address, TypeId,
    NATIVE_ASSET, ZERO_ADDRESS, ZERO_TYPE_ID,
    AlreadyRegistered, FarmError, InitializationFailed, InsufficientFee,
    InvalidArgument, Unauthorized, UnregisteredType,
    is_null_address, normalize_address, require_type_id, require_uint,
)


class FarmRegistry(Contract):
    """
    Append-only catalogue of farm templates and deployed farms.

    Invariants:
        - A type id maps to at most one implementation, forever
        - Every listed farm was initialized successfully
        - The deployed list only grows; its order is deployment order

    Example:
        registry = chain.deploy(FarmRegistry, operator)
        chain.transact(operator, registry, "register_type", FIXED_RATE_FARM_TYPE, template)
        farm = chain.transact(alice, registry, "deploy", FIXED_RATE_FARM_TYPE, init, uri)
    """

    def __init__(self, operator: Address):
        super().__init__()
        if is_null_address(operator):
            raise InvalidArgument("operator cannot be the zero address")
        self.operator = normalize_address(operator)

    def _reset_storage(self) -> None:
        self.operator = ZERO_ADDRESS
        self.implementations: Dict[TypeId, Address] = {}
        self.deployment_fee = 0
        self.fee_receiver = ZERO_ADDRESS
        self.deployed: List[Address] = []
        self.creators: Dict[Address, Address] = {}
        self.metadata_uris: Dict[Address, str] = {}
        self.farm_types: Dict[Address, TypeId] = {}

    def _require_operator(self, ctx: CallContext) -> None:
        if ctx.sender != self.operator:
            raise Unauthorized(f"only the operator may call this, not {ctx.sender}")

    # ========================================================================
    # OPERATOR
    # ========================================================================

    def register_type(self, ctx: CallContext, type_id: TypeId, implementation: Address) -> None:
        """
        Map a type id to a template implementation (write-once).

        Raises:
            Unauthorized: If the caller is not the operator
            InvalidArgument: Zero id, null implementation, or no code at it
            AlreadyRegistered: If the id is already mapped
        """
        self._require_operator(ctx)
        type_id = require_type_id(type_id)
        if type_id == ZERO_TYPE_ID:
            raise InvalidArgument("type id cannot be zero")
        if is_null_address(implementation):
            raise InvalidArgument("implementation cannot be the zero address")
        implementation = normalize_address(implementation)
        if not ctx.has_code(implementation):
            raise InvalidArgument(f"no code at implementation {implementation}")
        if type_id in self.implementations:
            raise AlreadyRegistered(f"type 0x{type_id.hex()} is already registered")

        self.implementations[type_id] = implementation
        ctx.emit("FarmTypeRegistered", type_id=type_id, implementation=implementation)

    def set_deployment_fee(self, ctx: CallContext, fee: int, receiver: Address) -> None:
        """
        Configure the fee charged by deploy() and who receives it.

        A zero fee disables charging; the receiver may then be the zero address.
        """
        self._require_operator(ctx)
        require_uint(fee, "fee")
        if fee > 0 and is_null_address(receiver):
            raise InvalidArgument("a nonzero fee requires a fee receiver")
        receiver = ZERO_ADDRESS if is_null_address(receiver) else normalize_address(receiver)

        self.deployment_fee = fee
        self.fee_receiver = receiver
        ctx.emit("DeploymentFeeUpdated", fee=fee, receiver=receiver)

    # ========================================================================
    # DEPLOY
    # ========================================================================

    def deploy(self, ctx: CallContext, type_id: TypeId, init_bytes: bytes, metadata_uri: str) -> Address:
        """
        Clone the template registered for type_id and initialize it.

        Args:
            ctx: Call context (ctx.value is the attached native payment)
            type_id: Registered template type
            init_bytes: Encoded initialization parameters for the template
            metadata_uri: Opaque URI stored against the new farm

        Returns:
            Address of the new, initialized farm

        Raises:
            UnregisteredType: If type_id is not mapped
            InsufficientFee: If ctx.value is below the deployment fee
            TransferFailed: If the fee cannot be forwarded
            InitializationFailed: If the clone rejects init_bytes
        """
        type_id = require_type_id(type_id)
        implementation = self.implementations.get(type_id)
        if implementation is None:
            raise UnregisteredType(f"type 0x{type_id.hex()} is not registered")
        if not isinstance(init_bytes, (bytes, bytearray)):
            raise InvalidArgument("init_bytes must be bytes")
        if not isinstance(metadata_uri, str):
            raise InvalidArgument("metadata_uri must be a string")

        fee = self.deployment_fee
        if ctx.value < fee:
            raise InsufficientFee(
                f"deployment fee is {fee}, got {ctx.value}",
                required=fee,
                supplied=ctx.value,
            )
        if fee > 0:
            ctx.ledger.transfer(NATIVE_ASSET, ctx.this, self.fee_receiver, fee)
        excess = ctx.value - fee
        if excess > 0:
            ctx.ledger.transfer(NATIVE_ASSET, ctx.this, ctx.sender, excess)

        farm = ctx.clone(implementation)
        try:
            ctx.call(farm, "initialize", bytes(init_bytes))
        except FarmError as e:
            raise InitializationFailed(f"initialization of {farm} failed: {e}") from e

        self.deployed.append(farm)
        self.creators[farm] = ctx.sender
        self.metadata_uris[farm] = metadata_uri
        self.farm_types[farm] = type_id
        ctx.emit(
            "FarmDeployed",
            farm=farm,
            type_id=type_id,
            creator=ctx.sender,
            metadata_uri=metadata_uri,
        )
        return farm

    # ========================================================================
    # VIEWS
    # ========================================================================

    @view
    def list_deployed(self, ctx: CallContext, offset: int, limit: int) -> List[Address]:
        """Contiguous page of deployed farms; empty when offset is past the end."""
        require_uint(offset, "offset")
        require_uint(limit, "limit")
        if offset >= len(self.deployed):
            return []
        return list(self.deployed[offset:offset + limit])

    @view
    def get_deployed_count(self, ctx: CallContext) -> int:
        return len(self.deployed)

    @view
    def is_registered(self, ctx: CallContext, type_id: TypeId) -> bool:
        return bytes(type_id) in self.implementations

    @view
    def implementation_for_type(self, ctx: CallContext, type_id: TypeId) -> Address:
        return self.implementations.get(bytes(type_id), ZERO_ADDRESS)

    @view
    def get_creator(self, ctx: CallContext, farm: Address) -> Address:
        """Creator of a deployed farm (zero address if unknown)."""
        return self.creators.get(normalize_address(farm), ZERO_ADDRESS)

    @view
    def get_metadata_uri(self, ctx: CallContext, farm: Address) -> str:
        return self.metadata_uris.get(normalize_address(farm), "")

    @view
    def get_farm_type(self, ctx: CallContext, farm: Address) -> TypeId:
        return self.farm_types.get(normalize_address(farm), ZERO_TYPE_ID)

    @view
    def get_deployment_fee(self, ctx: CallContext) -> Tuple[int, Address]:
        return self.deployment_fee, self.fee_receiver

    @view
    def list_deployed_by_creator(self, ctx: CallContext, creator: Address) -> List[Address]:
        creator = normalize_address(creator)
        return [farm for farm in self.deployed if self.creators[farm] == creator]
