"""
chain.py - Serialized Execution Environment

The Chain is the only module that commits state. It hosts contract instances at
addresses, owns the TokenLedger, keeps the logical clock, and executes every
call atomically: a call either runs to completion and is logged, or raises and
leaves no trace.

Key responsibilities:
    - Deploys contracts (constructor runs) and clones them (same code, fresh
      storage, no constructor)
    - Executes mutating calls with per-frame snapshot and rollback
    - Rejects re-entry into a contract already on the call stack
    - Collects events and records a Receipt per applied call
    - Tracks time: only moves forward
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Type
import copy

from .core import (
    Address, Asset, Event, Receipt, ExecuteResult,
    NATIVE_ASSET, ZERO_ADDRESS,
    FarmError, InvalidArgument, ReentrancyError, UnknownMethod,
    derive_address, normalize_address,
)
from .ledger import TokenLedger


# 2025-01-01T00:00:00Z
DEFAULT_GENESIS_TIME = 1_735_689_600


def view(fn: Callable) -> Callable:
    """Mark a contract method as read-only (callable through Chain.view)."""
    fn._is_view = True
    return fn


class Contract:
    """
    Base class for code hosted on the chain.

    Subclasses keep only plain data in their attributes so the chain can
    snapshot and restore them. `_reset_storage()` must set every storage field
    to its default; it is what a clone runs instead of the constructor.
    """

    def __init__(self):
        self._reset_storage()

    def _reset_storage(self) -> None:
        pass


@dataclass
class CallContext:
    """
    Everything a contract method may see about the call it is executing.

    Attributes:
        chain: The hosting chain (use the helpers below rather than poking it)
        sender: Immediate caller (an account or a contract)
        this: Address of the executing contract
        value: Native value attached to the call (already credited to `this`)
        timestamp: Chain time of the enclosing transaction
    """
    chain: 'Chain'
    sender: Address
    this: Address
    value: int
    timestamp: int
    events: List[Event] = field(default_factory=list)

    @property
    def ledger(self) -> TokenLedger:
        return self.chain.ledger

    def emit(self, name: str, **args: Any) -> None:
        self.events.append(Event(name, self.this, tuple(sorted(args.items()))))

    def call(self, target: Address, method: str, *args: Any, value: int = 0) -> Any:
        """Call another contract with this contract as the sender."""
        return self.chain._invoke(self.this, target, method, args, value, self.events)

    def clone(self, implementation: Address) -> Address:
        return self.chain.clone(implementation, creator=self.this)

    def has_code(self, address: Address) -> bool:
        return self.chain.has_code(address)


class ContractHandle:
    """
    Thin proxy that turns attribute calls into chain calls.

    Example:
        farm = chain.at(farm_address, sender=bob)
        farm.stake(100)                # mutating -> Chain.transact
        farm.earned(bob)               # @view    -> Chain.view
        farm.as_(alice).claim()
    """

    def __init__(self, chain: 'Chain', address: Address, sender: Address = ZERO_ADDRESS):
        self._chain = chain
        self.address = address
        self.sender = sender

    def as_(self, sender: Address) -> 'ContractHandle':
        return ContractHandle(self._chain, self.address, sender)

    def __getattr__(self, method: str) -> Callable[..., Any]:
        if method.startswith("_"):
            raise AttributeError(method)
        fn = self._chain._resolve(self.address, method)
        if getattr(fn, "_is_view", False):
            return lambda *args: self._chain.view(self.address, method, *args)
        return lambda *args, value=0: self._chain.transact(
            self.sender, self.address, method, *args, value=value
        )

    def __repr__(self) -> str:
        return f"ContractHandle({self.address}, sender={self.sender})"


class Chain:
    """
    Single-writer execution environment for farms and registries.

    Design Principles:
        - All-or-nothing: every call frame snapshots contract storage and the
          ledger and restores both if the frame raises.
        - Totally ordered: calls run one at a time; the sequence number on each
          Receipt is the commit order.
        - Always logs: every applied top-level call appends a Receipt.

    Thread Safety:
        Not thread-safe. Serialization is the caller's single thread.

    Example:
        chain = Chain("test")
        alice = chain.create_account("alice")
        token = chain.create_asset("STK", "Stake Token")
        chain.ledger.mint(token, alice, 1000)
    """

    def __init__(
        self,
        name: str = "chain",
        initial_time: Optional[int] = None,
        verbose: bool = False,
    ):
        self.name = name
        self.verbose = verbose
        self.ledger = TokenLedger(name, verbose=verbose)
        self.contracts: Dict[Address, Contract] = {}
        self.transaction_log: List[Receipt] = []
        self._current_time: int = DEFAULT_GENESIS_TIME if initial_time is None else initial_time
        self._nonces: Dict[Address, int] = {}
        self._next_sequence: int = 0
        self._call_stack: List[Address] = []
        self._accounts: Dict[str, Address] = {}

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    @property
    def current_time(self) -> int:
        """Current logical time (unix seconds)."""
        return self._current_time

    def advance_time(self, new_time: int) -> None:
        """
        Move the clock to new_time.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    def sleep(self, seconds: int) -> int:
        """Advance the clock by a number of seconds and return the new time."""
        self.advance_time(self._current_time + seconds)
        return self._current_time

    # ========================================================================
    # ACCOUNTS, ASSETS, CODE
    # ========================================================================

    def create_account(self, label: str) -> Address:
        """Return the (deterministic) externally owned account for a label."""
        if label not in self._accounts:
            self._accounts[label] = derive_address(self.name, "account", label)
        return self._accounts[label]

    def create_asset(self, symbol: str, name: str, decimals: int = 18) -> Address:
        """Create a fungible asset and register it with the ledger."""
        address = derive_address(self.name, "asset", symbol, len(self.ledger.assets))
        self.ledger.register_asset(Asset(address, symbol, name, decimals))
        return address

    def _next_address(self, creator: Address) -> Address:
        nonce = self._nonces.get(creator, 0)
        self._nonces[creator] = nonce + 1
        return derive_address(self.name, creator, nonce)

    def deploy(self, code: Type[Contract], *args: Any, deployer: Address = ZERO_ADDRESS) -> Address:
        """
        Deploy a contract by running its constructor.

        Args:
            code: Contract subclass
            *args: Constructor arguments
            deployer: Account credited with the deployment (affects the address)

        Returns:
            Address of the new contract
        """
        address = self._next_address(deployer)
        self.contracts[address] = code(*args)
        if self.verbose:
            print(f"Deployed {code.__name__} at {address}")
        return address

    def clone(self, implementation: Address, creator: Address = ZERO_ADDRESS) -> Address:
        """
        Create a new instance sharing the implementation's code.

        The constructor is NOT run. The clone starts from the code's default
        storage (`_reset_storage`) and must be initialized by a separate call.

        Raises:
            InvalidArgument: If there is no code at implementation
        """
        if not self.has_code(implementation):
            raise InvalidArgument(f"no code at {implementation}")
        code = type(self.contracts[implementation])
        instance = code.__new__(code)
        instance._reset_storage()
        address = self._next_address(creator)
        self.contracts[address] = instance
        return address

    def has_code(self, address: Address) -> bool:
        return address in self.contracts

    def code_at(self, address: Address) -> Type[Contract]:
        if address not in self.contracts:
            raise InvalidArgument(f"no code at {address}")
        return type(self.contracts[address])

    def at(self, address: Address, sender: Address = ZERO_ADDRESS) -> ContractHandle:
        if not self.has_code(address):
            raise InvalidArgument(f"no code at {address}")
        return ContractHandle(self, address, sender)

    # ========================================================================
    # EXECUTION
    # ========================================================================

    def _resolve(self, target: Address, method: str) -> Callable:
        if target not in self.contracts:
            raise UnknownMethod(f"no code at {target}")
        if method.startswith("_"):
            raise UnknownMethod(f"{method} is not callable")
        fn = getattr(self.contracts[target], method, None)
        if fn is None or not callable(fn):
            raise UnknownMethod(
                f"{type(self.contracts[target]).__name__} has no method {method}"
            )
        return fn

    def _snapshot(self) -> Tuple[TokenLedger, Dict[Address, Dict[str, Any]], Dict[Address, int]]:
        storage = {addr: copy.deepcopy(c.__dict__) for addr, c in self.contracts.items()}
        return self.ledger.clone(), storage, dict(self._nonces)

    def _restore(self, snapshot) -> None:
        ledger, storage, nonces = snapshot
        self.ledger.restore(ledger)
        for addr in list(self.contracts):
            if addr not in storage:
                del self.contracts[addr]
            else:
                self.contracts[addr].__dict__ = storage[addr]
        self._nonces = nonces

    def _invoke(
        self,
        sender: Address,
        target: Address,
        method: str,
        args: Tuple[Any, ...],
        value: int,
        events: List[Event],
    ) -> Any:
        """
        Run one call frame atomically.

        On success the frame's events are appended to `events`. On any
        FarmError the frame's storage and ledger effects are rolled back and
        the error propagates to the caller. Unexpected exceptions are rolled
        back the same way.
        """
        sender, target = normalize_address(sender), normalize_address(target)
        fn = self._resolve(target, method)
        if target in self._call_stack:
            raise ReentrancyError(f"re-entrant call into {target}.{method}")

        snapshot = self._snapshot()
        ctx = CallContext(self, sender, target, value, self._current_time)
        self._call_stack.append(target)
        try:
            if value:
                self.ledger.transfer(NATIVE_ASSET, sender, target, value)
            result = fn(ctx, *args)
        except Exception:
            self._restore(snapshot)
            raise
        finally:
            self._call_stack.pop()
        events.extend(ctx.events)
        return result

    def transact(
        self,
        sender: Address,
        target: Address,
        method: str,
        *args: Any,
        value: int = 0,
    ) -> Any:
        """
        Execute a mutating call atomically and log it.

        Args:
            sender: Account submitting the call
            target: Contract address
            method: Public method name
            *args: Method arguments (after the call context)
            value: Native coin attached to the call

        Returns:
            The method's return value

        Raises:
            FarmError: Any failure; nothing was applied
        """
        if value < 0:
            raise InvalidArgument(f"value must be non-negative, got {value}")
        sender, target = normalize_address(sender), normalize_address(target)
        events: List[Event] = []
        try:
            result = self._invoke(sender, target, method, args, value, events)
        except FarmError as e:
            if self.verbose:
                print(f"✗ REJECTED: {method} on {target} by {sender}: {type(e).__name__}: {e}")
            raise

        sequence = self._next_sequence
        self._next_sequence += 1
        receipt = Receipt(
            exec_id=f"exec:{self.name}:{sequence:012d}:{self._current_time}",
            sequence_number=sequence,
            sender=sender,
            target=target,
            method=method,
            value=value,
            timestamp=self._current_time,
            status=ExecuteResult.APPLIED,
            return_value=result,
            events=tuple(events),
        )
        self.transaction_log.append(receipt)
        if self.verbose:
            print(f"✓ APPLIED: {receipt.exec_id} {method} on {target} ({len(events)} events)")
        return result

    def execute(
        self,
        sender: Address,
        target: Address,
        method: str,
        *args: Any,
        value: int = 0,
    ) -> ExecuteResult:
        """
        Like transact() but reports the outcome instead of raising.

        Returns:
            ExecuteResult.APPLIED or ExecuteResult.REJECTED
        """
        try:
            self.transact(sender, target, method, *args, value=value)
        except FarmError:
            return ExecuteResult.REJECTED
        return ExecuteResult.APPLIED

    def view(self, target: Address, method: str, *args: Any, sender: Address = ZERO_ADDRESS) -> Any:
        """
        Execute a read-only method. Never logged, never mutates.

        Raises:
            UnknownMethod: If the method is not marked @view
        """
        sender, target = normalize_address(sender), normalize_address(target)
        fn = self._resolve(target, method)
        if not getattr(fn, "_is_view", False):
            raise UnknownMethod(f"{method} is not a view")
        ctx = CallContext(self, sender, target, 0, self._current_time)
        return fn(ctx, *args)

    @property
    def last_receipt(self) -> Optional[Receipt]:
        return self.transaction_log[-1] if self.transaction_log else None
