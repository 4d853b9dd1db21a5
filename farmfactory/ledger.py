"""
ledger.py - Fungible Asset Ledger

The TokenLedger holds integer balances and allowances for every fungible asset
the farms touch. Farms never mutate balances directly; every financial move goes
through transfer() (push) or transfer_from() (authorized pull), both of which
may fail with TransferFailed.

Key responsibilities:
    - Registers assets and tracks balances per holder
    - Implements ERC-20 style allowances for authorized pulls
    - Issues new supply from SYSTEM_ACCOUNT so conservation can be verified
    - Supports clone()/restore() so the chain can roll back a failed call
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, List, Tuple, Any

from .core import (
    Address, Asset,
    NATIVE_ASSET, SYSTEM_ACCOUNT,
    TransferFailed, InvalidArgument,
    require_uint,
)


class AssetNotRegistered(TransferFailed):
    """Raised when a move names an asset the ledger does not know."""
    pass


class TokenLedger:
    """
    Integer balance ledger with allowances and a full conservation check.

    Balances never go negative except for SYSTEM_ACCOUNT, which is the source
    of minted supply. For every asset the sum of all balances (system included)
    is therefore always zero.

    Thread Safety:
        Not thread-safe. The owning Chain serializes all access.

    Example:
        ledger = TokenLedger("main")
        ledger.register_asset(Asset(addr, "STK", "Stake Token"))
        ledger.mint(addr, alice, 1000)
        ledger.approve(alice, farm, addr, 500)
        ledger.transfer_from(addr, farm, alice, farm, 500)
    """

    def __init__(self, name: str, verbose: bool = False):
        self.name = name
        self.verbose = verbose
        self.assets: Dict[Address, Asset] = {}
        self.balances: Dict[Address, Dict[Address, int]] = defaultdict(lambda: defaultdict(int))
        self.allowances: Dict[Tuple[Address, Address, Address], int] = {}
        # Inverted index asset -> {holder -> balance} for holder lookups
        self._holders_by_asset: Dict[Address, Dict[Address, int]] = defaultdict(dict)

        self.register_asset(Asset(NATIVE_ASSET, "ETH", "Native Coin", 18))

    # ========================================================================
    # READ-ONLY
    # ========================================================================

    def get_asset(self, asset: Address) -> Asset:
        if asset not in self.assets:
            raise AssetNotRegistered(f"Asset {asset} not registered")
        return self.assets[asset]

    def get_balance(self, holder: Address, asset: Address) -> int:
        """
        Balance of an asset held by an account (0 if the holder never held it).

        Raises:
            AssetNotRegistered: If the asset is not registered
        """
        self.get_asset(asset)
        return self.balances[holder].get(asset, 0) if holder in self.balances else 0

    def allowance(self, owner: Address, spender: Address, asset: Address) -> int:
        return self.allowances.get((owner, spender, asset), 0)

    def get_holders(self, asset: Address) -> Dict[Address, int]:
        """All non-zero holders of an asset, excluding SYSTEM_ACCOUNT."""
        return {
            h: q for h, q in self._holders_by_asset.get(asset, {}).items()
            if h != SYSTEM_ACCOUNT
        }

    def total_supply(self, asset: Address) -> int:
        """Circulating supply: everything minted out of SYSTEM_ACCOUNT."""
        self.get_asset(asset)
        return -self.balances[SYSTEM_ACCOUNT].get(asset, 0)

    def list_assets(self) -> List[Address]:
        return sorted(self.assets.keys())

    def verify_conservation(self) -> Dict[str, Any]:
        """
        Verify that minted supply is exactly accounted for by holders.

        For every asset, the sum over all balances including SYSTEM_ACCOUNT
        must be zero, no holder other than SYSTEM_ACCOUNT may be negative, and
        the holder index must agree with the balances.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all conservation laws hold
            - 'supplies': Dict[str, int] - Circulating supply per asset
            - 'discrepancies': List[Dict] - Details of any violation

        Example:
            result = ledger.verify_conservation()
            assert result['valid'], result['discrepancies']
        """
        supplies: Dict[Address, int] = {}
        discrepancies = []

        for asset in sorted(self.assets):
            net = 0
            for holder in sorted(self.balances):
                qty = self.balances[holder].get(asset, 0)
                net += qty
                if qty < 0 and holder != SYSTEM_ACCOUNT:
                    discrepancies.append({
                        'asset': asset,
                        'holder': holder,
                        'error': 'negative balance',
                        'actual': qty,
                    })
            supplies[asset] = self.total_supply(asset)
            if net != 0:
                discrepancies.append({
                    'asset': asset,
                    'error': 'net balance not zero',
                    'actual': net,
                })
            held = {
                holder: bals[asset] for holder, bals in self.balances.items()
                if holder != SYSTEM_ACCOUNT and bals.get(asset, 0) != 0
            }
            if self.get_holders(asset) != held:
                discrepancies.append({
                    'asset': asset,
                    'error': 'holder index out of date',
                    'expected': held,
                    'actual': self.get_holders(asset),
                })

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_asset(self, asset: Asset) -> None:
        """
        Register a new asset.

        Raises:
            ValueError: If the asset address is already registered
        """
        if asset.address in self.assets:
            raise ValueError(f"Asset {asset.address} already registered")
        self.assets[asset.address] = asset
        if self.verbose:
            print(f"Registered asset: {asset.symbol} ({asset.name}) at {asset.address}")

    # ========================================================================
    # MOVES (Mutating)
    # ========================================================================

    def mint(self, asset: Address, to: Address, amount: int) -> None:
        """Issue new supply of an asset from SYSTEM_ACCOUNT to a holder."""
        require_uint(amount, "amount")
        self._move(asset, SYSTEM_ACCOUNT, to, amount)

    def approve(self, owner: Address, spender: Address, asset: Address, amount: int) -> None:
        """Set the amount spender may pull from owner (overwrites, like ERC-20)."""
        self.get_asset(asset)
        require_uint(amount, "amount")
        if owner == spender:
            raise InvalidArgument("owner and spender must be different")
        self.allowances[(owner, spender, asset)] = amount

    def transfer(self, asset: Address, source: Address, dest: Address, amount: int) -> None:
        """
        Push amount of asset from source to dest.

        Raises:
            TransferFailed: If the asset is unknown or source balance is insufficient
        """
        self._move(asset, source, dest, amount)

    def transfer_from(
        self,
        asset: Address,
        spender: Address,
        source: Address,
        dest: Address,
        amount: int,
    ) -> None:
        """
        Pull amount of asset from source to dest on behalf of spender.

        The spender's allowance is consumed. A spender moving its own funds
        needs no allowance.

        Raises:
            TransferFailed: If the allowance or the balance is insufficient
        """
        self.get_asset(asset)
        if spender != source:
            current = self.allowance(source, spender, asset)
            if current < amount:
                raise TransferFailed(
                    f"allowance {current} < {amount} for {spender} on {source}"
                )
            self._move(asset, source, dest, amount)
            self.allowances[(source, spender, asset)] = current - amount
        else:
            self._move(asset, source, dest, amount)

    def _move(self, asset: Address, source: Address, dest: Address, amount: int) -> None:
        self.get_asset(asset)
        if amount <= 0:
            raise TransferFailed(f"transfer amount must be positive, got {amount}")
        if source == dest:
            raise TransferFailed("source and dest must be different")

        src_balance = self.balances[source].get(asset, 0)
        if source != SYSTEM_ACCOUNT and src_balance < amount:
            raise TransferFailed(
                f"{source} {self.assets[asset].symbol}: balance {src_balance} < {amount}"
            )
        new_src = src_balance - amount
        new_dst = self.balances[dest].get(asset, 0) + amount
        self.balances[source][asset] = new_src
        self.balances[dest][asset] = new_dst
        self._update_holder_index(source, asset, new_src)
        self._update_holder_index(dest, asset, new_dst)

    def _update_holder_index(self, holder: Address, asset: Address, quantity: int) -> None:
        if quantity != 0:
            self._holders_by_asset[asset][holder] = quantity
        else:
            self._holders_by_asset[asset].pop(holder, None)

    # ========================================================================
    # SNAPSHOTS
    # ========================================================================

    def clone(self) -> TokenLedger:
        """
        Create a fully independent copy of this ledger.

        Assets are immutable and shared; balances, allowances and the holder
        index are copied.
        """
        cloned = TokenLedger.__new__(TokenLedger)
        cloned.name = self.name
        cloned.verbose = self.verbose
        cloned.assets = dict(self.assets)
        cloned.balances = defaultdict(lambda: defaultdict(int))
        for holder, bals in self.balances.items():
            cloned.balances[holder] = defaultdict(int, bals)
        cloned.allowances = dict(self.allowances)
        cloned._holders_by_asset = defaultdict(dict)
        for asset, holders in self._holders_by_asset.items():
            cloned._holders_by_asset[asset] = dict(holders)
        return cloned

    def restore(self, snapshot: TokenLedger) -> None:
        """Overwrite this ledger's state with a snapshot taken by clone()."""
        self.assets = snapshot.assets
        self.balances = snapshot.balances
        self.allowances = snapshot.allowances
        self._holders_by_asset = snapshot._holders_by_asset
