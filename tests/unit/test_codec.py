"""
test_codec.py - Unit tests for init bytes, metadata tuple and metadata URI

Tests:
- Init parameter encoding and decoding
- Malformed init bytes are rejected with InvalidArgument
- Metadata tuple field order
- Metadata URI construction and parsing
"""

import json

import pytest
from eth_abi import decode, encode

from farmfactory import (
    FarmInit, FarmSnapshot, InvalidArgument,
    encode_farm_init, decode_farm_init,
    encode_farm_metadata, decode_farm_metadata,
    build_metadata_uri, parse_metadata_uri,
    normalize_address,
)
from farmfactory.codec import FARM_INIT_TYPES, FARM_METADATA_TYPES


OWNER = normalize_address("0x" + "11" * 20)
STAKE = normalize_address("0x" + "22" * 20)
REWARD = normalize_address("0x" + "33" * 20)


# ============================================================================
# INIT BYTES
# ============================================================================

class TestFarmInit:
    """Tests for the six-field initialization tuple."""

    def test_decode_returns_encoded_fields(self):
        params = FarmInit(OWNER, STAKE, REWARD, duration_seconds=3600, lock_duration_seconds=60, boost_multiplier=150)
        decoded = decode_farm_init(encode_farm_init(params))
        assert decoded == params

    def test_defaults_are_no_lock_no_boost(self):
        params = FarmInit(OWNER, STAKE, REWARD, duration_seconds=3600)
        assert params.lock_duration_seconds == 0
        assert params.boost_multiplier == 100

    def test_encoding_is_standard_abi(self):
        params = FarmInit(OWNER, STAKE, REWARD, 3600, 0, 100)
        expected = encode(list(FARM_INIT_TYPES), [OWNER, STAKE, REWARD, 3600, 0, 100])
        assert encode_farm_init(params) == expected
        assert len(expected) == 6 * 32

    def test_decoded_addresses_are_checksummed(self):
        raw = encode(list(FARM_INIT_TYPES), [OWNER.lower(), STAKE.lower(), REWARD.lower(), 1, 0, 100])
        decoded = decode_farm_init(raw)
        assert decoded.owner == OWNER
        assert decoded.stake_asset == STAKE

    def test_truncated_bytes_rejected(self):
        data = encode_farm_init(FarmInit(OWNER, STAKE, REWARD, 3600))
        with pytest.raises(InvalidArgument):
            decode_farm_init(data[:100])

    def test_empty_bytes_rejected(self):
        with pytest.raises(InvalidArgument):
            decode_farm_init(b"")

    def test_non_bytes_rejected(self):
        with pytest.raises(InvalidArgument):
            decode_farm_init("not bytes")

    def test_negative_field_cannot_be_encoded(self):
        with pytest.raises(InvalidArgument):
            encode_farm_init(FarmInit(OWNER, STAKE, REWARD, -1))


# ============================================================================
# METADATA TUPLE
# ============================================================================

class TestFarmMetadata:
    """Tests for the eight-field metadata tuple."""

    def _snapshot(self, **overrides):
        fields = dict(
            stake_asset=STAKE,
            reward_asset=REWARD,
            total_staked=5 * 10**18,
            reward_rate_per_second=7,
            last_accrual_time=1_700_000_000,
            is_funded=True,
            total_reward_amount=10**21,
            end_timestamp=1_700_086_400,
        )
        fields.update(overrides)
        return FarmSnapshot(**fields)

    def test_field_order_is_fixed(self):
        snap = self._snapshot()
        values = decode(list(FARM_METADATA_TYPES), encode_farm_metadata(snap))
        assert values[2] == 5 * 10**18
        assert values[3] == 7
        assert values[4] == 1_700_000_000
        assert values[5] is True
        assert values[6] == 10**21
        assert values[7] == 1_700_086_400

    def test_decode_matches_snapshot(self):
        snap = self._snapshot(is_funded=False, total_reward_amount=0)
        assert decode_farm_metadata(encode_farm_metadata(snap)) == snap

    def test_encoding_is_eight_words(self):
        assert len(encode_farm_metadata(self._snapshot())) == 8 * 32

    def test_malformed_metadata_rejected(self):
        with pytest.raises(InvalidArgument):
            decode_farm_metadata(b"\x00" * 31)


# ============================================================================
# METADATA URI
# ============================================================================

class TestMetadataUri:
    """Tests for the JSON metadata URI."""

    def test_build_contains_name_and_type(self):
        uri = build_metadata_uri("Blue Farm", "stake STK, earn RWD")
        doc = json.loads(uri)
        assert doc == {
            "farmName": "Blue Farm",
            "description": "stake STK, earn RWD",
            "farmType": "FixedRateFarm",
        }

    def test_build_is_deterministic(self):
        assert build_metadata_uri("A", "b") == build_metadata_uri("A", "b")

    def test_empty_name_rejected(self):
        with pytest.raises(InvalidArgument):
            build_metadata_uri("   ")

    def test_parse_json_uri(self):
        assert parse_metadata_uri(build_metadata_uri("A"))["farmName"] == "A"

    def test_parse_opaque_uri(self):
        assert parse_metadata_uri("ipfs://bafy") == {"uri": "ipfs://bafy"}

    def test_parse_json_non_object(self):
        assert parse_metadata_uri("[1, 2]") == {"uri": "[1, 2]"}
