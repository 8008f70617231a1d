import pytest

from onesec_bridge.errors import BridgeError
from onesec_bridge.principal import IcrcAccount, Principal
from onesec_bridge.utils import encode_icrc_account, encode_principal, format_account, format_icp_account


def test_well_known_principals_render_canonically():
    assert Principal.anonymous().to_text() == "2vxsx-fae"
    assert Principal.management_canister().to_text() == "aaaaa-aa"


def test_principal_text_parses_back_to_bytes():
    assert Principal.from_text("2vxsx-fae").raw == b"\x04"
    ledger = Principal.from_text("ryjl3-tyaaa-aaaaa-aaaba-cai")
    assert ledger.raw == bytes.fromhex("00000000000000020101")
    assert str(ledger) == "ryjl3-tyaaa-aaaaa-aaaba-cai"


def test_principal_with_bad_checksum_is_rejected():
    with pytest.raises(BridgeError):
        Principal.from_text("2vxsx-fad")


def test_principal_longer_than_29_bytes_is_rejected():
    with pytest.raises(BridgeError):
        Principal(bytes(30))


def test_principal_word_layout():
    word = encode_principal(Principal(b"\x01\x02\x03"))
    assert len(word) == 32
    assert word[:5] == b"\x00\x03\x01\x02\x03"
    assert word[5:] == bytes(27)


def test_icrc_account_encodes_to_one_or_two_words():
    owner = Principal(b"\x01\x02\x03")
    word1, word2 = encode_icrc_account(IcrcAccount(owner=owner))
    assert word1 == encode_principal(owner)
    assert word2 is None

    subaccount = bytes(31) + b"\x07"
    word1, word2 = encode_icrc_account(IcrcAccount(owner=owner, subaccount=subaccount))
    assert word1 == encode_principal(owner)
    assert word2 == subaccount


def test_subaccount_must_be_32_bytes():
    with pytest.raises(BridgeError):
        IcrcAccount(owner=Principal.anonymous(), subaccount=bytes(31))


def test_account_formatting_hides_default_subaccount():
    owner = Principal.anonymous()
    assert format_icp_account(IcrcAccount(owner=owner)) == "2vxsx-fae"
    assert format_icp_account(IcrcAccount(owner=owner, subaccount=bytes(32))) == "2vxsx-fae"
    subaccount = bytes(31) + b"\x01"
    assert format_account(IcrcAccount(owner=owner, subaccount=subaccount)) == f"2vxsx-fae / {subaccount.hex()}"
    assert format_account(None) == ""
