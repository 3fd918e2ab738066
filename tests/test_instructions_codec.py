from __future__ import annotations

import base64
import hashlib
import struct

import pytest

from wallboard.ledger.constants import SYSTEM_PROGRAM_ID
from wallboard.runtime.addressing import derive_wall_address
from wallboard.runtime.codec import CodecError, Reader, Writer, discriminator
from wallboard.runtime.errors import ApplyError
from wallboard.runtime.instructions import (
    IX_DISCRIMINATORS,
    decode_instruction_data,
    decode_payload,
    encode_instruction_data,
    initialize_wall_ix,
    post_message_ix,
)
from wallboard.testing.sigtools import identity


def test_discriminators_are_sha256_prefixes() -> None:
    assert discriminator("global", "initialize_wall") == hashlib.sha256(b"global:initialize_wall").digest()[:8]
    assert IX_DISCRIMINATORS["post_message"] == hashlib.sha256(b"global:post_message").digest()[:8]


def test_initialize_wall_layout() -> None:
    data = encode_instruction_data("initialize_wall", {"wall_id": 7})
    assert data == IX_DISCRIMINATORS["initialize_wall"] + (7).to_bytes(8, "little")
    assert decode_instruction_data(data) == ("initialize_wall", {"wall_id": 7})


def test_post_message_layout() -> None:
    data = encode_instruction_data("post_message", {"message": "héllo"})
    body = "héllo".encode("utf-8")
    assert data == IX_DISCRIMINATORS["post_message"] + struct.pack("<I", len(body)) + body


def test_decode_rejects_trailing_bytes() -> None:
    data = encode_instruction_data("initialize_wall", {"wall_id": 7}) + b"\x00"
    with pytest.raises(ApplyError) as e:
        decode_instruction_data(data)
    assert e.value.reason == "InstructionDidNotDeserialize"
    assert e.value.error_code == 102


def test_decode_rejects_truncated_string() -> None:
    data = IX_DISCRIMINATORS["post_message"] + struct.pack("<I", 10) + b"abc"
    with pytest.raises(ApplyError) as e:
        decode_instruction_data(data)
    assert e.value.error_code == 102
    assert e.value.details["error"] == "truncated"


def test_decode_rejects_unknown_discriminator() -> None:
    with pytest.raises(ApplyError) as e:
        decode_instruction_data(b"\x01" * 16)
    assert e.value.reason == "InstructionFallbackNotFound"
    assert e.value.error_code == 101

    with pytest.raises(ApplyError) as e:
        decode_instruction_data(b"\x01\x02")
    assert e.value.reason == "InstructionMissing"


def test_builders_order_accounts() -> None:
    alice = identity("alice")
    bob = identity("bob")
    addr, _bump = derive_wall_address(alice, 7, SYSTEM_PROGRAM_ID)

    init = initialize_wall_ix(alice, 7)
    assert [a.pubkey for a in init.accounts] == [addr, alice, SYSTEM_PROGRAM_ID]
    assert init.accounts[1].is_signer and init.accounts[1].is_writable
    assert init.tx_type == "INITIALIZE_WALL"

    post = post_message_ix(bob, alice, 7, "hi")
    assert [a.pubkey for a in post.accounts] == [addr, bob, alice, SYSTEM_PROGRAM_ID]
    assert post.accounts[1].is_signer
    assert not post.accounts[2].is_signer


def test_payload_decodes_back_to_instruction() -> None:
    ix = post_message_ix(identity("bob"), identity("alice"), 7, "gm")
    payload = ix.to_payload()
    assert base64.b64decode(payload["data"]) == ix.data
    assert decode_payload(payload) == ix


def test_decode_payload_rejects_bad_base64() -> None:
    with pytest.raises(ApplyError) as e:
        decode_payload({"data": "%%%", "accounts": []})
    assert e.value.reason == "bad_instruction_encoding"

    with pytest.raises(ApplyError) as e:
        decode_payload({"accounts": []})
    assert e.value.reason == "missing_instruction_data"


def test_writer_rejects_out_of_range_ints() -> None:
    with pytest.raises(CodecError) as e:
        Writer().u8(256)
    assert e.value.code == "out_of_range"


def test_reader_tracks_remaining() -> None:
    r = Reader(Writer().u32(5).i64(-3).to_bytes())
    assert r.u32() == 5
    assert r.remaining == 8
    assert r.i64() == -3
    r.expect_end()
    with pytest.raises(CodecError):
        r.u8()


def test_unencodable_message_is_a_bad_instruction() -> None:
    with pytest.raises(ApplyError) as e:
        encode_instruction_data("post_message", {"message": "\ud800"})
    assert e.value.reason == "bad_instruction_args"
    assert e.value.error_code == 102

    with pytest.raises(ApplyError):
        post_message_ix(identity("bob"), identity("alice"), 7, "bad \udfff").to_payload()
