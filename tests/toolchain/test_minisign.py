"""
Unit tests for minisign signature parsing and verification.

Signatures are produced by a real Ed25519 signer in minisign format.
"""

import base64
from unittest.mock import patch

import pytest

from zigkit.config.settings import ZIG_PUBLIC_KEY
from zigkit.core.exceptions import MinisignFormatError
from zigkit.toolchain.minisign import (
    PublicKey,
    parse_public_key,
    parse_signature,
    verify,
)
from tests.fixtures.signing import MinisignSigner, corrupt_signature

MESSAGE = b"zig release archive bytes\x00\x01\x02" * 64


class TestParsePublicKey:
    """Test parse_public_key function."""

    def test_parse_bare_key_line(self, signer):
        """Test parsing the base64 line alone."""
        key = parse_public_key(signer.public_key_line)

        assert isinstance(key, PublicKey)
        assert key.algorithm == b"Ed"
        assert key.key_id == signer.key_id
        assert key.key == signer.public_key_bytes

    def test_parse_pub_file_with_comment(self, signer):
        """Test parsing the two-line .pub file form."""
        key = parse_public_key(signer.public_key_text)
        assert key.key_id == signer.key_id

    def test_parse_bytes(self, signer):
        """Test parsing key given as bytes."""
        key = parse_public_key(signer.public_key_text.encode("utf-8"))
        assert key.key == signer.public_key_bytes

    def test_parse_zig_release_key(self):
        """Test the bundled Zig release key parses."""
        key = parse_public_key(ZIG_PUBLIC_KEY)
        assert len(key.key_id) == 8
        assert len(key.key) == 32

    def test_key_id_hex_is_little_endian(self):
        """Test key id is displayed the way minisign prints it."""
        key = PublicKey(algorithm=b"Ed", key_id=bytes.fromhex("0102030405060708"), key=b"\x00" * 32)
        assert key.key_id_hex == "0807060504030201"

    def test_wrong_length(self):
        """Test a key of the wrong size is rejected."""
        short = base64.b64encode(b"Ed" + b"\x00" * 20).decode()
        with pytest.raises(MinisignFormatError, match="length"):
            parse_public_key(short)

    def test_wrong_algorithm(self):
        """Test a key with an unknown algorithm is rejected."""
        bogus = base64.b64encode(b"XX" + b"\x00" * 40).decode()
        with pytest.raises(MinisignFormatError, match="algorithm"):
            parse_public_key(bogus)

    def test_invalid_base64(self):
        """Test garbage is rejected."""
        with pytest.raises(MinisignFormatError):
            parse_public_key("not base64 at all!")

    def test_multiple_key_lines(self, signer):
        """Test ambiguous input with two key lines is rejected."""
        with pytest.raises(MinisignFormatError, match="exactly one"):
            parse_public_key(f"{signer.public_key_line}\n{signer.public_key_line}")

    def test_non_text_input(self):
        """Test non string input is rejected."""
        with pytest.raises(MinisignFormatError):
            parse_public_key(12345)


class TestParseSignature:
    """Test parse_signature function."""

    def test_parse_full_signature(self, signer):
        """Test all four lines are parsed."""
        signature = parse_signature(signer.sign(MESSAGE, trusted_comment="hello"))

        assert signature.algorithm == b"ED"
        assert signature.key_id == signer.key_id
        assert len(signature.signature) == 64
        assert signature.trusted_comment == b"hello"
        assert len(signature.global_signature) == 64

    def test_parse_legacy_algorithm(self, signer):
        """Test the legacy (non-prehashed) algorithm tag."""
        signature = parse_signature(signer.sign(MESSAGE, prehashed=False))
        assert signature.algorithm == b"Ed"

    def test_parse_without_trusted_comment(self, signer):
        """Test signature with only the signature line."""
        signature = parse_signature(signer.sign(MESSAGE, trusted_comment=None))

        assert signature.trusted_comment is None
        assert signature.global_signature is None

    def test_trusted_comment_without_global_signature_ignored(self, signer):
        """Test a dangling trusted comment is treated as absent."""
        data = signer.sign(MESSAGE, include_global_signature=False)
        signature = parse_signature(data)

        assert signature.trusted_comment is None
        assert signature.global_signature is None

    def test_parse_without_untrusted_comment(self, signer):
        """Test the untrusted comment line is optional."""
        lines = signer.sign(MESSAGE).decode().splitlines()[1:]
        signature = parse_signature("\n".join(lines))
        assert signature.key_id == signer.key_id

    def test_empty_signature(self):
        """Test empty input is rejected."""
        with pytest.raises(MinisignFormatError, match="empty"):
            parse_signature(b"")

    def test_bad_second_line(self, signer):
        """Test a second line that is not a trusted comment is rejected."""
        lines = signer.sign(MESSAGE).decode().splitlines()
        lines[2] = "something else"
        with pytest.raises(MinisignFormatError, match="trusted comment"):
            parse_signature("\n".join(lines))

    def test_unknown_signature_algorithm(self, signer):
        """Test an unknown algorithm tag is rejected."""
        raw = b"XX" + signer.key_id + b"\x00" * 64
        with pytest.raises(MinisignFormatError, match="algorithm"):
            parse_signature(base64.b64encode(raw))


class TestVerify:
    """Test verify function."""

    @pytest.mark.parametrize("prehashed", [True, False])
    def test_valid_signature(self, signer, prehashed):
        """Test a real signature verifies for both algorithms."""
        signature = signer.sign(MESSAGE, prehashed=prehashed)
        assert verify(signer.public_key_text, MESSAGE, signature) is True

    def test_valid_without_trusted_comment(self, signer):
        """Test comment-level trust is skipped when absent."""
        signature = signer.sign(MESSAGE, trusted_comment=None)
        assert verify(signer.public_key_text, MESSAGE, signature) is True

    def test_accepts_parsed_objects(self, signer):
        """Test verify accepts already parsed key and signature."""
        key = parse_public_key(signer.public_key_text)
        signature = parse_signature(signer.sign(MESSAGE))
        assert verify(key, MESSAGE, signature) is True

    @pytest.mark.parametrize("position", [0, 1, len(MESSAGE) // 2, len(MESSAGE) - 1])
    def test_flipped_message_byte(self, signer, position):
        """Test flipping any single message byte fails verification."""
        signature = signer.sign(MESSAGE)
        tampered = bytearray(MESSAGE)
        tampered[position] ^= 0xFF

        assert verify(signer.public_key_text, bytes(tampered), signature) is False

    @pytest.mark.parametrize("offset", [10, 40, 73])
    def test_flipped_signature_byte(self, signer, offset):
        """Test flipping a byte of the signature fails verification."""
        signature = corrupt_signature(signer.sign(MESSAGE), offset=offset)
        assert verify(signer.public_key_text, MESSAGE, signature) is False

    def test_tampered_trusted_comment(self, signer):
        """Test a modified trusted comment fails the global signature."""
        lines = signer.sign(MESSAGE, trusted_comment="file:zig.tar.xz").decode().splitlines()
        lines[2] = "trusted comment: file:evil.tar.xz"
        assert verify(signer.public_key_text, MESSAGE, "\n".join(lines)) is False

    def test_key_id_mismatch_skips_cryptography(self, signer):
        """Test mismatched key ids fail before any signature check."""
        signature = signer.sign(MESSAGE, key_id=b"\xff" * 8)

        with patch(
            "zigkit.toolchain.minisign.Ed25519PublicKey.from_public_bytes"
        ) as from_public_bytes:
            assert verify(signer.public_key_text, MESSAGE, signature) is False
            from_public_bytes.assert_not_called()

    def test_signature_from_other_key(self, signer):
        """Test a signature by a different key with the same id fails."""
        impostor = MinisignSigner(key_id=signer.key_id)
        signature = impostor.sign(MESSAGE)
        assert verify(signer.public_key_text, MESSAGE, signature) is False

    @pytest.mark.parametrize(
        "public_key, signature",
        [
            ("garbage", b"garbage"),
            ("", b""),
            (None, None),
            (b"\xff\xfe", b"\xff\xfe"),
        ],
    )
    def test_malformed_input_returns_false(self, public_key, signature):
        """Test malformed input never raises."""
        assert verify(public_key, MESSAGE, signature) is False

    def test_non_bytes_message(self, signer):
        """Test a non-bytes message fails instead of raising."""
        signature = signer.sign(MESSAGE)
        assert verify(signer.public_key_text, "text message", signature) is False
