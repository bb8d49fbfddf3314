"""
Verify command implementation.

Checks a file against a detached minisign signature, the same check the
installer runs on every downloaded archive.
"""

import logging
from pathlib import Path

from zigkit.cli.utils import load_engine_settings, print_error
from zigkit.core.exceptions import MinisignFormatError
from zigkit.toolchain.minisign import parse_public_key, parse_signature, verify

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the verify command.

    Args:
        args: Parsed command-line arguments with:
            - file: Signed file
            - signature: Signature file (default: FILE.minisig)
            - public_key: Key text or .pub file (default: configured key)

    Returns:
        Exit code (0 if the signature is valid, 1 otherwise)
    """
    file_path = Path(args.file)
    signature_path = (
        Path(args.signature)
        if args.signature
        else file_path.with_name(file_path.name + ".minisig")
    )

    for path in (file_path, signature_path):
        if not path.is_file():
            print_error(f"File not found: {path}")
            return 1

    key_text = _load_public_key_text(args)

    try:
        public_key = parse_public_key(key_text)
        signature = parse_signature(signature_path.read_bytes())
    except MinisignFormatError as e:
        print_error("Malformed minisign input", str(e))
        return 1

    if not verify(public_key, file_path.read_bytes(), signature):
        print_error(f"Signature verification FAILED for {file_path}")
        return 1

    print(f"Signature OK for {file_path} (key {public_key.key_id_hex})")
    if signature.trusted_comment is not None and signature.global_signature is not None:
        comment = signature.trusted_comment.decode("utf-8", errors="replace")
        print(f"Trusted comment: {comment}")
    return 0


def _load_public_key_text(args) -> str:
    if not args.public_key:
        return load_engine_settings(args).public_key

    candidate = Path(args.public_key).expanduser()
    if candidate.is_file():
        return candidate.read_text(encoding="utf-8")
    return args.public_key
