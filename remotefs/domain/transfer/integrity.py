"""
Post-transfer integrity verification
"""
import hashlib
import shlex
from pathlib import Path
from typing import Optional, Union

from ...core.constants import DEFAULT_HASH_ALGORITHM, REMOTE_HASH_COMMANDS
from ...core.exceptions import IntegrityWarning
from ...core.logging import get_logger

logger = get_logger(__name__)


def compute_file_hash(file_path: Union[str, Path], algorithm: str = DEFAULT_HASH_ALGORITHM) -> str:
    """
    Compute hash for entire file by streaming it.

    Args:
        file_path: File path
        algorithm: hashlib algorithm name (md5, sha1, sha256)

    Returns:
        Lower-case hash hex string
    """
    hasher = hashlib.new(algorithm)
    with open(file_path, 'rb') as f:
        while True:
            chunk = f.read(65536)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()


def compute_remote_hash(session, remote_path: str, algorithm: str = DEFAULT_HASH_ALGORITHM) -> str:
    """
    Hash a remote file with a one-shot command (not the SFTP channel).

    Returns:
        First whitespace-delimited token of the output, lower-cased, or ""
        when the command failed
    """
    command = f"{REMOTE_HASH_COMMANDS[algorithm]} {shlex.quote(remote_path)}"
    out, err, code = session.exec_with_code(command)
    if code != 0 or not out.strip():
        logger.debug(f"Remote hash of {remote_path} failed ({code}): {err.strip()}")
        return ""
    return out.split()[0].lower()


def verify_integrity(
    session,
    local_path: Union[str, Path],
    remote_path: str,
    algorithm: str = DEFAULT_HASH_ALGORITHM,
) -> Optional[bool]:
    """
    Compare the local file hash against the remote one.

    A mismatch is logged as an IntegrityWarning; it is never raised.

    Returns:
        True on match, False on mismatch, None when verification could not run
    """
    try:
        local_hash = compute_file_hash(local_path, algorithm)
        remote_hash = compute_remote_hash(session, remote_path, algorithm)
    except Exception as e:
        logger.warning(f"Integrity check of {local_path} could not run: {e}")
        return None

    if not remote_hash:
        logger.warning(f"Integrity check of {remote_path} skipped: remote hash unavailable")
        return None

    if local_hash != remote_hash:
        logger.warning(str(IntegrityWarning(str(local_path), remote_path, local_hash, remote_hash)))
        return False

    logger.debug(f"Checksum OK: {Path(local_path).name}")
    return True


def verify_remote_copy(
    source,
    destination,
    source_path: str,
    destination_path: str,
    algorithm: str = DEFAULT_HASH_ALGORITHM,
) -> Optional[bool]:
    """
    Compare hashes of a file copied between two remote sessions.

    Same contract as ``verify_integrity``: mismatches are only logged.
    """
    try:
        source_hash = compute_remote_hash(source, source_path, algorithm)
        destination_hash = compute_remote_hash(destination, destination_path, algorithm)
    except Exception as e:
        logger.warning(f"Integrity check of {destination_path} could not run: {e}")
        return None

    if not source_hash or not destination_hash:
        logger.warning(f"Integrity check of {destination_path} skipped: remote hash unavailable")
        return None

    if source_hash != destination_hash:
        logger.warning(str(IntegrityWarning(source_path, destination_path, source_hash, destination_hash)))
        return False

    logger.debug(f"Checksum OK: {destination_path}")
    return True
