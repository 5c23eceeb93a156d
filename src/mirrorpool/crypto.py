"""Export encryption and private SQLite files.

JSONL exports are Fernet-encrypted line by line (``ENC:`` prefix) with a key
kept at $MIRRORPOOL_HOME/.key. MIRRORPOOL_ENCRYPT=0 turns it off.
"""

import base64
import logging
import os
import secrets
import sqlite3
import stat
from pathlib import Path

from mirrorpool.config import mirrorpool_home

logger = logging.getLogger("mirrorpool.crypto")

_PREFIX = "ENC:"

_fernet_instance = None
_checked = False


def _key_path() -> Path:
    return mirrorpool_home() / ".key"


def is_enabled() -> bool:
    """Encryption of exports is on unless MIRRORPOOL_ENCRYPT is 0/false/no."""
    val = os.environ.get("MIRRORPOOL_ENCRYPT", "").strip().lower()
    return val not in ("0", "false", "no")


def reset_crypto_state() -> None:
    """Reset module state for test isolation."""
    global _fernet_instance, _checked
    _fernet_instance = None
    _checked = False


def _get_or_create_key() -> bytes:
    kp = _key_path()
    if kp.exists():
        raw = kp.read_bytes().strip()
        if len(raw) == 32:
            return base64.urlsafe_b64encode(raw)
        return raw

    home = mirrorpool_home()
    home.mkdir(parents=True, exist_ok=True, mode=0o700)
    encoded_key = base64.urlsafe_b64encode(secrets.token_bytes(32))
    fd = os.open(str(kp), os.O_CREAT | os.O_WRONLY | os.O_EXCL, 0o600)
    try:
        os.write(fd, encoded_key)
    finally:
        os.close(fd)
    logger.info("Created encryption key at %s", kp)
    return encoded_key


def _get_fernet():
    global _fernet_instance, _checked
    if _fernet_instance is not None:
        return _fernet_instance
    if _checked:
        return None
    _checked = True

    from cryptography.fernet import Fernet

    try:
        _fernet_instance = Fernet(_get_or_create_key())
    except (OSError, ValueError) as e:
        logger.error("Failed to initialize encryption: %s", e)
        return None
    return _fernet_instance


def is_active() -> bool:
    """True when exports will really be encrypted (enabled and the key loaded)."""
    return is_enabled() and _get_fernet() is not None


def encrypt(plaintext: str) -> str:
    """Encrypt a string. Returns plaintext unchanged when encryption is disabled."""
    if not is_enabled():
        return plaintext
    f = _get_fernet()
    if f is None:
        return plaintext
    token = f.encrypt(plaintext.encode("utf-8"))
    return _PREFIX + token.decode("ascii")


def decrypt(data: str) -> str:
    """Decrypt a string; inputs without the ENC: prefix pass through as plaintext.

    Raises ValueError if decryption fails (bad key or corrupted data).
    """
    if not data.startswith(_PREFIX):
        return data
    f = _get_fernet()
    if f is None:
        raise ValueError("Cannot decrypt: encryption key unavailable")
    from cryptography.fernet import InvalidToken

    try:
        return f.decrypt(data[len(_PREFIX):].encode("ascii")).decode("utf-8")
    except InvalidToken as e:
        raise ValueError("Decryption failed: invalid key or corrupted data") from e


def encrypt_line(line: str) -> str:
    return encrypt(line)


def decrypt_line(line: str) -> str:
    return decrypt(line.strip())


def secure_connect(db_path, **kwargs) -> sqlite3.Connection:
    """Open a SQLite connection, creating or fixing the file with 0600 permissions."""
    db_path_str = str(db_path)
    if db_path_str == ":memory:":
        return sqlite3.connect(db_path_str, **kwargs)

    path_obj = Path(db_path_str)
    if not path_obj.exists():
        fd = os.open(db_path_str, os.O_CREAT | os.O_WRONLY, 0o600)
        os.close(fd)
    else:
        current_mode = path_obj.stat().st_mode
        if current_mode & (stat.S_IRWXG | stat.S_IRWXO):
            os.chmod(db_path_str, 0o600)

    return sqlite3.connect(db_path_str, **kwargs)
