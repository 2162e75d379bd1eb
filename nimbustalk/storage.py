"""
Durable Preferences Store.

Namespaced key-value persistence for the client, kept in a local SQLite
file.  Holds the signed-in session (namespace ``session``) and small UI
preferences such as the theme (namespace ``theme``).

Security model
--------------
- Every value is JSON-encoded and encrypted with AES-256-GCM, so tokens
  are never written in clear and a tampered row fails authentication.
- The key is derived once per process from machine identity
  (``hostname:os-user``) via PBKDF2-HMAC-SHA256 with a random 32-byte
  per-machine salt file.  The key itself is never written to disk.
- A row that cannot be decrypted (corruption, machine identity changed)
  reads as missing.

Storage layout::

    preferences
    ├── namespace  TEXT    ┐ PRIMARY KEY
    ├── key        TEXT    ┘
    ├── value      BLOB    (ciphertext)
    ├── nonce      BLOB
    ├── tag        BLOB
    └── updated_at TIMESTAMP
"""

from __future__ import annotations

import getpass
import json
import os
import socket
import sqlite3
import stat
import threading
from pathlib import Path
from typing import Mapping, Optional, Union

from Crypto.Cipher import AES
from Crypto.Hash import SHA256
from Crypto.Protocol.KDF import PBKDF2

from nimbustalk.logger import StructuredLogger

PreferenceValue = Union[str, bool, int]

_SCHEMA: str = """
CREATE TABLE IF NOT EXISTS preferences (
    namespace  TEXT NOT NULL,
    key        TEXT NOT NULL,
    value      BLOB NOT NULL,
    nonce      BLOB NOT NULL,
    tag        BLOB NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (namespace, key)
)
"""


class PreferencesStore:
    """Encrypted, namespaced key-value store on SQLite.

    Reads never raise: failures are logged and read as missing.  Writes
    return ``True`` on success and ``False`` (logged) on failure, since a
    failed preference write must not crash the calling flow.

    Parameters
    ----------
    db_path:
        SQLite file.  ``":memory:"`` is accepted.
    salt_path:
        Per-machine salt file, created with mode 0600 on first use.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    kdf_iterations:
        PBKDF2 iteration count for the store key.
    """

    _KEY_LENGTH: int = 32  # 256 bits
    _SALT_LENGTH: int = 32

    def __init__(
        self,
        db_path: Union[Path, str],
        salt_path: Path,
        logger: StructuredLogger,
        kdf_iterations: int = 600_000,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._salt_path: Path = Path(salt_path)
        self._kdf_iterations: int = kdf_iterations
        self._key: Optional[bytes] = None
        self._key_lock: threading.Lock = threading.Lock()
        self._write_lock: threading.RLock = threading.RLock()
        self._closed: bool = False
        self._conn: sqlite3.Connection = self._connect(db_path)

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def _connect(self, db_path: Union[Path, str]) -> sqlite3.Connection:
        path_str = str(db_path)
        if path_str != ":memory:":
            Path(path_str).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path_str, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        if path_str != ":memory:":
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(_SCHEMA)
        conn.commit()
        self._logger.info("Preferences store opened at %s.", path_str)
        return conn

    def close(self) -> None:
        """Close the SQLite connection.  Safe to call more than once."""
        with self._write_lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True
            self._logger.info("Preferences store closed.")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, namespace: str, key: str) -> Optional[PreferenceValue]:
        """Return the stored value, or ``None`` if absent or unreadable."""
        try:
            row = self._conn.execute(
                "SELECT value, nonce, tag FROM preferences WHERE namespace = ? AND key = ?",
                (namespace, key),
            ).fetchone()
        except sqlite3.Error as exc:
            self._logger.warning("Failed to read preference %s.%s: %s", namespace, key, exc)
            return None

        if row is None:
            return None

        try:
            plaintext = self._decrypt(row["value"], row["nonce"], row["tag"])
            value = json.loads(plaintext.decode("utf-8"))
        except (ValueError, KeyError, OSError) as exc:
            self._logger.warning(
                "Preference %s.%s could not be decrypted (corrupted data or "
                "machine identity changed): %s",
                namespace,
                key,
                exc,
            )
            return None

        if not isinstance(value, (str, bool, int)):
            self._logger.warning("Preference %s.%s has an unsupported type.", namespace, key)
            return None
        return value

    def get_string(self, namespace: str, key: str) -> Optional[str]:
        value = self.get(namespace, key)
        return value if isinstance(value, str) else None

    def get_bool(self, namespace: str, key: str, default: bool = False) -> bool:
        value = self.get(namespace, key)
        return value if isinstance(value, bool) else default

    def get_int(self, namespace: str, key: str, default: int = 0) -> int:
        value = self.get(namespace, key)
        if isinstance(value, bool) or not isinstance(value, int):
            return default
        return value

    def contains(self, namespace: str, key: str) -> bool:
        return self.get(namespace, key) is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def put(self, namespace: str, key: str, value: PreferenceValue) -> bool:
        """Upsert a single value."""
        return self.put_many(namespace, {key: value})

    def put_many(
        self, namespace: str, values: Mapping[str, Optional[PreferenceValue]]
    ) -> bool:
        """Apply several writes in one transaction.

        A ``None`` value deletes the key.  Either every write lands or none
        does.
        """
        try:
            rows: list[tuple[str, str, bytes, bytes, bytes]] = []
            deletions: list[tuple[str, str]] = []
            for key, value in values.items():
                if value is None:
                    deletions.append((namespace, key))
                    continue
                ciphertext, nonce, tag = self._encrypt(json.dumps(value).encode("utf-8"))
                rows.append((namespace, key, ciphertext, nonce, tag))
        except (TypeError, ValueError, KeyError, OSError) as exc:
            self._logger.warning("Failed to encrypt preferences for %s: %s", namespace, exc)
            return False

        with self._write_lock:
            try:
                if deletions:
                    self._conn.executemany(
                        "DELETE FROM preferences WHERE namespace = ? AND key = ?",
                        deletions,
                    )
                if rows:
                    self._conn.executemany(
                        """
                        INSERT INTO preferences (namespace, key, value, nonce, tag)
                        VALUES (?, ?, ?, ?, ?)
                        ON CONFLICT(namespace, key) DO UPDATE SET
                            value      = excluded.value,
                            nonce      = excluded.nonce,
                            tag        = excluded.tag,
                            updated_at = CURRENT_TIMESTAMP
                        """,
                        rows,
                    )
                self._conn.commit()
            except sqlite3.Error as exc:
                self._conn.rollback()
                self._logger.error("Failed to write preferences for %s: %s", namespace, exc)
                return False

        self._logger.debug(
            "Preferences updated.",
            extra={"namespace": namespace, "keys": ",".join(sorted(values))},
        )
        return True

    def remove(self, namespace: str, *keys: str) -> bool:
        return self.put_many(namespace, {key: None for key in keys})

    def clear_namespace(self, namespace: str) -> bool:
        with self._write_lock:
            try:
                self._conn.execute("DELETE FROM preferences WHERE namespace = ?", (namespace,))
                self._conn.commit()
            except sqlite3.Error as exc:
                self._conn.rollback()
                self._logger.error("Failed to clear preferences for %s: %s", namespace, exc)
                return False
        return True

    # ------------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------------

    def _encrypt(self, plaintext: bytes) -> tuple[bytes, bytes, bytes]:
        cipher = AES.new(self._derive_key(), AES.MODE_GCM)
        ciphertext, tag = cipher.encrypt_and_digest(plaintext)
        return ciphertext, cipher.nonce, tag

    def _decrypt(self, ciphertext: bytes, nonce: bytes, tag: bytes) -> bytes:
        cipher = AES.new(self._derive_key(), AES.MODE_GCM, nonce=nonce)
        return cipher.decrypt_and_verify(ciphertext, tag)

    def _derive_key(self) -> bytes:
        """Derive (once) the 256-bit AES key from machine identity.

        Raises
        ------
        OSError
            If the per-machine salt file cannot be created or read.
        """
        if self._key is not None:
            return self._key
        with self._key_lock:
            if self._key is None:
                password = f"{socket.gethostname()}:{getpass.getuser()}"
                self._key = PBKDF2(
                    password=password,
                    salt=self._get_or_create_salt(),
                    dkLen=self._KEY_LENGTH,
                    count=self._kdf_iterations,
                    hmac_hash_module=SHA256,
                )
        return self._key

    def _get_or_create_salt(self) -> bytes:
        if self._salt_path.exists():
            data = self._salt_path.read_bytes()
            if len(data) == self._SALT_LENGTH:
                return data
            self._logger.warning(
                "Salt file has unexpected length (%d); regenerating.", len(data),
            )
        salt = os.urandom(self._SALT_LENGTH)
        self._salt_path.parent.mkdir(parents=True, exist_ok=True)
        self._salt_path.write_bytes(salt)
        if os.name == "posix":
            self._salt_path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 0o600
        self._logger.info("Per-machine preferences salt created at %s.", self._salt_path)
        return salt
