"""
Session store registry
======================

Le collaborateur "store synchronisé" : seul endroit où vivent les enregistrements de session partagés.
Contrat (clé = code de session, granularité = enregistrement entier, pas de merge par champ) :

- `get_versioned(code)` -> (Session | None, version)
- `put(code, session, expected_version=None)` -> nouvelle version
  (lève `StaleWriteError` si `expected_version` ne correspond plus)
- `delete(code)`, `exists(code)`, `list_codes()`
- `subscribe(code, listener)` -> callable de désabonnement ; `listener(code, session_ou_None)`
  est appelé après chaque écriture effective ou suppression.

Écrire une valeur égale à celle stockée ne fait rien : pas de nouvelle version, pas de notification.

Backends :
- `LocalSessionStore` (ce module) : en mémoire, thread-safe, snapshots JSON optionnels.
- `FirebaseSessionStore` (firebase_store.py) : API REST de la Realtime Database.

`get_store()` construit le backend configuré à la demande ; les tests le remplacent via `set_store()`.
"""
from __future__ import annotations

import logging
import secrets
import string
from pathlib import Path
from threading import RLock
from typing import Callable, Dict, List, Optional, Tuple

from app.config.settings import settings
from app.models.session import Session
from .io_utils import delete_json, read_json, write_json

logger = logging.getLogger(__name__)

# Version d'un enregistrement absent (même jeton que la Realtime Database)
ABSENT_VERSION = "null_etag"
CODE_ALPHABET = string.ascii_uppercase + string.digits

Listener = Callable[[str, Optional[Session]], None]


class SessionStoreError(RuntimeError):
    """Store injoignable ou réponse inexploitable."""


class StaleWriteError(RuntimeError):
    """Écriture conditionnelle refusée : l'enregistrement a changé depuis la lecture."""

    def __init__(self, code: str, expected: Optional[str], actual: Optional[str]) -> None:
        super().__init__(f"Session {code}: expected version {expected}, store has {actual}")
        self.code = code
        self.expected = expected
        self.actual = actual


def generate_code(length: Optional[int] = None) -> str:
    """Code de session court, alphanumérique en majuscules."""
    size = length or settings.SESSION_CODE_LENGTH
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(size))


class LocalSessionStore:
    """
    Store en mémoire.
    - Les versions sont des compteurs entiers rendus en str.
    - Les listeners tournent de façon synchrone dans le thread de l'écrivain, hors du verrou des
      enregistrements mais sous un verrou d'écriture tenu de la mise à jour jusqu'au dernier listener :
      les notifications arrivent dans l'ordre des versions et un listener lent ne bloque pas les lectures.
    - Avec `persist_dir`, chaque enregistrement vivant est recopié dans `<persist_dir>/<code>.json`
      et supprimé au delete ; les copies sont rechargées à la construction.
    """

    def __init__(self, persist_dir: Optional[Path] = None) -> None:
        self._lock = RLock()
        # sérialise "enregistrer + notifier" entre écrivains
        self._write_lock = RLock()
        self._records: Dict[str, Tuple[Session, int]] = {}
        self._listeners: Dict[str, List[Listener]] = {}
        self.persist_dir = Path(persist_dir) if persist_dir else None
        if self.persist_dir:
            self._load_snapshots()

    # -----------------------------
    # Snapshots
    # -----------------------------
    def _snapshot_path(self, code: str) -> Path:
        return self.persist_dir / f"{code}.json"

    def _load_snapshots(self) -> None:
        if not self.persist_dir.exists():
            return
        for path in sorted(self.persist_dir.glob("*.json")):
            raw = read_json(path)
            if not raw:
                continue
            try:
                session = Session.from_wire(raw)
            except ValueError:
                logger.warning("Skipping invalid session snapshot", extra={"path": str(path)})
                continue
            self._records[session.code] = (session, 1)

    # -----------------------------
    # Lectures
    # -----------------------------
    def get_versioned(self, code: str) -> Tuple[Optional[Session], str]:
        with self._lock:
            record = self._records.get(code)
            if record is None:
                return None, ABSENT_VERSION
            session, version = record
            return session, str(version)

    def get(self, code: str) -> Optional[Session]:
        return self.get_versioned(code)[0]

    def exists(self, code: str) -> bool:
        with self._lock:
            return code in self._records

    def list_codes(self) -> List[str]:
        with self._lock:
            return list(self._records.keys())

    # -----------------------------
    # Écritures
    # -----------------------------
    def put(self, code: str, session: Session, expected_version: Optional[str] = None) -> str:
        with self._write_lock:
            with self._lock:
                current, current_version = self.get_versioned(code)
                if current is not None and current == session:
                    return current_version
                if expected_version is not None and expected_version != current_version:
                    raise StaleWriteError(code, expected_version, current_version)

                version = int(current_version) + 1 if current is not None else 1
                self._records[code] = (session, version)
                if self.persist_dir:
                    write_json(self._snapshot_path(code), session.to_wire())
                listeners = list(self._listeners.get(code, []))

            self._notify(code, session, listeners)
        return str(version)

    def delete(self, code: str) -> bool:
        with self._write_lock:
            with self._lock:
                removed = self._records.pop(code, None)
                if self.persist_dir:
                    delete_json(self._snapshot_path(code))
                listeners = list(self._listeners.get(code, []))
            if removed is None:
                return False
            self._notify(code, None, listeners)
        return True

    def clear(self) -> None:
        with self._lock:
            codes = list(self._records.keys())
        for code in codes:
            self.delete(code)

    # -----------------------------
    # Flux de changements
    # -----------------------------
    def subscribe(self, code: str, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.setdefault(code, []).append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                bucket = self._listeners.get(code)
                if bucket and listener in bucket:
                    bucket.remove(listener)
                    if not bucket:
                        self._listeners.pop(code, None)

        return _unsubscribe

    def listener_count(self, code: str) -> int:
        with self._lock:
            return len(self._listeners.get(code, []))

    def _notify(self, code: str, session: Optional[Session], listeners: List[Listener]) -> None:
        for listener in listeners:
            try:
                listener(code, session)
            except Exception:
                # un abonné cassé n'annule pas une écriture déjà faite
                logger.exception("Session listener failed", extra={"session_code": code})

    def describe(self) -> Dict[str, object]:
        with self._lock:
            return {
                "backend": "local",
                "sessions": len(self._records),
                "persist_dir": str(self.persist_dir) if self.persist_dir else None,
            }


# -----------------------------
# Registre (singleton paresseux)
# -----------------------------
_STORE = None
_STORE_LOCK = RLock()


def build_store():
    """Instancie le backend choisi par `settings.STORE_BACKEND`."""
    if settings.STORE_BACKEND == "firebase":
        from .firebase_store import FirebaseSessionStore

        if not settings.FIREBASE_DATABASE_URL:
            raise SessionStoreError("STORE_BACKEND=firebase requires FIREBASE_DATABASE_URL")
        return FirebaseSessionStore(
            settings.FIREBASE_DATABASE_URL,
            root=settings.FIREBASE_ROOT,
            auth=settings.FIREBASE_AUTH,
        )
    persist_dir = Path(settings.DATA_DIR) / "sessions" if settings.PERSIST_SESSIONS else None
    return LocalSessionStore(persist_dir=persist_dir)


def get_store():
    """Retourne le store du process (construit au premier appel)."""
    global _STORE
    with _STORE_LOCK:
        if _STORE is None:
            _STORE = build_store()
            logger.info("Session store ready", extra={"store_backend": settings.STORE_BACKEND})
        return _STORE


def set_store(store) -> None:
    """Remplace le store du process (tests, câblage alternatif)."""
    global _STORE
    with _STORE_LOCK:
        _STORE = store
