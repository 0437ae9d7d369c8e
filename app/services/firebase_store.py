"""
Service: firebase_store.py
- Session store backed by a Firebase Realtime Database, through its REST API.
- Records live at `{database_url}/{root}/{code}.json` (the layout the web client used).

Concurrency:
- Reads ask for the record's ETag (`X-Firebase-ETag: true`).
- Conditional writes send `if-match: <etag>`; HTTP 412 means someone wrote in between
  and is raised as `StaleWriteError`. A missing record has the ETag "null_etag".

Change feed:
- `subscribe()` opens the `text/event-stream` endpoint in a daemon thread.
- Any `put`/`patch` event triggers a full re-read: listeners always receive a whole
  Session (or None once deleted), never a partial diff.
- The stream reconnects with a short backoff until unsubscribed.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import orjson
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from app.models.session import Session
from .session_store import ABSENT_VERSION, Listener, SessionStoreError, StaleWriteError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: Tuple[float, float] = (5.0, 15.0)  # connect, read
STREAM_TIMEOUT: Tuple[float, float] = (5.0, 90.0)  # keep-alives arrive every ~30s
RECONNECT_DELAY = 2.0


class FirebaseSessionStore:
    """
    REST client for the Realtime Database.
    - Retries transient failures with exponential backoff.
    - Logs each request with the session code for correlation.
    """

    def __init__(
        self,
        database_url: str,
        *,
        root: str = "games",
        auth: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Tuple[float, float] = DEFAULT_TIMEOUT,
    ) -> None:
        self.database_url = database_url.rstrip("/")
        self.root = root.strip("/")
        self.auth = auth
        self.http = session or self._build_session()
        self.timeout = timeout
        self._streams: Dict[int, "_EventStream"] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _build_session() -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=3,
            backoff_factor=0.5,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset({"GET", "PUT", "DELETE"}),
            respect_retry_after_header=True,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    # -----------------------------
    # HTTP plumbing
    # -----------------------------
    def _url(self, code: Optional[str] = None) -> str:
        if code is None:
            return f"{self.database_url}/{self.root}.json"
        return f"{self.database_url}/{self.root}/{code}.json"

    def _params(self, **extra: str) -> Dict[str, str]:
        params = dict(extra)
        if self.auth:
            params["auth"] = self.auth
        return params

    def _request(self, method: str, url: str, *, code: str, **kwargs: Any) -> requests.Response:
        try:
            logger.debug("Store request", extra={"store_method": method, "session_code": code})
            response = self.http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.error(
                "Store request failed",
                exc_info=True,
                extra={"store_method": method, "session_code": code},
            )
            raise SessionStoreError(f"{method} {code} failed") from exc
        if response.status_code == 412:
            return response
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            logger.error(
                "Store rejected request",
                extra={"store_method": method, "session_code": code, "status": response.status_code},
            )
            raise SessionStoreError(f"{method} {code} -> HTTP {response.status_code}") from exc
        return response

    @staticmethod
    def _decode(response: requests.Response, code: str) -> Any:
        try:
            return orjson.loads(response.content or b"null")
        except orjson.JSONDecodeError as exc:
            raise SessionStoreError(f"Invalid JSON payload for session {code}") from exc

    # -----------------------------
    # Reads
    # -----------------------------
    def get_versioned(self, code: str) -> Tuple[Optional[Session], str]:
        response = self._request(
            "GET", self._url(code), code=code,
            params=self._params(), headers={"X-Firebase-ETag": "true"},
        )
        version = response.headers.get("ETag", ABSENT_VERSION)
        data = self._decode(response, code)
        if not data:
            return None, version
        try:
            return Session.from_wire(data), version
        except ValueError as exc:
            raise SessionStoreError(f"Session {code} is not a valid game record") from exc

    def get(self, code: str) -> Optional[Session]:
        return self.get_versioned(code)[0]

    def exists(self, code: str) -> bool:
        response = self._request("GET", self._url(code), code=code, params=self._params(shallow="true"))
        return self._decode(response, code) is not None

    def list_codes(self) -> List[str]:
        response = self._request("GET", self._url(), code="*", params=self._params(shallow="true"))
        data = self._decode(response, "*") or {}
        return list(data.keys())

    # -----------------------------
    # Writes
    # -----------------------------
    def put(self, code: str, session: Session, expected_version: Optional[str] = None) -> str:
        headers = {"X-Firebase-ETag": "true"}
        if expected_version is not None:
            headers["if-match"] = expected_version
        response = self._request(
            "PUT", self._url(code), code=code,
            params=self._params(), headers=headers, data=orjson.dumps(session.to_wire()),
        )
        if response.status_code == 412:
            actual = response.headers.get("ETag")
            logger.warning(
                "Conditional write refused",
                extra={"session_code": code, "expected": expected_version, "actual": actual},
            )
            raise StaleWriteError(code, expected_version, actual)
        return response.headers.get("ETag", "")

    def delete(self, code: str) -> bool:
        existed = self.exists(code)
        self._request("DELETE", self._url(code), code=code, params=self._params())
        return existed

    # -----------------------------
    # Change feed
    # -----------------------------
    def subscribe(self, code: str, listener: Listener) -> Callable[[], None]:
        stream = _EventStream(self, code, listener)
        with self._lock:
            self._streams[id(stream)] = stream
        stream.start()

        def _unsubscribe() -> None:
            stream.stop()
            with self._lock:
                self._streams.pop(id(stream), None)

        return _unsubscribe

    def open_stream(self, code: str) -> requests.Response:
        return self.http.get(
            self._url(code),
            params=self._params(),
            headers={"Accept": "text/event-stream"},
            stream=True,
            timeout=STREAM_TIMEOUT,
        )

    def describe(self) -> Dict[str, object]:
        with self._lock:
            return {
                "backend": "firebase",
                "database_url": self.database_url,
                "root": self.root,
                "streams": len(self._streams),
            }


def parse_event_stream(lines: Iterator[str]) -> Iterator[Tuple[str, Optional[str]]]:
    """Group raw SSE lines into (event, data) pairs."""
    event: Optional[str] = None
    data: List[str] = []
    for line in lines:
        if line is None:
            continue
        if line == "":
            if event is not None:
                yield event, "\n".join(data) if data else None
            event, data = None, []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if name == "event":
            event = value
        elif name == "data":
            data.append(value)
    if event is not None:
        yield event, "\n".join(data) if data else None


class _EventStream:
    """One subscription: a daemon thread following the record's event stream."""

    def __init__(self, store: FirebaseSessionStore, code: str, listener: Listener) -> None:
        self.store = store
        self.code = code
        self.listener = listener
        self._stop = threading.Event()
        self._response: Optional[requests.Response] = None
        self._thread = threading.Thread(target=self._run, name=f"firebase-stream-{code}", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        response = self._response
        if response is not None:
            response.close()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self._response = self.store.open_stream(self.code)
                self._response.raise_for_status()
                lines = self._response.iter_lines(decode_unicode=True)
                for event, _data in parse_event_stream(lines):
                    if self._stop.is_set():
                        return
                    if event in ("put", "patch"):
                        self._dispatch()
                    elif event in ("cancel", "auth_revoked"):
                        logger.warning(
                            "Event stream closed by the store",
                            extra={"session_code": self.code, "sse_event": event},
                        )
                        return
            except (requests.RequestException, SessionStoreError):
                if self._stop.is_set():
                    return
                logger.warning("Event stream interrupted, reconnecting", extra={"session_code": self.code})
            finally:
                if self._response is not None:
                    self._response.close()
            self._stop.wait(RECONNECT_DELAY)

    def _dispatch(self) -> None:
        session = self.store.get(self.code)
        try:
            self.listener(self.code, session)
        except Exception:
            logger.exception("Session listener failed", extra={"session_code": self.code})
