"""
BaitGuard — Engine State Store
Async key-value persistence for engine state. Values are plain JSON-able
dicts/lists; a missing key reads back as None and the caller applies defaults.

Backends:
  memory     — process-local dict (tests, ephemeral runs)
  json       — single JSON file on disk, survives restarts
  firestore  — firebase-admin; one document per key under a collection

Setup (firestore):
  1. Firebase Console → Project Settings → Service Accounts
  2. "Generate new private key" → save as `serviceAccountKey.json` in the
     project root, or point GOOGLE_APPLICATION_CREDENTIALS at it
"""
from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

# ── Keys ──────────────────────────────────────────────────────────────────────
ENGINE_CONFIG = "engine_config"
ENGINE_STATS = "engine_stats"
MODEL_SNAPSHOT = "model_snapshot"
FEEDBACK_BUFFER = "feedback_buffer"
STORE_KEYS = (ENGINE_CONFIG, ENGINE_STATS, MODEL_SNAPSHOT, FEEDBACK_BUFFER)

_SERVICEACCOUNT_PATH = Path(__file__).parent / "serviceAccountKey.json"


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryStore:
    def __init__(self, initial: dict | None = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Any | None:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Whole-file rewrite on every set; writes go through a temp file and os.replace."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error("State file %s unreadable (%s); starting empty", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        os.replace(tmp, self.path)

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
        return data.get(key)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[key] = value
            await asyncio.to_thread(self._write, data)

    async def delete(self, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            if data.pop(key, None) is not None:
                await asyncio.to_thread(self._write, data)


def get_firestore(credentials_path: str | Path | None = None):
    """Return a Firestore client, or None if Firebase is not configured."""
    import firebase_admin
    from firebase_admin import credentials, firestore

    if firebase_admin._DEFAULT_APP_NAME in firebase_admin._apps:
        return firestore.client()

    key_path = Path(credentials_path) if credentials_path else _SERVICEACCOUNT_PATH
    if key_path.exists():
        firebase_admin.initialize_app(credentials.Certificate(str(key_path)))
        logger.info("Firebase initialized via service account key")
    elif os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or os.getenv("K_SERVICE"):
        firebase_admin.initialize_app(credentials.ApplicationDefault())
        logger.info("Firebase initialized via Application Default Credentials")
    else:
        logger.warning(
            "Firebase not configured: no service account key and no "
            "GOOGLE_APPLICATION_CREDENTIALS env var"
        )
        return None
    return firestore.client()


class FirestoreStore:
    """
    One document per key. Values are stored as a JSON string field because
    Firestore rejects nested arrays (model weight matrices).
    """

    def __init__(self, client, collection: str = "baitguard"):
        self._client = client
        self.collection = collection

    def _doc(self, key: str):
        return self._client.collection(self.collection).document(key)

    async def get(self, key: str) -> Any | None:
        snap = await asyncio.to_thread(self._doc(key).get)
        if not snap.exists:
            return None
        payload = (snap.to_dict() or {}).get("json")
        return json.loads(payload) if payload else None

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._doc(key).set, {"json": json.dumps(value)})
        logger.debug("State key %s saved to Firestore", key)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._doc(key).delete)


def build_store(settings) -> KeyValueStore:
    """Pick a store from settings; firestore without credentials degrades to memory."""
    if settings.store_backend == "json":
        logger.info("Engine state persisted to %s", settings.store_path)
        return JsonFileStore(settings.store_path)
    if settings.store_backend == "firestore":
        client = get_firestore(settings.firebase_credentials_path or None)
        if client is not None:
            return FirestoreStore(client, settings.firestore_collection)
        logger.warning("Firestore unavailable; engine state will use the in-memory store")
    return InMemoryStore()
