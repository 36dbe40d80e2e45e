import copy
import os
import threading
import uuid
from dataclasses import fields
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .constants import DEFAULT_VOICE_ID
from .models import (
    BridgeExchangeRecord,
    PhonemeProgressRecord,
    TherapySessionRecord,
    UserRecord,
    utc_now,
)

try:
    import psycopg
    from psycopg.rows import dict_row
    from psycopg.types.json import Jsonb
except Exception:  # pragma: no cover - only relevant when Postgres is enabled.
    psycopg = None
    dict_row = None
    Jsonb = None


USER_FIELDS = {f.name for f in fields(UserRecord)}
SESSION_FIELDS = {f.name for f in fields(TherapySessionRecord)}
EXCHANGE_FIELDS = {f.name for f in fields(BridgeExchangeRecord)}
USER_JSON_FIELDS = {"trigger_words"}
SESSION_JSON_FIELDS = {"word_analysis", "phoneme_issues", "recommendations"}


def normalize_database_url(database_url: str) -> str:
    if database_url.startswith("postgres://"):
        return "postgresql://" + database_url[len("postgres://") :]
    return database_url


def new_id() -> str:
    return uuid.uuid4().hex


class Store(Protocol):
    storage_name: str

    def create_user(self, **values: Any) -> UserRecord:
        pass

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        pass

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        pass

    def update_user(self, user_id: str, **values: Any) -> Optional[UserRecord]:
        pass

    def create_therapy_session(self, user_id: str, **values: Any) -> TherapySessionRecord:
        pass

    def list_therapy_sessions(
        self,
        user_id: str,
        *,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[TherapySessionRecord]:
        pass

    def count_therapy_sessions(self, user_id: str) -> int:
        pass

    def create_bridge_exchange(self, user_id: str, **values: Any) -> BridgeExchangeRecord:
        pass

    def list_bridge_exchanges(self, user_id: str, *, limit: Optional[int] = None) -> List[BridgeExchangeRecord]:
        pass

    def bridge_exchange_stats(self, user_id: str) -> Tuple[int, float]:
        pass

    def delete_bridge_exchanges(self, user_id: str) -> int:
        pass

    def get_phoneme_progress(self, user_id: str, phoneme_id: str) -> Optional[PhonemeProgressRecord]:
        pass

    def list_phoneme_progress(self, user_id: str) -> List[PhonemeProgressRecord]:
        pass

    def save_phoneme_progress(self, record: PhonemeProgressRecord) -> None:
        pass

    def delete_phoneme_progress(self, user_id: str, phoneme_id: Optional[str] = None) -> int:
        pass


def _check_fields(values: Dict[str, Any], allowed: set) -> None:
    unknown = set(values) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")


def _in_window(created_at: datetime, since: Optional[datetime], until: Optional[datetime]) -> bool:
    if since is not None and created_at < since:
        return False
    if until is not None and created_at >= until:
        return False
    return True


class InMemoryStore:
    storage_name = "memory"

    def __init__(self) -> None:
        self._users: Dict[str, UserRecord] = {}
        self._sessions: Dict[str, TherapySessionRecord] = {}
        self._exchanges: Dict[str, BridgeExchangeRecord] = {}
        self._progress: Dict[Tuple[str, str], PhonemeProgressRecord] = {}
        self._lock = threading.Lock()

    def create_user(self, **values: Any) -> UserRecord:
        _check_fields(values, USER_FIELDS)
        now = utc_now()
        values.setdefault("id", new_id())
        values.setdefault("created_at", now)
        values.setdefault("updated_at", now)
        user = UserRecord(**values)
        with self._lock:
            if any(existing.email == user.email for existing in self._users.values()):
                raise ValueError(f"User with email {user.email} already exists.")
            self._users[user.id] = user
            return copy.deepcopy(user)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            user = self._users.get(user_id)
            return copy.deepcopy(user) if user else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self._lock:
            for user in self._users.values():
                if user.email == email:
                    return copy.deepcopy(user)
        return None

    def update_user(self, user_id: str, **values: Any) -> Optional[UserRecord]:
        _check_fields(values, USER_FIELDS - {"id", "created_at"})
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            for key, value in values.items():
                setattr(user, key, value)
            user.updated_at = utc_now()
            return copy.deepcopy(user)

    def create_therapy_session(self, user_id: str, **values: Any) -> TherapySessionRecord:
        _check_fields(values, SESSION_FIELDS - {"user_id"})
        values.setdefault("id", new_id())
        values.setdefault("created_at", utc_now())
        session = TherapySessionRecord(user_id=user_id, **values)
        with self._lock:
            self._sessions[session.id] = session
            return copy.deepcopy(session)

    def list_therapy_sessions(
        self,
        user_id: str,
        *,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[TherapySessionRecord]:
        with self._lock:
            matching = [
                session
                for session in self._sessions.values()
                if session.user_id == user_id and _in_window(session.created_at, since, until)
            ]
            matching.sort(key=lambda item: item.created_at, reverse=True)
            end = offset + limit if limit is not None else None
            return copy.deepcopy(matching[offset:end])

    def count_therapy_sessions(self, user_id: str) -> int:
        with self._lock:
            return sum(1 for session in self._sessions.values() if session.user_id == user_id)

    def create_bridge_exchange(self, user_id: str, **values: Any) -> BridgeExchangeRecord:
        _check_fields(values, EXCHANGE_FIELDS - {"user_id"})
        values.setdefault("id", new_id())
        values.setdefault("created_at", utc_now())
        exchange = BridgeExchangeRecord(user_id=user_id, **values)
        with self._lock:
            self._exchanges[exchange.id] = exchange
            return copy.deepcopy(exchange)

    def list_bridge_exchanges(self, user_id: str, *, limit: Optional[int] = None) -> List[BridgeExchangeRecord]:
        with self._lock:
            matching = [item for item in self._exchanges.values() if item.user_id == user_id]
            matching.sort(key=lambda item: item.created_at, reverse=True)
            return copy.deepcopy(matching[:limit] if limit is not None else matching)

    def bridge_exchange_stats(self, user_id: str) -> Tuple[int, float]:
        with self._lock:
            confidences = [item.confidence for item in self._exchanges.values() if item.user_id == user_id]
        if not confidences:
            return 0, 0.0
        return len(confidences), sum(confidences) / len(confidences)

    def delete_bridge_exchanges(self, user_id: str) -> int:
        with self._lock:
            doomed = [key for key, item in self._exchanges.items() if item.user_id == user_id]
            for key in doomed:
                del self._exchanges[key]
            return len(doomed)

    def get_phoneme_progress(self, user_id: str, phoneme_id: str) -> Optional[PhonemeProgressRecord]:
        with self._lock:
            record = self._progress.get((user_id, phoneme_id))
            return copy.deepcopy(record) if record else None

    def list_phoneme_progress(self, user_id: str) -> List[PhonemeProgressRecord]:
        with self._lock:
            records = [record for (owner, _), record in self._progress.items() if owner == user_id]
            return copy.deepcopy(records)

    def save_phoneme_progress(self, record: PhonemeProgressRecord) -> None:
        with self._lock:
            self._progress[(record.user_id, record.phoneme_id)] = copy.deepcopy(record)

    def delete_phoneme_progress(self, user_id: str, phoneme_id: Optional[str] = None) -> int:
        with self._lock:
            doomed = [
                key
                for key in self._progress
                if key[0] == user_id and (phoneme_id is None or key[1] == phoneme_id)
            ]
            for key in doomed:
                del self._progress[key]
            return len(doomed)


class PostgresStore:
    storage_name = "postgres"

    def __init__(self, database_url: str) -> None:
        if psycopg is None or Jsonb is None:
            raise RuntimeError("psycopg is required when DATABASE_URL is set.")
        self._database_url = normalize_database_url(database_url)
        self._ensure_schema()

    def _connect(self):
        return psycopg.connect(self._database_url, autocommit=True, row_factory=dict_row)

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS users (
                        id TEXT PRIMARY KEY,
                        email TEXT NOT NULL UNIQUE,
                        password_hash TEXT NOT NULL,
                        name TEXT NOT NULL,
                        avatar TEXT NULL,
                        is_email_verified BOOLEAN NOT NULL DEFAULT FALSE,
                        verification_code TEXT NULL,
                        verification_code_expires_at TIMESTAMPTZ NULL,
                        disability_type TEXT NOT NULL DEFAULT 'other',
                        disability_severity INTEGER NOT NULL DEFAULT 5,
                        trigger_words JSONB NOT NULL DEFAULT '[]'::jsonb,
                        disability_description TEXT NULL,
                        voice_id TEXT NOT NULL,
                        speed DOUBLE PRECISION NOT NULL DEFAULT 1.0,
                        font_mode TEXT NOT NULL DEFAULT 'default',
                        text_size TEXT NOT NULL DEFAULT 'normal',
                        high_contrast BOOLEAN NOT NULL DEFAULT FALSE,
                        reduced_motion BOOLEAN NOT NULL DEFAULT FALSE,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS therapy_sessions (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                        target_text TEXT NOT NULL,
                        transcribed_text TEXT NOT NULL DEFAULT '',
                        duration DOUBLE PRECISION NOT NULL DEFAULT 0,
                        accuracy DOUBLE PRECISION NOT NULL DEFAULT 0,
                        clarity_score DOUBLE PRECISION NOT NULL DEFAULT 0,
                        overall_score DOUBLE PRECISION NOT NULL DEFAULT 0,
                        word_analysis JSONB NOT NULL DEFAULT '[]'::jsonb,
                        phoneme_issues JSONB NOT NULL DEFAULT '[]'::jsonb,
                        recommendations JSONB NOT NULL DEFAULT '[]'::jsonb,
                        difficulty TEXT NOT NULL DEFAULT 'easy',
                        category TEXT NOT NULL DEFAULT 'General',
                        emotion TEXT NOT NULL DEFAULT 'neutral'
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_therapy_sessions_user_created
                    ON therapy_sessions (user_id, created_at DESC)
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS bridge_exchanges (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                        original_text TEXT NOT NULL,
                        corrected_text TEXT NOT NULL,
                        confidence DOUBLE PRECISION NOT NULL DEFAULT 0,
                        intent TEXT NULL,
                        corrections JSONB NOT NULL DEFAULT '[]'::jsonb,
                        context TEXT NULL
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_bridge_exchanges_user_created
                    ON bridge_exchanges (user_id, created_at DESC)
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS phoneme_progress (
                        user_id TEXT NOT NULL,
                        phoneme_id TEXT NOT NULL,
                        progress DOUBLE PRECISION NOT NULL CHECK (progress BETWEEN 0 AND 100),
                        practice_count INTEGER NOT NULL DEFAULT 0,
                        last_practiced_at TIMESTAMPTZ NOT NULL,
                        accuracy_history JSONB NOT NULL DEFAULT '[]'::jsonb,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                        PRIMARY KEY (user_id, phoneme_id)
                    )
                    """
                )

    @staticmethod
    def _adapt(values: Dict[str, Any], json_fields: set) -> Dict[str, Any]:
        return {key: (Jsonb(value) if key in json_fields else value) for key, value in values.items()}

    def _insert(self, table: str, values: Dict[str, Any]) -> dict:
        columns = ", ".join(values.keys())
        placeholders = ", ".join(["%s"] * len(values))
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"INSERT INTO {table} ({columns}) VALUES ({placeholders}) RETURNING *",
                    list(values.values()),
                )
                return cur.fetchone()

    def create_user(self, **values: Any) -> UserRecord:
        _check_fields(values, USER_FIELDS)
        values.setdefault("id", new_id())
        values.setdefault("voice_id", DEFAULT_VOICE_ID)
        values.setdefault("trigger_words", [])
        try:
            row = self._insert("users", self._adapt(values, USER_JSON_FIELDS))
        except psycopg.errors.UniqueViolation as exc:
            raise ValueError(f"User with email {values.get('email')} already exists.") from exc
        return UserRecord(**row)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM users WHERE id = %s", (user_id,))
                row = cur.fetchone()
        return UserRecord(**row) if row else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM users WHERE email = %s", (email,))
                row = cur.fetchone()
        return UserRecord(**row) if row else None

    def update_user(self, user_id: str, **values: Any) -> Optional[UserRecord]:
        _check_fields(values, USER_FIELDS - {"id", "created_at"})
        adapted = self._adapt(values, USER_JSON_FIELDS)
        assignments = [f"{key} = %s" for key in adapted]
        assignments.append("updated_at = NOW()")
        query = f"UPDATE users SET {', '.join(assignments)} WHERE id = %s RETURNING *"
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(query, [*adapted.values(), user_id])
                row = cur.fetchone()
        return UserRecord(**row) if row else None

    def create_therapy_session(self, user_id: str, **values: Any) -> TherapySessionRecord:
        _check_fields(values, SESSION_FIELDS - {"user_id"})
        values.setdefault("id", new_id())
        values["user_id"] = user_id
        row = self._insert("therapy_sessions", self._adapt(values, SESSION_JSON_FIELDS))
        return TherapySessionRecord(**row)

    def list_therapy_sessions(
        self,
        user_id: str,
        *,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[TherapySessionRecord]:
        clauses = ["user_id = %s"]
        params: List[Any] = [user_id]
        if since is not None:
            clauses.append("created_at >= %s")
            params.append(since)
        if until is not None:
            clauses.append("created_at < %s")
            params.append(until)
        query = f"SELECT * FROM therapy_sessions WHERE {' AND '.join(clauses)} ORDER BY created_at DESC"
        if limit is not None:
            query += " LIMIT %s"
            params.append(limit)
        if offset:
            query += " OFFSET %s"
            params.append(offset)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
        return [TherapySessionRecord(**row) for row in rows]

    def count_therapy_sessions(self, user_id: str) -> int:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT COUNT(*) AS total FROM therapy_sessions WHERE user_id = %s", (user_id,))
                return int(cur.fetchone()["total"])

    def create_bridge_exchange(self, user_id: str, **values: Any) -> BridgeExchangeRecord:
        _check_fields(values, EXCHANGE_FIELDS - {"user_id"})
        values.setdefault("id", new_id())
        values["user_id"] = user_id
        row = self._insert("bridge_exchanges", self._adapt(values, {"corrections"}))
        return BridgeExchangeRecord(**row)

    def list_bridge_exchanges(self, user_id: str, *, limit: Optional[int] = None) -> List[BridgeExchangeRecord]:
        query = "SELECT * FROM bridge_exchanges WHERE user_id = %s ORDER BY created_at DESC"
        params: List[Any] = [user_id]
        if limit is not None:
            query += " LIMIT %s"
            params.append(limit)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
        return [BridgeExchangeRecord(**row) for row in rows]

    def bridge_exchange_stats(self, user_id: str) -> Tuple[int, float]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT COUNT(*) AS total, COALESCE(AVG(confidence), 0) AS average
                    FROM bridge_exchanges
                    WHERE user_id = %s
                    """,
                    (user_id,),
                )
                row = cur.fetchone()
        return int(row["total"]), float(row["average"])

    def delete_bridge_exchanges(self, user_id: str) -> int:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM bridge_exchanges WHERE user_id = %s", (user_id,))
                return cur.rowcount

    def get_phoneme_progress(self, user_id: str, phoneme_id: str) -> Optional[PhonemeProgressRecord]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT * FROM phoneme_progress WHERE user_id = %s AND phoneme_id = %s",
                    (user_id, phoneme_id),
                )
                row = cur.fetchone()
        return PhonemeProgressRecord(**row) if row else None

    def list_phoneme_progress(self, user_id: str) -> List[PhonemeProgressRecord]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT * FROM phoneme_progress WHERE user_id = %s ORDER BY updated_at DESC",
                    (user_id,),
                )
                rows = cur.fetchall()
        return [PhonemeProgressRecord(**row) for row in rows]

    def save_phoneme_progress(self, record: PhonemeProgressRecord) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO phoneme_progress (
                        user_id,
                        phoneme_id,
                        progress,
                        practice_count,
                        last_practiced_at,
                        accuracy_history,
                        created_at,
                        updated_at
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (user_id, phoneme_id) DO UPDATE SET
                        progress = EXCLUDED.progress,
                        practice_count = EXCLUDED.practice_count,
                        last_practiced_at = EXCLUDED.last_practiced_at,
                        accuracy_history = EXCLUDED.accuracy_history,
                        updated_at = EXCLUDED.updated_at
                    """,
                    (
                        record.user_id,
                        record.phoneme_id,
                        record.progress,
                        record.practice_count,
                        record.last_practiced_at,
                        Jsonb(record.accuracy_history),
                        record.created_at,
                        record.updated_at,
                    ),
                )

    def delete_phoneme_progress(self, user_id: str, phoneme_id: Optional[str] = None) -> int:
        with self._connect() as conn:
            with conn.cursor() as cur:
                if phoneme_id is None:
                    cur.execute("DELETE FROM phoneme_progress WHERE user_id = %s", (user_id,))
                else:
                    cur.execute(
                        "DELETE FROM phoneme_progress WHERE user_id = %s AND phoneme_id = %s",
                        (user_id, phoneme_id),
                    )
                return cur.rowcount


def build_store() -> Store:
    database_url = os.getenv("DATABASE_URL", "").strip()
    if database_url:
        return PostgresStore(database_url=database_url)
    return InMemoryStore()
