# apps/offline/local_store.py

"""
Durable client-side store for the offline kit (SQLite).

Records live in named stores (boards, cards, columns, labels,
pending-operations, settings) as JSON documents keyed by their id,
with secondary indexes over selected fields.
"""

import json
import logging
import sqlite3
import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

BOARDS = 'boards'
CARDS = 'cards'
COLUMNS = 'columns'
LABELS = 'labels'
PENDING_OPERATIONS = 'pending-operations'
SETTINGS = 'settings'

STORES = (BOARDS, CARDS, COLUMNS, LABELS, PENDING_OPERATIONS, SETTINGS)

# Field holding the record key, per store
KEY_PATHS = {store: 'id' for store in STORES}
KEY_PATHS[SETTINGS] = 'key'

INDEXES = {
    CARDS: ('boardId', 'columnId', 'dueDate'),
    COLUMNS: ('boardId',),
    PENDING_OPERATIONS: ('type', 'timestamp'),
}

OPERATION_TYPES = ('board', 'card', 'column', 'label')
OPERATION_METHODS = ('POST', 'PUT', 'PATCH', 'DELETE')


class StorageError(Exception):
    """A store operation could not be made durable"""


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class PendingOperation:
    """A mutation waiting to be replayed against the API"""

    type: str
    method: str
    endpoint: str
    data: Optional[Any] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: int = field(default_factory=now_ms)
    retry_count: int = 0

    @classmethod
    def create(cls, type: str, method: str, endpoint: str, data=None) -> 'PendingOperation':
        method = method.upper()
        if type not in OPERATION_TYPES:
            raise ValueError(f"Unknown operation type {type!r}")
        if method not in OPERATION_METHODS:
            raise ValueError(f"Unsupported method {method!r}")
        return cls(type=type, method=method, endpoint=endpoint, data=data)

    def to_record(self) -> Dict:
        record = {
            'id': self.id,
            'type': self.type,
            'method': self.method,
            'endpoint': self.endpoint,
            'timestamp': self.timestamp,
            'retryCount': self.retry_count,
        }
        if self.data is not None:
            record['data'] = self.data
        return record

    @classmethod
    def from_record(cls, record: Dict) -> 'PendingOperation':
        return cls(
            id=record['id'],
            type=record['type'],
            method=record['method'],
            endpoint=record['endpoint'],
            data=record.get('data'),
            timestamp=record['timestamp'],
            retry_count=record.get('retryCount', 0),
        )


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection shared by the store's callers"""
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    if db_path != ':memory:':
        conn.execute("PRAGMA journal_mode = WAL")
    return conn


class LocalStore:
    """SQLite-backed key-value store with named stores and indexes"""

    def __init__(self, db_path: str = ':memory:'):
        self.db_path = str(db_path)
        self._lock = threading.RLock()
        try:
            if self.db_path != ':memory:':
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = _connect(self.db_path)
            self._init_schema()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Cannot open local store at {self.db_path}: {e}") from e

    def _init_schema(self):
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    store TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,  -- JSON document
                    seq INTEGER NOT NULL,  -- insertion order
                    PRIMARY KEY (store, key)
                )
            """)
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_records_seq ON records(store, seq)")
            for store, fields in INDEXES.items():
                for name in fields:
                    table_safe = store.replace('-', '_')
                    self._conn.execute(
                        f"CREATE INDEX IF NOT EXISTS idx_{table_safe}_{name} "
                        f"ON records(json_extract(value, '$.{name}')) WHERE store = '{store}'"
                    )

    def close(self):
        with self._lock:
            self._conn.close()

    # === Primitive operations ===

    def _check_store(self, store: str):
        if store not in STORES:
            raise StorageError(f"Unknown store {store!r}")

    def _execute(self, sql: str, params=(), many=False):
        with self._lock:
            try:
                with self._conn:
                    if many:
                        return self._conn.executemany(sql, params).fetchall()
                    return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                logger.error("Local store failure: %s", e)
                raise StorageError(str(e)) from e

    @staticmethod
    def _key(value) -> str:
        return json.dumps(value)

    def _upsert_params(self, store: str, value: Dict):
        key_path = KEY_PATHS[store]
        if not isinstance(value, dict) or value.get(key_path) is None:
            raise StorageError(f"Records in {store!r} need a {key_path!r}")
        try:
            document = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Record is not JSON serializable: {e}") from e
        return store, self._key(value[key_path]), document

    def get(self, store: str, key) -> Optional[Dict]:
        self._check_store(store)
        rows = self._execute(
            "SELECT value FROM records WHERE store = ? AND key = ?",
            (store, self._key(key)),
        )
        return json.loads(rows[0]['value']) if rows else None

    def get_all(self, store: str) -> List[Dict]:
        """Every record of the store, in insertion order"""
        self._check_store(store)
        rows = self._execute("SELECT value FROM records WHERE store = ? ORDER BY seq", (store,))
        return [json.loads(row['value']) for row in rows]

    def put(self, store: str, value: Dict) -> Dict:
        """Inserts or replaces a record, a replaced record keeps its place"""
        self._check_store(store)
        self._execute(
            """
            INSERT INTO records (store, key, value, seq)
            VALUES (?, ?, ?, (SELECT COALESCE(MAX(seq), 0) + 1 FROM records))
            ON CONFLICT (store, key) DO UPDATE SET value = excluded.value
            """,
            self._upsert_params(store, value),
        )
        return value

    def put_many(self, store: str, values: Iterable[Dict]) -> int:
        self._check_store(store)
        params = [self._upsert_params(store, value) for value in values]
        if params:
            self._execute(
                """
                INSERT INTO records (store, key, value, seq)
                VALUES (?, ?, ?, (SELECT COALESCE(MAX(seq), 0) + 1 FROM records))
                ON CONFLICT (store, key) DO UPDATE SET value = excluded.value
                """,
                params,
                many=True,
            )
        return len(params)

    def remove(self, store: str, key):
        self._check_store(store)
        self._execute("DELETE FROM records WHERE store = ? AND key = ?", (store, self._key(key)))

    def remove_many(self, store: str, keys: Iterable):
        self._check_store(store)
        params = [(store, self._key(key)) for key in keys]
        if params:
            self._execute("DELETE FROM records WHERE store = ? AND key = ?", params, many=True)

    def clear(self, store: str):
        self._check_store(store)
        self._execute("DELETE FROM records WHERE store = ?", (store,))

    def count(self, store: str) -> int:
        self._check_store(store)
        rows = self._execute("SELECT COUNT(*) AS total FROM records WHERE store = ?", (store,))
        return rows[0]['total']

    def get_by_index(self, store: str, index: str, value) -> List[Dict]:
        """Records whose indexed field equals value"""
        self._check_store(store)
        if index not in INDEXES.get(store, ()):
            raise StorageError(f"Store {store!r} has no index {index!r}")
        rows = self._execute(
            f"SELECT value FROM records WHERE store = ? AND json_extract(value, '$.{index}') = ? ORDER BY seq",
            (store, value),
        )
        return [json.loads(row['value']) for row in rows]

    # === Entity helpers ===

    def cache_board(self, board: Dict):
        """
        Writes a nested board snapshot

        The board, its columns and their cards go to their own stores,
        with boardId / columnId filled in.
        """
        board = dict(board)
        columns = board.pop('columns', None) or []
        labels = board.pop('labels', None) or []
        board.pop('members', None)

        column_records = []
        card_records = []
        for column in columns:
            column = dict(column)
            cards = column.pop('cards', None) or []
            column['boardId'] = board['id']
            column_records.append(column)
            for card in cards:
                card = dict(card)
                card['boardId'] = board['id']
                card['columnId'] = column['id']
                card_records.append(card)

        self.put(BOARDS, board)
        self.put_many(COLUMNS, column_records)
        self.put_many(CARDS, card_records)
        self.put_many(LABELS, [dict(label, boardId=board['id']) for label in labels])
        logger.debug("Cached board %s (%d columns, %d cards)", board['id'], len(column_records), len(card_records))

    def get_board_cards(self, board_id) -> List[Dict]:
        return self.get_by_index(CARDS, 'boardId', board_id)

    def get_board_columns(self, board_id) -> List[Dict]:
        columns = self.get_by_index(COLUMNS, 'boardId', board_id)
        return sorted(columns, key=lambda column: column.get('position', 0))

    def delete_board(self, board_id):
        """Removes a board with its columns and cards"""
        self.remove_many(CARDS, [card['id'] for card in self.get_by_index(CARDS, 'boardId', board_id)])
        self.remove_many(COLUMNS, [column['id'] for column in self.get_by_index(COLUMNS, 'boardId', board_id)])
        self.remove_many(LABELS, [label['id'] for label in self.get_all(LABELS) if label.get('boardId') == board_id])
        self.remove(BOARDS, board_id)

    # === Pending operations ===

    def add_pending_operation(self, operation: PendingOperation) -> PendingOperation:
        self.put(PENDING_OPERATIONS, operation.to_record())
        return operation

    def get_pending_operations(self) -> List[PendingOperation]:
        """Queued operations in enqueue order"""
        return [PendingOperation.from_record(record) for record in self.get_all(PENDING_OPERATIONS)]

    def update_pending_operation(self, operation: PendingOperation):
        self.put(PENDING_OPERATIONS, operation.to_record())

    def remove_pending_operation(self, operation_id: str):
        self.remove(PENDING_OPERATIONS, operation_id)

    def pending_count(self) -> int:
        return self.count(PENDING_OPERATIONS)

    # === Settings ===

    def get_setting(self, key: str, default=None):
        record = self.get(SETTINGS, key)
        return record['value'] if record else default

    def set_setting(self, key: str, value):
        self.put(SETTINGS, {'key': key, 'value': value})

    # === Bulk clearing ===

    def clear_offline_data(self):
        """Drops cached entities and the pending queue"""
        for store in (BOARDS, CARDS, COLUMNS, PENDING_OPERATIONS):
            self.clear(store)

    def clear_all(self):
        for store in STORES:
            self.clear(store)
