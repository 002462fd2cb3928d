"""
Catalog Cache
目录条目缓存 - 内存与 SQLite 两种后端
"""
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Tuple
from pathlib import Path
from datetime import datetime
import json
import sqlite3
import threading
import logging

from models import CatalogItem, CacheStats
from utils.exceptions import CacheUnavailableError


logger = logging.getLogger(__name__)

# SQLite 单条语句的参数上限 (保守值)
_SQLITE_CHUNK = 500


class BaseCatalogCache(ABC):
    """
    目录缓存抽象基类

    初始化之后的任何不可用都以空结果返回，调用方按未命中处理；
    只有 initialize() 失败才会抛出 CacheUnavailableError。
    """

    def initialize(self) -> None:
        """启动检查，失败时抛出 CacheUnavailableError"""
        pass

    def close(self) -> None:
        """释放资源"""
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[CatalogItem]:
        """获取单条缓存"""
        pass

    @abstractmethod
    def get_many(self, keys: Iterable[str]) -> Dict[str, CatalogItem]:
        """批量获取，只返回命中的部分"""
        pass

    @abstractmethod
    def set(self, key: str, item: CatalogItem) -> None:
        """写入单条缓存"""
        pass

    @abstractmethod
    def set_many(self, pairs: Iterable[Tuple[str, CatalogItem]]) -> None:
        """批量写入 (单个事务)"""
        pass

    @abstractmethod
    def stats(self) -> CacheStats:
        """缓存统计"""
        pass


class MemoryCatalogCache(BaseCatalogCache):
    """
    内存缓存
    带锁的字典，适合开发和测试
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, Dict] = {}

    def get(self, key: str) -> Optional[CatalogItem]:
        with self._lock:
            entry = self._entries.get(key)
            return entry["item"] if entry else None

    def get_many(self, keys: Iterable[str]) -> Dict[str, CatalogItem]:
        with self._lock:
            return {
                key: self._entries[key]["item"]
                for key in keys
                if key in self._entries
            }

    def set(self, key: str, item: CatalogItem) -> None:
        self.set_many([(key, item)])

    def set_many(self, pairs: Iterable[Tuple[str, CatalogItem]]) -> None:
        now = datetime.now()
        with self._lock:
            for key, item in pairs:
                existing = self._entries.get(key)
                self._entries[key] = {
                    "item": item,
                    "created_at": existing["created_at"] if existing else now,
                    "updated_at": now,
                }

    def stats(self) -> CacheStats:
        with self._lock:
            if not self._entries:
                return CacheStats()
            created = [entry["created_at"] for entry in self._entries.values()]
            return CacheStats(count=len(created), oldest=min(created), newest=max(created))


class SQLiteCatalogCache(BaseCatalogCache):
    """
    SQLite 持久化缓存
    单表 catalog_items(key, payload, created_at, updated_at)，每线程一个连接
    """

    def __init__(self, db_path: str = "./data/catalog_cache.db"):
        """
        初始化 SQLite 缓存

        Args:
            db_path: 数据库文件路径
        """
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._ready = False

    def _get_connection(self) -> sqlite3.Connection:
        """获取线程本地连接"""
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            self._local.connection = conn
            with self._connections_lock:
                self._connections.append(conn)
        return conn

    def initialize(self) -> None:
        """建表并开启 WAL"""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._get_connection()
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS catalog_items (
                    key TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_catalog_items_created ON catalog_items(created_at)"
            )
            conn.commit()
        except (OSError, sqlite3.Error) as e:
            raise CacheUnavailableError(
                f"Catalog cache unavailable: {e}",
                {"db_path": str(self.db_path)},
            ) from e
        self._ready = True
        logger.info(f"Catalog cache ready at {self.db_path}")

    def close(self) -> None:
        with self._connections_lock:
            connections = list(self._connections)
            self._connections.clear()
        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error:
                logger.debug("Failed to close cache connection", exc_info=True)
        self._local = threading.local()
        self._ready = False

    @staticmethod
    def _decode(payload: str) -> Optional[CatalogItem]:
        try:
            return CatalogItem.model_validate(json.loads(payload))
        except (ValueError, TypeError) as e:
            logger.warning(f"Dropping unreadable cache payload: {e}")
            return None

    def get(self, key: str) -> Optional[CatalogItem]:
        return self.get_many([key]).get(key)

    def get_many(self, keys: Iterable[str]) -> Dict[str, CatalogItem]:
        unique_keys = list(dict.fromkeys(keys))
        if not self._ready or not unique_keys:
            return {}

        found: Dict[str, CatalogItem] = {}
        try:
            conn = self._get_connection()
            for start in range(0, len(unique_keys), _SQLITE_CHUNK):
                chunk = unique_keys[start:start + _SQLITE_CHUNK]
                placeholders = ",".join("?" for _ in chunk)
                rows = conn.execute(
                    f"SELECT key, payload FROM catalog_items WHERE key IN ({placeholders})",
                    chunk,
                ).fetchall()
                for row in rows:
                    item = self._decode(row["payload"])
                    if item is not None:
                        found[row["key"]] = item
        except sqlite3.Error as e:
            logger.warning(f"Cache read failed, treating as miss: {e}")
            return {}
        return found

    def set(self, key: str, item: CatalogItem) -> None:
        self.set_many([(key, item)])

    def set_many(self, pairs: Iterable[Tuple[str, CatalogItem]]) -> None:
        rows = [
            (key, item.model_dump_json())
            for key, item in pairs
        ]
        if not self._ready or not rows:
            return

        now = datetime.now().isoformat()
        try:
            conn = self._get_connection()
            with conn:
                conn.executemany(
                    """
                    INSERT INTO catalog_items (key, payload, created_at, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        payload = excluded.payload,
                        updated_at = excluded.updated_at
                    """,
                    [(key, payload, now, now) for key, payload in rows],
                )
        except sqlite3.Error as e:
            logger.warning(f"Cache write failed for {len(rows)} items: {e}")

    def stats(self) -> CacheStats:
        if not self._ready:
            return CacheStats()
        try:
            row = self._get_connection().execute(
                "SELECT COUNT(*) AS count, MIN(created_at) AS oldest, MAX(created_at) AS newest "
                "FROM catalog_items"
            ).fetchone()
        except sqlite3.Error as e:
            logger.warning(f"Cache stats failed: {e}")
            return CacheStats()

        if not row or not row["count"]:
            return CacheStats()
        return CacheStats(
            count=int(row["count"]),
            oldest=datetime.fromisoformat(row["oldest"]),
            newest=datetime.fromisoformat(row["newest"]),
        )


def get_cache(
    provider: Optional[str] = None,
    db_path: Optional[str] = None,
) -> BaseCatalogCache:
    """
    获取缓存实例 (每次调用返回新实例，需调用 initialize)

    Args:
        provider: 提供商 (sqlite, memory)，默认读取配置
        db_path: SQLite 文件路径，默认读取配置

    Returns:
        缓存实例
    """
    from config import get_cache_settings

    settings = get_cache_settings()
    provider = (provider or settings.provider).lower()

    if provider == "memory":
        return MemoryCatalogCache()

    elif provider == "sqlite":
        return SQLiteCatalogCache(db_path=db_path or settings.db_path)

    else:
        raise ValueError(f"Unknown cache provider: {provider}")
