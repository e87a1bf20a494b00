"""Process-wide store for the Chatwoot integration config.

Readers get a deep copy; writers replace the whole value and persist it.
The in-memory value is authoritative for the running process: a failed save
is logged and the new value is kept.
"""

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from deskbridge.config import Settings, settings
from deskbridge.logging_config import get_logger
from deskbridge.models import SINGLETON_ROW_ID, IntegrationSettings
from deskbridge.schemas.integration import IntegrationConfig

logger = get_logger("config_store")


class ConfigStorage(ABC):
    """Durable backing for the integration config."""

    @abstractmethod
    def load(self) -> Optional[IntegrationConfig]:
        """Return the persisted config, or None when nothing is stored."""
        pass

    @abstractmethod
    def save(self, config: IntegrationConfig) -> None:
        pass


class JsonFileConfigStorage(ConfigStorage):
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> Optional[IntegrationConfig]:
        if not self.path.exists():
            return None
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read config file {self.path}: {e}")
            return None
        try:
            return IntegrationConfig.model_validate(data or {})
        except ValidationError as e:
            logger.error(f"Invalid config file {self.path}: {e}")
            return None

    def save(self, config: IntegrationConfig) -> None:
        directory = self.path.parent if str(self.path.parent) else Path(".")
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(config.model_dump(mode="json"), handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class DatabaseConfigStorage(ConfigStorage):
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def load(self) -> Optional[IntegrationConfig]:
        db = self.session_factory()
        try:
            row = db.get(IntegrationSettings, SINGLETON_ROW_ID)
            if row is None:
                return None
            return IntegrationConfig.model_validate(row.payload or {})
        except (SQLAlchemyError, ValidationError) as e:
            logger.error(f"Failed to load integration config from database: {e}")
            return None
        finally:
            db.close()

    def save(self, config: IntegrationConfig) -> None:
        db = self.session_factory()
        try:
            row = db.get(IntegrationSettings, SINGLETON_ROW_ID)
            payload = config.model_dump(mode="json")
            if row is None:
                db.add(IntegrationSettings(id=SINGLETON_ROW_ID, payload=payload))
            else:
                row.payload = payload
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()


def config_from_environment(env: Settings) -> IntegrationConfig:
    return IntegrationConfig(
        enabled=bool(env.chatwoot_url.strip()),
        base_url=env.chatwoot_url,
        api_token=env.chatwoot_token,
        account_id=env.chatwoot_account_id,
        inbox_id=env.chatwoot_inbox_id,
    )


class ConfigStore:
    def __init__(self, storage: ConfigStorage, defaults: Optional[IntegrationConfig] = None):
        self._storage = storage
        self._lock = threading.RLock()
        self._save_lock = threading.Lock()
        self._config = defaults.model_copy(deep=True) if defaults else IntegrationConfig()

    def load(self, env: Optional[Settings] = None) -> IntegrationConfig:
        """Read durable storage once, falling back to environment defaults."""
        stored = self._storage.load()
        if stored is None:
            stored = config_from_environment(env or settings)
            logger.info("No stored integration config, using environment defaults")
        with self._lock:
            self._config = stored
        return self.get()

    def get(self) -> IntegrationConfig:
        with self._lock:
            return self._config.model_copy(deep=True)

    def set(self, config: IntegrationConfig) -> None:
        snapshot = config.model_copy(deep=True)
        # Saves run in set() order; readers never wait on storage I/O
        with self._save_lock:
            with self._lock:
                self._config = snapshot
            try:
                self._storage.save(snapshot)
            except Exception as e:
                logger.error(
                    "Failed to persist integration config",
                    extra={"context": {"error": str(e), "storage": type(self._storage).__name__}},
                )


def build_storage(env: Settings) -> ConfigStorage:
    if env.config_backend == "database":
        from deskbridge.database import SessionLocal, init_db

        init_db()
        return DatabaseConfigStorage(SessionLocal)
    return JsonFileConfigStorage(env.config_file)


_store: Optional[ConfigStore] = None
_store_lock = threading.Lock()


def get_config_store() -> ConfigStore:
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                store = ConfigStore(build_storage(settings))
                store.load()
                _store = store
    return _store


def set_config_store(store: Optional[ConfigStore]) -> None:
    global _store
    with _store_lock:
        _store = store
