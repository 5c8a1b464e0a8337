"""Lock manager settings loader."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, ValidationError, model_validator

from lockmanager.core.locks_mongo import COLLECTION
from lockmanager.utils.logging import configure_logging


class RedisSettings(BaseModel):
    url: str = "redis://localhost:6379/0"
    atomic_release: bool = True  # False only for servers without EVAL


class MongoSettings(BaseModel):
    url: str = "mongodb://localhost:27017"
    database: str
    collection: str = COLLECTION
    ensure_indexes: bool = True


class LockSettings(BaseModel):
    backend: Literal["memory", "redis", "mongo"] = "memory"
    redis: Optional[RedisSettings] = None
    mongo: Optional[MongoSettings] = None
    log_level: str = "INFO"
    rich_logging: bool = True

    @model_validator(mode="after")
    def _backend_section_present(self) -> "LockSettings":
        if self.backend == "mongo" and self.mongo is None:
            raise ValueError("backend 'mongo' requires a 'mongo' section")
        if self.backend == "redis" and self.redis is None:
            self.redis = RedisSettings()
        return self

    @classmethod
    def from_file(cls, path: Path) -> "LockSettings":
        data = yaml.safe_load(path.read_text()) or {}
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid lock settings: {exc}") from exc

    def apply_logging(self) -> logging.Logger:
        """Configure the library logger from ``log_level`` / ``rich_logging``."""
        return configure_logging(self.log_level, rich=self.rich_logging)
