"""Tunables for the import pipeline."""

from __future__ import annotations

from dataclasses import dataclass

from catalog_import.domain.import_pipeline.duplicates import DEFAULT_LOOKUP_WORKERS
from catalog_import.domain.import_pipeline.executor import (
    DEFAULT_PROGRESS_INTERVAL,
    DEFAULT_WRITE_ATTEMPTS,
)
from catalog_import.domain.import_pipeline.history import DEFAULT_PAGE_SIZE
from catalog_import.domain.import_pipeline.parsing import DEFAULT_CHUNK_SIZE

from .env import positive_int_env


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    chunk_size: int = DEFAULT_CHUNK_SIZE
    lookup_workers: int = DEFAULT_LOOKUP_WORKERS
    write_attempts: int = DEFAULT_WRITE_ATTEMPTS
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL
    page_size: int = DEFAULT_PAGE_SIZE


def get_pipeline_config() -> PipelineConfig:
    chunk_size = positive_int_env("CATALOG_IMPORT_CHUNK_SIZE", DEFAULT_CHUNK_SIZE)
    return PipelineConfig(
        chunk_size=chunk_size,
        lookup_workers=positive_int_env("CATALOG_IMPORT_LOOKUP_WORKERS", DEFAULT_LOOKUP_WORKERS),
        write_attempts=positive_int_env("CATALOG_IMPORT_WRITE_ATTEMPTS", DEFAULT_WRITE_ATTEMPTS),
        progress_interval=chunk_size,
        page_size=positive_int_env("CATALOG_IMPORT_PAGE_SIZE", DEFAULT_PAGE_SIZE),
    )
