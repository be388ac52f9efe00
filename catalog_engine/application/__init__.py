"""Application layer module.

Contains the import/export job services (use cases), the in-memory job
queue and the background workers that drain it.
"""

from catalog_engine.application.export_service import (
    ProductCatalogExportService,
    run_export_job,
)
from catalog_engine.application.import_service import (
    ImportPreview,
    ProductCatalogImportService,
    RowError,
    run_import_job,
)
from catalog_engine.application.job_queue import JobQueue
from catalog_engine.application.workers import JobWorker, start_workers

__all__ = [
    "ImportPreview",
    "ProductCatalogImportService",
    "RowError",
    "run_import_job",
    "ProductCatalogExportService",
    "run_export_job",
    "JobQueue",
    "JobWorker",
    "start_workers",
]
