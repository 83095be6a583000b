"""Services applying remote status updates."""

from status_sync.services.process_status import (
    ProcessResult,
    ProcessStatusService,
    build_process_status_service,
    process_status_update,
)

__all__ = [
    "ProcessResult",
    "ProcessStatusService",
    "build_process_status_service",
    "process_status_update",
]
