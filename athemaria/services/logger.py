"""
Athemaria Logging System

Clean terminal output for key events + JSONL storage logs for debugging.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Any, Dict
import json


class AthemariaLogger:
    """
    Two-mode logging system:
    - Terminal: Clean, timestamped key events only
    - Debug file: Structured storage logs (Firestore + blob) when enabled
    """

    def __init__(self, debug_mode: bool = False, settings=None):
        self.debug_mode = debug_mode
        self.settings = settings
        self._python_logger = logging.getLogger("athemaria")

        # Create debug directory if storage debugging is enabled
        if settings and settings.debug_storage:
            self.debug_log_dir = Path(settings.debug_log_dir)
            self.debug_log_dir.mkdir(parents=True, exist_ok=True)

            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.storage_log = self.debug_log_dir / f"storage_{timestamp}.jsonl"

    def _timestamp(self) -> str:
        """Get formatted timestamp"""
        return datetime.now().strftime("%H:%M:%S")

    def _terminal_log(self, emoji: str, message: str, level: int = logging.INFO):
        """Emit a clean one-line event"""
        self._python_logger.log(level, f"[{self._timestamp()}] {emoji} {message}")

    def _debug_log(self, level: str, component: str, message: str, data: Optional[dict] = None):
        """Write detailed log line (debug mode only)"""
        if not self.debug_mode:
            return
        log_msg = f"{component} | {message}"
        if data:
            log_msg += f" | Data: {data}"
        log_func = getattr(self._python_logger, level.lower(), self._python_logger.info)
        log_func(log_msg)

    # ===== Terminal Output Methods =====

    def job_completed(self, job_type: str, details: str = "", duration: Optional[float] = None):
        """Log when a maintenance job completes"""
        msg = f"Job completed: {job_type}"
        if details:
            msg += f" - {details}"
        if duration:
            msg += f" in {duration:.1f}s"
        self._terminal_log("✅", msg)
        self._debug_log("info", "JOB", f"Completed {job_type}", {"details": details, "duration": duration})

    def job_failed(self, job_type: str, error: str):
        """Log when a maintenance job fails"""
        self._terminal_log("❌", f"Job failed: {job_type} - {error}", logging.ERROR)
        self._debug_log("error", "JOB", f"Failed {job_type}", {"error": error})

    def moderation_action(self, action_type: str, story_id: str, admin_id: str = ""):
        """Log an admin action against a story"""
        msg = f"Moderation: {action_type} (Story: {story_id[:8]})"
        if admin_id:
            msg += f" by {admin_id[:8]}"
        self._terminal_log("🛡️", msg)
        self._debug_log("info", "MODERATION", f"Applied {action_type}", {
            "story_id": story_id,
            "admin_id": admin_id
        })

    def error(self, component: str, message: str, error: Exception = None):
        """Log error"""
        msg = f"Error in {component}: {message}"
        if error:
            msg += f" ({type(error).__name__})"
        self._terminal_log("⚠️", msg, logging.ERROR)
        self._debug_log("error", component, message, {
            "error_type": type(error).__name__ if error else None,
            "error_message": str(error) if error else None
        })

    # ===== Debug Logging Methods =====

    def _write_json_log(self, log_file: Path, data: Dict[str, Any]):
        """Write structured JSON log entry"""
        try:
            with open(log_file, 'a') as f:
                json.dump(data, f)
                f.write('\n')
        except OSError as e:
            self.error("LOGGER", f"Failed to write JSON log: {e}")

    def storage_operation(self, operation: str, path: str, data_summary: str,
                          size_bytes: int = 0, duration: Optional[float] = None):
        """Log storage write/update/delete operations (Firestore or blob)"""
        # Skip if debug flag not enabled
        if not self.settings or not self.settings.debug_storage:
            return

        duration_str = f" in {duration*1000:.0f}ms" if duration else ""
        self._terminal_log("💾", f"Storage {operation.upper()} → {path} ({size_bytes} bytes){duration_str}", logging.DEBUG)

        if hasattr(self, 'storage_log'):
            self._write_json_log(self.storage_log, {
                "timestamp": datetime.now().isoformat(),
                "type": "storage_operation",
                "operation": operation,
                "path": path,
                "data_summary": data_summary,
                "size_bytes": size_bytes,
                "duration_seconds": duration
            })

    def storage_read(self, path: str, result_summary: str, size_bytes: int = 0,
                     duration: Optional[float] = None):
        """Log storage read/query operations"""
        if not self.settings or not self.settings.debug_storage:
            return

        duration_str = f" in {duration*1000:.0f}ms" if duration else ""
        self._terminal_log("📖", f"Storage READ ← {path} ({size_bytes} bytes){duration_str}", logging.DEBUG)

        if hasattr(self, 'storage_log'):
            self._write_json_log(self.storage_log, {
                "timestamp": datetime.now().isoformat(),
                "type": "storage_read",
                "path": path,
                "result_summary": result_summary,
                "size_bytes": size_bytes,
                "duration_seconds": duration
            })


def init_logger(debug_mode: bool = False, settings=None) -> AthemariaLogger:
    """Create the application logger with specific debug mode and settings"""
    return AthemariaLogger(debug_mode=debug_mode, settings=settings)
