"""API route handlers for the backup service.

    GET  /api/status          - Backup root, settings summary, disk usage
    GET  /api/backups         - List backups (all, or ?path= for one file)
    POST /api/backups         - Create a backup of a file
    POST /api/restore         - Restore a backup
    POST /api/cleanup         - Run retention cleanup now
    GET  /api/events          - Persisted backup events
    GET  /api/config          - Effective configuration
"""

import logging
import os
from datetime import datetime

import psutil
from flask import Blueprint, jsonify, request

from src.backup.errors import (
    BackupNotFound,
    BackupStoreError,
    DuplicateBackup,
    IntegrityCheckFailed,
    InvalidBackupName,
    SourceNotFound,
)

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__, url_prefix="/api")

# These are set by app.py at init time via init_routes()
_store = None
_event_logger = None
_settings = None
_maintenance = None


def init_routes(store, event_logger, settings, maintenance):
    """Wire up shared application state into the route handlers."""
    global _store, _event_logger, _settings, _maintenance
    _store = store
    _event_logger = event_logger
    _settings = settings
    _maintenance = maintenance


def _error_status(exc: BackupStoreError) -> int:
    if isinstance(exc, (SourceNotFound, BackupNotFound)):
        return 404
    if isinstance(exc, (DuplicateBackup, IntegrityCheckFailed)):
        return 409
    if isinstance(exc, InvalidBackupName):
        return 400
    return 500


@api.errorhandler(BackupStoreError)
def handle_store_error(exc):
    status = _error_status(exc)
    if status >= 500:
        logger.error("Backup operation failed: %s", exc)
    return jsonify({
        "error": str(exc),
        "type": type(exc).__name__,
        "path": exc.path,
    }), status


# ------------------------------------------------------------------
# GET /api/status
# ------------------------------------------------------------------

@api.route("/status", methods=["GET"])
def get_status():
    """Backup root, backup count and free space on its volume."""
    backup_dir = _store.get_backup_directory()
    usage = psutil.disk_usage(backup_dir)
    return jsonify({
        "status": "running",
        "timestamp": datetime.now().isoformat(),
        "backup_directory": backup_dir,
        "backup_count": len(_store.list_backups()),
        "retention_days": _store.retention_days,
        "auto_cleanup": _settings.auto_cleanup if _settings else False,
        "disk": {
            "total": usage.total,
            "used": usage.used,
            "free": usage.free,
            "percent": usage.percent,
        },
    })


# ------------------------------------------------------------------
# GET /api/backups
# ------------------------------------------------------------------

@api.route("/backups", methods=["GET"])
def get_backups():
    """List backups, newest first."""
    original_path = request.args.get("path")
    limit = request.args.get("limit", 100, type=int)

    if original_path:
        records = [_store.get_backup_record(p)
                   for p in _store.get_backups_for_file(original_path)]
    else:
        records = _store.list_backups()

    return jsonify({
        "backups": [r.to_dict() for r in records[:limit]],
        "total": len(records),
    })


# ------------------------------------------------------------------
# POST /api/backups
# ------------------------------------------------------------------

@api.route("/backups", methods=["POST"])
def create_backup():
    """Back up a file; runs automatic cleanup afterwards when enabled."""
    data = request.get_json(silent=True) or {}
    path = data.get("path")
    if not path or not isinstance(path, str):
        return jsonify({"error": "path is required"}), 400

    backup_path = _store.create_backup(path)

    cleaned = None
    if _maintenance:
        cleaned = _maintenance.run_once()

    return jsonify({
        "backup_path": backup_path,
        "original_path": path,
        "cleaned": cleaned,
    }), 201


# ------------------------------------------------------------------
# POST /api/restore
# ------------------------------------------------------------------

@api.route("/restore", methods=["POST"])
def restore_backup():
    """Restore a backup.

    Accepts {"backup_path": str, "target_path": str (optional)}.
    """
    data = request.get_json(silent=True) or {}
    backup_path = data.get("backup_path")
    if not backup_path or not isinstance(backup_path, str):
        return jsonify({"error": "backup_path is required"}), 400
    target_path = data.get("target_path")
    if target_path is not None and not isinstance(target_path, str):
        return jsonify({"error": "target_path must be a string"}), 400

    if target_path is None and os.path.isfile(backup_path):
        target_path = _store.derive_original_path(backup_path)
    success = _store.restore_from_backup(backup_path, target_path)

    return jsonify({
        "success": success,
        "backup_path": backup_path,
        "restored_to": target_path,
    })


# ------------------------------------------------------------------
# POST /api/cleanup
# ------------------------------------------------------------------

@api.route("/cleanup", methods=["POST"])
def cleanup_backups():
    """Manual cleanup; runs even when automatic cleanup is disabled."""
    data = request.get_json(silent=True) or {}
    retention_days = data.get("retention_days")
    if retention_days is not None:
        if isinstance(retention_days, bool) or not isinstance(retention_days, int) \
                or retention_days < 0:
            return jsonify({"error": "retention_days must be a non-negative integer"}), 400

    cleaned = _store.cleanup_old_backups(retention_days)
    return jsonify({
        "files_cleaned": cleaned,
        "retention_days": _store.retention_days if retention_days is None else retention_days,
    })


# ------------------------------------------------------------------
# GET /api/events
# ------------------------------------------------------------------

@api.route("/events", methods=["GET"])
def get_events():
    """Recent backup events, paginated."""
    event_type = request.args.get("type")
    since = request.args.get("since")
    original_path = request.args.get("path")
    limit = request.args.get("limit", 50, type=int)
    offset = request.args.get("offset", 0, type=int)

    if not _event_logger:
        return jsonify({"events": [], "total": 0})

    filters = {
        "event_type": event_type,
        "since": since,
        "original_path": original_path,
    }
    events = _event_logger.get_events(limit=limit, offset=offset, **filters)
    return jsonify({
        "events": events,
        "total": _event_logger.count_events(**filters),
        "limit": limit,
        "offset": offset,
    })


# ------------------------------------------------------------------
# GET /api/config
# ------------------------------------------------------------------

@api.route("/config", methods=["GET"])
def get_config():
    """Return the effective configuration."""
    return jsonify(_settings.to_dict() if _settings else {})
