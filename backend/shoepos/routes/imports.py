# Overview: Flask API routes for inventory CSV preview, apply, and batch status.

"""
Import Routes

Uploads are multipart/form-data with the CSV in the "file" field.

SECURITY: All routes require OWNER or MANAGER.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import STOCK_WRITE_ROLES, require_auth, require_roles
from ..services import import_batch_service, inventory_import_service
from ..services.inventory_import_service import ImportApplyError, ImportBlockedError
from ..validation import NotFoundError, ValidationError, error_body

imports_bp = Blueprint("imports", __name__, url_prefix="/api/imports/inventory")


def _uploaded_file():
    if "file" not in request.files:
        raise ValidationError("file is required")
    upload = request.files["file"]
    return upload.filename or None, upload.read()


@imports_bp.post("/preview")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def preview_route():
    try:
        _, data = _uploaded_file()
        return jsonify(inventory_import_service.preview_inventory_import(data))
    except ValidationError as e:
        return jsonify(error_body(e)), 400
    except Exception:
        current_app.logger.exception("Inventory import preview failed")
        return jsonify({"error": "Internal server error"}), 500


@imports_bp.post("/apply")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def apply_route():
    """
    Apply an inventory CSV.

    Returns:
    - 202 {batch_id, status: "QUEUED", summary} for large files
    - 200 {batch_id, status: "COMPLETED", summary, batch} otherwise
    - 400 with the preview when any row is blocking
    - 500 with batch_id when a synchronous apply fails (batch is FAILED)
    """
    try:
        file_name, data = _uploaded_file()
        result = inventory_import_service.apply_inventory_import(
            data,
            original_file_name=file_name,
            uploaded_by_id=g.current_user.id,
        )
    except ImportBlockedError as e:
        return jsonify({"error": str(e), "preview": e.preview}), 400
    except ValidationError as e:
        return jsonify(error_body(e)), 400
    except ImportApplyError as e:
        return jsonify({"error": "Inventory import failed", "batch_id": e.batch_id, "reason": str(e)}), 500
    except Exception:
        current_app.logger.exception("Inventory import apply failed")
        return jsonify({"error": "Internal server error"}), 500

    status_code = 202 if result["status"] == "QUEUED" else 200
    return jsonify(result), status_code


@imports_bp.get("/batches/<int:batch_id>")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def batch_status_route(batch_id: int):
    audit_limit = request.args.get("audit_limit", default=50, type=int)
    try:
        return jsonify(import_batch_service.get_import_batch_status(batch_id, audit_limit=max(audit_limit, 0)))
    except NotFoundError as e:
        return jsonify(error_body(e)), 404
