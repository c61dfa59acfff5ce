"""
API Blueprint

- /api/process-pdf: PDF bytes -> text (cached by md5 of the upload)
- /api/analyze-990: text -> foundation JSON (cached by md5 of the text)
- /api/export/csv, /api/export/pdf: downloads of analyzed foundations
"""
import io
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from flask import Blueprint, Response, current_app, jsonify, request, send_file

from grantscope.cache import content_key
from grantscope.errors import AnalysisError, PDFExtractionError
from grantscope.facets import FilterOptions, derive_facets, filter_grantees, merge_grantees
from grantscope.models import Foundation
from grantscope.services import export_service, openai_service, pdf_service

api_bp = Blueprint("api", __name__, url_prefix="/api")


def _cache():
    return current_app.extensions["response_cache"]


def _error(message: str, status: int, details: str = None):
    body = {"error": message}
    if details is not None:
        body["details"] = details
    return jsonify(body), status


def size_limit_message() -> str:
    mb = current_app.config["MAX_FILE_SIZE"] / (1024 * 1024)
    return f"File size exceeds {mb:g}MB limit"


def _is_pdf_upload(file) -> bool:
    mimetype = (getattr(file, "mimetype", "") or "").lower()
    filename = (getattr(file, "filename", "") or "").lower()
    return "pdf" in mimetype or filename.endswith(".pdf")


@api_bp.route("/process-pdf", methods=["POST"])
def process_pdf():
    log = current_app.logger
    if not (request.mimetype or "").startswith("multipart/form-data"):
        log.info(f"Invalid content type: {request.content_type}")
        return _error("Request must be multipart/form-data", 400)

    file = request.files.get("file")
    if not file:
        return _error("No file provided", 400)
    if not _is_pdf_upload(file):
        log.info(f"Invalid file type: {file.mimetype}")
        return _error("File must be a PDF", 400)

    data = file.read()
    if len(data) > current_app.config["MAX_FILE_SIZE"]:
        log.info(f"File too large: {len(data)}")
        return _error(size_limit_message(), 400)
    if not data:
        return _error("Uploaded file is empty", 400)
    if not pdf_service.looks_like_pdf(data):
        log.info(f"Upload is not a PDF: {file.filename}")
        return _error("File must be a PDF", 400)
    log.info(f"File received: {file.filename}, size: {len(data)}")

    key = content_key("process-pdf", data)
    try:
        text = _cache().get_or_compute(
            key,
            lambda: pdf_service.extract_text(data),
            current_app.config["CACHE_PDF_TTL"],
        )
    except PDFExtractionError as e:
        log.error(f"PDF extraction failed: {e}")
        return _error("Failed to process PDF", 500, str(e))
    except Exception as e:
        log.exception("Unhandled error in process-pdf")
        return _error("Failed to process PDF", 500, f"{type(e).__name__}: {e}")

    return jsonify({"text": text}), 200


@api_bp.route("/analyze-990", methods=["POST"])
def analyze_990():
    log = current_app.logger
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return _error("Failed to parse request body", 400, "Expected a JSON object")

    text = body.get("text")
    if not text or not isinstance(text, str):
        return _error("No text provided", 400)
    log.info(f"Text received, length: {len(text)}")

    settings = current_app.config
    ok, _ = openai_service.client_ready(settings)
    if not ok and settings.get("SAMPLE_DATA_ENABLED"):
        log.warning("No OpenAI API key provided, returning sample data")
        return jsonify(openai_service.sample_foundation()), 200

    key = content_key("analyze-990", text)
    try:
        result = _cache().get_or_compute(
            key,
            lambda: openai_service.analyze_990(text, settings),
            settings["CACHE_ANALYSIS_TTL"],
        )
    except AnalysisError as e:
        log.error(f"Analysis failed: {e}")
        return _error("Failed to analyze 990 form", 500, str(e))
    except Exception as e:
        log.exception("Unhandled error in analyze-990")
        return _error("Failed to analyze 990 form", 500, f"{type(e).__name__}: {e}")

    log.info(f"Analysis complete, foundation name: {result.get('name') or 'unknown'}")
    return jsonify(result), 200


def _export_payload() -> Tuple[List[Foundation], List[Any], Dict[str, Any]]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict) or not isinstance(payload.get("foundations"), list):
        raise ValueError("Request must include a foundations list")
    foundations = [Foundation.from_dict(f) for f in payload["foundations"] if isinstance(f, dict)]
    if not foundations:
        raise ValueError("No foundations to export")
    grantees = merge_grantees(foundations)
    filters = FilterOptions.from_dict(payload.get("filters") or {}, derive_facets(grantees))
    return foundations, filter_grantees(grantees, filters), payload


def _export_filename(ext: str) -> str:
    today = datetime.now(timezone.utc).strftime("%Y%m%d")
    return f"form990_grantees_{today}.{ext}"


@api_bp.route("/export/csv", methods=["POST"])
def export_csv():
    try:
        _, grantees, _ = _export_payload()
    except (TypeError, ValueError) as e:
        return _error(str(e), 400)

    body = export_service.grantees_csv(grantees)
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={_export_filename('csv')}"},
    )


@api_bp.route("/export/pdf", methods=["POST"])
def export_pdf():
    try:
        foundations, grantees, payload = _export_payload()
    except (TypeError, ValueError) as e:
        return _error(str(e), 400)

    title = (payload.get("title") or "").strip() or "Form 990 Analysis"
    try:
        pdf = export_service.foundations_pdf(foundations, grantees, title=title)
    except Exception as e:
        current_app.logger.exception("PDF export failed")
        return _error(f"PDF export failed: {type(e).__name__}: {e}", 500)

    return send_file(
        io.BytesIO(pdf),
        as_attachment=True,
        download_name=_export_filename("pdf"),
        mimetype="application/pdf",
    )
