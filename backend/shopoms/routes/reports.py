# Overview: Flask API routes for sales reports; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, current_app

from ..decorators import require_read_access
from ..services import reporting_service
from ..services.concurrency import ServiceUnavailable


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _run_report(func, failure_message: str):
    try:
        return jsonify(func()), 200
    except reporting_service.ReportError as exc:
        return jsonify({"success": False, "error": str(exc)}), 400
    except ServiceUnavailable:
        return jsonify({"success": False, "error": "Service temporarily unavailable."}), 503
    except Exception:
        current_app.logger.exception(failure_message)
        return jsonify({"success": False, "error": failure_message}), 500


@reports_bp.get("/today")
@require_read_access
def sales_today_report():
    def _report():
        at = reporting_service.parse_reference_time(request.args.get("at"))
        return reporting_service.sales_today(now=at)

    return _run_report(_report, "Failed to fetch today's sales.")


@reports_bp.get("/month")
@require_read_access
def sales_month_report():
    def _report():
        at = reporting_service.parse_reference_time(request.args.get("at"))
        return reporting_service.sales_this_month(now=at)

    return _run_report(_report, "Failed to fetch this month's sales.")


@reports_bp.get("/top-products")
@require_read_access
def top_products_report():
    def _report():
        return [row.to_dict() for row in reporting_service.top_products()]

    return _run_report(_report, "Failed to fetch top products.")
