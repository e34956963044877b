from io import BytesIO

from flask import Blueprint, jsonify, request, send_file

from services import mark_service, report_service, roster_service
from services.grading import GRADE_BANDS, grade_for_marks
from utils.decorators import current_caller, role_required

mark_bp = Blueprint("marks", __name__, url_prefix="/api/marks")


@mark_bp.route("/grade")
@role_required()
def grade_preview():
    grade = grade_for_marks(request.args.get("score"), request.args.get("total_possible"))
    return jsonify({
        "success": True,
        "data": {
            "grade": grade,
            "bands": [{"grade": letter, "min_score": lower} for lower, letter in GRADE_BANDS],
        }
    })


# =========================================================
# MARK ENTRY
# =========================================================
@mark_bp.route("", methods=["POST"])
@role_required("staff", "admin")
def create_mark():
    mark = mark_service.submit_mark(current_caller(), request.get_json(silent=True) or {})
    return jsonify({"success": True, "data": mark.to_dict()}), 201


@mark_bp.route("/bulk", methods=["POST"])
@role_required("staff", "admin")
def create_bulk_marks():
    body = request.get_json(silent=True)
    entries = body.get("entries") if isinstance(body, dict) else body

    result = mark_service.submit_bulk_marks(current_caller(), entries)

    if result.success:
        status = 201
    elif result.partial:
        status = 207
    else:
        status = 400
    return jsonify(result.to_dict()), status


@mark_bp.route("", methods=["GET"])
@role_required()
def list_marks():
    marks = mark_service.list_marks(current_caller(), request.args.to_dict())
    return jsonify({"success": True, "count": len(marks), "data": [m.to_dict() for m in marks]})


@mark_bp.route("/<int:mark_id>", methods=["GET"])
@role_required()
def get_mark(mark_id):
    mark = mark_service.get_mark(current_caller(), mark_id)
    return jsonify({"success": True, "data": mark.to_dict()})


@mark_bp.route("/<int:mark_id>", methods=["PATCH", "PUT"])
@role_required("staff", "admin")
def update_mark(mark_id):
    mark = mark_service.update_mark(current_caller(), mark_id, request.get_json(silent=True))
    return jsonify({"success": True, "data": mark.to_dict()})


@mark_bp.route("/<int:mark_id>", methods=["DELETE"])
@role_required("staff", "admin")
def delete_mark(mark_id):
    mark_service.delete_mark(current_caller(), mark_id)
    return jsonify({"success": True, "message": "Mark deleted successfully"})


# =========================================================
# REPORTS
# =========================================================
@mark_bp.route("/report/<int:student_id>")
@role_required()
def report(student_id):
    return jsonify({"success": True, "data": report_service.build_report(current_caller(), student_id)})


@mark_bp.route("/report/<int:student_id>/pdf")
@role_required()
def report_pdf(student_id):
    data = report_service.build_report(current_caller(), student_id)
    content = report_service.render_report_card_pdf(data)
    return send_file(
        BytesIO(content),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"report_card_{data['student']['admission_number']}.pdf"
    )


@mark_bp.route("/export")
@role_required("staff", "admin")
def export_sheet():
    content, mimetype, download_name = report_service.export_class_sheet(
        current_caller(),
        request.args.get("class_name") or request.args.get("class"),
        request.args.get("exam_period"),
        request.args.get("format", "csv")
    )
    return send_file(BytesIO(content), mimetype=mimetype, as_attachment=True, download_name=download_name)


# =========================================================
# ROSTER LOOKUPS FOR MARK ENTRY
# =========================================================
@mark_bp.route("/classes")
@role_required("staff", "admin")
def classes():
    return jsonify({"success": True, "data": roster_service.list_classes(current_caller())})


@mark_bp.route("/students/<path:class_name>")
@role_required("staff", "admin")
def students_by_class(class_name):
    students = roster_service.list_students_by_class(current_caller(), class_name)
    if not students:
        return jsonify({"success": False, "message": "No students found"}), 404
    return jsonify({"success": True, "data": [s.to_dict() for s in students]})
