import logging
from io import BytesIO

import pandas as pd
from fpdf import FPDF
from fpdf.enums import XPos, YPos
from flask import current_app
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from models.mark import Mark
from services import mark_store
from services.grading import (
    GRADE_LETTERS,
    grade_for_score,
    parse_user_id,
    percentage_of,
    require_marking_role,
    validate_exam_period,
)
from utils.errors import InvalidEntry, InvalidStudent, MarkNotFound, Unauthorized
from utils.text import normalize_class_name

logger = logging.getLogger(__name__)

SHEET_FORMATS = {
    "csv": ("text/csv", "csv"),
    "excel": ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "xlsx"),
    "pdf": ("application/pdf", "pdf"),
}


# =========================================================
# REPORT AGGREGATION
# =========================================================

def summarize_marks(marks):
    """Totals, averages and grade histogram for a list of marks.

    An empty list gives zero totals and averages and no grade.
    """
    grade_counts = {letter: 0 for letter in GRADE_LETTERS}
    total_score = 0.0
    total_percentage = 0.0

    for mark in marks:
        total_score += mark.score
        total_percentage += percentage_of(mark.score, mark.total_possible)
        grade_counts[mark.grade] = grade_counts.get(mark.grade, 0) + 1

    count = len(marks)
    if count == 0:
        return {
            "total_score": 0.0,
            "subject_count": 0,
            "average_score": 0.0,
            "average_percentage": 0.0,
            "grade": None,
            "grade_counts": grade_counts,
        }

    average_percentage = round(total_percentage / count, 2)
    return {
        "total_score": round(total_score, 2),
        "subject_count": count,
        "average_score": round(total_score / count, 2),
        "average_percentage": average_percentage,
        "grade": grade_for_score(average_percentage),
        "grade_counts": grade_counts,
    }


def _period_order(period, configured):
    if period in configured:
        return (0, configured.index(period), period)
    return (1, 0, period)


def build_report(context, student_id):
    if context is None:
        raise Unauthorized()
    student_id = parse_user_id(student_id)

    if context.role == "student":
        if context.caller_id != student_id:
            raise Unauthorized("Students can only view their own report")
    else:
        require_marking_role(context)

    student = mark_store.find_student_by_admission_or_id(student_id=student_id)
    if student is None or not student.is_student:
        raise InvalidStudent(f"Student not found: {student_id}")

    marks = mark_store.find_marks_by_student(student.user_id)
    configured = list(current_app.config["EXAM_PERIODS"])

    by_period = {}
    for mark in marks:
        by_period.setdefault(mark.exam_period, []).append(mark)

    periods = []
    for period in sorted(by_period, key=lambda p: _period_order(p, configured)):
        period_marks = by_period[period]
        summary = summarize_marks(period_marks)
        summary["exam_period"] = period
        summary["marks"] = [
            {
                "subject": m.subject,
                "score": m.score,
                "total_possible": m.total_possible,
                "grade": m.grade,
                "remarks": m.remarks,
            }
            for m in period_marks
        ]
        periods.append(summary)

    return {
        "student": student.to_dict(),
        "periods": periods,
        "overall": summarize_marks(marks),
    }


def _latin1(value):
    # Core PDF fonts only cover latin-1
    return str(value).encode("latin-1", "replace").decode("latin-1")


def render_report_card_pdf(report):
    student = report["student"]
    pdf = FPDF()
    pdf.add_page()

    pdf.set_font("Helvetica", "B", 14)
    pdf.cell(190, 10, "REPORT CARD", new_x=XPos.LMARGIN, new_y=YPos.NEXT, align="C")
    pdf.set_font("Helvetica", size=10)
    pdf.cell(
        190, 8,
        _latin1(f"{student['name']}  |  {student.get('admission_number') or ''}  |  {student.get('class_name') or ''}"),
        new_x=XPos.LMARGIN, new_y=YPos.NEXT, align="C"
    )
    pdf.ln(6)

    if not report["periods"]:
        pdf.cell(190, 10, "No marks recorded.", new_x=XPos.LMARGIN, new_y=YPos.NEXT, align="C")

    headers = ("Subject", "Score", "Out of", "Grade", "Remarks")
    widths = (60, 25, 25, 20, 60)

    for period in report["periods"]:
        pdf.set_font("Helvetica", "B", 12)
        pdf.cell(190, 10, _latin1(period["exam_period"]), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

        pdf.set_font("Helvetica", "B", 10)
        for header, width in zip(headers, widths):
            pdf.cell(width, 8, header, border=1, align="C")
        pdf.ln()

        pdf.set_font("Helvetica", size=10)
        for mark in period["marks"]:
            row = (mark["subject"], f"{mark['score']:g}", f"{mark['total_possible']:g}", mark["grade"], mark["remarks"] or "")
            for value, width in zip(row, widths):
                pdf.cell(width, 8, _latin1(value), border=1, align="C")
            pdf.ln()

        pdf.cell(
            190, 8,
            f"Total: {period['total_score']:g}   Average: {period['average_score']:.2f}   Grade: {period['grade']}",
            new_x=XPos.LMARGIN, new_y=YPos.NEXT
        )
        pdf.ln(4)

    overall = report["overall"]
    pdf.set_font("Helvetica", "B", 11)
    pdf.cell(
        190, 10,
        f"Overall average: {overall['average_percentage']:.2f}%   Grade: {overall['grade'] or '-'}",
        new_x=XPos.LMARGIN, new_y=YPos.NEXT
    )

    return bytes(pdf.output())


# =========================================================
# CLASS MARK SHEET
# =========================================================

def build_class_sheet(class_name, exam_period):
    class_name = normalize_class_name(class_name)
    marks = Mark.query.filter_by(class_name=class_name, exam_period=exam_period).all()
    if not marks:
        raise MarkNotFound(f"No marks found for {class_name} in {exam_period}")

    df = pd.DataFrame([
        {
            "Admission No": m.student.admission_number,
            "Student Name": m.student.name,
            "Subject": m.subject,
            "Score": m.score,
        }
        for m in marks
    ])

    sheet = df.pivot_table(
        index=["Admission No", "Student Name"],
        columns="Subject",
        values="Score",
        aggfunc="first"
    ).reset_index()
    sheet.columns.name = None

    subjects = [c for c in sheet.columns if c not in ("Admission No", "Student Name")]
    sheet["Total"] = sheet[subjects].sum(axis=1)
    sheet["Average"] = sheet[subjects].mean(axis=1).round(2)
    return sheet.sort_values("Admission No").reset_index(drop=True)


def _sheet_cell(value):
    if pd.isna(value):
        return "-"
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def render_class_sheet_pdf(sheet, title):
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=landscape(A4))
    styles = getSampleStyleSheet()
    elements = [Paragraph(f"Mark Sheet: {title}", styles["Title"]), Spacer(1, 12)]

    table_data = [list(sheet.columns)]
    for row in sheet.itertuples(index=False):
        table_data.append([_sheet_cell(value) for value in row])

    table = Table(table_data, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
    ]))
    elements.append(table)
    doc.build(elements)
    return buffer.getvalue()


def export_class_sheet(context, class_name, exam_period, file_format="csv"):
    """Return ``(content, mimetype, download_name)`` for a class mark sheet."""
    require_marking_role(context)

    if not class_name:
        raise InvalidEntry("class_name is required")
    if file_format not in SHEET_FORMATS:
        raise InvalidEntry(f"Unsupported format {file_format!r}. Use csv, excel or pdf")
    exam_period = validate_exam_period(exam_period, current_app.config["EXAM_PERIODS"])

    sheet = build_class_sheet(class_name, exam_period)
    mimetype, extension = SHEET_FORMATS[file_format]

    if file_format == "excel":
        output = BytesIO()
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            sheet.to_excel(writer, index=False, sheet_name="Marks")
        content = output.getvalue()
    elif file_format == "pdf":
        content = render_class_sheet_pdf(sheet, f"{normalize_class_name(class_name)} - {exam_period}")
    else:
        content = sheet.to_csv(index=False).encode("utf-8")

    download_name = f"{normalize_class_name(class_name)}_{exam_period.replace(' ', '_')}.{extension}"
    logger.info("Exported %s mark sheet for %s %s (%d students)", file_format, class_name, exam_period, len(sheet))
    return content, mimetype, download_name
