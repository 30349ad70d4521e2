from __future__ import annotations
from io import BytesIO
from typing import List, Optional
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from models import DailyPlan, StudentProfile
from subjects import subject_or_default


def plans_to_pdf(plans: List[DailyPlan], profile: Optional[StudentProfile] = None) -> bytes:
    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=40,
        rightMargin=40,
        topMargin=40,
        bottomMargin=40,
    )
    styles = getSampleStyleSheet()
    elems = []

    ordered = sorted(plans, key=lambda p: p.day)
    if ordered:
        title = f"Study Plan: {ordered[0].day.isoformat()} - {ordered[-1].day.isoformat()}"
    else:
        title = "Study Plan"
    elems.append(Paragraph(title, styles["Title"]))
    if profile is not None:
        elems.append(Paragraph(
            f"{profile.name or 'Student'} | Exam date: {profile.exam_date.isoformat()} "
            f"| Subjects: {len(profile.subjects)}",
            styles["Normal"],
        ))
    elems.append(Spacer(1, 12))

    for plan in ordered:
        flags = [plan.day_type.value.replace("_", " ")]
        if plan.is_club_day:
            flags.append("club")
        elems.append(Paragraph(
            f"{plan.day.strftime('%A, %Y-%m-%d')} ({plan.phase.value}, {', '.join(flags)})",
            styles["Heading3"],
        ))
        elems.append(Paragraph(
            f"Available: {plan.available_minutes}m | Planned: {plan.total_minutes}m "
            f"| Completion: {round(plan.completion_rate * 100)}%",
            styles["Normal"],
        ))

        if not plan.tasks:
            elems.append(Paragraph("No tasks.", styles["Italic"]))
            elems.append(Spacer(1, 8))
            continue

        table_data = [["Subject", "Type", "Content", "Pomodoros", "Minutes", "Done"]]
        for task in plan.tasks:
            table_data.append([
                subject_or_default(task.subject_id).name,
                task.type.value,
                Paragraph(task.content, styles["BodyText"]),
                str(task.pomodoro_count),
                str(task.estimated_minutes),
                "Yes" if task.completed else "No",
            ])
        table_data.append(["Total", "", "", "", str(plan.total_minutes), ""])

        table = Table(table_data, hAlign="LEFT", colWidths=[95, 55, 200, 60, 50, 40])
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ("BACKGROUND", (0, -1), (-1, -1), colors.whitesmoke),
            ("ALIGN", (3, 1), (4, -1), "RIGHT"),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]))
        elems.append(table)
        elems.append(Spacer(1, 8))

    doc.build(elems)
    return buf.getvalue()
