import io
from datetime import datetime

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import letter
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas

from utils import format_amount, format_date

BRAND_BLUE = HexColor('#2B5A8E')
ACCENT_BLUE = HexColor('#4F86C6')
MUTED = HexColor('#6B7280')

STATUS_COLORS = {
    'pending': HexColor('#F59E0B'),
    'approved': HexColor('#3B82F6'),
    'rejected': HexColor('#EF4444'),
    'paid': HexColor('#10B981'),
}


def request_sections(data):
    return [
        ('Student Information', [
            ('Full Name', data.get('full_name')),
            ('Email', data.get('email')),
            ('Phone', data.get('phone')),
            ('Submitted', format_date(data.get('created_at'))),
        ]),
        ('School Information', [
            ('School Name', data.get('school_name')),
            ('Program', data.get('program')),
            ('Semester/Year', data.get('study_semester')),
        ]),
        ('Payment Information', [
            ('Amount Requested', format_amount(data.get('amount'), data.get('currency'))),
            ('Account Name', data.get('school_account_name')),
            ('Account Number', data.get('school_account_number')),
            ('Sort Code', data.get('school_sort_code') or '-'),
            ('Bank Name', data.get('school_bank_name')),
        ]),
        ('Documents', [
            ('Admission Letter', 'Attached' if data.get('admission_letter_url') else 'Not provided'),
            ('Fee Invoice', 'Attached' if data.get('fee_invoice_url') else 'Not provided'),
        ]),
    ]


def render_request_summary(student_request):
    """One-page PDF summary of a request for offline review."""
    data = student_request.to_dict()
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=letter)
    width, height = letter

    pdf.setTitle(f'Request {data["id"]}')

    # Header band
    pdf.setFillColor(BRAND_BLUE)
    pdf.rect(0, height - 1.1 * inch, width, 1.1 * inch, fill=1, stroke=0)
    pdf.setFillColor(HexColor('#FFFFFF'))
    pdf.setFont('Helvetica-Bold', 18)
    pdf.drawString(0.75 * inch, height - 0.6 * inch, 'Scholarship Request Summary')
    pdf.setFont('Helvetica', 9)
    pdf.drawString(0.75 * inch, height - 0.85 * inch, f'Request ID: {data["id"]}')

    # Status badge
    status = data.get('status') or 'pending'
    pdf.setFillColor(STATUS_COLORS.get(status, MUTED))
    pdf.roundRect(width - 2.25 * inch, height - 0.8 * inch, 1.5 * inch, 0.35 * inch, 6, fill=1, stroke=0)
    pdf.setFillColor(HexColor('#FFFFFF'))
    pdf.setFont('Helvetica-Bold', 11)
    pdf.drawCentredString(width - 1.5 * inch, height - 0.68 * inch, status.upper())

    y = height - 1.6 * inch
    for title, rows in request_sections(data):
        pdf.setFillColor(ACCENT_BLUE)
        pdf.setFont('Helvetica-Bold', 12)
        pdf.drawString(0.75 * inch, y, title)
        y -= 0.3 * inch
        for label, value in rows:
            pdf.setFillColor(MUTED)
            pdf.setFont('Helvetica', 10)
            pdf.drawString(0.9 * inch, y, label)
            pdf.setFillColor(HexColor('#111827'))
            pdf.drawString(2.8 * inch, y, str(value or '-')[:70])
            y -= 0.24 * inch
        y -= 0.15 * inch

    if data.get('admin_notes'):
        pdf.setFillColor(ACCENT_BLUE)
        pdf.setFont('Helvetica-Bold', 12)
        pdf.drawString(0.75 * inch, y, 'Admin Notes')
        y -= 0.3 * inch
        pdf.setFillColor(HexColor('#111827'))
        pdf.setFont('Helvetica', 10)
        text = pdf.beginText(0.9 * inch, y)
        for line in data['admin_notes'].splitlines()[:8]:
            text.textLine(line[:95])
        pdf.drawText(text)

    pdf.setFillColor(MUTED)
    pdf.setFont('Helvetica', 8)
    pdf.drawString(0.75 * inch, 0.5 * inch, f'Generated {datetime.utcnow().strftime("%Y-%m-%d %H:%M")} UTC')

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()
