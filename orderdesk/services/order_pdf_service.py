"""Printable order (PDF) rendering with reportlab."""
from io import BytesIO
from typing import Any, Dict
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from orderdesk.models import Order
from orderdesk.utils.formatters import money_br, percent_br, date_br

STATUS_LABELS = {
    'draft': 'Rascunho',
    'confirmed': 'Confirmado',
    'processing': 'Em separação',
    'shipped': 'Enviado',
    'delivered': 'Entregue',
    'cancelled': 'Cancelado',
}


def render_order_pdf(order: Order, business_info: Dict[str, Any]) -> BytesIO:
    """
    Render an order as an A4 PDF.

    Totals are printed from the order's stored columns; items marked with a
    pending quantity get a "(pend. N)" note next to the quantity.
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.6*inch,
        leftMargin=0.6*inch,
        topMargin=0.75*inch,
        bottomMargin=0.75*inch,
        title=f"Pedido {order.order_number}"
    )

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'OrderTitle',
        parent=styles['Heading1'],
        fontSize=22,
        textColor=colors.HexColor('#2C3E50'),
        spaceAfter=12,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold'
    )

    header_style = ParagraphStyle(
        'OrderHeader',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#7F8C8D'),
        alignment=TA_CENTER,
        spaceAfter=6
    )

    cell_style = ParagraphStyle('OrderCell', parent=styles['Normal'], fontSize=8, leading=10)

    # 1. Business header
    elements.append(Paragraph(f"PEDIDO Nº {escape(order.order_number)}", title_style))

    if business_info.get('name'):
        elements.append(Paragraph(f"<b>{escape(business_info['name'])}</b>", header_style))
    if business_info.get('address'):
        elements.append(Paragraph(escape(business_info['address']), header_style))

    contact_parts = []
    if business_info.get('phone'):
        contact_parts.append(f"Tel: {business_info['phone']}")
    if business_info.get('email'):
        contact_parts.append(f"Email: {business_info['email']}")
    if contact_parts:
        elements.append(Paragraph(escape(" | ".join(contact_parts)), header_style))

    elements.append(Spacer(1, 0.3*inch))

    # 2. Order metadata
    info_data = [
        ['Data:', date_br(order.created_at)],
        ['Status:', STATUS_LABELS.get(order.status, order.status)],
    ]
    if order.client:
        info_data.append(['Cliente:', f"{order.client.code} - {order.client.name}"])
        if order.client.city:
            info_data.append(['Cidade:', order.client.city])
    if order.payment_condition:
        info_data.append(['Cond. Pagamento:', order.payment_condition.name])

    info_table = Table(info_data, colWidths=[1.6*inch, 4.4*inch])
    info_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (0, -1), 'RIGHT'),
        ('ALIGN', (1, 0), (1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#34495E')),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 0.3*inch))

    # 3. Items
    table_data = [['Código', 'Produto', 'Qtd', 'Preço Orig.', 'Desc.', 'Preço Unit.', 'Subtotal']]
    for item in order.items:
        product = item.product
        qty_text = str(item.quantity)
        if item.has_pending:
            qty_text += f" (pend. {item.pending_quantity})"
        table_data.append([
            product.code if product else '-',
            Paragraph(escape(product.display_name if product else '-'), cell_style),
            qty_text,
            money_br(item.original_unit_price),
            percent_br(item.discount_percentage),
            money_br(item.unit_price),
            money_br(item.total_price),
        ])

    items_table = Table(
        table_data,
        colWidths=[0.8*inch, 2.3*inch, 0.8*inch, 0.9*inch, 0.5*inch, 0.9*inch, 1*inch],
        repeatRows=1
    )
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#3498DB')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('ALIGN', (2, 1), (2, -1), 'CENTER'),
        ('ALIGN', (3, 1), (-1, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#BDC3C7')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#ECF0F1')]),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 0.2*inch))

    # 4. Totals
    totals_data = [
        ['Subtotal:', money_br(order.subtotal)],
        ['Desconto:', money_br(order.total_discount)],
        ['Frete:', money_br(order.shipping_rate)],
        ['TOTAL:', money_br(order.total)],
    ]
    totals_table = Table(totals_data, colWidths=[5.7*inch, 1.5*inch])
    totals_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -2), 10),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, -1), (-1, -1), 13),
        ('TEXTCOLOR', (0, -1), (-1, -1), colors.HexColor('#27AE60')),
        ('BACKGROUND', (0, -1), (-1, -1), colors.HexColor('#E8F8F5')),
        ('BOX', (0, -1), (-1, -1), 2, colors.HexColor('#27AE60')),
    ]))
    elements.append(totals_table)
    elements.append(Spacer(1, 0.4*inch))

    footer_style = ParagraphStyle(
        'Footer', parent=styles['Normal'], fontSize=9,
        textColor=colors.HexColor('#95A5A6'), alignment=TA_CENTER
    )
    footer_text = "<i>Documento sem valor fiscal.</i>"
    if order.has_pending_items:
        footer_text = "<b>Atenção:</b> pedido com itens pendentes de estoque.<br/>" + footer_text
    if order.notes:
        footer_text += f"<br/><br/><b>Observações:</b> {escape(order.notes)}"
    elements.append(Paragraph(footer_text, footer_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer
