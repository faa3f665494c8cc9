# homenet/admin/routes.py
"""JSON back-office for quotes, appointments, consultations, invoices and pricing."""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from homenet import db
from homenet.admin.utils import (
    apply_cost_item_fields,
    bom_references,
    can_transition,
    invoice_from_quote,
    parse_money,
    seed_cost_items,
)
from homenet.auth.tokens import admin_required, superadmin_required
from homenet.errors import (
    ApiError,
    BusinessRuleError,
    ValidationError,
    INVALID_TRANSITION,
    STILL_REFERENCED,
)
from homenet.models import (
    ConsultationRequest,
    CostItem,
    Invoice,
    Quote,
    Schedule,
    Setting,
    CONSULTATION_STATUSES,
    COST_CATEGORIES,
    INVOICE_STATUSES,
    QUOTE_STATUSES,
    SCHEDULE_STATUSES,
)
from homenet.pricing.table import cost_breakdown
from homenet.scheduling.booking import reactivate
from homenet.utils import json_body, page_args

bp = Blueprint('admin', __name__)


@bp.before_request
@admin_required
def before():
    """Every admin endpoint needs an authenticated admin."""
    return None


def _json():
    return json_body()


def _paginate(query, serialize):
    page, limit = page_args()
    total = query.count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return jsonify(
        items=[serialize(r) for r in rows],
        pagination={
            'page': page,
            'limit': limit,
            'total': total,
            'pages': (total + limit - 1) // limit,
        },
    )


def _get_or_404(model, obj_id, label):
    obj = db.session.get(model, obj_id)
    if obj is None:
        raise ApiError(f'{label} not found', 404)
    return obj


# ---------------------------------------------------------------- quotes

@bp.route('/quotes')
def list_quotes():
    query = Quote.query
    status = request.args.get('status')
    if status:
        if status not in QUOTE_STATUSES:
            raise ValidationError(f'Unknown quote status: {status}')
        query = query.filter_by(status=status)
    return _paginate(query.order_by(Quote.created_at.desc()), lambda q: q.to_dict())


@bp.route('/quotes/<int:quote_id>')
def quote_detail(quote_id):
    return jsonify(_get_or_404(Quote, quote_id, 'Quote').to_dict())


@bp.route('/quotes/<int:quote_id>/status', methods=['PUT'])
def update_quote_status(quote_id):
    quote = _get_or_404(Quote, quote_id, 'Quote')
    status = _json().get('status')
    if status not in QUOTE_STATUSES:
        raise ValidationError('Status must be one of: ' + ', '.join(QUOTE_STATUSES))
    if status != quote.status and not can_transition(quote.status, status):
        raise BusinessRuleError(
            f'Cannot move quote from {quote.status} to {status}', INVALID_TRANSITION)

    quote.status = status
    quote.updated_by = g.admin.username
    db.session.commit()
    current_app.logger.info('Quote %s -> %s by %s', quote.quote_number, status, g.admin.username)
    return jsonify(success=True, quote=quote.to_dict())


@bp.route('/quotes/<int:quote_id>', methods=['DELETE'])
@superadmin_required
def delete_quote(quote_id):
    quote = _get_or_404(Quote, quote_id, 'Quote')
    if quote.invoice is not None:
        raise BusinessRuleError('Quote has an invoice and cannot be deleted',
                                STILL_REFERENCED, 409)
    Schedule.query.filter_by(quote_id=quote.id).update(
        {'quote_id': None}, synchronize_session=False)
    db.session.delete(quote)
    db.session.commit()
    current_app.logger.info('Quote %s deleted by %s', quote.quote_number, g.admin.username)
    return jsonify(success=True)


@bp.route('/quotes/<int:quote_id>/convert-to-invoice', methods=['POST'])
def convert_quote(quote_id):
    quote = _get_or_404(Quote, quote_id, 'Quote')
    if quote.status != 'approved':
        raise BusinessRuleError('Only approved quotes can be invoiced', INVALID_TRANSITION)
    if quote.invoice is not None:
        raise BusinessRuleError('Quote already has an invoice', STILL_REFERENCED, 409)

    invoice = invoice_from_quote(quote, _json())
    db.session.add(invoice)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise BusinessRuleError('Quote already has an invoice', STILL_REFERENCED, 409)
    current_app.logger.info('Invoice %s created from quote %s',
                            invoice.invoice_number, quote.quote_number)
    return jsonify(success=True, invoice=invoice.to_dict()), 201


# -------------------------------------------------------------- schedule

@bp.route('/schedule')
def list_schedule():
    query = Schedule.query
    status = request.args.get('status')
    if status:
        if status not in SCHEDULE_STATUSES:
            raise ValidationError(f'Unknown schedule status: {status}')
        query = query.filter_by(status=status)
    if request.args.get('upcoming') in ('1', 'true'):
        query = query.filter(Schedule.date >= date.today())
    return _paginate(query.order_by(Schedule.date, Schedule.time), lambda s: s.to_dict())


@bp.route('/schedule/<int:schedule_id>/status', methods=['PUT'])
def update_schedule_status(schedule_id):
    schedule = _get_or_404(Schedule, schedule_id, 'Appointment')
    status = _json().get('status')
    if status not in SCHEDULE_STATUSES:
        raise ValidationError('Status must be one of: ' + ', '.join(SCHEDULE_STATUSES))
    if schedule.status == 'cancelled' and status != 'cancelled':
        decision = reactivate(schedule, status, g.admin.username)
        if not decision.accepted:
            raise BusinessRuleError(decision.detail or decision.reason,
                                    decision.reason, 409)
        return jsonify(success=True, appointment=schedule.to_dict())

    schedule.status = status
    schedule.updated_by = g.admin.username
    db.session.commit()
    return jsonify(success=True, appointment=schedule.to_dict())


@bp.route('/schedule/<int:schedule_id>', methods=['DELETE'])
@superadmin_required
def delete_schedule(schedule_id):
    schedule = _get_or_404(Schedule, schedule_id, 'Appointment')
    db.session.delete(schedule)
    db.session.commit()
    return jsonify(success=True)


# --------------------------------------------------------- consultations

@bp.route('/consultations')
def list_consultations():
    query = ConsultationRequest.query
    status = request.args.get('status')
    if status:
        if status not in CONSULTATION_STATUSES:
            raise ValidationError(f'Unknown consultation status: {status}')
        query = query.filter_by(status=status)
    return _paginate(query.order_by(ConsultationRequest.created_at.desc()),
                     lambda c: c.to_dict())


@bp.route('/consultations/<int:consultation_id>')
def consultation_detail(consultation_id):
    return jsonify(_get_or_404(ConsultationRequest, consultation_id,
                               'Consultation request').to_dict())


@bp.route('/consultations/<int:consultation_id>', methods=['PUT'])
def update_consultation(consultation_id):
    """Status, notes, quoted amount and consultation time; unsent fields are left alone."""
    consultation = _get_or_404(ConsultationRequest, consultation_id, 'Consultation request')
    data = _json()
    errors = []
    if 'status' in data:
        if data['status'] not in CONSULTATION_STATUSES:
            errors.append('Status must be one of: ' + ', '.join(CONSULTATION_STATUSES))
        else:
            consultation.status = data['status']
    if 'adminNotes' in data:
        notes = data['adminNotes'] or ''
        if not isinstance(notes, str) or len(notes) > 2000:
            errors.append('Admin notes must be text under 2000 characters')
        else:
            consultation.admin_notes = notes.strip() or None
    if 'quotedAmount' in data:
        consultation.quoted_amount = parse_money(data['quotedAmount'], 'Quoted amount', errors)
    if 'scheduledConsultation' in data:
        value = data['scheduledConsultation']
        try:
            consultation.scheduled_consultation = (
                datetime.fromisoformat(value) if value else None)
        except (TypeError, ValueError):
            errors.append('Scheduled consultation must be an ISO date-time')
    if errors:
        db.session.rollback()
        raise ValidationError(errors)

    consultation.updated_by = g.admin.username
    db.session.commit()
    current_app.logger.info('Consultation %s updated by %s',
                            consultation.request_number, g.admin.username)
    return jsonify(success=True, consultation=consultation.to_dict())


# -------------------------------------------------------------- invoices

@bp.route('/invoices')
def list_invoices():
    query = Invoice.query
    status = request.args.get('status')
    if status:
        query = query.filter_by(status=status)
    return _paginate(query.order_by(Invoice.invoice_number.desc()), lambda i: i.to_dict())


@bp.route('/invoices/<int:invoice_id>')
def invoice_detail(invoice_id):
    return jsonify(_get_or_404(Invoice, invoice_id, 'Invoice').to_dict())


@bp.route('/invoices/<int:invoice_id>/status', methods=['PUT'])
def update_invoice_status(invoice_id):
    invoice = _get_or_404(Invoice, invoice_id, 'Invoice')
    status = _json().get('status')
    if status not in INVOICE_STATUSES:
        raise ValidationError('Status must be one of: ' + ', '.join(INVOICE_STATUSES))
    invoice.status = status
    invoice.paid_date = date.today() if status == 'Paid' else None
    db.session.commit()
    current_app.logger.info('Invoice %s -> %s', invoice.invoice_number, status)
    return jsonify(success=True, invoice=invoice.to_dict())


# -------------------------------------------------------------- settings

@bp.route('/settings/labor-rate')
def get_labor_rate():
    settings = Setting.get_settings()
    return jsonify(laborRate=float(settings.labor_rate))


@bp.route('/settings/labor-rate', methods=['PUT'])
def set_labor_rate():
    raw = _json().get('laborRate')
    try:
        rate = Decimal(str(raw))
    except InvalidOperation:
        rate = None
    if rate is None or not rate.is_finite() or rate < 0:
        raise ValidationError('Labor rate must be a non-negative number')
    settings = Setting.get_settings()
    settings.labor_rate = rate
    settings.updated_by = g.admin.username
    db.session.commit()
    current_app.logger.info('Labor rate set to %s by %s', rate, g.admin.username)
    return jsonify(success=True, laborRate=float(settings.labor_rate))


# ------------------------------------------------------------ cost items

def _item_with_breakdown(item, labor_rate):
    data = item.to_dict()
    data['costBreakdown'] = cost_breakdown(item, labor_rate)
    return data


@bp.route('/cost-items')
def list_cost_items():
    query = CostItem.query
    category = request.args.get('category')
    if category:
        if category not in COST_CATEGORIES:
            raise ValidationError(f'Unknown category: {category}')
        query = query.filter_by(category=category)
    status = request.args.get('status')
    if status == 'active':
        query = query.filter_by(is_active=True)
    elif status == 'inactive':
        query = query.filter_by(is_active=False)
    search = (request.args.get('search') or '').strip()
    if search:
        like = f'%{search}%'
        query = query.filter(or_(CostItem.code.ilike(like),
                                 CostItem.name.ilike(like),
                                 CostItem.description.ilike(like)))

    items = query.order_by(CostItem.category, CostItem.sort_order, CostItem.name).all()
    labor_rate = Setting.get_settings().labor_rate
    return jsonify(items=[_item_with_breakdown(i, labor_rate) for i in items],
                   laborRate=float(labor_rate))


@bp.route('/cost-items/search')
def search_cost_items():
    """Lightweight lookup used when picking BOM components."""
    q = (request.args.get('q') or '').strip()
    if len(q) < 2:
        return jsonify([])
    like = f'%{q}%'
    items = (CostItem.query
             .filter(CostItem.is_active.is_(True),
                     or_(CostItem.code.ilike(like), CostItem.name.ilike(like)))
             .order_by(CostItem.code)
             .limit(20)
             .all())
    return jsonify([
        {'id': i.id, 'code': i.code, 'name': i.name, 'price': float(i.price or 0)}
        for i in items
    ])


@bp.route('/cost-items/<int:item_id>')
def cost_item_detail(item_id):
    item = _get_or_404(CostItem, item_id, 'Cost item')
    return jsonify(_item_with_breakdown(item, Setting.get_settings().labor_rate))


@bp.route('/cost-items', methods=['POST'])
def create_cost_item():
    data = _json()
    username = g.admin.username
    item = CostItem(created_by=username, updated_by=username)
    apply_cost_item_fields(item, data, creating=True)
    if CostItem.query.filter_by(code=item.code).first():
        raise BusinessRuleError(f'Cost item code {item.code} already exists',
                                'duplicate code', 409)
    db.session.add(item)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise BusinessRuleError(f'Cost item code {item.code} already exists',
                                'duplicate code', 409)
    current_app.logger.info('Cost item %s created by %s', item.code, username)
    return jsonify(success=True,
                   item=_item_with_breakdown(item, Setting.get_settings().labor_rate)), 201


@bp.route('/cost-items/<int:item_id>', methods=['PUT'])
def update_cost_item(item_id):
    item = _get_or_404(CostItem, item_id, 'Cost item')
    data = _json()
    if 'code' in data:
        clash = CostItem.query.filter(CostItem.code == str(data['code'] or '').strip().upper(),
                                      CostItem.id != item.id).first()
        if clash is not None:
            raise BusinessRuleError(f'Cost item code {clash.code} already exists',
                                    'duplicate code', 409)
    apply_cost_item_fields(item, data)
    item.updated_by = g.admin.username
    db.session.commit()
    current_app.logger.info('Cost item %s updated by %s', item.code, g.admin.username)
    return jsonify(success=True,
                   item=_item_with_breakdown(item, Setting.get_settings().labor_rate))


@bp.route('/cost-items/<int:item_id>/toggle', methods=['PUT'])
def toggle_cost_item(item_id):
    item = _get_or_404(CostItem, item_id, 'Cost item')
    item.is_active = not item.is_active
    item.updated_by = g.admin.username
    db.session.commit()
    return jsonify(success=True, isActive=item.is_active)


@bp.route('/cost-items/seed', methods=['POST'])
@superadmin_required
def seed_defaults():
    created, skipped = seed_cost_items(g.admin.username)
    return jsonify(success=True, created=created, skipped=skipped)


@bp.route('/cost-items/<int:item_id>', methods=['DELETE'])
@superadmin_required
def delete_cost_item(item_id):
    item = _get_or_404(CostItem, item_id, 'Cost item')
    parents = bom_references(item)
    if parents:
        raise BusinessRuleError(
            'Cost item is used in the bill of materials of: ' + ', '.join(parents),
            STILL_REFERENCED, 409)
    db.session.delete(item)
    db.session.commit()
    current_app.logger.info('Cost item %s deleted by %s', item.code, g.admin.username)
    return jsonify(success=True)
