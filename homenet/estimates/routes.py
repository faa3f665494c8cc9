# homenet/estimates/routes.py

from flask import Blueprint, jsonify

from homenet.models import CostItem, Setting

bp = Blueprint('estimates', __name__)


@bp.route('/cost-items')
def cost_items():
    """
    Active items grouped by category for the estimate builder.
    Deposits and $0 items are left out.
    Returns { categories: { <category>: [ {code,name,...}, … ] }, laborRate }.
    """
    items = (CostItem.query
             .filter_by(is_active=True)
             .order_by(CostItem.category, CostItem.sort_order)
             .all())
    categories = {}
    for item in items:
        if item.category == 'Deposits' or not item.price:
            continue
        categories.setdefault(item.category, []).append({
            'id'        : item.id,
            'code'      : item.code,
            'name'      : item.name,
            'description': item.description,
            'unitType'  : item.unit_type,
            'unitLabel' : item.unit_label,
            'price'     : float(item.price),
            'sortOrder' : item.sort_order,
        })
    settings = Setting.get_settings()
    return jsonify(categories=categories, laborRate=float(settings.labor_rate))
