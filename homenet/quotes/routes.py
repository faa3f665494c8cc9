# homenet/quotes/routes.py

from datetime import timedelta

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError

from homenet import db
from homenet.errors import (
    ValidationError,
    BusinessRuleError,
    QuoteNumberExhausted,
    NOTHING_SELECTED,
    DUPLICATE_RECENT_QUOTE,
)
from homenet.models import Quote, utcnow
from homenet.notifications import notify_admin
from homenet.pricing.calculator import (
    DROPS_ONLY,
    WHOLE_HOME,
    SERVICE_TYPES,
    DropsOnlyInput,
    calculate_pricing,
)
from homenet.pricing.duration import duration_for_service
from homenet.pricing.table import load_pricing_table
from homenet.quotes.numbers import generate_quote_number, quote_number_taken
from homenet.utils import (
    client_ip,
    clean_name,
    clean_email,
    clean_phone,
    json_body,
    sub_object,
)

bp = Blueprint('quotes', __name__)

WHOLE_HOME_SCOPES = ('networking', 'security', 'voip')


def _nested_args(prefix):
    """Collect ``prefix[key]=value`` query parameters into a dict."""
    out = {}
    start = f'{prefix}['
    for key, value in request.args.items():
        if key.startswith(start) and key.endswith(']'):
            out[key[len(start):-1]] = value
    return out


@bp.route('/calculate')
def calculate():
    """
    Live price preview.
    ?serviceType=Drops Only&runs[cat6]=2&services[apMount]=1&discount=10
     &centralization[type]=Media Panel&centralization[hasExistingPanel]=false
    """
    service_type = request.args.get('serviceType')
    if service_type not in SERVICE_TYPES:
        raise ValidationError('Invalid service type')

    selection = None
    if service_type == DROPS_ONLY:
        central = _nested_args('centralization') or request.args.get('centralization')
        selection = DropsOnlyInput.parse(
            runs=_nested_args('runs'),
            services=_nested_args('services'),
            discount=request.args.get('discount', 0),
            centralization=central or None,
            lenient=True,
        )
    table = load_pricing_table()
    pricing = calculate_pricing(service_type, selection, table)
    body = {'serviceType': service_type, 'pricing': pricing.to_dict()}
    if selection is not None:
        body['estimatedMinutes'] = duration_for_service(service_type, selection, table)
    return jsonify(body)


@bp.route('/create', methods=['POST'])
def create_quote():
    data = json_body()
    customer = sub_object(data, 'customer', 'Customer', required=True)
    home_info = None
    if data.get('homeInfo') is not None:
        home_info = sub_object(data, 'homeInfo', 'Home info')
    service_type = data.get('serviceType')

    errors = []
    name = clean_name(customer.get('name'), errors)
    email = clean_email(customer.get('email'), errors)
    phone = clean_phone(customer.get('phone'), errors)
    if service_type not in SERVICE_TYPES:
        errors.append('Invalid service type')
    if home_info is not None and not home_info.get('liabilityAcknowledged'):
        errors.append('Liability acknowledgment is required')

    selection = None
    if service_type == DROPS_ONLY:
        central = data.get('centralization')
        if isinstance(central, str):
            central = {
                'type': central,
                'hasExistingPanel': (home_info or {}).get('hasMediaPanel', False),
            }
        try:
            selection = DropsOnlyInput.parse(
                runs=data.get('runs'),
                services=data.get('services'),
                discount=data.get('discount', 0),
                centralization=central,
                require_centralization=True,
            )
        except ValidationError as err:
            errors.extend(err.details)
    if errors:
        raise ValidationError(errors)

    whole_home = None
    if service_type == DROPS_ONLY and selection.is_empty:
        raise BusinessRuleError('At least one cable run or service must be selected.',
                                NOTHING_SELECTED)
    if service_type == WHOLE_HOME:
        whole_home = sub_object(data, 'wholeHome', 'Whole-home details')
        scope = sub_object(whole_home, 'scope', 'Whole-home scope')
        if not any(scope.get(s) for s in WHOLE_HOME_SCOPES):
            raise BusinessRuleError(
                'At least one scope (Networking, Security, or VoIP) must be selected.',
                NOTHING_SELECTED,
            )

    cooldown = current_app.config['QUOTE_COOLDOWN_MINUTES']
    recent = Quote.query.filter(
        Quote.customer_email == email,
        Quote.created_at >= utcnow() - timedelta(minutes=cooldown),
    ).first()
    if recent:
        raise BusinessRuleError(f'Please wait {cooldown} minutes between quote requests.',
                                DUPLICATE_RECENT_QUOTE, 429)

    table = load_pricing_table()
    pricing = calculate_pricing(service_type, selection, table)

    result = generate_quote_number(quote_number_taken)
    if not result.ok:
        raise QuoteNumberExhausted(result.attempts)

    quote = Quote(
        quote_number   = result.number,
        customer_name  = name,
        customer_email = email,
        customer_phone = phone,
        service_type   = service_type,
        whole_home     = whole_home,
        home_info      = home_info,
        ip             = client_ip(),
        estimated_minutes = duration_for_service(service_type, selection, table),
    )
    if selection is not None:
        quote.discount         = selection.discount
        quote.coax_runs        = selection.runs['coax']
        quote.cat6_runs        = selection.runs['cat6']
        quote.fiber_runs       = selection.runs['fiber']
        quote.ap_mounts        = selection.services['apMount']
        quote.eth_relocations  = selection.services['ethRelocation']
        quote.centralization   = selection.centralization.type
        quote.has_existing_panel = selection.centralization.has_existing_panel
        quote.total_cost       = pricing.total_cost
        quote.deposit_required = pricing.deposit_required
    else:
        quote.deposit_amount = pricing.deposit_amount

    db.session.add(quote)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race for the number between lookup and insert
        db.session.rollback()
        current_app.logger.warning('Quote number %s collided on insert', result.number)
        raise QuoteNumberExhausted(result.attempts)

    current_app.logger.info('Quote %s created for %s', quote.quote_number, email)
    notify_admin(f'New Quote Submitted #{quote.quote_number}', _quote_mail_lines(quote))

    return jsonify(id=quote.id, quoteNumber=quote.quote_number,
                   pricing=quote.pricing), 201


def _quote_mail_lines(quote):
    lines = [
        f'Name: {quote.customer_name}',
        f'Email: {quote.customer_email}',
        f'Service: {quote.service_type}',
    ]
    if quote.service_type == DROPS_ONLY:
        lines += [
            f'Discount: {quote.discount}%',
            f'Cat6 runs: {quote.cat6_runs}',
            f'Coax runs: {quote.coax_runs}',
            f'Fiber runs: {quote.fiber_runs}',
            f'AP mounts: {quote.ap_mounts}',
            f'Ethernet relocations: {quote.eth_relocations}',
            f'Centralization: {quote.centralization}',
            f'Total Cost: ${quote.total_cost}',
            f'Deposit Required: ${quote.deposit_required}',
        ]
    else:
        lines.append(f'Deposit: ${quote.deposit_amount}')
    lines.append(f'IP Address: {quote.ip}')
    return lines
