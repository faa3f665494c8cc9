import os
import sys
from datetime import date

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from homenet import create_app, db
from homenet.auth.tokens import generate_access_token
from homenet.models import Admin, CostItem, Invoice, Quote, Schedule


def setup_app():
    app = create_app('testing')
    with app.app_context():
        db.drop_all()
        db.create_all()
        for username, role in (('ops', 'admin'), ('boss', 'superadmin')):
            admin = Admin(username=username, role=role)
            admin.set_password('correct-horse')
            db.session.add(admin)
        db.session.commit()
    return app


def auth(app, username='ops'):
    with app.app_context():
        token = generate_access_token(Admin.query.filter_by(username=username).one())
    return {'Authorization': f'Bearer {token}'}


def add_quote(app, number='11112222', status='pending', total=300):
    with app.app_context():
        quote = Quote(quote_number=number, customer_name='Pat Doe',
                      customer_email='pat@example.com', service_type='Drops Only',
                      cat6_runs=2, centralization='Media Panel', discount=10,
                      total_cost=total, deposit_required=20, status=status)
        db.session.add(quote)
        db.session.commit()
        return quote.id


def test_admin_endpoints_need_auth():
    app = setup_app()
    client = app.test_client()
    assert client.get('/admin/quotes').status_code == 401
    assert client.get('/admin/quotes', headers=auth(app)).status_code == 200


def test_quote_status_transitions():
    app = setup_app()
    client = app.test_client()
    headers = auth(app)
    quote_id = add_quote(app)

    resp = client.put(f'/admin/quotes/{quote_id}/status', json={'status': 'approved'},
                      headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['reason'] == 'invalid status transition'

    for status in ('reviewed', 'approved', 'completed'):
        resp = client.put(f'/admin/quotes/{quote_id}/status', json={'status': status},
                          headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()['quote']['status'] == status

    resp = client.put(f'/admin/quotes/{quote_id}/status', json={'status': 'rejected'},
                      headers=headers)
    assert resp.status_code == 400

    resp = client.put(f'/admin/quotes/{quote_id}/status', json={'status': 'lost'},
                      headers=headers)
    assert resp.status_code == 400


def test_list_quotes_filters_and_paginates():
    app = setup_app()
    client = app.test_client()
    add_quote(app, '11110001')
    add_quote(app, '11110002', status='approved')
    add_quote(app, '11110003', status='approved')

    resp = client.get('/admin/quotes?status=approved&limit=1', headers=auth(app))
    data = resp.get_json()
    assert len(data['items']) == 1
    assert data['pagination'] == {'page': 1, 'limit': 1, 'total': 2, 'pages': 2}


def test_convert_approved_quote_to_invoice():
    app = setup_app()
    client = app.test_client()
    headers = auth(app)
    pending_id = add_quote(app, '11110001')
    quote_id = add_quote(app, '11110002', status='approved')

    resp = client.post(f'/admin/quotes/{pending_id}/convert-to-invoice', headers=headers)
    assert resp.status_code == 400

    resp = client.post(f'/admin/quotes/{quote_id}/convert-to-invoice', headers=headers)
    assert resp.status_code == 201
    invoice = resp.get_json()['invoice']
    assert invoice['invoiceNumber'] == f'INV-{date.today().year}-0001'
    assert invoice['amount'] == 300.0
    assert invoice['discount'] == 10
    assert invoice['finalAmount'] == 270.0
    assert invoice['status'] == 'Draft'

    resp = client.post(f'/admin/quotes/{quote_id}/convert-to-invoice', headers=headers)
    assert resp.status_code == 409

    other_id = add_quote(app, '11110003', status='approved', total=99.99)
    resp = client.post(f'/admin/quotes/{other_id}/convert-to-invoice',
                       json={'discount': 15}, headers=headers)
    invoice = resp.get_json()['invoice']
    assert invoice['invoiceNumber'] == f'INV-{date.today().year}-0002'
    assert invoice['finalAmount'] == 84.99

    resp = client.put(f"/admin/invoices/{invoice['id']}/status", json={'status': 'Paid'},
                      headers=headers)
    assert resp.get_json()['invoice']['paidDate'] == date.today().isoformat()
    with app.app_context():
        assert Invoice.query.count() == 2


def test_deleting_needs_superadmin():
    app = setup_app()
    client = app.test_client()
    quote_id = add_quote(app)
    resp = client.delete(f'/admin/quotes/{quote_id}', headers=auth(app))
    assert resp.status_code == 403
    resp = client.delete(f'/admin/quotes/{quote_id}', headers=auth(app, 'boss'))
    assert resp.status_code == 200
    with app.app_context():
        assert Quote.query.count() == 0


def test_schedule_status_update():
    app = setup_app()
    client = app.test_client()
    with app.app_context():
        appt = Schedule(name='Pat Doe', email='pat@example.com', date=date(2030, 1, 7),
                        time='09:00', appointment_type='drops-only-install', duration=120)
        db.session.add(appt)
        db.session.commit()
        appt_id = appt.id

    resp = client.put(f'/admin/schedule/{appt_id}/status', json={'status': 'confirmed'},
                      headers=auth(app))
    assert resp.status_code == 200
    assert resp.get_json()['appointment']['status'] == 'confirmed'
    resp = client.put(f'/admin/schedule/{appt_id}/status', json={'status': 'done'},
                      headers=auth(app))
    assert resp.status_code == 400
    resp = client.get('/admin/schedule', headers=auth(app))
    assert resp.get_json()['items'][0]['email'] == 'pat@example.com'


def add_appointment(app, email, hour, status='pending', duration=120):
    with app.app_context():
        appt = Schedule(name='Pat Doe', email=email, date=date(2030, 1, 7),
                        time=f'{hour:02d}:00', appointment_type='drops-only-install',
                        duration=duration, status=status)
        db.session.add(appt)
        db.session.commit()
        return appt.id


def test_reactivating_cancelled_appointment_checks_conflicts():
    app = setup_app()
    client = app.test_client()
    cancelled_id = add_appointment(app, 'a@example.com', 9, status='cancelled')
    add_appointment(app, 'b@example.com', 10)

    resp = client.put(f'/admin/schedule/{cancelled_id}/status', json={'status': 'pending'},
                      headers=auth(app))
    assert resp.status_code == 409
    assert resp.get_json()['reason'] == 'slot unavailable'
    with app.app_context():
        assert db.session.get(Schedule, cancelled_id).status == 'cancelled'


def test_reactivating_cancelled_appointment_on_free_day():
    app = setup_app()
    client = app.test_client()
    cancelled_id = add_appointment(app, 'a@example.com', 9, status='cancelled')
    add_appointment(app, 'b@example.com', 13)

    resp = client.put(f'/admin/schedule/{cancelled_id}/status', json={'status': 'confirmed'},
                      headers=auth(app))
    assert resp.status_code == 200
    assert resp.get_json()['appointment']['status'] == 'confirmed'
    with app.app_context():
        assert db.session.get(Schedule, cancelled_id).updated_by == 'ops'


def test_status_body_must_be_an_object():
    app = setup_app()
    client = app.test_client()
    appt_id = add_appointment(app, 'a@example.com', 9)
    resp = client.put(f'/admin/schedule/{appt_id}/status', json=['confirmed'],
                      headers=auth(app))
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Validation failed'


def test_labor_rate_setting():
    app = setup_app()
    client = app.test_client()
    headers = auth(app)
    assert client.get('/admin/settings/labor-rate', headers=headers).get_json() == {'laborRate': 50.0}
    resp = client.put('/admin/settings/labor-rate', json={'laborRate': 65}, headers=headers)
    assert resp.get_json()['laborRate'] == 65.0
    resp = client.put('/admin/settings/labor-rate', json={'laborRate': -1}, headers=headers)
    assert resp.status_code == 400


def test_seed_is_idempotent_and_wires_bill_of_materials():
    app = setup_app()
    client = app.test_client()
    assert client.post('/admin/cost-items/seed', headers=auth(app)).status_code == 403

    resp = client.post('/admin/cost-items/seed', headers=auth(app, 'boss'))
    first = resp.get_json()
    assert first['created'] == 13 and first['skipped'] == 0
    resp = client.post('/admin/cost-items/seed', headers=auth(app, 'boss'))
    assert resp.get_json()['created'] == 0

    resp = client.get('/admin/cost-items?search=cat6', headers=auth(app))
    items = resp.get_json()['items']
    assert [i['code'] for i in items] == ['CAT6-RUN']
    cat6 = items[0]
    assert {e['code']: e['quantity'] for e in cat6['billOfMaterials']} == {
        'RJ45-CONNECTOR': 2, 'KEYSTONE-JACK': 1, 'WALL-PLATE': 1}
    # 25 own + 2*2 + 5 + 4 material, 0.8h at 50
    assert cat6['costBreakdown'] == {'materialCost': 38.0, 'laborCost': 40.0,
                                     'totalCost': 78.0, 'margin': 22.0}

    resp = client.get('/api/estimates/cost-items')
    categories = resp.get_json()['categories']
    assert 'Deposits' not in categories
    assert 'LOOSE-TERM' not in [i['code'] for i in categories['Centralization']]


def test_cost_item_create_update_and_delete():
    app = setup_app()
    client = app.test_client()
    headers = auth(app)
    body = {'code': 'tv-mount', 'name': 'TV Mount', 'category': 'Services',
            'unitType': 'per-unit', 'price': 80, 'laborHours': 1.5}
    resp = client.post('/admin/cost-items', json=body, headers=headers)
    assert resp.status_code == 201
    mount = resp.get_json()['item']
    assert mount['code'] == 'TV-MOUNT'

    assert client.post('/admin/cost-items', json=body, headers=headers).status_code == 409

    resp = client.post('/admin/cost-items', json={'code': 'BAD CODE!', 'name': 'x',
                                                   'category': 'Nope', 'unitType': 'per-unit',
                                                   'price': 1}, headers=headers)
    assert resp.status_code == 400

    bracket = client.post('/admin/cost-items', json={
        'code': 'BRACKET', 'name': 'Bracket', 'category': 'Equipment',
        'unitType': 'per-unit', 'price': 10}, headers=headers).get_json()['item']

    resp = client.put(f"/admin/cost-items/{mount['id']}",
                      json={'billOfMaterials': [{'item': mount['id'], 'quantity': 1}]},
                      headers=headers)
    assert resp.status_code == 400
    resp = client.put(f"/admin/cost-items/{mount['id']}",
                      json={'billOfMaterials': [{'item': bracket['id'], 'quantity': 1},
                                                {'item': bracket['id'], 'quantity': 2}]},
                      headers=headers)
    assert resp.status_code == 400
    resp = client.put(f"/admin/cost-items/{mount['id']}",
                      json={'billOfMaterials': [{'item': 999, 'quantity': 1}]},
                      headers=headers)
    assert resp.status_code == 400

    resp = client.put(f"/admin/cost-items/{mount['id']}",
                      json={'price': 90, 'billOfMaterials': [{'item': bracket['id'], 'quantity': 2}]},
                      headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['item']['costBreakdown']['materialCost'] == 20.0
    resp = client.put(f"/admin/cost-items/{mount['id']}",
                      json={'billOfMaterials': [{'item': bracket['id'], 'quantity': 3}]},
                      headers=headers)
    assert resp.get_json()['item']['billOfMaterials'][0]['quantity'] == 3

    resp = client.put(f"/admin/cost-items/{mount['id']}/toggle", headers=headers)
    assert resp.get_json()['isActive'] is False

    boss = auth(app, 'boss')
    resp = client.delete(f"/admin/cost-items/{bracket['id']}", headers=boss)
    assert resp.status_code == 409
    assert resp.get_json()['reason'] == 'still referenced'
    assert client.delete(f"/admin/cost-items/{mount['id']}", headers=boss).status_code == 200
    assert client.delete(f"/admin/cost-items/{bracket['id']}", headers=boss).status_code == 200
    with app.app_context():
        assert CostItem.query.count() == 0
