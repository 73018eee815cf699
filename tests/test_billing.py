"""
Tests for vendor bills and customer invoices, including the payment effects on
project financials.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from oneflow.models import AuditLog, Project, Task
from oneflow.utils.documents import can_access_project_documents


def bill_payload(catalog, project, **overrides):
    payload = {
        'vendor_id': catalog['vendor'].id,
        'project_id': project.id,
        'lines': [{'product_id': catalog['purchase_product'].id, 'quantity': 2, 'unit': 'pcs',
                   'unit_price': 500, 'tax_percent': 10}],
    }
    payload.update(overrides)
    return payload


def invoice_payload(catalog, project, **overrides):
    payload = {
        'customer_id': catalog['customer'].id,
        'project_id': project.id,
        'lines': [{'product_id': catalog['sales_product'].id, 'quantity': 10, 'unit': 'hours',
                   'unit_price': 150, 'tax_percent': 18}],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def bill(client, finance, catalog, project, auth_headers):
    resp = client.post('/api/vendor-bills', headers=auth_headers(finance),
                       json=bill_payload(catalog, project, bill_date='2024-03-01'))
    assert resp.status_code == 201
    return resp.get_json()


@pytest.fixture
def invoice(client, finance, catalog, project, auth_headers):
    resp = client.post('/api/invoices', headers=auth_headers(finance), json=invoice_payload(catalog, project))
    assert resp.status_code == 201
    return resp.get_json()


class TestVendorBills:

    def test_due_date_defaults_to_thirty_days(self, bill):
        assert bill['bill_date'] == '2024-03-01'
        assert bill['due_date'] == '2024-03-31'
        assert bill['status'] == 'draft'
        assert bill['grand_total'] == 1100.0

    def test_explicit_due_date(self, client, finance, catalog, project, auth_headers):
        resp = client.post('/api/vendor-bills', headers=auth_headers(finance),
                           json=bill_payload(catalog, project, due_date='2024-12-15'))
        assert resp.get_json()['due_date'] == '2024-12-15'

    def test_pay_flow_updates_project_cost(self, client, bill, finance, auth_headers, db_session, project):
        headers = auth_headers(finance)
        early = client.post(f"/api/vendor-bills/mark-paid/{bill['id']}", headers=headers)
        assert early.status_code == 400
        assert early.get_json()['message'] == 'Vendor bill must be posted before marking as paid'

        assert client.post(f"/api/vendor-bills/post/{bill['id']}", headers=headers).get_json()['status'] == 'posted'
        again = client.post(f"/api/vendor-bills/post/{bill['id']}", headers=headers)
        assert again.get_json()['message'] == 'Vendor bill is already posted'

        resp = client.post(f"/api/vendor-bills/mark-paid/{bill['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()['status'] == 'paid'

        refreshed = db_session.get(Project, project.id)
        assert refreshed.cost == Decimal('1100.00')
        assert refreshed.profit == Decimal('-1100.00')

        actions = [a.action for a in AuditLog.query.filter_by(entity='VENDOR_BILL').order_by(AuditLog.id)]
        assert actions == ['CREATED', 'POSTED', 'PAID']

    def test_posted_bill_is_read_only(self, client, bill, finance, auth_headers):
        headers = auth_headers(finance)
        client.post(f"/api/vendor-bills/post/{bill['id']}", headers=headers)
        resp = client.put(f"/api/vendor-bills/{bill['id']}", headers=headers, json={'notes': 'late edit'})
        assert resp.status_code == 400
        assert resp.get_json()['message'] == 'Cannot update posted vendor bill'

    def test_update_draft(self, client, bill, finance, auth_headers):
        resp = client.put(f"/api/vendor-bills/{bill['id']}", headers=auth_headers(finance),
                          json={'due_date': '2024-04-15', 'notes': 'Net 45'})
        assert resp.status_code == 200
        assert resp.get_json()['due_date'] == '2024-04-15'

    def test_from_confirmed_purchase_order(self, client, finance, catalog, project, auth_headers):
        headers = auth_headers(finance)
        order = client.post('/api/purchase-orders', headers=headers, json=bill_payload(catalog, project)).get_json()

        missing = client.post(f"/api/vendor-bills/from-po/{order['id']}", headers=headers)
        assert missing.status_code == 404
        assert missing.get_json()['message'] == 'Purchase order not found or not confirmed'

        client.post(f"/api/purchase-orders/confirm/{order['id']}", headers=headers)
        resp = client.post(f"/api/vendor-bills/from-po/{order['id']}", headers=headers)
        assert resp.status_code == 201
        created = resp.get_json()
        assert created['purchase_order_id'] == order['id']
        assert created['po_number'] == order['po_number']
        assert created['notes'] == f"Created from purchase order {order['po_number']}"
        assert created['grand_total'] == order['grand_total']
        assert len(created['lines']) == 1
        assert created['due_date'] == (date.today() + timedelta(days=30)).isoformat()

    def test_filters(self, client, bill, finance, project, auth_headers):
        headers = auth_headers(finance)
        assert len(client.get(f'/api/vendor-bills?project_id={project.id}', headers=headers).get_json()) == 1
        assert client.get('/api/vendor-bills?status=paid', headers=headers).get_json() == []


class TestInvoices:

    def test_create(self, invoice):
        assert invoice['invoice_number'].startswith('INV-')
        assert invoice['grand_total'] == 1770.0
        assert invoice['lines'][0]['task_id'] is None

    def test_task_line_bills_logged_hours(self, client, finance, catalog, project, task, auth_headers, db_session):
        task.hours_logged = Decimal('6')
        task.hourly_rate = Decimal('120')
        db_session.commit()

        resp = client.post('/api/invoices', headers=auth_headers(finance),
                           json=invoice_payload(catalog, project, lines=[{'task_id': task.id}]))
        assert resp.status_code == 201
        line = resp.get_json()['lines'][0]
        assert line['task_title'] == 'Build landing page'
        assert line['product_id'] is None
        assert line['line_total'] == 720.0

    def test_pay_flow_updates_project_revenue(self, client, invoice, finance, auth_headers, db_session, project):
        headers = auth_headers(finance)
        early = client.post(f"/api/invoices/mark-paid/{invoice['id']}", headers=headers)
        assert early.get_json()['message'] == 'Invoice must be posted before marking as paid'

        client.post(f"/api/invoices/post/{invoice['id']}", headers=headers)
        again = client.post(f"/api/invoices/post/{invoice['id']}", headers=headers)
        assert again.get_json()['message'] == 'Invoice is already posted'

        assert client.post(f"/api/invoices/mark-paid/{invoice['id']}", headers=headers).status_code == 200
        refreshed = db_session.get(Project, project.id)
        assert refreshed.revenue == Decimal('1770.00')
        assert refreshed.profit == Decimal('1770.00')

    def test_profit_combines_bills_and_invoices(self, client, invoice, bill, finance, auth_headers,
                                                db_session, project):
        headers = auth_headers(finance)
        for kind, document in (('invoices', invoice), ('vendor-bills', bill)):
            client.post(f"/api/{kind}/post/{document['id']}", headers=headers)
            client.post(f"/api/{kind}/mark-paid/{document['id']}", headers=headers)
        assert db_session.get(Project, project.id).profit == Decimal('670.00')

    def test_posted_invoice_is_read_only(self, client, invoice, finance, auth_headers):
        headers = auth_headers(finance)
        client.post(f"/api/invoices/post/{invoice['id']}", headers=headers)
        resp = client.put(f"/api/invoices/{invoice['id']}", headers=headers, json={'notes': 'x'})
        assert resp.get_json()['message'] == 'Cannot update posted invoice'

    def test_from_confirmed_sales_order(self, client, manager, catalog, project, auth_headers):
        headers = auth_headers(manager)
        order = client.post('/api/sales-orders', headers=headers, json=invoice_payload(catalog, project)).get_json()
        assert client.post(f"/api/invoices/from-sales-order/{order['id']}", headers=headers).status_code == 404

        client.post(f"/api/sales-orders/confirm/{order['id']}", headers=headers)
        resp = client.post(f"/api/invoices/from-sales-order/{order['id']}", headers=headers)
        assert resp.status_code == 201
        created = resp.get_json()
        assert created['sales_order_id'] == order['id']
        assert created['order_number'] == order['order_number']
        assert created['lines'][0]['product_name'] == 'Consulting Hours'
        assert created['grand_total'] == 1770.0

    def test_other_manager_cannot_see_invoice(self, client, invoice, other_manager, auth_headers):
        resp = client.get(f"/api/invoices/{invoice['id']}", headers=auth_headers(other_manager))
        assert resp.status_code == 403

    def test_task_line_must_belong_to_invoice_project(self, client, admin, finance, catalog, project,
                                                      auth_headers, db_session):
        other = Project(name='Internal Tools', manager_id=admin.id)
        db_session.add(other)
        db_session.flush()
        foreign_task = Task(task_id='TASK-00009', title='Secret migration', project_id=other.id,
                            priority='low', hours_logged=Decimal('4'), hourly_rate=Decimal('100'))
        db_session.add(foreign_task)
        db_session.commit()

        resp = client.post('/api/invoices', headers=auth_headers(finance),
                           json=invoice_payload(catalog, project, lines=[{'task_id': foreign_task.id}]))
        assert resp.status_code == 400
        error = resp.get_json()['errors'][0]
        assert error['field'] == 'lines[0].task_id'
        assert 'Secret migration' not in resp.get_data(as_text=True)

    def test_project_change_with_task_lines_needs_new_lines(self, client, admin, finance, catalog, project,
                                                            task, auth_headers, db_session):
        task.hours_logged = Decimal('2')
        task.hourly_rate = Decimal('50')
        other = Project(name='Internal Tools', manager_id=admin.id)
        db_session.add(other)
        db_session.commit()
        headers = auth_headers(finance)
        invoice = client.post('/api/invoices', headers=headers,
                              json=invoice_payload(catalog, project, lines=[{'task_id': task.id}])).get_json()

        resp = client.put(f"/api/invoices/{invoice['id']}", headers=headers, json={'project_id': other.id})
        assert resp.status_code == 400
        assert resp.get_json()['errors'][0]['field'] == 'project_id'


def test_orphaned_document_is_not_accessible(finance):
    assert can_access_project_documents(finance, None) is False
