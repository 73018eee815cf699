"""
Tests for sales and purchase orders.
"""

import re

import pytest

from oneflow.models import AuditLog, Project, SalesOrder


def consulting_line(catalog, quantity=10):
    return {'product_id': catalog['sales_product'].id, 'quantity': quantity, 'unit': 'hours',
            'unit_price': 150, 'tax_percent': 18}


def hardware_line(catalog, quantity=2):
    return {'product_id': catalog['purchase_product'].id, 'quantity': quantity, 'unit': 'pcs',
            'unit_price': 500, 'tax_percent': 10}


@pytest.fixture
def sales_order(client, manager, catalog, project, auth_headers):
    resp = client.post('/api/sales-orders', headers=auth_headers(manager), json={
        'customer_id': catalog['customer'].id,
        'project_id': project.id,
        'order_date': '2024-05-02',
        'lines': [consulting_line(catalog)],
    })
    assert resp.status_code == 201
    return resp.get_json()


@pytest.fixture
def purchase_order(client, finance, catalog, project, auth_headers):
    resp = client.post('/api/purchase-orders', headers=auth_headers(finance), json={
        'vendor_id': catalog['vendor'].id,
        'project_id': project.id,
        'lines': [hardware_line(catalog)],
    })
    assert resp.status_code == 201
    return resp.get_json()


class TestSalesOrders:

    def test_create_computes_totals(self, sales_order):
        assert re.match(r'^SO-\d{6}-\d{3}$', sales_order['order_number'])
        assert sales_order['status'] == 'draft'
        assert sales_order['subtotal'] == 1500.0
        assert sales_order['total_tax'] == 270.0
        assert sales_order['grand_total'] == 1770.0
        assert sales_order['customer_name'] == 'Acme Corporation'
        assert len(sales_order['lines']) == 1
        assert sales_order['lines'][0]['product_name'] == 'Consulting Hours'

    def test_create_is_audited(self, sales_order):
        audit = AuditLog.query.filter_by(entity='SALES_ORDER', entity_id=sales_order['id']).one()
        assert audit.action == 'CREATED'
        assert audit.after_values['grand_total'] == 1770.0

    def test_requires_lines_and_counterparty(self, client, manager, project, catalog, auth_headers):
        resp = client.post('/api/sales-orders', headers=auth_headers(manager),
                           json={'project_id': project.id, 'lines': []})
        assert resp.status_code == 400
        fields = {e['field'] for e in resp.get_json()['errors']}
        assert 'customer_id' in fields

        resp = client.post('/api/sales-orders', headers=auth_headers(manager),
                           json={'customer_id': catalog['customer'].id, 'project_id': project.id, 'lines': []})
        assert resp.status_code == 400
        assert resp.get_json()['errors'][0]['field'] == 'lines'

    def test_rejects_purchase_only_product(self, client, manager, project, catalog, auth_headers):
        resp = client.post('/api/sales-orders', headers=auth_headers(manager), json={
            'customer_id': catalog['customer'].id,
            'project_id': project.id,
            'lines': [hardware_line(catalog)],
        })
        assert resp.status_code == 400

    def test_manager_limited_to_own_projects(self, client, other_manager, project, catalog, auth_headers):
        resp = client.post('/api/sales-orders', headers=auth_headers(other_manager), json={
            'customer_id': catalog['customer'].id,
            'project_id': project.id,
            'lines': [consulting_line(catalog)],
        })
        assert resp.status_code == 400
        assert resp.get_json()['errors'][0]['message'] == 'You can only use projects you manage'

    def test_list_scoped_to_managed_projects(self, client, sales_order, manager, other_manager, finance,
                                             auth_headers):
        assert len(client.get('/api/sales-orders', headers=auth_headers(manager)).get_json()) == 1
        assert len(client.get('/api/sales-orders', headers=auth_headers(finance)).get_json()) == 1
        assert client.get('/api/sales-orders', headers=auth_headers(other_manager)).get_json() == []

        resp = client.get(f"/api/sales-orders/{sales_order['id']}", headers=auth_headers(other_manager))
        assert resp.status_code == 403

    def test_team_member_has_no_access(self, client, member, auth_headers, db_session):
        assert client.get('/api/sales-orders', headers=auth_headers(member)).status_code == 403

    def test_update_replaces_lines(self, client, sales_order, manager, catalog, auth_headers):
        resp = client.put(f"/api/sales-orders/{sales_order['id']}", headers=auth_headers(manager), json={
            'notes': 'Revised scope',
            'lines': [consulting_line(catalog, quantity=4), {
                'product_id': catalog['dual_product'].id, 'quantity': 1, 'unit': 'license',
                'unit_price': 499, 'tax_percent': 0,
            }],
        })
        assert resp.status_code == 200
        order = resp.get_json()
        assert order['notes'] == 'Revised scope'
        assert len(order['lines']) == 2
        assert order['subtotal'] == 1099.0
        assert order['grand_total'] == 1207.0

    def test_update_without_lines_keeps_them(self, client, sales_order, manager, auth_headers):
        resp = client.put(f"/api/sales-orders/{sales_order['id']}", headers=auth_headers(manager),
                          json={'notes': 'Just a note'})
        assert resp.status_code == 200
        assert len(resp.get_json()['lines']) == 1
        assert resp.get_json()['grand_total'] == 1770.0

    def test_confirm_then_locked(self, client, sales_order, manager, auth_headers):
        headers = auth_headers(manager)
        resp = client.post(f"/api/sales-orders/confirm/{sales_order['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()['status'] == 'confirmed'

        again = client.post(f"/api/sales-orders/confirm/{sales_order['id']}", headers=headers)
        assert again.status_code == 400
        assert again.get_json()['message'] == 'Sales order already confirmed'

        edit = client.put(f"/api/sales-orders/{sales_order['id']}", headers=headers, json={'notes': 'x'})
        assert edit.status_code == 400
        assert edit.get_json()['message'] == 'Cannot edit confirmed sales order'

        actions = [a.action for a in AuditLog.query.filter_by(entity='SALES_ORDER').order_by(AuditLog.id)]
        assert actions == ['CREATED', 'CONFIRMED']

    def test_numbers_increase(self, client, sales_order, manager, catalog, project, auth_headers):
        resp = client.post('/api/sales-orders', headers=auth_headers(manager), json={
            'customer_id': catalog['customer'].id,
            'project_id': project.id,
            'lines': [consulting_line(catalog)],
        })
        first = SalesOrder.query.filter_by(id=sales_order['id']).one().order_number
        second = resp.get_json()['order_number']
        assert int(second.rsplit('-', 1)[1]) == int(first.rsplit('-', 1)[1]) + 1

    def test_dropdown_data(self, client, manager, project, catalog, make_user, auth_headers, db_session):
        db_session.add(Project(name='Another', manager_id=make_user('pm3@example.com', role='project_manager').id))
        db_session.commit()
        headers = auth_headers(manager)
        projects = client.get('/api/sales-orders/data/projects', headers=headers).get_json()
        assert [p['name'] for p in projects] == ['Website Redesign']

        products = client.get('/api/sales-orders/data/products', headers=headers).get_json()
        assert all(p['type_sales'] for p in products)

        customers = client.get('/api/sales-orders/data/customers', headers=headers).get_json()
        assert len(customers) == 3


class TestPurchaseOrders:

    def test_create(self, purchase_order):
        assert purchase_order['po_number'].startswith('PO-')
        assert purchase_order['vendor_name'] == 'Office Supplies Co'
        assert purchase_order['grand_total'] == 1100.0

    def test_rejects_sales_only_product(self, client, finance, project, catalog, auth_headers):
        resp = client.post('/api/purchase-orders', headers=auth_headers(finance), json={
            'vendor_id': catalog['vendor'].id,
            'project_id': project.id,
            'lines': [consulting_line(catalog)],
        })
        assert resp.status_code == 400

    def test_status_filter(self, client, purchase_order, finance, auth_headers):
        headers = auth_headers(finance)
        assert len(client.get('/api/purchase-orders?status=draft', headers=headers).get_json()) == 1
        assert client.get('/api/purchase-orders?status=confirmed', headers=headers).get_json() == []

    def test_confirm_and_lock(self, client, purchase_order, finance, auth_headers):
        headers = auth_headers(finance)
        assert client.post(f"/api/purchase-orders/confirm/{purchase_order['id']}", headers=headers).status_code == 200
        again = client.post(f"/api/purchase-orders/confirm/{purchase_order['id']}", headers=headers)
        assert again.get_json()['message'] == 'Purchase order already confirmed'
        edit = client.put(f"/api/purchase-orders/{purchase_order['id']}", headers=headers, json={'notes': 'x'})
        assert edit.get_json()['message'] == 'Cannot edit confirmed purchase order'

    def test_vendor_dropdown(self, client, finance, catalog, auth_headers):
        vendors = client.get('/api/purchase-orders/vendors/list', headers=auth_headers(finance)).get_json()
        assert [v['name'] for v in vendors] == sorted(v['name'] for v in vendors)

    def test_unknown_order(self, client, finance, auth_headers, db_session):
        resp = client.get('/api/purchase-orders/999', headers=auth_headers(finance))
        assert resp.status_code == 404
        assert resp.get_json()['message'] == 'Purchase order not found'
