from oneflow.utils.prom_metrics import observe_otp_email, observe_transition


def test_metrics_endpoint_exposes_prometheus(app):
    with app.test_client() as client:
        client.get('/api/health')
        observe_transition('invoice', 'paid')
        observe_otp_email('signup', True)

        resp = client.get('/metrics')
        assert resp.status_code == 200
        body = resp.data.decode('utf-8')
        # Basic presence of our metric names
        assert 'oneflow_http_requests_total' in body
        assert 'endpoint="/api/health"' in body
        assert 'oneflow_document_transitions_total{document="invoice",status="paid"}' in body
        assert 'oneflow_otp_emails_total{purpose="signup",result="sent"}' in body
        # Check content type
        assert resp.mimetype.startswith('text/plain')


def test_transitions_are_counted(client, manager, catalog, project, auth_headers):
    before = _sample(client, 'oneflow_document_transitions_total{document="sales_order",status="confirmed"}')
    order = client.post('/api/sales-orders', headers=auth_headers(manager), json={
        'customer_id': catalog['customer'].id,
        'project_id': project.id,
        'lines': [{'product_id': catalog['sales_product'].id, 'quantity': 1, 'unit': 'hours', 'unit_price': 150}],
    }).get_json()
    client.post(f"/api/sales-orders/confirm/{order['id']}", headers=auth_headers(manager))
    after = _sample(client, 'oneflow_document_transitions_total{document="sales_order",status="confirmed"}')
    assert after == before + 1


def _sample(client, series):
    for line in client.get('/metrics').data.decode('utf-8').splitlines():
        if line.startswith(series + ' '):
            return float(line.rsplit(' ', 1)[1])
    return 0.0
