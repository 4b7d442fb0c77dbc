# Overview: HTTP-level tests for authentication, warehouse isolation, sales and invoices.

from datetime import timedelta
from decimal import Decimal

from maca.models import InvoicePayment, ProductStock, Sale

from conftest import CENTRO, SAN_FRANCISCO, auth_headers, get_auth_token, make_product


def _sale_body(product, size="42", quantity=1, **extra):
    body = {
        "items": [{"product_id": product.id, "size": size, "quantity": quantity}],
        "payment_method": "CASH",
    }
    body.update(extra)
    return body


class TestAuthentication:

    def test_warehouses_listed(self, client):
        response = client.get('/api/auth/warehouses')
        assert response.status_code == 200
        assert response.json["warehouses"] == [SAN_FRANCISCO, CENTRO]
        assert response.json["default"] == SAN_FRANCISCO

    def test_login_binds_warehouse(self, client, admin_user):
        response = client.post('/api/auth/login', json={
            'username': 'admin', 'password': 'Clave12345', 'warehouse': 'centro',
        })
        assert response.status_code == 200
        assert response.json["warehouse"] == CENTRO

        me = client.get('/api/auth/me', headers=auth_headers(response.json["token"]))
        assert me.status_code == 200
        assert me.json["warehouse"] == CENTRO
        assert me.json["user"]["username"] == "admin"

    def test_login_falls_back_to_default_warehouse(self, client, seller_user):
        response = client.post('/api/auth/login', json={'username': 'vendedor', 'password': 'Clave12345'})
        assert response.status_code == 200
        assert response.json["warehouse"] == CENTRO

    def test_wrong_password(self, client, admin_user):
        response = client.post('/api/auth/login', json={
            'username': 'admin', 'password': 'incorrecta1', 'warehouse': SAN_FRANCISCO,
        })
        assert response.status_code == 401

    def test_unknown_warehouse(self, client, admin_user):
        response = client.post('/api/auth/login', json={
            'username': 'admin', 'password': 'Clave12345', 'warehouse': 'Bodega Norte',
        })
        assert response.status_code == 400

    def test_non_string_credentials(self, client, admin_user):
        response = client.post('/api/auth/login', json={
            'username': 123, 'password': 'Clave12345', 'warehouse': SAN_FRANCISCO,
        })
        assert response.status_code == 400

        response = client.post('/api/auth/login', json={
            'username': 'admin', 'password': ['Clave12345'], 'warehouse': SAN_FRANCISCO,
        })
        assert response.status_code == 400

    def test_missing_token(self, client, db_session):
        assert client.get('/api/products').status_code == 401

    def test_garbage_token(self, client, db_session):
        response = client.get('/api/products', headers=auth_headers("no-such-token"))
        assert response.status_code == 401

    def test_logout_revokes_token(self, client, admin_user):
        token = get_auth_token(client, "admin")
        assert client.post('/api/auth/logout', headers=auth_headers(token)).status_code == 200
        assert client.get('/api/auth/me', headers=auth_headers(token)).status_code == 401


class TestAuthorization:

    def test_seller_cannot_create_product(self, client, seller_headers):
        response = client.post('/api/products', headers=seller_headers, json={
            "code": "X-1", "name": "X", "purchase_price": 1, "sale_price": 2,
        })
        assert response.status_code == 403
        assert response.json["required_role"] == ["ADMIN"]

    def test_seller_cannot_cancel_sale(self, client, seller_headers):
        assert client.post('/api/sales/1/cancel', headers=seller_headers).status_code == 403

    def test_seller_can_pay_invoice(self, client, db_session, seller_user, invoice):
        token = get_auth_token(client, "vendedor", warehouse=SAN_FRANCISCO)
        response = client.post(f'/api/invoices/{invoice.id}/payments', headers=auth_headers(token), json={
            "amount": "1000", "payment_method": "CASH",
        })
        assert response.status_code == 201


class TestWarehouseIsolation:

    def test_products_listed_per_warehouse(self, client, admin_user, product, centro_product):
        sf = client.get('/api/products', headers=auth_headers(get_auth_token(client, "admin")))
        centro = client.get(
            '/api/products', headers=auth_headers(get_auth_token(client, "admin", warehouse=CENTRO))
        )
        assert [p["id"] for p in sf.json["items"]] == [product.id]
        assert [p["id"] for p in centro.json["items"]] == [centro_product.id]

    def test_other_warehouse_product_is_not_found(self, client, admin_user, product):
        headers = auth_headers(get_auth_token(client, "admin", warehouse=CENTRO))
        assert client.get(f'/api/products/{product.id}', headers=headers).status_code == 404

    def test_cannot_sell_other_warehouse_product(self, client, db_session, admin_user, product):
        headers = auth_headers(get_auth_token(client, "admin", warehouse=CENTRO))
        response = client.post('/api/sales', headers=headers, json=_sale_body(product))
        assert response.status_code == 400
        assert db_session.query(Sale).count() == 0


class TestSalesApi:

    def test_create_sale(self, client, db_session, admin_headers, product):
        response = client.post('/api/sales', headers=admin_headers, json=_sale_body(
            product,
            quantity=2,
            payment_method=None,
            payments=[
                {"payment_method": "CASH", "amount": "50000"},
                {"payment_method": "CARD", "amount": "150000", "reference": "VOUCHER-77"},
            ],
        ))
        assert response.status_code == 201

        sale = response.json["sale"]
        assert sale["sale_number"].startswith("VEN-SF-")
        assert sale["total"] == "200000.00"
        assert sale["is_mixed_payment"] is True
        assert sale["payment_method"] == "MIXED"
        assert sale["status"] == "COMPLETED"

        db_session.expire_all()
        assert db_session.query(ProductStock.quantity).filter_by(product_id=product.id, size="42").scalar() == 8

    def test_insufficient_stock(self, client, db_session, admin_headers, product):
        response = client.post('/api/sales', headers=admin_headers, json=_sale_body(product, size="40", quantity=3))
        assert response.status_code == 400
        assert response.json["details"]["available"] == 2
        assert response.json["details"]["requested"] == 3
        assert db_session.query(Sale).count() == 0

    def test_insufficient_payment(self, client, admin_headers, product):
        response = client.post('/api/sales', headers=admin_headers, json=_sale_body(
            product, payment_method=None, payments=[{"payment_method": "CASH", "amount": "99999.99"}],
        ))
        assert response.status_code == 400
        assert response.json["details"]["missing"] == "0.01"

    def test_cancel_sale_restocks(self, client, db_session, admin_headers, product):
        created = client.post('/api/sales', headers=admin_headers, json=_sale_body(product, quantity=4))
        sale_id = created.json["sale"]["id"]

        response = client.post(f'/api/sales/{sale_id}/cancel', headers=admin_headers)
        assert response.status_code == 200
        assert response.json["sale"]["status"] == "CANCELLED"

        again = client.post(f'/api/sales/{sale_id}/cancel', headers=admin_headers)
        assert again.status_code == 400

        db_session.expire_all()
        assert db_session.query(ProductStock.quantity).filter_by(product_id=product.id, size="42").scalar() == 10

    def test_lookup_and_summary(self, client, admin_headers, product):
        created = client.post('/api/sales', headers=admin_headers, json=_sale_body(product, quantity=3))
        number = created.json["sale"]["sale_number"]
        assert created.json["sale"]["payment_method"] == "CASH"

        by_number = client.get(f'/api/sales/number/{number}', headers=admin_headers)
        assert by_number.status_code == 200
        assert by_number.json["sale"]["id"] == created.json["sale"]["id"]

        summary = client.get('/api/sales/summary', headers=admin_headers)
        assert summary.json == {"count": 1, "total": "300000.00"}

        listing = client.get('/api/sales?page=1&per_page=10', headers=admin_headers)
        assert listing.json["pagination"]["total"] == 1

    def test_unknown_sale(self, client, admin_headers):
        assert client.get('/api/sales/4242', headers=admin_headers).status_code == 404


class TestInvoicesApi:

    def test_create_invoice_with_default_due_date(self, client, admin_headers, provider):
        response = client.post('/api/invoices', headers=admin_headers, json={
            "invoice_number": "FAC-900",
            "provider_id": provider.id,
            "invoice_date": "2026-10-01",
            "subtotal": "100000",
            "total": "119000",
        })
        assert response.status_code == 201
        assert response.json["invoice"]["due_date"] == "2026-10-31"

    def test_unknown_provider(self, client, admin_headers, db_session):
        response = client.post('/api/invoices', headers=admin_headers, json={
            "invoice_number": "FAC-901",
            "provider_id": 999,
            "invoice_date": "2026-10-01",
            "subtotal": "1",
            "total": "1",
        })
        assert response.status_code == 404

    def test_payment_flow(self, client, db_session, admin_headers, invoice):
        first = client.post(f'/api/invoices/{invoice.id}/payments', headers=admin_headers, json={
            "amount": "200000", "payment_method": "TRANSFER", "reference": "TRX-1",
        })
        assert first.status_code == 201
        assert first.json["invoice"]["status"] == "PARTIAL"
        assert first.json["invoice"]["balance"] == "300000.00"
        assert first.json["payment"]["payment_number"].startswith("PAG-")

        over = client.post(f'/api/invoices/{invoice.id}/payments', headers=admin_headers, json={
            "amount": "300000.01", "payment_method": "CASH",
        })
        assert over.status_code == 400
        assert over.json["details"]["balance"] == "300000.00"

        rest = client.post(f'/api/invoices/{invoice.id}/payments', headers=admin_headers, json={
            "amount": "300000", "payment_method": "CASH",
        })
        assert rest.json["invoice"]["status"] == "PAID"
        assert rest.json["invoice"]["balance"] == "0.00"
        assert db_session.query(InvoicePayment).count() == 2

    def test_cancel_with_payments_rejected(self, client, admin_headers, invoice):
        client.post(f'/api/invoices/{invoice.id}/payments', headers=admin_headers, json={
            "amount": "1", "payment_method": "CASH",
        })
        response = client.post(f'/api/invoices/{invoice.id}/cancel', headers=admin_headers)
        assert response.status_code == 400

    def test_total_change_rejected_after_payment(self, client, admin_headers, invoice):
        client.post(f'/api/invoices/{invoice.id}/payments', headers=admin_headers, json={
            "amount": "1", "payment_method": "CASH",
        })
        response = client.put(f'/api/invoices/{invoice.id}', headers=admin_headers, json={"total": "600000"})
        assert response.status_code == 400

        notes = client.put(f'/api/invoices/{invoice.id}', headers=admin_headers, json={"notes": "revisada"})
        assert notes.status_code == 200

    def test_list_includes_pending_balance(self, client, admin_headers, invoice):
        response = client.get('/api/invoices', headers=admin_headers)
        assert response.json["count"] == 1
        assert Decimal(response.json["pending_balance"]) == Decimal("500000.00")

    def test_lookup_by_number_and_totals(self, client, admin_headers, invoice):
        found = client.get('/api/invoices/number/FAC-001', headers=admin_headers)
        assert found.status_code == 200
        assert found.json["invoice"]["id"] == invoice.id
        assert client.get('/api/invoices/number/FAC-404', headers=admin_headers).status_code == 404

        totals = client.get('/api/invoices/totals', headers=admin_headers)
        assert totals.status_code == 200
        assert totals.json["totals"]["PENDING"] == "500000.00"
        assert totals.json["totals"]["PAID"] == "0.00"
        assert totals.json["pending_balance"] == "500000.00"

    def test_list_by_date_range(self, client, admin_headers, invoice):
        today = invoice.invoice_date
        inside = client.get(f'/api/invoices?start_date={today.isoformat()}', headers=admin_headers)
        assert inside.json["count"] == 1
        before = client.get(f'/api/invoices?end_date={(today - timedelta(days=1)).isoformat()}', headers=admin_headers)
        assert before.json["count"] == 0
        assert client.get('/api/invoices?start_date=ayer', headers=admin_headers).status_code == 400


class TestCatalogLookupsApi:

    def test_product_facets(self, client, db_session, admin_headers):
        make_product(db_session, SAN_FRANCISCO, "C-1", brand="Maca")
        make_product(db_session, SAN_FRANCISCO, "C-2", brand="Andina")
        response = client.get('/api/products/brands', headers=admin_headers)
        assert response.status_code == 200
        assert response.json == {"items": ["Andina", "Maca"], "count": 2}
        assert client.get('/api/products/sizes', headers=admin_headers).status_code == 404

    def test_provider_lookups(self, client, db_session, admin_headers, provider):
        provider.city = "Medellin"
        provider.country = "Colombia"
        db_session.commit()

        found = client.get(f'/api/providers/document/{provider.document}', headers=admin_headers)
        assert found.json["provider"]["id"] == provider.id
        assert client.get('/api/providers/document/000', headers=admin_headers).status_code == 404
        assert client.get('/api/providers/cities', headers=admin_headers).json["items"] == ["Medellin"]
        assert client.get('/api/providers/countries', headers=admin_headers).json["items"] == ["Colombia"]

    def test_provider_reactivation(self, client, admin_headers, provider):
        assert client.post(f'/api/providers/{provider.id}/activate', headers=admin_headers).status_code == 400
        client.post(f'/api/providers/{provider.id}/deactivate', headers=admin_headers)
        response = client.post(f'/api/providers/{provider.id}/activate', headers=admin_headers)
        assert response.status_code == 200
        assert response.json["provider"]["is_active"] is True

    def test_seller_cannot_reactivate_provider(self, client, seller_headers):
        assert client.post('/api/providers/1/activate', headers=seller_headers).status_code == 403


class TestEmployeesApi:

    def test_seller_is_forbidden(self, client, seller_headers):
        assert client.get('/api/employees', headers=seller_headers).status_code == 403
        assert client.post('/api/employees', headers=seller_headers, json={}).status_code == 403

    def test_lifecycle(self, client, admin_headers, seller_user):
        created = client.post('/api/employees', headers=admin_headers, json={
            "document": "1020304050",
            "first_name": "Laura",
            "last_name": "Gomez",
            "department": "Ventas",
            "commission_rate": "6",
            "user_id": seller_user.id,
        })
        assert created.status_code == 201
        employee = created.json["employee"]
        assert employee["full_name"] == "Laura Gomez"
        assert employee["commission_rate"] == "6.00"
        assert employee["user"]["username"] == "vendedor"

        duplicate = client.post('/api/employees', headers=admin_headers, json={
            "document": "1020304050", "first_name": "Otra", "last_name": "Persona",
        })
        assert duplicate.status_code == 409

        by_document = client.get('/api/employees/document/1020304050', headers=admin_headers)
        assert by_document.json["employee"]["id"] == employee["id"]

        updated = client.put(f'/api/employees/{employee["id"]}', headers=admin_headers, json={"position": "Cajera"})
        assert updated.json["employee"]["position"] == "Cajera"

        status = client.patch(f'/api/employees/{employee["id"]}/status', headers=admin_headers, json={"status": "VACATION"})
        assert status.json["employee"]["status"] == "VACATION"
        bad_status = client.patch(f'/api/employees/{employee["id"]}/status', headers=admin_headers, json={"status": "X"})
        assert bad_status.status_code == 400

        assert client.get('/api/employees/departments', headers=admin_headers).json["items"] == []
        assert client.get('/api/employees/stats', headers=admin_headers).json["vacation"] == 1

        deleted = client.delete(f'/api/employees/{employee["id"]}', headers=admin_headers)
        assert deleted.status_code == 200
        assert deleted.json["employee"]["status"] == "INACTIVE"
        assert client.delete(f'/api/employees/{employee["id"]}', headers=admin_headers).status_code == 400

        listing = client.get('/api/employees?status=INACTIVE&page=1', headers=admin_headers)
        assert listing.json["pagination"]["total"] == 1

    def test_unknown_employee(self, client, admin_headers):
        assert client.get('/api/employees/4242', headers=admin_headers).status_code == 404
        assert client.put('/api/employees/4242', headers=admin_headers, json={"notes": "x"}).status_code == 404


class TestSystem:

    def test_health(self, client, db_session):
        response = client.get('/api/system/health')
        assert response.status_code == 200
        assert response.json["status"] == "ok"
        assert response.json["database"]["status"] == "healthy"
