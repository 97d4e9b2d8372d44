from models import db, Tenancy, Tenant, RevenueObligation, Payment, TenancyServiceCharge, AuditLog


class TestPreview:
    """POST /tenancies/preview"""

    def test_preview_schedule(self, client):
        resp = client.post('/tenancies/preview', json={
            'start_date': '2025-01-15',
            'end_date': '2025-03-14',
            'rent_amount': 3000,
            'deposit_amount': 1500,
            'rent_due_day': 1,
        })
        assert resp.status_code == 200
        data = resp.get_json()

        assert [(o['kind'], o['amount_due'], o['due_date']) for o in data['obligations']] == [
            ('Deposit', 1500.0, '2025-01-15'),
            ('Rent', 1645.16, '2025-01-15'),
            ('Rent', 3000.0, '2025-02-01'),
            ('Rent', 1354.84, '2025-03-01'),
        ]
        assert data['totals']['rent'] == 6000.0
        assert data['totals']['total'] == 7500.0

    def test_preview_saves_nothing(self, app, client):
        client.post('/tenancies/preview', json={
            'start_date': '2025-01-01', 'end_date': '2025-12-31', 'rent_amount': 1000,
        })
        with app.app_context():
            assert RevenueObligation.query.count() == 0

    def test_preview_rejects_bad_dates(self, client):
        resp = client.post('/tenancies/preview', json={
            'start_date': '2025-05-01', 'end_date': '2025-04-01', 'rent_amount': 1000,
        })
        assert resp.status_code == 400
        assert resp.get_json()['message'] == 'End date cannot be before start date'

    def test_preview_rejects_unparseable_date(self, client):
        resp = client.post('/tenancies/preview', json={
            'start_date': '01/05/2025', 'end_date': '2025-04-01', 'rent_amount': 1000,
        })
        assert resp.status_code == 400
        assert 'start_date' in resp.get_json()['message']

    def test_preview_rejects_malformed_service_charge(self, client):
        resp = client.post('/tenancies/preview', json={
            'start_date': '2025-01-01', 'end_date': '2025-03-31', 'rent_amount': 1000,
            'service_charges': ['Water'],
        })
        assert resp.status_code == 400
        assert resp.get_json()['message'] == 'Invalid service charge'


class TestAddTenancy:
    """POST /tenancies/add"""

    def test_creates_tenant_tenancy_and_schedule(self, app, client, make_property):
        property_id = make_property()
        resp = client.post('/tenancies/add', json={
            'property_id': property_id,
            'tenant': {'first_name': 'Jane', 'last_name': 'Wanjiru'},
            'start_date': '2025-01-15',
            'end_date': '2025-03-14',
            'rent_amount': 3000,
            'deposit_amount': 1500,
            'service_charges': [{'name': 'Water', 'amount': 310}],
        })
        assert resp.status_code == 201
        data = resp.get_json()
        assert data['obligations'] == 7

        with app.app_context():
            tenancy = db.session.get(Tenancy, data['tenancy_id'])
            assert tenancy.tenant.full_name == 'Jane Wanjiru'
            assert [sc.name for sc in tenancy.service_charges] == ['Water']

            numbers = {o.invoice_number for o in tenancy.obligations}
            assert f"DEP-{tenancy.id}" in numbers
            assert f"INV-{tenancy.id}-20250201" in numbers
            assert f"SC-{tenancy.id}-WAT-20250201" in numbers
            assert all(o.status == 'Unpaid' for o in tenancy.obligations)

    def test_existing_tenant(self, app, client, make_property):
        tenant_id = client.post('/tenants/add', json={'first_name': 'Ali', 'last_name': 'Hassan'}) \
            .get_json()['tenant']['id']
        resp = client.post('/tenancies/add', json={
            'property_id': make_property(),
            'tenant_id': tenant_id,
            'start_date': '2025-01-01',
            'end_date': '2025-01-31',
            'rent_amount': 1000,
        })
        assert resp.status_code == 201
        with app.app_context():
            assert Tenant.query.count() == 1

    def test_end_before_start_rejected_and_nothing_saved(self, app, client, make_property):
        resp = client.post('/tenancies/add', json={
            'property_id': make_property(),
            'tenant': {'first_name': 'Jane', 'last_name': 'Wanjiru'},
            'start_date': '2025-06-01',
            'end_date': '2025-05-31',
            'rent_amount': 1000,
        })
        assert resp.status_code == 400
        with app.app_context():
            assert Tenancy.query.count() == 0
            assert Tenant.query.count() == 0
            assert RevenueObligation.query.count() == 0

    def test_missing_tenant_name_rolls_back(self, app, client, make_property):
        resp = client.post('/tenancies/add', json={
            'property_id': make_property(),
            'tenant': {'first_name': 'Jane'},
            'start_date': '2025-01-01',
            'end_date': '2025-12-31',
            'rent_amount': 1000,
        })
        assert resp.status_code == 400
        with app.app_context():
            assert Tenancy.query.count() == 0

    def test_archived_property_rejected(self, client, make_property):
        property_id = make_property()
        client.post(f'/properties/archive/{property_id}')
        resp = client.post('/tenancies/add', json={
            'property_id': property_id,
            'tenant': {'first_name': 'Jane', 'last_name': 'Wanjiru'},
            'start_date': '2025-01-01',
            'end_date': '2025-12-31',
            'rent_amount': 1000,
        })
        assert resp.status_code == 400

    def test_other_owners_property_is_404(self, client, other_client):
        other_property = other_client.post('/properties/add', json={'address_line_1': 'Elsewhere'}) \
            .get_json()['property']['id']
        resp = client.post('/tenancies/add', json={
            'property_id': other_property,
            'tenant': {'first_name': 'Jane', 'last_name': 'Wanjiru'},
            'start_date': '2025-01-01',
            'end_date': '2025-12-31',
            'rent_amount': 1000,
        })
        assert resp.status_code == 404

    def test_accounts_role_cannot_create(self, accounts_client):
        resp = accounts_client.post('/tenancies/add', json={})
        assert resp.status_code == 403

    def test_anonymous_gets_401(self, anon_client):
        resp = anon_client.get('/tenancies/')
        assert resp.status_code == 401
        assert resp.get_json()['status'] == 'error'

    def test_audit_logged(self, app, make_tenancy):
        tenancy_id = make_tenancy()
        with app.app_context():
            log = AuditLog.query.filter_by(target_type='Tenancy', target_id=tenancy_id).first()
            assert log.action == 'CREATE'
            assert '4 obligations' in log.details


class TestTenancyLifecycle:
    """List, detail, edit, end and delete."""

    def test_list_and_detail(self, client, make_tenancy):
        tenancy_id = make_tenancy()

        listing = client.get('/tenancies/').get_json()
        assert [t['id'] for t in listing] == [tenancy_id]
        assert listing[0]['tenant_name'] == 'Jane Wanjiru'

        detail = client.get(f'/tenancies/{tenancy_id}').get_json()
        assert len(detail['obligations']) == 4
        assert detail['totals']['rent'] == 3000.0
        assert detail['totals']['deposit'] == 100.0
        assert detail['arrears']['amount_owed'] == 3100.0

    def test_filter_by_status(self, client, make_tenancy):
        tenancy_id = make_tenancy()
        client.post(f'/tenancies/end/{tenancy_id}', json={'ended_on': '2025-02-15'})

        assert client.get('/tenancies/?status=Active').get_json() == []
        assert len(client.get('/tenancies/?status=Ended').get_json()) == 1

    def test_edit_administrative_fields(self, client, make_tenancy):
        tenancy_id = make_tenancy()
        resp = client.post(f'/tenancies/edit/{tenancy_id}', json={
            'payment_frequency': 'Quarterly', 'notes': 'Pays by standing order',
        })
        assert resp.status_code == 200
        tenancy = resp.get_json()['tenancy']
        assert tenancy['payment_frequency'] == 'Quarterly'
        assert tenancy['notes'] == 'Pays by standing order'
        assert tenancy['rent_amount'] == 1000.0

    def test_edit_rejects_unknown_frequency(self, client, make_tenancy):
        tenancy_id = make_tenancy()
        resp = client.post(f'/tenancies/edit/{tenancy_id}', json={'payment_frequency': 'Fortnightly'})
        assert resp.status_code == 400

    def test_end_keeps_obligations(self, app, client, make_tenancy):
        tenancy_id = make_tenancy()
        resp = client.post(f'/tenancies/end/{tenancy_id}', json={'ended_on': '2025-02-15'})
        assert resp.status_code == 200

        with app.app_context():
            tenancy = db.session.get(Tenancy, tenancy_id)
            assert tenancy.status == 'Ended'
            assert tenancy.ended_on.isoformat() == '2025-02-15'
            assert len(tenancy.obligations) == 4

    def test_end_before_start_rejected(self, client, make_tenancy):
        tenancy_id = make_tenancy()
        resp = client.post(f'/tenancies/end/{tenancy_id}', json={'ended_on': '2024-12-01'})
        assert resp.status_code == 400

    def test_delete_removes_everything(self, app, client, make_tenancy, obligations):
        tenancy_id = make_tenancy(service_charges=[{'name': 'Water', 'amount': 200}])
        first = obligations(tenancy_id)[0]
        client.post(f"/revenue/{first['id']}/payment", json={'amount': 100, 'date': '2025-01-02'})

        resp = client.post(f'/tenancies/delete/{tenancy_id}')
        assert resp.status_code == 200
        assert resp.get_json()['deleted_obligations'] == 7

        with app.app_context():
            assert db.session.get(Tenancy, tenancy_id) is None
            assert RevenueObligation.query.count() == 0
            assert Payment.query.count() == 0
            assert TenancyServiceCharge.query.count() == 0
            assert Tenant.query.count() == 1

    def test_other_owner_cannot_see(self, other_client, make_tenancy):
        tenancy_id = make_tenancy()
        assert other_client.get(f'/tenancies/{tenancy_id}').status_code == 404
        assert other_client.post(f'/tenancies/delete/{tenancy_id}').status_code == 404
