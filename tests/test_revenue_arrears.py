import io
from unittest.mock import patch, MagicMock

from openpyxl import load_workbook


def _ai_response(text):
    response = MagicMock()
    response.json.return_value = {'candidates': [{'content': {'parts': [{'text': text}]}}]}
    return response


class TestPayments:
    """POST /revenue/<id>/payment"""

    def test_partial_then_paid(self, client, make_tenancy, obligations):
        tenancy_id = make_tenancy()
        rent = obligations(tenancy_id)[1]
        assert rent['kind'] == 'Rent'

        resp = client.post(f"/revenue/{rent['id']}/payment", json={
            'amount': 400, 'date': '2025-01-03', 'method': 'M-Pesa', 'reference': 'QX12',
        })
        assert resp.status_code == 201
        data = resp.get_json()
        assert data['obligation']['status'] == 'Partial'
        assert data['obligation']['balance'] == 600.0
        assert data['payment']['method'] == 'M-Pesa'

        resp = client.post(f"/revenue/{rent['id']}/payment", json={'amount': 600, 'date': '2025-01-05'})
        assert resp.get_json()['obligation']['status'] == 'Paid'

    def test_rejects_bad_payments(self, client, make_tenancy, obligations):
        rent = obligations(make_tenancy())[1]

        assert client.post(f"/revenue/{rent['id']}/payment", json={'amount': 0}).status_code == 400
        assert client.post(f"/revenue/{rent['id']}/payment", json={'amount': 'abc'}).status_code == 400
        assert client.post(f"/revenue/{rent['id']}/payment",
                           json={'amount': 10, 'method': 'Barter'}).status_code == 400

    def test_other_landlords_obligation_is_404(self, other_client, make_tenancy, obligations):
        rent = obligations(make_tenancy())[1]
        resp = other_client.post(f"/revenue/{rent['id']}/payment", json={'amount': 10})
        assert resp.status_code == 404

    def test_accounts_staff_work_on_landlords_books(self, client, accounts_client, make_tenancy, obligations):
        tenancy_id = make_tenancy()
        rent = obligations(tenancy_id)[1]

        resp = accounts_client.post(f"/revenue/{rent['id']}/payment", json={'amount': 10, 'date': '2025-01-02'})
        assert resp.status_code == 201
        assert resp.get_json()['obligation']['amount_paid'] == 10.0

        aging = accounts_client.get('/arrears/aging?as_of=2025-03-31').get_json()
        assert [row['tenancy_id'] for row in aging['report']] == [tenancy_id]
        assert client.get(f'/revenue/statement/{tenancy_id}').get_json()['ledger'][2]['type'] == 'Payment'

    def test_list_filters(self, client, make_tenancy):
        tenancy_id = make_tenancy()

        rents = client.get(f'/revenue/?tenancy_id={tenancy_id}&kind=Rent').get_json()
        assert len(rents) == 3

        february = client.get('/revenue/?start=2025-02-01&end=2025-02-28').get_json()
        assert [o['due_date'] for o in february] == ['2025-02-01']

        assert client.get('/revenue/?start=yesterday').status_code == 400

    def test_statement_running_balance(self, client, make_tenancy, obligations):
        tenancy_id = make_tenancy()
        rent = obligations(tenancy_id)[1]
        client.post(f"/revenue/{rent['id']}/payment", json={'amount': 1000, 'date': '2025-01-05'})

        data = client.get(f'/revenue/statement/{tenancy_id}').get_json()
        ledger = data['ledger']

        assert [e['type'] for e in ledger] == ['Deposit', 'Rent', 'Payment', 'Rent', 'Rent']
        assert ledger[1]['balance'] == 1100.0
        assert ledger[2]['balance'] == 100.0
        assert data['balance'] == 2100.0


class TestArrears:
    """GET /arrears/ and the aging report."""

    def test_allocation_order_over_http(self, client, make_tenancy, obligations):
        tenancy_id = make_tenancy()
        deposit = obligations(tenancy_id)[0]
        assert deposit['kind'] == 'Deposit'
        client.post(f"/revenue/{deposit['id']}/payment", json={'amount': 150, 'date': '2025-01-01'})

        data = client.get('/arrears/?as_of=2025-01-15').get_json()
        assert len(data['arrears']) == 1
        entry = data['arrears'][0]

        assert entry['deposit_owed'] == 0.0
        assert entry['rent_owed'] == 950.0
        assert entry['amount_owed'] == 950.0
        assert entry['days_overdue'] == 14
        assert entry['tenant'] == 'Jane Wanjiru'
        assert entry['amount_owed_display'] == 'KES 950'
        assert data['total_owed'] == 950.0

    def test_paid_up_tenancy_not_listed(self, client, make_tenancy, obligations):
        tenancy_id = make_tenancy(start_date='2025-01-01', end_date='2025-01-31', deposit_amount=0)
        rent = obligations(tenancy_id)[0]
        client.post(f"/revenue/{rent['id']}/payment", json={'amount': 1000, 'date': '2025-01-01'})

        assert client.get('/arrears/?as_of=2025-02-15').get_json()['arrears'] == []

    def test_owner_currency_used_for_display(self, client, make_tenancy):
        make_tenancy()
        client.post('/settings/', json={'currency': 'USD', 'locale': 'en-US'})

        entry = client.get('/arrears/?as_of=2025-01-15').get_json()['arrears'][0]
        assert entry['amount_owed_display'] == '$1,100'

    def test_bad_as_of(self, client):
        assert client.get('/arrears/?as_of=15-01-2025').status_code == 400

    def test_aging_report(self, client, make_tenancy, obligations):
        tenancy_id = make_tenancy(end_date='2025-04-30')
        deposit = obligations(tenancy_id)[0]
        client.post(f"/revenue/{deposit['id']}/payment", json={'amount': 150, 'date': '2025-01-01'})

        data = client.get('/arrears/aging?as_of=2025-03-31').get_json()
        row = data['report'][0]

        assert row['d61_90'] == 950.0
        assert row['d31_60'] == 1000.0
        assert row['d1_30'] == 1000.0
        assert row['total'] == 2950.0
        assert data['totals']['total'] == 2950.0

    def test_aging_export(self, client, make_tenancy):
        make_tenancy()
        resp = client.get('/arrears/aging/export?as_of=2025-03-31')

        assert resp.status_code == 200
        assert resp.mimetype == 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
        ws = load_workbook(io.BytesIO(resp.data)).active
        assert ws['A1'].value == 'Tenant'
        assert ws['A2'].value == 'Jane Wanjiru'
        assert ws['H2'].value == 3100.0


class TestReminderEmail:
    """POST /arrears/<tenancy_id>/reminder"""

    @patch('services.ai_service.requests.post')
    def test_generates_email(self, mock_post, client, make_tenancy):
        mock_post.return_value = _ai_response(
            '{"subject": "Urgent: Overdue Rent Reminder", "body": "Dear Jane Wanjiru, ..."}'
        )
        tenancy_id = make_tenancy()

        resp = client.post(f'/arrears/{tenancy_id}/reminder')
        assert resp.status_code == 200
        data = resp.get_json()
        assert data['subject'] == 'Urgent: Overdue Rent Reminder'
        assert data['to'] == 'jane@example.com'

        prompt = mock_post.call_args.kwargs['json']['contents'][0]['parts'][0]['text']
        assert 'Jane Wanjiru' in prompt
        assert 'KES 3,100.00' in prompt

    @patch('services.ai_service.requests.post')
    def test_nothing_owed(self, mock_post, client, make_tenancy):
        tenancy_id = make_tenancy(start_date='2099-01-01', end_date='2099-12-31', deposit_amount=0)

        resp = client.post(f'/arrears/{tenancy_id}/reminder')
        assert resp.status_code == 400
        mock_post.assert_not_called()

    @patch('services.ai_service.requests.post')
    def test_bad_ai_output_is_502(self, mock_post, client, make_tenancy):
        mock_post.return_value = _ai_response('{"subject": "Hi"}')
        tenancy_id = make_tenancy()

        resp = client.post(f'/arrears/{tenancy_id}/reminder')
        assert resp.status_code == 502
        assert resp.get_json()['status'] == 'error'
