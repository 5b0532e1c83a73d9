"""USER purchases: initiation, confirmation and voucher assignment."""

from datetime import timedelta

from countylocal import db
from countylocal.models import Role, Voucher, VoucherStatus, Purchase, DealStatus, VoucherAuditLog
from countylocal.utils.general import utcnow


def _confirm_body(deal_id, payment_intent_id='pi_test_1', amount=25.0):
    return {
        'deal_id': deal_id,
        'payment_intent_id': payment_intent_id,
        'payment_provider': 'stripe',
        'amount_paid': amount,
    }


def test_initiate_purchase(client, vendor_setup, make_identity, make_voucher):
    buyer = make_identity(Role.USER)
    make_voucher(vendor_setup.deal_id)

    response = client.post('/api/purchase/initiate', headers=buyer.headers,
                           json={'deal_id': vendor_setup.deal_id})
    assert response.status_code == 200
    data = response.get_json()
    assert data['payment_intent_id'].startswith('pi_')
    assert data['amount'] == 25.0
    assert data['currency'] == 'USD'


def test_initiate_purchase_errors(client, vendor_setup, make_identity, make_deal, make_voucher):
    buyer = make_identity(Role.USER)

    assert client.post('/api/purchase/initiate', headers=buyer.headers, json={}).status_code == 400
    assert client.post('/api/purchase/initiate', headers=buyer.headers,
                       json={'deal_id': 'missing'}).status_code == 404

    sold_out = client.post('/api/purchase/initiate', headers=buyer.headers,
                           json={'deal_id': vendor_setup.deal_id})
    assert sold_out.status_code == 409

    expired_deal = make_deal(vendor_setup.business_id, status=DealStatus.EXPIRED)
    make_voucher(expired_deal)
    expired = client.post('/api/purchase/initiate', headers=buyer.headers, json={'deal_id': expired_deal})
    assert expired.status_code == 409
    assert expired.get_json()['error'] == 'Deal has expired'

    vendor_attempt = client.post('/api/purchase/initiate', headers=vendor_setup.vendor.headers,
                                 json={'deal_id': vendor_setup.deal_id})
    assert vendor_attempt.status_code == 403


def test_confirm_assigns_oldest_voucher(app, client, vendor_setup, make_identity, make_voucher):
    buyer = make_identity(Role.USER)
    newer = make_voucher(vendor_setup.deal_id)
    oldest = make_voucher(vendor_setup.deal_id, issued_at=utcnow() - timedelta(days=2))

    response = client.post('/api/purchase/confirm', headers=buyer.headers,
                           json=_confirm_body(vendor_setup.deal_id))
    assert response.status_code == 201
    data = response.get_json()
    assert data['voucher']['id'] == oldest.id
    assert data['voucher']['status'] == VoucherStatus.ASSIGNED
    assert data['voucher']['account_id'] == buyer.id
    assert data['purchase']['status'] == 'COMPLETED'

    with app.app_context():
        assert db.session.get(Voucher, newer.id).status == VoucherStatus.ISSUED
        assert db.session.get(Voucher, oldest.id).customer_email == buyer.email
        audit = VoucherAuditLog.query.filter_by(voucher_id=oldest.id).one()
        assert audit.action == 'ASSIGNED'


def test_confirm_rejects_reused_payment_intent(client, vendor_setup, make_identity, make_voucher):
    buyer = make_identity(Role.USER)
    make_voucher(vendor_setup.deal_id)
    make_voucher(vendor_setup.deal_id)

    first = client.post('/api/purchase/confirm', headers=buyer.headers, json=_confirm_body(vendor_setup.deal_id))
    again = client.post('/api/purchase/confirm', headers=buyer.headers, json=_confirm_body(vendor_setup.deal_id))
    assert first.status_code == 201
    assert again.status_code == 409
    assert again.get_json()['error'] == 'Payment already processed'


def test_confirm_validation(app, client, vendor_setup, make_identity, make_voucher):
    buyer = make_identity(Role.USER)
    make_voucher(vendor_setup.deal_id)

    missing = client.post('/api/purchase/confirm', headers=buyer.headers,
                          json={'deal_id': vendor_setup.deal_id, 'amount_paid': -1})
    assert missing.status_code == 400
    assert set(missing.get_json()['required']) == {'payment_intent_id', 'payment_provider', 'amount_paid'}

    wrong_amount = client.post('/api/purchase/confirm', headers=buyer.headers,
                               json=_confirm_body(vendor_setup.deal_id, amount=19.99))
    assert wrong_amount.status_code == 400

    with app.app_context():
        assert Purchase.query.count() == 0


def test_confirm_without_available_voucher(client, vendor_setup, make_identity, make_voucher):
    buyer = make_identity(Role.USER)
    make_voucher(vendor_setup.deal_id, status=VoucherStatus.ASSIGNED, account_id=buyer.id)

    response = client.post('/api/purchase/confirm', headers=buyer.headers,
                           json=_confirm_body(vendor_setup.deal_id))
    assert response.status_code == 409
    assert response.get_json()['error'] == 'No vouchers available for this deal'


def test_purchase_visibility(client, vendor_setup, make_identity, make_voucher):
    buyer = make_identity(Role.USER)
    stranger = make_identity(Role.USER)
    admin = make_identity(Role.ADMIN)
    make_voucher(vendor_setup.deal_id)

    purchase = client.post('/api/purchase/confirm', headers=buyer.headers,
                           json=_confirm_body(vendor_setup.deal_id)).get_json()['purchase']
    url = f"/api/purchase/{purchase['id']}"

    owner_view = client.get(url, headers=buyer.headers)
    assert owner_view.status_code == 200
    assert owner_view.get_json()['deal']['id'] == vendor_setup.deal_id
    assert client.get(url, headers=admin.headers).status_code == 200
    assert client.get(url, headers=stranger.headers).status_code == 404

    history = client.get('/api/user/purchases', headers=buyer.headers).get_json()
    assert [p['id'] for p in history['purchases']] == [purchase['id']]
    assert history['purchases'][0]['deal_title']


def test_purchase_then_redeem(client, vendor_setup, make_identity, make_voucher):
    """A purchased (ASSIGNED) voucher is redeemable and shows up in the buyer's redemptions."""
    buyer = make_identity(Role.USER)
    make_voucher(vendor_setup.deal_id)

    voucher = client.post('/api/purchase/confirm', headers=buyer.headers,
                          json=_confirm_body(vendor_setup.deal_id)).get_json()['voucher']
    wallet = client.get('/api/user/vouchers', headers=buyer.headers).get_json()
    assert [v['id'] for v in wallet['vouchers']] == [voucher['id']]

    redeemed = client.post('/api/redemption/redeem', headers=vendor_setup.vendor.headers,
                           json={'qr_token': voucher['qr_token']})
    assert redeemed.status_code == 200

    history = client.get('/api/user/redemptions', headers=buyer.headers).get_json()
    assert [v['id'] for v in history['redemptions']] == [voucher['id']]
