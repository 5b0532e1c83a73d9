"""Business status rules, admin/vendor editing and subscriptions."""

from countylocal import db
from countylocal.models import (
    Role, Business, BusinessStatus, SubscriptionStatus, VoucherStatus, AdminActionLog
)
from countylocal.services.businesses import (
    is_valid_status_transition, has_active_subscription, count_vouchers_issued_this_month
)


def test_status_transitions():
    assert is_valid_status_transition(BusinessStatus.DRAFT, BusinessStatus.ACTIVE)
    assert is_valid_status_transition(BusinessStatus.ACTIVE, BusinessStatus.SUSPENDED)
    assert is_valid_status_transition(BusinessStatus.SUSPENDED, BusinessStatus.ACTIVE)
    assert not is_valid_status_transition(BusinessStatus.DRAFT, BusinessStatus.SUSPENDED)
    assert not is_valid_status_transition(BusinessStatus.ACTIVE, BusinessStatus.DRAFT)
    assert not is_valid_status_transition(BusinessStatus.SUSPENDED, BusinessStatus.DRAFT)


def test_admin_creates_business(client, make_identity, make_county):
    county = make_county()
    admin = make_identity(Role.ADMIN, counties=[county.id])

    first = client.post('/api/admin/businesses', headers=admin.headers,
                        json={'name': "Joe's Pizza", 'category': 'Restaurants'})
    assert first.status_code == 201
    business = first.get_json()['business']
    assert business['business_status'] == BusinessStatus.DRAFT
    assert business['slug'] == 'joe-s-pizza'
    assert business['county_id'] == county.id
    assert business['state'] == 'IL'

    second = client.post('/api/admin/businesses', headers=admin.headers,
                         json={'name': "Joe's Pizza", 'category': 'Restaurants'})
    assert second.get_json()['business']['slug'] == 'joe-s-pizza-2'

    missing = client.post('/api/admin/businesses', headers=admin.headers, json={'name': 'No Category'})
    assert missing.status_code == 400
    assert missing.get_json()['required'] == ['category']


def test_business_city_must_be_in_county(app, client, make_identity, make_county):
    county = make_county()
    other = make_county()
    admin = make_identity(Role.ADMIN, counties=[county.id])

    with app.app_context():
        from countylocal.models import City
        foreign_city = City.query.filter_by(county_id=other.id).first().id

    response = client.post('/api/admin/businesses', headers=admin.headers,
                           json={'name': 'Cafe', 'category': 'Coffee', 'city_id': foreign_city})
    assert response.status_code == 400


def test_business_status_changes(client, make_identity, make_county, make_business):
    county = make_county()
    admin = make_identity(Role.ADMIN, counties=[county.id])
    business_id = make_business(county.id, status=BusinessStatus.DRAFT)
    url = f'/api/admin/businesses/{business_id}/status'

    invalid = client.post(url, headers=admin.headers, json={'status': BusinessStatus.SUSPENDED})
    assert invalid.status_code == 400

    activated = client.post(url, headers=admin.headers, json={'status': BusinessStatus.ACTIVE})
    assert activated.status_code == 200
    assert activated.get_json()['business']['business_status'] == BusinessStatus.ACTIVE

    assert client.post(url, headers=admin.headers, json={}).status_code == 400


def test_admin_cannot_touch_other_county_business(client, make_identity, make_county, make_business):
    county = make_county()
    other = make_county()
    admin = make_identity(Role.ADMIN, counties=[county.id])
    foreign = make_business(other.id)

    patch = client.patch(f'/api/admin/businesses/{foreign}', headers=admin.headers,
                         json={'description': 'hijacked'})
    assert patch.status_code == 403

    status = client.post(f'/api/admin/businesses/{foreign}/status', headers=admin.headers,
                         json={'status': BusinessStatus.SUSPENDED})
    assert status.status_code == 403


def test_business_cannot_be_deleted(client, make_identity, make_county, make_business):
    admin = make_identity(Role.ADMIN)
    business_id = make_business(make_county().id)

    response = client.delete(f'/api/admin/businesses/{business_id}', headers=admin.headers)
    assert response.status_code == 405


def test_vendor_edits_own_business(app, client, vendor_setup):
    headers = vendor_setup.vendor.headers

    current = client.get('/api/vendor/business', headers=headers)
    assert current.status_code == 200
    assert current.get_json()['business']['id'] == vendor_setup.business_id

    updated = client.patch('/api/vendor/business', headers=headers,
                           json={'description': 'Wood-fired since 1998', 'name': 'Renamed'})
    assert updated.status_code == 200

    with app.app_context():
        business = db.session.get(Business, vendor_setup.business_id)
        assert business.description == 'Wood-fired since 1998'
        # name is admin-only
        assert business.name != 'Renamed'

    name_only = client.patch('/api/vendor/business', headers=headers, json={'name': 'Renamed'})
    assert name_only.status_code == 400


def test_unbound_vendor_has_no_dashboard(client, make_identity):
    vendor = make_identity(Role.VENDOR)
    response = client.get('/api/vendor/business', headers=vendor.headers)
    assert response.status_code == 403


def test_subscription_lifecycle(app, client, make_identity, make_county, make_business):
    vendor = make_identity(Role.VENDOR)
    business_id = make_business(make_county().id, owner_id=vendor.id, plan=None, allowance=None)

    status = client.get('/api/vendor/subscription', headers=vendor.headers).get_json()
    assert status['is_active'] is False
    assert status['subscription'] is None

    invalid = client.post('/api/vendor/subscription/activate', headers=vendor.headers,
                          json={'plan': 'platinum'})
    assert invalid.status_code == 400

    activated = client.post('/api/vendor/subscription/activate', headers=vendor.headers,
                            json={'plan': 'pro'})
    assert activated.status_code == 200
    assert activated.get_json()['monthly_voucher_allowance'] == 200

    with app.app_context():
        assert has_active_subscription(db.session.get(Business, business_id))

    canceled = client.post('/api/vendor/subscription/cancel', headers=vendor.headers)
    assert canceled.status_code == 200
    assert canceled.get_json()['subscription']['status'] == SubscriptionStatus.CANCELED

    again = client.post('/api/vendor/subscription/cancel', headers=vendor.headers)
    assert again.status_code == 400

    with app.app_context():
        assert not has_active_subscription(db.session.get(Business, business_id))


def test_vouchers_issued_this_month(app, vendor_setup, make_voucher):
    make_voucher(vendor_setup.deal_id)
    make_voucher(vendor_setup.deal_id, status=VoucherStatus.REDEEMED)

    with app.app_context():
        assert count_vouchers_issued_this_month(vendor_setup.business_id) == 2


def test_business_text_fields_must_be_strings(client, make_identity, make_county, vendor_setup):
    county = make_county()
    admin = make_identity(Role.ADMIN, counties=[county.id])

    created = client.post('/api/admin/businesses', headers=admin.headers,
                          json={'name': 123, 'category': ['Restaurants']})
    assert created.status_code == 400
    assert created.get_json()['invalid'] == ['name', 'category']

    edited = client.patch('/api/vendor/business', headers=vendor_setup.vendor.headers,
                          json={'description': {'text': 'Wood-fired'}})
    assert edited.status_code == 400
    assert edited.get_json()['invalid'] == ['description']


def test_founder_assignment(app, client, make_identity, make_county, make_business):
    county = make_county()
    admin = make_identity(Role.ADMIN, counties=[county.id])
    vendor = make_identity(Role.VENDOR)
    business_id = make_business(county.id, owner_id=vendor.id, plan=None, allowance=None)

    not_yet = client.post('/api/vendor/subscription/activate', headers=vendor.headers,
                          json={'plan': 'founders-free'})
    assert not_yet.status_code == 403

    assigned = client.post('/api/admin/founders/assign', headers=admin.headers,
                           json={'business_id': business_id})
    assert assigned.status_code == 201
    assert assigned.get_json()['founder']['is_active'] is True

    twice = client.post('/api/admin/founders/assign', headers=admin.headers,
                        json={'business_id': business_id})
    assert twice.status_code == 409

    free = client.post('/api/vendor/subscription/activate', headers=vendor.headers,
                       json={'plan': 'founders-free'})
    assert free.status_code == 200
    assert free.get_json()['monthly_voucher_allowance'] == 10

    listing = client.get('/api/admin/founders', headers=admin.headers).get_json()
    assert [f['business_id'] for f in listing['founders']] == [business_id]

    removed = client.post('/api/admin/founders/remove', headers=admin.headers,
                          json={'business_id': business_id, 'reason': 'program ended'})
    assert removed.status_code == 200
    assert removed.get_json()['founder']['is_active'] is False

    with app.app_context():
        business = db.session.get(Business, business_id)
        assert business.subscription.status == SubscriptionStatus.CANCELED
        assert not has_active_subscription(business)
        actions = [a.action_type for a in AdminActionLog.query.order_by(AdminActionLog.created_at)]
        assert actions.count('FOUNDER_ASSIGNED') == 1
        assert actions.count('FOUNDER_REMOVED') == 1

    again = client.post('/api/admin/founders/remove', headers=admin.headers,
                        json={'business_id': business_id})
    assert again.status_code == 409

    reassigned = client.post('/api/admin/founders/assign', headers=admin.headers,
                             json={'business_id': business_id})
    assert reassigned.status_code == 200


def test_founder_assignment_rules(client, make_identity, make_county, make_business):
    county = make_county()
    admin = make_identity(Role.ADMIN, counties=[county.id])
    business_id = make_business(county.id)
    foreign = make_business(make_county().id)

    past = client.post('/api/admin/founders/assign', headers=admin.headers,
                       json={'business_id': business_id, 'expires_at': '2020-01-01T00:00:00Z'})
    assert past.status_code == 400

    garbled = client.post('/api/admin/founders/assign', headers=admin.headers,
                          json={'business_id': business_id, 'expires_at': 'soon'})
    assert garbled.status_code == 400

    other_county = client.post('/api/admin/founders/assign', headers=admin.headers,
                               json={'business_id': foreign})
    assert other_county.status_code == 403

    never_assigned = client.post('/api/admin/founders/remove', headers=admin.headers,
                                 json={'business_id': business_id})
    assert never_assigned.status_code == 404

    vendor = make_identity(Role.VENDOR)
    assert client.post('/api/admin/founders/assign', headers=vendor.headers,
                       json={'business_id': business_id}).status_code == 403
