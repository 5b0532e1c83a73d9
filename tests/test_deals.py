"""Deal validation, authoring and the admin-driven lifecycle."""

from datetime import datetime

from countylocal.models import Role, DealStatus, BusinessStatus
from countylocal.services.deals import validate_deal_input

DEAL_BODY = {
    'title': 'Two-for-one tacos',
    'description': 'Every Tuesday',
    'deal_category': 'food',
    'original_value': 20,
    'deal_price': 10,
    'redemption_window_start': '2026-01-01T00:00:00Z',
    'redemption_window_end': '2026-12-31T23:59:59Z',
    'voucher_quantity_limit': 50,
}


def test_validate_deal_input_accepts_complete_deal():
    cleaned, errors = validate_deal_input(DEAL_BODY)
    assert errors == []
    assert cleaned['redemption_window_start'] == datetime(2026, 1, 1)
    assert cleaned['redemption_window_end'].tzinfo is None


def test_validate_deal_input_errors():
    _, errors = validate_deal_input({**DEAL_BODY, 'deal_price': 20})
    assert "deal_price must be less than original_value" in errors

    _, errors = validate_deal_input({**DEAL_BODY, 'original_value': -5})
    assert "original_value must be greater than 0" in errors

    _, errors = validate_deal_input({**DEAL_BODY, 'redemption_window_end': '2025-06-01T00:00:00'})
    assert "redemption_window_end must be after redemption_window_start" in errors

    _, errors = validate_deal_input({**DEAL_BODY, 'redemption_window_start': 'next tuesday'})
    assert "redemption_window_start must be an ISO 8601 datetime" in errors

    _, errors = validate_deal_input({**DEAL_BODY, 'voucher_quantity_limit': 0})
    assert "voucher_quantity_limit must be a positive integer" in errors

    _, errors = validate_deal_input({**DEAL_BODY, 'voucher_quantity_limit': True})
    assert "voucher_quantity_limit must be a positive integer" in errors

    _, errors = validate_deal_input({**DEAL_BODY, 'title': '   '})
    assert "title cannot be empty" in errors

    _, errors = validate_deal_input({**DEAL_BODY, 'title': 5, 'deal_category': ['food']})
    assert "title must be a string" in errors
    assert "deal_category must be a string" in errors
    assert "title cannot be empty" not in errors


def test_validate_deal_input_converts_offsets_to_utc():
    cleaned, errors = validate_deal_input({'redemption_window_start': '2026-03-01T10:00:00-05:00'})
    assert errors == []
    assert cleaned['redemption_window_start'] == datetime(2026, 3, 1, 15, 0)


def test_vendor_creates_inactive_deal(client, vendor_setup, make_county, make_business):
    other_business = make_business(make_county().id)

    response = client.post('/api/deals', headers=vendor_setup.vendor.headers,
                           json={**DEAL_BODY, 'business_id': other_business})
    assert response.status_code == 201
    deal = response.get_json()['deal']
    assert deal['deal_status'] == DealStatus.INACTIVE
    # Vendors always create for their own business
    assert deal['business_id'] == vendor_setup.business_id
    assert deal['county_id'] == vendor_setup.county.id


def test_create_deal_validation(client, vendor_setup, make_identity):
    headers = vendor_setup.vendor.headers

    untitled = client.post('/api/deals', headers=headers, json={'description': 'x'})
    assert untitled.status_code == 400
    assert untitled.get_json()['details'] == ['title is required']

    priced_wrong = client.post('/api/deals', headers=headers, json={**DEAL_BODY, 'deal_price': 30})
    assert priced_wrong.status_code == 400

    user = make_identity(Role.USER)
    assert client.post('/api/deals', headers=user.headers, json=DEAL_BODY).status_code == 403


def test_admin_creates_deal_for_business(client, make_identity, vendor_setup):
    admin = make_identity(Role.ADMIN)

    missing = client.post('/api/deals', headers=admin.headers, json=DEAL_BODY)
    assert missing.status_code == 400

    response = client.post('/api/deals', headers=admin.headers,
                           json={**DEAL_BODY, 'business_id': vendor_setup.business_id})
    assert response.status_code == 201


def test_edit_only_while_inactive(client, vendor_setup, make_deal):
    headers = vendor_setup.vendor.headers
    inactive = make_deal(vendor_setup.business_id, status=DealStatus.INACTIVE)

    edited = client.patch(f'/api/deals/{inactive}', headers=headers, json={'title': 'New title'})
    assert edited.status_code == 200
    assert edited.get_json()['deal']['title'] == 'New title'

    # Cross-field rules see the stored original_value of 50
    too_expensive = client.patch(f'/api/deals/{inactive}', headers=headers, json={'deal_price': 75})
    assert too_expensive.status_code == 400

    live = client.patch(f'/api/deals/{vendor_setup.deal_id}', headers=headers, json={'title': 'Nope'})
    assert live.status_code == 409


def test_other_vendor_cannot_see_deal(client, vendor_setup, make_identity, make_business):
    intruder = make_identity(Role.VENDOR)
    make_business(vendor_setup.county.id, owner_id=intruder.id)

    response = client.patch(f'/api/deals/{vendor_setup.deal_id}', headers=intruder.headers,
                            json={'title': 'Mine now'})
    assert response.status_code == 404


def test_deals_cannot_be_deleted(client, vendor_setup):
    response = client.delete(f'/api/deals/{vendor_setup.deal_id}', headers=vendor_setup.vendor.headers)
    assert response.status_code == 405


def test_activation(client, make_identity, vendor_setup):
    admin = make_identity(Role.ADMIN, counties=[vendor_setup.county.id])
    created = client.post('/api/deals', headers=vendor_setup.vendor.headers,
                          json={'title': 'Draft only', 'original_value': 20, 'deal_price': 10})
    deal_id = created.get_json()['deal']['id']
    url = f'/api/admin/deals/{deal_id}/activate'

    incomplete = client.post(url, headers=admin.headers)
    assert incomplete.status_code == 400
    missing = incomplete.get_json()['details']['missing']
    assert 'description' in missing
    assert 'voucher_quantity_limit' in missing

    client.patch(f'/api/deals/{deal_id}', headers=vendor_setup.vendor.headers, json={
        'description': 'Complete now',
        'redemption_window_start': DEAL_BODY['redemption_window_start'],
        'redemption_window_end': DEAL_BODY['redemption_window_end'],
        'voucher_quantity_limit': 10,
    })

    activated = client.post(url, headers=admin.headers)
    assert activated.status_code == 200
    deal = activated.get_json()['deal']
    assert deal['deal_status'] == DealStatus.ACTIVE
    assert deal['last_active_at'] is not None

    assert client.post(url, headers=admin.headers).status_code == 409


def test_activation_requires_active_business(client, make_identity, make_county, make_business, make_deal):
    county = make_county()
    admin = make_identity(Role.ADMIN, counties=[county.id])
    business_id = make_business(county.id, status=BusinessStatus.SUSPENDED)
    deal_id = make_deal(business_id, status=DealStatus.INACTIVE)

    response = client.post(f'/api/admin/deals/{deal_id}/activate', headers=admin.headers)
    assert response.status_code == 403


def test_activation_is_county_scoped(client, make_identity, make_county, vendor_setup):
    elsewhere = make_county()
    admin = make_identity(Role.ADMIN, counties=[elsewhere.id])

    response = client.post(f'/api/admin/deals/{vendor_setup.deal_id}/expire', headers=admin.headers)
    assert response.status_code == 403


def test_expire(client, make_identity, vendor_setup, make_deal):
    admin = make_identity(Role.ADMIN, counties=[vendor_setup.county.id])
    url = f'/api/admin/deals/{vendor_setup.deal_id}/expire'

    expired = client.post(url, headers=admin.headers)
    assert expired.status_code == 200
    assert expired.get_json()['deal']['deal_status'] == DealStatus.EXPIRED
    assert client.post(url, headers=admin.headers).status_code == 409

    inactive = make_deal(vendor_setup.business_id, status=DealStatus.INACTIVE)
    response = client.post(f'/api/admin/deals/{inactive}/expire', headers=admin.headers)
    assert response.status_code == 409


def test_listings(client, make_identity, vendor_setup, make_deal):
    make_deal(vendor_setup.business_id, status=DealStatus.INACTIVE)
    admin = make_identity(Role.ADMIN, counties=[vendor_setup.county.id])

    vendor_deals = client.get('/api/vendor/deals', headers=vendor_setup.vendor.headers).get_json()
    assert len(vendor_deals['deals']) == 2

    active_only = client.get('/api/vendor/deals?status=ACTIVE', headers=vendor_setup.vendor.headers)
    assert [d['id'] for d in active_only.get_json()['deals']] == [vendor_setup.deal_id]

    county_deals = client.get('/api/admin/deals', headers=admin.headers).get_json()
    assert len(county_deals['deals']) == 2

    public = client.get('/api/public/deals', headers={'X-County-Id': vendor_setup.county.id}).get_json()
    assert [d['id'] for d in public['deals']] == [vendor_setup.deal_id]
    assert public['deals'][0]['business_name']


def test_deal_text_fields_must_be_strings(client, vendor_setup, make_deal):
    headers = vendor_setup.vendor.headers

    created = client.post('/api/deals', headers=headers, json={**DEAL_BODY, 'title': 99})
    assert created.status_code == 400
    assert created.get_json()['details'] == ['title must be a string']

    inactive = make_deal(vendor_setup.business_id, status=DealStatus.INACTIVE)
    edited = client.patch(f'/api/deals/{inactive}', headers=headers, json={'description': 3.5})
    assert edited.status_code == 400
