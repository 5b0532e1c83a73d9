"""Unauthenticated discovery routes and the health check."""

from countylocal import db
from countylocal.models import Business, BusinessStatus, DealStatus


def test_health(client):
    response = client.get('/api/health')
    assert response.status_code == 200
    assert response.get_json() == {'status': 'healthy', 'database': 'connected'}


def test_public_counties_lists_active_only(client, make_county):
    active = make_county()
    make_county(is_active=False)

    data = client.get('/api/public/counties').get_json()
    assert [c['id'] for c in data['counties']] == [active.id]


def test_county_businesses(client, make_county, make_business):
    county = make_county()
    make_business(county.id, name='Lakeside Diner')
    make_business(county.id, name='Closed Shop', status=BusinessStatus.SUSPENDED)

    response = client.get(f'/{county.slug}/businesses')
    assert response.status_code == 200
    businesses = response.get_json()['businesses']
    assert [b['name'] for b in businesses] == ['Lakeside Diner']
    assert 'owner_user_id' not in businesses[0]
    assert 'monthly_voucher_allowance' not in businesses[0]


def test_county_business_detail(client, make_county, make_business, make_deal):
    county = make_county()
    business_id = make_business(county.id, name='Lakeside Diner')
    live = make_deal(business_id)
    make_deal(business_id, status=DealStatus.INACTIVE)

    data = client.get(f'/{county.slug}/businesses/lakeside-diner').get_json()
    assert data['business']['id'] == business_id
    assert [d['id'] for d in data['deals']] == [live]

    assert client.get(f'/{county.slug}/businesses/nowhere').status_code == 404


def test_county_pages_require_known_county(client):
    assert client.get('/unknown-county/businesses').status_code == 404


def test_county_deals_page(client, vendor_setup):
    data = client.get(f'/{vendor_setup.county.slug}/deals').get_json()
    assert [d['id'] for d in data['deals']] == [vendor_setup.deal_id]


def test_public_deal(client, vendor_setup, make_deal):
    response = client.get(f'/api/public/deals/{vendor_setup.deal_id}')
    assert response.status_code == 200
    data = response.get_json()
    assert data['business']['id'] == vendor_setup.business_id
    assert 'owner_user_id' not in data['business']

    hidden = make_deal(vendor_setup.business_id, status=DealStatus.INACTIVE)
    assert client.get(f'/api/public/deals/{hidden}').status_code == 404
    assert client.get('/api/public/deals/missing').status_code == 404


def test_public_deal_hidden_when_business_suspended(app, client, vendor_setup):
    with app.app_context():
        business = db.session.get(Business, vendor_setup.business_id)
        business.business_status = BusinessStatus.SUSPENDED
        db.session.commit()

    assert client.get(f'/api/public/deals/{vendor_setup.deal_id}').status_code == 404
