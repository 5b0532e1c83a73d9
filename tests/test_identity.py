"""Registration, login, token verification and vendor binding."""

import jwt
from datetime import timedelta

from countylocal import db
from countylocal.models import Role, IdentityStatus, VendorOwnership, Business
from countylocal.utils.general import utcnow
from tests.conftest import PASSWORD, auth_headers


def _forged_token(app, **claims):
    payload = {'iat': utcnow(), 'exp': utcnow() + timedelta(hours=1)}
    payload.update(claims)
    return jwt.encode(payload, app.config['JWT_SECRET'], algorithm='HS256')


def test_register_user_returns_token(client):
    """Self-registration creates the identity and signs a token for it."""
    response = client.post('/api/identity/register', json={
        'email': 'Shopper@Example.com', 'password': PASSWORD, 'role': 'user',
    })

    assert response.status_code == 201
    data = response.get_json()
    assert data['identity']['email'] == 'shopper@example.com'
    assert data['identity']['role'] == Role.USER
    assert data['token']

    me = client.get('/api/identity/me', headers=auth_headers(data['token']))
    assert me.status_code == 200
    assert me.get_json()['identity']['email'] == 'shopper@example.com'


def test_register_rejects_admin_roles(client):
    response = client.post('/api/identity/register', json={
        'email': 'sneaky@example.com', 'password': PASSWORD, 'role': 'ADMIN',
    })
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 400


def test_register_validation_and_duplicates(client):
    short = client.post('/api/identity/register', json={
        'email': 'a@example.com', 'password': 'short', 'role': 'USER',
    })
    assert short.status_code == 400

    bad_email = client.post('/api/identity/register', json={
        'email': 'not-an-email', 'password': PASSWORD, 'role': 'USER',
    })
    assert bad_email.status_code == 400

    first = client.post('/api/identity/register', json={
        'email': 'dup@example.com', 'password': PASSWORD, 'role': 'VENDOR',
    })
    second = client.post('/api/identity/register', json={
        'email': 'DUP@example.com', 'password': PASSWORD, 'role': 'USER',
    })
    assert first.status_code == 201
    assert second.status_code == 409


def test_register_requires_json_body(client):
    response = client.post('/api/identity/register', data='not json', content_type='text/plain')
    assert response.status_code == 400


def test_login(client, make_identity):
    user = make_identity(Role.USER)

    ok = client.post('/api/auth/login', json={'email': user.email, 'password': PASSWORD})
    assert ok.status_code == 200
    assert ok.get_json()['identity']['id'] == user.id

    wrong = client.post('/api/auth/login', json={'email': user.email, 'password': 'wrong-password'})
    assert wrong.status_code == 401

    unknown = client.post('/api/auth/login', json={'email': 'nobody@example.com', 'password': PASSWORD})
    assert unknown.status_code == 401


def test_login_suspended_identity(client, make_identity):
    user = make_identity(Role.USER, status=IdentityStatus.SUSPENDED)
    response = client.post('/api/auth/login', json={'email': user.email, 'password': PASSWORD})
    assert response.status_code == 403


def test_me_without_token(client):
    response = client.get('/api/identity/me')
    assert response.status_code == 401
    assert response.get_json()['message'] == 'Missing Authorization header'


def test_me_with_malformed_header(client):
    response = client.get('/api/identity/me', headers={'Authorization': 'Token abc'})
    assert response.status_code == 401


def test_suspended_identity_is_forbidden(client, make_identity):
    user = make_identity(Role.USER, status=IdentityStatus.SUSPENDED)

    assert client.get('/api/identity/me', headers=user.headers).status_code == 403
    assert client.get('/api/user/vouchers', headers=user.headers).status_code == 403


def test_token_for_unknown_identity(app, client):
    token = _forged_token(app, sub='missing-id', email='ghost@example.com', role=Role.USER)
    response = client.get('/api/user/vouchers', headers=auth_headers(token))
    assert response.status_code == 401
    assert response.get_json()['message'] == 'Identity not found'


def test_token_claim_validation(app, client, make_identity):
    user = make_identity(Role.USER)

    bad_role = _forged_token(app, sub=user.id, email=user.email, role='GOD')
    assert client.get('/api/identity/me', headers=auth_headers(bad_role)).status_code == 401

    no_email = _forged_token(app, sub=user.id, role=Role.USER)
    assert client.get('/api/identity/me', headers=auth_headers(no_email)).status_code == 401

    expired = _forged_token(app, sub=user.id, email=user.email, role=Role.USER,
                            exp=utcnow() - timedelta(minutes=1))
    response = client.get('/api/user/vouchers', headers=auth_headers(expired))
    assert response.status_code == 401
    assert response.get_json()['message'] == 'Token has expired'

    wrong_key = jwt.encode({'sub': user.id, 'email': user.email, 'role': Role.USER},
                           'another-secret', algorithm='HS256')
    assert client.get('/api/identity/me', headers=auth_headers(wrong_key)).status_code == 401


def test_role_comes_from_database_not_token(app, client, make_identity):
    """A USER presenting a token that claims ADMIN is still a USER."""
    user = make_identity(Role.USER)
    token = _forged_token(app, sub=user.id, email=user.email, role=Role.ADMIN)

    response = client.get('/api/admin/identities', headers=auth_headers(token))
    assert response.status_code == 403


def test_bind_vendor(app, client, make_identity, make_county, make_business):
    admin = make_identity(Role.ADMIN)
    vendor = make_identity(Role.VENDOR)
    county = make_county()
    business_id = make_business(county.id)

    response = client.post('/api/admin/identities/bind-vendor', headers=admin.headers,
                           json={'user_id': vendor.id, 'business_id': business_id})
    assert response.status_code == 201
    assert response.get_json()['bound_by'] == admin.id

    with app.app_context():
        assert VendorOwnership.query.filter_by(user_id=vendor.id).count() == 1
        assert db.session.get(Business, business_id).owner_user_id == vendor.id

    me = client.get('/api/identity/me', headers=vendor.headers)
    assert me.get_json()['identity']['business_id'] == business_id


def test_bind_vendor_is_permanent_and_exclusive(client, make_identity, make_county, make_business):
    admin = make_identity(Role.ADMIN)
    vendor = make_identity(Role.VENDOR)
    other_vendor = make_identity(Role.VENDOR)
    county = make_county()
    first = make_business(county.id)
    second = make_business(county.id)

    client.post('/api/admin/identities/bind-vendor', headers=admin.headers,
                json={'user_id': vendor.id, 'business_id': first})

    rebind = client.post('/api/admin/identities/bind-vendor', headers=admin.headers,
                         json={'user_id': vendor.id, 'business_id': second})
    assert rebind.status_code == 409

    taken = client.post('/api/admin/identities/bind-vendor', headers=admin.headers,
                        json={'user_id': other_vendor.id, 'business_id': first})
    assert taken.status_code == 409


def test_bind_vendor_rejects_non_vendors(client, make_identity, make_county, make_business):
    admin = make_identity(Role.ADMIN)
    user = make_identity(Role.USER)
    business_id = make_business(make_county().id)

    response = client.post('/api/admin/identities/bind-vendor', headers=admin.headers,
                           json={'user_id': user.id, 'business_id': business_id})
    assert response.status_code == 403

    missing = client.post('/api/admin/identities/bind-vendor', headers=admin.headers, json={})
    assert missing.status_code == 400


def test_bind_vendor_requires_admin(client, make_identity, make_county, make_business):
    vendor = make_identity(Role.VENDOR)
    business_id = make_business(make_county().id)

    response = client.post('/api/admin/identities/bind-vendor', headers=vendor.headers,
                           json={'user_id': vendor.id, 'business_id': business_id})
    assert response.status_code == 403


def test_admin_suspends_identity(client, make_identity):
    admin = make_identity(Role.ADMIN)
    user = make_identity(Role.USER)

    response = client.post(f'/api/admin/identities/{user.id}/status', headers=admin.headers,
                           json={'status': IdentityStatus.SUSPENDED})
    assert response.status_code == 200
    assert client.get('/api/identity/me', headers=user.headers).status_code == 403

    own = client.post(f'/api/admin/identities/{admin.id}/status', headers=admin.headers,
                      json={'status': IdentityStatus.SUSPENDED})
    assert own.status_code == 400


def test_admin_cannot_suspend_super_admin(client, make_identity):
    admin = make_identity(Role.ADMIN)
    owner = make_identity(Role.SUPER_ADMIN)

    response = client.post(f'/api/admin/identities/{owner.id}/status', headers=admin.headers,
                           json={'status': IdentityStatus.SUSPENDED})
    assert response.status_code == 403


def test_list_identities_filters_by_role(client, make_identity):
    admin = make_identity(Role.ADMIN)
    make_identity(Role.VENDOR)
    make_identity(Role.USER)

    response = client.get('/api/admin/identities?role=VENDOR', headers=admin.headers)
    assert response.status_code == 200
    assert {i['role'] for i in response.get_json()['identities']} == {Role.VENDOR}

    assert client.get('/api/admin/identities?role=NOPE', headers=admin.headers).status_code == 400


def test_credentials_must_be_strings(client):
    register = client.post('/api/identity/register', json={
        'email': 'numbers@example.com', 'password': 123456789, 'role': 'USER',
    })
    assert register.status_code == 400
    assert register.get_json()['invalid'] == ['password']

    login = client.post('/api/auth/login', json={'email': ['a@example.com'], 'password': PASSWORD})
    assert login.status_code == 400
    assert login.get_json()['invalid'] == ['email']


def test_vendor_claims_unowned_business(app, client, make_identity, make_county, make_business):
    county = make_county()
    business_id = make_business(county.id, plan=None)
    vendor = make_identity(Role.VENDOR)

    claimed = client.post('/api/vendor/business/claim', headers=vendor.headers,
                          json={'business_id': business_id})
    assert claimed.status_code == 201
    assert claimed.get_json()['ownership']['user_id'] == vendor.id

    with app.app_context():
        assert db.session.get(Business, business_id).owner_user_id == vendor.id
        assert VendorOwnership.query.filter_by(business_id=business_id).count() == 1

    rival = make_identity(Role.VENDOR)
    taken = client.post('/api/vendor/business/claim', headers=rival.headers,
                        json={'business_id': business_id})
    assert taken.status_code == 409

    second = client.post('/api/vendor/business/claim', headers=vendor.headers,
                         json={'business_id': make_business(county.id, plan=None)})
    assert second.status_code == 409
    assert second.get_json()['error'] == 'Vendor is already bound to a business'


def test_claim_business_errors(client, make_identity, make_county, make_business):
    business_id = make_business(make_county().id, plan=None)
    user = make_identity(Role.USER)
    vendor = make_identity(Role.VENDOR)

    assert client.post('/api/vendor/business/claim', headers=user.headers,
                       json={'business_id': business_id}).status_code == 403
    assert client.post('/api/vendor/business/claim', headers=vendor.headers, json={}).status_code == 400
    assert client.post('/api/vendor/business/claim', headers=vendor.headers,
                       json={'business_id': 'missing'}).status_code == 404
    assert client.post('/api/vendor/business/claim', json={'business_id': business_id}).status_code == 401
