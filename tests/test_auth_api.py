from clinic_portal.models.user_models import MAX_FAILED_LOGINS
from conftest import STAFF_EMAIL, STAFF_PASSWORD, make_user, bearer


def login(client, **credentials):
    return client.post('/api/auth/login', json=credentials)


def test_login_with_email(client, staff_user):
    response = login(client, email=STAFF_EMAIL, password=STAFF_PASSWORD)

    assert response.status_code == 200
    data = response.get_json()
    assert data['access_token'] and data['refresh_token']
    assert data['user'] == {'id': staff_user.id, 'roles': ['staff']}


def test_login_email_is_case_insensitive(client, staff_user):
    assert login(client, email=STAFF_EMAIL.upper(), password=STAFF_PASSWORD).status_code == 200


def test_login_with_phone(client, app):
    patient_user = make_user(phone='+61412345678', password='patient-pass', roles=('patient',))

    response = login(client, phone='+61412345678', password='patient-pass')

    assert response.status_code == 200
    assert response.get_json()['user']['id'] == patient_user.id


def test_login_rejects_bad_credentials(client, staff_user):
    assert login(client, email=STAFF_EMAIL, password='wrong-password').status_code == 401
    assert login(client, email='nobody@clinic.test', password=STAFF_PASSWORD).status_code == 401
    assert login(client, email=STAFF_EMAIL).status_code == 400


def test_account_locks_after_repeated_failures(client, staff_user):
    for _ in range(MAX_FAILED_LOGINS):
        login(client, email=STAFF_EMAIL, password='wrong-password')

    assert login(client, email=STAFF_EMAIL, password=STAFF_PASSWORD).status_code == 401


def test_current_user(client, staff_user, staff_headers):
    response = client.get('/api/users/me', headers=staff_headers)

    assert response.status_code == 200
    data = response.get_json()
    assert data['email'] == STAFF_EMAIL
    assert data['roles'] == ['staff']
    assert 'password_hash' not in data


def test_missing_token(client):
    response = client.get('/api/users/me')
    assert response.status_code == 401
    assert response.get_json()['error'] == 'Unauthorized'


def test_logout_revokes_token(client, staff_user):
    token = login(client, email=STAFF_EMAIL, password=STAFF_PASSWORD).get_json()['access_token']
    headers = {'Authorization': f'Bearer {token}'}

    assert client.post('/api/auth/logout', headers=headers).status_code == 200

    response = client.get('/api/users/me', headers=headers)
    assert response.status_code == 401
    assert response.get_json()['error'] == 'Token has been revoked'


def test_refresh_issues_new_access_token(client, staff_user):
    refresh = login(client, email=STAFF_EMAIL, password=STAFF_PASSWORD).get_json()['refresh_token']

    response = client.post('/api/auth/refresh', headers={'Authorization': f'Bearer {refresh}'})

    assert response.status_code == 200
    access = response.get_json()['access_token']
    assert client.get('/api/users/me', headers={'Authorization': f'Bearer {access}'}).status_code == 200


def test_change_password(client, staff_user, staff_headers):
    response = client.post('/api/auth/change-password', headers=staff_headers, json={
        'current_password': STAFF_PASSWORD, 'new_password': 'a-new-passphrase',
    })
    assert response.status_code == 200

    assert login(client, email=STAFF_EMAIL, password='a-new-passphrase').status_code == 200


def test_change_password_enforces_length(client, staff_user, staff_headers):
    response = client.post('/api/auth/change-password', headers=staff_headers, json={
        'current_password': STAFF_PASSWORD, 'new_password': 'short',
    })
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Password must be at least 8 characters'


def test_admin_creates_staff_user(client, app):
    admin = make_user(email='admin@clinic.test', roles=('admin',))

    response = client.post('/api/admin/users', headers=bearer(admin), json={
        'email': 'reception@clinic.test', 'password': 'reception-pass', 'full_name': 'Front Desk',
    })

    assert response.status_code == 201
    assert response.get_json()['user']['roles'] == ['staff']
    assert login(client, email='reception@clinic.test', password='reception-pass').status_code == 200

    duplicate = client.post('/api/admin/users', headers=bearer(admin), json={
        'email': 'reception@clinic.test', 'password': 'reception-pass',
    })
    assert duplicate.status_code == 409

    listed = client.get('/api/admin/users', headers=bearer(admin)).get_json()['users']
    assert {u['email'] for u in listed} == {'admin@clinic.test', 'reception@clinic.test'}


def test_staff_cannot_create_staff_user(client, staff_headers):
    response = client.post('/api/admin/users', headers=staff_headers, json={
        'email': 'someone@clinic.test', 'password': 'someone-pass',
    })
    assert response.status_code == 403
