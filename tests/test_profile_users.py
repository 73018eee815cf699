"""
Tests for the profile endpoints and admin user management.
"""

import io
import os
from datetime import datetime, timedelta

from oneflow.models import User
from oneflow.utils.auth_utils import verify_password
from oneflow.utils.mailer import mail


class TestProfile:

    def test_get_profile(self, client, member, auth_headers):
        resp = client.get('/api/profile', headers=auth_headers(member))
        assert resp.status_code == 200
        assert resp.get_json()['email'] == member.email

    def test_update_names(self, client, member, auth_headers):
        resp = client.put('/api/profile', headers=auth_headers(member),
                          json={'first_name': 'Tessa', 'last_name': 'Worker'})
        assert resp.status_code == 200
        assert resp.get_json()['user']['first_name'] == 'Tessa'

    def test_names_are_required(self, client, member, auth_headers):
        resp = client.put('/api/profile', headers=auth_headers(member), json={'first_name': 'Only'})
        assert resp.status_code == 400
        assert resp.get_json()['errors'][0]['field'] == 'last_name'

    def test_upload_profile_picture(self, app, client, member, auth_headers):
        data = {
            'first_name': 'Tess',
            'last_name': 'Member',
            'profilePicture': (io.BytesIO(b'\x89PNG fake image'), 'me.png'),
        }
        resp = client.put('/api/profile', headers=auth_headers(member), data=data,
                          content_type='multipart/form-data')
        assert resp.status_code == 200
        path = resp.get_json()['user']['profile_picture']
        assert path.startswith('/uploads/profiles/')
        stored = os.path.join(app.config['UPLOAD_FOLDER'], path[len('/uploads/'):])
        assert os.path.exists(stored)

        served = client.get(path)
        assert served.status_code == 200
        assert served.data == b'\x89PNG fake image'

    def test_rejects_non_image_upload(self, client, member, auth_headers):
        data = {
            'first_name': 'Tess',
            'last_name': 'Member',
            'profilePicture': (io.BytesIO(b'MZ'), 'tool.exe'),
        }
        resp = client.put('/api/profile', headers=auth_headers(member), data=data,
                          content_type='multipart/form-data')
        assert resp.status_code == 400


class TestChangePassword:

    def test_full_flow(self, client, member, auth_headers, db_session):
        headers = auth_headers(member)
        with mail.record_messages() as outbox:
            resp = client.post('/api/profile/change-password-request', headers=headers)
        assert resp.status_code == 200
        assert len(outbox) == 1
        assert outbox[0].subject == 'OneFlow - Password Change OTP'

        otp = db_session.get(User, member.id).otp
        resp = client.post('/api/profile/change-password', headers=headers,
                           json={'otp': otp, 'newPassword': 'brand-new-pass'})
        assert resp.status_code == 200

        user = db_session.get(User, member.id)
        assert verify_password('brand-new-pass', user.password)
        assert user.otp is None

    def test_invalid_otp(self, client, member, auth_headers, db_session):
        member.set_otp('123456')
        db_session.commit()
        resp = client.post('/api/profile/change-password', headers=auth_headers(member),
                           json={'otp': '654321', 'newPassword': 'brand-new-pass'})
        assert resp.status_code == 400
        assert resp.get_json()['message'] == 'Invalid OTP'

    def test_expired_otp(self, client, member, auth_headers, db_session):
        member.otp = '123456'
        member.otp_expires = datetime.utcnow() - timedelta(minutes=1)
        db_session.commit()
        resp = client.post('/api/profile/change-password', headers=auth_headers(member),
                           json={'otp': '123456', 'newPassword': 'brand-new-pass'})
        assert resp.status_code == 400
        assert resp.get_json()['message'] == 'OTP has expired'

    def test_short_password(self, client, member, auth_headers):
        resp = client.post('/api/profile/change-password', headers=auth_headers(member),
                           json={'otp': '123456', 'newPassword': '123'})
        assert resp.status_code == 400
        assert resp.get_json()['errors'][0]['field'] == 'newPassword'


class TestUserManagement:

    def test_dropdowns(self, client, admin, manager, member, finance, make_user, auth_headers):
        make_user('left@example.com', role='project_manager', status='inactive')
        headers = auth_headers(member)

        managers = client.get('/api/users/managers', headers=headers).get_json()
        assert {m['email'] for m in managers} == {admin.email, manager.email}

        members = client.get('/api/users/team-members', headers=headers).get_json()
        assert [m['email'] for m in members] == [member.email]

    def test_list_and_search(self, client, admin, manager, member, auth_headers):
        headers = auth_headers(admin)
        assert len(client.get('/api/users', headers=headers).get_json()) == 3
        found = client.get('/api/users?search=pat', headers=headers).get_json()
        assert [u['email'] for u in found] == [manager.email]

    def test_create_user(self, client, admin, auth_headers):
        resp = client.post('/api/users', headers=auth_headers(admin), json={
            'email': 'fresh@example.com',
            'password': 'secret123',
            'firstName': 'Fresh',
            'lastName': 'Face',
            'role': 'finance_manager',
        })
        assert resp.status_code == 201
        user = resp.get_json()['user']
        assert user['role'] == 'finance_manager'
        assert user['is_verified'] is True

    def test_create_requires_role(self, client, admin, auth_headers):
        resp = client.post('/api/users', headers=auth_headers(admin), json={
            'email': 'fresh@example.com', 'password': 'secret123', 'firstName': 'F', 'lastName': 'F',
        })
        assert resp.status_code == 400

    def test_update_user(self, client, admin, member, manager, auth_headers):
        headers = auth_headers(admin)
        resp = client.put(f'/api/users/{member.id}', headers=headers, json={'role': 'project_manager'})
        assert resp.status_code == 200
        assert resp.get_json()['user']['role'] == 'project_manager'

        resp = client.put(f'/api/users/{member.id}', headers=headers, json={'email': manager.email})
        assert resp.status_code == 400
        assert resp.get_json()['message'] == 'Email already exists'

        resp = client.put(f'/api/users/{member.id}', headers=headers, json={})
        assert resp.get_json()['message'] == 'No fields to update'

    def test_soft_delete(self, client, admin, member, auth_headers, db_session):
        resp = client.delete(f'/api/users/{member.id}', headers=auth_headers(admin))
        assert resp.status_code == 200
        assert db_session.get(User, member.id).status == 'inactive'

    def test_cannot_delete_self(self, client, admin, auth_headers):
        resp = client.delete(f'/api/users/{admin.id}', headers=auth_headers(admin))
        assert resp.status_code == 400
        assert resp.get_json()['message'] == 'Cannot delete your own account'

    def test_cannot_change_own_role_or_status(self, client, admin, auth_headers, db_session):
        headers = auth_headers(admin)
        for change in ({'role': 'team_member'}, {'status': 'inactive'}):
            resp = client.put(f'/api/users/{admin.id}', headers=headers, json=change)
            assert resp.status_code == 400
            assert resp.get_json()['message'] == 'Cannot change your own role or status'
        refreshed = db_session.get(User, admin.id)
        assert (refreshed.role, refreshed.status) == ('admin', 'active')

        resp = client.put(f'/api/users/{admin.id}', headers=headers, json={'firstName': 'Ada', 'role': 'admin'})
        assert resp.status_code == 200

    def test_unknown_user(self, client, admin, auth_headers):
        resp = client.get('/api/users/999', headers=auth_headers(admin))
        assert resp.status_code == 404
