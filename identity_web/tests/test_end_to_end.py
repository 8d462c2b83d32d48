"""Exercise the session routes through the full application stack."""

from unittest import TestCase
import re

from ..services import mail
from .util import create_test_app, generate_rsa_key, public_pem, \
    signed_headers, parse_set_cookies

JSON = {'Accept': 'application/json'}
HTML = {'Accept': 'text/html'}


class EndToEndTestCase(TestCase):
    config = {}

    def setUp(self):
        self.app = create_test_app(**self.config)
        self.client = self.app.test_client()
        # Requests share this context, so suppressed mail lands in one outbox.
        self.ctx = self.app.app_context()
        self.ctx.push()

    def tearDown(self):
        self.ctx.pop()

    def _join(self, slug, email='foo@example.com', password='foopassword'):
        return self.client.post('/join', headers=JSON, json={
            'sysSlug': slug,
            'label': slug.title(),
            'email': email,
            'sysPassword': password
        })

    def _logout(self):
        return self.client.get('/session/logout')

    def _passcode(self):
        """Get the passcode from the most recent message."""
        body = mail.outbox()[-1].get_content()
        return re.search(r'passcode=(\w+)', body).group(1)


class TestJoinAndLogin(EndToEndTestCase):
    """An identity is created, and logs in and out."""

    def test_join(self):
        response = self._join('foo')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.headers['Location'],
                         'https://example.com/i/foo')
        data = response.get_json()
        self.assertEqual(data['id'], 'https://example.com/i/foo')
        self.assertEqual(data['sysSlug'], 'foo')
        self.assertEqual(data['email'], 'foo@example.com')
        self.assertNotIn('cookies', data)

        cookies = parse_set_cookies(response.headers.getlist('Set-Cookie'))
        self.assertIn('baz_session', cookies)
        self.assertIn('HttpOnly', response.headers['Set-Cookie'])

        # The new identity is logged in.
        response = self.client.get('/session', headers=JSON)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['identity']['id'],
                         'https://example.com/i/foo')

    def test_join_duplicate(self):
        self._join('foo')
        response = self._join('foo', email='other@example.com')
        self.assertEqual(response.status_code, 400)
        data = response.get_json()
        self.assertEqual(data['type'], 'services.DuplicateIdentity')
        self.assertEqual(data['details']['identity'],
                         'https://example.com/i/foo')

    def test_join_invalid(self):
        response = self._join('Not A Slug')
        self.assertEqual(response.status_code, 400)
        data = response.get_json()
        self.assertEqual(data['type'], 'validation.ValidationError')
        self.assertEqual(data['details']['schema'], 'JoinForm')
        self.assertIn('sysSlug', data['details']['errors'])

    def test_join_page(self):
        response = self.client.get('/join', headers=HTML)
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'window.data', response.data)

    def test_logout(self):
        self._join('foo')
        response = self._logout()
        self.assertEqual(response.status_code, 302)
        self.assertTrue(response.headers['Location'].endswith('/'))
        cookies = parse_set_cookies(response.headers.getlist('Set-Cookie'))
        self.assertEqual(cookies['baz_session']['value'], '')

        response = self.client.get('/session', headers=JSON)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['message'], 'Not authenticated.')

    def test_login(self):
        self._join('foo')
        self._logout()
        response = self.client.post('/session/login', headers=JSON, json={
            'sysIdentifier': 'foo', 'password': 'foopassword'
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['identity']['sysSlug'], 'foo')
        self.assertIn('baz_session',
                      parse_set_cookies(response.headers.getlist('Set-Cookie')))
        response = self.client.get('/session', headers=JSON)
        self.assertEqual(response.status_code, 200)

    def test_login_form_encoded(self):
        self._join('foo')
        self._logout()
        response = self.client.post('/session/login', data={
            'sysIdentifier': 'foo@example.com', 'password': 'foopassword'
        })
        self.assertEqual(response.status_code, 200)

    def test_login_bad_password(self):
        self._join('foo')
        self._logout()
        response = self.client.post('/session/login', headers=JSON, json={
            'sysIdentifier': 'foo', 'password': 'barpassword'
        })
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['type'], 'services.InvalidLogin')
        self.assertNotIn('Set-Cookie', response.headers)

    def test_login_choice(self):
        """Identities sharing an email and password must be chosen between."""
        self._join('foo')
        self._join('bar')
        self._logout()
        response = self.client.post('/session/login', headers=JSON, json={
            'sysIdentifier': 'foo@example.com', 'password': 'foopassword'
        })
        self.assertEqual(response.status_code, 200)
        self.assertNotIn('Set-Cookie', response.headers)
        data = response.get_json()
        self.assertEqual(data['email'], 'foo@example.com')
        self.assertEqual(len(data['identities']), 2)

        # Logging in with the id of one of them works.
        response = self.client.post('/session/login', headers=JSON, json={
            'sysIdentifier': 'https://example.com/i/bar',
            'password': 'foopassword'
        })
        self.assertEqual(response.get_json()['identity']['sysSlug'], 'bar')

    def test_login_page(self):
        response = self.client.get('/session/login', headers=HTML)
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'id="login"', response.data)
        self.assertIn(b'/join', response.data)


class TestPasswordReset(EndToEndTestCase):
    """A forgotten password is replaced using a mailed passcode."""

    def setUp(self):
        super(TestPasswordReset, self).setUp()
        self._join('foo')
        self._logout()

    def test_reset(self):
        response = self.client.post('/session/passcode', headers=JSON,
                                    json={'sysIdentifier': 'foo'})
        self.assertEqual(response.status_code, 204)
        self.assertEqual(response.data, b'')
        message = mail.outbox()[-1]
        self.assertEqual(message['To'], 'foo@example.com')
        self.assertEqual(message['Subject'], mail.SUBJECTS['reset'])

        passcode = self._passcode()
        response = self.client.get(f'/session/passcode?passcode={passcode}',
                                   headers=HTML)
        self.assertEqual(response.status_code, 200)
        self.assertIn(passcode.encode('ascii'), response.data)

        response = self.client.post('/session/password/reset', headers=JSON,
                                    json={'sysIdentifier': 'foo@example.com',
                                          'sysPasscode': passcode,
                                          'sysPasswordNew': 'newpassword'})
        self.assertEqual(response.status_code, 204)

        response = self.client.post('/session/login', headers=JSON, json={
            'sysIdentifier': 'foo', 'password': 'newpassword'
        })
        self.assertEqual(response.status_code, 200)

    def test_reset_twice(self):
        """A passcode can only be used once."""
        self.client.post('/session/passcode', headers=JSON,
                         json={'sysIdentifier': 'foo'})
        body = {'sysIdentifier': 'foo', 'sysPasscode': self._passcode(),
                'sysPasswordNew': 'newpassword'}
        self.client.post('/session/password/reset', headers=JSON, json=body)
        response = self.client.post('/session/password/reset', headers=JSON,
                                    json=body)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()['type'],
                         'services.PasswordResetFailed')

    def test_bad_passcode(self):
        response = self.client.post('/session/password/reset', headers=JSON,
                                    json={'sysIdentifier': 'foo',
                                          'sysPasscode': 'WRONG',
                                          'sysPasswordNew': 'newpassword'})
        self.assertEqual(response.status_code, 403)

    def test_unregistered(self):
        response = self.client.post('/session/passcode', headers=JSON,
                                    json={'sysIdentifier': 'no@example.com'})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['message'],
                         'The given email address is not registered.')
        self.assertEqual(mail.outbox(), [])

    def test_verify(self):
        response = self.client.post('/session/passcode?usage=verify',
                                    headers=JSON,
                                    json={'sysIdentifier': 'foo'})
        self.assertEqual(response.status_code, 204)
        message = mail.outbox()[-1]
        self.assertEqual(message['Subject'], mail.SUBJECTS['verify'])
        self.assertIn('verify your email address', message.get_content())

    def test_passcode_page(self):
        response = self.client.get('/session/passcode', headers=HTML)
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'id="passcode"', response.data)

    def test_passcode_page_bad_usage(self):
        response = self.client.get('/session/passcode?usage=other',
                                   headers=JSON)
        self.assertEqual(response.status_code, 400)


class TestSignedRequests(EndToEndTestCase):
    """Clients holding a registered key can sign their requests."""

    def setUp(self):
        super(TestSignedRequests, self).setUp()
        from ..services import identities
        self._join('foo')
        self._logout()
        self._join('bar', email='bar@example.com')
        self._logout()
        self.key = generate_rsa_key()
        self.key_id = identities.add_public_key(
            'https://example.com/i/foo', public_pem(self.key)
        ).id

    def test_signed(self):
        headers = signed_headers(self.key, self.key_id, 'GET', '/session')
        headers.update(JSON)
        response = self.client.get('/session', headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['identity']['sysSlug'], 'foo')

    def test_signed_escaped_query(self):
        path = '/session/passcode?passcode=A%2FB'
        headers = signed_headers(self.key, self.key_id, 'GET', path)
        headers.update(HTML)
        response = self.client.get(path, headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'A/B', response.data)
        # Shown as logged in, so the signature was accepted.
        self.assertIn(b'Log out', response.data)

    def test_mismatch(self):
        """Logged in as bar, but signing as foo."""
        self.client.post('/session/login', headers=JSON, json={
            'sysIdentifier': 'bar', 'password': 'foopassword'
        })
        headers = signed_headers(self.key, self.key_id, 'GET', '/session')
        headers.update(JSON)
        response = self.client.get('/session', headers=headers)
        self.assertEqual(response.status_code, 400)
        data = response.get_json()
        self.assertEqual(data['message'], 'Request authentication error.')
        self.assertEqual(data['cause']['message'],
                         'Request authentication mismatch.')


class TestBrowserErrors(EndToEndTestCase):
    """Browsers are shown the login page instead of an error document."""

    def test_login_page_shown(self):
        response = self.client.get('/session', headers=HTML)
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'id="login"', response.data)
        self.assertIn(b'queuedRequest', response.data)

    def test_no_accept_header(self):
        """A client that states no preference is treated as a browser."""
        response = self.client.get('/session')
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'id="login"', response.data)

    def test_xhr_gets_json(self):
        headers = dict(HTML)
        headers['X-Requested-With'] = 'XMLHttpRequest'
        response = self.client.get('/session', headers=headers)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['type'],
                         'website.PermissionDenied')

    def test_not_found(self):
        response = self.client.get('/nope', headers=JSON)
        self.assertEqual(response.status_code, 404)

    def test_security_headers(self):
        response = self.client.get('/session/login', headers=HTML)
        self.assertEqual(response.headers['X-Frame-Options'], 'DENY')
        self.assertEqual(response.headers['Content-Security-Policy'],
                         "frame-ancestors 'none'")


class TestJoinDisabled(EndToEndTestCase):
    config = {'ENABLE_CREATE_IDENTITY': False}

    def test_join_not_found(self):
        self.assertEqual(self._join('foo').status_code, 404)
        self.assertEqual(self.client.get('/join', headers=HTML).status_code,
                         404)

    def test_no_join_link(self):
        response = self.client.get('/session/login', headers=HTML)
        self.assertNotIn(b'/join', response.data)
