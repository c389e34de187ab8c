"""API tests for device verification endpoints."""
import base64
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework import status as http_status

from verification.models import Device, KeyVerification
from verification.qr_payload import (
    SCHEME_PREFIX, DeviceVerificationPayload, decode, encode, serialize,
)
from verification.sas import DigestUnavailable, derive_short_auth_string

User = get_user_model()

ARMORED = '-----BEGIN PGP PUBLIC KEY BLOCK-----\nabc\n-----END PGP PUBLIC KEY BLOCK-----'


def _results(resp):
    """Get list from paginated or non-paginated response."""
    if isinstance(resp.data, dict) and 'results' in resp.data:
        return resp.data['results']
    return resp.data if isinstance(resp.data, list) else []


class VerificationAPITestBase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.alice = User.objects.create_user(
            username='alice', email='alice@test.com', password='TestPass123!'
        )
        self.bob = User.objects.create_user(
            username='bob', email='bob@test.com', password='TestPass123!'
        )
        self.alice_device = Device.objects.create(
            user=self.alice, label='Alice laptop', fingerprint='AAAA1111',
            public_key_armored=ARMORED,
        )
        self.bob_device = Device.objects.create(
            user=self.bob, label='Bob phone', fingerprint='BBBB2222',
            public_key_armored=ARMORED,
        )
        self.client.force_authenticate(user=self.alice)


class DeviceTests(VerificationAPITestBase):

    def test_register_device(self):
        resp = self.client.post('/api/verification/devices/', {
            'label': 'Alice desktop',
            'fingerprint': 'CCCC3333',
            'public_key_armored': ARMORED,
        })
        self.assertEqual(resp.status_code, http_status.HTTP_201_CREATED)
        self.assertTrue(Device.objects.filter(user=self.alice, fingerprint='CCCC3333').exists())

    def test_register_duplicate_fingerprint_rejected(self):
        resp = self.client.post('/api/verification/devices/', {
            'label': 'Copy',
            'fingerprint': 'BBBB2222',
            'public_key_armored': ARMORED,
        })
        self.assertEqual(resp.status_code, http_status.HTTP_400_BAD_REQUEST)

    def test_list_only_own_devices(self):
        resp = self.client.get('/api/verification/devices/')
        self.assertEqual(resp.status_code, http_status.HTTP_200_OK)
        fingerprints = [d['fingerprint'] for d in _results(resp)]
        self.assertEqual(fingerprints, ['AAAA1111'])

    def test_device_qr(self):
        resp = self.client.get(f'/api/verification/devices/{self.alice_device.id}/qr/')
        self.assertEqual(resp.status_code, http_status.HTTP_200_OK)
        self.assertTrue(resp.data['qr_data'].startswith(SCHEME_PREFIX))
        payload = decode(resp.data['qr_data'])
        self.assertEqual(payload.fingerprint, 'AAAA1111')
        self.assertEqual(payload.user_id, str(self.alice.id))
        self.assertEqual(payload.device_label, 'Alice laptop')
        self.assertEqual(payload.public_key_armored, ARMORED)

    def test_device_qr_of_other_user_not_found(self):
        resp = self.client.get(f'/api/verification/devices/{self.bob_device.id}/qr/')
        self.assertEqual(resp.status_code, http_status.HTTP_404_NOT_FOUND)

    def test_unauthenticated_denied(self):
        client = APIClient()
        resp = client.get('/api/verification/devices/')
        self.assertEqual(resp.status_code, http_status.HTTP_401_UNAUTHORIZED)


class ScanTests(VerificationAPITestBase):

    def _bob_qr(self):
        return encode('BBBB2222', self.bob.id, 'Bob phone', ARMORED)

    def test_scan_success(self):
        resp = self.client.post('/api/verification/scan/', {
            'qr_data': self._bob_qr(),
            'device_id': self.alice_device.id,
        })
        self.assertEqual(resp.status_code, http_status.HTTP_200_OK)
        self.assertTrue(resp.data['found'])
        self.assertEqual(resp.data['sas'], '29CD42')
        self.assertEqual(resp.data['payload']['fpr'], 'BBBB2222')
        self.assertEqual(resp.data['payload']['deviceLabel'], 'Bob phone')
        self.assertFalse(resp.data['stale'])

    def test_both_sides_see_same_sas(self):
        alice_resp = self.client.post('/api/verification/scan/', {
            'qr_data': self._bob_qr(),
            'device_id': self.alice_device.id,
        })
        bob_client = APIClient()
        bob_client.force_authenticate(user=self.bob)
        bob_resp = bob_client.post('/api/verification/scan/', {
            'qr_data': encode('AAAA1111', self.alice.id, 'Alice laptop', ARMORED),
            'device_id': self.bob_device.id,
        })
        self.assertEqual(alice_resp.data['sas'], bob_resp.data['sas'])

    def test_scan_foreign_code(self):
        resp = self.client.post('/api/verification/scan/', {
            'qr_data': 'https://example.com/menu',
            'device_id': self.alice_device.id,
        })
        self.assertEqual(resp.status_code, http_status.HTTP_200_OK)
        self.assertFalse(resp.data['found'])
        self.assertEqual(resp.data['code'], 'not_a_payload')
        self.assertNotIn('error', resp.data)
        self.assertTrue(resp.data['retryable'])

    def test_scan_deeply_nested_body(self):
        nested = base64.b64encode(b'[' * 1500).decode()
        resp = self.client.post('/api/verification/scan/', {
            'qr_data': SCHEME_PREFIX + nested,
            'device_id': self.alice_device.id,
        })
        self.assertEqual(resp.status_code, http_status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['code'], 'malformed_payload')

    def test_scan_malformed(self):
        resp = self.client.post('/api/verification/scan/', {
            'qr_data': SCHEME_PREFIX + '!!garbage!!',
            'device_id': self.alice_device.id,
        })
        self.assertEqual(resp.status_code, http_status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['code'], 'malformed_payload')
        self.assertTrue(resp.data['retryable'])

    def test_scan_incomplete(self):
        qr = serialize(DeviceVerificationPayload('BBBB2222', 'u', '', ARMORED, 1))
        resp = self.client.post('/api/verification/scan/', {
            'qr_data': qr,
            'device_id': self.alice_device.id,
        })
        self.assertEqual(resp.status_code, http_status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(resp.data['code'], 'incomplete_payload')
        self.assertEqual(resp.data['missing_fields'], ['deviceLabel'])
        self.assertFalse(resp.data['retryable'])

    def test_scan_own_device(self):
        resp = self.client.post('/api/verification/scan/', {
            'qr_data': encode('AAAA1111', self.alice.id, 'Alice laptop', ARMORED),
            'device_id': self.alice_device.id,
        })
        self.assertEqual(resp.status_code, http_status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['code'], 'own_device')

    def test_scan_with_someone_elses_device(self):
        resp = self.client.post('/api/verification/scan/', {
            'qr_data': self._bob_qr(),
            'device_id': self.bob_device.id,
        })
        self.assertEqual(resp.status_code, http_status.HTTP_404_NOT_FOUND)

    def test_scan_digest_unavailable(self):
        with patch('verification.views.derive_short_auth_string', side_effect=DigestUnavailable('down')):
            resp = self.client.post('/api/verification/scan/', {
                'qr_data': self._bob_qr(),
                'device_id': self.alice_device.id,
            })
        self.assertEqual(resp.status_code, http_status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(resp.data['code'], 'verification_unavailable')
        self.assertNotIn('sas', resp.data)

    @override_settings(VERIFICATION={'PAYLOAD_MAX_AGE': 60})
    def test_old_payload_accepted_but_flagged_stale(self):
        qr = serialize(DeviceVerificationPayload('BBBB2222', str(self.bob.id), 'Bob phone', ARMORED, 0))
        resp = self.client.post('/api/verification/scan/', {
            'qr_data': qr,
            'device_id': self.alice_device.id,
        })
        self.assertEqual(resp.status_code, http_status.HTTP_200_OK)
        self.assertTrue(resp.data['stale'])
        self.assertEqual(resp.data['sas'], '29CD42')

    @override_settings(VERIFICATION={'FEATURE_TELEMETRY': True})
    def test_telemetry_event_emitted_when_enabled(self):
        with self.assertLogs('verification.telemetry', level='INFO') as logs:
            self.client.post('/api/verification/scan/', {
                'qr_data': 'not-a-verification-string',
                'device_id': self.alice_device.id,
            })
        self.assertIn('scan_rejected', logs.output[0])


class ShortAuthStringViewTests(VerificationAPITestBase):

    def test_sas(self):
        resp = self.client.post('/api/verification/sas/', {
            'fingerprint_a': 'BBBB2222',
            'fingerprint_b': 'AAAA1111',
        })
        self.assertEqual(resp.status_code, http_status.HTTP_200_OK)
        self.assertEqual(resp.data['sas'], derive_short_auth_string('AAAA1111', 'BBBB2222'))

    def test_sas_requires_both_fingerprints(self):
        resp = self.client.post('/api/verification/sas/', {'fingerprint_a': 'AAAA1111'})
        self.assertEqual(resp.status_code, http_status.HTTP_400_BAD_REQUEST)

    def test_sas_digest_unavailable(self):
        with patch('verification.views.derive_short_auth_string', side_effect=DigestUnavailable('down')):
            resp = self.client.post('/api/verification/sas/', {
                'fingerprint_a': 'AAAA1111',
                'fingerprint_b': 'BBBB2222',
            })
        self.assertEqual(resp.status_code, http_status.HTTP_503_SERVICE_UNAVAILABLE)


class KeyVerificationRecordTests(VerificationAPITestBase):

    def test_record_verification(self):
        resp = self.client.post('/api/verification/records/', {
            'device_id': self.alice_device.id,
            'target_fpr': 'BBBB2222',
            'method': 'qr',
        })
        self.assertEqual(resp.status_code, http_status.HTTP_201_CREATED)
        record = KeyVerification.objects.get(verifier=self.alice)
        self.assertEqual(record.target_fpr, 'BBBB2222')
        self.assertEqual(record.verifier_device, self.alice_device)

    def test_record_twice_keeps_one_row(self):
        for method in ('qr', 'sas'):
            self.client.post('/api/verification/records/', {
                'device_id': self.alice_device.id,
                'target_fpr': 'BBBB2222',
                'method': method,
            })
        self.assertEqual(KeyVerification.objects.filter(verifier=self.alice).count(), 1)
        self.assertEqual(KeyVerification.objects.get(verifier=self.alice).method, 'sas')

    def test_record_invalid_method(self):
        resp = self.client.post('/api/verification/records/', {
            'device_id': self.alice_device.id,
            'target_fpr': 'BBBB2222',
            'method': 'email',
        })
        self.assertEqual(resp.status_code, http_status.HTTP_400_BAD_REQUEST)

    def test_record_own_device_rejected(self):
        resp = self.client.post('/api/verification/records/', {
            'device_id': self.alice_device.id,
            'target_fpr': 'AAAA1111',
            'method': 'sas',
        })
        self.assertEqual(resp.status_code, http_status.HTTP_400_BAD_REQUEST)

    def test_record_with_other_users_device_rejected(self):
        resp = self.client.post('/api/verification/records/', {
            'device_id': self.bob_device.id,
            'target_fpr': 'CCCC3333',
            'method': 'qr',
        })
        self.assertEqual(resp.status_code, http_status.HTTP_400_BAD_REQUEST)

    def test_list_records(self):
        KeyVerification.objects.create(
            verifier=self.alice, verifier_device=self.alice_device,
            target_fpr='BBBB2222', method='qr',
        )
        KeyVerification.objects.create(
            verifier=self.bob, verifier_device=self.bob_device,
            target_fpr='AAAA1111', method='qr',
        )
        resp = self.client.get('/api/verification/records/')
        self.assertEqual(resp.status_code, http_status.HTTP_200_OK)
        records = _results(resp)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]['target_fpr'], 'BBBB2222')
        self.assertEqual(records[0]['verifier_device_label'], 'Alice laptop')

    def test_status(self):
        resp = self.client.get('/api/verification/records/status/', {'fpr': 'BBBB2222'})
        self.assertFalse(resp.data['verified'])
        KeyVerification.objects.create(
            verifier=self.alice, verifier_device=self.alice_device,
            target_fpr='BBBB2222', method='sas',
        )
        resp = self.client.get('/api/verification/records/status/', {'fpr': 'BBBB2222'})
        self.assertTrue(resp.data['verified'])

    def test_status_requires_fpr(self):
        resp = self.client.get('/api/verification/records/status/')
        self.assertEqual(resp.status_code, http_status.HTTP_400_BAD_REQUEST)


class ProjectEndpointTests(TestCase):

    def test_health(self):
        resp = APIClient().get('/api/health/')
        self.assertEqual(resp.status_code, http_status.HTTP_200_OK)
        self.assertEqual(resp.data['status'], 'ok')

    def test_token_obtain(self):
        User.objects.create_user(username='carol', email='carol@test.com', password='TestPass123!')
        resp = APIClient().post('/api/auth/token/', {'username': 'carol', 'password': 'TestPass123!'})
        self.assertEqual(resp.status_code, http_status.HTTP_200_OK)
        self.assertIn('access', resp.data)

    @override_settings(VERIFICATION={'FEATURE_PASSKEY_UNLOCK': True})
    def test_features(self):
        user = User.objects.create_user(username='dave', email='dave@test.com', password='TestPass123!')
        client = APIClient()
        client.force_authenticate(user=user)
        resp = client.get('/api/verification/features/')
        self.assertTrue(resp.data['passkey_unlock'])
        self.assertFalse(resp.data['telemetry'])
