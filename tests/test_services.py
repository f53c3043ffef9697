"""
tests/test_services.py
HTTP collaborator clients with requests patched out.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from encounters.errors import DeviceError, DevicePermissionError, PositionError, ProviderError
from encounters.models import RecordingBlob
from webapp.services.capture_service import ClientMediaProvider
from webapp.services.geocoding_service import BigDataCloudGeocoder, NominatimGeocoder, ReportedPositionProvider
from webapp.services.payment_service import (
    MockPaymentProvider,
    StripeBackendClient,
    get_premium_features,
    get_subscription_status_text,
)
from webapp.services.script_service import OpenAIScriptGenerator, extract_scripts_from_text
from webapp.services.storage_service import PinataStorage, is_valid_ipfs_hash


def response(payload=None, status_error=None):
    resp = MagicMock()
    resp.json.return_value = payload
    if status_error is not None:
        resp.raise_for_status.side_effect = status_error
    return resp


# ── PAYMENTS ─────────────────────────────────────────────────

class TestStripeBackendClient:

    def make_client(self):
        return StripeBackendClient('https://pay.example/', 'price_1', 'https://app/ok', 'https://app/cancel')

    def test_create_checkout(self):
        with patch('webapp.services.payment_service.requests.post',
                   return_value=response({'id': 'cs_1', 'url': 'https://checkout/cs_1'})) as post:
            checkout = self.make_client().create_checkout('user-1', 'user@example.com')
        assert checkout.session_id == 'cs_1'
        url = post.call_args[0][0]
        payload = post.call_args[1]['json']
        assert url == 'https://pay.example/api/create-checkout-session'
        assert payload['userId'] == 'user-1'
        assert payload['priceId'] == 'price_1'
        assert post.call_args[1]['timeout'] == 15

    def test_network_error_becomes_provider_error(self):
        with patch('webapp.services.payment_service.requests.post',
                   side_effect=requests.ConnectionError('refused')):
            with pytest.raises(ProviderError):
                self.make_client().create_checkout('user-1', 'user@example.com')

    def test_http_error_becomes_provider_error(self):
        with patch('webapp.services.payment_service.requests.post',
                   return_value=response(status_error=requests.HTTPError('500'))):
            with pytest.raises(ProviderError):
                self.make_client().cancel('sub_1')

    def test_verify_requires_subscription(self):
        with patch('webapp.services.payment_service.requests.post', return_value=response({})):
            with pytest.raises(ProviderError):
                self.make_client().verify_checkout('cs_1')

    def test_verify(self):
        payload = {'subscriptionId': 'sub_1', 'status': 'trialing', 'customerId': 'cus_1'}
        with patch('webapp.services.payment_service.requests.post', return_value=response(payload)):
            billing = self.make_client().verify_checkout('cs_1')
        assert billing.status == 'trialing'
        assert billing.customer_id == 'cus_1'

    def test_cancel_requires_id(self):
        with pytest.raises(ProviderError):
            self.make_client().cancel(None)


class TestMockPayments:

    def test_checkout_always_active(self):
        provider = MockPaymentProvider()
        checkout = provider.create_checkout('user-1', 'user@example.com')
        billing = provider.verify_checkout(checkout.session_id)
        assert checkout.session_id.startswith('mock_session_')
        assert billing.subscription_id.startswith('mock_sub_')
        assert billing.customer_id.startswith('mock_cus_')
        assert billing.status == 'active'

    def test_display_text(self):
        assert get_subscription_status_text('canceled', 'es') == 'Cancelado'
        assert get_subscription_status_text('active') == 'Active'
        assert get_subscription_status_text('mystery') == 'mystery'
        assert get_premium_features('es')[0] == 'Encuentros guardados ilimitados'
        assert get_premium_features('fr') == get_premium_features('en')


# ── STORAGE ──────────────────────────────────────────────────

class TestPinataStorage:

    def make_storage(self):
        return PinataStorage('key', 'secret', timeout=5)

    def test_upload(self):
        payload = {'IpfsHash': 'bafyabc', 'PinSize': 9}
        with patch('webapp.services.storage_service.requests.post', return_value=response(payload)) as post:
            stored = self.make_storage().upload(RecordingBlob(data=b'recording'),
                                                {'name': 'Encounter', 'encounterId': '17', 'userId': 'user-1'})
        assert stored.reference == 'bafyabc'
        assert stored.durable_url == 'https://gateway.pinata.cloud/ipfs/bafyabc'
        kwargs = post.call_args[1]
        assert post.call_args[0][0] == 'https://api.pinata.cloud/pinning/pinFileToIPFS'
        assert kwargs['headers'] == {'pinata_api_key': 'key', 'pinata_secret_api_key': 'secret'}
        assert kwargs['files']['file'][0] == 'encounter-17.webm'
        assert json.loads(kwargs['data']['pinataOptions'])['cidVersion'] == 1
        metadata = json.loads(kwargs['data']['pinataMetadata'])
        assert metadata['name'] == 'Encounter'
        assert metadata['keyvalues'] == {'encounterId': '17', 'userId': 'user-1'}

    def test_upload_failure(self):
        with patch('webapp.services.storage_service.requests.post', side_effect=requests.Timeout('slow')):
            with pytest.raises(ProviderError):
                self.make_storage().upload(RecordingBlob(data=b'x'), {})

    def test_upload_without_hash(self):
        with patch('webapp.services.storage_service.requests.post', return_value=response({})):
            with pytest.raises(ProviderError):
                self.make_storage().upload(RecordingBlob(data=b'x'), {})

    def test_upload_json(self):
        payload = {'IpfsHash': 'bafyjson', 'PinSize': 42}
        with patch('webapp.services.storage_service.requests.post', return_value=response(payload)) as post:
            stored = self.make_storage().upload_json({'scripts': []}, {'name': 'CA template', 'type': 'legal-template'})
        assert stored.reference == 'bafyjson'
        assert stored.size == 42
        body = post.call_args[1]['json']
        assert post.call_args[0][0] == 'https://api.pinata.cloud/pinning/pinJSONToIPFS'
        assert body['pinataContent'] == {'scripts': []}
        assert body['pinataMetadata']['keyvalues'] == {'type': 'legal-template'}

    def test_upload_json_bad_responses(self):
        bad_json = response()
        bad_json.json.side_effect = ValueError('not json')
        for resp in (response({}), response({'PinSize': 1}), bad_json):
            with patch('webapp.services.storage_service.requests.post', return_value=resp):
                with pytest.raises(ProviderError):
                    self.make_storage().upload_json({'scripts': []}, {})

    def test_unpin(self):
        with patch('webapp.services.storage_service.requests.delete', return_value=response()) as delete:
            assert self.make_storage().unpin('bafyabc')
        assert delete.call_args[0][0] == 'https://api.pinata.cloud/pinning/unpin/bafyabc'

    def test_list_user_recordings_filters_type(self):
        rows = {'rows': [
            {'ipfs_pin_hash': 'bafy1', 'size': 10, 'date_pinned': '2025-01-01',
             'metadata': {'keyvalues': {'type': 'encounter-recording'}}},
            {'ipfs_pin_hash': 'bafy2', 'size': 20, 'date_pinned': '2025-01-02',
             'metadata': {'keyvalues': {'type': 'legal-template'}}},
        ]}
        with patch('webapp.services.storage_service.requests.get', return_value=response(rows)):
            recordings = self.make_storage().list_user_recordings('user-1')
        assert [r['ipfs_hash'] for r in recordings] == ['bafy1']
        assert recordings[0]['url'].endswith('/bafy1')

    def test_hash_validation(self):
        assert is_valid_ipfs_hash('QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG')
        assert is_valid_ipfs_hash('bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi')
        assert not is_valid_ipfs_hash('blob:local/1234')
        assert not is_valid_ipfs_hash('')
        assert not is_valid_ipfs_hash(None)


# ── SCRIPTS ──────────────────────────────────────────────────

def completion(content):
    return response({'choices': [{'message': {'content': content}}]})


class TestOpenAIScriptGenerator:

    def test_json_response(self):
        content = json.dumps({
            'scripts': [{'text': 'I do not consent to searches.', 'usage': 'Searches', 'priority': 'high'}],
            'guidance': 'Stay calm.',
            'stateSpecific': 'California requires ID in a traffic stop.',
        })
        with patch('webapp.services.script_service.requests.post', return_value=completion(content)) as post:
            result = OpenAIScriptGenerator('sk-test').generate_scripts('traffic-stop', 'CA', 'es')
        assert result.generated
        assert result.language == 'es'
        assert result.scripts[0]['text'] == 'I do not consent to searches.'
        assert result.jurisdiction_notes.startswith('California')
        kwargs = post.call_args[1]
        assert post.call_args[0][0] == 'https://api.openai.com/v1/chat/completions'
        assert kwargs['headers']['Authorization'] == 'Bearer sk-test'
        assert kwargs['json']['temperature'] == 0.3
        assert 'Language: Spanish' in kwargs['json']['messages'][1]['content']

    def test_plain_text_response(self):
        content = 'Here are some phrases:\n- "I am exercising my right to remain silent."\n- short'
        with patch('webapp.services.script_service.requests.post', return_value=completion(content)):
            result = OpenAIScriptGenerator('sk-test').generate_scripts('traffic-stop', 'CA')
        assert [s['text'] for s in result.scripts] == ['I am exercising my right to remain silent.']

    def test_malformed_response(self):
        with patch('webapp.services.script_service.requests.post', return_value=response({'choices': []})):
            with pytest.raises(ProviderError):
                OpenAIScriptGenerator('sk-test').generate_scripts('traffic-stop', 'CA')

    def test_summary(self):
        with patch('webapp.services.script_service.requests.post',
                   return_value=completion('Know your rights.')) as post:
            summary = OpenAIScriptGenerator('sk-test').generate_summary('Denver, CO', 'general')
        assert summary == 'Know your rights.'
        assert post.call_args[1]['json']['max_tokens'] == 500

    def test_extract_caps_at_six(self):
        text = '\n'.join(f"• Script number {i} for the stop" for i in range(10))
        result = extract_scripts_from_text(text, 'en')
        assert len(result.scripts) == 6
        assert result.scripts[0]['text'] == 'Script number 0 for the stop'


# ── GEOCODING / POSITION ─────────────────────────────────────

class TestGeocoding:

    def test_reverse_geocode_with_locality(self):
        payload = {
            'locality': 'Denver', 'principalSubdivision': 'Colorado',
            'principalSubdivisionCode': 'US-CO', 'countryName': 'United States of America',
            'countryCode': 'US', 'postcode': '80202',
        }
        with patch('webapp.services.geocoding_service.requests.get', return_value=response(payload)):
            address = BigDataCloudGeocoder().reverse_geocode(39.74, -104.99)
        assert address.formatted_address == 'Denver, Colorado, United States of America'
        assert address.state_code == 'CO'
        assert address.postal_code == '80202'

    def test_reverse_geocode_without_locality(self):
        payload = {'principalSubdivision': 'Wyoming', 'countryName': 'United States of America'}
        with patch('webapp.services.geocoding_service.requests.get', return_value=response(payload)):
            address = BigDataCloudGeocoder().reverse_geocode(43.0, -107.5)
        assert address.formatted_address == 'Wyoming, United States of America'

    def test_reverse_geocode_failure(self):
        with patch('webapp.services.geocoding_service.requests.get',
                   side_effect=requests.ConnectionError('offline')):
            with pytest.raises(ProviderError):
                BigDataCloudGeocoder().reverse_geocode(0, 0)

    def test_forward_geocode(self):
        payload = [{'lat': '39.7392', 'lon': '-104.9903', 'display_name': 'Denver', 'boundingbox': []}]
        with patch('webapp.services.geocoding_service.requests.get', return_value=response(payload)):
            result = NominatimGeocoder().geocode_address('Denver')
        assert result['latitude'] == 39.7392
        assert result['longitude'] == -104.9903

    def test_forward_geocode_not_found(self):
        with patch('webapp.services.geocoding_service.requests.get', return_value=response([])):
            assert NominatimGeocoder().geocode_address('nowhere at all') is None

    def test_reported_position(self):
        position = ReportedPositionProvider.from_payload(
            {'latitude': 39.7, 'longitude': -104.9, 'accuracy': 5}).get_current_position(1000)
        assert (position.latitude, position.longitude, position.accuracy) == (39.7, -104.9, 5)

    def test_reported_error_code(self):
        provider = ReportedPositionProvider(error_code=PositionError.PERMISSION_DENIED)
        with pytest.raises(PositionError) as exc:
            provider.get_current_position(1000)
        assert exc.value.code == PositionError.PERMISSION_DENIED
        assert 'denied' in str(exc.value)

    def test_reported_missing_coordinates(self):
        with pytest.raises(PositionError):
            ReportedPositionProvider().get_current_position(1000)


# ── CLIENT MEDIA ─────────────────────────────────────────────

class TestClientMedia:

    def test_chunks_joined_on_finalize(self):
        stream = ClientMediaProvider().acquire()
        stream.append(b'abc')
        stream.append(b'def')
        assert stream.size == 6
        blob = stream.finalize()
        assert blob.data == b'abcdef'
        assert blob.mime_type == 'video/webm'
        with pytest.raises(DeviceError):
            stream.append(b'late')

    def test_permission_error(self):
        with pytest.raises(DevicePermissionError):
            ClientMediaProvider(client_error='NotAllowedError').acquire()

    def test_device_error(self):
        with pytest.raises(DeviceError):
            ClientMediaProvider(client_error='NotFoundError').acquire()

    def test_release_discards_chunks(self):
        stream = ClientMediaProvider().acquire()
        stream.append(b'abc')
        stream.release()
        assert stream.size == 0
        assert not stream.open
