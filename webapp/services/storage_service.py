"""
Recording Storage Service

Pins encounter recordings to IPFS through the Pinata API so they survive
beyond the running session.
"""

import json
import logging
import re
import requests

from encounters.errors import ProviderError
from encounters.interfaces import RecordingStorage, StoredRecording

logger = logging.getLogger(__name__)

CID_V0 = re.compile(r'^Qm[1-9A-HJ-NP-Za-km-z]{44}$')
CID_V1 = re.compile(r'^baf[a-z0-9]{56}$')


def is_valid_ipfs_hash(value):
    return bool(value) and bool(CID_V0.match(value) or CID_V1.match(value))


class PinataStorage(RecordingStorage):
    """
    Args:
        api_key (str): Pinata API key
        secret_api_key (str): Pinata secret key
        base_url (str): Pinata API root
        gateway (str): public gateway used to build durable URLs
        timeout (float): per-request timeout in seconds
    """

    def __init__(self, api_key, secret_api_key, base_url='https://api.pinata.cloud',
                 gateway='https://gateway.pinata.cloud/ipfs', timeout=30):
        self.api_key = api_key
        self.secret_api_key = secret_api_key
        self.base_url = base_url.rstrip('/')
        self.gateway = gateway.rstrip('/')
        self.timeout = timeout

    @property
    def headers(self):
        return {
            'pinata_api_key': self.api_key,
            'pinata_secret_api_key': self.secret_api_key,
        }

    def gateway_url(self, ipfs_hash):
        return f"{self.gateway}/{ipfs_hash}"

    def _pinata_metadata(self, metadata):
        keyvalues = {k: v for k, v in metadata.items() if k != 'name' and v is not None}
        return {
            'name': metadata.get('name') or 'encounter-recording',
            'keyvalues': {k: str(v) for k, v in keyvalues.items()},
        }

    def upload(self, blob, metadata):
        """
        Pin a recording blob.

        Args:
            blob (RecordingBlob): recording bytes
            metadata (dict): key/values stored with the pin

        Returns:
            StoredRecording
        """
        filename = f"encounter-{metadata.get('encounterId') or 'recording'}.webm"
        files = {'file': (filename, blob.data, blob.mime_type)}
        data = {
            'pinataMetadata': json.dumps(self._pinata_metadata(metadata)),
            'pinataOptions': json.dumps({'cidVersion': 1, 'wrapWithDirectory': False}),
        }
        try:
            resp = requests.post(
                f"{self.base_url}/pinning/pinFileToIPFS",
                files=files,
                data=data,
                headers=self.headers,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            body = resp.json()
        except requests.RequestException as e:
            raise ProviderError(f"Error uploading file to Pinata: {e}") from e
        except ValueError as e:
            raise ProviderError('Pinata returned invalid JSON') from e

        ipfs_hash = body.get('IpfsHash')
        if not ipfs_hash:
            raise ProviderError('Pinata response has no IpfsHash')
        logger.info(f"Pinned {filename} as {ipfs_hash} ({body.get('PinSize')} bytes)")
        return StoredRecording(reference=ipfs_hash, durable_url=self.gateway_url(ipfs_hash),
                               size=body.get('PinSize'))

    def upload_json(self, content, metadata):
        """Pin a JSON document (legal templates and similar)."""
        payload = {
            'pinataContent': content,
            'pinataMetadata': self._pinata_metadata(metadata),
            'pinataOptions': {'cidVersion': 1},
        }
        try:
            resp = requests.post(f"{self.base_url}/pinning/pinJSONToIPFS", json=payload,
                                 headers=self.headers, timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
        except requests.RequestException as e:
            raise ProviderError(f"Error uploading JSON to Pinata: {e}") from e
        except ValueError as e:
            raise ProviderError('Pinata returned invalid JSON') from e

        ipfs_hash = body.get('IpfsHash')
        if not ipfs_hash:
            raise ProviderError('Pinata response has no IpfsHash')
        return StoredRecording(reference=ipfs_hash, durable_url=self.gateway_url(ipfs_hash),
                               size=body.get('PinSize'))

    def unpin(self, reference):
        if not reference:
            raise ProviderError('No IPFS hash to unpin')
        try:
            resp = requests.delete(f"{self.base_url}/pinning/unpin/{reference}",
                                   headers=self.headers, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ProviderError(f"Error unpinning {reference}: {e}") from e
        return True

    def list_user_recordings(self, user_id, limit=50, offset=0):
        """
        Recordings pinned for a user.

        Returns:
            list: dicts with ipfs_hash, url, size, timestamp, metadata
        """
        params = {
            'status': 'pinned',
            'pageLimit': limit,
            'pageOffset': offset,
            'metadata': json.dumps({'keyvalues': {'userId': {'value': user_id, 'op': 'eq'}}}),
        }
        try:
            resp = requests.get(f"{self.base_url}/data/pinList", params=params,
                                headers=self.headers, timeout=self.timeout)
            resp.raise_for_status()
            rows = resp.json().get('rows', [])
        except requests.RequestException as e:
            raise ProviderError(f"Error listing files: {e}") from e

        recordings = []
        for row in rows:
            keyvalues = (row.get('metadata') or {}).get('keyvalues') or {}
            if keyvalues.get('type') != 'encounter-recording':
                continue
            recordings.append({
                'ipfs_hash': row.get('ipfs_pin_hash'),
                'url': self.gateway_url(row.get('ipfs_pin_hash')),
                'size': row.get('size'),
                'timestamp': row.get('date_pinned'),
                'metadata': row.get('metadata'),
            })
        return recordings
