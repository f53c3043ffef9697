"""
Payment Service

Subscription checkout and cancellation. The Stripe secret key lives on a
separate payments backend; this client talks to that backend's JSON
endpoints. When no backend is configured the mock provider stands in so
the upgrade flow still works in development.
"""

import logging
import time
import requests

from encounters.errors import ProviderError
from encounters.interfaces import BillingSubscription, CheckoutSession, PaymentProvider

logger = logging.getLogger(__name__)

STATUS_TEXT = {
    'en': {
        'free': 'Free Plan',
        'premium': 'Premium',
        'active': 'Active',
        'canceled': 'Canceled',
        'incomplete': 'Incomplete',
        'incomplete_expired': 'Expired',
        'past_due': 'Past Due',
        'trialing': 'Trial',
        'unpaid': 'Unpaid',
    },
    'es': {
        'free': 'Plan Gratuito',
        'premium': 'Premium',
        'active': 'Activo',
        'canceled': 'Cancelado',
        'incomplete': 'Incompleto',
        'incomplete_expired': 'Expirado',
        'past_due': 'Vencido',
        'trialing': 'Prueba',
        'unpaid': 'No Pagado',
    },
}

PREMIUM_FEATURES = {
    'en': [
        'Unlimited saved encounters',
        'Unlimited legal script generation',
        'Durable cloud storage for recordings',
        'Advanced location-based legal information',
        'Priority customer support',
    ],
    'es': [
        'Encuentros guardados ilimitados',
        'Generación ilimitada de guiones legales',
        'Almacenamiento duradero en la nube para grabaciones',
        'Información legal avanzada basada en ubicación',
        'Soporte al cliente prioritario',
    ],
}


def get_subscription_status_text(status, language='en'):
    texts = STATUS_TEXT.get(language, STATUS_TEXT['en'])
    return texts.get(status, status)


def get_premium_features(language='en'):
    return PREMIUM_FEATURES.get(language, PREMIUM_FEATURES['en'])


class StripeBackendClient(PaymentProvider):
    """
    Client for the payments backend.

    Args:
        base_url (str): backend root, e.g. https://pay.example.com
        price_id (str): Stripe price for the premium plan
        success_url (str): where Stripe Checkout returns on success
        cancel_url (str): where Stripe Checkout returns on cancel
        timeout (float): per-request timeout in seconds
    """

    def __init__(self, base_url, price_id, success_url, cancel_url, timeout=15):
        self.base_url = base_url.rstrip('/')
        self.price_id = price_id
        self.success_url = success_url
        self.cancel_url = cancel_url
        self.timeout = timeout

    def _post(self, path, payload):
        try:
            resp = requests.post(f"{self.base_url}{path}", json=payload, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            logger.error(f"Payments backend call {path} failed: {e}")
            raise ProviderError(f"Payments backend call {path} failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Payments backend returned invalid JSON for {path}") from e

    def create_checkout(self, user_id, email):
        data = self._post('/api/create-checkout-session', {
            'userId': user_id,
            'userEmail': email,
            'priceId': self.price_id,
            'successUrl': self.success_url,
            'cancelUrl': self.cancel_url,
        })
        if not data.get('id'):
            raise ProviderError('Checkout session has no id')
        logger.info(f"Created checkout session {data['id']} for {user_id}")
        return CheckoutSession(session_id=data['id'], url=data.get('url'))

    def verify_checkout(self, session_id):
        data = self._post('/api/verify-subscription', {'sessionId': session_id})
        if not data.get('subscriptionId'):
            raise ProviderError('Checkout has not produced a subscription')
        return BillingSubscription(
            subscription_id=data['subscriptionId'],
            status=data.get('status', 'active'),
            customer_id=data.get('customerId'),
        )

    def cancel(self, subscription_id):
        if not subscription_id:
            raise ProviderError('No subscription id to cancel')
        data = self._post('/api/cancel-subscription', {'subscriptionId': subscription_id})
        logger.info(f"Canceled subscription {subscription_id}")
        return data

    def create_portal_session(self, customer_id):
        data = self._post('/api/create-portal-session', {'customerId': customer_id})
        return data.get('url')


class MockPaymentProvider(PaymentProvider):
    """
    Development stand-in: every checkout succeeds with an active subscription.
    """

    def __init__(self, delay=0.0):
        self.delay = delay

    def _stamp(self):
        if self.delay:
            time.sleep(self.delay)
        return str(int(time.time() * 1000))

    def create_checkout(self, user_id, email):
        logger.info(f"Mock checkout for {email} - in production this would redirect to Stripe")
        return CheckoutSession(session_id=f"mock_session_{self._stamp()}")

    def verify_checkout(self, session_id):
        stamp = self._stamp()
        return BillingSubscription(
            subscription_id=f"mock_sub_{stamp}",
            status='active',
            customer_id=f"mock_cus_{stamp}",
        )

    def cancel(self, subscription_id):
        return {'subscriptionId': subscription_id, 'status': 'canceled'}

    def create_portal_session(self, customer_id):
        return '#mock-portal'
