"""
Payment Routes

Handles subscription upgrade, cancellation and the billing portal.
"""

import logging
from flask import Blueprint, request

from webapp.app import get_user_session
from webapp.services.payment_service import get_premium_features, get_subscription_status_text

logger = logging.getLogger(__name__)

payment_bp = Blueprint('payment', __name__, url_prefix='/api/subscription')


def subscription_summary(session):
    account = session.account
    return {
        'user_id': account.user_id,
        'subscription_status': account.subscription_status.value,
        'status_text': get_subscription_status_text(
            account.subscription_status.value, account.preferred_language),
        'premium': session.has_premium_access(),
        'customer_id': account.customer_id,
        'subscription_id': account.subscription_id,
    }


@payment_bp.route('', methods=['GET'])
def subscription():
    return subscription_summary(get_user_session())


@payment_bp.route('/upgrade', methods=['POST'])
def upgrade():
    session = get_user_session()
    session.subscriptions.upgrade(session.user_id)
    return subscription_summary(session)


@payment_bp.route('/cancel', methods=['POST'])
def cancel():
    session = get_user_session()
    session.subscriptions.cancel(session.user_id)
    return subscription_summary(session)


@payment_bp.route('/portal', methods=['GET'])
def portal():
    url = get_user_session().subscriptions.portal_url()
    if not url:
        return {'error': 'not_found', 'message': 'No billing account yet.'}, 404
    return {'url': url}


@payment_bp.route('/features', methods=['GET'])
def features():
    language = request.args.get('language') or get_user_session().account.preferred_language
    return {'language': language, 'features': get_premium_features(language)}
