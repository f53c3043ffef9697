"""
Flask Application Factory

Creates and configures the Flask application instance. One instance
serves one signed-in user, held as a UserSession in the app config.
"""

import logging
from datetime import datetime, timezone
from flask import Flask, Response, current_app, jsonify, request

from config.database import SqlDocumentStore
from config.settings import Settings
from encounters.errors import (
    DeviceAcquisitionFailed,
    EntitlementDenied,
    InvalidCaptureState,
    PocketLegalError,
    SubscriptionOperationFailed,
)
from encounters.models import UserAccount
from encounters.session import UserSession
from encounters.storage_router import LOCAL_SCHEME
from webapp.services.geocoding_service import BigDataCloudGeocoder
from webapp.services.payment_service import MockPaymentProvider, StripeBackendClient
from webapp.services.script_service import OpenAIScriptGenerator
from webapp.services.storage_service import PinataStorage

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    EntitlementDenied: 403,
    DeviceAcquisitionFailed: 400,
    SubscriptionOperationFailed: 502,
    InvalidCaptureState: 409,
}


def status_for(error):
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


def get_user_session():
    return current_app.config['USER_SESSION']


def build_session(settings):
    """
    Wire the production collaborators for the configured user.

    Remote storage and payments fall back to local-only and mock
    behaviour when their credentials are missing.
    """
    settings.missing_variables()

    store = SqlDocumentStore(settings.database_url)
    store.init_schema()

    recording_storage = None
    if settings.remote_storage_available:
        recording_storage = PinataStorage(
            settings.pinata_api_key,
            settings.pinata_secret_api_key,
            base_url=settings.pinata_base_url,
            gateway=settings.pinata_gateway,
            timeout=settings.upload_timeout,
        )

    if settings.payments_available:
        payments = StripeBackendClient(
            settings.payments_base_url,
            settings.stripe_price_id,
            settings.stripe_success_url,
            settings.stripe_cancel_url,
            timeout=settings.http_timeout,
        )
    else:
        logger.info("No payments backend configured, using mock payments")
        payments = MockPaymentProvider()

    account = UserAccount(user_id=settings.demo_user_id, email=settings.demo_email)
    session = UserSession(account, settings, payments, store=store, recording_storage=recording_storage)
    session.restore()
    return session


def build_script_generator(settings):
    if not settings.llm_available:
        return None
    return OpenAIScriptGenerator(
        settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        max_tokens=settings.openai_max_tokens,
        timeout=settings.http_timeout,
    )


def create_app(settings=None, session=None, geocoder=None, script_generator=None):
    """
    Create and configure the Flask application.

    Args:
        settings (Settings): configuration, read from the environment if omitted
        session (UserSession): prebuilt session; production collaborators
            are wired when omitted
        geocoder (ReverseGeocoder): address lookup for recordings
        script_generator (ScriptGenerator): LLM client for premium scripts

    Returns:
        Flask: the application
    """
    settings = settings or Settings.from_env()
    if session is None:
        session = build_session(settings)
        geocoder = geocoder or BigDataCloudGeocoder(timeout=settings.http_timeout)
        script_generator = script_generator or build_script_generator(settings)

    app = Flask(__name__)
    app.secret_key = settings.secret_key
    app.config['SETTINGS'] = settings
    app.config['USER_SESSION'] = session
    app.config['GEOCODER'] = geocoder
    app.config['SCRIPT_GENERATOR'] = script_generator

    from webapp.routes.encounters import encounters_bp
    from webapp.routes.legal import legal_bp
    from webapp.routes.payment import payment_bp
    from webapp.routes.recorder import recorder_bp

    app.register_blueprint(encounters_bp)
    app.register_blueprint(recorder_bp)
    app.register_blueprint(payment_bp)
    app.register_blueprint(legal_bp)

    @app.errorhandler(PocketLegalError)
    def handle_pocketlegal_error(error):
        status = status_for(error)
        logger.warning(f"{error.kind}: {error.message}")
        return jsonify(error.to_dict()), status

    @app.route('/api/health')
    def health():
        """Health check endpoint."""
        return {
            'status': 'ok',
            'app': settings.app_name,
            'version': settings.app_version,
            'remote_storage': session.remote_storage_available,
            'timestamp': datetime.now(timezone.utc).isoformat(),
        }

    @app.route('/api/user', methods=['GET', 'PATCH'])
    def user():
        user_session = get_user_session()
        if request.method == 'PATCH':
            data = request.get_json(silent=True) or {}
            if 'language' in data:
                try:
                    user_session.set_language(data['language'])
                except ValueError as e:
                    return {'error': 'invalid_request', 'message': str(e)}, 400
        return user_session.account.to_dict()

    @app.route('/api/entitlement')
    def entitlement():
        return get_user_session().entitlement()

    @app.route('/api/notices')
    def notices():
        drained = get_user_session().events.drain()
        return jsonify([n.to_dict() for n in drained])

    @app.route('/api/recordings/local/<token>')
    def local_recording(token):
        """Download a recording that only lives in this process."""
        blob = get_user_session().storage_router.local.get(f"{LOCAL_SCHEME}{token}")
        if blob is None:
            return {'error': 'not_found', 'message': 'Recording is no longer available.'}, 404
        return Response(blob.data, mimetype=blob.mime_type, headers={
            'Content-Disposition': f'attachment; filename="encounter-{token}.webm"',
        })

    return app
