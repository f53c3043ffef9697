"""
Encounter Core Errors

Every failure coming out of an external collaborator is converted into
one of these kinds before it leaves the core. Blocking kinds are raised
to the caller; advisory kinds are published as notices instead.
"""


class PocketLegalError(Exception):
    """Base class for errors surfaced by the encounter core."""

    kind = 'error'
    blocking = True
    default_message = 'Something went wrong.'

    def __init__(self, message=None, detail=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.detail = detail

    def to_dict(self):
        return {
            'error': self.kind,
            'message': self.message,
            'blocking': self.blocking,
            'detail': self.detail,
        }


class EntitlementDenied(PocketLegalError):
    kind = 'entitlement_denied'
    default_message = ('Free plan allows only 1 saved encounter. '
                       'Upgrade to Premium or delete an encounter to save a new one.')


class DeviceAcquisitionFailed(PocketLegalError):
    kind = 'device_acquisition_failed'
    default_message = 'Unable to access camera/microphone. Please check permissions.'


class SubscriptionOperationFailed(PocketLegalError):
    kind = 'subscription_operation_failed'
    default_message = 'The subscription change could not be completed.'


class LocationUnavailable(PocketLegalError):
    kind = 'location_unavailable'
    blocking = False
    default_message = 'Location unavailable'


class RemoteSyncFailed(PocketLegalError):
    kind = 'remote_sync_failed'
    blocking = False
    default_message = 'Could not sync with remote storage. Your data is kept on this device.'

    def __init__(self, operation, message=None, detail=None):
        super().__init__(message, detail)
        self.operation = operation


class InvalidCaptureState(PocketLegalError):
    kind = 'invalid_capture_state'
    default_message = 'That action is not available right now.'


class CaptureInProgress(InvalidCaptureState):
    kind = 'capture_in_progress'
    default_message = 'A recording is already in progress.'


# Collaborator-side errors. Implementations of the external interfaces
# raise these; the core converts them into the kinds above.

class ProviderError(Exception):
    """A collaborator call failed."""


class DevicePermissionError(ProviderError):
    """The user denied camera or microphone access."""


class DeviceError(ProviderError):
    """The capture hardware is missing or busy."""


class PositionError(ProviderError):
    """No geographic fix could be obtained."""

    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3

    def __init__(self, message='Unknown location error', code=None):
        super().__init__(message)
        self.code = code
