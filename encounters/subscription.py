"""
Subscription Manager

The only writer of a user's subscription fields. Upgrade and cancel go
through the payment provider first; the local status changes only after
the provider call succeeds, and the document store is updated afterwards
on the background reconciler.

    free -> premium/active/trialing -> canceled -> free
"""

import logging
import threading

from encounters.errors import SubscriptionOperationFailed
from encounters.models import SubscriptionStatus
from encounters.entitlement import has_premium_access

logger = logging.getLogger(__name__)


class SubscriptionManager:
    """
    Args:
        account (UserAccount): the signed-in user's account, mutated in place
        payments (PaymentProvider): checkout/cancel collaborator
        store (DocumentStore): remote persistence, or None
        reconciler (Reconciler): runs the remote write in the background
    """

    def __init__(self, account, payments, store=None, reconciler=None):
        self.account = account
        self.payments = payments
        self.store = store
        self.reconciler = reconciler
        self._lock = threading.Lock()

    @property
    def status(self):
        return self.account.subscription_status

    @property
    def premium(self):
        return has_premium_access(self.account.subscription_status)

    def _check_user(self, user_id):
        if user_id != self.account.user_id:
            raise SubscriptionOperationFailed(
                'That account is not signed in on this device.',
                detail={'user_id': user_id},
            )

    def _persist(self):
        if self.store is None or self.reconciler is None:
            return
        self.reconciler.submit(
            'update_subscription',
            self.store.update_subscription,
            self.account.user_id,
            self.account.subscription_status.value,
            self.account.customer_id,
            self.account.subscription_id,
        )

    def upgrade(self, user_id):
        """
        Run checkout and move the account to an unlimited status.

        Returns:
            UserAccount: the updated account

        Raises:
            SubscriptionOperationFailed: checkout or verification failed;
                the status is left unchanged
        """
        self._check_user(user_id)
        with self._lock:
            if self.premium:
                logger.info(f"User {user_id} already has premium access")
                return self.account

            try:
                checkout = self.payments.create_checkout(self.account.user_id, self.account.email)
                billing = self.payments.verify_checkout(checkout.session_id)
            except Exception as e:
                logger.error(f"Upgrade failed for {user_id}: {e}")
                raise SubscriptionOperationFailed(
                    'Upgrade could not be completed. You have not been charged.',
                    detail=str(e),
                ) from e

            status = SubscriptionStatus.parse(billing.status)
            if not has_premium_access(status):
                logger.error(f"Checkout for {user_id} finished with status {billing.status}")
                raise SubscriptionOperationFailed(
                    'Payment was not confirmed.', detail={'status': billing.status})

            self.account.subscription_status = status
            self.account.subscription_id = billing.subscription_id
            self.account.customer_id = billing.customer_id or self.account.customer_id
            logger.info(f"User {user_id} upgraded to {status.value}")

        self._persist()
        return self.account

    def cancel(self, user_id):
        """
        Cancel the subscription and return the account to free-tier limits.

        Returns:
            UserAccount: the updated account (status CANCELED)

        Raises:
            SubscriptionOperationFailed: nothing to cancel, or the provider
                refused; the status is left unchanged
        """
        self._check_user(user_id)
        with self._lock:
            if not self.premium:
                raise SubscriptionOperationFailed('There is no active subscription to cancel.')

            try:
                self.payments.cancel(self.account.subscription_id)
            except Exception as e:
                logger.error(f"Cancel failed for {user_id}: {e}")
                raise SubscriptionOperationFailed(
                    'Cancellation could not be completed. Your plan is unchanged.',
                    detail=str(e),
                ) from e

            self.account.subscription_status = SubscriptionStatus.CANCELED
            self.account.subscription_id = None
            logger.info(f"User {user_id} canceled their subscription")

        self._persist()
        return self.account

    def reset_to_free(self, user_id):
        """Close out a canceled subscription once the billing period ends."""
        self._check_user(user_id)
        with self._lock:
            if self.account.subscription_status != SubscriptionStatus.CANCELED:
                raise SubscriptionOperationFailed('Only a canceled subscription can return to free.')
            self.account.subscription_status = SubscriptionStatus.FREE
        self._persist()
        return self.account

    def portal_url(self):
        """Billing portal link for the current customer, if the provider has one."""
        if not self.account.customer_id:
            return None
        try:
            return self.payments.create_portal_session(self.account.customer_id)
        except Exception as e:
            logger.error(f"Could not open billing portal: {e}")
            raise SubscriptionOperationFailed('Billing portal is unavailable.', detail=str(e)) from e
