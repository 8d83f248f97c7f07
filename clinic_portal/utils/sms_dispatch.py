# /clinic_portal/utils/sms_dispatch.py
import logging
from concurrent.futures import ThreadPoolExecutor

import requests

dispatch_logger = logging.getLogger('clinic_portal.sms_dispatch')


class SmsInvitationDispatcher:
    """
    Posts patient invitations to the SMS workflow webhook in the background.

    Delivery runs on a thread pool so the HTTP request that created the
    patient never waits on the SMS gateway. Failures are reported to the
    ``clinic_portal.sms_dispatch`` logger and never raised to the caller.

    Args:
        webhook_url (str | None): Endpoint that sends the SMS. When None,
            dispatch is skipped with a warning.
        timeout (int): Seconds to wait for the webhook to respond.
        executor: Anything with a ``submit(fn, *args)`` method returning a
            Future. Defaults to a private ThreadPoolExecutor.
    """
    def __init__(self, webhook_url=None, timeout=10, max_workers=2, executor=None, logger=None):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.logger = logger or dispatch_logger
        self.executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix='sms-dispatch'
        )

    @property
    def enabled(self):
        return bool(self.webhook_url)

    def dispatch(self, payload: dict):
        """Queues payload for delivery and returns the Future, or None when disabled."""
        if not self.enabled:
            self.logger.warning("SMS_INVITATION_WEBHOOK_URL not configured; invitation SMS not sent")
            return None
        return self.executor.submit(self._deliver, payload)

    def _deliver(self, payload: dict) -> bool:
        try:
            response = requests.post(self.webhook_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            self.logger.error(f"Failed to trigger SMS invitation workflow: {e}")
            return False
        self.logger.info(f"SMS invitation workflow accepted request. Status: {response.status_code}")
        return True

    def shutdown(self, wait=True):
        self.executor.shutdown(wait=wait)
