"""
Customer notifications for the fulfillment pipeline.

Sending happens on a small thread pool so a slow SMTP server never holds up
a webhook or an admin request. Failures are logged, never raised.
"""
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional
import logging

from app.models.order import Order
from app.utils.email import send_delivery_otp_email, send_order_status_email
from app.utils.status_mapping import format_status_for_display

logger = logging.getLogger(__name__)

_notifier_instance = None


def _log_failure(future: Future) -> None:
    error = future.exception()
    if error is not None:
        logger.error(f"Notification failed: {error}", exc_info=error)


class EmailNotifier:
    def __init__(self, executor: Optional[ThreadPoolExecutor] = None):
        self.executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="notify")

    def _submit(self, fn, *args) -> None:
        future = self.executor.submit(fn, *args)
        future.add_done_callback(_log_failure)

    @staticmethod
    def _customer_email(order: Order) -> Optional[str]:
        return order.user.email if order.user else None

    def send_delivery_otp(self, order: Order, code: str) -> None:
        email = self._customer_email(order)
        if not email:
            logger.warning(f"Order {order.id} has no customer email; delivery OTP not sent")
            return
        self._submit(send_delivery_otp_email, email, order.order_number, code)

    def order_status_changed(self, order: Order, previous_status: Optional[str]) -> None:
        email = self._customer_email(order)
        if not email:
            return
        # Values are read here; the ORM instance must not cross threads
        self._submit(send_order_status_email, email, order.order_number, format_status_for_display(order.status))


def get_notifier() -> EmailNotifier:
    global _notifier_instance
    if _notifier_instance is None:
        _notifier_instance = EmailNotifier()
    return _notifier_instance
