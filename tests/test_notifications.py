from concurrent.futures import Future

from app.utils import email as email_utils
from app.utils import notifications
from app.utils.notifications import EmailNotifier


class InlineExecutor:
    """Runs submitted work immediately"""

    def submit(self, fn, *args):
        future = Future()
        try:
            future.set_result(fn(*args))
        except Exception as e:
            future.set_exception(e)
        return future


def test_status_change_email(db_session, make_order, monkeypatch):
    sent = []
    monkeypatch.setattr(notifications, "send_order_status_email", lambda *args: sent.append(args))
    order = make_order(status="In Transit")

    EmailNotifier(executor=InlineExecutor()).order_status_changed(order, "processing")

    assert sent == [("rahim@example.com", order.order_number, "In Transit")]


def test_delivery_otp_email(db_session, make_order, monkeypatch):
    sent = []
    monkeypatch.setattr(notifications, "send_delivery_otp_email", lambda *args: sent.append(args))
    order = make_order()

    EmailNotifier(executor=InlineExecutor()).send_delivery_otp(order, "482913")

    assert sent == [("rahim@example.com", order.order_number, "482913")]


def test_send_failure_is_logged_not_raised(db_session, make_order, monkeypatch, caplog):
    def explode(*args):
        raise RuntimeError("smtp down")

    monkeypatch.setattr(notifications, "send_order_status_email", explode)
    order = make_order(status="delivered")

    EmailNotifier(executor=InlineExecutor()).order_status_changed(order, "shipped")

    assert "Notification failed" in caplog.text


def test_order_without_customer_email_is_skipped(db_session, make_order, monkeypatch):
    sent = []
    monkeypatch.setattr(notifications, "send_delivery_otp_email", lambda *args: sent.append(args))
    order = make_order(user_id=None)

    EmailNotifier(executor=InlineExecutor()).send_delivery_otp(order, "482913")

    assert sent == []


def test_otp_email_has_plain_and_html_parts():
    message = email_utils.build_message("rahim@example.com", "Code", "plain body", "<b>html</b>")

    parts = message.get_payload()
    assert [part.get_content_type() for part in parts] == ["text/plain", "text/html"]
    assert message["To"] == "rahim@example.com"


def test_send_email_without_smtp_credentials(monkeypatch):
    monkeypatch.setattr(email_utils.settings, "SMTP_USER", "")
    monkeypatch.setattr(email_utils.settings, "SMTP_PASSWORD", "")

    assert email_utils.send_email("rahim@example.com", "Subject", "body") is False
