import threading
from flask import current_app
from flask_mail import Message
from extensions import mail
from logger import ledger_logger as logger


def _send(app, msg):
    with app.app_context():
        try:
            mail.send(msg)
            logger.info(f"Email sent to {', '.join(msg.recipients)}: {msg.subject}")
        except Exception as e:
            logger.error(f"Email sending failed: {e}")


class WithdrawalNotifier:

    @staticmethod
    def build_message(withdrawal, user, recipient):
        site = current_app.config.get("SITE_NAME", "HIGHTECH")
        body = (
            f"A new {withdrawal.type} withdrawal request is waiting for approval.\n\n"
            f"Request ID: {withdrawal.id}\n"
            f"User: {user.name} <{user.email}> (ID {user.id})\n"
            f"Amount: ₦{withdrawal.amount:,}\n"
            f"Bank: {withdrawal.bank}\n"
            f"Account number: {withdrawal.account_number}\n"
            f"Account name: {withdrawal.account_name}\n"
        )
        return Message(
            subject=f"[{site}] Withdrawal request #{withdrawal.id}",
            recipients=[recipient],
            body=body,
        )

    @staticmethod
    def notify_admin(withdrawal, user):
        """
        Email the operator about a queued withdrawal. Never raises: the
        request is already persisted and the email is only a courtesy.
        Returns the thread when sending in the background.
        """
        recipient = current_app.config.get("ADMIN_EMAIL")
        if not recipient:
            logger.info(f"ADMIN_EMAIL not set; no notification for withdrawal {withdrawal.id}")
            return None

        try:
            msg = WithdrawalNotifier.build_message(withdrawal, user, recipient)
        except Exception as e:
            logger.error(f"Could not build withdrawal notification: {e}")
            return None

        app = current_app._get_current_object()
        if app.config.get("MAIL_ASYNC", True):
            thread = threading.Thread(target=_send, args=(app, msg), daemon=True)
            thread.start()
            return thread
        _send(app, msg)
        return None
