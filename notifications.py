"""
Booking notification emails.

``NotificationGateway.notify`` is best-effort: it never raises into the
caller. Delivery runs on a daemon thread when NOTIFY_ASYNC is set, and is
attempted NOTIFY_MAX_ATTEMPTS times (default once, no retry).
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from threading import Thread

from markupsafe import escape

from models import db, User, Room

logger = logging.getLogger(__name__)


class EmailTransport:
    """Interface for mail delivery"""

    def send(self, message):
        raise NotImplementedError


class SmtpTransport(EmailTransport):
    def __init__(self, host, port, username='', password='', use_tls=True):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def send(self, message):
        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(message)


class LogTransport(EmailTransport):
    """Writes messages to the log instead of sending them"""

    def send(self, message):
        logger.info("Mail to %s: %s", message['To'], message['Subject'])


def _row(label, value):
    return (f'<tr><td style="border: 1px solid #ddd; padding: 8px;">{label}</td>'
            f'<td style="border: 1px solid #ddd; padding: 8px;">{escape(value)}</td></tr>')


def build_booking_message(booking, user, room, sender, hotel_name):
    """Plain-text + HTML 'Booking <status>' email for the guest and the front desk"""
    recipients = [user.email] + ([sender] if sender else [])

    msg = MIMEMultipart('alternative')
    msg['Subject'] = f"Booking {booking.status}"
    msg['From'] = sender
    msg['To'] = ', '.join(recipients)

    text = (
        f"Your booking has been {booking.status}!\n\n"
        f"Booking Details:\n"
        f"Your booking id: {booking.id}\n"
        f"Booked by: {user.name}\n"
        f"Room number: {room.room_number}\n"
        f"Check-in: {booking.check_in:%Y-%m-%d %H:%M}\n"
        f"Check-out: {booking.check_out:%Y-%m-%d %H:%M}\n"
        f"Total Price: {booking.total_price}\n"
        f"Booking status: {booking.status}\n"
        f"Payment method: {booking.payment_method}\n"
        f"Payment status: {booking.payment_status}\n"
    )

    rows = ''.join([
        _row('Booking id:', booking.id),
        _row('Booked by:', user.name),
        _row('Room number:', room.room_number),
        _row('Check-in:', f"{booking.check_in:%Y-%m-%d %H:%M}"),
        _row('Check-out:', f"{booking.check_out:%Y-%m-%d %H:%M}"),
        _row('Total Price:', booking.total_price),
        _row('Booking status:', booking.status),
        _row('Payment method:', booking.payment_method),
        _row('Payment status:', booking.payment_status),
    ])
    proof = ''
    if booking.payment_proof:
        proof = (f'<p style="margin-top: 20px;">Attached is the proof of payment:</p>'
                 f'<img src="{escape(booking.payment_proof)}" alt="Payment Proof" style="max-width: 400px;">')
    html = f"""
    <div style="font-family: Arial, sans-serif; color: #333;">
        <h2 style="color: #0066cc;">Booking {escape(booking.status)}</h2>
        <p>Dear {escape(user.name)},</p>
        <p>Thank you for choosing our hotel. Here are the details of your booking:</p>
        <table style="width: 100%; border-collapse: collapse;">{rows}</table>
        {proof}
        <p>Best regards,</p>
        <p><strong>{escape(hotel_name)}</strong></p>
    </div>
    """

    msg.attach(MIMEText(text, 'plain'))
    msg.attach(MIMEText(html, 'html'))
    return msg


class NotificationGateway:
    def __init__(self, transport, sender='', hotel_name='', run_async=True, max_attempts=1):
        self.transport = transport
        self.sender = sender
        self.hotel_name = hotel_name
        self.run_async = run_async
        self.max_attempts = max(1, max_attempts)

    def notify(self, booking):
        """Send the booking email. Failures are logged, never raised."""
        try:
            user = db.session.get(User, booking.user_id)
            room = db.session.get(Room, booking.room_id)
            if user is None or room is None:
                logger.warning("Booking %s: user or room missing, notification skipped", booking.id)
                return
            message = build_booking_message(booking, user, room, self.sender, self.hotel_name)
        except Exception:
            logger.exception("Building notification for booking %s failed", booking.id)
            return

        if self.run_async:
            Thread(target=self._deliver, args=(booking.id, message), daemon=True).start()
        else:
            self._deliver(booking.id, message)

    def _deliver(self, booking_id, message):
        for attempt in range(1, self.max_attempts + 1):
            try:
                self.transport.send(message)
                logger.info("Booking %s notification sent", booking_id)
                return
            except Exception:
                logger.exception("Booking %s notification failed (attempt %d/%d)",
                                 booking_id, attempt, self.max_attempts)


def init_notifications(app):
    """Attach the configured notification gateway to the app"""
    config = app.config
    if config['MAIL_BACKEND'] == 'smtp':
        transport = SmtpTransport(config['MAIL_SERVER'], config['MAIL_PORT'],
                                  config['MAIL_USERNAME'], config['MAIL_PASSWORD'],
                                  config['MAIL_USE_TLS'])
    else:
        transport = LogTransport()

    app.extensions['notifier'] = NotificationGateway(
        transport,
        sender=config['MAIL_SENDER'],
        hotel_name=config['HOTEL_NAME'],
        run_async=config['NOTIFY_ASYNC'],
        max_attempts=config['NOTIFY_MAX_ATTEMPTS'],
    )
    return app.extensions['notifier']
