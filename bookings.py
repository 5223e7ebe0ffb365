"""
Booking lifecycle and room availability.

A booking is created only when no other booking of the same room overlaps
its [checkIn, checkOut] range. The room row is locked for the duration of the
check-and-insert so that concurrent requests against one database are
serialized (PostgreSQL honours FOR UPDATE; SQLite ignores it). Notifications
are dispatched after the commit and cannot undo it.
"""

import logging
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

from flask import current_app

from errors import ConflictError, NotFoundError, UploadError, ValidationError
from models import (db, Booking, Room, BOOKING_STATUSES, PAYMENT_METHODS,
                    PAYMENT_STATUSES, utcnow)

logger = logging.getLogger(__name__)


def parse_datetime(value, field):
    """ISO-8601 string (or datetime) to a naive UTC datetime"""
    if isinstance(value, datetime):
        dt = value
    else:
        if not value:
            raise ValidationError(f"{field} is required.")
        try:
            dt = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 date")
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_price(value):
    if value is None or value == '':
        raise ValidationError('Total price is required')
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError('Total price must be a number')
    if not price.is_finite() or price < 0:
        raise ValidationError('Total price must be a positive number')
    return price


def _choice(value, allowed, field):
    if value not in allowed:
        raise ValidationError(f"Invalid {field}: {value}")
    return value


# ============================================
# AVAILABILITY
# ============================================

def is_available(room_id, check_in, check_out, released_statuses=None):
    """True iff no booking of the room overlaps [check_in, check_out].

    Bookings whose status is in ``released_statuses`` (by default the
    RELEASED_BOOKING_STATUSES setting) do not block the room.
    """
    if released_statuses is None:
        released_statuses = current_app.config.get('RELEASED_BOOKING_STATUSES', ())

    query = Booking.query.filter(
        Booking.room_id == room_id,
        Booking.check_in <= check_out,
        Booking.check_out >= check_in,
    )
    if released_statuses:
        query = query.filter(Booking.status.notin_(tuple(released_statuses)))
    return query.count() == 0


def booked_dates(room_id):
    """All (checkIn, checkOut) pairs of a room, whatever their status"""
    rows = db.session.query(Booking.check_in, Booking.check_out).filter(
        Booking.room_id == room_id
    ).order_by(Booking.check_in).all()
    return [{'checkIn': check_in.isoformat(), 'checkOut': check_out.isoformat()}
            for check_in, check_out in rows]


# ============================================
# LIFECYCLE
# ============================================

def _notify(booking):
    notifier = current_app.extensions.get('notifier')
    if notifier is not None:
        notifier.notify(booking)


def create_booking(room_id, user_id, check_in, check_out, payment_method,
                   total_price, special_requests, payment_proof_file):
    """Store the payment proof, check availability, persist, then notify"""
    if payment_proof_file is None or not payment_proof_file.filename:
        raise UploadError('Payment proof is required.')
    payment_proof = current_app.extensions['blob_store'].save(payment_proof_file, 'payment_proofs')

    room = Room.query.filter_by(id=room_id).with_for_update().first()
    if not room:
        raise NotFoundError('Room not found')

    if not payment_method:
        raise ValidationError('Payment method is required.')
    _choice(payment_method, PAYMENT_METHODS, 'payment method')

    check_in = parse_datetime(check_in, 'checkIn')
    check_out = parse_datetime(check_out, 'checkOut')
    if check_in < utcnow():
        raise ValidationError('Check-in date cannot be in the past.')
    if check_out <= check_in:
        raise ValidationError('Check-out date must be after check-in date.')
    price = parse_price(total_price)

    if not is_available(room.id, check_in, check_out):
        raise ConflictError('Room not available for the specified dates')

    booking = Booking(
        room_id=room.id,
        user_id=user_id,
        check_in=check_in,
        check_out=check_out,
        status='Pending',
        payment_method=payment_method,
        payment_proof=payment_proof,
        payment_status='Pending',
        total_price=price,
        special_requests=special_requests or 'None',
    )
    db.session.add(booking)
    room.bookings.append(booking)
    db.session.commit()
    logger.info("Booking %s created for room %s (%s -> %s)",
                booking.id, room.room_number, check_in, check_out)

    _notify(booking)
    return booking


@dataclass
class BookingPatch:
    """Fields of a booking update; None means 'leave unchanged'"""
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    status: Optional[str] = None
    payment_method: Optional[str] = None
    payment_status: Optional[str] = None
    payment_proof: Optional[str] = None
    total_price: Optional[Decimal] = None
    special_requests: Optional[str] = None

    @classmethod
    def from_mapping(cls, data):
        """Parse request data; absent or empty fields stay None"""
        def present(key):
            value = data.get(key)
            return None if value is None or value == '' else value

        patch = cls()
        if present('checkIn') is not None:
            patch.check_in = parse_datetime(data['checkIn'], 'checkIn')
        if present('checkOut') is not None:
            patch.check_out = parse_datetime(data['checkOut'], 'checkOut')
        if present('status') is not None:
            patch.status = _choice(data['status'], BOOKING_STATUSES, 'booking status')
        if present('paymentMethod') is not None:
            patch.payment_method = _choice(data['paymentMethod'], PAYMENT_METHODS, 'payment method')
        if present('paymentStatus') is not None:
            patch.payment_status = _choice(data['paymentStatus'], PAYMENT_STATUSES, 'payment status')
        if present('paymentProof') is not None:
            patch.payment_proof = str(data['paymentProof'])
        if present('totalPrice') is not None:
            patch.total_price = parse_price(data['totalPrice'])
        if present('specialRequests') is not None:
            patch.special_requests = str(data['specialRequests'])
        return patch

    def changes(self):
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


def apply_patch(booking, patch):
    """Merge the present fields of ``patch`` into ``booking``"""
    changes = patch.changes()
    if 'check_in' in changes and changes['check_in'] < utcnow():
        raise ValidationError('Check-in date cannot be in the past.')
    check_in = changes.get('check_in', booking.check_in)
    check_out = changes.get('check_out', booking.check_out)
    if check_out <= check_in:
        raise ValidationError('Check-out date must be after check-in date.')

    for name, value in changes.items():
        setattr(booking, name, value)
    return sorted(changes)


def update_booking(booking_id, patch):
    """Partial update. Date overlap is not re-checked."""
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFoundError('Booking not found')

    changed = apply_patch(booking, patch)
    db.session.commit()
    logger.info("Booking %s updated: %s", booking.id, ', '.join(changed) or 'no changes')

    _notify(booking)
    return booking


def get_booking(booking_id):
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFoundError('Booking Not Found')
    return booking
