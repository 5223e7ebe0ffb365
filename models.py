# Database Models for the Hotel Management API
import math
from datetime import datetime, timezone
from enum import IntEnum

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import validates
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()


def utcnow():
    """Naive UTC timestamp, the form every datetime column is stored in"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Role(IntEnum):
    GUEST = 0
    MANAGER = 1
    RECEPTIONIST = 2


# Authorization sets, checked by membership
MANAGERS = frozenset({Role.MANAGER})
STAFF = frozenset({Role.MANAGER, Role.RECEPTIONIST})
BOOKERS = frozenset({Role.GUEST, Role.RECEPTIONIST})

ROOM_TYPES = ('Suite', 'Superior', 'Deluxe', 'Standard')
ROOM_STATUSES = ('Available', 'Maintenance', 'Unavailable')
BOOKING_STATUSES = ('Pending', 'Confirmed', 'Failed', 'Cancelled', 'Archived')
PAYMENT_METHODS = ('BankTransfer',)
PAYMENT_STATUSES = ('Pending', 'Paid', 'Failed', 'Cancelled')


def normalize_name(name):
    """Lowercase and strip all whitespace"""
    return ''.join(name.lower().split())


def stay_duration(check_in, check_out):
    """Whole days between check-in and check-out, rounded half up"""
    if check_in is None or check_out is None:
        return None
    days = (check_out - check_in).total_seconds() / 86400
    return math.floor(days + 0.5)


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    """Hotel account: guests and staff"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    normalized_name = db.Column(db.String(100), index=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(30), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    profile_picture = db.Column(db.String(500), nullable=True)
    role_code = db.Column('role', db.Integer, nullable=False, default=int(Role.GUEST), index=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    bookings = db.relationship('Booking', back_populates='user', lazy=True)

    @validates('name')
    def _sync_normalized_name(self, key, value):
        self.normalized_name = normalize_name(value) if value else None
        return value

    @property
    def role(self):
        return Role(self.role_code if self.role_code is not None else Role.GUEST)

    @role.setter
    def role(self, value):
        self.role_code = int(Role(value))

    def set_password(self, password):
        self.password_hash = generate_password_hash(password, method='pbkdf2:sha256')

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': int(self.role),
            'phone': self.phone,
            'address': self.address,
            'profilePicture': self.profile_picture,
            'createdAt': _iso(self.created_at),
        }

    def summary(self):
        return {'id': self.id, 'name': self.name}


# Append-only history of bookings made on a room
room_booking_refs = db.Table(
    'room_booking_refs',
    db.Column('room_id', db.Integer, db.ForeignKey('rooms.id'), primary_key=True),
    db.Column('booking_id', db.Integer, db.ForeignKey('bookings.id'), primary_key=True),
)


class Room(db.Model):
    """Room inventory"""
    __tablename__ = 'rooms'

    id = db.Column(db.Integer, primary_key=True)
    room_number = db.Column(db.String(20), unique=True, nullable=False)
    room_type = db.Column(db.String(20), nullable=False)  # Suite, Superior, Deluxe, Standard
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    status = db.Column(db.String(20), nullable=False, default='Available')  # Available, Maintenance, Unavailable
    images = db.Column(db.JSON, nullable=False, default=list)
    description = db.Column(db.Text, nullable=False)
    floor = db.Column(db.Integer, nullable=False)
    capacity = db.Column(db.Integer, nullable=False, default=1)
    amenities = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Informational only, availability is computed from bookings.room_id
    bookings = db.relationship('Booking', secondary=room_booking_refs, lazy='select', order_by='Booking.id')

    @property
    def booking_count(self):
        return len(self.bookings)

    def to_dict(self):
        return {
            'id': self.id,
            'room_number': self.room_number,
            'room_type': self.room_type,
            'price': float(self.price) if self.price is not None else 0,
            'status': self.status,
            'images': list(self.images or []),
            'description': self.description,
            'floor': self.floor,
            'capacity': self.capacity,
            'amenities': list(self.amenities or []),
            'createdAt': _iso(self.created_at),
        }

    def summary(self):
        return {
            'id': self.id,
            'room_number': self.room_number,
            'room_type': self.room_type,
            'images': list(self.images or []),
        }


class Booking(db.Model):
    """Booking of one room by one user"""
    __tablename__ = 'bookings'

    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('rooms.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    check_in = db.Column(db.DateTime, nullable=False)
    check_out = db.Column(db.DateTime, nullable=False)

    # Pending, Confirmed, Failed, Cancelled, Archived
    status = db.Column(db.String(20), nullable=False, default='Pending', index=True)

    # Payment
    payment_method = db.Column(db.String(30), nullable=False)
    payment_proof = db.Column(db.String(500), nullable=False)
    payment_status = db.Column(db.String(20), nullable=False, default='Pending')  # Pending, Paid, Failed, Cancelled
    total_price = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    special_requests = db.Column(db.Text, nullable=False, default='None')

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    room = db.relationship('Room', foreign_keys=[room_id], lazy='joined')
    user = db.relationship('User', back_populates='bookings', lazy='joined')

    __table_args__ = (
        db.Index('ix_bookings_room_user_status', 'room_id', 'user_id', 'status'),
    )

    @property
    def duration(self):
        return stay_duration(self.check_in, self.check_out)

    def to_dict(self):
        return {
            'id': self.id,
            'room': self.room.summary() if self.room else self.room_id,
            'user': self.user.summary() if self.user else self.user_id,
            'checkIn': _iso(self.check_in),
            'checkOut': _iso(self.check_out),
            'status': self.status,
            'paymentMethod': self.payment_method,
            'paymentProof': self.payment_proof,
            'paymentStatus': self.payment_status,
            'totalPrice': float(self.total_price) if self.total_price is not None else 0,
            'specialRequests': self.special_requests,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
            'duration': self.duration,
        }
