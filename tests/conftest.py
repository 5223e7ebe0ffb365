"""
Shared fixtures: an app on in-memory SQLite with a temporary upload folder
and a mail transport that records messages instead of sending them.
"""
import io
from datetime import timedelta

import pytest

from app import create_app
from auth import create_jwt_token
from config import TestingConfig
from models import db, Booking, Role, Room, User, utcnow

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 64


class RecordingTransport:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, message):
        if self.fail:
            raise RuntimeError('SMTP server unavailable')
        self.sent.append(message)


@pytest.fixture
def app(tmp_path):
    class Config(TestingConfig):
        UPLOAD_FOLDER = str(tmp_path / 'uploads')

    app = create_app(Config)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def mailbox(app):
    transport = RecordingTransport()
    app.extensions['notifier'].transport = transport
    return transport


def make_user(app, name, email, role=Role.GUEST, password='secret123'):
    """Create a user; returns (id, auth headers)"""
    with app.app_context():
        user = User(name=name, email=email, phone='0123456789', role=role)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user.id, {'Authorization': f'Bearer {create_jwt_token(user)}'}


def make_room(app, number='101', room_type='Standard', price=100, capacity=2, floor=1):
    with app.app_context():
        room = Room(room_number=number, room_type=room_type, price=price, capacity=capacity,
                    floor=floor, description='Quiet room facing the garden')
        db.session.add(room)
        db.session.commit()
        return room.id


def add_booking(app, room_id, user_id, start_days, nights, status='Pending', payment_status='Pending'):
    """Insert a booking directly, bypassing the create-time checks"""
    with app.app_context():
        check_in = utcnow() + timedelta(days=start_days)
        booking = Booking(room_id=room_id, user_id=user_id, check_in=check_in,
                          check_out=check_in + timedelta(days=nights), status=status,
                          payment_method='BankTransfer', payment_proof='/uploads/payment_proofs/p.png',
                          payment_status=payment_status, total_price=100 * nights)
        db.session.add(booking)
        db.session.commit()
        return booking.id


def proof_image(name='proof.png', content=PNG_BYTES):
    return (io.BytesIO(content), name)


@pytest.fixture
def guest(app):
    user_id, headers = make_user(app, 'John Doe', 'john@example.com')
    return {'id': user_id, 'headers': headers}


@pytest.fixture
def manager(app):
    user_id, headers = make_user(app, 'Maria Manager', 'maria@hotel.test', role=Role.MANAGER)
    return {'id': user_id, 'headers': headers}


@pytest.fixture
def receptionist(app):
    user_id, headers = make_user(app, 'Rita Reception', 'rita@hotel.test', role=Role.RECEPTIONIST)
    return {'id': user_id, 'headers': headers}


@pytest.fixture
def room(app):
    return make_room(app)
