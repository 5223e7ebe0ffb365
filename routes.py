"""
HTTP routes: users/auth, rooms and bookings.

Views parse the request, call into the services and wrap results in the
``{status, message, data, ...}`` envelope. Errors are raised as ApiError and
rendered by the handlers registered in app.py.
"""

import logging

from flask import Blueprint, current_app, g, jsonify, request

import bookings
import listing
from auth import create_jwt_token, login_required, roles_required
from errors import ConflictError, NotFoundError, UploadError, ValidationError
from models import (db, Booking, Room, User, BOOKERS, MANAGERS, STAFF,
                    ROOM_STATUSES, ROOM_TYPES)

logger = logging.getLogger(__name__)

users_api = Blueprint('users', __name__)
rooms_api = Blueprint('rooms', __name__)
bookings_api = Blueprint('bookings', __name__)


def _payload():
    """JSON body, or the form for multipart requests"""
    return request.get_json(silent=True) or request.form


def _page_response(page, message, total_key):
    return jsonify({
        'status': 'success',
        'message': message,
        'data': page.items,
        total_key: page.total,
        'totalPages': page.total_pages,
        'currentPage': page.current_page,
    })


# ============================================
# USERS / AUTH
# ============================================

def _validate_user_fields(name=None, phone=None, address=None, password=None):
    if name is not None and len(name.strip()) < 5:
        raise ValidationError('Name must have at least 5 characters')
    if phone is not None and len(phone.strip()) < 9:
        raise ValidationError('Phone number must have at least 9 characters')
    if address is not None and len(address.strip()) < 15:
        raise ValidationError('Address must have at least 15 characters')
    if password is not None and len(password) < 8:
        raise ValidationError('Password must have at least 8 characters')


@users_api.route('/register', methods=['POST'])
def register():
    """Register a new guest account"""
    data = _payload()
    name = (data.get('name') or '').strip()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    phone = (data.get('phone') or '').strip()

    if not name or not email or not password or not phone:
        raise ValidationError('Name, email, password and phone are required')
    _validate_user_fields(name=name, phone=phone, password=password)

    if User.query.filter_by(email=email).first():
        raise ConflictError('Email already exists')

    user = User(name=name, email=email, phone=phone)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    logger.info("Registered user %s", user.id)

    return jsonify({
        'status': 'success',
        'message': 'New user created',
        'data': {'id': user.id, 'name': user.name, 'email': user.email, 'role': int(user.role)},
    }), 201


@users_api.route('/login', methods=['POST'])
def login():
    """Login - returns JWT token"""
    data = _payload()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not email or not password:
        raise ValidationError('Both email and password are required')

    user = User.query.filter_by(email=email).first()
    if not user:
        raise NotFoundError('Email has not registered')
    if not user.check_password(password):
        raise ValidationError('Wrong Password')

    return jsonify({
        'status': 'success',
        'message': 'logged in successfully',
        'data': user.to_dict(),
        'accessToken': create_jwt_token(user),
    })


@users_api.route('/me')
@login_required
def me():
    return jsonify({
        'status': 'success',
        'message': 'User info retrieved successfully',
        'data': g.user.to_dict(),
    })


@users_api.route('/all-users')
@roles_required(MANAGERS)
def all_users():
    page = listing.list_users(request.args)
    return _page_response(page, 'All users list received', 'totalUsers')


@users_api.route('/upload-pfp', methods=['POST'])
@login_required
def upload_profile_picture():
    file = request.files.get('profilePicture')
    if file is None or not file.filename:
        raise UploadError('No file selected!')

    g.user.profile_picture = current_app.extensions['blob_store'].save(file, 'profile_pics')
    db.session.commit()

    return jsonify({
        'status': 'success',
        'message': 'Profile picture uploaded!',
        'data': g.user.to_dict(),
    })


@users_api.route('/update-user-info', methods=['PATCH'])
@login_required
def update_user_info():
    data = _payload()
    name = data.get('name') or None
    phone = data.get('phone') or None
    address = data.get('address') or None
    _validate_user_fields(name=name, phone=phone, address=address)

    user = g.user
    if name:
        user.name = name.strip()
    if phone:
        user.phone = phone.strip()
    if address:
        user.address = address.strip()
    db.session.commit()

    return jsonify({
        'status': 'success',
        'message': 'Info updated successfully',
        'data': {'id': user.id, 'name': user.name, 'phone': user.phone, 'address': user.address},
    })


@users_api.route('/update-user-psw', methods=['PATCH'])
@login_required
def update_user_password():
    data = _payload()
    old_password = data.get('oldPassword') or ''
    new_password = data.get('newPassword') or ''

    if not old_password or not new_password:
        raise ValidationError('Enter both old and new passwords')
    if not g.user.check_password(old_password):
        raise ValidationError('Invalid old password')
    _validate_user_fields(password=new_password)

    g.user.set_password(new_password)
    db.session.commit()

    return jsonify({
        'status': 'success',
        'message': 'Password updated successfully',
        'data': g.user.to_dict(),
    })


@users_api.route('/delete-user/<int:user_id>', methods=['DELETE'])
@roles_required(MANAGERS)
def delete_user(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError('User not found')
    if Booking.query.filter_by(user_id=user.id).count():
        raise ConflictError('User has bookings and cannot be deleted')

    db.session.delete(user)
    db.session.commit()
    return jsonify({'status': 'success', 'message': 'User deleted successfully'})


# ============================================
# ROOMS
# ============================================

def _list_field(data, key):
    if hasattr(data, 'getlist'):
        values = data.getlist(key)
        if len(values) == 1 and ',' in values[0]:
            values = values[0].split(',')
    else:
        values = data.get(key) or []
        if isinstance(values, str):
            values = values.split(',')
    return [str(v).strip() for v in values if str(v).strip()]


def _number(data, key, cast, minimum, message):
    try:
        value = cast(data.get(key))
    except (TypeError, ValueError):
        raise ValidationError(message)
    if minimum is not None and value < minimum:
        raise ValidationError(message)
    return value


def _room_fields(data, partial=False):
    """Validate room fields; with ``partial`` only the present ones"""
    fields = {}

    def given(key):
        return key in data and data.get(key) not in (None, '')

    for key in ('room_number', 'room_type', 'price', 'description', 'floor', 'capacity'):
        if not partial and not given(key):
            raise ValidationError(f"{key} is required")

    if given('room_number'):
        fields['room_number'] = str(data.get('room_number')).strip()
    if given('room_type'):
        if data.get('room_type') not in ROOM_TYPES:
            raise ValidationError('Invalid room type')
        fields['room_type'] = data.get('room_type')
    if given('status'):
        if data.get('status') not in ROOM_STATUSES:
            raise ValidationError('Invalid status value')
        fields['status'] = data.get('status')
    if given('price'):
        fields['price'] = _number(data, 'price', float, 0, 'Price must be a positive number')
    if given('floor'):
        fields['floor'] = _number(data, 'floor', int, None, 'Floor must be an integer')
    if given('capacity'):
        fields['capacity'] = _number(data, 'capacity', int, 1, 'Capacity must be at least 1 guest')
    if given('description'):
        fields['description'] = str(data.get('description'))
    if given('amenities'):
        fields['amenities'] = _list_field(data, 'amenities')
    if given('images'):
        fields['images'] = _list_field(data, 'images')
    return fields


def _store_room_images():
    store = current_app.extensions['blob_store']
    return [store.save(f, 'room_images') for f in request.files.getlist('images') if f.filename]


@rooms_api.route('/all')
def all_rooms():
    page = listing.list_rooms(request.args)
    return _page_response(page, 'All rooms received', 'totalRooms')


@rooms_api.route('/one/<int:room_id>')
def get_room(room_id):
    room = db.session.get(Room, room_id)
    if not room:
        raise NotFoundError('Room Not Found')
    return jsonify({'status': 'success', 'message': 'Room retrieved successfully', 'data': room.to_dict()})


@rooms_api.route('/new', methods=['POST'])
@roles_required(STAFF)
def create_room():
    data = _payload()
    fields = _room_fields(data)

    if Room.query.filter_by(room_number=fields['room_number']).first():
        raise ConflictError('Room with this room number already exists. Please choose another room number')

    uploaded = _store_room_images()
    if uploaded:
        fields['images'] = uploaded

    room = Room(**fields)
    db.session.add(room)
    db.session.commit()
    logger.info("Room %s created", room.room_number)

    return jsonify({'status': 'success', 'message': 'Room successfully created', 'data': room.to_dict()}), 201


@rooms_api.route('/update/<int:room_id>', methods=['PATCH'])
@roles_required(STAFF)
def update_room(room_id):
    room = db.session.get(Room, room_id)
    if not room:
        raise NotFoundError('Room not found')

    fields = _room_fields(_payload(), partial=True)
    number = fields.get('room_number')
    if number and number != room.room_number and Room.query.filter_by(room_number=number).first():
        raise ConflictError('Room with this room number already exists. Please choose another room number')

    uploaded = _store_room_images()
    if uploaded:
        fields['images'] = uploaded

    for key, value in fields.items():
        setattr(room, key, value)
    db.session.commit()

    return jsonify({'status': 'success', 'message': 'Successfully updated room', 'data': room.to_dict()})


@rooms_api.route('/delete/<int:room_id>', methods=['DELETE'])
@roles_required(STAFF)
def delete_room(room_id):
    room = db.session.get(Room, room_id)
    if not room:
        raise NotFoundError('Room not found')
    if Booking.query.filter_by(room_id=room.id).count():
        raise ConflictError('Room has bookings and cannot be deleted')

    db.session.delete(room)
    db.session.commit()
    return jsonify({'status': 'success', 'message': 'Room deleted successfully'})


# ============================================
# BOOKINGS
# ============================================

@bookings_api.route('/all')
@roles_required(STAFF)
def all_bookings():
    page = listing.list_all_bookings(request.args)
    return _page_response(page, 'All bookings list received', 'totalBookings')


@bookings_api.route('/my')
@login_required
def my_bookings():
    page = listing.list_my_bookings(g.user.id, request.args)
    return _page_response(page, 'My Bookings', 'totalBookings')


@bookings_api.route('/one/<int:booking_id>')
@roles_required(STAFF)
def get_booking(booking_id):
    booking = bookings.get_booking(booking_id)
    return jsonify({
        'status': 'success',
        'message': 'Booking retrieved successfully',
        'data': booking.to_dict(),
    })


@bookings_api.route('/booked-dates/<int:room_id>')
def booked_dates(room_id):
    return jsonify({'status': 'success', 'data': bookings.booked_dates(room_id)})


@bookings_api.route('/new/<int:room_id>', methods=['POST'])
@roles_required(BOOKERS)
def create_booking(room_id):
    form = request.form
    booking = bookings.create_booking(
        room_id=room_id,
        user_id=g.user.id,
        check_in=form.get('checkIn'),
        check_out=form.get('checkOut'),
        payment_method=form.get('paymentMethod'),
        total_price=form.get('totalPrice'),
        special_requests=form.get('specialRequests'),
        payment_proof_file=request.files.get('paymentProof'),
    )
    return jsonify({
        'status': 'success',
        'message': 'Booked successfully',
        'data': booking.to_dict(),
        'duration': booking.duration,
    }), 201


@bookings_api.route('/update/<int:booking_id>', methods=['PATCH'])
@roles_required(STAFF)
def update_booking(booking_id):
    patch = bookings.BookingPatch.from_mapping(_payload())
    booking = bookings.update_booking(booking_id, patch)
    return jsonify({
        'status': 'success',
        'message': 'Booking updated successfully',
        'data': booking.to_dict(),
    })
