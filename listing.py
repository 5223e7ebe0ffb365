"""
Filtering, sorting and pagination for booking, room and user listings.

Every listing follows the same steps. Build the filter from the parameters
that were provided. Count the matches. Reject a page past the last one with
NotFoundError. Serialize the matches, sort them (for bookings, possibly on the
derived duration), then slice out the page window.
"""

import math
import re
from collections import namedtuple

from errors import NotFoundError, ValidationError
from models import Booking, Role, Room, User, normalize_name

Page = namedtuple('Page', ['items', 'total', 'total_pages', 'current_page'])

BOOKING_SORT_FIELDS = {'createdAt', 'updatedAt', 'checkIn', 'checkOut', 'totalPrice',
                       'status', 'paymentStatus', 'duration', 'id'}
ROOM_SORT_FIELDS = {'createdAt', 'room_number', 'room_type', 'price', 'status', 'floor', 'capacity'}
USER_SORT_FIELDS = {'createdAt', 'name', 'email', 'role'}


def _int_param(args, name, default=None, minimum=None):
    raw = args.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{name} must be at least {minimum}")
    return value


def _float_param(args, name):
    raw = args.get(name)
    if raw is None or raw == '':
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number")


def page_params(args, default_limit=10):
    return (_int_param(args, 'page', 1, minimum=1),
            _int_param(args, 'limit', default_limit, minimum=1))


def _sortable(value):
    return (value is None, value)


def paginate(query, page, limit, serialize, sort_key=None, descending=False,
             predicate=None, not_found='Page Not Found'):
    """Count, bounds-check, sort and slice one page of ``query``"""
    if predicate is None:
        total = query.count()
        objects = None
    else:
        objects = [obj for obj in query.all() if predicate(obj)]
        total = len(objects)

    total_pages = math.ceil(total / limit)
    if page > total_pages:
        raise NotFoundError(not_found)

    if objects is None:
        objects = query.all()
    rows = [serialize(obj) for obj in objects]
    if sort_key:
        rows.sort(key=lambda row: _sortable(row.get(sort_key)), reverse=descending)

    start = (page - 1) * limit
    return Page(rows[start:start + limit], total, total_pages, page)


def fuzzy_pattern(text):
    """Regex requiring every character of ``text``, in any order"""
    chars = [c for c in text if not c.isspace()]
    return re.compile(''.join(f'(?=.*{re.escape(c)})' for c in chars), re.IGNORECASE)


def _sort_field(value, allowed):
    if value not in allowed:
        raise ValidationError(f"Cannot sort by '{value}'")
    return value


def booking_sort(sort_by, order):
    """Map sortBy/sortOrder to (key, descending); longest/shortest sort on duration"""
    if order == 'longest':
        return 'duration', True
    if order == 'shortest':
        return 'duration', False
    if not sort_by:
        return None, False
    return _sort_field(sort_by, BOOKING_SORT_FIELDS), order != 'asc'


# ============================================
# BOOKINGS
# ============================================

def list_all_bookings(args):
    """Staff listing with roomNumber, userName, bookingStatus, paymentStatus, bookingId filters"""
    page, limit = page_params(args)
    query = Booking.query

    user_name = args.get('userName')
    if user_name:
        user = User.query.filter_by(normalized_name=normalize_name(user_name)).first()
        if not user:
            raise NotFoundError('User not found')
        query = query.filter(Booking.user_id == user.id)

    if args.get('bookingStatus'):
        query = query.filter(Booking.status == args['bookingStatus'])

    if args.get('paymentStatus'):
        query = query.filter(Booking.payment_status == args['paymentStatus'])

    room_number = args.get('roomNumber')
    if room_number:
        room = Room.query.filter_by(room_number=room_number).first()
        if not room:
            raise NotFoundError('Room not found')
        query = query.filter(Booking.room_id == room.id)

    booking_id = _int_param(args, 'bookingId')
    if booking_id is not None:
        query = query.filter(Booking.id == booking_id)

    sort_key, descending = booking_sort(args.get('sortBy', 'createdAt'), args.get('sortOrder', 'desc'))
    return paginate(query.order_by(Booking.id), page, limit, Booking.to_dict,
                    sort_key, descending, not_found='No booking found with such query')


def list_my_bookings(user_id, args):
    """The caller's own bookings, optionally filtered by status"""
    page, limit = page_params(args)
    query = Booking.query.filter(Booking.user_id == user_id)
    if args.get('status'):
        query = query.filter(Booking.status == args['status'])

    sort_key, descending = booking_sort(args.get('sortBy'), args.get('orderBy'))
    return paginate(query.order_by(Booking.id), page, limit, Booking.to_dict,
                    sort_key, descending)


# ============================================
# ROOMS
# ============================================

def list_rooms(args):
    """Public room listing; roomNumber takes priority over the other filters"""
    page, limit = page_params(args)
    query = Room.query

    room_number = args.get('roomNumber')
    if room_number:
        escaped = room_number.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
        query = query.filter(Room.room_number.ilike(f'%{escaped}%', escape='\\'))
    else:
        if args.get('roomType'):
            query = query.filter(Room.room_type == args['roomType'])
        if args.get('status'):
            query = query.filter(Room.status == args['status'])
        min_price = _float_param(args, 'minPrice')
        if min_price is not None:
            query = query.filter(Room.price >= min_price)
        max_price = _float_param(args, 'maxPrice')
        if max_price is not None:
            query = query.filter(Room.price <= max_price)
        capacity = _int_param(args, 'capacity')
        if capacity is not None:
            query = query.filter(Room.capacity == capacity)
        floor = _int_param(args, 'floor')
        if floor is not None:
            query = query.filter(Room.floor == floor)

    sort_key = _sort_field(args.get('sortBy', 'createdAt'), ROOM_SORT_FIELDS)
    descending = args.get('sortOrder', 'desc') != 'asc'
    return paginate(query.order_by(Room.id), page, limit, Room.to_dict, sort_key, descending)


# ============================================
# USERS
# ============================================

def list_users(args):
    """Manager listing with role filter and fuzzy name search"""
    page, limit = page_params(args)
    query = User.query

    role = _int_param(args, 'filterByRole')
    if role is not None:
        if role not in {r.value for r in Role}:
            raise ValidationError('Invalid role')
        query = query.filter(User.role_code == role)

    predicate = None
    name = args.get('name')
    if name and name.strip():
        pattern = fuzzy_pattern(name)

        def predicate(user):
            return bool(pattern.match(user.name or '') or pattern.match(user.normalized_name or ''))

    sort_key = _sort_field(args.get('sortBy', 'createdAt'), USER_SORT_FIELDS)
    descending = args.get('sortOrder', 'desc') != 'asc'
    return paginate(query.order_by(User.id), page, limit, User.to_dict, sort_key, descending,
                    predicate=predicate)
