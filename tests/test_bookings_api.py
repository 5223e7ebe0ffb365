from datetime import timedelta

import pytest

from models import db, Booking, Room, utcnow
from conftest import add_booking, proof_image


def _dates(start_days, end_days):
    now = utcnow()
    return ((now + timedelta(days=start_days)).isoformat(),
            (now + timedelta(days=end_days)).isoformat())


def _booking_form(start_days=1, end_days=3, **overrides):
    check_in, check_out = _dates(start_days, end_days)
    form = {
        'checkIn': check_in,
        'checkOut': check_out,
        'paymentMethod': 'BankTransfer',
        'totalPrice': '200',
        'paymentProof': proof_image(),
    }
    form.update(overrides)
    return {k: v for k, v in form.items() if v is not None}


def _create(client, room_id, headers, **form):
    return client.post(f'/api/v1/bookings/new/{room_id}', data=_booking_form(**form),
                       headers=headers, content_type='multipart/form-data')


def _booking_count(app):
    with app.app_context():
        return Booking.query.count()


# ============================================
# CREATE
# ============================================

def test_create_booking(app, client, guest, room, mailbox):
    resp = _create(client, room, guest['headers'])

    assert resp.status_code == 201
    body = resp.get_json()
    assert body['status'] == 'success'
    assert body['message'] == 'Booked successfully'
    assert body['duration'] == 2
    data = body['data']
    assert data['status'] == 'Pending'
    assert data['paymentStatus'] == 'Pending'
    assert data['duration'] == 2
    assert data['totalPrice'] == 200
    assert data['specialRequests'] == 'None'
    assert data['room']['room_number'] == '101'
    assert data['user']['name'] == 'John Doe'
    assert data['paymentProof'].startswith('/uploads/payment_proofs/')


def test_create_booking_appends_room_reference(app, client, guest, room, mailbox):
    booking_id = _create(client, room, guest['headers']).get_json()['data']['id']
    with app.app_context():
        assert [b.id for b in db.session.get(Room, room).bookings] == [booking_id]


def test_overlapping_booking_is_rejected(app, client, guest, room, mailbox):
    assert _create(client, room, guest['headers']).status_code == 201

    resp = _create(client, room, guest['headers'], start_days=2, end_days=4)

    assert resp.status_code == 400
    assert resp.get_json() == {'status': 'fail', 'message': 'Room not available for the specified dates'}
    assert _booking_count(app) == 1


def test_cancelled_booking_releases_room(app, client, guest, room, mailbox):
    add_booking(app, room, guest['id'], start_days=1, nights=3, status='Cancelled')
    assert _create(client, room, guest['headers'], start_days=2, end_days=4).status_code == 201


def test_cancelled_booking_blocks_room_when_status_blind(app, client, guest, room, mailbox):
    app.config['RELEASED_BOOKING_STATUSES'] = ()
    add_booking(app, room, guest['id'], start_days=1, nights=3, status='Cancelled')
    assert _create(client, room, guest['headers'], start_days=2, end_days=4).status_code == 400


def test_receptionist_can_book(client, receptionist, room, mailbox):
    assert _create(client, room, receptionist['headers']).status_code == 201


def test_unknown_room(app, client, guest, mailbox):
    resp = _create(client, 999, guest['headers'])
    assert resp.status_code == 404
    assert resp.get_json()['message'] == 'Room not found'


def test_payment_method_required(app, client, guest, room, mailbox):
    resp = _create(client, room, guest['headers'], paymentMethod=None)
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'Payment method is required.'
    assert _booking_count(app) == 0


def test_unknown_payment_method(client, guest, room, mailbox):
    resp = _create(client, room, guest['headers'], paymentMethod='Cash')
    assert resp.status_code == 400


def test_payment_proof_required(app, client, guest, room, mailbox):
    resp = _create(client, room, guest['headers'], paymentProof=None)
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'Payment proof is required.'
    assert _booking_count(app) == 0


def test_payment_proof_must_be_image(app, client, guest, room, mailbox):
    resp = _create(client, room, guest['headers'], paymentProof=proof_image('proof.txt', b'hello'))
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'Error: Images Only!'
    assert _booking_count(app) == 0


def test_payment_proof_size_limit(app, client, guest, room, mailbox):
    app.extensions['blob_store'].max_bytes = 10
    resp = _create(client, room, guest['headers'])
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'File too large'
    assert _booking_count(app) == 0


@pytest.mark.parametrize('start_days, end_days, message', [
    (-1, 2, 'Check-in date cannot be in the past.'),
    (3, 3, 'Check-out date must be after check-in date.'),
    (4, 2, 'Check-out date must be after check-in date.'),
])
def test_invalid_dates(client, guest, room, mailbox, start_days, end_days, message):
    resp = _create(client, room, guest['headers'], start_days=start_days, end_days=end_days)
    assert resp.status_code == 400
    assert resp.get_json()['message'] == message


def test_malformed_date(client, guest, room, mailbox):
    form = _booking_form()
    form['checkIn'] = 'next tuesday'
    resp = client.post(f'/api/v1/bookings/new/{room}', data=form, headers=guest['headers'],
                       content_type='multipart/form-data')
    assert resp.status_code == 400


def test_negative_total_price(client, guest, room, mailbox):
    resp = _create(client, room, guest['headers'], totalPrice='-5')
    assert resp.status_code == 400


def test_manager_cannot_book(client, manager, room, mailbox):
    assert _create(client, room, manager['headers']).status_code == 403


def test_booking_requires_login(client, room, mailbox):
    resp = _create(client, room, {})
    assert resp.status_code == 401
    assert resp.get_json()['status'] == 'fail'


# ============================================
# NOTIFICATIONS
# ============================================

def test_create_sends_notification(client, guest, room, mailbox):
    _create(client, room, guest['headers'])

    assert len(mailbox.sent) == 1
    message = mailbox.sent[0]
    assert message['Subject'] == 'Booking Pending'
    assert 'john@example.com' in message['To']
    assert 'frontdesk@hotel.test' in message['To']


def test_notification_failure_does_not_fail_booking(app, client, guest, room, mailbox):
    mailbox.fail = True

    resp = _create(client, room, guest['headers'])

    assert resp.status_code == 201
    assert _booking_count(app) == 1


# ============================================
# GET / BOOKED DATES
# ============================================

def test_get_booking_is_idempotent(client, guest, manager, room, mailbox):
    booking_id = _create(client, room, guest['headers']).get_json()['data']['id']

    first = client.get(f'/api/v1/bookings/one/{booking_id}', headers=manager['headers'])
    second = client.get(f'/api/v1/bookings/one/{booking_id}', headers=manager['headers'])

    assert first.status_code == 200
    assert first.get_json() == second.get_json()
    assert first.get_json()['data']['duration'] == 2
    assert first.get_json()['data']['room']['room_type'] == 'Standard'


def test_get_missing_booking(client, manager):
    resp = client.get('/api/v1/bookings/one/42', headers=manager['headers'])
    assert resp.status_code == 404
    assert resp.get_json()['message'] == 'Booking Not Found'


def test_guest_cannot_get_any_booking(client, guest, room, mailbox):
    booking_id = _create(client, room, guest['headers']).get_json()['data']['id']
    assert client.get(f'/api/v1/bookings/one/{booking_id}', headers=guest['headers']).status_code == 403


def test_booked_dates_is_public(app, client, guest, room):
    add_booking(app, room, guest['id'], start_days=2, nights=2)
    add_booking(app, room, guest['id'], start_days=9, nights=1, status='Cancelled')

    resp = client.get(f'/api/v1/bookings/booked-dates/{room}')

    assert resp.status_code == 200
    assert len(resp.get_json()['data']) == 2


# ============================================
# UPDATE
# ============================================

def test_update_is_partial(app, client, guest, manager, room, mailbox):
    booking_id = add_booking(app, room, guest['id'], start_days=2, nights=2)

    resp = client.patch(f'/api/v1/bookings/update/{booking_id}', json={'paymentStatus': 'Paid'},
                        headers=manager['headers'])

    assert resp.status_code == 200
    data = resp.get_json()['data']
    assert data['paymentStatus'] == 'Paid'
    assert data['status'] == 'Pending'
    assert data['duration'] == 2
    assert data['paymentMethod'] == 'BankTransfer'


def test_update_confirms_and_notifies(app, client, guest, receptionist, room, mailbox):
    booking_id = add_booking(app, room, guest['id'], start_days=2, nights=2)

    resp = client.patch(f'/api/v1/bookings/update/{booking_id}',
                        json={'status': 'Confirmed', 'paymentStatus': 'Paid'},
                        headers=receptionist['headers'])

    assert resp.status_code == 200
    assert resp.get_json()['data']['status'] == 'Confirmed'
    assert [m['Subject'] for m in mailbox.sent] == ['Booking Confirmed']


def test_update_dates_recomputes_duration(app, client, guest, manager, room, mailbox):
    booking_id = add_booking(app, room, guest['id'], start_days=2, nights=2)
    with app.app_context():
        check_in = db.session.get(Booking, booking_id).check_in

    resp = client.patch(f'/api/v1/bookings/update/{booking_id}',
                        json={'checkOut': (check_in + timedelta(days=5)).isoformat()},
                        headers=manager['headers'])

    assert resp.status_code == 200
    assert resp.get_json()['data']['duration'] == 5


def test_update_does_not_recheck_overlap(app, client, guest, manager, room, mailbox):
    add_booking(app, room, guest['id'], start_days=2, nights=2)
    later = add_booking(app, room, guest['id'], start_days=10, nights=2)
    check_in, check_out = _dates(2, 4)

    resp = client.patch(f'/api/v1/bookings/update/{later}',
                        json={'checkIn': check_in, 'checkOut': check_out},
                        headers=manager['headers'])

    assert resp.status_code == 200


def test_update_rejects_checkout_before_checkin(app, client, guest, manager, room, mailbox):
    booking_id = add_booking(app, room, guest['id'], start_days=5, nights=2)
    _, check_out = _dates(0, 1)

    resp = client.patch(f'/api/v1/bookings/update/{booking_id}', json={'checkOut': check_out},
                        headers=manager['headers'])

    assert resp.status_code == 400


def test_update_rejects_unknown_status(app, client, guest, manager, room):
    booking_id = add_booking(app, room, guest['id'], start_days=2, nights=2)
    resp = client.patch(f'/api/v1/bookings/update/{booking_id}', json={'status': 'Teleported'},
                        headers=manager['headers'])
    assert resp.status_code == 400


def test_update_missing_booking(client, manager):
    resp = client.patch('/api/v1/bookings/update/77', json={'status': 'Confirmed'},
                        headers=manager['headers'])
    assert resp.status_code == 404


def test_guest_cannot_update(app, client, guest, room):
    booking_id = add_booking(app, room, guest['id'], start_days=2, nights=2)
    resp = client.patch(f'/api/v1/bookings/update/{booking_id}', json={'status': 'Confirmed'},
                        headers=guest['headers'])
    assert resp.status_code == 403
