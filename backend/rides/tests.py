import itertools
import math
from unittest.mock import patch

from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from services.ride_management import (
	AlreadyRatedError,
	InvalidRatingError,
	InvalidTransitionError,
	NoRatedParticipantError,
	NotAuthorizedError,
	NotRideParticipantError,
	RideAlreadyJoinedError,
	RideNotAvailableError,
	RideNotCompletedError,
	RideNotFoundError,
	SelfJoinError,
	calculate_token_reward,
	create_ride,
	distribute_ride_tokens,
	estimate_route,
	find_nearby_rides,
	get_ride_history,
	join_ride,
	rate_ride,
	update_ride_status,
)
from services.ride_management import ride_lifecycle
from wallet.models import TokenTransaction
from wallet.services.distribution_retry import process_pending_distributions
from .models import Ride
from .views import (
	create_ride_view,
	join_ride_view,
	nearby_rides_view,
	rate_ride_view,
	ride_detail_view,
	ride_history_view,
	update_status_view,
)

PICKUP = {'latitude': 28.60, 'longitude': 77.20, 'address': 'Pickup Point'}
DESTINATION = {'latitude': 28.70, 'longitude': 77.25, 'address': 'Destination Point'}


_phone_numbers = itertools.count(9000000001)


def make_user(username, role='rider'):
	return User.objects.create_user(
		username=username,
		password='pass1234',
		email=f'{username}@example.com',
		phone_number=str(next(_phone_numbers)),
		role=role,
	)


class RouteEstimateTests(SimpleTestCase):
	def test_scenario_route_and_reward(self):
		distance_km, duration = estimate_route(28.60, 77.20, 28.70, 77.25)

		self.assertAlmostEqual(distance_km, 12.14, delta=0.05)
		self.assertEqual(duration, math.ceil(distance_km / 40 * 60))
		self.assertEqual(duration, 19)
		self.assertEqual(calculate_token_reward(distance_km, duration), 39)

	def test_short_ride_gets_minimum_reward(self):
		self.assertEqual(calculate_token_reward(0.5, 1), 10)

	def test_estimated_cost(self):
		ride = Ride(route_distance_km=12.143, route_duration_minutes=19)
		# ceil(60.7) + ceil(1.9) * 2
		self.assertEqual(ride.estimated_cost, 65)

		short = Ride(route_distance_km=0.1, route_duration_minutes=1)
		self.assertEqual(short.estimated_cost, 10)


class RideLifecycleTests(TestCase):
	def setUp(self):
		self.driver = make_user('driver', role='driver')
		self.rider = make_user('rider')
		self.other_rider = make_user('other_rider')
		self.ride = create_ride(self.driver, PICKUP, DESTINATION).ride

	def _complete(self, ride=None):
		ride = ride or self.ride
		join_ride(self.rider, ride.id)
		update_ride_status(self.driver, ride.id, Ride.IN_PROGRESS)
		return update_ride_status(self.driver, ride.id, Ride.COMPLETED)

	# ---------------------- Create ----------------------

	def test_create_sets_route_and_reward(self):
		self.assertEqual(self.ride.status, Ride.PENDING)
		self.assertEqual(self.ride.route_duration_minutes, 19)
		self.assertEqual(self.ride.token_amount, 39)
		self.assertEqual(self.ride.token_category, 'food')
		self.assertFalse(self.ride.tokens_distributed)
		self.assertIsNotNone(self.ride.requested_at)

	def test_create_requires_driver_role(self):
		with self.assertRaises(NotAuthorizedError):
			create_ride(self.rider, PICKUP, DESTINATION)

	def test_both_role_can_create(self):
		both = make_user('both_user', role='both')
		result = create_ride(both, PICKUP, DESTINATION, token_category='travel')
		self.assertEqual(result.ride.token_category, 'travel')

	# ---------------------- Join ----------------------

	def test_join_sets_rider_and_accepts(self):
		result = join_ride(self.rider, self.ride.id)

		self.assertEqual(result.ride.rider, self.rider)
		self.assertEqual(result.ride.status, Ride.ACCEPTED)
		self.assertIsNotNone(result.ride.accepted_at)

	def test_join_missing_ride(self):
		with self.assertRaises(RideNotFoundError):
			join_ride(self.rider, 999999)

	def test_second_join_fails_and_keeps_rider(self):
		join_ride(self.rider, self.ride.id)

		with self.assertRaises(RideNotAvailableError):
			join_ride(self.other_rider, self.ride.id)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.rider, self.rider)

	def test_join_when_seat_taken_but_still_pending(self):
		Ride.objects.filter(pk=self.ride.pk).update(rider=self.other_rider)

		with self.assertRaises(RideAlreadyJoinedError):
			join_ride(self.rider, self.ride.id)

	def test_driver_cannot_join_own_ride(self):
		both = make_user('both_driver', role='both')
		ride = create_ride(both, PICKUP, DESTINATION).ride

		with self.assertRaises(SelfJoinError):
			join_ride(both, ride.id)

	def test_driver_only_role_cannot_join(self):
		other_driver = make_user('other_driver', role='driver')
		with self.assertRaises(NotAuthorizedError):
			join_ride(other_driver, self.ride.id)

	def test_join_losing_race_reports_already_joined(self):
		stale = Ride.objects.get(pk=self.ride.pk)
		join_ride(self.other_rider, self.ride.id)

		# Second caller still holds the pending snapshot
		with patch.object(ride_lifecycle, '_get_ride', return_value=stale):
			with self.assertRaises(RideAlreadyJoinedError):
				join_ride(self.rider, self.ride.id)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.rider, self.other_rider)

	# ---------------------- Status ----------------------

	def test_full_lifecycle_sets_timestamps(self):
		join_ride(self.rider, self.ride.id)
		started = update_ride_status(self.rider, self.ride.id, Ride.IN_PROGRESS).ride
		self.assertEqual(started.status, Ride.IN_PROGRESS)
		self.assertIsNotNone(started.started_at)

		completed = update_ride_status(self.driver, self.ride.id, Ride.COMPLETED).ride
		self.assertEqual(completed.status, Ride.COMPLETED)
		self.assertIsNotNone(completed.completed_at)
		self.assertGreaterEqual(completed.completed_at, completed.started_at)

	def test_invalid_edges_are_rejected(self):
		with self.assertRaises(InvalidTransitionError):
			update_ride_status(self.driver, self.ride.id, Ride.IN_PROGRESS)
		with self.assertRaises(InvalidTransitionError):
			update_ride_status(self.driver, self.ride.id, Ride.COMPLETED)

		join_ride(self.rider, self.ride.id)
		# Re-entry into the current state
		with self.assertRaises(InvalidTransitionError):
			update_ride_status(self.driver, self.ride.id, Ride.ACCEPTED)

		update_ride_status(self.driver, self.ride.id, Ride.IN_PROGRESS)
		# Backward edge
		with self.assertRaises(InvalidTransitionError):
			update_ride_status(self.driver, self.ride.id, Ride.ACCEPTED)

		update_ride_status(self.driver, self.ride.id, Ride.COMPLETED)
		with self.assertRaises(InvalidTransitionError):
			update_ride_status(self.driver, self.ride.id, Ride.CANCELLED)

	def test_pending_ride_can_be_accepted_by_driver(self):
		ride = update_ride_status(self.driver, self.ride.id, Ride.ACCEPTED).ride
		self.assertEqual(ride.status, Ride.ACCEPTED)
		self.assertIsNotNone(ride.accepted_at)

	def test_non_participant_cannot_change_status(self):
		with self.assertRaises(NotRideParticipantError):
			update_ride_status(self.other_rider, self.ride.id, Ride.CANCELLED)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, Ride.PENDING)

	def test_cancel_records_canceller(self):
		join_ride(self.rider, self.ride.id)
		ride = update_ride_status(self.rider, self.ride.id, Ride.CANCELLED, reason='Plans changed').ride

		self.assertEqual(ride.status, Ride.CANCELLED)
		self.assertEqual(ride.cancelled_by, self.rider)
		self.assertEqual(ride.cancellation_reason, 'Plans changed')
		self.assertIsNotNone(ride.cancelled_at)

		self.rider.refresh_from_db()
		self.assertEqual(self.rider.cancelled_rides, 1)

	def test_concurrent_status_change_is_rejected(self):
		join_ride(self.rider, self.ride.id)
		stale = Ride.objects.get(pk=self.ride.pk)
		update_ride_status(self.driver, self.ride.id, Ride.CANCELLED)

		with patch.object(ride_lifecycle, '_get_ride', return_value=stale):
			with self.assertRaises(InvalidTransitionError):
				update_ride_status(self.rider, self.ride.id, Ride.IN_PROGRESS)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, Ride.CANCELLED)

	# ---------------------- Token distribution ----------------------

	def test_completion_credits_both_participants(self):
		result = self._complete()

		self.assertTrue(result.extra['tokens_distributed'])
		self.ride.refresh_from_db()
		self.assertTrue(self.ride.tokens_distributed)

		for user in (self.driver, self.rider):
			user.refresh_from_db()
			self.assertEqual(user.tokens_food, 39)
			self.assertEqual(user.tokens_total, 39)
			self.assertEqual(user.completed_rides, 1)
			self.assertEqual(user.total_rides, 1)

		self.assertEqual(
			TokenTransaction.objects.filter(ride=self.ride, kind=TokenTransaction.RIDE_REWARD).count(),
			2,
		)

	def test_distribution_is_idempotent(self):
		self._complete()
		self.ride.refresh_from_db()

		self.assertFalse(distribute_ride_tokens(self.ride))
		self.assertFalse(distribute_ride_tokens(self.ride))

		self.driver.refresh_from_db()
		self.assertEqual(self.driver.tokens_food, 39)
		self.assertEqual(self.driver.completed_rides, 1)

	def test_distribution_skips_missing_rider(self):
		update_ride_status(self.driver, self.ride.id, Ride.ACCEPTED)
		update_ride_status(self.driver, self.ride.id, Ride.IN_PROGRESS)
		update_ride_status(self.driver, self.ride.id, Ride.COMPLETED)

		self.driver.refresh_from_db()
		self.assertEqual(self.driver.tokens_food, 39)
		self.assertEqual(TokenTransaction.objects.filter(ride=self.ride).count(), 1)

	def test_partial_distribution_failure_leaves_flag_unset(self):
		real_credit = ride_lifecycle.credit
		calls = []

		def flaky_credit(*args, **kwargs):
			if calls:
				raise DatabaseError("write failed")
			calls.append(args)
			return real_credit(*args, **kwargs)

		with patch.object(ride_lifecycle, 'credit', side_effect=flaky_credit):
			result = self._complete()

		self.assertFalse(result.extra['tokens_distributed'])
		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, Ride.COMPLETED)
		self.assertFalse(self.ride.tokens_distributed)

		# The first participant's credit was rolled back with the savepoint
		for user in (self.driver, self.rider):
			user.refresh_from_db()
			self.assertEqual(user.tokens_food, 0)
			self.assertEqual(user.completed_rides, 0)

		# The retry sweep pays out once the failure is gone
		pending, distributed = process_pending_distributions()
		self.assertEqual((pending, distributed), (1, 1))

		self.ride.refresh_from_db()
		self.assertTrue(self.ride.tokens_distributed)
		for user in (self.driver, self.rider):
			user.refresh_from_db()
			self.assertEqual(user.tokens_food, 39)

	# ---------------------- Rating ----------------------

	def test_rating_moves_other_participants_average(self):
		self._complete()

		rate_ride(self.rider, self.ride.id, 4, feedback='Smooth ride')
		rate_ride(self.driver, self.ride.id, 3)

		self.driver.refresh_from_db()
		self.rider.refresh_from_db()
		self.assertEqual(self.driver.rating, 4.0)
		self.assertEqual(self.driver.rating_count, 1)
		self.assertEqual(self.rider.rating, 3.0)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.rating_by_rider, 4)
		self.assertEqual(self.ride.feedback_by_rider, 'Smooth ride')
		self.assertEqual(self.ride.rating_by_driver, 3)

	def test_running_average_across_rides(self):
		self._complete()
		rate_ride(self.rider, self.ride.id, 4)

		second = create_ride(self.driver, PICKUP, DESTINATION).ride
		self._complete(second)
		rate_ride(self.rider, second.id, 5)

		self.driver.refresh_from_db()
		self.assertAlmostEqual(self.driver.rating, 4.5)
		self.assertEqual(self.driver.rating_count, 2)

	def test_each_side_rates_once(self):
		self._complete()
		rate_ride(self.rider, self.ride.id, 5)

		with self.assertRaises(AlreadyRatedError):
			rate_ride(self.rider, self.ride.id, 1)

		self.driver.refresh_from_db()
		self.assertEqual(self.driver.rating, 5.0)
		self.assertEqual(self.driver.rating_count, 1)

	def test_rating_preconditions(self):
		with self.assertRaises(InvalidRatingError):
			rate_ride(self.rider, self.ride.id, 6)
		with self.assertRaises(InvalidRatingError):
			rate_ride(self.rider, self.ride.id, 0)
		with self.assertRaises(RideNotCompletedError):
			rate_ride(self.driver, self.ride.id, 5)

		self._complete()
		with self.assertRaises(NotRideParticipantError):
			rate_ride(self.other_rider, self.ride.id, 5)

	def test_driver_cannot_rate_ride_without_rider(self):
		update_ride_status(self.driver, self.ride.id, Ride.ACCEPTED)
		update_ride_status(self.driver, self.ride.id, Ride.IN_PROGRESS)
		update_ride_status(self.driver, self.ride.id, Ride.COMPLETED)

		with self.assertRaises(NoRatedParticipantError):
			rate_ride(self.driver, self.ride.id, 5, feedback='Nobody here')

		self.ride.refresh_from_db()
		self.assertIsNone(self.ride.rating_by_driver)
		self.assertEqual(self.ride.feedback_by_driver, '')

	# ---------------------- Queries ----------------------

	def test_nearby_orders_by_distance_within_radius(self):
		near = create_ride(self.driver, {'latitude': 28.6010, 'longitude': 77.2000, 'address': 'Near'}, DESTINATION).ride
		far = create_ride(self.driver, {'latitude': 28.6150, 'longitude': 77.2000, 'address': 'Far'}, DESTINATION).ride
		create_ride(self.driver, {'latitude': 28.7000, 'longitude': 77.2000, 'address': 'Out of range'}, DESTINATION)
		taken = create_ride(self.driver, PICKUP, DESTINATION).ride
		join_ride(self.other_rider, taken.id)

		rides = find_nearby_rides(28.60, 77.20)

		self.assertEqual([r.id for r in rides], [self.ride.id, near.id, far.id])
		self.assertEqual(rides[0].distance_meters, 0)
		self.assertLess(rides[1].distance_meters, rides[2].distance_meters)
		self.assertLessEqual(rides[2].distance_meters, 2000)

	def test_nearby_respects_radius(self):
		rides = find_nearby_rides(28.61, 77.20, radius=500)
		self.assertEqual(rides, [])

	def test_nearby_across_antimeridian(self):
		west = create_ride(
			self.driver,
			{'latitude': 0, 'longitude': -179.995, 'address': 'West of the dateline'},
			{'latitude': 0.05, 'longitude': -179.95, 'address': 'Harbour'},
		).ride

		rides = find_nearby_rides(0, 179.995, radius=2000)

		self.assertEqual([r.id for r in rides], [west.id])
		self.assertAlmostEqual(rides[0].distance_meters, 1112, delta=2)
		self.assertEqual(find_nearby_rides(0, 179.995, radius=1000), [])

	def test_history_is_paginated(self):
		for _ in range(3):
			create_ride(self.driver, PICKUP, DESTINATION)
		join_ride(self.rider, self.ride.id)

		history = get_ride_history(self.driver, page=1, limit=2)
		self.assertEqual(len(history['rides']), 2)
		self.assertEqual(history['pagination'], {'page': 1, 'limit': 2, 'total': 4, 'pages': 2})

		rider_history = get_ride_history(self.rider)
		self.assertEqual([r.id for r in rider_history['rides']], [self.ride.id])

		accepted = get_ride_history(self.driver, status=Ride.ACCEPTED)
		self.assertEqual(accepted['pagination']['total'], 1)


class RideApiTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.driver = make_user('api_driver', role='driver')
		self.rider = make_user('api_rider')
		self.stranger = make_user('api_stranger')

	def _request(self, method, view, user, data=None, **kwargs):
		request = getattr(self.factory, method)('/api/rides/', data, format='json')
		force_authenticate(request, user=user)
		return view(request, **kwargs)

	def _create(self):
		payload = {
			'pickup': {'lat': 28.60, 'lng': 77.20, 'address': 'Pickup Point'},
			'destination': {'lat': 28.70, 'lng': 77.25, 'address': 'Destination Point'},
			'notes': 'Two bags',
		}
		return self._request('post', create_ride_view, self.driver, payload)

	def test_end_to_end_ride(self):
		response = self._create()
		self.assertEqual(response.status_code, 201)
		self.assertTrue(response.data['success'])
		ride = response.data['data']['ride']
		self.assertEqual(ride['status'], 'pending')
		self.assertEqual(ride['tokens'], {'amount': 39, 'category': 'food', 'distributed': False})
		self.assertEqual(ride['route']['duration_minutes'], 19)
		ride_id = ride['id']

		response = self._request('post', join_ride_view, self.rider, ride_id=ride_id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['data']['ride']['status'], 'accepted')
		self.assertEqual(response.data['data']['ride']['rider']['id'], self.rider.id)

		response = self._request('put', update_status_view, self.driver, {'status': 'in-progress'}, ride_id=ride_id)
		self.assertEqual(response.status_code, 200)
		self.assertIsNotNone(response.data['data']['ride']['started_at'])

		response = self._request('put', update_status_view, self.driver, {'status': 'completed'}, ride_id=ride_id)
		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['data']['tokens_distributed'])
		self.assertTrue(response.data['data']['ride']['tokens']['distributed'])

		for user in (self.driver, self.rider):
			user.refresh_from_db()
			self.assertEqual(user.tokens_food, 39)
			self.assertEqual(user.completed_rides, 1)
			self.assertEqual(user.total_rides, 1)

		response = self._request('post', rate_ride_view, self.rider, {'rating': 5}, ride_id=ride_id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['data']['ride']['rating']['rider_rating'], 5)

	def test_rider_cannot_create(self):
		payload = {
			'pickup': {'lat': 28.60, 'lng': 77.20, 'address': 'A'},
			'destination': {'lat': 28.70, 'lng': 77.25, 'address': 'B'},
		}
		response = self._request('post', create_ride_view, self.rider, payload)
		self.assertEqual(response.status_code, 403)
		self.assertEqual(response.data['error'], 'not_authorized')

	def test_create_validates_body(self):
		response = self._request('post', create_ride_view, self.driver, {'pickup': {'lat': 28.6}})
		self.assertEqual(response.status_code, 400)
		self.assertFalse(response.data['success'])

	def test_join_errors_are_distinct(self):
		response = self._request('post', join_ride_view, self.rider, ride_id=424242)
		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'ride_not_found')

		ride_id = self._create().data['data']['ride']['id']
		self._request('post', join_ride_view, self.rider, ride_id=ride_id)

		response = self._request('post', join_ride_view, self.stranger, ride_id=ride_id)
		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'ride_not_available')

	def test_status_requires_participant(self):
		ride_id = self._create().data['data']['ride']['id']

		response = self._request('put', update_status_view, self.stranger, {'status': 'cancelled'}, ride_id=ride_id)
		self.assertEqual(response.status_code, 403)
		self.assertEqual(response.data['error'], 'not_participant')

	def test_status_rejects_unknown_value_and_bad_edge(self):
		ride_id = self._create().data['data']['ride']['id']

		response = self._request('put', update_status_view, self.driver, {'status': 'flying'}, ride_id=ride_id)
		self.assertEqual(response.status_code, 400)

		response = self._request('put', update_status_view, self.driver, {'status': 'completed'}, ride_id=ride_id)
		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'invalid_transition')

	def test_rate_rejects_out_of_range(self):
		ride_id = self._create().data['data']['ride']['id']
		response = self._request('post', rate_ride_view, self.driver, {'rating': 9}, ride_id=ride_id)
		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'invalid_rating')

	def test_nearby_requires_rider_role(self):
		request = self.factory.get('/api/rides/nearby/', {'lat': 28.6, 'lng': 77.2})
		force_authenticate(request, user=self.driver)
		response = nearby_rides_view(request)
		self.assertEqual(response.status_code, 403)

		self._create()
		request = self.factory.get('/api/rides/nearby/', {'lat': 28.6, 'lng': 77.2})
		force_authenticate(request, user=self.rider)
		response = nearby_rides_view(request)
		self.assertEqual(response.status_code, 200)
		rides = response.data['data']['rides']
		self.assertEqual(len(rides), 1)
		self.assertEqual(rides[0]['driver']['id'], self.driver.id)
		self.assertEqual(rides[0]['distance_meters'], 0)

	def test_detail_and_history(self):
		ride_id = self._create().data['data']['ride']['id']

		response = self._request('get', ride_detail_view, self.stranger, ride_id=ride_id)
		self.assertEqual(response.status_code, 403)

		response = self._request('get', ride_detail_view, self.driver, ride_id=ride_id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['data']['ride']['id'], ride_id)

		request = self.factory.get('/api/rides/history/', {'page': 1, 'limit': 5})
		force_authenticate(request, user=self.driver)
		response = ride_history_view(request)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['data']['pagination']['total'], 1)
