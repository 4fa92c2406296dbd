from decimal import Decimal

from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from common.utils import bounding_box, longitude_ranges
from .models import User
from .views import (
	LocationView,
	LoginView,
	NearbyUsersView,
	ProfileView,
	RefreshTokenView,
	RegisterView,
	RoleView,
	StatsView,
)


class UserModelTests(TestCase):
	def setUp(self):
		self.user = User.objects.create_user(
			username='wallet_user', password='pass1234', email='wallet@example.com',
			phone_number='9100000001',
		)

	def test_defaults(self):
		self.assertEqual(self.user.role, 'rider')
		self.assertEqual(self.user.rating, 5.0)
		self.assertEqual(self.user.token_balances(), {
			'food': 0, 'travel': 0, 'clothing': 0, 'coupons': 0, 'total': 0,
		})
		self.assertTrue(self.user.can_ride)
		self.assertFalse(self.user.can_drive)

	def test_total_follows_categories_on_save(self):
		self.user.tokens_food = 5
		self.user.tokens_travel = 3
		self.user.save(update_fields=['tokens_food', 'tokens_travel'])

		self.user.refresh_from_db()
		self.assertEqual(self.user.tokens_total, 8)

	def test_both_role_can_drive_and_ride(self):
		self.user.role = 'both'
		self.assertTrue(self.user.can_drive)
		self.assertTrue(self.user.can_ride)


class AuthApiTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()

	def _register(self, **overrides):
		payload = {
			'username': 'john_doe',
			'email': 'John@Example.com',
			'password': 'password123',
			'role': 'driver',
			'phone_number': '+1234567890',
		}
		payload.update(overrides)
		request = self.factory.post('/api/auth/register/', payload, format='json')
		return RegisterView.as_view()(request)

	def test_register_returns_user_and_tokens(self):
		response = self._register()

		self.assertEqual(response.status_code, 201)
		self.assertTrue(response.data['success'])
		user = response.data['data']['user']
		self.assertEqual(user['role'], 'driver')
		self.assertEqual(user['email'], 'john@example.com')
		self.assertEqual(user['tokens']['total'], 0)
		self.assertIn('access', response.data['data']['tokens'])
		self.assertIn('refresh', response.data['data']['tokens'])

	def test_register_rejects_duplicate_email(self):
		self._register()
		response = self._register(username='jane', phone_number='+1987654321')

		self.assertEqual(response.status_code, 400)
		self.assertFalse(response.data['success'])
		self.assertIn('email', response.data['data'])

	def test_register_requires_phone(self):
		response = self._register(phone_number=None)
		self.assertEqual(response.status_code, 400)

	def test_login_and_refresh(self):
		self._register()

		request = self.factory.post('/api/auth/token/', {'username': 'john_doe', 'password': 'password123'}, format='json')
		response = LoginView.as_view()(request)
		self.assertEqual(response.status_code, 200)
		refresh = response.data['data']['tokens']['refresh']

		request = self.factory.post('/api/auth/token/refresh/', {'refresh': refresh}, format='json')
		response = RefreshTokenView.as_view()(request)
		self.assertEqual(response.status_code, 200)
		self.assertIn('access', response.data['data'])

	def test_login_rejects_bad_password_and_banned_user(self):
		self._register()

		request = self.factory.post('/api/auth/token/', {'username': 'john_doe', 'password': 'wrong'}, format='json')
		self.assertEqual(LoginView.as_view()(request).status_code, 400)

		User.objects.filter(username='john_doe').update(is_banned=True)
		request = self.factory.post('/api/auth/token/', {'username': 'john_doe', 'password': 'password123'}, format='json')
		self.assertEqual(LoginView.as_view()(request).status_code, 400)

	def test_refresh_rejects_garbage(self):
		request = self.factory.post('/api/auth/token/refresh/', {'refresh': 'not-a-token'}, format='json')
		response = RefreshTokenView.as_view()(request)
		self.assertEqual(response.status_code, 401)
		self.assertEqual(response.data['error'], 'invalid_token')


class UserApiTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.user = User.objects.create_user(
			username='alice', password='pass1234', email='alice@example.com',
			phone_number='9200000001', role='rider',
		)
		self.driver = User.objects.create_user(
			username='bob', password='pass1234', email='bob@example.com',
			phone_number='9200000002', role='driver',
			current_latitude=Decimal('28.601000'), current_longitude=Decimal('77.200000'),
		)
		self.far_driver = User.objects.create_user(
			username='carol', password='pass1234', email='carol@example.com',
			phone_number='9200000003', role='both',
			current_latitude=Decimal('28.700000'), current_longitude=Decimal('77.200000'),
		)

	def _call(self, view, method, data=None, user=None):
		if method == 'get':
			request = self.factory.get('/api/users/', data or {})
		else:
			request = getattr(self.factory, method)('/api/users/', data, format='json')
		force_authenticate(request, user=user or self.user)
		return view.as_view()(request)

	def test_profile(self):
		response = self._call(ProfileView, 'get')
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['data']['user']['username'], 'alice')
		self.assertIsNone(response.data['data']['user']['location'])

	def test_profile_requires_auth(self):
		request = self.factory.get('/api/users/profile/')
		response = ProfileView.as_view()(request)
		self.assertEqual(response.status_code, 401)
		self.assertFalse(response.data['success'])

	def test_location_update_rounds_and_stores(self):
		response = self._call(LocationView, 'put', {'lat': 28.6000004, 'lng': 77.2, 'address': 'Connaught Place'})

		self.assertEqual(response.status_code, 200)
		self.user.refresh_from_db()
		self.assertEqual(self.user.current_latitude, Decimal('28.600000'))
		self.assertEqual(self.user.address, 'Connaught Place')
		self.assertIsNotNone(self.user.location_updated_at)

	def test_location_rejects_out_of_range(self):
		response = self._call(LocationView, 'put', {'lat': 95, 'lng': 77.2})
		self.assertEqual(response.status_code, 400)

	def test_nearby_users(self):
		response = self._call(NearbyUsersView, 'get', {'lat': 28.60, 'lng': 77.20})

		self.assertEqual(response.status_code, 200)
		users = response.data['data']['users']
		self.assertEqual([u['username'] for u in users], ['bob'])
		self.assertAlmostEqual(users[0]['distance_meters'], 111.2, delta=1)

		response = self._call(NearbyUsersView, 'get', {'lat': 28.60, 'lng': 77.20, 'radius': 20000, 'role': 'rider'})
		self.assertEqual([u['username'] for u in response.data['data']['users']], ['carol'])

	def test_nearby_users_across_antimeridian(self):
		User.objects.filter(pk=self.driver.pk).update(
			current_latitude=Decimal('10.000000'), current_longitude=Decimal('-179.998000'),
		)

		response = self._call(NearbyUsersView, 'get', {'lat': 10.0, 'lng': 179.998})

		self.assertEqual(response.status_code, 200)
		users = response.data['data']['users']
		self.assertEqual([u['username'] for u in users], ['bob'])
		self.assertLess(users[0]['distance_meters'], 2000)

	def test_role_switch(self):
		response = self._call(RoleView, 'put', {'role': 'both'})
		self.assertEqual(response.status_code, 200)
		self.user.refresh_from_db()
		self.assertEqual(self.user.role, 'both')

		response = self._call(RoleView, 'put', {'role': 'pilot'})
		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'invalid_role')

	def test_stats(self):
		User.objects.filter(pk=self.user.pk).update(completed_rides=2, total_rides=3, tokens_food=40, tokens_total=40)

		response = self._call(StatsView, 'get')
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['data']['stats']['completed_rides'], 2)
		self.assertEqual(response.data['data']['tokens']['food'], 40)
		self.assertEqual(response.data['data']['tokens']['total'], 40)


class GeoPrefilterTests(SimpleTestCase):
	def test_longitude_span_inside_range(self):
		self.assertEqual(longitude_ranges(77.18, 77.22), [(77.18, 77.22)])

	def test_longitude_span_wraps_at_dateline(self):
		_, _, min_lon, max_lon = bounding_box(0, 179.995, 2000)
		self.assertGreater(max_lon, 180)

		east, west = longitude_ranges(min_lon, max_lon)
		self.assertEqual(east, (min_lon, 180.0))
		self.assertEqual(west[0], -180.0)
		self.assertAlmostEqual(west[1], max_lon - 360, places=9)
		self.assertGreater(west[1], -179.995)

	def test_longitude_span_wraps_below_minus_180(self):
		self.assertEqual(longitude_ranges(-179.9, -179.8), [(-179.9, -179.8)])

		east, west = longitude_ranges(-180.2, -179.8)
		self.assertAlmostEqual(east[0], 179.8, places=9)
		self.assertEqual(east[1], 180.0)
		self.assertEqual(west, (-180.0, -179.8))

	def test_polar_box_covers_every_longitude(self):
		_, _, min_lon, max_lon = bounding_box(90, 10, 2000)
		self.assertEqual(longitude_ranges(min_lon, max_lon), [(-180.0, 180.0)])
