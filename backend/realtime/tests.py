from unittest.mock import MagicMock, patch

from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.test import SimpleTestCase, TransactionTestCase, override_settings
from rest_framework_simplejwt.tokens import AccessToken

from accounts.models import User
from .middleware import JWTAuthMiddleware
from .notifications import notify_user_event, send_to_user
from .presence import InMemoryPresenceRegistry, get_presence_registry, reset_presence_registry
from .routing import websocket_urlpatterns

application = JWTAuthMiddleware(URLRouter(websocket_urlpatterns))


class InMemoryPresenceRegistryTests(SimpleTestCase):
	def setUp(self):
		self.registry = InMemoryPresenceRegistry()

	async def test_last_registration_wins(self):
		self.assertIsNone(await self.registry.register(1, 'chan-a'))
		self.assertEqual(await self.registry.register(1, 'chan-b'), 'chan-a')
		self.assertEqual(await self.registry.lookup(1), 'chan-b')

	async def test_stale_remove_keeps_newer_entry(self):
		await self.registry.register(1, 'chan-a')
		await self.registry.register(1, 'chan-b')

		self.assertFalse(await self.registry.remove(1, 'chan-a'))
		self.assertEqual(await self.registry.lookup(1), 'chan-b')

		self.assertTrue(await self.registry.remove(1, 'chan-b'))
		self.assertIsNone(await self.registry.lookup(1))
		self.assertFalse(await self.registry.remove(1))

	async def test_online_user_ids(self):
		await self.registry.register(1, 'chan-a')
		await self.registry.register(2, 'chan-b')
		self.assertEqual(sorted(await self.registry.online_user_ids()), [1, 2])

		self.registry.clear()
		self.assertEqual(await self.registry.online_user_ids(), [])

	def test_settings_select_backend(self):
		reset_presence_registry()
		registry = get_presence_registry()
		self.assertIsInstance(registry, InMemoryPresenceRegistry)
		self.assertIs(get_presence_registry(), registry)


class NotifyUserEventTests(SimpleTestCase):
	def setUp(self):
		reset_presence_registry()
		self.addCleanup(reset_presence_registry)

	def test_delivers_to_registered_channel(self):
		layer = get_channel_layer()
		channel_name = async_to_sync(layer.new_channel)()
		async_to_sync(get_presence_registry().register)(5, channel_name)

		self.assertTrue(notify_user_event(5, 'tokens_earned', {'rideId': 3, 'amount': 39}))

		message = async_to_sync(layer.receive)(channel_name)
		self.assertEqual(message['type'], 'relay.event')
		self.assertEqual(message['event'], 'tokens_earned')
		self.assertEqual(message['data'], {'rideId': 3, 'amount': 39})
		self.assertIsNone(message['sender_channel'])

	def test_offline_user_is_dropped(self):
		self.assertFalse(notify_user_event(6, 'ride_joined', {'rideId': 1}))

	@override_settings(PRESENCE_REGISTRY='realtime.presence.RedisPresenceRegistry')
	def test_sync_notifications_share_one_redis_client(self):
		sync_client = MagicMock()
		sync_client.hget.return_value = None

		with patch('realtime.presence.redis.Redis.from_url', return_value=sync_client) as sync_from_url, \
				patch('realtime.presence.aioredis.from_url') as async_from_url:
			for ride_id in range(3):
				self.assertFalse(notify_user_event(1, 'ride_status_changed', {'rideId': ride_id}))

		# One pooled blocking client, no per-call async clients
		self.assertEqual(sync_from_url.call_count, 1)
		async_from_url.assert_not_called()
		self.assertEqual(sync_client.hget.call_count, 3)

	def test_registry_failure_is_swallowed(self):
		with patch.object(InMemoryPresenceRegistry, 'lookup_sync', side_effect=ConnectionError("down")):
			self.assertFalse(notify_user_event(1, 'ride_joined', {'rideId': 1}))


class RelayConsumerTests(TransactionTestCase):
	def setUp(self):
		reset_presence_registry()
		self.driver = User.objects.create_user(
			username='relay_driver', password='pass1234', email='relay_driver@example.com',
			phone_number='9400000001', role='driver',
		)
		self.rider = User.objects.create_user(
			username='relay_rider', password='pass1234', email='relay_rider@example.com',
			phone_number='9400000002', role='rider',
		)

	async def _connect(self, user):
		token = str(AccessToken.for_user(user))
		communicator = WebsocketCommunicator(application, f"/ws/relay/?token={token}")
		connected, _ = await communicator.connect()
		self.assertTrue(connected)
		welcome = await communicator.receive_json_from()
		self.assertEqual(welcome['type'], 'connection_established')
		self.assertEqual(welcome['user_id'], user.id)
		return communicator

	async def test_anonymous_and_bad_token_are_refused(self):
		communicator = WebsocketCommunicator(application, "/ws/relay/")
		connected, _ = await communicator.connect()
		self.assertFalse(connected)

		communicator = WebsocketCommunicator(application, "/ws/relay/?token=garbage")
		connected, _ = await communicator.connect()
		self.assertFalse(connected)

	async def test_banned_user_is_refused(self):
		await database_sync_to_async(User.objects.filter(pk=self.rider.pk).update)(is_banned=True)
		token = str(AccessToken.for_user(self.rider))
		communicator = WebsocketCommunicator(application, f"/ws/relay/?token={token}")
		connected, _ = await communicator.connect()
		self.assertFalse(connected)

	async def test_connect_and_disconnect_track_presence(self):
		registry = get_presence_registry()
		communicator = await self._connect(self.rider)
		self.assertIsNotNone(await registry.lookup(self.rider.id))

		await communicator.disconnect()
		self.assertIsNone(await registry.lookup(self.rider.id))

		rider = await database_sync_to_async(User.objects.get)(pk=self.rider.pk)
		self.assertIsNotNone(rider.last_seen)

	async def test_point_to_point_events(self):
		driver = await self._connect(self.driver)
		rider = await self._connect(self.rider)

		await rider.send_json_to({
			'type': 'ride_request',
			'driverId': self.driver.id,
			'rideDetails': {'pickup': 'Gate 2'},
		})
		message = await driver.receive_json_from()
		self.assertEqual(message['type'], 'new_ride_request')
		self.assertEqual(message['riderId'], self.rider.id)
		self.assertEqual(message['rideDetails'], {'pickup': 'Gate 2'})
		self.assertIn('timestamp', message)
		self.assertTrue(await rider.receive_nothing())

		await driver.send_json_to({'type': 'ride_accept', 'riderId': self.rider.id, 'rideId': 7})
		message = await rider.receive_json_from()
		self.assertEqual(message['type'], 'ride_accepted')
		self.assertEqual(message['driverId'], self.driver.id)
		self.assertEqual(message['rideId'], 7)

		await driver.send_json_to({'type': 'send_message', 'recipientId': self.rider.id, 'rideId': 7, 'message': 'Outside'})
		message = await rider.receive_json_from()
		self.assertEqual(message['type'], 'new_message')
		self.assertEqual(message['senderId'], self.driver.id)
		self.assertEqual(message['message'], 'Outside')

		await driver.disconnect()
		await rider.disconnect()

	async def test_offline_recipient_is_dropped(self):
		rider = await self._connect(self.rider)

		await rider.send_json_to({'type': 'ride_request', 'driverId': self.driver.id})
		self.assertTrue(await rider.receive_nothing())
		self.assertFalse(await send_to_user(self.driver.id, 'ride_joined', {'rideId': 1}))

		await rider.disconnect()

	async def test_missing_recipient_field_is_an_error(self):
		rider = await self._connect(self.rider)

		await rider.send_json_to({'type': 'ride_request'})
		message = await rider.receive_json_from()
		self.assertEqual(message['type'], 'error')

		await rider.disconnect()

	async def test_location_update_is_stored_and_broadcast(self):
		driver = await self._connect(self.driver)
		rider = await self._connect(self.rider)

		await rider.send_json_to({'type': 'location_update', 'lat': 28.61, 'lng': 77.21})
		message = await driver.receive_json_from()
		self.assertEqual(message['type'], 'user_location_update')
		self.assertEqual(message['userId'], self.rider.id)
		self.assertEqual(message['location'], {'lat': 28.61, 'lng': 77.21})
		# Broadcasts skip the sender
		self.assertTrue(await rider.receive_nothing())

		stored = await database_sync_to_async(User.objects.get)(pk=self.rider.pk)
		self.assertAlmostEqual(float(stored.current_latitude), 28.61)
		self.assertIsNotNone(stored.location_updated_at)

		await rider.send_json_to({'type': 'location_update', 'lat': 120, 'lng': 77.21})
		self.assertEqual((await rider.receive_json_from())['type'], 'error')

		await driver.disconnect()
		await rider.disconnect()

	async def test_availability_toggle(self):
		driver = await self._connect(self.driver)
		rider = await self._connect(self.rider)

		await driver.send_json_to({'type': 'toggle_availability', 'available': True})
		message = await rider.receive_json_from()
		self.assertEqual(message['type'], 'driver_availability_changed')
		self.assertEqual(message['driverId'], self.driver.id)
		self.assertTrue(message['available'])

		stored = await database_sync_to_async(User.objects.get)(pk=self.driver.pk)
		self.assertTrue(stored.is_available)

		await driver.send_json_to({'type': 'toggle_availability', 'available': 'yes'})
		self.assertEqual((await driver.receive_json_from())['type'], 'error')

		await driver.disconnect()
		await rider.disconnect()

	async def test_newest_connection_wins(self):
		rider = await self._connect(self.rider)
		first = await self._connect(self.driver)
		second = await self._connect(self.driver)

		await rider.send_json_to({'type': 'ride_request', 'driverId': self.driver.id})
		self.assertEqual((await second.receive_json_from())['type'], 'new_ride_request')
		self.assertTrue(await first.receive_nothing())

		# Closing the stale socket keeps the newer one registered
		await first.disconnect()
		self.assertTrue(await rider.receive_nothing())
		self.assertIsNotNone(await get_presence_registry().lookup(self.driver.id))

		await second.disconnect()
		message = await rider.receive_json_from()
		self.assertEqual(message['type'], 'user_disconnected')
		self.assertEqual(message['userId'], self.driver.id)

		await rider.disconnect()

	async def test_unknown_and_untyped_messages(self):
		rider = await self._connect(self.rider)

		await rider.send_json_to({'rideId': 1})
		self.assertEqual((await rider.receive_json_from())['message'], 'Message type is required')

		await rider.send_json_to({'type': 'teleport'})
		self.assertEqual((await rider.receive_json_from())['message'], 'Unknown message type: teleport')

		await rider.disconnect()
