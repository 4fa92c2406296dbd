from unittest.mock import MagicMock, patch

from django.test import TestCase
from rest_framework.test import APIRequestFactory

from . import views
from .views import health_check


class HealthCheckTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		redis_patch = patch.object(views.redis.Redis, 'from_url', return_value=MagicMock())
		redis_patch.start()
		self.addCleanup(redis_patch.stop)

	def _check(self):
		return health_check(self.factory.get('/health/'))

	def test_healthy_when_a_worker_answers(self):
		with patch.object(views.celery_app.control, 'ping', return_value=[{'celery@host': {'ok': 'pong'}}]) as ping:
			response = self._check()

		ping.assert_called_once()
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['status'], 'healthy')
		self.assertEqual(response.data['services']['celery'], 'healthy')
		self.assertEqual(response.data['services']['database'], 'healthy')

	def test_unhealthy_without_workers(self):
		with patch.object(views.celery_app.control, 'ping', return_value=[]):
			response = self._check()

		self.assertEqual(response.status_code, 503)
		self.assertEqual(response.data['status'], 'unhealthy')
		self.assertEqual(response.data['services']['celery'], 'unhealthy: no workers responded')

	def test_unhealthy_when_broker_is_down(self):
		with patch.object(views.celery_app.control, 'ping', side_effect=ConnectionError('broker down')):
			response = self._check()

		self.assertEqual(response.status_code, 503)
		self.assertEqual(response.data['services']['celery'], 'unhealthy: broker down')
