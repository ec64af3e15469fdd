from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from drivers import services
from drivers.models import DriverProfile
from drivers.views import DriverLocationUpdateView, DriverStatusView
from orders.models import Order
from orders.tests.helpers import make_customer, make_driver, make_order
from realtime.models import NotificationRecord
from services.dispatch.config import DispatchConfig
from services.dispatch.engine import get_engine


class DriverServiceTests(TestCase):
	def setUp(self):
		self.customer = make_customer()
		self.driver = make_driver('driver_one', miles_north=1, online=False)
		self.profile = DriverProfile.objects.get(user=self.driver)

	def test_coming_online_pushes_queued_orders(self):
		held = make_order(self.customer, status=Order.STATUS_NO_DRIVERS)
		get_engine().queue.enqueue(held.id)

		sent = services.update_driver_online(self.profile, True)

		self.assertEqual(sent, 1)
		self.assertTrue(self.profile.is_online)
		record = NotificationRecord.objects.get(user=self.driver)
		self.assertEqual(record.title, 'Queued Order Available!')
		self.assertEqual(record.metadata['order_id'], held.id)

		# already online: nothing new
		self.assertEqual(services.update_driver_online(self.profile, True), 0)

	def test_going_offline_sends_nothing(self):
		self.profile.is_online = True
		self.profile.save()

		self.assertEqual(services.update_driver_online(self.profile, False), 0)
		self.assertFalse(NotificationRecord.objects.exists())

	def test_driver_with_another_live_order_stays_busy(self):
		DriverProfile.objects.filter(pk=self.profile.pk).update(status='busy')
		make_order(self.customer, status=Order.STATUS_IN_TRANSIT, driver=self.driver)

		self.assertFalse(services.mark_driver_available(self.driver.id))
		self.assertEqual(DriverProfile.objects.get(pk=self.profile.pk).status, 'busy')

	def test_mark_busy_then_available(self):
		self.assertTrue(services.mark_driver_busy(self.driver.id))
		self.assertEqual(DriverProfile.objects.get(pk=self.profile.pk).status, 'busy')

		self.assertTrue(services.mark_driver_available(self.driver.id))
		self.assertEqual(DriverProfile.objects.get(pk=self.profile.pk).status, 'available')

	def test_unknown_driver_is_not_marked(self):
		self.assertFalse(services.mark_driver_busy(999999))

	def test_report_stale_locations(self):
		DriverProfile.objects.filter(pk=self.profile.pk).update(
			is_online=True, last_location_update=timezone.now() - timedelta(minutes=11)
		)

		self.assertEqual(services.report_stale_locations(DispatchConfig()), 1)


class DriverViewTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.driver = make_driver('driver_one', online=False)

	def test_go_online(self):
		request = self.factory.put('/api/driver/status/', {'is_online': True}, format='json')
		force_authenticate(request, user=self.driver)

		response = DriverStatusView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['is_online'])
		self.assertEqual(response.data['queued_orders_notified'], 0)
		self.assertTrue(DriverProfile.objects.get(user=self.driver).is_online)

	def test_update_location(self):
		request = self.factory.post(
			'/api/driver/location/', {'latitude': '38.2600', 'longitude': '-85.7500'}, format='json'
		)
		force_authenticate(request, user=self.driver)

		response = DriverLocationUpdateView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		profile = DriverProfile.objects.get(user=self.driver)
		self.assertAlmostEqual(float(profile.current_latitude), 38.26)

	def test_rejects_out_of_range_coordinates(self):
		request = self.factory.post('/api/driver/location/', {'latitude': '123', 'longitude': '0'}, format='json')
		force_authenticate(request, user=self.driver)

		response = DriverLocationUpdateView.as_view()(request)

		self.assertEqual(response.status_code, 400)

	def test_customers_are_turned_away(self):
		request = self.factory.get('/api/driver/status/')
		force_authenticate(request, user=make_customer())

		response = DriverStatusView.as_view()(request)

		self.assertEqual(response.status_code, 403)
