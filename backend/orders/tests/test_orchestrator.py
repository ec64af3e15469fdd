from unittest.mock import Mock, patch

from django.db import DatabaseError
from django.test import TestCase

from orders.models import Order, OrderRejection, QueueEntry
from realtime.notifications import NotificationGateway, OperatorAlertChannel
from services.dispatch.config import DispatchConfig
from services.dispatch.orchestrator import DispatchOrchestrator, DispatchOutcome
from services.dispatch.queue import QueueManager
from services.matching import DriverLocator, GeoScorer

from .helpers import make_customer, make_driver, make_order


class OrchestratorTestCase(TestCase):
	config = DispatchConfig()

	def setUp(self):
		self.gateway = Mock(spec=NotificationGateway)
		self.gateway.notify.return_value = True
		self.alerts = Mock(spec=OperatorAlertChannel)
		self.queue = QueueManager(self.gateway, self.config)
		self.orchestrator = DispatchOrchestrator(
			DriverLocator(),
			GeoScorer(self.config),
			self.gateway,
			self.alerts,
			self.queue,
			self.config,
		)
		self.customer = make_customer()

	def notified_user_ids(self):
		return [c.args[0] for c in self.gateway.notify.call_args_list]

	def notice_titles_for(self, user_id):
		return [c.args[1].title for c in self.gateway.notify.call_args_list if c.args[0] == user_id]


class AutoAssignTests(OrchestratorTestCase):
	def test_close_driver_is_auto_assigned(self):
		driver = make_driver('driver_close', miles_north=2, rating=4.8)
		order = make_order(self.customer)

		result = self.orchestrator.dispatch(order.id)

		self.assertEqual(result.outcome, DispatchOutcome.AUTO_ASSIGNED)
		self.assertEqual(result.driver_id, driver.id)

		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_ASSIGNED)
		self.assertEqual(order.driver_id, driver.id)
		self.assertIsNotNone(order.assigned_at)
		self.assertEqual(order.dispatch_attempts, 1)
		self.assertEqual(order.last_dispatch_outcome, 'auto_assigned')

		self.assertEqual(self.notice_titles_for(driver.id), ['Order Assigned!'])
		self.assertEqual(self.notice_titles_for(self.customer.id), ['Driver Assigned'])

	def test_best_scoring_driver_wins(self):
		make_driver('driver_far', miles_north=6, rating=5.0)
		near = make_driver('driver_near', miles_north=1, rating=4.5)
		order = make_order(self.customer)

		result = self.orchestrator.dispatch(order.id)

		self.assertEqual(result.driver_id, near.id)

	def test_repeated_dispatch_does_not_reassign(self):
		driver = make_driver('driver_close', miles_north=2, rating=4.8)
		make_driver('driver_other', miles_north=3, rating=4.8)
		order = make_order(self.customer)

		first = self.orchestrator.dispatch(order.id)
		second = self.orchestrator.dispatch(order.id)

		self.assertEqual(first.outcome, DispatchOutcome.AUTO_ASSIGNED)
		self.assertEqual(second.outcome, DispatchOutcome.SKIPPED)
		order.refresh_from_db()
		self.assertEqual(order.driver_id, driver.id)
		self.assertEqual(order.dispatch_attempts, 1)

	def test_lost_race_leaves_winner_in_place(self):
		make_driver('driver_close', miles_north=2, rating=4.8)
		rival = make_driver('driver_rival', miles_north=9)
		order = make_order(self.customer)

		def someone_else_accepts(order_id, driver_id):
			Order.objects.filter(pk=order_id).update(status=Order.STATUS_ACCEPTED, driver_id=rival.id)
			return False

		with patch('services.order_management.guards.assign_if_pending', side_effect=someone_else_accepts):
			result = self.orchestrator.dispatch(order.id)

		self.assertEqual(result.outcome, DispatchOutcome.SKIPPED)
		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_ACCEPTED)
		self.assertEqual(order.driver_id, rival.id)
		self.gateway.notify.assert_not_called()

	def test_interleaved_cycles_assign_exactly_one_driver(self):
		make_driver('driver_close', miles_north=2, rating=4.8)
		make_driver('driver_next', miles_north=3, rating=4.9)
		order = make_order(self.customer)
		locator = self.orchestrator.locator
		find_candidates = locator.find_candidates
		competing = []
		started = []

		def locate_then_compete(*args, **kwargs):
			candidates = find_candidates(*args, **kwargs)
			if not started:
				started.append(True)
				# a second cycle runs to completion between this cycle's locate and assign
				competing.append(self.orchestrator.dispatch(order.id))
			return candidates

		with patch.object(locator, 'find_candidates', side_effect=locate_then_compete):
			results = [self.orchestrator.dispatch(order.id) for _ in range(3)]

		self.assertEqual(competing[0].outcome, DispatchOutcome.AUTO_ASSIGNED)
		self.assertEqual([r.outcome for r in results], [DispatchOutcome.SKIPPED] * 3)

		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_ASSIGNED)
		self.assertEqual(order.driver_id, competing[0].driver_id)
		self.assertEqual(Order.objects.filter(status=Order.STATUS_ASSIGNED).count(), 1)
		self.assertEqual(order.dispatch_attempts, 1)

		assigned_notices = [
			c for c in self.gateway.notify.call_args_list if c.args[1].title == 'Order Assigned!'
		]
		self.assertEqual(len(assigned_notices), 1)
		self.assertEqual(assigned_notices[0].args[0], competing[0].driver_id)

	def test_lost_race_on_still_pending_order_retries(self):
		make_driver('driver_close', miles_north=2, rating=4.8)
		order = make_order(self.customer)

		with patch('services.order_management.guards.assign_if_pending', side_effect=[False, True]) as assign:
			result = self.orchestrator.dispatch(order.id)

		self.assertEqual(assign.call_count, 2)
		self.assertEqual(result.outcome, DispatchOutcome.AUTO_ASSIGNED)

	def test_cancelled_order_is_skipped(self):
		make_driver('driver_close', miles_north=2, rating=4.8)
		order = make_order(self.customer, status=Order.STATUS_CANCELLED)

		result = self.orchestrator.dispatch(order.id)

		self.assertEqual(result.outcome, DispatchOutcome.SKIPPED)
		self.gateway.notify.assert_not_called()

	def test_missing_order_is_skipped(self):
		result = self.orchestrator.dispatch(999999)
		self.assertEqual(result.outcome, DispatchOutcome.SKIPPED)


class BroadcastTests(OrchestratorTestCase):
	def test_zero_radius_is_not_replaced_by_default(self):
		nearby = make_driver('driver_close', miles_north=2, rating=4.8)
		order = make_order(self.customer)

		result = self.orchestrator.dispatch(order.id, radius_miles=0)

		self.assertEqual(result.outcome, DispatchOutcome.BROADCASTED)
		self.assertEqual(result.notified_driver_ids, [nearby.id])
		self.assertEqual(result.reason, 'no drivers in radius')
		order.refresh_from_db()
		self.assertIsNone(order.driver_id)

	def test_weak_candidates_get_top_five_broadcast(self):
		drivers = [
			make_driver(f'driver_{i}', miles_north=8 + i, online=False, rating=3.0)
			for i in range(6)
		]
		order = make_order(self.customer)

		result = self.orchestrator.dispatch(order.id)

		self.assertEqual(result.outcome, DispatchOutcome.BROADCASTED)
		self.assertEqual(result.notified_driver_ids, [d.id for d in drivers[:5]])
		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_PENDING)
		self.assertIsNone(order.driver_id)
		self.assertEqual(order.last_dispatch_outcome, 'broadcasted')

	def test_online_drivers_outside_radius_get_broadcast(self):
		far = make_driver('driver_far', miles_north=100)
		order = make_order(self.customer)

		result = self.orchestrator.dispatch(order.id)

		self.assertEqual(result.outcome, DispatchOutcome.BROADCASTED)
		self.assertEqual(result.notified_driver_ids, [far.id])
		self.alerts.alert.assert_not_called()

	def test_order_without_coordinates_goes_to_all_online_drivers(self):
		first = make_driver('driver_a', miles_north=1)
		second = make_driver('driver_b')
		make_driver('driver_offline', miles_north=1, online=False)
		make_driver('driver_unapproved', miles_north=1, approved=False)
		order = make_order(self.customer, with_coordinates=False)

		result = self.orchestrator.dispatch(order.id)

		self.assertEqual(result.outcome, DispatchOutcome.BROADCASTED)
		self.assertEqual(sorted(result.notified_driver_ids), sorted([first.id, second.id]))

	def test_store_error_falls_back_to_online_broadcast(self):
		online = make_driver('driver_online', miles_north=1)
		order = make_order(self.customer)

		with patch.object(self.orchestrator.locator, 'find_candidates', side_effect=DatabaseError('down')) as find:
			result = self.orchestrator.dispatch(order.id)

		# one retry before giving up
		self.assertEqual(find.call_count, 2)
		self.assertEqual(result.outcome, DispatchOutcome.BROADCASTED)
		self.assertEqual(result.notified_driver_ids, [online.id])
		self.assertEqual(result.reason, 'fallback after error')

	def test_failed_notification_is_retried_inside_the_gateway(self):
		driver = make_driver('driver_far', miles_north=100)
		order = make_order(self.customer)
		self.gateway.notify.return_value = False

		result = self.orchestrator.dispatch(order.id)

		self.assertEqual(result.notified_driver_ids, [])
		self.assertEqual(self.notified_user_ids().count(driver.id), 1)
		self.assertEqual(self.gateway.notify.call_args.kwargs['attempts'], self.config.retry_attempts)


class EscalationTests(OrchestratorTestCase):
	def test_no_drivers_escalates_once(self):
		offline = make_driver('driver_offline', online=False)
		order = make_order(self.customer)

		result = self.orchestrator.dispatch(order.id)

		self.assertEqual(result.outcome, DispatchOutcome.ESCALATED)
		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_NO_DRIVERS)
		self.assertEqual(QueueEntry.objects.filter(order=order).count(), 1)
		self.alerts.alert.assert_called_once()
		self.assertEqual(self.alerts.alert.call_args.args[0], 'No drivers available')

		# every approved driver hears about it, online or not
		self.assertEqual(result.notified_driver_ids, [offline.id])
		self.assertEqual(self.notice_titles_for(offline.id), ['URGENT: Order Needs a Driver'])

	def test_escalating_a_held_order_does_not_alert_again(self):
		order = make_order(self.customer)
		self.orchestrator.dispatch(order.id)
		order.refresh_from_db()

		result = self.orchestrator.escalate(order, set(), 'No drivers available', 'again')

		self.assertEqual(result.outcome, DispatchOutcome.QUEUED)
		self.assertEqual(QueueEntry.objects.filter(order=order).count(), 1)
		self.alerts.alert.assert_called_once()

	def test_missing_queue_still_escalates(self):
		config = DispatchConfig.from_dict({"QUEUE_ENABLED": False})
		queue = QueueManager(self.gateway, config)
		orchestrator = DispatchOrchestrator(
			DriverLocator(), GeoScorer(config), self.gateway, self.alerts, queue, config,
		)
		order = make_order(self.customer)

		result = orchestrator.dispatch(order.id)

		self.assertEqual(result.outcome, DispatchOutcome.ESCALATED)
		self.assertIn('queue unavailable', result.reason)
		self.assertFalse(QueueEntry.objects.exists())
		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_NO_DRIVERS)
		self.alerts.alert.assert_called_once()


class RejectionTests(OrchestratorTestCase):
	def test_rejection_widens_radius_and_excludes_rejector(self):
		rejector = make_driver('driver_rejector', miles_north=1, rating=5.0)
		# outside the normal 15 mile radius, inside the 20 mile rejection radius
		wider = make_driver('driver_wider', miles_north=18)
		order = make_order(self.customer)
		Order.objects.filter(pk=order.id).update(status=Order.STATUS_ASSIGNED, driver=rejector)

		result = self.orchestrator.handle_rejection(order.id, rejector.id)

		self.assertTrue(OrderRejection.objects.filter(order=order, driver=rejector).exists())
		self.assertEqual(result.outcome, DispatchOutcome.BROADCASTED)
		self.assertEqual(result.notified_driver_ids, [wider.id])
		self.assertNotIn(rejector.id, self.notified_user_ids())

		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_PENDING)
		self.assertIsNone(order.driver_id)

	def test_rejectors_are_excluded_from_every_later_dispatch(self):
		rejector = make_driver('driver_rejector', miles_north=1, rating=5.0)
		other = make_driver('driver_other', miles_north=2, rating=4.8)
		order = make_order(self.customer)
		OrderRejection.objects.create(order=order, driver=rejector)

		result = self.orchestrator.dispatch(order.id)

		self.assertEqual(result.outcome, DispatchOutcome.AUTO_ASSIGNED)
		self.assertEqual(result.driver_id, other.id)

	def test_rejection_with_no_alternative_escalates(self):
		rejector = make_driver('driver_rejector', miles_north=1)
		make_driver('driver_far', miles_north=40)
		order = make_order(self.customer)

		result = self.orchestrator.handle_rejection(order.id, rejector.id)

		self.assertEqual(result.outcome, DispatchOutcome.ESCALATED)
		self.assertEqual(self.alerts.alert.call_args.args[0], 'No alternative driver')
		self.assertNotIn(rejector.id, result.notified_driver_ids)
		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_NO_DRIVERS)
