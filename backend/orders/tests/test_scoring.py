from types import SimpleNamespace

from django.test import SimpleTestCase

from common.utils import calculate_distance
from services.dispatch.config import DispatchConfig
from services.matching import DriverCandidate, GeoScorer

from .helpers import MILE, PICKUP


def candidate(driver_id, miles_north, online=True, rating=None, open_orders=0):
	return DriverCandidate(
		driver_id=driver_id,
		latitude=PICKUP[0] + miles_north * MILE,
		longitude=PICKUP[1],
		is_online=online,
		is_approved=True,
		onboarding_completed=True,
		open_orders=open_orders,
		rating=rating,
		distance_miles=miles_north,
	)


ORDER = SimpleNamespace(pickup_latitude=PICKUP[0], pickup_longitude=PICKUP[1])


class DistanceTests(SimpleTestCase):
	def test_same_point_is_zero(self):
		self.assertEqual(calculate_distance(*PICKUP, *PICKUP), 0)

	def test_one_degree_of_latitude(self):
		self.assertAlmostEqual(calculate_distance(38.0, -85.0, 39.0, -85.0), 69.1, places=1)


class GeoScorerTests(SimpleTestCase):
	def setUp(self):
		self.scorer = GeoScorer(DispatchConfig())

	def test_close_highly_rated_driver_scores_above_threshold(self):
		score = self.scorer.score(ORDER, candidate(1, 2, rating=4.8))

		# 0.4 * (1 - 2/15) + 0.3 * 0.96 + 0.2 + 0.1
		self.assertAlmostEqual(score, 0.9347, places=3)
		self.assertGreater(score, 0.7)

	def test_unrated_driver_uses_default_rating(self):
		breakdown = self.scorer.breakdown(PICKUP, candidate(1, 0))
		self.assertAlmostEqual(breakdown.rating_score, 0.8)

	def test_offline_driver_gets_half_availability(self):
		breakdown = self.scorer.breakdown(PICKUP, candidate(1, 0, online=False))
		self.assertEqual(breakdown.availability_score, 0.5)

	def test_workload_bottoms_out_at_three_open_orders(self):
		self.assertAlmostEqual(self.scorer.workload_score(1), 2 / 3)
		self.assertEqual(self.scorer.workload_score(3), 0.0)
		self.assertEqual(self.scorer.workload_score(5), 0.0)

	def test_distance_beyond_horizon_scores_zero(self):
		self.assertEqual(self.scorer.distance_score(15), 0.0)
		self.assertEqual(self.scorer.distance_score(40), 0.0)

	def test_closer_driver_never_scores_lower(self):
		previous = None
		for miles in (0, 1, 3, 5, 8, 12, 15, 20):
			score = self.scorer.score(ORDER, candidate(1, miles, rating=4.5, open_orders=1))
			if previous is not None:
				self.assertLessEqual(score, previous)
			previous = score

	def test_score_stays_in_unit_interval(self):
		for drv in (candidate(1, 0, rating=5.0), candidate(2, 30, online=False, rating=1.0, open_orders=9)):
			score = self.scorer.score(ORDER, drv)
			self.assertGreaterEqual(score, 0.0)
			self.assertLessEqual(score, 1.0)

	def test_rank_orders_best_first_and_breaks_ties_by_id(self):
		ranked = self.scorer.rank(ORDER, [
			candidate(7, 4),
			candidate(3, 4),
			candidate(5, 1),
		])
		self.assertEqual([r.driver_id for r in ranked], [5, 3, 7])

	def test_weights_come_from_config(self):
		scorer = GeoScorer(DispatchConfig.from_dict({
			"WEIGHT_DISTANCE": 1.0,
			"WEIGHT_RATING": 0.0,
			"WEIGHT_AVAILABILITY": 0.0,
			"WEIGHT_WORKLOAD": 0.0,
		}))
		self.assertAlmostEqual(scorer.score(ORDER, candidate(1, 3)), 0.8, places=3)
