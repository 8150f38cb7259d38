from decimal import Decimal

from django.test import SimpleTestCase

from apps.monitoring.geo_utils import distance_in_meters, haversine_distance


class GeoUtilsTests(SimpleTestCase):
    def test_same_point_is_zero(self):
        self.assertEqual(haversine_distance(7.0731, 125.6128, 7.0731, 125.6128), 0.0)

    def test_one_degree_of_latitude(self):
        self.assertAlmostEqual(haversine_distance(0, 0, 1, 0), 111.19, places=1)

    def test_distance_in_meters_accepts_decimals_and_strings(self):
        meters = distance_in_meters(Decimal('7.0731'), '125.6128', 7.0741, 125.6128)
        self.assertAlmostEqual(meters, 111.19, places=0)
