from decimal import Decimal

from accounts.models import User
from drivers.models import DriverProfile
from orders.models import Order

# Louisville, KY
PICKUP = (38.2527, -85.7585)

# One mile of latitude
MILE = 1 / 69.0975


def make_customer(username='customer'):
	return User.objects.create_user(
		username=username,
		password='pass1234',
		role='customer',
		phone_number='9000000000'
	)


def make_operator(username='operator'):
	return User.objects.create_user(username=username, password='pass1234', role='operator')


def make_driver(username, miles_north=None, online=True, approved=True, rating=None):
	"""Driver ``miles_north`` of the pickup point (no coordinates when None)."""
	user = User.objects.create_user(username=username, password='driver1234', role='driver')
	lat = lng = None
	if miles_north is not None:
		lat = Decimal(str(round(PICKUP[0] + miles_north * MILE, 6)))
		lng = Decimal(str(PICKUP[1]))
	DriverProfile.objects.create(
		user=user,
		is_online=online,
		is_approved=approved,
		onboarding_completed=approved,
		current_latitude=lat,
		current_longitude=lng,
		rating=Decimal(str(rating)) if rating is not None else None,
	)
	return user


def make_order(customer, with_coordinates=True, **fields):
	values = {
		'customer': customer,
		'pickup_address': '123 Main St',
		'delivery_address': '456 Oak Ave',
		'total': Decimal('25.00'),
	}
	if with_coordinates:
		values['pickup_latitude'] = Decimal(str(PICKUP[0]))
		values['pickup_longitude'] = Decimal(str(PICKUP[1]))
	values.update(fields)
	return Order.objects.create(**values)
