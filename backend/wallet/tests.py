import re
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from rides.models import Ride
from services.token_ledger import (
	InsufficientBalanceError,
	InvalidAmountError,
	InvalidCategoryError,
	RewardNotFoundError,
	RewardUnavailableError,
	SameCategoryError,
	credit,
	debit,
	generate_voucher_code,
	get_balance,
	get_transactions,
	redeem_reward,
	transfer,
)
from .catalog import DEFAULT_REWARDS
from .models import Redemption, Reward, TokenTransaction
from .tasks import retry_pending_distributions
from .views import (
	available_rewards_view,
	category_summary_view,
	redeem_reward_view,
	redemption_history_view,
	token_add_view,
	token_balance_view,
	token_history_view,
	token_transfer_view,
)


def make_user(username, phone, **extra):
	return User.objects.create_user(
		username=username,
		password='pass1234',
		email=f'{username}@example.com',
		phone_number=phone,
		**extra,
	)


def make_reward(**overrides):
	values = {
		'id': 'starbucks-coffee',
		'title': 'Starbucks Coffee',
		'category': 'food',
		'cost': 50,
	}
	values.update(overrides)
	return Reward.objects.create(**values)


class TokenLedgerTests(TestCase):
	def setUp(self):
		self.user = make_user('ledger_user', '9300000001')

	def test_credit_updates_balance_and_journal(self):
		entry = credit(self.user, 'food', 40, description='Welcome bonus')

		self.assertEqual(entry.amount, 40)
		self.assertEqual(entry.kind, TokenTransaction.ADJUSTMENT)
		self.assertEqual(self.user.tokens_food, 40)
		self.assertEqual(get_balance(self.user)['total'], 40)

	def test_credit_validates_input(self):
		with self.assertRaises(InvalidCategoryError):
			credit(self.user, 'gadgets', 10)
		with self.assertRaises(InvalidAmountError):
			credit(self.user, 'food', 0)
		with self.assertRaises(InvalidAmountError):
			credit(self.user, 'food', -5)
		with self.assertRaises(InvalidAmountError):
			credit(self.user, 'food', True)

		self.assertEqual(TokenTransaction.objects.count(), 0)

	def test_debit_never_goes_negative(self):
		credit(self.user, 'travel', 20)

		with self.assertRaises(InsufficientBalanceError) as ctx:
			debit(self.user, 'travel', 25)

		self.assertEqual(ctx.exception.data, {
			'category': 'travel', 'required': 25, 'available': 20, 'shortfall': 5,
		})
		self.assertEqual(get_balance(self.user)['travel'], 20)

		entry = debit(self.user, 'travel', 20)
		self.assertEqual(entry.amount, -20)
		self.assertEqual(get_balance(self.user)['travel'], 0)

	def test_transfer_moves_between_categories(self):
		credit(self.user, 'food', 30)

		balances = transfer(self.user, 'food', 'coupons', 12)

		self.assertEqual(balances['food'], 18)
		self.assertEqual(balances['coupons'], 12)
		self.assertEqual(balances['total'], 30)
		kinds = set(TokenTransaction.objects.filter(user=self.user).values_list('kind', flat=True))
		self.assertIn(TokenTransaction.TRANSFER_OUT, kinds)
		self.assertIn(TokenTransaction.TRANSFER_IN, kinds)

	def test_transfer_rejections_leave_ledger_unchanged(self):
		credit(self.user, 'food', 10)

		with self.assertRaises(SameCategoryError):
			transfer(self.user, 'food', 'food', 5)
		with self.assertRaises(InsufficientBalanceError):
			transfer(self.user, 'food', 'travel', 11)
		with self.assertRaises(InvalidCategoryError):
			transfer(self.user, 'food', 'gadgets', 5)

		self.assertEqual(get_balance(self.user), {
			'food': 10, 'travel': 0, 'clothing': 0, 'coupons': 0, 'total': 10,
		})
		self.assertEqual(TokenTransaction.objects.filter(user=self.user).count(), 1)

	def test_voucher_code_format(self):
		self.assertRegex(generate_voucher_code(), r'^HICUT-[A-Z0-9]{6}-\d{6}$')

	def test_redeem_success(self):
		make_reward()
		credit(self.user, 'food', 60)

		redemption = redeem_reward(self.user, 'starbucks-coffee')

		self.assertEqual(redemption.cost, 50)
		self.assertEqual(redemption.status, 'active')
		self.assertTrue(re.match(r'^HICUT-', redemption.voucher_code))
		self.assertGreater(redemption.expires_at, timezone.now())
		self.assertEqual(self.user.tokens_food, 10)
		self.assertTrue(
			TokenTransaction.objects.filter(redemption=redemption, kind=TokenTransaction.REDEMPTION, amount=-50).exists()
		)

	def test_redeem_with_short_balance_changes_nothing(self):
		make_reward()
		credit(self.user, 'food', 40)

		with self.assertRaises(InsufficientBalanceError) as ctx:
			redeem_reward(self.user, 'starbucks-coffee')

		self.assertEqual(ctx.exception.shortfall, 10)
		self.assertEqual(ctx.exception.available, 40)
		self.assertEqual(get_balance(self.user)['food'], 40)
		self.assertFalse(Redemption.objects.exists())

	def test_redeem_unknown_or_disabled_reward(self):
		with self.assertRaises(RewardNotFoundError):
			redeem_reward(self.user, 'nope')

		make_reward(id='uber-rides', category='travel', cost=75, available=False)
		with self.assertRaises(RewardUnavailableError):
			redeem_reward(self.user, 'uber-rides')

	def test_transactions_filter(self):
		credit(self.user, 'food', 10)
		credit(self.user, 'travel', 5)

		self.assertEqual(get_transactions(self.user).count(), 2)
		self.assertEqual(list(get_transactions(self.user, category='travel').values_list('amount', flat=True)), [5])


class DistributionRetryTests(TestCase):
	def setUp(self):
		self.driver = make_user('retry_driver', '9300000011', role='driver')
		self.rider = make_user('retry_rider', '9300000012')
		self.ride = Ride.objects.create(
			driver=self.driver,
			rider=self.rider,
			status=Ride.COMPLETED,
			pickup_latitude=28.6, pickup_longitude=77.2, pickup_address='A',
			destination_latitude=28.7, destination_longitude=77.25, destination_address='B',
			route_distance_km=12.14, route_duration_minutes=19,
			token_amount=39, token_category='travel',
			completed_at=timezone.now(),
		)

	def test_command_dry_run_reports_only(self):
		out = StringIO()
		call_command('retry_token_distributions', dry_run=True, stdout=out)

		self.assertIn('1 ride(s)', out.getvalue())
		self.ride.refresh_from_db()
		self.assertFalse(self.ride.tokens_distributed)

	def test_command_pays_out_once(self):
		out = StringIO()
		call_command('retry_token_distributions', stdout=out)
		call_command('retry_token_distributions', stdout=out)

		self.ride.refresh_from_db()
		self.assertTrue(self.ride.tokens_distributed)
		self.assertEqual(get_balance(self.driver)['travel'], 39)
		self.assertEqual(get_balance(self.rider)['travel'], 39)
		self.assertEqual(TokenTransaction.objects.filter(ride=self.ride).count(), 2)

	def test_task(self):
		result = retry_pending_distributions()

		self.assertEqual(result, {'pending': 1, 'distributed': 1})
		self.assertEqual(retry_pending_distributions(), {'pending': 0, 'distributed': 0})


class SeedRewardsTests(TestCase):
	def test_seed_is_repeatable(self):
		call_command('seed_rewards', stdout=StringIO())
		call_command('seed_rewards', stdout=StringIO())

		self.assertEqual(Reward.objects.count(), len(DEFAULT_REWARDS))
		starbucks = Reward.objects.get(pk='starbucks-coffee')
		self.assertEqual((starbucks.category, starbucks.cost), ('food', 50))
		self.assertEqual(len(starbucks.terms), 3)


class WalletApiTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.user = make_user('api_wallet', '9300000021')
		self.staff = make_user('api_staff', '9300000022', is_staff=True)
		make_reward()
		make_reward(id='zomato-voucher', title='Zomato Voucher', cost=30)
		make_reward(id='airbnb-credit', title='Airbnb Credit', category='travel', cost=200, featured=True)

	def _call(self, view, method='get', data=None, user=None, **kwargs):
		if method == 'get':
			request = self.factory.get('/api/', data or {})
		else:
			request = getattr(self.factory, method)('/api/', data, format='json')
		force_authenticate(request, user=user or self.user)
		return view(request, **kwargs)

	def test_balance(self):
		credit(self.user, 'clothing', 7)
		response = self._call(token_balance_view)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['data']['tokens']['clothing'], 7)
		self.assertEqual(response.data['data']['tokens']['total'], 7)

	def test_transfer_errors(self):
		credit(self.user, 'food', 5)

		response = self._call(token_transfer_view, 'post', {'from_category': 'food', 'to_category': 'food', 'amount': 1})
		self.assertEqual(response.data['error'], 'same_category')

		response = self._call(token_transfer_view, 'post', {'from_category': 'food', 'to_category': 'travel', 'amount': 9})
		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'insufficient_balance')
		self.assertEqual(response.data['data']['shortfall'], 4)

		response = self._call(token_transfer_view, 'post', {'from_category': 'food', 'to_category': 'travel', 'amount': -1})
		self.assertEqual(response.data['error'], 'invalid_amount')

		response = self._call(token_transfer_view, 'post', {'from_category': 'food', 'to_category': 'travel', 'amount': 5})
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['data']['tokens']['travel'], 5)

	def test_add_is_staff_only(self):
		response = self._call(token_add_view, 'post', {'category': 'food', 'amount': 10})
		self.assertEqual(response.status_code, 403)

		response = self._call(
			token_add_view, 'post',
			{'category': 'food', 'amount': 10, 'user_id': self.user.pk},
			user=self.staff,
		)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(get_balance(self.user)['food'], 10)

		response = self._call(
			token_add_view, 'post',
			{'category': 'food', 'amount': 10, 'user_id': 999999},
			user=self.staff,
		)
		self.assertEqual(response.status_code, 404)

	def test_history_is_paginated(self):
		for _ in range(3):
			credit(self.user, 'food', 1)

		response = self._call(token_history_view, data={'limit': 2})
		self.assertEqual(len(response.data['data']['transactions']), 2)
		self.assertEqual(response.data['data']['pagination']['total'], 3)
		self.assertEqual(response.data['data']['pagination']['pages'], 2)

		response = self._call(token_history_view, data={'category': 'gadgets'})
		self.assertEqual(response.data['error'], 'invalid_category')

	def test_rewards_listing(self):
		response = self._call(available_rewards_view)
		self.assertEqual(len(response.data['data']['rewards']), 3)

		response = self._call(available_rewards_view, data={'category': 'food'})
		self.assertEqual({r['id'] for r in response.data['data']['rewards']}, {'starbucks-coffee', 'zomato-voucher'})

		response = self._call(available_rewards_view, data={'featured': 'true'})
		self.assertEqual([r['id'] for r in response.data['data']['rewards']], ['airbnb-credit'])

	def test_redeem_and_history(self):
		credit(self.user, 'food', 40)

		response = self._call(redeem_reward_view, 'post', reward_id='starbucks-coffee')
		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'insufficient_balance')
		self.assertEqual(response.data['data']['required'], 50)
		self.assertEqual(response.data['data']['available'], 40)
		self.assertEqual(response.data['data']['shortfall'], 10)

		response = self._call(redeem_reward_view, 'post', reward_id='zomato-voucher')
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['data']['tokens']['food'], 10)
		self.assertFalse(response.data['data']['redemption']['is_expired'])

		response = self._call(redeem_reward_view, 'post', reward_id='missing')
		self.assertEqual(response.status_code, 404)

		response = self._call(redemption_history_view)
		self.assertEqual(response.data['data']['pagination']['total'], 1)
		self.assertEqual(response.data['data']['redemptions'][0]['reward']['id'], 'zomato-voucher')

	def test_category_summary(self):
		credit(self.user, 'travel', 3)
		response = self._call(category_summary_view)

		summary = {c['category']: c for c in response.data['data']['categories']}
		self.assertEqual(summary['travel']['balance'], 3)
		self.assertEqual(summary['food']['available_rewards'], 2)
		self.assertEqual(summary['coupons']['available_rewards'], 0)
		self.assertIn('icon', summary['food'])
