import pytest
from django.core.exceptions import ValidationError

from loyalty.models import LoyaltyTransaction
from orders.models import Order
from orders.signals import order_status_changed
from tests.factories import CustomerFactory, OrderFactory


@pytest.mark.django_db
def test_allowed_transition_sequence_emits_signal(foodtruck, user):
    order = OrderFactory(foodtruck=foodtruck)

    events = []

    def _receiver(sender, order, old, new, by_user, **kwargs):
        events.append((old, new, getattr(by_user, "id", None)))

    order_status_changed.connect(_receiver)
    try:
        # pending -> confirmed -> ready -> picked_up
        order.transition_to("confirmed", by_user=user)
        order.refresh_from_db()
        assert order.status == Order.STATUS_CONFIRMED

        order.transition_to("ready", by_user=user)
        order.transition_to("picked_up", by_user=user)
        order.refresh_from_db()
        assert order.status == Order.STATUS_PICKED_UP

        assert events == [
            (Order.STATUS_PENDING, Order.STATUS_CONFIRMED, user.id),
            (Order.STATUS_CONFIRMED, Order.STATUS_READY, user.id),
            (Order.STATUS_READY, Order.STATUS_PICKED_UP, user.id),
        ]
    finally:
        order_status_changed.disconnect(_receiver)


@pytest.mark.django_db
def test_blocked_transitions_raise_validation_error(foodtruck):
    order = OrderFactory(foodtruck=foodtruck)

    # pending -> ready skips confirmation
    with pytest.raises(ValidationError):
        order.transition_to("ready")
    with pytest.raises(ValidationError):
        order.transition_to("picked_up")

    order.transition_to("confirmed")
    # refusing is only possible while pending
    with pytest.raises(ValidationError):
        order.transition_to("refused")
    with pytest.raises(ValidationError):
        order.transition_to("pending")

    order.transition_to("ready")
    # a ready order can no longer be cancelled
    with pytest.raises(ValidationError):
        order.transition_to("cancelled")

    order.transition_to("picked_up")
    with pytest.raises(ValidationError):
        order.transition_to("cancelled")


@pytest.mark.django_db
def test_cancelled_and_refused_orders_are_final(foodtruck):
    cancelled = OrderFactory(foodtruck=foodtruck)
    cancelled.transition_to("cancelled")
    assert not cancelled.is_active
    with pytest.raises(ValidationError):
        cancelled.transition_to("confirmed")

    refused = OrderFactory(foodtruck=foodtruck)
    refused.transition_to("refused")
    assert not refused.is_active
    with pytest.raises(ValidationError):
        refused.transition_to("confirmed")


@pytest.mark.django_db
def test_confirming_credits_loyalty_points_once(foodtruck):
    foodtruck.loyalty_enabled = True
    foodtruck.loyalty_points_per_euro = 2
    foodtruck.save()
    customer = CustomerFactory(foodtruck=foodtruck, email="fidele@example.com")
    order = OrderFactory(
        foodtruck=foodtruck,
        customer=customer,
        customer_email=customer.email,
        subtotal=1550,
        total_amount=1550,
    )

    order.transition_to("confirmed")

    customer.refresh_from_db()
    order.refresh_from_db()
    assert customer.loyalty_points == 31
    assert order.loyalty_credited
    tx = LoyaltyTransaction.objects.get(customer=customer)
    assert tx.type == LoyaltyTransaction.TYPE_EARN
    assert (tx.points, tx.balance_after, tx.order_id) == (31, 31, order.id)

    order.transition_to("ready")
    customer.refresh_from_db()
    assert customer.loyalty_points == 31
    assert LoyaltyTransaction.objects.filter(customer=customer).count() == 1


@pytest.mark.django_db
def test_status_change_queues_status_email(foodtruck, django_capture_on_commit_callbacks, mailoutbox):
    order = OrderFactory(foodtruck=foodtruck, customer_email="suivi@example.com")

    with django_capture_on_commit_callbacks(execute=True):
        order.transition_to("confirmed")

    assert len(mailoutbox) == 1
    assert mailoutbox[0].to == ["suivi@example.com"]
