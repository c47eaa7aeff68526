from django.dispatch import Signal

# Sent after a successful Order.transition_to(); kwargs: order, old, new, by_user
order_status_changed = Signal()
