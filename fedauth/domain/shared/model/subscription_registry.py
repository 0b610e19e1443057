from typing import NewType

# Event type name -> consumer groups that get a delivery row for it.
SubscriptionRegistry = NewType("SubscriptionRegistry", dict[str, set[str]])
