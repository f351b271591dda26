from jmap_conformance.lifecycle.clean import clean_account, destroy_order
from jmap_conformance.lifecycle.seed import seed_data
from jmap_conformance.lifecycle.teardown import teardown

__all__ = ["clean_account", "destroy_order", "seed_data", "teardown"]
