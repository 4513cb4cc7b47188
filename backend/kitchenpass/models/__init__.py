"""ORM Models — SQLAlchemy declarative models for kitchens, credentials, memberships.

Invariants:
    - All models inherit from Base (db/base.py)
    - Kitchen is the scope; credentials and memberships are keyed by kitchen_id

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete before create_all
      or alembic autogenerate runs
"""

from kitchenpass.models.kitchen import Kitchen  # noqa: F401
from kitchenpass.models.credential import Credential  # noqa: F401
from kitchenpass.models.membership import Membership  # noqa: F401
