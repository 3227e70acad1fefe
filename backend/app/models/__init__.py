# Imports every model so their tables are registered in Base.metadata
# before SQLAlchemy resolves cross-model foreign keys.
# Without it, FKs such as visits.user_id → users.id fail with
# NoReferencedTableError when user.py has not been loaded first.

from app.models.user import Role, User, RefreshToken  # noqa: F401  must come first
from app.models.area import Area  # noqa: F401
from app.models.company import Company, Contact  # noqa: F401
from app.models.visit import Visit, VisitPhoto, FollowUp, Payment  # noqa: F401
from app.models.call import Call  # noqa: F401
from app.models.daily_report import DailyReport  # noqa: F401
