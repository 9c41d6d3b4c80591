# Parking Settlement Engine — Database Models
# Import all models here for SQLAlchemy discovery

from app.models.user import User          # noqa
from app.models.slot import Slot          # noqa
from app.models.vehicle import Vehicle    # noqa
from app.models.driver import Driver      # noqa
from app.models.ticket import Ticket      # noqa
from app.models.payment import Payment    # noqa
from app.models.shift import Shift        # noqa
