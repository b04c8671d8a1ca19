from app.models.user import User, UserSession
from app.models.flag_request import FlagRequest
from app.models.flag import Flag
from app.models.capture import Capture
from app.models.counter import Counter

__all__ = ["User", "UserSession", "FlagRequest", "Flag", "Capture", "Counter"]
