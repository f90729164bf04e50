"""Route controllers mounted under the API prefix."""

from waypoint.api.controllers.profile import ProfileController
from waypoint.api.controllers.users import UserController

__all__ = ["ProfileController", "UserController"]
