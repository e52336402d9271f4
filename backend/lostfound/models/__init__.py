from .account import AuthAccount
from .category import Category
from .claim import Claim
from .match import Match
from .report import Report
from .user import User

__all__ = ["AuthAccount", "Category", "Claim", "Match", "Report", "User"]
