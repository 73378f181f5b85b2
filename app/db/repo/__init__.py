from app.db.repo.balance_repo import BalanceRepo
from app.db.repo.users_repo import UsersRepo
from app.db.repo.verifications_repo import VerificationsRepo

__all__ = [
    "BalanceRepo",
    "UsersRepo",
    "VerificationsRepo",
]
