from app.db.models.balance import Balance
from app.db.models.promocode_activations import PromoCodeActivation
from app.db.models.promocodes import PromoCode
from app.db.models.users import User
from app.db.models.verifications import Verification

__all__ = [
    "Balance",
    "PromoCode",
    "PromoCodeActivation",
    "User",
    "Verification",
]
