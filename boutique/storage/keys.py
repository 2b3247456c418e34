# module boutique.storage.keys
# Clés de l'état visiteur. Scope "local": durable. Scope "session": expire avec SESSION_TTL_SECONDS.
import base64

LOCAL = "local"
SESSION = "session"

# local
CART = "cart"
SELECTED_CURRENCY = "selectedCurrency"
IS_LOGGED_IN = "isLoggedIn"
USER_SHIPPING_ADDRESS = "userShippingAddress"
TICKET_SAVED_CARD = "ticketSavedCard"
TICKET_SAVED_CARD_ELIGIBLE = "ticketSavedCardEligible"
TICKET_CRITERIA = "ticketCriteriaPreferences"
CHECKOUT_SOURCE_PAGE = "checkoutSourcePage"
SHOW_CART_ON_LOAD = "showCartOnLoad"
USE_FLOW = "useFlow"
USE_REMEMBER_ME = "useRM"

# session
HOLD_EXPIRES_AT = "ticketHoldExpiresAt"
SEAT_SELECTION = "ticketSeatSelection"
PAYMENT_PAYLOAD = "paymentPayload"
CHECKOUT_FLOW = "checkoutFlow"
ELIGIBILITY_GATE = "eligibilityGate"


def _email_suffix(email: str) -> str:
    return base64.b64encode((email or "").encode("utf-8")).decode("ascii").replace("=", "")


def customer_id_key(email: str) -> str:
    return f"customer_id_{_email_suffix(email)}"


def instrument_ids_key(email: str) -> str:
    return f"instrument_ids_{_email_suffix(email)}"
