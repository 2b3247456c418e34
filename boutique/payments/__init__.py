"""
Module 'payments' (feature-first): point d'entrée public.
Réunit le client Checkout.com, la construction du payload, le handoff (redirect / intégré)
et les paiements directs (checkout, billetterie).
"""

from .payload import (
    PaymentCustomer,
    PaymentProduct,
    PaymentPayload,
    build_payload,
    to_minor_units,
    new_reference,
    hosted_payment_body,
    payment_session_body,
)
from .handoff import (
    REDIRECT,
    EMBEDDED,
    get_mode,
    set_mode,
    start_handoff,
    load_payload,
    on_ready,
    on_completed,
    on_error,
    qr_handoff,
    decode_handoff_data,
)
from .service import card_source, payment_body, pay_with_card, pay_ticket

__all__ = [
    # payload
    "PaymentCustomer",
    "PaymentProduct",
    "PaymentPayload",
    "build_payload",
    "to_minor_units",
    "new_reference",
    "hosted_payment_body",
    "payment_session_body",
    # handoff
    "REDIRECT",
    "EMBEDDED",
    "get_mode",
    "set_mode",
    "start_handoff",
    "load_payload",
    "on_ready",
    "on_completed",
    "on_error",
    "qr_handoff",
    "decode_handoff_data",
    # paiements directs
    "card_source",
    "payment_body",
    "pay_with_card",
    "pay_ticket",
]
