"""
Services layer for MP Connect.

MODULES:
- mercadopago/: Mercado Pago account linking (PKCE request building, popup
  signaling, token exchange, protected-profile persistence)
"""
