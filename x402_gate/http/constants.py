"""HTTP header names and status codes used by the x402 protocol."""

# Request header carrying the payment payload (v2)
PAYMENT_SIGNATURE_HEADER = "PAYMENT-SIGNATURE"
# Legacy request header (v1)
X_PAYMENT_HEADER = "X-PAYMENT"

# Response header carrying base64 PaymentRequired on 402
PAYMENT_REQUIRED_HEADER = "PAYMENT-REQUIRED"
# Response header carrying the base64 settlement receipt
PAYMENT_RESPONSE_HEADER = "PAYMENT-RESPONSE"

HTTP_STATUS_PAYMENT_REQUIRED = 402
HTTP_STATUS_PRECONDITION_FAILED = 412
HTTP_STATUS_FORBIDDEN = 403

# Facilitator invalid reason that maps to 412 instead of 402
PERMIT2_ALLOWANCE_REQUIRED = "permit2_allowance_required"

DEFAULT_FACILITATOR_URL = "https://x402.org/facilitator"
