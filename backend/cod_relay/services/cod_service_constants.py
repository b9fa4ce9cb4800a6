# /cod_relay/services/cod_service_constants.py

class IgnoreReasons:
    """A single source of truth for the `ignored` strings returned to MSG91."""
    # --- Outbound (delivery report) ---
    NOT_COD_DELIVERY = "Not a COD template delivery"
    MISSING_DELIVERY_FIELDS = "Missing requestId or content"
    INVALID_CONTENT = "Invalid content payload"
    MISSING_ORDER_REFERENCE = "Order reference missing"
    ALREADY_TAGGED = "Already tagged"

    # --- Inbound (button reply) ---
    NOT_BUTTON_REPLY = "Not a button reply"
    WRONG_TEMPLATE = "Not the COD template"
    INVALID_BUTTON = "Invalid button payload"
    NOT_YES = "Not YES"
    MISSING_REQUEST_ID = "Missing requestId"
    NOT_COD_ORDER = "Not COD order"
    ALREADY_CONFIRMED = "Already confirmed"

    # --- Shared ---
    INVALID_BODY = "Invalid JSON body"
    ORDER_NOT_FOUND = "Order not found"
    CLIENT_DISCONNECTED = "Client disconnected"


class MSG91Values:
    """Fixed values in MSG91's webhook contract."""
    BUTTON_CONTENT_TYPE = "button"
    AFFIRMATIVE_REPLY = "YES"
    REFERENCE_TEXT_KEY = "text"
    REQUEST_ID_METAFIELD_KEY = "request_id"
