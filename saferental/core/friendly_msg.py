FRIENDLY_MESSAGES = {
    "ConnectionError": "Unable to reach a required service. Please try again later.",
    "TimeoutError": "The request took too long. Please try again later.",
    "OperationalError": "Temporary issue while accessing agreements. Please try again shortly.",
    "IntegrityError": "This record conflicts with an existing one.",
    "CircuitOpenError": "Email delivery is temporarily unavailable. Please try again later.",
}


def get_friendly_message(error: Exception) -> str:
    for key, msg in FRIENDLY_MESSAGES.items():
        if key.lower() in type(error).__name__.lower():
            return msg
    return "Something went wrong on our end. Please try again."
