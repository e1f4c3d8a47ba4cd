"""Small helpers shared by the API tests."""

DEFAULT_PASSWORD = "Passw0rd!"


def last_otp(mail_outbox) -> str:
    """OTP code from the most recent captured email."""
    return mail_outbox.call_args.args[2]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
