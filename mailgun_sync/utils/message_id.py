"""Provider message id normalization."""


def clean_message_id(message_id: str | None) -> str:
    """
    Strip the angle-bracket delimiters the provider wraps message ids in.

    Args:
        message_id: Raw message id, e.g. "<abc123@mailgun.org>"

    Returns:
        The bare message id, e.g. "abc123@mailgun.org"
    """
    if not message_id:
        return ""
    return message_id.strip().strip("<>")
