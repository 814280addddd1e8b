"""Turn a chat line into arguments for the wrapped command."""

# Slack renders "@bot" as "<@U123ABC>" in message text.
MENTION_PREFIX = "<@"


def segment(namespace: str, text: str) -> list[str]:
    """Split chat text into command arguments.

    A leading mention of the bot is dropped, then a leading token equal to
    the namespace is dropped. Each is removed at most once. Blank text, or
    text holding only the mention and/or namespace, yields no arguments.

    Example:
        >>> segment("deploy", "<@BOT123> deploy staging now")
        ['staging', 'now']
    """
    fields = text.split()

    if fields and fields[0].startswith(MENTION_PREFIX):
        fields = fields[1:]

    if fields and fields[0] == namespace:
        fields = fields[1:]

    return fields
