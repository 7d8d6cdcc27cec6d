# src/testfork/telemetry/logger/processors.py

"""
Custom structlog processors.
"""

import logging

from structlog.typing import EventDict, WrappedLogger

LOG_EMOJIS = {
    logging.DEBUG: "🐛",
    logging.INFO: "ℹ️",
    logging.WARNING: "⚠️",
    logging.ERROR: "❌",
    logging.CRITICAL: "💥",
    "fork": "🍴",
    "report": "📋",
    "output": "📤",
    "fail": "🚫",
    "success": "🎉",
}


def add_emoji_processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Prefixes the event with an emoji chosen by ``emoji_key`` or the log level."""
    emoji_key = event_dict.pop("emoji_key", None)
    level = logging.getLevelNamesMapping().get(str(event_dict.get("level", "")).upper())
    emoji = LOG_EMOJIS.get(emoji_key) or LOG_EMOJIS.get(level)
    if emoji and isinstance(event_dict.get("event"), str):
        event_dict["event"] = f"{emoji} {event_dict['event']}"
    return event_dict


def remove_extra_keys_processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Drops context keys whose value is None."""
    for key in [k for k, v in event_dict.items() if v is None]:
        del event_dict[key]
    return event_dict

# 🔼⚙️
