from .redact import redact, redact_text

__all__ = [
    "redact",
    "redact_text",
]
