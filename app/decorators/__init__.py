from app.decorators.with_retry import TRANSIENT_ERRORS, with_retry

__all__ = ["TRANSIENT_ERRORS", "with_retry"]
