import functools
import logging
from utils.exceptions import ModelSearchException

def handle_engine_errors(operation_name: str):
    """Decorator for consistent error handling in engines."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except (ModelSearchException, OSError):
                # Our own errors and I/O faults reach the caller unmodified
                raise
            except Exception as e:
                # Wrap unexpected errors
                logger = args[0].logger if hasattr(args[0], 'logger') else logging.getLogger()
                logger.error(f"{operation_name} failed: {e}", exc_info=True)
                raise ModelSearchException(f"{operation_name} failed: {str(e)}") from e
        return wrapper
    return decorator
