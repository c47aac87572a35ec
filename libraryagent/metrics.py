import time
from functools import wraps
import logfire

class CallMetrics:
    """Track latency and outcome of outbound calls (completion provider, arXiv)."""

    @staticmethod
    def track_call(call_name: str):
        """Decorator to track async call metrics."""
        def decorator(func):
            @wraps(func)
            async def wrapper(*args, **kwargs):
                start_time = time.time()
                error = None

                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    error = type(e).__name__
                    raise
                finally:
                    duration = time.time() - start_time
                    logfire.info(
                        "{call_name} call",
                        call_name=call_name,
                        duration=duration,
                        success=error is None,
                        error=error,
                    )

            return wrapper
        return decorator
