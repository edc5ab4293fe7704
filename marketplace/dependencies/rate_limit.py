from fastapi_limiter.depends import RateLimiter

# Shared instances so routes and test overrides refer to the same dependency.
payment_rate_limit = RateLimiter(times=5, seconds=60)
message_rate_limit = RateLimiter(times=10, seconds=30)
