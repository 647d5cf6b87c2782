"""Predefined rate limit configurations by operation category"""

from typing import Dict

from merchant_gateway.domain.models import RateLimitConfig

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS

RATE_LIMITS: Dict[str, RateLimitConfig] = {
    # OTP (very strict)
    "OTP_SEND": RateLimitConfig(
        max_requests=5,
        window_ms=HOUR_MS,
        message="Too many OTP requests. Please try again in an hour.",
    ),
    "OTP_VERIFY": RateLimitConfig(
        max_requests=10,
        window_ms=10 * MINUTE_MS,
        message="Too many verification attempts. Please wait before trying again.",
    ),
    # Authentication (strict)
    "AUTH_LOGIN": RateLimitConfig(
        max_requests=10,
        window_ms=15 * MINUTE_MS,
        message="Too many login attempts. Please try again later.",
    ),
    "AUTH_PASSWORD_RESET": RateLimitConfig(
        max_requests=3,
        window_ms=HOUR_MS,
        message="Too many password reset requests. Please try again in an hour.",
    ),
    # Payments (moderate)
    "PAYMENT_CREATE": RateLimitConfig(
        max_requests=50,
        window_ms=HOUR_MS,
        message="Too many payment requests. Please try again later.",
    ),
    "PAYOUT_REQUEST": RateLimitConfig(
        max_requests=10,
        window_ms=HOUR_MS,
        message="Too many payout requests. Please try again later.",
    ),
    # API (lenient)
    "API_READ": RateLimitConfig(
        max_requests=1000,
        window_ms=HOUR_MS,
        message="API rate limit exceeded. Please slow down.",
    ),
    "API_WRITE": RateLimitConfig(
        max_requests=500,
        window_ms=HOUR_MS,
        message="API rate limit exceeded. Please slow down.",
    ),
    # Messaging
    "EMAIL_SEND": RateLimitConfig(
        max_requests=100,
        window_ms=HOUR_MS,
        message="Too many emails sent. Please try again later.",
    ),
    "SMS_SEND": RateLimitConfig(
        max_requests=50,
        window_ms=HOUR_MS,
        message="Too many SMS sent. Please try again later.",
    ),
    "WHATSAPP_SEND": RateLimitConfig(
        max_requests=100,
        window_ms=HOUR_MS,
        message="Too many WhatsApp messages sent. Please try again later.",
    ),
    "ADMIN_OPERATION": RateLimitConfig(
        max_requests=500,
        window_ms=HOUR_MS,
        message="Admin operation rate limit exceeded.",
    ),
    "DEFAULT": RateLimitConfig(
        max_requests=100,
        window_ms=HOUR_MS,
        message="Rate limit exceeded. Please try again later.",
    ),
}


def get_rate_limit(category: str) -> RateLimitConfig:
    """Look up a category (case-insensitive), falling back to DEFAULT"""
    return RATE_LIMITS.get(category.upper(), RATE_LIMITS["DEFAULT"])
