# config/security.py
"""
Security Configuration: session cookies, CSRF and response headers
"""

from datetime import timedelta


# CDNs trusted to serve scripts and stylesheets to our pages
TRUSTED_CDNS = 'ajax.googleapis.com cdnjs.cloudflare.com maxcdn.bootstrapcdn.com'


class SecurityConfig:
    """Security configuration settings"""

    # Session settings
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)

    # CSRF protection (admin & www forms)
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = 3600  # 1 hour

    # Content Security Policy; 'unsafe-inline' required for <style> blocks
    CSP_POLICY = {
        'default-src': f"'self' 'unsafe-inline' {TRUSTED_CDNS}",
    }

    # Security headers
    SECURITY_HEADERS = {
        'X-Content-Type-Options': 'nosniff',
        'X-Frame-Options': 'SAMEORIGIN',
        'X-XSS-Protection': '1; mode=block',
        'Strict-Transport-Security': 'max-age=31536000; includeSubDomains',
        'Referrer-Policy': 'strict-origin-when-cross-origin',
    }

    MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # 1MB


def content_security_policy(policy):
    """Serialise a CSP directive mapping into a header value"""
    return '; '.join(f'{directive} {sources}' for directive, sources in policy.items())
