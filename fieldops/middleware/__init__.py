"""Request-level middleware: logging, timing, security headers, rate limits."""
