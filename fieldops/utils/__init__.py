"""Small request/response and parsing helpers."""
