"""FastAPI web layer for wa2fa."""
