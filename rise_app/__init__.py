"""Rise.ai OAuth integration example (FastAPI)."""
