"""Reference FastAPI implementation of the BarryLand REST contract."""
