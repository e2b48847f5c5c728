"""HTTP client for the BarryLand REST API."""
