"""Client-side services built on the API client and the favorites core."""
