"""SafeTravel: cached district rankings and travel recommendations.

Weather and air quality forecasts come from Open-Meteo. Rankings and
per-district forecasts are cached (DuckDB, with an in-memory fallback) and
refreshed in the background so requests rarely wait on the upstream API.
"""

__version__ = "1.0.0"
