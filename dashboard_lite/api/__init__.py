"""REST API for dashboard_lite."""
