"""Infrastructure helpers: configuration, HTTP clients, async utilities, time and health."""
