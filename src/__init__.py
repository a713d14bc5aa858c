"""Version router service: API version resolution, routing and lifecycle."""
