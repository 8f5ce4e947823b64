"""HTTP blueprints for the HIGHTECH API. Registered in app.register_blueprints."""
