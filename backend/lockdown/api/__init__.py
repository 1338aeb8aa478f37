"""HTTP blueprints. Each one translates engine results into JSON responses."""
