"""HTTP layer: typed routing, middleware, envelopes and controllers."""
