"""
Rate limiting configuration.

The Limiter instance is created in travel_desk/__init__.py with no default
limits; this module applies limits per blueprint.

Usage:
    from travel_desk.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Decision routes (reviewer, minister): 60/minute
        - Admin routes (settings, test email):  30/minute
        - Application routes:                   120/minute
        - Health check:                         exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in ("reviewer", "minister"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit("60/minute")(bp)

    bp = app.blueprints.get("admin")
    if bp:
        limiter.limit("30/minute")(bp)

    bp = app.blueprints.get("applications")
    if bp:
        limiter.limit("120/minute")(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — decisions: 60/min, admin: 30/min, applications: 120/min")
