"""
Chat Gateway Service package.

The gateway fronts chat requests to the upstream completion service,
enforcing:
- Rate limiting: fixed-window request budget per client address
- Caching: short-lived replies keyed by the trailing user utterance
- Admission: a small cap on concurrent upstream calls

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.adapters: HTTP client for the completion service.
- app.caching: Reply cache and conversation fingerprints.
- app.ratelimit: Fixed-window limiter.
- app.admission: Concurrency gate around upstream calls.
- app.domain: Request orchestration.
"""
