"""Interview prep backend: subscription plans, daily usage quotas and resilient data access."""
