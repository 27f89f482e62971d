"""Notification dispatch and retry module.

Routes resource state-change events (device/agent offline, online, degraded,
network scan complete) to operator-configured channels:

- matcher: enabled rules for the event's organization and type, with filters
- cooldown: atomic per-(rule, resource) gate against alert storms
- orchestrator: bounded in-process retries, history, retry queue escalation
- retry: queued redelivery with exponential backoff and dead-lettering
- service / submission: synchronous trigger API and bounded fire-and-forget
- api: FastAPI routes for triggering and cron-driven retry processing
"""
