"""
billing_batch -- batch processing and scheduling for billing jobs.

Provides a batch executor with per-item SAVEPOINT isolation, a task
registry, cron evaluation and an in-process polling scheduler.  The
monthly invoice run is the first registered task.

Architecture:
    billing_batch/ is a top-level package.  Nothing in billing_kernel/ or
    billing_modules/ imports from it; task files import the module
    services they drive.
"""
