"""Services package — all business logic lives here, never in routers.

Files:
  document_types.py        — document type registry and mandatory-set policy
  status_aggregator.py     — submission status as a pure function of document statuses
  submission_aggregate.py  — construction, completeness, ownership guards, status refresh
  document_workflow.py     — document state machine (upload, review, decide, resubmit, finalize)
  resubmission.py          — locates the document a resubmission answers
  reconciliation.py        — one logical view over the legacy flat store and submissions
  notifications.py         — notification events and best-effort dispatch
  artifacts.py             — post-commit removal of released artifacts
  submission.py            — SubmissionService: one atomic unit of work per operation

Rule: routers call services, services call repositories, repositories call the DB.
      No SQLAlchemy queries in services. No FastAPI imports in services.
"""
