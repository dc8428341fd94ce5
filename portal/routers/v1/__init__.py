"""v1 router package — all /api/v1/* endpoints live here.

Files:
  submissions.py     — submission workflow: create, upload, review, resubmit, finalize
  documents.py       — document reads resolved across both stores, owner lookup
  document_types.py  — document type catalog and mandatory set per month
  side_effects.py    — commit, then dispatch notifications / release artifacts

Rule: Routers only handle HTTP (request parsing, response shaping).
      All business logic delegates to portal/services/.
"""
