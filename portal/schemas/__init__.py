"""Pydantic schemas package.

Folder intent:
  common.py      — CamelModel base, ArtifactIn + HealthResponse (all schemas inherit CamelModel)
  submission.py  — submission workflow requests and responses (summary + checklist included)
  document.py    — reconciled DocumentView, owner lookup, document type catalog
"""
