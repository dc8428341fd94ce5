"""HTTP layer. Routers stay thin: resolve the actor, call one service method,
commit, and schedule post-commit side effects.

  v1/submissions.py     — submission lifecycle and per-document review
  v1/documents.py       — id resolution across the legacy and submission stores
  v1/document_types.py  — upload checklist catalog
"""
