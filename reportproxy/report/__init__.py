"""
reportproxy Event Reports

Collaborator contracts consumed by the interceptor, plus reference
report sources and an in-memory report.
"""
