"""
reportproxy Proxy Layer

Classifies the members of a capability class, generates reporting
proxy classes for it and dispatches every intercepted call.
"""
