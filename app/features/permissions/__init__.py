"""
Permission engine feature module.

Module-scoped permissions: each role holds a (permission level, access level)
pair per module, and partial access is narrowed by per-user resource grants.
"""
