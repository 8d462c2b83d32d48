"""
Request controllers for the session service.

Controllers take already-validated input and return ``(data, status code,
headers)``; see :mod:`.session`. Input schemas live in :mod:`.forms`.
"""
