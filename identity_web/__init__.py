"""
Website session service.

A Flask application that lets people create an identity on the website, log
in and out, and reset a forgotten password with a passcode sent to them by
email. It also provides request authentication for other routes: a request
is authenticated either by the session cookie issued at login, or by an HTTP
signature made with a key registered to an identity. If a request carries
both, they must name the same identity.

Sessions are kept in a distributed key-value store (Redis), so that any
instance of the application can authenticate a request. Identities, their
passcodes, and their public keys are kept in a relational database.
"""
