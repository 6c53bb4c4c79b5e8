"""Adapter package for the remote repository's external I/O.

Purpose:
    Hold the HTTP-facing pieces: the dispatcher, the authorization manager,
    the default ``requests`` transport and the error taxonomy.

Dependencies:
    ``http_client`` depends on ``requests``; the rest only on the domain
    package.
"""
